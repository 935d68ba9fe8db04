"""Ledger event stores"""

from .base_store import LedgerEventStore
from .sql_store import SqlLedgerEventStore

__all__ = [
    "LedgerEventStore",
    "SqlLedgerEventStore",
]
