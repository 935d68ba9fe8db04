"""Stock Ledger Services - reconciliation engine and rebuild jobs"""

from .stock_ledger import StockLedgerService
from .balance_rebuild import RemainingBalanceRebuilder, InventoryStateRebuilder
from .ledger_replay import replay_ledger, aggregate_consumable_issues
from .movement_normalizer import normalize_movements
from .opening_balance import resolve_opening_balance

# Create aliases for API compatibility
ledger_service = StockLedgerService

__all__ = [
    "StockLedgerService",
    "RemainingBalanceRebuilder",
    "InventoryStateRebuilder",
    "replay_ledger",
    "aggregate_consumable_issues",
    "normalize_movements",
    "resolve_opening_balance",
    "ledger_service",
]
