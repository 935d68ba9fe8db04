"""Stock ledger routes"""

from . import ledger

__all__ = ["ledger"]
