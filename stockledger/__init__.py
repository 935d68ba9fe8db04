"""Stock Ledger Reconciliation Engine"""

__version__ = "1.4.0"
