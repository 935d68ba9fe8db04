"""
Stock Ledger SQLAlchemy Models
Database models for the stock ledger
"""

# Import all models to ensure they are registered with SQLAlchemy
from .stock import StockDetailRec, ReceiveDetailRec, IssueDetailRec, PurchaseTransactionRec
from .rrp import RrpDetailRec, AppConfigRec

__all__ = [
    "StockDetailRec",
    "ReceiveDetailRec",
    "IssueDetailRec",
    "PurchaseTransactionRec",
    "RrpDetailRec",
    "AppConfigRec",
]
