"""
API Dependencies
Common dependencies for API endpoints
"""

from typing import Optional
from fastapi import Depends, Header
from sqlalchemy.orm import Session

from stockledger.core.database import get_db
from stockledger.services.stock import StockLedgerService
from stockledger.services.rrp import RrpNumberingService


def get_request_user(x_user: Optional[str] = Header(None, description="Acting user, recorded on RRP changes")) -> Optional[str]:
    """Acting user name; authentication happens in front of this service."""
    return x_user.strip() if x_user else None


def get_ledger_service(db: Session = Depends(get_db)) -> StockLedgerService:
    return StockLedgerService(db)


def get_rrp_service(
    db: Session = Depends(get_db),
    current_user: Optional[str] = Depends(get_request_user),
) -> RrpNumberingService:
    return RrpNumberingService(db, current_user=current_user)
