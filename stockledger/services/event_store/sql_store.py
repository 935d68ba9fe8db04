"""
SQL Ledger Event Store
SQLAlchemy implementation of the ledger event store
"""
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional
import logging

from sqlalchemy.orm import Session

from stockledger.models.stock import (
    StockDetailRec, ReceiveDetailRec, IssueDetailRec, PurchaseTransactionRec
)
from stockledger.models.rrp import RrpDetailRec
from stockledger.services.stock.ledger_types import (
    ApprovalStatus, IssueEvent, ReceiveEvent, StockItemBaseline
)
from .base_store import LedgerEventStore

logger = logging.getLogger("stockledger.database")


class SqlLedgerEventStore(LedgerEventStore):
    """Reads events and writes derived fields through one session"""

    def __init__(self, db: Session):
        self.db = db

    def list_item_codes(self) -> List[str]:
        rows = self.db.query(StockDetailRec.nac_code).filter(
            StockDetailRec.nac_code.isnot(None),
            StockDetailRec.nac_code != ''
        ).order_by(StockDetailRec.nac_code).all()
        return [row.nac_code for row in rows]

    def get_baseline(self, nac_code: str) -> Optional[StockItemBaseline]:
        stock = self._get_stock(nac_code)
        if not stock:
            return None
        return StockItemBaseline.create(
            nac_code=stock.nac_code,
            open_quantity=stock.open_quantity,
            open_amount=stock.open_amount,
            applicable_equipments=stock.applicable_equipments,
            item_name=stock.item_name or '',
            part_numbers=stock.part_numbers or '',
            location=stock.location or '',
            card_number=stock.card_number or '',
        )

    def get_receive_events(self, nac_code: str, end: Optional[date] = None) -> List[ReceiveEvent]:
        """Approved receipts; the amount is the linked RRP total, zero when unlinked"""
        query = self.db.query(ReceiveDetailRec, RrpDetailRec.total_amount, RrpDetailRec.rrp_number).outerjoin(
            RrpDetailRec, ReceiveDetailRec.rrp_fk == RrpDetailRec.id
        ).filter(
            ReceiveDetailRec.nac_code == nac_code,
            ReceiveDetailRec.approval_status == ApprovalStatus.APPROVED.value
        )
        if end is not None:
            query = query.filter(ReceiveDetailRec.receive_date <= end)

        events = []
        for receive, total_amount, rrp_number in query.order_by(ReceiveDetailRec.receive_date, ReceiveDetailRec.id):
            events.append(ReceiveEvent(
                id=receive.id,
                date=receive.receive_date,
                quantity=receive.received_quantity,
                amount=total_amount if total_amount is not None else Decimal('0'),
                ref=rrp_number or receive.receive_number or f"RCV-{receive.id}",
                approval_status=receive.approval_status,
                source=receive.receive_source or 'purchase',
            ))
        return events

    def get_bulk_purchase_events(self, end: Optional[date] = None) -> List[ReceiveEvent]:
        query = self.db.query(PurchaseTransactionRec).filter(
            PurchaseTransactionRec.transaction_type == 'purchase',
            PurchaseTransactionRec.transaction_status == 'confirmed'
        )
        if end is not None:
            query = query.filter(PurchaseTransactionRec.transaction_date <= end)

        return [
            ReceiveEvent(
                id=txn.id,
                date=txn.transaction_date,
                quantity=txn.transaction_quantity,
                amount=Decimal('0'),
                ref=str(txn.id),
                source='purchase',
            )
            for txn in query.order_by(PurchaseTransactionRec.transaction_date, PurchaseTransactionRec.id)
        ]

    def get_issue_events(self, nac_code: str, end: Optional[date] = None) -> List[IssueEvent]:
        query = self.db.query(IssueDetailRec).filter(
            IssueDetailRec.nac_code == nac_code,
            IssueDetailRec.approval_status == ApprovalStatus.APPROVED.value
        )
        if end is not None:
            query = query.filter(IssueDetailRec.issue_date <= end)

        return [
            IssueEvent(
                id=issue.id,
                date=issue.issue_date,
                quantity=issue.issue_quantity,
                cost=issue.issue_cost,
                issued_for=issue.issued_for or '',
                issue_slip_number=issue.issue_slip_number or '',
                approval_status=issue.approval_status,
                issued_by=issue.issued_by,
            )
            for issue in query.order_by(IssueDetailRec.issue_date, IssueDetailRec.id)
        ]

    def write_remaining_balances(self, nac_code: str, balances: Dict[int, Decimal],
                                 current_balance: Decimal) -> int:
        updated = 0
        if balances:
            issues = self.db.query(IssueDetailRec).filter(IssueDetailRec.id.in_(list(balances))).all()
            for issue in issues:
                issue.remaining_balance = balances[issue.id]
                updated += 1

        stock = self._get_stock(nac_code)
        if stock:
            stock.current_balance = current_balance
        self.db.flush()
        return updated

    def write_inventory_state(self, state) -> int:
        updates = {u.issue_id: u for u in state.issue_updates}
        updated = 0
        if updates:
            for issue in self.db.query(IssueDetailRec).filter(IssueDetailRec.id.in_(list(updates))).all():
                issue.issue_cost = updates[issue.id].issue_cost
                issue.remaining_balance = updates[issue.id].remaining_balance
                updated += 1

        if state.receive_remaining:
            receives = self.db.query(ReceiveDetailRec).filter(
                ReceiveDetailRec.id.in_(list(state.receive_remaining))
            ).all()
            for receive in receives:
                receive.remaining_quantity = state.receive_remaining[receive.id]

        stock = self._get_stock(state.nac_code)
        if stock:
            stock.open_remaining_quantity = state.open_remaining_quantity
            stock.current_balance = state.current_balance
        self.db.flush()
        return updated

    def commit(self):
        self.db.commit()

    def rollback(self):
        self.db.rollback()

    def _get_stock(self, nac_code: str) -> Optional[StockDetailRec]:
        return self.db.query(StockDetailRec).filter(StockDetailRec.nac_code == nac_code).first()
