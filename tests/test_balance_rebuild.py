"""
Tests for the rebuild jobs
Remaining balances, FIFO issue costs, error isolation and cancellation
"""

import pytest
import threading
from decimal import Decimal
from datetime import date
from sqlalchemy.orm import Session

from stockledger.core.config import settings
from stockledger.core.exceptions import InvalidMovementData
from stockledger.models.stock import IssueDetailRec, ReceiveDetailRec, StockDetailRec
from stockledger.services.event_store import SqlLedgerEventStore
from stockledger.services.stock import (
    InventoryStateRebuilder, RemainingBalanceRebuilder, StockLedgerService
)
from stockledger.services.stock.balance_rebuild import _SkuBatchJob
from stockledger.services.stock.issue_costing import cost_inventory
from stockledger.services.stock.ledger_types import IssueEvent, ReceiveEvent, StockItemBaseline

D = Decimal


class BrokenItemStore(SqlLedgerEventStore):
    """SQL store that returns an unparsable issue for one SKU"""

    def __init__(self, db, broken_code):
        super().__init__(db)
        self.broken_code = broken_code

    def get_issue_events(self, nac_code, end=None):
        events = super().get_issue_events(nac_code, end)
        if nac_code == self.broken_code:
            events.append(IssueEvent(id=-1, date="garbage", quantity=1))
        return events


def _balances(db: Session):
    return {i.id: i.remaining_balance for i in db.query(IssueDetailRec).order_by(IssueDetailRec.id)}


@pytest.fixture
def two_items(builder):
    builder.stock("GT 10001", open_quantity="5", open_amount="500")
    builder.issue("GT 10001", date(2025, 8, 1), 3)
    builder.issue("GT 10001", date(2025, 8, 2), 4)
    builder.receive("GT 10001", date(2025, 8, 3), 10, amount="2000")
    builder.issue("GT 10001", date(2025, 8, 3), 6)
    builder.issue("GT 10001", date(2025, 8, 4), 1, status="PENDING")

    builder.stock("GT 10002", open_quantity="0", open_amount="0")
    builder.issue("GT 10002", date(2025, 8, 1), 2)
    builder.receive("GT 10002", date(2025, 8, 2), 5, amount="50", rrp_number="L002")


class TestRemainingBalanceRebuilder:

    def test_remaining_balances_written(self, db_session: Session, two_items):
        """Test each approved issue gets its floored post-movement balance"""
        summary = RemainingBalanceRebuilder(SqlLedgerEventStore(db_session)).rebuild_remaining_balances()
        db_session.commit()

        balances = _balances(db_session)
        assert summary.fixed_count == 4
        assert summary.error_count == 0
        # 5 - 3 = 2, then 4 against 2 leaves 0 and 2 owed, receipt 10 retires it -> 8, issue 6 -> 2
        assert [balances[i] for i in (1, 2, 3)] == [D("2"), D("0"), D("2")]
        # Pending issue untouched
        assert balances[4] == D("0")
        assert balances[5] == D("0")

    def test_current_balance_written(self, db_session: Session, two_items):
        """Test the closing balance lands on the stock item"""
        RemainingBalanceRebuilder(SqlLedgerEventStore(db_session)).rebuild_remaining_balances()
        db_session.commit()

        stocks = {s.nac_code: s.current_balance for s in db_session.query(StockDetailRec)}
        assert stocks == {"GT 10001": D("2"), "GT 10002": D("3")}

    def test_rebuild_idempotence(self, db_session: Session, two_items):
        """Test a second run writes the same remaining balances"""
        service = StockLedgerService(db_session)

        service.rebuild_remaining_balances()
        first = _balances(db_session)
        summary = service.rebuild_remaining_balances()
        second = _balances(db_session)

        assert first == second
        assert summary.fixed_count == 4

    def test_per_item_errors_are_isolated(self, db_session: Session, two_items):
        """Test one item with bad data is counted and the rest still rebuild"""
        store = BrokenItemStore(db_session, "GT 10001")

        summary = RemainingBalanceRebuilder(store).rebuild_remaining_balances()
        db_session.commit()

        assert summary.error_count == 1
        assert summary.errors[0].startswith("GT 10001:")
        assert summary.fixed_count == 1
        assert summary.processed_count == 2
        assert _balances(db_session)[1] == D("0")
        stocks = {s.nac_code: s.current_balance for s in db_session.query(StockDetailRec)}
        assert stocks["GT 10002"] == D("3")

    def test_bad_item_raises_when_rebuilt_alone(self, db_session: Session, two_items):
        """Test single-item rebuild surfaces the data error"""
        with pytest.raises(InvalidMovementData):
            RemainingBalanceRebuilder(BrokenItemStore(db_session, "GT 10001")).rebuild_item("GT 10001")

    def test_cancellation_between_items(self, db_session: Session, two_items):
        """Test a set cancel event stops the job before the next item"""
        cancel = threading.Event()
        cancel.set()

        summary = RemainingBalanceRebuilder(SqlLedgerEventStore(db_session), cancel).rebuild_remaining_balances()

        assert summary.cancelled
        assert summary.processed_count == 0
        assert summary.fixed_count == 0

    def test_rebuild_single_item(self, db_session: Session, two_items):
        """Test rebuilding one item after an issue edit"""
        issue = db_session.get(IssueDetailRec, 1)
        issue.issue_quantity = D("5")
        db_session.commit()

        fixed = StockLedgerService(db_session).rebuild_item("GT 10001")

        assert fixed == 3
        assert _balances(db_session)[1] == D("0")


class TestIssueCosting:

    def test_fifo_opening_lot_then_receipts(self):
        """Test issues consume the opening lot first, then receipt lots oldest first"""
        baseline = StockItemBaseline.create("GT 10001", open_quantity="2", open_amount="20")
        receipts = [
            ReceiveEvent(id=1, date=date(2025, 8, 1), quantity=3, amount="60"),
            ReceiveEvent(id=2, date=date(2025, 8, 2), quantity=5, amount="150"),
        ]
        issues = [
            IssueEvent(id=10, date=date(2025, 8, 3), quantity=4),
            IssueEvent(id=11, date=date(2025, 8, 4), quantity=3),
        ]

        state = cost_inventory(baseline, receipts, issues)

        costs = {u.issue_id: u.issue_cost for u in state.issue_updates}
        # 2 x 10 + 2 x 20 = 60, then 1 x 20 + 2 x 30 = 80
        assert costs == {10: D("60.0000"), 11: D("80.0000")}
        assert state.open_remaining_quantity == D("0")
        assert state.receive_remaining == {1: D("0"), 2: D("3")}
        assert [u.remaining_balance for u in state.issue_updates] == [D("6"), D("3")]
        assert state.current_balance == D("3")

    def test_receipt_lot_not_used_before_it_arrives(self):
        """Test an issue dated before a receipt is a shortfall, not costed from it"""
        baseline = StockItemBaseline.create("GT 10001")
        receipts = [ReceiveEvent(id=1, date=date(2025, 8, 5), quantity=10, amount="100")]
        issues = [IssueEvent(id=2, date=date(2025, 8, 1), quantity=4)]

        state = cost_inventory(baseline, receipts, issues)

        assert state.issue_updates[0].issue_cost == D("0.0000")
        assert state.shortfall_quantity == D("4")
        assert state.receive_remaining == {1: D("10")}

    def test_fixed_issue_cost_kept(self):
        """Test fixed-cost SKUs keep a recorded positive issue cost"""
        baseline = StockItemBaseline.create("GT 07986", open_quantity="10", open_amount="1000")
        issues = [
            IssueEvent(id=1, date=date(2025, 8, 1), quantity=2, cost="555"),
            IssueEvent(id=2, date=date(2025, 8, 2), quantity=2, cost="0"),
        ]

        state = cost_inventory(baseline, [], issues)

        assert [u.issue_cost for u in state.issue_updates] == [D("555"), D("200.0000")]

    def test_inventory_state_rebuild_writes_fields(self, db_session: Session, two_items):
        """Test costs, lot remainders and the opening remainder are stored"""
        summary = InventoryStateRebuilder(SqlLedgerEventStore(db_session)).rebuild_all()
        db_session.commit()

        assert summary.error_count == 0
        issue = db_session.get(IssueDetailRec, 1)
        assert issue.issue_cost == D("300")
        # Issue 2 ran short before the receipt arrived, issue 3 takes 6 of its 10
        receive = db_session.query(ReceiveDetailRec).filter_by(nac_code="GT 10001").one()
        assert receive.remaining_quantity == D("4")
        stock = db_session.query(StockDetailRec).filter_by(nac_code="GT 10001").one()
        assert stock.open_remaining_quantity == D("0")

    def test_cost_precision_from_settings(self, monkeypatch):
        """Test issue costs are rounded to the configured number of places"""
        monkeypatch.setattr(settings, "COST_DECIMAL_PLACES", 2)
        baseline = StockItemBaseline.create("GT 10001", open_quantity="3", open_amount="10")
        issues = [IssueEvent(id=1, date=date(2025, 8, 1), quantity=1)]

        cost = cost_inventory(baseline, [], issues).issue_updates[0].issue_cost

        assert cost == D("3.33")
        assert cost.as_tuple().exponent == -2


class TestSkuBatchJob:

    def test_batch_job_needs_rebuild_item(self, db_session: Session):
        """Test the shared job loop cannot run without an item rebuild"""
        with pytest.raises(TypeError):
            _SkuBatchJob(SqlLedgerEventStore(db_session))

    def test_item_rebuild_override(self, db_session: Session, two_items):
        """Test a job only has to supply rebuild_item to get the batch loop"""
        class CountingJob(_SkuBatchJob):
            def rebuild_item(self, nac_code):
                return 1

        summary = CountingJob(SqlLedgerEventStore(db_session)).run()

        assert summary.fixed_count == 2
        assert summary.processed_count == 2
