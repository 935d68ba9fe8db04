"""
Tests for the Opening Balance Resolver and the ledger service
"""

import pytest
from decimal import Decimal
from datetime import date
from sqlalchemy.orm import Session

from stockledger.core.config import settings
from stockledger.core.exceptions import RecordNotFoundError, ValidationError
from stockledger.services.stock import StockLedgerService
from stockledger.services.stock.ledger_types import IssueEvent, ReceiveEvent, StockItemBaseline
from stockledger.services.stock.opening_balance import resolve_opening_balance

D = Decimal
EPOCH = settings.LEDGER_EPOCH_DATE


@pytest.fixture
def baseline():
    return StockItemBaseline.create("GT 10001", open_quantity="10", open_amount="1000")


class TestResolveOpeningBalance:

    def test_movements_before_cutoff_are_applied(self, baseline):
        """Test receipts and issues strictly before the cutoff count"""
        receipts = [
            ReceiveEvent(id=1, date=date(2025, 8, 1), quantity=5, amount="600"),
            ReceiveEvent(id=2, date=date(2025, 8, 10), quantity=7, amount="700"),
        ]
        issues = [
            IssueEvent(id=3, date=date(2025, 8, 2), quantity=3, cost="300"),
            IssueEvent(id=4, date=date(2025, 8, 9), quantity=1, cost="100"),
        ]

        opening = resolve_opening_balance(baseline, receipts, issues, date(2025, 8, 10))

        assert opening.quantity == D("11")
        assert opening.amount == D("1200")
        assert opening.as_of == date(2025, 8, 9)

    def test_non_approved_events_ignored(self, baseline):
        """Test pending receipts do not move the opening balance"""
        receipts = [ReceiveEvent(id=1, date=date(2025, 8, 1), quantity=5, approval_status="PENDING")]

        opening = resolve_opening_balance(baseline, receipts, [], date(2025, 9, 1))

        assert opening.quantity == D("10")

    def test_cutoff_before_epoch_returns_baseline(self, baseline):
        """Test a cutoff before the epoch returns the raw baseline"""
        issues = [IssueEvent(id=1, date=date(2025, 1, 1), quantity=4, cost="400")]

        opening = resolve_opening_balance(baseline, [], issues, date(2025, 3, 1))

        assert (opening.quantity, opening.amount) == (D("10"), D("1000"))
        assert opening.as_of == EPOCH

    def test_no_cutoff_returns_baseline(self, baseline):
        """Test a ledger without a start date opens at the baseline"""
        opening = resolve_opening_balance(baseline, [], [], None)
        assert opening.quantity == D("10")
        assert opening.as_of == EPOCH

    def test_opening_balance_idempotence(self, baseline):
        """Test identical inputs always give identical output"""
        receipts = [ReceiveEvent(id=1, date=date(2025, 8, 1), quantity=5, amount="500")]
        issues = [IssueEvent(id=2, date=date(2025, 8, 3), quantity=2, cost="200")]

        first = resolve_opening_balance(baseline, receipts, issues, date(2025, 9, 1))
        second = resolve_opening_balance(baseline, receipts, issues, date(2025, 9, 1))

        assert first == second


class TestStockItemCapabilities:

    def test_consumable_flag_from_equipment(self):
        """Test the consumable marker in the equipment tags flags the SKU"""
        assert StockItemBaseline.create("GT 1", applicable_equipments="Consumable, 9N-ABC").is_consumable
        assert not StockItemBaseline.create("GT 1", applicable_equipments="9N-ABC").is_consumable

    def test_bulk_and_fixed_cost_flags(self):
        """Test flags resolved from the configured SKU codes"""
        bulk = StockItemBaseline.create("GT 00000")
        fuel = StockItemBaseline.create("GT 07986")

        assert bulk.is_bulk_zero_cost_item and bulk.has_fixed_issue_cost
        assert fuel.has_fixed_issue_cost and not fuel.is_bulk_zero_cost_item


class TestStockLedgerService:

    def test_opening_balance_from_database(self, db_session: Session, builder):
        """Test RRP amounts and issue costs feed the opening balance"""
        builder.stock("GT 10001", open_quantity="10", open_amount="1000")
        builder.receive("GT 10001", date(2025, 8, 1), 5, amount="750")
        builder.receive("GT 10001", date(2025, 8, 2), 4)  # unlinked, zero amount
        builder.issue("GT 10001", date(2025, 8, 3), 6, cost="600")
        builder.issue("GT 10001", date(2025, 8, 3), 2, cost="200", status="REJECTED")

        opening = StockLedgerService(db_session).resolve_opening_balance("GT 10001", date(2025, 8, 4))

        assert opening.quantity == D("13")
        assert opening.amount == D("1150")

    def test_unknown_item(self, db_session: Session):
        """Test an unknown code is reported as not found"""
        with pytest.raises(RecordNotFoundError):
            StockLedgerService(db_session).resolve_opening_balance("GT 99999", date(2025, 8, 4))

    def test_bulk_item_uses_purchase_transactions(self, db_session: Session, builder):
        """Test the bulk SKU receives confirmed purchases at zero amount"""
        builder.stock("GT 00000", open_quantity="100", open_amount="0")
        builder.purchase_transaction(date(2025, 8, 1), 50)
        builder.purchase_transaction(date(2025, 8, 2), 30, status="pending")
        builder.purchase_transaction(date(2025, 8, 2), 20, transaction_type="consumption")
        builder.receive("GT 00000", date(2025, 8, 1), 999, amount="5000")
        builder.issue("GT 00000", date(2025, 8, 3), 40, cost="0")

        service = StockLedgerService(db_session)
        opening = service.resolve_opening_balance("GT 00000", date(2025, 8, 10))
        ledger = service.build_ledger("GT 00000", date(2025, 8, 1), date(2025, 8, 31))

        assert opening.quantity == D("110")
        assert opening.amount == D("0")
        assert [e.movement.quantity for e in ledger.entries] == [D("50"), D("40")]

    def test_build_ledger_window(self, db_session: Session, builder):
        """Test the window opens with the reconstructed balance and is inclusive"""
        builder.stock("GT 10001", open_quantity="2", open_amount="200")
        builder.receive("GT 10001", date(2025, 8, 1), 5, amount="500")
        builder.issue("GT 10001", date(2025, 8, 5), 3, cost="300")
        builder.receive("GT 10001", date(2025, 8, 10), 4, amount="400", rrp_number="L002")
        builder.issue("GT 10001", date(2025, 8, 20), 1, cost="100")

        ledger = StockLedgerService(db_session).build_ledger("GT 10001", date(2025, 8, 5), date(2025, 8, 10))

        assert ledger.opening.quantity == D("7")
        assert ledger.opening.as_of == date(2025, 8, 4)
        assert [e.balance_quantity for e in ledger.entries] == [D("4"), D("8")]
        assert ledger.entries[1].movement.ref == "L002"

    def test_build_ledger_consumable_aggregates(self, db_session: Session, builder):
        """Test consumable items show one issue line per day"""
        builder.stock("GT 20001", open_quantity="20", applicable_equipments="consumable")
        builder.issue("GT 20001", date(2025, 8, 5), 3, slip="IS-1")
        builder.issue("GT 20001", date(2025, 8, 5), 4, slip="IS-2")

        ledger = StockLedgerService(db_session).build_ledger("GT 20001")

        assert len(ledger.entries) == 1
        assert ledger.entries[0].movement.quantity == D("7")
        assert ledger.entries[0].movement.ref == "IS-1"
        assert ledger.entries[0].balance_quantity == D("13")

    def test_build_ledger_rejects_inverted_window(self, db_session: Session, builder):
        """Test a window ending before it starts is invalid"""
        builder.stock("GT 10001")
        with pytest.raises(ValidationError):
            StockLedgerService(db_session).build_ledger("GT 10001", date(2025, 9, 1), date(2025, 8, 1))
