"""
Tests for the Movement Normalizer
Ordering, approval filtering and date parsing of receive/issue rows
"""

import pytest
import logging
from decimal import Decimal
from datetime import date, datetime

from stockledger.core.exceptions import InvalidMovementData
from stockledger.services.stock.ledger_types import IssueEvent, MovementKind, ReceiveEvent
from stockledger.services.stock.movement_normalizer import (
    normalize_movements, parse_movement_date, parse_quantity, parse_issued_by
)


class TestMovementOrder:
    """Total order: date, receipts before issues, then id"""

    def test_receipts_sort_before_issues_on_same_date(self):
        """Test same-day receipts come first regardless of input order"""
        day = date(2025, 8, 1)
        issues = [IssueEvent(id=1, date=day, quantity=2), IssueEvent(id=5, date=day, quantity=1)]
        receipts = [ReceiveEvent(id=9, date=day, quantity=4), ReceiveEvent(id=3, date=day, quantity=6)]

        movements = normalize_movements(receipts, issues)

        assert [(m.kind, m.id) for m in movements] == [
            (MovementKind.RECEIPT, 3),
            (MovementKind.RECEIPT, 9),
            (MovementKind.ISSUE, 1),
            (MovementKind.ISSUE, 5),
        ]

    def test_order_is_stable_under_input_permutation(self):
        """Test shuffled inputs give the same sequence"""
        receipts = [
            ReceiveEvent(id=2, date="2025-08-03", quantity=1),
            ReceiveEvent(id=1, date="2025-08-01", quantity=1),
        ]
        issues = [
            IssueEvent(id=7, date="2025-08-01", quantity=1),
            IssueEvent(id=4, date="2025-08-03", quantity=1),
        ]

        first = normalize_movements(receipts, issues)
        second = normalize_movements(list(reversed(receipts)), list(reversed(issues)))

        assert [m.sort_key for m in first] == [m.sort_key for m in second]
        assert [m.id for m in first] == [1, 7, 2, 4]

    def test_time_of_day_is_ignored(self):
        """Test an earlier timestamp does not put an issue before a same-day receipt"""
        receipts = [ReceiveEvent(id=10, date=datetime(2025, 8, 1, 17, 30), quantity=1)]
        issues = [IssueEvent(id=1, date=datetime(2025, 8, 1, 8, 0), quantity=1)]

        movements = normalize_movements(receipts, issues)

        assert movements[0].kind == MovementKind.RECEIPT
        assert movements[0].date == date(2025, 8, 1)


class TestApprovalFiltering:

    def test_non_approved_rows_are_excluded(self):
        """Test pending and rejected rows never reach the ledger"""
        receipts = [
            ReceiveEvent(id=1, date=date(2025, 8, 1), quantity=5, approval_status="PENDING"),
            ReceiveEvent(id=2, date=date(2025, 8, 1), quantity=5, approval_status="REJECTED"),
            ReceiveEvent(id=3, date=date(2025, 8, 1), quantity=5, approval_status="approved"),
        ]
        issues = [IssueEvent(id=4, date=date(2025, 8, 2), quantity=1, approval_status="PENDING")]

        movements = normalize_movements(receipts, issues)

        assert [m.id for m in movements] == [3]

    def test_window_bounds_are_inclusive(self):
        """Test movements on both window edges are kept"""
        receipts = [ReceiveEvent(id=i, date=date(2025, 8, i), quantity=1) for i in range(1, 6)]

        movements = normalize_movements(receipts, [], window_start=date(2025, 8, 2), window_end=date(2025, 8, 4))

        assert [m.id for m in movements] == [2, 3, 4]


class TestFieldParsing:

    @pytest.mark.parametrize("value", [
        date(2025, 8, 1),
        datetime(2025, 8, 1, 23, 59),
        "2025-08-01",
        "2025-08-01T10:15:00",
        "2025-08-01 10:15:00",
        20250801,
        "20250801",
    ])
    def test_accepted_date_forms(self, value):
        """Test every supported date form parses to the same calendar date"""
        assert parse_movement_date(value) == date(2025, 8, 1)

    @pytest.mark.parametrize("value", ["", "not-a-date", "2025-13-01", None, 3.5])
    def test_unparsable_date_raises(self, value):
        """Test bad dates fail instead of defaulting"""
        with pytest.raises(InvalidMovementData):
            parse_movement_date(value, event_id=42)

    def test_unparsable_date_fails_normalization(self):
        """Test one bad row aborts the whole normalization"""
        issues = [IssueEvent(id=8, date="31/12/2025", quantity=1)]

        with pytest.raises(InvalidMovementData) as exc_info:
            normalize_movements([], issues)

        assert exc_info.value.event_id == 8
        assert exc_info.value.field == "date"

    @pytest.mark.parametrize("value", [None, "abc", "-1", "NaN"])
    def test_invalid_quantity_raises(self, value):
        """Test missing, non-numeric and negative quantities are rejected"""
        with pytest.raises(InvalidMovementData):
            parse_quantity(value, event_id=1)

    def test_quantity_from_float_is_exact(self):
        """Test floats go through str so no binary noise leaks in"""
        assert parse_quantity(0.1) == Decimal("0.1")

    def test_missing_receipt_amount_is_zero(self):
        """Test an unlinked receipt carries a zero amount"""
        movements = normalize_movements([ReceiveEvent(id=1, date=date(2025, 8, 1), quantity=3, amount=None)], [])
        assert movements[0].amount == Decimal("0")


class TestIssuedBy:

    def test_valid_json_is_decoded(self):
        """Test structured issuer identity is kept"""
        assert parse_issued_by('{"name": "Ram", "staffId": "S-1"}') == {"name": "Ram", "staffId": "S-1"}

    def test_malformed_json_becomes_none(self, caplog):
        """Test malformed issued_by is dropped with a warning and does not fail the replay"""
        issues = [IssueEvent(id=3, date=date(2025, 8, 1), quantity=1, issued_by="{name: broken")]

        with caplog.at_level(logging.WARNING, logger="stockledger.ledger"):
            movements = normalize_movements([], issues)

        assert movements[0].issued_by is None
        assert "malformed issued_by" in caplog.text

    def test_non_object_json_becomes_none(self):
        """Test a JSON list is not accepted as an identity"""
        assert parse_issued_by('["a", "b"]') is None
