"""
Movement Normalizer
Turns raw receive/issue rows into Movements in ledger order
"""
from decimal import Decimal, InvalidOperation
from datetime import date, datetime
from typing import Any, Iterable, List, Optional
import json

from stockledger.core.exceptions import InvalidMovementData
from stockledger.core.logging import get_logger
from .ledger_types import (
    ApprovalStatus, IssueEvent, Movement, MovementKind, ReceiveEvent, ZERO
)

logger = get_logger("ledger")


def is_approved(status: Any) -> bool:
    """Only APPROVED rows take part in ledger math"""
    if isinstance(status, ApprovalStatus):
        return status == ApprovalStatus.APPROVED
    return str(status or '').strip().upper() == ApprovalStatus.APPROVED.value


def parse_movement_date(value: Any, event_id: Optional[int] = None) -> date:
    """
    Parse a movement date to a calendar date

    Accepts date, datetime, ISO strings (YYYY-MM-DD with an optional time
    part) and YYYYMMDD integers or strings. Time of day is dropped.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, bool) or value is None:
        raise InvalidMovementData(f"Missing or invalid date {value!r}", event_id=event_id, field="date")

    if isinstance(value, int):
        text = str(value)
    elif isinstance(value, str):
        text = value.strip()
    else:
        raise InvalidMovementData(f"Unsupported date value {value!r}", event_id=event_id, field="date")

    try:
        if len(text) == 8 and text.isdigit():
            return datetime.strptime(text, "%Y%m%d").date()
        # Drop any time part, "2025-08-01T10:00:00" or "2025-08-01 10:00:00"
        return date.fromisoformat(text[:10])
    except ValueError:
        raise InvalidMovementData(f"Unparsable date {value!r}", event_id=event_id, field="date")


def parse_quantity(value: Any, event_id: Optional[int] = None, field: str = "quantity") -> Decimal:
    """Parse a quantity; missing, non-numeric or negative values are rejected"""
    if value is None or isinstance(value, bool):
        raise InvalidMovementData(f"Missing {field}", event_id=event_id, field=field)
    try:
        quantity = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidMovementData(f"Unparsable {field} {value!r}", event_id=event_id, field=field)
    if not quantity.is_finite() or quantity < 0:
        raise InvalidMovementData(f"Invalid {field} {value!r}", event_id=event_id, field=field)
    return quantity


def parse_amount(value: Any, event_id: Optional[int] = None, field: str = "amount") -> Decimal:
    """Parse a monetary amount; a missing amount is zero (unlinked receipt)"""
    if value is None:
        return ZERO
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise InvalidMovementData(f"Unparsable {field} {value!r}", event_id=event_id, field=field)
    if not amount.is_finite():
        raise InvalidMovementData(f"Invalid {field} {value!r}", event_id=event_id, field=field)
    return amount


def parse_issued_by(value: Any, event_id: Optional[int] = None) -> Optional[dict]:
    """Decode the issuer identity; malformed JSON becomes None"""
    if value is None or value == '':
        return None
    if isinstance(value, dict):
        return value
    try:
        decoded = json.loads(value)
    except (TypeError, ValueError) as e:
        logger.warning(f"Issue {event_id}: malformed issued_by ignored ({e})")
        return None
    if not isinstance(decoded, dict):
        logger.warning(f"Issue {event_id}: issued_by is not an object, ignored")
        return None
    return decoded


def movement_sort_key(movement: Movement):
    """Date ascending, receipts before issues, then id ascending"""
    return movement.sort_key


def receipt_to_movement(event: ReceiveEvent) -> Movement:
    return Movement(
        date=parse_movement_date(event.date, event.id),
        id=event.id,
        kind=MovementKind.RECEIPT,
        quantity=parse_quantity(event.quantity, event.id),
        amount=parse_amount(event.amount, event.id),
        ref=event.ref or '',
        source_ids=(event.id,),
    )


def issue_to_movement(event: IssueEvent) -> Movement:
    return Movement(
        date=parse_movement_date(event.date, event.id),
        id=event.id,
        kind=MovementKind.ISSUE,
        quantity=parse_quantity(event.quantity, event.id),
        amount=parse_amount(event.cost, event.id, field="cost"),
        ref=event.issue_slip_number or '',
        equipment_ref=event.issued_for or None,
        source_ids=(event.id,),
        issued_by=parse_issued_by(event.issued_by, event.id),
    )


def normalize_movements(
    receipts: Iterable[ReceiveEvent],
    issues: Iterable[IssueEvent],
    window_start: Optional[date] = None,
    window_end: Optional[date] = None
) -> List[Movement]:
    """
    Build the ordered movement sequence for one SKU

    Args:
        receipts: Receive rows, any approval status
        issues: Issue rows, any approval status
        window_start: Inclusive lower date bound
        window_end: Inclusive upper date bound

    Returns:
        Approved movements sorted by the ledger total order

    Raises:
        InvalidMovementData: a row has an unparsable date or quantity
    """
    movements = [receipt_to_movement(r) for r in receipts if is_approved(r.approval_status)]
    movements.extend(issue_to_movement(i) for i in issues if is_approved(i.approval_status))

    if window_start is not None:
        movements = [m for m in movements if m.date >= window_start]
    if window_end is not None:
        movements = [m for m in movements if m.date <= window_end]

    movements.sort(key=movement_sort_key)
    return movements
