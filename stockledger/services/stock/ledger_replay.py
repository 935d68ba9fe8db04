"""
Ledger Replayer
Walks movements in ledger order and records the running balance after each
"""
from decimal import Decimal
from datetime import date
from dataclasses import replace
from typing import Dict, List, Optional, Sequence

from stockledger.core.exceptions import UnresolvedDeferral
from stockledger.core.logging import get_logger
from .deferred_issues import new_deferred_queue, resolve_issue, retire_deferrals
from .ledger_types import (
    DeferredIssue, LedgerEntry, LedgerResult, Movement, OpeningBalance, ZERO
)
from .movement_normalizer import movement_sort_key

logger = get_logger("ledger")

OPENING_REF = "OPENING"


def aggregate_consumable_issues(movements: Sequence[Movement]) -> List[Movement]:
    """
    Collapse same-day issues into one movement

    Quantities and amounts are summed, the earliest non-empty reference is
    kept and the aggregate takes the lowest member id. Receipts pass through.
    """
    receipts = [m for m in movements if m.is_receipt]
    by_date: Dict[date, List[Movement]] = {}
    for movement in sorted((m for m in movements if not m.is_receipt), key=movement_sort_key):
        by_date.setdefault(movement.date, []).append(movement)

    aggregated = []
    for members in by_date.values():
        first = members[0]
        if len(members) == 1:
            aggregated.append(first)
            continue
        aggregated.append(replace(
            first,
            quantity=sum((m.quantity for m in members), ZERO),
            amount=sum((m.amount for m in members), ZERO),
            ref=next((m.ref for m in members if m.ref), ''),
            equipment_ref=next((m.equipment_ref for m in members if m.equipment_ref), None),
            source_ids=tuple(i for m in members for i in m.source_ids),
        ))

    return sorted(receipts + aggregated, key=movement_sort_key)


def replay_ledger(
    opening_quantity: Decimal,
    opening_amount: Decimal,
    movements: Sequence[Movement],
    nac_code: Optional[str] = None,
    as_of: Optional[date] = None
) -> LedgerResult:
    """
    Replay ordered movements from a starting balance

    Receipts add to the balance and then retire queued shortfalls oldest
    first. Issues go through the deferred issue resolver, so the running
    quantity never drops below zero. Shortfalls still queued at the end are
    returned and reported as UnresolvedDeferral warnings. A negative opening
    quantity is reported as zero with the deficit queued as an OPENING
    deferral.

    Args:
        opening_quantity: Quantity on hand before the first movement
        opening_amount: Amount on hand before the first movement
        movements: Movements already in ledger order
        nac_code: SKU code, used in warnings and logs
        as_of: Date of the opening balance

    Returns:
        LedgerResult with one entry per movement
    """
    queue = new_deferred_queue()
    quantity = opening_quantity
    amount = opening_amount

    if quantity < 0:
        # Opening already short: carry the deficit as the first deferral
        queue.append(DeferredIssue(
            issue_id=0,
            date=as_of or (movements[0].date if movements else date.min),
            quantity_owed=-quantity,
            original_issue_ref=OPENING_REF,
        ))
        quantity = ZERO

    result = LedgerResult(
        nac_code=nac_code,
        opening=OpeningBalance(quantity=quantity, amount=opening_amount, as_of=as_of),
    )

    for movement in movements:
        if movement.is_receipt:
            quantity += movement.quantity
            amount += movement.amount
            quantity, amount, retired = retire_deferrals(quantity, amount, queue)
            entry = LedgerEntry(movement, quantity, amount, retired_quantity=retired)
        else:
            quantity, amount, deferred = resolve_issue(quantity, amount, movement, queue)
            entry = LedgerEntry(movement, quantity, amount, deferred_quantity=deferred)
        result.entries.append(entry)

    result.unresolved_deferrals = list(queue)
    for deferral in queue:
        warning = UnresolvedDeferral(nac_code, deferral.quantity_owed, deferral.original_issue_ref)
        result.warnings.append(warning)
        logger.warning(str(warning))

    return result
