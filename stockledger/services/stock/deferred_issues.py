"""
Deferred Issue Resolver
Splits issues that exceed the stock on hand and retires the shortfall
against later receipts, oldest first
"""
from decimal import Decimal, ROUND_HALF_UP
from collections import deque
from typing import Deque, Tuple

from stockledger.core.config import settings
from .ledger_types import DeferredIssue, Movement, ZERO

DeferredQueue = Deque[DeferredIssue]


def new_deferred_queue() -> DeferredQueue:
    return deque()


def _portion(amount: Decimal, part: Decimal, whole: Decimal) -> Decimal:
    """Pro-rata share of amount for part/whole"""
    if whole <= 0 or part >= whole:
        return amount
    exponent = Decimal(1).scaleb(-settings.COST_DECIMAL_PLACES)
    return (amount * part / whole).quantize(exponent, rounding=ROUND_HALF_UP)


def resolve_issue(
    balance_quantity: Decimal,
    balance_amount: Decimal,
    movement: Movement,
    queue: DeferredQueue
) -> Tuple[Decimal, Decimal, Decimal]:
    """
    Apply an issue to the running balance

    Covers as much of the issue as the balance allows and queues the rest.

    Returns:
        Tuple of (balance_quantity, balance_amount, deferred_quantity)
    """
    quantity = movement.quantity
    if balance_quantity >= quantity:
        return balance_quantity - quantity, balance_amount - movement.amount, ZERO

    covered = max(balance_quantity, ZERO)
    owed = quantity - covered
    covered_amount = _portion(movement.amount, covered, quantity)

    queue.append(DeferredIssue(
        issue_id=movement.id,
        date=movement.date,
        quantity_owed=owed,
        amount_owed=movement.amount - covered_amount,
        original_issue_ref=movement.ref,
        equipment_ref=movement.equipment_ref,
    ))
    return ZERO, balance_amount - covered_amount, owed


def retire_deferrals(
    balance_quantity: Decimal,
    balance_amount: Decimal,
    queue: DeferredQueue
) -> Tuple[Decimal, Decimal, Decimal]:
    """
    Retire queued shortfalls against the current balance, oldest first

    Returns:
        Tuple of (balance_quantity, balance_amount, retired_quantity)
    """
    retired = ZERO
    while queue and balance_quantity > 0:
        deferral = queue[0]
        take = min(balance_quantity, deferral.quantity_owed)
        take_amount = _portion(deferral.amount_owed, take, deferral.quantity_owed)

        balance_quantity -= take
        balance_amount -= take_amount
        retired += take

        deferral.quantity_owed -= take
        deferral.amount_owed -= take_amount
        if deferral.quantity_owed <= 0:
            queue.popleft()

    return balance_quantity, balance_amount, retired
