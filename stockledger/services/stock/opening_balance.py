"""
Opening Balance Resolver
Reconstructs the quantity/amount on hand as of a cutoff date
"""
from datetime import date, timedelta
from typing import Iterable, Optional

from stockledger.core.config import settings
from .ledger_types import IssueEvent, OpeningBalance, ReceiveEvent, StockItemBaseline
from .movement_normalizer import normalize_movements


def resolve_opening_balance(
    baseline: StockItemBaseline,
    receipts: Iterable[ReceiveEvent],
    issues: Iterable[IssueEvent],
    cutoff: Optional[date],
    epoch: Optional[date] = None
) -> OpeningBalance:
    """
    Balance as of the start of `cutoff`

    Baseline plus approved receipts dated before the cutoff minus approved
    issues dated before the cutoff. A cutoff on or before the epoch returns
    the raw baseline since the baseline already covers that period.
    """
    epoch = epoch or settings.LEDGER_EPOCH_DATE

    if cutoff is None or cutoff <= epoch:
        return OpeningBalance(
            quantity=baseline.open_quantity,
            amount=baseline.open_amount,
            as_of=epoch,
        )

    quantity = baseline.open_quantity
    amount = baseline.open_amount
    for movement in normalize_movements(receipts, issues, window_end=cutoff - timedelta(days=1)):
        if movement.is_receipt:
            quantity += movement.quantity
            amount += movement.amount
        else:
            quantity -= movement.quantity
            amount -= movement.amount

    return OpeningBalance(quantity=quantity, amount=amount, as_of=cutoff - timedelta(days=1))
