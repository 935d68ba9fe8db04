"""
FIFO Issue Costing
Costs approved issues against the opening lot and then receipt lots,
oldest first, and tracks what is left of each lot
"""
from decimal import Decimal, ROUND_HALF_UP
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from stockledger.core.config import settings
from stockledger.core.logging import get_logger
from .ledger_replay import replay_ledger
from .ledger_types import IssueEvent, ReceiveEvent, StockItemBaseline, ZERO
from .movement_normalizer import normalize_movements

logger = get_logger("ledger")


@dataclass
class CostLayer:
    """FIFO cost layer; receive_id is None for the opening lot"""
    receive_id: Optional[int]
    quantity: Decimal
    unit_cost: Decimal
    remaining_quantity: Decimal


@dataclass
class IssueCostUpdate:
    issue_id: int
    issue_cost: Decimal
    remaining_balance: Decimal


@dataclass
class InventoryState:
    """Derived cost/lot state of one SKU"""
    nac_code: str
    issue_updates: List[IssueCostUpdate] = field(default_factory=list)
    receive_remaining: Dict[int, Decimal] = field(default_factory=dict)
    open_remaining_quantity: Decimal = ZERO
    current_balance: Decimal = ZERO
    shortfall_quantity: Decimal = ZERO


def _unit_cost(amount: Decimal, quantity: Decimal) -> Decimal:
    if quantity > 0 and amount > 0:
        return amount / quantity
    return ZERO


def _quantize(value: Decimal, places: int) -> Decimal:
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


def consume_layers(layers: List[CostLayer], quantity: Decimal):
    """
    Take quantity from the layers oldest first

    Returns:
        Tuple of (total_cost, uncovered_quantity)
    """
    remaining_to_issue = quantity
    total_cost = ZERO

    for layer in layers:
        if remaining_to_issue <= 0:
            break
        if layer.remaining_quantity <= 0:
            continue

        qty_from_layer = min(remaining_to_issue, layer.remaining_quantity)
        total_cost += qty_from_layer * layer.unit_cost
        layer.remaining_quantity -= qty_from_layer
        remaining_to_issue -= qty_from_layer

    return total_cost, remaining_to_issue


def cost_inventory(
    baseline: StockItemBaseline,
    receipts: Iterable[ReceiveEvent],
    issues: Iterable[IssueEvent]
) -> InventoryState:
    """
    Rebuild issue costs, lot remainders and balances for one SKU

    Issues are costed in ledger order. The opening lot is consumed first at
    open_amount / open_quantity, then receipt lots at amount / quantity. A
    receipt lot only becomes available once its movement has been reached.
    SKUs with a fixed issue cost keep any positive cost already recorded.
    """
    issues = list(issues)
    movements = normalize_movements(receipts, issues)
    ledger = replay_ledger(baseline.open_quantity, baseline.open_amount, movements, nac_code=baseline.nac_code)
    issue_costs = {i.id: i.cost for i in issues}

    opening = CostLayer(
        receive_id=None,
        quantity=max(baseline.open_quantity, ZERO),
        unit_cost=_unit_cost(baseline.open_amount, baseline.open_quantity),
        remaining_quantity=max(baseline.open_quantity, ZERO),
    )
    layers = [opening]
    state = InventoryState(nac_code=baseline.nac_code, current_balance=ledger.closing_quantity)

    for entry in ledger.entries:
        movement = entry.movement
        if movement.is_receipt:
            layers.append(CostLayer(
                receive_id=movement.id,
                quantity=movement.quantity,
                unit_cost=_unit_cost(movement.amount, movement.quantity),
                remaining_quantity=movement.quantity,
            ))
            continue

        if movement.quantity <= 0:
            cost = movement.amount
        else:
            total_cost, uncovered = consume_layers(layers, movement.quantity)
            if uncovered > 0:
                state.shortfall_quantity += uncovered
                logger.warning(
                    f"{baseline.nac_code}: issue {movement.id} could not be fully allocated ({uncovered} short)"
                )
            existing = Decimal(str(issue_costs.get(movement.id) or 0))
            if baseline.has_fixed_issue_cost and existing > 0:
                cost = existing
            else:
                cost = _quantize(total_cost, settings.COST_DECIMAL_PLACES)

        state.issue_updates.append(IssueCostUpdate(
            issue_id=movement.id,
            issue_cost=cost,
            remaining_balance=max(entry.balance_quantity, ZERO),
        ))

    for layer in layers[1:]:
        state.receive_remaining[layer.receive_id] = max(layer.remaining_quantity, ZERO)
    state.open_remaining_quantity = max(opening.remaining_quantity, ZERO)

    return state
