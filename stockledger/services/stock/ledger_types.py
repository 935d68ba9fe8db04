"""
Stock Ledger Value Types
Plain records passed between the event store, the normalizer and the replayer
"""
from decimal import Decimal
from datetime import date
from enum import Enum, IntEnum
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from stockledger.core.config import settings
from stockledger.core.exceptions import UnresolvedDeferral

ZERO = Decimal('0')


class ApprovalStatus(str, Enum):
    """Approval status of receive/issue events and receiving reports"""
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class MovementKind(IntEnum):
    """Movement type; the integer value is the same-day sort rank"""
    RECEIPT = 0
    ISSUE = 1


@dataclass(frozen=True)
class StockItemBaseline:
    """
    SKU baseline at the ledger epoch plus its capability flags

    Capabilities are resolved once when the baseline is built so that no
    caller has to compare SKU codes itself.
    """
    nac_code: str
    open_quantity: Decimal = ZERO
    open_amount: Decimal = ZERO
    item_name: str = ''
    part_numbers: str = ''
    applicable_equipments: str = ''
    location: str = ''
    card_number: str = ''
    is_consumable: bool = False
    is_bulk_zero_cost_item: bool = False
    has_fixed_issue_cost: bool = False

    @classmethod
    def create(cls, nac_code: str, open_quantity: Any = 0, open_amount: Any = 0,
               applicable_equipments: Optional[str] = '', **kwargs) -> "StockItemBaseline":
        """Build a baseline and resolve its capability flags from settings"""
        equipments = applicable_equipments or ''
        return cls(
            nac_code=nac_code,
            open_quantity=Decimal(str(open_quantity or 0)),
            open_amount=Decimal(str(open_amount or 0)),
            applicable_equipments=equipments,
            is_consumable=settings.CONSUMABLE_MARKER.lower() in equipments.lower(),
            is_bulk_zero_cost_item=nac_code in settings.BULK_ZERO_COST_CODES,
            has_fixed_issue_cost=nac_code in settings.FIXED_ISSUE_COST_CODES,
            **kwargs
        )


@dataclass(frozen=True)
class ReceiveEvent:
    """Raw receipt row as supplied by the event store"""
    id: int
    date: Any
    quantity: Any
    amount: Any = ZERO
    ref: str = ''
    approval_status: str = ApprovalStatus.APPROVED.value
    source: str = 'purchase'


@dataclass(frozen=True)
class IssueEvent:
    """Raw issue row as supplied by the event store"""
    id: int
    date: Any
    quantity: Any
    cost: Any = ZERO
    issued_for: str = ''
    issue_slip_number: str = ''
    approval_status: str = ApprovalStatus.APPROVED.value
    issued_by: Any = None


@dataclass(frozen=True)
class Movement:
    """Normalized receipt or issue"""
    date: date
    id: int
    kind: MovementKind
    quantity: Decimal
    amount: Decimal
    ref: str = ''
    equipment_ref: Optional[str] = None
    source_ids: Tuple[int, ...] = ()
    issued_by: Optional[dict] = None

    @property
    def sort_key(self) -> Tuple[date, int, int]:
        return (self.date, int(self.kind), self.id)

    @property
    def is_receipt(self) -> bool:
        return self.kind == MovementKind.RECEIPT


@dataclass
class DeferredIssue:
    """Part of an issue that could not be covered by the stock on hand"""
    issue_id: int
    date: date
    quantity_owed: Decimal
    amount_owed: Decimal = ZERO
    original_issue_ref: str = ''
    equipment_ref: Optional[str] = None


@dataclass(frozen=True)
class OpeningBalance:
    """Quantity and amount on hand as of a cutoff"""
    quantity: Decimal
    amount: Decimal
    as_of: Optional[date] = None


@dataclass(frozen=True)
class LedgerEntry:
    """Movement annotated with the balance right after it was applied"""
    movement: Movement
    balance_quantity: Decimal
    balance_amount: Decimal
    deferred_quantity: Decimal = ZERO
    retired_quantity: Decimal = ZERO


@dataclass
class LedgerResult:
    """Outcome of one ledger replay"""
    nac_code: Optional[str]
    opening: OpeningBalance
    entries: List[LedgerEntry] = field(default_factory=list)
    unresolved_deferrals: List[DeferredIssue] = field(default_factory=list)
    warnings: List[UnresolvedDeferral] = field(default_factory=list)

    @property
    def closing_quantity(self) -> Decimal:
        if self.entries:
            return self.entries[-1].balance_quantity
        return self.opening.quantity

    @property
    def closing_amount(self) -> Decimal:
        if self.entries:
            return self.entries[-1].balance_amount
        return self.opening.amount

    @property
    def has_shortfall(self) -> bool:
        return bool(self.unresolved_deferrals)


@dataclass
class RebuildSummary:
    """Result of a batch rebuild"""
    fixed_count: int = 0
    error_count: int = 0
    errors: List[str] = field(default_factory=list)
    processed_count: int = 0
    cancelled: bool = False

    def record_error(self, nac_code: str, error: Exception):
        self.error_count += 1
        self.errors.append(f"{nac_code}: {error}")
