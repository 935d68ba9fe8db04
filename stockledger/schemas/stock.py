"""Stock Ledger Schemas"""

from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, List
from datetime import date
from decimal import Decimal
from enum import Enum


class MovementKindName(str, Enum):
    RECEIPT = "RECEIPT"
    ISSUE = "ISSUE"


class OpeningBalanceResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    nac_code: str
    quantity: Decimal
    amount: Decimal
    as_of: Optional[date] = None


class LedgerEntryResponse(BaseModel):
    date: date
    id: int
    kind: MovementKindName
    quantity: Decimal
    amount: Decimal
    ref: str = ""
    equipment_ref: Optional[str] = None
    source_ids: List[int] = Field(default_factory=list)
    balance_quantity: Decimal
    balance_amount: Decimal
    deferred_quantity: Decimal = Decimal("0")
    retired_quantity: Decimal = Decimal("0")


class DeferredIssueResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    issue_id: int
    date: date
    quantity_owed: Decimal
    amount_owed: Decimal
    original_issue_ref: str = ""
    equipment_ref: Optional[str] = None


class LedgerResponse(BaseModel):
    nac_code: str
    item_name: str = ""
    from_date: Optional[date] = None
    to_date: Optional[date] = None
    opening_balance: OpeningBalanceResponse
    movements: List[LedgerEntryResponse]
    closing_quantity: Decimal
    closing_amount: Decimal
    unresolved_deferrals: List[DeferredIssueResponse] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


class RebuildSummaryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    message: str = ""
    fixed_count: int
    error_count: int
    errors: List[str] = Field(default_factory=list)
    processed_count: int = 0
    cancelled: bool = False
