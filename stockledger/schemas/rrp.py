"""Receiving Report (RRP) Schemas"""

from pydantic import BaseModel, Field, field_validator, ConfigDict
from typing import Optional, List
from datetime import date
from decimal import Decimal


class RrpItemIn(BaseModel):
    receive_fk: int
    total_amount: Decimal = Field(default=Decimal("0"), ge=0)


class RrpCreate(BaseModel):
    rrp_number: str = Field(..., min_length=4, max_length=20)
    rrp_date: date
    fiscal_year: Optional[str] = Field(None, max_length=10)
    items: Optional[List[RrpItemIn]] = None
    created_by: Optional[str] = Field(None, max_length=50)

    @field_validator("rrp_number")
    @classmethod
    def strip_number(cls, v: str) -> str:
        return v.strip().upper()


class RrpRegistrationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    status: str = "ACCEPTED"
    rrp_number: str
    fiscal_year: str
    rrp_date: date
    record_ids: List[int]
    replaced_ids: List[int] = Field(default_factory=list)
    relinked_receive_ids: List[int] = Field(default_factory=list)


class RrpRejectionResponse(BaseModel):
    status: str = "REJECTED"
    reason: str
    message: str
    rrp_number: Optional[str] = None


class RrpStatusUpdate(BaseModel):
    user: Optional[str] = Field(None, max_length=50)
    reason: Optional[str] = None


class RrpRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    rrp_number: str
    fiscal_year: str
    rrp_date: date
    approval_status: str
    receive_fk: Optional[int] = None
    total_amount: Decimal
    approved_by: Optional[str] = None
    rejected_by: Optional[str] = None
    rejection_reason: Optional[str] = None


class NextRrpNumberResponse(BaseModel):
    prefix: str
    next_rrp_number: str


class LatestRrpResponse(BaseModel):
    prefix: str
    rrp_number: Optional[str] = None
    rrp_date: Optional[date] = None
    fiscal_year: Optional[str] = None
    next_rrp_number: str


class RrpVerifyResponse(BaseModel):
    rrp_number: str
    base_number: str
    correction_suffix: Optional[int] = None
    fiscal_year: str
    valid: bool = True
