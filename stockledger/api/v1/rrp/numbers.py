"""Receiving Report (RRP) numbering API endpoints"""

from fastapi import APIRouter, Depends, HTTPException, status, Query, Body
from fastapi.responses import JSONResponse
from typing import List, Optional
from datetime import date

from stockledger.api import deps
from stockledger.core.exceptions import (
    BusinessLogicError, InvalidStatusTransition, RecordNotFoundError,
    RrpNumberError, ValidationError
)
from stockledger.core.logging import get_logger
from stockledger.schemas.rrp import (
    RrpCreate, RrpRegistrationResponse, RrpRejectionResponse, RrpStatusUpdate,
    RrpRecordResponse, NextRrpNumberResponse, LatestRrpResponse, RrpVerifyResponse
)
from stockledger.services.rrp import RrpItem, RrpNumberingService

router = APIRouter()
logger = get_logger("api")


def _rejection(e: RrpNumberError) -> JSONResponse:
    body = RrpRejectionResponse(reason=e.reason, message=str(e), rrp_number=e.rrp_number)
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=body.model_dump())


def _http_error(e: Exception) -> HTTPException:
    if isinstance(e, RecordNotFoundError):
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))


@router.get("/next-number/{prefix}", response_model=NextRrpNumberResponse)
async def get_next_rrp_number(
    prefix: str,
    service: RrpNumberingService = Depends(deps.get_rrp_service),
):
    """Propose the next free base number for a prefix (L/local or F/foreign)."""
    try:
        number = service.next_rrp_number(prefix)
    except (ValidationError, BusinessLogicError) as e:
        raise _http_error(e)
    return NextRrpNumberResponse(prefix=number[0], next_rrp_number=number)


@router.get("/latest/{prefix}", response_model=LatestRrpResponse)
async def get_latest_rrp(
    prefix: str,
    service: RrpNumberingService = Depends(deps.get_rrp_service),
):
    """Latest non-rejected RRP of a prefix with the next free number."""
    try:
        return LatestRrpResponse(**service.latest_rrp_details(prefix))
    except (ValidationError, BusinessLogicError) as e:
        raise _http_error(e)


@router.get("/verify/{rrp_number}", response_model=RrpVerifyResponse)
async def verify_rrp_number(
    rrp_number: str,
    rrp_date: date = Query(..., description="Date of the receiving report"),
    fiscal_year: Optional[str] = Query(None, description="Fiscal year, defaults to the current one"),
    service: RrpNumberingService = Depends(deps.get_rrp_service),
):
    """
    Check an RRP number before submitting it.

    Runs the format, fiscal year, correction and date checks without writing.
    """
    try:
        fiscal_year = fiscal_year or service.get_current_fiscal_year()
        parsed = service.verify_rrp_number(rrp_number, rrp_date, fiscal_year)
    except RrpNumberError as e:
        return _rejection(e)
    except (ValidationError, BusinessLogicError) as e:
        raise _http_error(e)

    return RrpVerifyResponse(
        rrp_number=parsed.full,
        base_number=parsed.base,
        correction_suffix=parsed.suffix,
        fiscal_year=fiscal_year
    )


@router.post("", response_model=RrpRegistrationResponse, status_code=status.HTTP_201_CREATED,
             responses={409: {"model": RrpRejectionResponse}})
async def register_rrp(
    rrp_in: RrpCreate,
    service: RrpNumberingService = Depends(deps.get_rrp_service),
):
    """
    Register a receiving report number.

    Accepted registrations return 201; rule violations return 409 with the reason.
    """
    items = None
    if rrp_in.items is not None:
        items = [RrpItem(receive_fk=i.receive_fk, total_amount=i.total_amount) for i in rrp_in.items]

    try:
        registration = service.register_rrp(
            rrp_in.rrp_number,
            rrp_in.fiscal_year,
            rrp_in.rrp_date,
            items=items,
            created_by=rrp_in.created_by
        )
    except RrpNumberError as e:
        return _rejection(e)
    except (ValidationError, BusinessLogicError, RecordNotFoundError) as e:
        raise _http_error(e)

    return RrpRegistrationResponse.model_validate(registration)


@router.post("/{rrp_number}/approve", response_model=List[RrpRecordResponse])
async def approve_rrp(
    rrp_number: str,
    update: Optional[RrpStatusUpdate] = Body(None),
    fiscal_year: Optional[str] = Query(None, description="Fiscal year, defaults to the current one"),
    service: RrpNumberingService = Depends(deps.get_rrp_service),
):
    """Approve a pending RRP."""
    try:
        update = update or RrpStatusUpdate()
        rows = service.approve_rrp(rrp_number, approved_by=update.user, fiscal_year=fiscal_year)
    except InvalidStatusTransition as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except (ValidationError, BusinessLogicError, RecordNotFoundError) as e:
        raise _http_error(e)
    return [RrpRecordResponse.model_validate(r) for r in rows]


@router.post("/{rrp_number}/reject", response_model=List[RrpRecordResponse])
async def reject_rrp(
    rrp_number: str,
    update: Optional[RrpStatusUpdate] = Body(None),
    fiscal_year: Optional[str] = Query(None, description="Fiscal year, defaults to the current one"),
    service: RrpNumberingService = Depends(deps.get_rrp_service),
):
    """
    Reject a pending or approved RRP.

    Its receipts are unlinked and drop out of ledger amounts.
    """
    try:
        update = update or RrpStatusUpdate()
        rows = service.reject_rrp(rrp_number, rejected_by=update.user, reason=update.reason,
                                  fiscal_year=fiscal_year)
    except InvalidStatusTransition as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    except (ValidationError, BusinessLogicError, RecordNotFoundError) as e:
        raise _http_error(e)
    logger.info(f"RRP {rrp_number} rejected via API")
    return [RrpRecordResponse.model_validate(r) for r in rows]
