"""Stock Ledger API endpoints"""

from fastapi import APIRouter, Depends, HTTPException, status, Query
from typing import Optional
from datetime import date

from stockledger.api import deps
from stockledger.core.exceptions import RecordNotFoundError, ValidationError
from stockledger.schemas.stock import (
    OpeningBalanceResponse, LedgerResponse, LedgerEntryResponse, DeferredIssueResponse
)
from stockledger.services.stock import StockLedgerService

router = APIRouter()


@router.get("/{nac_code}/opening-balance", response_model=OpeningBalanceResponse)
async def get_opening_balance(
    nac_code: str,
    cutoff: Optional[date] = Query(None, description="Balance at the start of this date"),
    service: StockLedgerService = Depends(deps.get_ledger_service),
):
    """
    Get the opening balance of a stock item.

    Baseline plus approved receipts minus approved issues dated before the cutoff.
    """
    try:
        opening = service.resolve_opening_balance(nac_code, cutoff)
    except RecordNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))

    return OpeningBalanceResponse(
        nac_code=nac_code,
        quantity=opening.quantity,
        amount=opening.amount,
        as_of=opening.as_of
    )


@router.get("/{nac_code}/ledger", response_model=LedgerResponse)
async def get_ledger(
    nac_code: str,
    from_date: Optional[date] = Query(None, description="First date of the ledger (inclusive)"),
    to_date: Optional[date] = Query(None, description="Last date of the ledger (inclusive)"),
    service: StockLedgerService = Depends(deps.get_ledger_service),
):
    """
    Build the stock ledger of an item.

    Every movement carries the running balance after it. Shortfalls that no
    later receipt covered are listed under unresolved_deferrals.
    """
    try:
        baseline = service.get_baseline(nac_code)
        ledger = service.build_ledger(nac_code, from_date, to_date)
    except RecordNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))

    movements = [
        LedgerEntryResponse(
            date=entry.movement.date,
            id=entry.movement.id,
            kind=entry.movement.kind.name,
            quantity=entry.movement.quantity,
            amount=entry.movement.amount,
            ref=entry.movement.ref,
            equipment_ref=entry.movement.equipment_ref,
            source_ids=list(entry.movement.source_ids),
            balance_quantity=entry.balance_quantity,
            balance_amount=entry.balance_amount,
            deferred_quantity=entry.deferred_quantity,
            retired_quantity=entry.retired_quantity,
        )
        for entry in ledger.entries
    ]

    return LedgerResponse(
        nac_code=nac_code,
        item_name=baseline.item_name,
        from_date=from_date,
        to_date=to_date,
        opening_balance=OpeningBalanceResponse(
            nac_code=nac_code,
            quantity=ledger.opening.quantity,
            amount=ledger.opening.amount,
            as_of=ledger.opening.as_of
        ),
        movements=movements,
        closing_quantity=ledger.closing_quantity,
        closing_amount=ledger.closing_amount,
        unresolved_deferrals=[DeferredIssueResponse.model_validate(d) for d in ledger.unresolved_deferrals],
        warnings=[str(w) for w in ledger.warnings]
    )
