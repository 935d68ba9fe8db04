"""Administrative rebuild endpoints"""

from fastapi import APIRouter, Depends

from stockledger.api import deps
from stockledger.core.logging import get_logger
from stockledger.schemas.stock import RebuildSummaryResponse
from stockledger.services.stock import StockLedgerService

router = APIRouter()
logger = get_logger("api")


@router.post("/rebuild-remaining-balances", response_model=RebuildSummaryResponse)
async def rebuild_remaining_balances(
    service: StockLedgerService = Depends(deps.get_ledger_service),
):
    """
    Recompute remaining_balance on every approved issue.

    Safe to re-run; per-item failures are reported in the summary.
    """
    summary = service.rebuild_remaining_balances()
    logger.info(f"Remaining balance rebuild requested: {summary.fixed_count} fixed, {summary.error_count} errors")
    return RebuildSummaryResponse(
        message=f"Fixed remaining balances for {summary.fixed_count} issue records",
        fixed_count=summary.fixed_count,
        error_count=summary.error_count,
        errors=summary.errors,
        processed_count=summary.processed_count,
        cancelled=summary.cancelled
    )


@router.post("/rebuild-inventory-state", response_model=RebuildSummaryResponse)
async def rebuild_inventory_state(
    service: StockLedgerService = Depends(deps.get_ledger_service),
):
    """Recompute FIFO issue costs, receipt lot remainders and balances."""
    summary = service.rebuild_inventory_state()
    return RebuildSummaryResponse(
        message=f"Rebuilt inventory state for {summary.processed_count} items",
        fixed_count=summary.fixed_count,
        error_count=summary.error_count,
        errors=summary.errors,
        processed_count=summary.processed_count,
        cancelled=summary.cancelled
    )
