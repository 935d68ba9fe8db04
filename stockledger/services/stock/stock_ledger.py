"""
Stock Ledger Service
Opening balances, ledgers and rebuild jobs for one or all SKUs
"""
from datetime import date
from typing import List, Optional
import threading

from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError

from stockledger.core.exceptions import RecordNotFoundError, ValidationError
from stockledger.core.logging import get_logger
from .balance_rebuild import InventoryStateRebuilder, RemainingBalanceRebuilder
from .ledger_replay import aggregate_consumable_issues, replay_ledger
from .ledger_types import LedgerResult, OpeningBalance, RebuildSummary, ReceiveEvent, StockItemBaseline
from .movement_normalizer import normalize_movements
from .opening_balance import resolve_opening_balance

logger = get_logger("ledger")


class StockLedgerService:
    """
    Stock ledger functionality

    Reads through a ledger event store (the SQL store unless one is given)
    and never writes except from the rebuild jobs.
    """

    def __init__(self, db: Optional[Session] = None, store=None):
        if store is None:
            if db is None:
                raise ValueError("StockLedgerService needs a session or an event store")
            # Imported here, the SQL store itself depends on this package
            from stockledger.services.event_store.sql_store import SqlLedgerEventStore
            store = SqlLedgerEventStore(db)
        self.store = store

    def get_baseline(self, nac_code: str) -> StockItemBaseline:
        baseline = self.store.get_baseline(nac_code)
        if baseline is None:
            raise RecordNotFoundError(f"Stock item {nac_code} not found")
        return baseline

    def resolve_opening_balance(self, nac_code: str, cutoff: Optional[date]) -> OpeningBalance:
        """Quantity and amount on hand at the start of cutoff"""
        baseline = self.get_baseline(nac_code)
        return self._opening_balance(baseline, cutoff)

    def build_ledger(
        self,
        nac_code: str,
        window_start: Optional[date] = None,
        window_end: Optional[date] = None
    ) -> LedgerResult:
        """
        Build the ledger of one SKU for an inclusive date window

        The window opens with the balance reconstructed for window_start.
        Consumable SKUs have their same-day issues merged before replay.
        """
        if window_start and window_end and window_start > window_end:
            raise ValidationError("window_start must not be after window_end")

        baseline = self.get_baseline(nac_code)
        opening = self._opening_balance(baseline, window_start)

        movements = normalize_movements(
            self._receipts(baseline, window_end),
            self.store.get_issue_events(nac_code, end=window_end),
            window_start=window_start,
            window_end=window_end
        )
        if baseline.is_consumable:
            movements = aggregate_consumable_issues(movements)

        result = replay_ledger(
            opening.quantity, opening.amount, movements,
            nac_code=nac_code, as_of=opening.as_of
        )
        logger.debug(
            f"Ledger {nac_code} {window_start}..{window_end}: {len(result.entries)} movements, "
            f"{len(result.unresolved_deferrals)} unresolved deferrals"
        )
        return result

    def rebuild_remaining_balances(self, cancel_event: Optional[threading.Event] = None) -> RebuildSummary:
        """Rebuild remaining_balance for every SKU in one transaction"""
        return self._run_in_transaction(RemainingBalanceRebuilder(self.store, cancel_event).rebuild_remaining_balances)

    def rebuild_inventory_state(self, cancel_event: Optional[threading.Event] = None) -> RebuildSummary:
        """Rebuild FIFO issue costs, lot remainders and balances for every SKU"""
        return self._run_in_transaction(InventoryStateRebuilder(self.store, cancel_event).rebuild_all)

    def rebuild_item(self, nac_code: str) -> int:
        """Rebuild the remaining balances of one SKU"""
        return self._run_in_transaction(lambda: RemainingBalanceRebuilder(self.store).rebuild_item(nac_code))

    def _run_in_transaction(self, job):
        try:
            result = job()
            self.store.commit()
            return result
        except SQLAlchemyError as e:
            logger.error(f"Rebuild rolled back: {e}")
            self.store.rollback()
            raise

    def _opening_balance(self, baseline: StockItemBaseline, cutoff: Optional[date]) -> OpeningBalance:
        return resolve_opening_balance(
            baseline,
            self._receipts(baseline, cutoff),
            self.store.get_issue_events(baseline.nac_code, end=cutoff),
            cutoff
        )

    def _receipts(self, baseline: StockItemBaseline, end: Optional[date]) -> List[ReceiveEvent]:
        if baseline.is_bulk_zero_cost_item:
            return self.store.get_bulk_purchase_events(end=end)
        return self.store.get_receive_events(baseline.nac_code, end=end)
