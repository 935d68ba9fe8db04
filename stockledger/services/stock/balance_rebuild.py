"""
Stock Ledger Rebuild Jobs
Batch repair of the derived remaining_balance and FIFO cost fields
"""
from abc import ABC, abstractmethod
from decimal import Decimal
from typing import Dict, Optional
import threading

from stockledger.core.exceptions import RecordNotFoundError, StockLedgerException
from stockledger.core.logging import get_logger
from .issue_costing import cost_inventory
from .ledger_replay import replay_ledger
from .ledger_types import RebuildSummary, StockItemBaseline, ZERO
from .movement_normalizer import normalize_movements

logger = get_logger("ledger")


class _SkuBatchJob(ABC):
    """
    Runs rebuild_item over every SKU of the store

    Data errors of one SKU are logged and counted and the job moves on.
    Database errors propagate so the caller can roll the batch back.
    """
    job_name = "rebuild"

    def __init__(self, store, cancel_event: Optional[threading.Event] = None):
        self.store = store
        self.cancel_event = cancel_event

    @abstractmethod
    def rebuild_item(self, nac_code: str) -> int:
        """Rebuild one SKU and return the number of issue rows written"""
        pass

    def _load_baseline(self, nac_code: str) -> StockItemBaseline:
        baseline = self.store.get_baseline(nac_code)
        if baseline is None:
            raise RecordNotFoundError(f"Stock item {nac_code} not found")
        return baseline

    def run(self) -> RebuildSummary:
        summary = RebuildSummary()
        codes = self.store.list_item_codes()
        logger.info(f"Starting {self.job_name} for {len(codes)} NAC codes")

        for nac_code in codes:
            if self.cancel_event is not None and self.cancel_event.is_set():
                summary.cancelled = True
                logger.warning(f"{self.job_name} cancelled after {summary.processed_count} NAC codes")
                break

            try:
                summary.fixed_count += self.rebuild_item(nac_code)
            except StockLedgerException as e:
                logger.error(f"{self.job_name} failed for NAC {nac_code}: {e}")
                summary.record_error(nac_code, e)
            summary.processed_count += 1

        logger.info(
            f"{self.job_name} completed: {summary.fixed_count} issues updated, "
            f"{summary.error_count} errors"
        )
        return summary


class RemainingBalanceRebuilder(_SkuBatchJob):
    """
    Replays every SKU from its own baseline and writes each issue's
    post-movement balance to remaining_balance

    No window and no consumable aggregation: every issue keeps its own
    balance. Re-running gives the same values.
    """
    job_name = "Remaining balance rebuild"

    def compute_balances(self, nac_code: str):
        """Issue id to floored post-movement balance, plus the closing balance"""
        baseline = self._load_baseline(nac_code)
        movements = normalize_movements(
            self.store.get_receive_events(nac_code),
            self.store.get_issue_events(nac_code)
        )
        ledger = replay_ledger(baseline.open_quantity, baseline.open_amount, movements, nac_code=nac_code)

        balances: Dict[int, Decimal] = {}
        for entry in ledger.entries:
            if not entry.movement.is_receipt:
                balances[entry.movement.id] = max(entry.balance_quantity, ZERO)
        return balances, ledger.closing_quantity

    def rebuild_item(self, nac_code: str) -> int:
        """Rebuild one SKU, e.g. after one of its issues was edited"""
        balances, closing = self.compute_balances(nac_code)
        return self.store.write_remaining_balances(nac_code, balances, closing)

    def rebuild_remaining_balances(self) -> RebuildSummary:
        return self.run()


class InventoryStateRebuilder(_SkuBatchJob):
    """Recomputes FIFO issue costs and lot remainders for every SKU"""
    job_name = "Inventory state rebuild"

    def rebuild_item(self, nac_code: str) -> int:
        baseline = self._load_baseline(nac_code)
        state = cost_inventory(
            baseline,
            self.store.get_receive_events(nac_code),
            self.store.get_issue_events(nac_code)
        )
        return self.store.write_inventory_state(state)

    def rebuild_all(self) -> RebuildSummary:
        return self.run()
