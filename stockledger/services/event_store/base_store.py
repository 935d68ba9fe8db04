"""
Ledger Event Store
Abstract data source for the ledger engine
"""
from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional

from stockledger.services.stock.ledger_types import IssueEvent, ReceiveEvent, StockItemBaseline


class LedgerEventStore(ABC):
    """
    Supplies baselines and approved events per SKU and stores the derived
    balance/cost fields

    The engine never opens transactions itself; commit and rollback are left
    to whoever owns the store.
    """

    @abstractmethod
    def list_item_codes(self) -> List[str]:
        """All SKU codes, sorted ascending"""
        pass

    @abstractmethod
    def get_baseline(self, nac_code: str) -> Optional[StockItemBaseline]:
        """Baseline of one SKU, None when the SKU does not exist"""
        pass

    @abstractmethod
    def get_receive_events(self, nac_code: str, end: Optional[date] = None) -> List[ReceiveEvent]:
        """Approved receive events, optionally only those dated on or before end"""
        pass

    @abstractmethod
    def get_bulk_purchase_events(self, end: Optional[date] = None) -> List[ReceiveEvent]:
        """Confirmed bulk purchase transactions as zero-amount receipts"""
        pass

    @abstractmethod
    def get_issue_events(self, nac_code: str, end: Optional[date] = None) -> List[IssueEvent]:
        """Approved issue events, optionally only those dated on or before end"""
        pass

    @abstractmethod
    def write_remaining_balances(self, nac_code: str, balances: Dict[int, Decimal],
                                 current_balance: Decimal) -> int:
        """Store remaining_balance per issue id and the SKU's current balance"""
        pass

    @abstractmethod
    def write_inventory_state(self, state) -> int:
        """Store FIFO issue costs, lot remainders and balances of one SKU"""
        pass

    def commit(self):
        pass

    def rollback(self):
        pass
