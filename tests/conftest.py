"""
Test Configuration and Fixtures
Shared testing infrastructure for the stock ledger
"""

import pytest
from datetime import date
from decimal import Decimal
from typing import Generator, Optional
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from stockledger.main import app
from stockledger.api import deps
from stockledger.core.database import Base
from stockledger.models.stock import (
    StockDetailRec, ReceiveDetailRec, IssueDetailRec, PurchaseTransactionRec
)
from stockledger.models.rrp import RrpDetailRec, AppConfigRec

# In-memory SQLite shared by every connection of the test run
TEST_DATABASE_URL = "sqlite://"

engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

TEST_FISCAL_YEAR = "2082/83"


@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """Create a fresh database session for each test"""
    Base.metadata.create_all(bind=engine)

    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """Create a test client with database dependency override"""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[deps.get_db] = override_get_db
    # Not used as a context manager: the lifespan would touch the configured database
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def fiscal_year(db_session: Session) -> str:
    """Current fiscal year row in app_config"""
    db_session.add(AppConfigRec(config_type='rrp', config_name='current_fy', config_value=TEST_FISCAL_YEAR))
    db_session.commit()
    return TEST_FISCAL_YEAR


class LedgerDataBuilder:
    """Helper for writing stock items and events"""

    def __init__(self, db: Session):
        self.db = db

    def stock(self, nac_code: str = "GT 10001", open_quantity="0", open_amount="0",
              applicable_equipments: str = "9N-ABC", item_name: str = "Test item") -> StockDetailRec:
        stock = StockDetailRec(
            nac_code=nac_code,
            item_name=item_name,
            part_numbers="PN-1",
            applicable_equipments=applicable_equipments,
            location="A1",
            card_number="C-1",
            open_quantity=Decimal(str(open_quantity)),
            open_amount=Decimal(str(open_amount)),
        )
        self.db.add(stock)
        self.db.commit()
        return stock

    def receive(self, nac_code: str, receive_date: date, quantity, amount=None,
                status: str = "APPROVED", rrp_number: str = "L001") -> ReceiveDetailRec:
        """Receive event, priced through an approved RRP row when amount is given"""
        receive = ReceiveDetailRec(
            nac_code=nac_code,
            receive_date=receive_date,
            received_quantity=Decimal(str(quantity)),
            approval_status=status,
            receive_number=f"R-{nac_code}-{receive_date.isoformat()}",
        )
        self.db.add(receive)
        self.db.flush()

        if amount is not None:
            rrp = RrpDetailRec(
                rrp_number=rrp_number,
                base_number=rrp_number[:4],
                fiscal_year=TEST_FISCAL_YEAR,
                rrp_date=receive_date,
                approval_status="APPROVED",
                receive_fk=receive.id,
                total_amount=Decimal(str(amount)),
            )
            self.db.add(rrp)
            self.db.flush()
            receive.rrp_fk = rrp.id

        self.db.commit()
        return receive

    def issue(self, nac_code: str, issue_date: date, quantity, cost="0", status: str = "APPROVED",
              issued_for: str = "9N-ABC", slip: Optional[str] = None,
              issued_by: Optional[str] = None) -> IssueDetailRec:
        issue = IssueDetailRec(
            nac_code=nac_code,
            issue_date=issue_date,
            issue_quantity=Decimal(str(quantity)),
            issue_cost=Decimal(str(cost)),
            issued_for=issued_for,
            issue_slip_number=slip or "",
            issued_by=issued_by,
            approval_status=status,
        )
        self.db.add(issue)
        self.db.commit()
        return issue

    def purchase_transaction(self, transaction_date: date, quantity, status: str = "confirmed",
                             transaction_type: str = "purchase") -> PurchaseTransactionRec:
        txn = PurchaseTransactionRec(
            transaction_type=transaction_type,
            transaction_status=status,
            transaction_quantity=Decimal(str(quantity)),
            transaction_date=transaction_date,
        )
        self.db.add(txn)
        self.db.commit()
        return txn


@pytest.fixture
def builder(db_session: Session) -> LedgerDataBuilder:
    return LedgerDataBuilder(db_session)
