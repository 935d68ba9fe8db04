"""
Stock Ledger Stock Models
SQLAlchemy models for stock items and their receive/issue events
"""
from sqlalchemy import (
    Column, String, Integer, Numeric, Date, DateTime, Text,
    ForeignKey, CheckConstraint, Index
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from stockledger.core.database import Base


class StockDetailRec(Base):
    """
    Stock Detail Record - SKU master

    One row per NAC code. The baseline open_quantity/open_amount is anchored
    at the ledger epoch date; everything after it is derived from approved
    receive and issue events.
    """
    __tablename__ = "stock_details"

    id = Column(Integer, primary_key=True, autoincrement=True, doc="Stock item ID")
    nac_code = Column(String(30), unique=True, nullable=False, doc="SKU code (NAC code)")

    # Item Identity Information
    item_name = Column(String(255), nullable=False, default='', doc="Display name")
    part_numbers = Column(Text, default='', doc="Comma separated part numbers")
    applicable_equipments = Column(Text, default='', doc="Comma separated equipment tags")
    location = Column(String(100), default='', doc="Physical location")
    card_number = Column(String(50), default='', doc="Stock card number")
    unit = Column(String(20), default='', doc="Unit of issue")

    # Baseline at epoch
    open_quantity = Column(Numeric(15, 3), default=0, nullable=False, doc="Opening quantity at epoch")
    open_amount = Column(Numeric(15, 2), default=0, nullable=False, doc="Opening amount at epoch")

    # Derived caches
    open_remaining_quantity = Column(Numeric(15, 3), nullable=True, doc="Opening lot left after FIFO costing")
    current_balance = Column(Numeric(15, 3), default=0, doc="Cached balance after the last movement")

    # Audit Trail
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp())
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp())

    __table_args__ = (
        Index('idx_stock_item_name', 'item_name'),
    )

    @property
    def part_number_list(self):
        return [p.strip() for p in (self.part_numbers or '').split(',') if p.strip()]

    @property
    def equipment_list(self):
        return [e.strip() for e in (self.applicable_equipments or '').split(',') if e.strip()]


class ReceiveDetailRec(Base):
    """Receive Detail Record - goods received via purchase, tender or borrowing"""
    __tablename__ = "receive_details"

    id = Column(Integer, primary_key=True, autoincrement=True, doc="Monotonic receive ID")
    nac_code = Column(String(30), nullable=False, doc="SKU code")
    receive_number = Column(String(50), default='', doc="Receive reference")
    receive_date = Column(Date, nullable=False, doc="Receive date")
    received_quantity = Column(Numeric(15, 3), nullable=False, default=0, doc="Quantity received")
    receive_source = Column(String(20), default='purchase', doc="purchase, tender or borrow")
    unit = Column(String(20), default='', doc="Unit")
    approval_status = Column(String(10), nullable=False, default='PENDING', doc="Approval status")

    # Pricing link (cleared when the receiving report is rejected)
    rrp_fk = Column(Integer, ForeignKey("rrp_details.id", use_alter=True, name="fk_receive_rrp"), nullable=True)

    # Derived by FIFO costing
    remaining_quantity = Column(Numeric(15, 3), nullable=True, doc="Lot quantity not yet issued")

    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp())

    rrp = relationship("RrpDetailRec", foreign_keys=[rrp_fk])

    __table_args__ = (
        CheckConstraint("approval_status IN ('PENDING', 'APPROVED', 'REJECTED')", name='valid_receive_status'),
        Index('idx_receive_nac_date', 'nac_code', 'receive_date'),
    )


class IssueDetailRec(Base):
    """Issue Detail Record - consumption of a SKU by equipment or flight"""
    __tablename__ = "issue_details"

    id = Column(Integer, primary_key=True, autoincrement=True, doc="Monotonic issue ID")
    nac_code = Column(String(30), nullable=False, doc="SKU code")
    issue_slip_number = Column(String(50), default='', doc="Issue slip reference")
    issue_date = Column(Date, nullable=False, doc="Issue date")
    issue_quantity = Column(Numeric(15, 3), nullable=False, default=0, doc="Quantity issued")
    issue_cost = Column(Numeric(15, 4), nullable=False, default=0, doc="Issue cost")
    issued_for = Column(String(100), default='', doc="Equipment or flight reference")
    issued_by = Column(Text, nullable=True, doc="Issuer identity (JSON)")
    approval_status = Column(String(10), nullable=False, default='PENDING', doc="Approval status")

    # Derived by the ledger rebuild, never user editable
    remaining_balance = Column(Numeric(15, 3), nullable=False, default=0, doc="Balance after this issue")

    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp())

    __table_args__ = (
        CheckConstraint("approval_status IN ('PENDING', 'APPROVED', 'REJECTED')", name='valid_issue_status'),
        Index('idx_issue_nac_date', 'nac_code', 'issue_date'),
    )


class PurchaseTransactionRec(Base):
    """
    Purchase Transaction Record

    Bulk purchase transactions; confirmed purchases are the receipts of the
    zero-cost bulk SKU.
    """
    __tablename__ = "transaction_details"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transaction_type = Column(String(20), nullable=False, default='purchase', doc="purchase or consumption")
    transaction_status = Column(String(20), nullable=False, default='pending', doc="pending or confirmed")
    transaction_quantity = Column(Numeric(15, 3), nullable=False, default=0)
    transaction_date = Column(Date, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp())

    __table_args__ = (
        Index('idx_transaction_type_date', 'transaction_type', 'transaction_date'),
    )
