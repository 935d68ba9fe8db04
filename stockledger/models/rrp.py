"""
Stock Ledger Receiving Report Models
SQLAlchemy models for receiving reports (RRP) and application config
"""
from sqlalchemy import (
    Column, String, Integer, Numeric, Date, DateTime, Text,
    ForeignKey, CheckConstraint, Index
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from stockledger.core.database import Base


class RrpDetailRec(Base):
    """
    RRP Detail Record - receiving report / purchase voucher line

    One row per linked receive event. Rows sharing an rrp_number form one
    receiving report; a T<n> suffix marks a correction of the base number.
    """
    __tablename__ = "rrp_details"

    id = Column(Integer, primary_key=True, autoincrement=True)
    rrp_number = Column(String(20), nullable=False, doc="Full number, e.g. L001 or L001T2")
    base_number = Column(String(4), nullable=False, doc="Prefix and three digits, e.g. L001")
    correction_suffix = Column(Integer, nullable=True, doc="n of the T<n> suffix")
    fiscal_year = Column(String(10), nullable=False, doc="Fiscal year tag")
    rrp_date = Column(Date, nullable=False, doc="Receiving report date")
    approval_status = Column(String(10), nullable=False, default='PENDING', doc="Approval status")

    receive_fk = Column(Integer, ForeignKey("receive_details.id"), nullable=True, doc="Linked receive event")
    total_amount = Column(Numeric(15, 2), nullable=False, default=0, doc="Priced total of the line")

    created_by = Column(String(50), default='')
    approved_by = Column(String(50), nullable=True)
    rejected_by = Column(String(50), nullable=True)
    rejection_reason = Column(Text, nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.current_timestamp())

    receive = relationship("ReceiveDetailRec", foreign_keys=[receive_fk])

    __table_args__ = (
        CheckConstraint("approval_status IN ('PENDING', 'APPROVED', 'REJECTED')", name='valid_rrp_status'),
        Index('idx_rrp_number', 'rrp_number'),
        Index('idx_rrp_base_fy', 'base_number', 'fiscal_year'),
    )


class AppConfigRec(Base):
    """Application configuration key/value rows"""
    __tablename__ = "app_config"

    id = Column(Integer, primary_key=True, autoincrement=True)
    config_type = Column(String(30), nullable=False, default='system')
    config_name = Column(String(50), nullable=False)
    config_value = Column(Text, nullable=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.current_timestamp(), onupdate=func.current_timestamp())

    __table_args__ = (
        Index('idx_config_type_name', 'config_type', 'config_name', unique=True),
    )
