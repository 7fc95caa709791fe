"""
SQLAlchemy ORM models.

``RemoteBase`` holds the row-oriented remote store tables shared by every
device. ``CacheBase`` holds the device-local key/value cache.
"""

from datetime import datetime

from sqlalchemy import (
    Column,
    String,
    Integer,
    Numeric,
    Date,
    DateTime,
    JSON,
    Text,
    Enum as SQLEnum,
)
from sqlalchemy.orm import declarative_base

from app.schemas import LoanStatus, UserRole

RemoteBase = declarative_base()
CacheBase = declarative_base()


class AuditMixin:
    """Mixin for audit fields on remote rows."""

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )


class UserRecord(AuditMixin, RemoteBase):
    """User account row, keyed by name."""

    __tablename__ = "users"

    name = Column(String(100), primary_key=True)
    phone = Column(String(30), nullable=False, default="")
    # Stored in cleartext; the admin panel displays it
    pin = Column(String(4), nullable=False)
    role = Column(SQLEnum(UserRole), default=UserRole.user, nullable=False)
    position = Column(Integer, nullable=False, default=0)


class LoanRecord(AuditMixin, RemoteBase):
    """Loan account row, keyed by the stable loan id."""

    __tablename__ = "loans"

    id = Column(String, primary_key=True)
    loan_id = Column(String(32), nullable=False, index=True)
    user_name = Column(String(100), nullable=False, index=True)

    principal_amount = Column(Numeric(14, 2), nullable=False)
    total_payable = Column(Numeric(14, 2), nullable=False)
    interest_rate = Column(Numeric(8, 6), nullable=False)
    total_interest = Column(Numeric(14, 2), nullable=False)

    start_date = Column(Date, nullable=False)
    next_due_date = Column(Date, nullable=False)
    total_installments = Column(Integer, nullable=False)
    paid_installments = Column(Integer, nullable=False, default=0)
    status = Column(SQLEnum(LoanStatus), default=LoanStatus.active, nullable=False)

    # Index in the newest-first list of the last push
    position = Column(Integer, nullable=False, default=0)

    # Installment list as serialized by the Installment schema
    installments = Column(JSON, nullable=False, default=list)


class CacheEntry(CacheBase):
    """One JSON blob in the device-local cache."""

    __tablename__ = "cache_entries"

    key = Column(String(64), primary_key=True)
    value = Column(Text, nullable=False)
    updated_at = Column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False
    )
