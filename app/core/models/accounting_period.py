"""Accounting period: month-level lock. No postings may land in a LOCKED month."""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, Integer, String, Text, UniqueConstraint, Uuid

from app.core.enums import AccountingPeriodStatus
from app.db.session import Base


class AccountingPeriod(Base):
    __tablename__ = "accounting_periods"
    __table_args__ = (
        UniqueConstraint("month", "year", name="uq_accounting_period_month_year"),
        CheckConstraint("month BETWEEN 1 AND 12", name="chk_accounting_period_month"),
        CheckConstraint("status IN ('OPEN','LOCKED')", name="chk_accounting_period_status"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    month = Column(Integer, nullable=False)
    year = Column(Integer, nullable=False)
    status = Column(String(10), nullable=False, default=AccountingPeriodStatus.OPEN.value)
    locked_by = Column(Uuid(as_uuid=True), nullable=True)
    locked_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
