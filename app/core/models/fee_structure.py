"""Fee structure: billing template with late-fee rules used for penalty accrual."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Integer, Numeric, String, Uuid

from app.db.session import Base


class FeeStructure(Base):
    __tablename__ = "fee_structures"
    __table_args__ = (
        CheckConstraint("late_fee_per_day >= 0", name="chk_fee_structure_late_fee"),
        CheckConstraint("grace_period_days >= 0", name="chk_fee_structure_grace_period"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(150), nullable=False)
    semester_number = Column(Integer, nullable=True)
    total_amount = Column(Numeric(12, 2), nullable=False, default=0)
    late_fee_per_day = Column(Numeric(12, 2), nullable=False, default=0)
    grace_period_days = Column(Integer, nullable=False, default=7)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
