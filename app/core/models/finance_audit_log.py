"""Finance audit log: append-only trail of money-moving actions."""

import uuid
from datetime import datetime

from sqlalchemy import JSON, Column, DateTime, String, Uuid

from app.db.session import Base


class FinanceAuditLog(Base):
    __tablename__ = "finance_audit_logs"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    action = Column(String(50), nullable=False, index=True)  # PAYMENT_RECEIVED, ...
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    performed_by = Column(Uuid(as_uuid=True), nullable=True)
    performed_by_email = Column(String(255), nullable=True)
    new_state = Column(JSON, nullable=True)
    performed_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
