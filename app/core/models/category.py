"""Category: plain-language income/expense label attached to every ledger transaction."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, String, Uuid

from app.core.enums import CategoryType
from app.db.session import Base


class Category(Base):
    __tablename__ = "categories"
    __table_args__ = (
        CheckConstraint("type IN ('INCOME','EXPENSE')", name="chk_category_type"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(100), nullable=False, unique=True)
    type = Column(String(10), nullable=False, default=CategoryType.INCOME.value)
    is_active = Column(Boolean, nullable=False, default=True)
    description = Column(String(300), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
