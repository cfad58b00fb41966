"""Fee invoice: amount owed by a student for one fee structure. Status is derived, never set freely."""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, Numeric, String, Text, Uuid
from sqlalchemy.orm import relationship

from app.core.enums import FeeInvoiceStatus
from app.db.session import Base


class FeeInvoice(Base):
    """
    One student's bill for a fee structure.
    status is written only from derive_invoice_status (WAIVED excepted).
    version_id guards concurrent postings: a stale write fails on flush.
    """

    __tablename__ = "fee_invoices"
    __table_args__ = (
        CheckConstraint(
            "status IN ('PENDING','PARTIAL','PAID','OVERDUE','WAIVED')",
            name="chk_fee_invoice_status",
        ),
        CheckConstraint(
            "total_amount >= 0 AND discount_amount >= 0 AND penalty_amount >= 0 AND amount_paid >= 0",
            name="chk_fee_invoice_non_negative",
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    student_id = Column(Uuid(as_uuid=True), nullable=False, index=True)
    fee_structure_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("fee_structures.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    semester_number = Column(Integer, nullable=True)
    issue_date = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    due_date = Column(DateTime(timezone=True), nullable=False)

    total_amount = Column(Numeric(12, 2), nullable=False)
    discount_amount = Column(Numeric(12, 2), nullable=False, default=0)
    penalty_amount = Column(Numeric(12, 2), nullable=False, default=0)
    amount_paid = Column(Numeric(12, 2), nullable=False, default=0)
    status = Column(String(20), nullable=False, default=FeeInvoiceStatus.PENDING.value, index=True)
    notes = Column(Text, nullable=True)

    version_id = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    fee_structure = relationship("FeeStructure")

    __mapper_args__ = {"version_id_col": version_id}
