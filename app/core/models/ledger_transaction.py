"""Ledger transaction: immutable record of money moving into or out of a wallet."""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Numeric, String, Text, Uuid, event
from sqlalchemy.orm import relationship

from app.db.session import Base


class LedgerTransaction(Base):
    """
    Never edited after insert. Corrections are new reversing entries.
    Rows are created only through app.core.wallet_ledger.post_transaction.
    """

    __tablename__ = "ledger_transactions"
    __table_args__ = (
        CheckConstraint("amount > 0", name="chk_ledger_transaction_amount"),
        CheckConstraint("type IN ('IN','OUT')", name="chk_ledger_transaction_type"),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    amount = Column(Numeric(14, 2), nullable=False)
    type = Column(String(3), nullable=False)
    wallet_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("wallets.id", ondelete="RESTRICT"),
        nullable=False,
        index=True,
    )
    category_id = Column(
        Uuid(as_uuid=True),
        ForeignKey("categories.id", ondelete="RESTRICT"),
        nullable=True,
    )
    reference_type = Column(String(30), nullable=True)
    reference_id = Column(Uuid(as_uuid=True), nullable=True, index=True)
    performed_by = Column(Uuid(as_uuid=True), nullable=False, index=True)
    date = Column(DateTime(timezone=True), nullable=False, index=True)
    payment_method = Column(String(20), nullable=True)  # CASH, BANK_TRANSFER, CHEQUE, ONLINE
    payment_reference = Column(String(100), nullable=True)
    receipt_number = Column(String(40), nullable=True, unique=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    wallet = relationship("Wallet")
    category = relationship("Category")


@event.listens_for(LedgerTransaction, "before_update")
def _reject_ledger_update(mapper, connection, target) -> None:
    raise ValueError(f"Ledger transaction {target.id} is immutable")
