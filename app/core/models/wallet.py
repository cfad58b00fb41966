"""Wallet: a cash/bank pool whose balance moves only through ledger transactions."""

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Numeric, String, Uuid, event, inspect
from sqlalchemy.ext.hybrid import hybrid_property

from app.core.enums import WalletType
from app.db.session import Base


class Wallet(Base):
    """
    current_balance is read-only on instances, and flushing a change to the
    underlying column raises. The only writer is app.core.wallet_ledger,
    which increments the column with a bulk SQL UPDATE.
    """

    __tablename__ = "wallets"
    __table_args__ = (
        CheckConstraint(
            "type IN ('CASH','BANK','PETTY_CASH','INVESTMENT')",
            name="chk_wallet_type",
        ),
    )

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(String(150), nullable=False, unique=True)
    type = Column(String(20), nullable=False, default=WalletType.CASH.value, index=True)
    currency = Column(String(3), nullable=False, default="PKR")
    _current_balance = Column("current_balance", Numeric(14, 2), nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    description = Column(String(300), nullable=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    @hybrid_property
    def current_balance(self):
        return self._current_balance


@event.listens_for(Wallet, "before_insert")
def _reject_opening_balance(mapper, connection, target) -> None:
    if target._current_balance is not None and Decimal(str(target._current_balance)) != 0:
        raise ValueError(f"Wallet {target.name} must start at zero; post an IN transaction instead")


@event.listens_for(Wallet, "before_update")
def _reject_balance_write(mapper, connection, target) -> None:
    if inspect(target).attrs["_current_balance"].history.has_changes():
        raise ValueError(f"Wallet {target.id} balance changes only through ledger transactions")
