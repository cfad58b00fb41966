"""
Wallet ledger: the only code path that changes a wallet balance.

post_transaction() inserts an immutable LedgerTransaction and applies the
matching balance delta inside the caller's database transaction. The caller
owns commit/rollback, so the ledger row and the balance move together or
not at all.
"""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional
from uuid import UUID

from fastapi import status
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.enums import LedgerTransactionType, PostingErrorKind
from app.core.exceptions import PostingError
from app.core.models import LedgerTransaction, Wallet

logger = logging.getLogger(__name__)


def balance_delta(tx_type: LedgerTransactionType, amount: Decimal) -> Decimal:
    return amount if tx_type == LedgerTransactionType.IN else -amount


async def _apply_balance_delta(db: AsyncSession, wallet_id: UUID, delta: Decimal) -> Decimal:
    result = await db.execute(
        update(Wallet)
        .where(Wallet.id == wallet_id)
        .values({Wallet._current_balance: Wallet._current_balance + delta})
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise PostingError(
            PostingErrorKind.COMMIT_FAILED,
            f"Wallet {wallet_id} could not be updated",
            status.HTTP_503_SERVICE_UNAVAILABLE,
        )
    new_balance = (
        await db.execute(select(Wallet.current_balance).where(Wallet.id == wallet_id))
    ).scalar_one()
    return Decimal(str(new_balance))


async def post_transaction(
    db: AsyncSession,
    *,
    tx_type: LedgerTransactionType,
    amount: Decimal,
    wallet_id: UUID,
    performed_by: UUID,
    category_id: Optional[UUID] = None,
    reference_type: Optional[str] = None,
    reference_id: Optional[UUID] = None,
    notes: Optional[str] = None,
    date: Optional[datetime] = None,
    payment_method: Optional[str] = None,
    payment_reference: Optional[str] = None,
    receipt_number: Optional[str] = None,
) -> LedgerTransaction:
    """Insert one ledger row and move the wallet balance by its signed amount. Caller must commit."""
    if amount <= 0:
        raise PostingError(
            PostingErrorKind.INVALID_INPUT,
            f"Transaction amount must be positive. Got: {amount}",
        )
    tx = LedgerTransaction(
        amount=amount,
        type=tx_type.value,
        wallet_id=wallet_id,
        category_id=category_id,
        reference_type=reference_type,
        reference_id=reference_id,
        performed_by=performed_by,
        date=date or datetime.now(timezone.utc),
        payment_method=payment_method,
        payment_reference=payment_reference,
        receipt_number=receipt_number,
        notes=notes,
    )
    db.add(tx)
    await db.flush()

    delta = balance_delta(tx_type, amount)
    new_balance = await _apply_balance_delta(db, wallet_id, delta)
    if new_balance < 0:
        raise PostingError(
            PostingErrorKind.INSUFFICIENT_BALANCE,
            f"Wallet {wallet_id} has insufficient balance",
            status.HTTP_409_CONFLICT,
            breakdown={
                "required_amount": str(amount),
                "available_balance": str(new_balance - delta),
                "shortfall": str(-new_balance),
            },
        )
    logger.debug("Posted %s %s to wallet %s (balance now %s)", tx_type.value, amount, wallet_id, new_balance)
    return tx
