"""Wallets service: read-only views of wallet balances and their ledger entries."""

from typing import Optional
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.v1.fee_collection.schemas import LedgerTransactionResponse
from app.core.models import LedgerTransaction, Wallet

from .schemas import WalletResponse, WalletTransactionsResponse


async def get_wallet(db: AsyncSession, wallet_id: UUID) -> Optional[WalletResponse]:
    wallet = await db.get(Wallet, wallet_id, populate_existing=True)
    if not wallet:
        return None
    return WalletResponse.model_validate(wallet)


async def list_wallet_transactions(
    db: AsyncSession,
    wallet_id: UUID,
    page: int = 1,
    limit: int = 50,
) -> Optional[WalletTransactionsResponse]:
    wallet = await db.get(Wallet, wallet_id)
    if not wallet:
        return None
    total = (
        await db.execute(
            select(func.count()).select_from(LedgerTransaction).where(LedgerTransaction.wallet_id == wallet_id)
        )
    ).scalar() or 0
    result = await db.execute(
        select(LedgerTransaction)
        .where(LedgerTransaction.wallet_id == wallet_id)
        .order_by(LedgerTransaction.date.desc(), LedgerTransaction.created_at.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return WalletTransactionsResponse(
        wallet_id=wallet_id,
        items=[LedgerTransactionResponse.model_validate(t) for t in result.scalars().all()],
        total=total,
        page=page,
        limit=limit,
    )
