"""Wallets router: balance and ledger history."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import check_permission
from app.core.exceptions import not_found
from app.db.session import get_db

from .schemas import WalletResponse, WalletTransactionsResponse
from . import service

router = APIRouter(prefix="/api/v1/wallets", tags=["wallets"])


@router.get(
    "/{wallet_id}",
    response_model=WalletResponse,
    dependencies=[Depends(check_permission("wallets", "read"))],
)
async def get_wallet(
    wallet_id: UUID,
    db: AsyncSession = Depends(get_db),
) -> WalletResponse:
    result = await service.get_wallet(db, wallet_id)
    if not result:
        raise not_found("Wallet not found")
    return result


@router.get(
    "/{wallet_id}/transactions",
    response_model=WalletTransactionsResponse,
    dependencies=[Depends(check_permission("wallets", "read"))],
)
async def list_wallet_transactions(
    wallet_id: UUID,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    db: AsyncSession = Depends(get_db),
) -> WalletTransactionsResponse:
    result = await service.list_wallet_transactions(db, wallet_id, page=page, limit=limit)
    if not result:
        raise not_found("Wallet not found")
    return result
