"""Wallet schemas."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel

from app.api.v1.fee_collection.schemas import LedgerTransactionResponse
from app.core.enums import WalletType


class WalletResponse(BaseModel):
    id: UUID
    name: str
    type: WalletType
    currency: str
    current_balance: Decimal
    is_active: bool
    description: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class WalletTransactionsResponse(BaseModel):
    wallet_id: UUID
    items: List[LedgerTransactionResponse]
    total: int
    page: int
    limit: int
