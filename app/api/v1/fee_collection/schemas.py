"""Fee collection schemas."""

from datetime import datetime
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from app.core.enums import FeeInvoiceStatus, LedgerTransactionType, PaymentMethod


# --- Payment posting ---
class PaymentPostRequest(BaseModel):
    invoice_id: UUID
    amount_to_pay: Decimal = Field(..., gt=0, max_digits=12, decimal_places=2)
    wallet_id: UUID
    category_id: UUID
    notes: Optional[str] = Field(None, max_length=1000)
    payment_method: PaymentMethod = PaymentMethod.CASH
    payment_reference: Optional[str] = Field(None, max_length=100, description="Cheque number or bank/gateway reference")


class PostedInvoiceSummary(BaseModel):
    id: UUID
    status: FeeInvoiceStatus
    amount_paid: Decimal
    arrears: Decimal
    penalty_amount: Decimal
    penalty_added: Decimal


class PostedTransactionSummary(BaseModel):
    id: UUID
    amount: Decimal
    type: LedgerTransactionType
    wallet_name: str
    category_name: str
    payment_method: Optional[PaymentMethod] = None
    payment_reference: Optional[str] = None
    receipt_number: Optional[str] = None


class PaymentPostResponse(BaseModel):
    success: bool = True
    invoice: PostedInvoiceSummary
    transaction: PostedTransactionSummary


# --- Invoice reads ---
class FeeInvoiceResponse(BaseModel):
    id: UUID
    student_id: UUID
    fee_structure_id: UUID
    semester_number: Optional[int] = None
    issue_date: datetime
    due_date: datetime
    total_amount: Decimal
    discount_amount: Decimal
    penalty_amount: Decimal
    amount_paid: Decimal
    effective_total: Decimal
    remaining_balance: Decimal
    status: FeeInvoiceStatus
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class LedgerTransactionResponse(BaseModel):
    id: UUID
    amount: Decimal
    type: LedgerTransactionType
    wallet_id: UUID
    category_id: Optional[UUID] = None
    reference_type: Optional[str] = None
    reference_id: Optional[UUID] = None
    performed_by: UUID
    date: datetime
    payment_method: Optional[PaymentMethod] = None
    payment_reference: Optional[str] = None
    receipt_number: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class InvoiceTransactionsResponse(BaseModel):
    invoice_id: UUID
    items: List[LedgerTransactionResponse]
