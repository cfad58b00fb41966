"""Fee collection service: post fee payments against invoices, list and inspect invoices."""

import logging
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple
from uuid import UUID, uuid4

from fastapi import status
from sqlalchemy import and_, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.core.audit_service import write_finance_audit
from app.core.config import settings
from app.core.enums import (
    AccountingPeriodStatus,
    CategoryType,
    FeeInvoiceStatus,
    FinanceAuditAction,
    LedgerReferenceType,
    LedgerTransactionType,
    PostingErrorKind,
)
from app.core.exceptions import PostingError, ServiceError
from app.core.models import (
    AccountingPeriod,
    Category,
    FeeInvoice,
    FeeStructure,
    LedgerTransaction,
    Wallet,
)
from app.core.wallet_ledger import post_transaction

from .invoice_rules import (
    PaymentBreakdown,
    as_utc,
    compute_penalty_delta,
    derive_invoice_status,
    effective_total,
    remaining_balance,
)
from .schemas import (
    FeeInvoiceResponse,
    InvoiceTransactionsResponse,
    LedgerTransactionResponse,
    PaymentPostRequest,
    PaymentPostResponse,
    PostedInvoiceSummary,
    PostedTransactionSummary,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


def _to_decimal(val) -> Decimal:
    if val is None:
        return Decimal("0")
    return val if isinstance(val, Decimal) else Decimal(str(val))


def _money(val) -> Decimal:
    return _to_decimal(val).quantize(CENT)


def _new_receipt_number(now: datetime) -> str:
    return f"RCP-{now:%Y%m%d}-{uuid4().hex[:10].upper()}"


def _invoice_breakdown(invoice: FeeInvoice, attempted: Decimal) -> PaymentBreakdown:
    total = _to_decimal(invoice.total_amount)
    discount = _to_decimal(invoice.discount_amount)
    penalty = _to_decimal(invoice.penalty_amount)
    paid = _to_decimal(invoice.amount_paid)
    return PaymentBreakdown(
        total_amount=_money(total),
        discount_amount=_money(discount),
        penalty_amount=_money(penalty),
        amount_paid=_money(paid),
        remaining_balance=_money(remaining_balance(total, discount, penalty, paid)),
        attempted_amount=_money(attempted),
    )


# --- Preconditions ---
async def _load_payable_invoice(db: AsyncSession, invoice_id: UUID) -> FeeInvoice:
    invoice = await db.get(FeeInvoice, invoice_id, populate_existing=True)
    if not invoice:
        raise PostingError(
            PostingErrorKind.NOT_FOUND, f"Invoice {invoice_id} not found", status.HTTP_404_NOT_FOUND
        )
    if invoice.status == FeeInvoiceStatus.PAID.value:
        raise PostingError(
            PostingErrorKind.ALREADY_PAID, "This invoice is fully paid", status.HTTP_409_CONFLICT
        )
    if invoice.status == FeeInvoiceStatus.WAIVED.value:
        raise PostingError(
            PostingErrorKind.WAIVED, "Cannot pay a waived invoice", status.HTTP_409_CONFLICT
        )
    return invoice


async def _load_active_wallet(db: AsyncSession, wallet_id: UUID) -> Wallet:
    wallet = await db.get(Wallet, wallet_id, populate_existing=True)
    if not wallet:
        raise PostingError(
            PostingErrorKind.NOT_FOUND, f"Wallet {wallet_id} not found", status.HTTP_404_NOT_FOUND
        )
    if not wallet.is_active:
        raise PostingError(
            PostingErrorKind.WALLET_UNAVAILABLE,
            f"Wallet {wallet.name} is inactive",
            status.HTTP_409_CONFLICT,
        )
    return wallet


async def _load_income_category(db: AsyncSession, category_id: UUID) -> Category:
    category = await db.get(Category, category_id, populate_existing=True)
    if not category:
        raise PostingError(
            PostingErrorKind.NOT_FOUND, f"Category {category_id} not found", status.HTTP_404_NOT_FOUND
        )
    if not category.is_active or category.type != CategoryType.INCOME.value:
        raise PostingError(
            PostingErrorKind.INVALID_CATEGORY,
            "Fee payments require an active INCOME category",
        )
    return category


async def _assert_period_open(db: AsyncSession, when: datetime) -> None:
    period = (
        await db.execute(
            select(AccountingPeriod).where(
                AccountingPeriod.month == when.month,
                AccountingPeriod.year == when.year,
            )
        )
    ).scalar_one_or_none()
    if period and period.status == AccountingPeriodStatus.LOCKED.value:
        raise PostingError(
            PostingErrorKind.PERIOD_LOCKED,
            f"Accounting period {when.month}/{when.year} is locked",
            status.HTTP_409_CONFLICT,
        )


# --- Payment posting ---
async def _post_once(
    db: AsyncSession,
    payload: PaymentPostRequest,
    performed_by: UUID,
    now: datetime,
) -> Tuple[PaymentPostResponse, FeeInvoice, LedgerTransaction, Wallet]:
    amount = _to_decimal(payload.amount_to_pay)

    invoice = await _load_payable_invoice(db, payload.invoice_id)
    wallet = await _load_active_wallet(db, payload.wallet_id)
    category = await _load_income_category(db, payload.category_id)
    await _assert_period_open(db, now)

    breakdown = _invoice_breakdown(invoice, amount)
    if amount > breakdown.remaining_balance:
        raise PostingError(
            PostingErrorKind.OVERPAYMENT_REJECTED,
            f"Payment of {breakdown.attempted_amount} exceeds remaining balance of {breakdown.remaining_balance}",
            breakdown=breakdown.as_dict(),
        )

    structure = await db.get(FeeStructure, invoice.fee_structure_id)
    if not structure:
        raise PostingError(
            PostingErrorKind.NOT_FOUND,
            f"Fee structure {invoice.fee_structure_id} not found",
            status.HTTP_404_NOT_FOUND,
        )
    penalty_added = compute_penalty_delta(
        invoice.due_date,
        structure.grace_period_days or 0,
        _to_decimal(structure.late_fee_per_day),
        _to_decimal(invoice.penalty_amount),
        now,
    )

    try:
        invoice.amount_paid = _to_decimal(invoice.amount_paid) + amount
        if penalty_added:
            invoice.penalty_amount = _to_decimal(invoice.penalty_amount) + penalty_added
        if payload.notes:
            invoice.notes = payload.notes
        invoice.status = derive_invoice_status(
            effective_total(_to_decimal(invoice.total_amount), _to_decimal(invoice.discount_amount)),
            _to_decimal(invoice.penalty_amount),
            _to_decimal(invoice.amount_paid),
            invoice.due_date,
            now,
        ).value
        await db.flush()

        tx = await post_transaction(
            db,
            tx_type=LedgerTransactionType.IN,
            amount=amount,
            wallet_id=wallet.id,
            category_id=category.id,
            reference_type=LedgerReferenceType.FEE_INVOICE.value,
            reference_id=invoice.id,
            performed_by=performed_by,
            notes=payload.notes or f"Fee payment for invoice {invoice.id}",
            date=now,
            payment_method=payload.payment_method.value,
            payment_reference=(payload.payment_reference or "").strip() or None,
            receipt_number=_new_receipt_number(now),
        )
        await db.commit()
    except (StaleDataError, ServiceError):
        await db.rollback()
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Posting to invoice %s aborted: %s", payload.invoice_id, e)
        raise PostingError(
            PostingErrorKind.COMMIT_FAILED,
            "Payment could not be committed; nothing was recorded",
            status.HTTP_503_SERVICE_UNAVAILABLE,
        ) from e

    paid = _to_decimal(invoice.amount_paid)
    response = PaymentPostResponse(
        invoice=PostedInvoiceSummary(
            id=invoice.id,
            status=invoice.status,
            amount_paid=_money(paid),
            arrears=_money(
                remaining_balance(
                    _to_decimal(invoice.total_amount),
                    _to_decimal(invoice.discount_amount),
                    _to_decimal(invoice.penalty_amount),
                    paid,
                )
            ),
            penalty_amount=_money(invoice.penalty_amount),
            penalty_added=_money(penalty_added),
        ),
        transaction=PostedTransactionSummary(
            id=tx.id,
            amount=_money(tx.amount),
            type=tx.type,
            wallet_name=wallet.name,
            category_name=category.name,
            payment_method=tx.payment_method,
            payment_reference=tx.payment_reference,
            receipt_number=tx.receipt_number,
        ),
    )
    return response, invoice, tx, wallet


async def post_payment(
    db: AsyncSession,
    payload: PaymentPostRequest,
    performed_by: UUID,
    performed_by_email: Optional[str] = None,
    now: Optional[datetime] = None,
) -> PaymentPostResponse:
    """
    Apply a fee payment to an invoice and credit the wallet, atomically.

    Preconditions are checked before any write. The invoice update, the ledger
    row and the wallet increment commit together or not at all. If a concurrent
    posting wins the race on the same invoice, the whole posting is re-run
    against fresh state, so the cap check always sees committed payments.
    """
    now = now or datetime.now(timezone.utc)
    for attempt in range(1, settings.posting_max_attempts + 1):
        try:
            response, invoice, tx, wallet = await _post_once(db, payload, performed_by, now)
            break
        except StaleDataError:
            logger.warning(
                "Concurrent posting on invoice %s (attempt %d/%d), retrying",
                payload.invoice_id, attempt, settings.posting_max_attempts,
            )
    else:
        raise PostingError(
            PostingErrorKind.COMMIT_FAILED,
            "Invoice is being updated concurrently; retry the payment",
            status.HTTP_503_SERVICE_UNAVAILABLE,
        )

    logger.info(
        "Payment %s (%s, receipt %s) posted to invoice %s via wallet %s (status %s)",
        tx.amount, tx.payment_method, tx.receipt_number, invoice.id, wallet.name, response.invoice.status.value,
    )
    await write_finance_audit(
        db,
        FinanceAuditAction.PAYMENT_RECEIVED,
        "FeeInvoice",
        invoice.id,
        performed_by=performed_by,
        performed_by_email=performed_by_email,
        new_state={
            "amount_paid": str(response.invoice.amount_paid),
            "status": response.invoice.status.value,
            "transaction_id": str(tx.id),
            "receipt_number": tx.receipt_number,
            "payment_method": tx.payment_method,
            "wallet_name": wallet.name,
        },
    )
    return response


# --- Reads ---
def _current_status(invoice: FeeInvoice, now: datetime) -> FeeInvoiceStatus:
    # Stored status only moves on a posting; an unpaid invoice goes overdue with the clock.
    stored = FeeInvoiceStatus(invoice.status)
    if stored == FeeInvoiceStatus.PENDING and as_utc(now) > as_utc(invoice.due_date):
        return FeeInvoiceStatus.OVERDUE
    return stored


def _status_clause(status_filter: FeeInvoiceStatus, now: datetime):
    pending = FeeInvoice.status == FeeInvoiceStatus.PENDING.value
    if status_filter == FeeInvoiceStatus.PENDING:
        return and_(pending, FeeInvoice.due_date >= now)
    if status_filter == FeeInvoiceStatus.OVERDUE:
        return or_(
            FeeInvoice.status == FeeInvoiceStatus.OVERDUE.value,
            and_(pending, FeeInvoice.due_date < now),
        )
    return FeeInvoice.status == status_filter.value


def _invoice_to_response(invoice: FeeInvoice, now: datetime) -> FeeInvoiceResponse:
    total = _to_decimal(invoice.total_amount)
    discount = _to_decimal(invoice.discount_amount)
    penalty = _to_decimal(invoice.penalty_amount)
    paid = _to_decimal(invoice.amount_paid)
    return FeeInvoiceResponse(
        id=invoice.id,
        student_id=invoice.student_id,
        fee_structure_id=invoice.fee_structure_id,
        semester_number=invoice.semester_number,
        issue_date=invoice.issue_date,
        due_date=invoice.due_date,
        total_amount=_money(total),
        discount_amount=_money(discount),
        penalty_amount=_money(penalty),
        amount_paid=_money(paid),
        effective_total=_money(effective_total(total, discount)),
        remaining_balance=_money(remaining_balance(total, discount, penalty, paid)),
        status=_current_status(invoice, now),
        notes=invoice.notes,
        created_at=invoice.created_at,
        updated_at=invoice.updated_at,
    )


async def list_invoices(
    db: AsyncSession,
    status_filter: Optional[FeeInvoiceStatus] = None,
    student_id: Optional[UUID] = None,
    fee_structure_id: Optional[UUID] = None,
    semester_number: Optional[int] = None,
    now: Optional[datetime] = None,
) -> List[FeeInvoiceResponse]:
    now = now or datetime.now(timezone.utc)
    stmt = select(FeeInvoice)
    if status_filter is not None:
        stmt = stmt.where(_status_clause(status_filter, now))
    if student_id is not None:
        stmt = stmt.where(FeeInvoice.student_id == student_id)
    if fee_structure_id is not None:
        stmt = stmt.where(FeeInvoice.fee_structure_id == fee_structure_id)
    if semester_number is not None:
        stmt = stmt.where(FeeInvoice.semester_number == semester_number)
    stmt = stmt.order_by(FeeInvoice.due_date, FeeInvoice.id)
    result = await db.execute(stmt)
    return [_invoice_to_response(i, now) for i in result.scalars().all()]


async def get_invoice(
    db: AsyncSession, invoice_id: UUID, now: Optional[datetime] = None
) -> Optional[FeeInvoiceResponse]:
    invoice = await db.get(FeeInvoice, invoice_id)
    if not invoice:
        return None
    return _invoice_to_response(invoice, now or datetime.now(timezone.utc))


async def list_invoice_transactions(
    db: AsyncSession, invoice_id: UUID
) -> Optional[InvoiceTransactionsResponse]:
    invoice = await db.get(FeeInvoice, invoice_id)
    if not invoice:
        return None
    result = await db.execute(
        select(LedgerTransaction)
        .where(
            LedgerTransaction.reference_type == LedgerReferenceType.FEE_INVOICE.value,
            LedgerTransaction.reference_id == invoice_id,
        )
        .order_by(LedgerTransaction.date.desc(), LedgerTransaction.created_at.desc())
    )
    return InvoiceTransactionsResponse(
        invoice_id=invoice_id,
        items=[LedgerTransactionResponse.model_validate(t) for t in result.scalars().all()],
    )
