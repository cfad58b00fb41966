import logging
import re
from datetime import timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm.exc import StaleDataError

from app.api.v1.fee_collection import service
from app.api.v1.fee_collection.schemas import PaymentPostRequest
from app.core import audit_service, wallet_ledger
from app.core.enums import (
    AccountingPeriodStatus,
    FeeInvoiceStatus,
    LedgerReferenceType,
    PaymentMethod,
    PostingErrorKind,
)
from app.core.exceptions import PostingError
from app.core.models import AccountingPeriod, FeeInvoice, FinanceAuditLog, LedgerTransaction, Wallet

from tests.conftest import NOW


def _request(invoice, wallet, category, amount, notes=None, **extra) -> PaymentPostRequest:
    return PaymentPostRequest(
        invoice_id=invoice.id,
        amount_to_pay=Decimal(amount),
        wallet_id=wallet.id,
        category_id=category.id,
        notes=notes,
        **extra,
    )


async def _fresh_invoice(session_factory, invoice_id) -> FeeInvoice:
    async with session_factory() as db:
        return await db.get(FeeInvoice, invoice_id)


async def _fresh_balance(session_factory, wallet_id) -> Decimal:
    async with session_factory() as db:
        return (await db.get(Wallet, wallet_id)).current_balance


async def _ledger_count(session_factory, invoice_id) -> int:
    async with session_factory() as db:
        return (
            await db.execute(
                select(func.count())
                .select_from(LedgerTransaction)
                .where(LedgerTransaction.reference_id == invoice_id)
            )
        ).scalar()


@pytest.mark.asyncio
async def test_partial_payment_on_late_invoice_accrues_penalty(
    db_session: AsyncSession, session_factory, make_invoice, wallet, income_category
) -> None:
    invoice = await make_invoice(due_date=NOW - timedelta(days=1))
    actor = uuid4()

    result = await service.post_payment(
        db_session, _request(invoice, wallet, income_category, "5000"), performed_by=actor, now=NOW
    )

    assert result.success is True
    assert result.invoice.status == FeeInvoiceStatus.PARTIAL
    assert result.invoice.amount_paid == Decimal("5000.00")
    assert result.invoice.penalty_added == Decimal("100.00")
    assert result.invoice.penalty_amount == Decimal("100.00")
    assert result.invoice.arrears == Decimal("5100.00")
    assert result.transaction.type.value == "IN"
    assert result.transaction.amount == Decimal("5000.00")
    assert result.transaction.wallet_name == "Front Desk Cash"
    assert result.transaction.category_name == "Tuition Fee"

    stored = await _fresh_invoice(session_factory, invoice.id)
    assert stored.amount_paid == Decimal("5000.00")
    assert stored.penalty_amount == Decimal("100.00")
    assert stored.status == FeeInvoiceStatus.PARTIAL.value
    assert await _fresh_balance(session_factory, wallet.id) == Decimal("5000.00")

    async with session_factory() as db:
        tx = (
            await db.execute(select(LedgerTransaction).where(LedgerTransaction.reference_id == invoice.id))
        ).scalar_one()
    assert tx.reference_type == LedgerReferenceType.FEE_INVOICE.value
    assert tx.performed_by == actor
    assert tx.category_id == income_category.id
    assert tx.notes == f"Fee payment for invoice {invoice.id}"
    assert tx.payment_method == PaymentMethod.CASH.value
    assert tx.payment_reference is None


@pytest.mark.asyncio
async def test_payment_method_reference_and_receipt_are_recorded(
    db_session: AsyncSession, session_factory, make_invoice, wallet, income_category
) -> None:
    invoice = await make_invoice()

    first = await service.post_payment(
        db_session,
        _request(
            invoice, wallet, income_category, "1500",
            payment_method=PaymentMethod.CHEQUE, payment_reference="  CHQ-004217 ",
        ),
        performed_by=uuid4(),
        now=NOW,
    )
    second = await service.post_payment(
        db_session,
        _request(invoice, wallet, income_category, "500", payment_method="ONLINE", payment_reference="   "),
        performed_by=uuid4(),
        now=NOW,
    )

    assert first.transaction.payment_method == PaymentMethod.CHEQUE
    assert first.transaction.payment_reference == "CHQ-004217"
    assert re.fullmatch(r"RCP-20250315-[0-9A-F]{10}", first.transaction.receipt_number)
    assert second.transaction.payment_method == PaymentMethod.ONLINE
    assert second.transaction.payment_reference is None
    assert second.transaction.receipt_number != first.transaction.receipt_number

    async with session_factory() as db:
        stored = await db.get(LedgerTransaction, first.transaction.id)
    assert stored.payment_method == "CHEQUE"
    assert stored.payment_reference == "CHQ-004217"
    assert stored.receipt_number == first.transaction.receipt_number


@pytest.mark.asyncio
async def test_paying_remaining_balance_marks_paid_then_rejects_further_payments(
    db_session: AsyncSession, session_factory, make_invoice, wallet, income_category
) -> None:
    invoice = await make_invoice(due_date=NOW - timedelta(days=1))
    await service.post_payment(
        db_session, _request(invoice, wallet, income_category, "5000"), performed_by=uuid4(), now=NOW
    )

    result = await service.post_payment(
        db_session, _request(invoice, wallet, income_category, "5100"), performed_by=uuid4(), now=NOW
    )
    assert result.invoice.status == FeeInvoiceStatus.PAID
    assert result.invoice.arrears == Decimal("0.00")
    assert result.invoice.penalty_added == Decimal("0.00")

    with pytest.raises(PostingError) as exc:
        await service.post_payment(
            db_session, _request(invoice, wallet, income_category, "1"), performed_by=uuid4(), now=NOW
        )
    assert exc.value.kind == PostingErrorKind.ALREADY_PAID
    assert await _fresh_balance(session_factory, wallet.id) == Decimal("10100.00")


@pytest.mark.asyncio
async def test_overpayment_is_rejected_with_breakdown(
    db_session: AsyncSession, session_factory, make_invoice, wallet, income_category
) -> None:
    invoice = await make_invoice(discount_amount=Decimal("500.00"), amount_paid=Decimal("1000.00"),
                                 status=FeeInvoiceStatus.PARTIAL.value)

    with pytest.raises(PostingError) as exc:
        await service.post_payment(
            db_session, _request(invoice, wallet, income_category, "8501"), performed_by=uuid4(), now=NOW
        )

    assert exc.value.kind == PostingErrorKind.OVERPAYMENT_REJECTED
    assert exc.value.to_detail()["breakdown"] == {
        "total_amount": "10000.00",
        "discount_amount": "500.00",
        "penalty_amount": "0.00",
        "amount_paid": "1000.00",
        "remaining_balance": "8500.00",
        "attempted_amount": "8501.00",
    }
    assert await _ledger_count(session_factory, invoice.id) == 0
    assert await _fresh_balance(session_factory, wallet.id) == Decimal("0")
    assert (await _fresh_invoice(session_factory, invoice.id)).amount_paid == Decimal("1000.00")


@pytest.mark.asyncio
async def test_expense_category_is_rejected(
    db_session: AsyncSession, session_factory, make_invoice, wallet, expense_category
) -> None:
    invoice = await make_invoice()

    with pytest.raises(PostingError) as exc:
        await service.post_payment(
            db_session, _request(invoice, wallet, expense_category, "100"), performed_by=uuid4(), now=NOW
        )

    assert exc.value.kind == PostingErrorKind.INVALID_CATEGORY
    stored = await _fresh_invoice(session_factory, invoice.id)
    assert stored.amount_paid == Decimal("0.00")
    assert stored.status == FeeInvoiceStatus.PENDING.value
    assert await _ledger_count(session_factory, invoice.id) == 0


@pytest.mark.asyncio
async def test_inactive_category_is_rejected(
    db_session: AsyncSession, make_invoice, wallet, income_category
) -> None:
    invoice = await make_invoice()
    income_category.is_active = False
    await db_session.commit()

    with pytest.raises(PostingError) as exc:
        await service.post_payment(
            db_session, _request(invoice, wallet, income_category, "100"), performed_by=uuid4(), now=NOW
        )
    assert exc.value.kind == PostingErrorKind.INVALID_CATEGORY


@pytest.mark.asyncio
async def test_waived_invoice_is_rejected(
    db_session: AsyncSession, make_invoice, wallet, income_category
) -> None:
    invoice = await make_invoice(status=FeeInvoiceStatus.WAIVED.value)

    with pytest.raises(PostingError) as exc:
        await service.post_payment(
            db_session, _request(invoice, wallet, income_category, "100"), performed_by=uuid4(), now=NOW
        )
    assert exc.value.kind == PostingErrorKind.WAIVED


@pytest.mark.asyncio
async def test_inactive_wallet_is_unavailable(
    db_session: AsyncSession, make_invoice, wallet, income_category
) -> None:
    invoice = await make_invoice()
    wallet.is_active = False
    await db_session.commit()

    with pytest.raises(PostingError) as exc:
        await service.post_payment(
            db_session, _request(invoice, wallet, income_category, "100"), performed_by=uuid4(), now=NOW
        )
    assert exc.value.kind == PostingErrorKind.WALLET_UNAVAILABLE


@pytest.mark.asyncio
async def test_unknown_invoice_is_not_found(
    db_session: AsyncSession, wallet, income_category
) -> None:
    payload = PaymentPostRequest(
        invoice_id=uuid4(), amount_to_pay=Decimal("10"), wallet_id=wallet.id, category_id=income_category.id
    )
    with pytest.raises(PostingError) as exc:
        await service.post_payment(db_session, payload, performed_by=uuid4(), now=NOW)
    assert exc.value.kind == PostingErrorKind.NOT_FOUND
    assert exc.value.status_code == 404


@pytest.mark.asyncio
async def test_locked_period_blocks_posting(
    db_session: AsyncSession, session_factory, make_invoice, wallet, income_category
) -> None:
    invoice = await make_invoice()
    db_session.add(AccountingPeriod(month=NOW.month, year=NOW.year, status=AccountingPeriodStatus.LOCKED.value))
    await db_session.commit()

    with pytest.raises(PostingError) as exc:
        await service.post_payment(
            db_session, _request(invoice, wallet, income_category, "100"), performed_by=uuid4(), now=NOW
        )
    assert exc.value.kind == PostingErrorKind.PERIOD_LOCKED
    assert await _ledger_count(session_factory, invoice.id) == 0


@pytest.mark.asyncio
async def test_same_day_postings_accrue_penalty_once(
    db_session: AsyncSession, make_invoice, wallet, income_category
) -> None:
    invoice = await make_invoice(due_date=NOW - timedelta(days=1) + timedelta(hours=1))

    first = await service.post_payment(
        db_session, _request(invoice, wallet, income_category, "1000"), performed_by=uuid4(), now=NOW
    )
    second = await service.post_payment(
        db_session,
        _request(invoice, wallet, income_category, "1000"),
        performed_by=uuid4(),
        now=NOW + timedelta(minutes=30),
    )

    assert first.invoice.penalty_added == Decimal("100.00")
    assert second.invoice.penalty_added == Decimal("0.00")
    assert second.invoice.penalty_amount == Decimal("100.00")


@pytest.mark.asyncio
async def test_repeated_small_payments_conserve_wallet_balance(
    db_session: AsyncSession, session_factory, make_invoice, wallet, income_category
) -> None:
    invoice = await make_invoice(total_amount=Decimal("1.00"))

    for _ in range(7):
        await service.post_payment(
            db_session, _request(invoice, wallet, income_category, "0.10"), performed_by=uuid4(), now=NOW
        )

    assert await _fresh_balance(session_factory, wallet.id) == Decimal("0.70")
    stored = await _fresh_invoice(session_factory, invoice.id)
    assert stored.amount_paid == Decimal("0.70")
    assert stored.status == FeeInvoiceStatus.PARTIAL.value
    assert await _ledger_count(session_factory, invoice.id) == 7


@pytest.mark.asyncio
async def test_failed_wallet_update_rolls_back_invoice(
    db_session: AsyncSession, session_factory, make_invoice, wallet, income_category, monkeypatch
) -> None:
    invoice = await make_invoice(due_date=NOW - timedelta(days=2))
    invoice_id, wallet_id = invoice.id, wallet.id

    async def failing_apply(db, target_wallet_id, delta):
        raise SQLAlchemyError("wallet row unavailable")

    monkeypatch.setattr(wallet_ledger, "_apply_balance_delta", failing_apply)

    with pytest.raises(PostingError) as exc:
        await service.post_payment(
            db_session, _request(invoice, wallet, income_category, "5000"), performed_by=uuid4(), now=NOW
        )

    assert exc.value.kind == PostingErrorKind.COMMIT_FAILED
    stored = await _fresh_invoice(session_factory, invoice_id)
    assert stored.amount_paid == Decimal("0.00")
    assert stored.penalty_amount == Decimal("0.00")
    assert stored.status == FeeInvoiceStatus.PENDING.value
    assert await _ledger_count(session_factory, invoice_id) == 0
    assert await _fresh_balance(session_factory, wallet_id) == Decimal("0")


@pytest.mark.asyncio
async def test_concurrent_postings_cannot_exceed_remaining_balance(
    db_session: AsyncSession, session_factory, make_invoice, wallet, income_category, monkeypatch
) -> None:
    invoice = await make_invoice()
    payload = _request(invoice, wallet, income_category, "6000")
    original_check = service._assert_period_open
    winner = {}

    async def racing_period_check(db, when):
        # The first posting has read the invoice; let a competing posting commit now.
        if not winner:
            winner["pending"] = True
            async with session_factory() as other:
                winner["result"] = await service.post_payment(other, payload, performed_by=uuid4(), now=NOW)
        await original_check(db, when)

    monkeypatch.setattr(service, "_assert_period_open", racing_period_check)

    with pytest.raises(PostingError) as exc:
        await service.post_payment(db_session, payload, performed_by=uuid4(), now=NOW)

    assert exc.value.kind == PostingErrorKind.OVERPAYMENT_REJECTED
    assert exc.value.breakdown["remaining_balance"] == "4000.00"
    assert winner["result"].invoice.amount_paid == Decimal("6000.00")

    stored = await _fresh_invoice(session_factory, invoice.id)
    assert stored.amount_paid == Decimal("6000.00")
    assert await _ledger_count(session_factory, invoice.id) == 1
    assert await _fresh_balance(session_factory, wallet.id) == Decimal("6000.00")


@pytest.mark.asyncio
async def test_persistent_write_conflicts_end_in_commit_failed(
    db_session: AsyncSession, make_invoice, wallet, income_category, monkeypatch
) -> None:
    invoice = await make_invoice()
    attempts = []

    async def always_stale(db, payload, performed_by, now):
        attempts.append(now)
        raise StaleDataError("version mismatch")

    monkeypatch.setattr(service, "_post_once", always_stale)

    with pytest.raises(PostingError) as exc:
        await service.post_payment(
            db_session, _request(invoice, wallet, income_category, "100"), performed_by=uuid4(), now=NOW
        )
    assert exc.value.kind == PostingErrorKind.COMMIT_FAILED
    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_audit_record_written_after_posting(
    db_session: AsyncSession, session_factory, make_invoice, wallet, income_category
) -> None:
    invoice = await make_invoice()
    actor = uuid4()

    result = await service.post_payment(
        db_session,
        _request(invoice, wallet, income_category, "2500"),
        performed_by=actor,
        performed_by_email="cashier@example.com",
        now=NOW,
    )

    async with session_factory() as db:
        entry = (
            await db.execute(select(FinanceAuditLog).where(FinanceAuditLog.entity_id == invoice.id))
        ).scalar_one()
    assert entry.action == "PAYMENT_RECEIVED"
    assert entry.performed_by == actor
    assert entry.performed_by_email == "cashier@example.com"
    assert entry.new_state == {
        "amount_paid": "2500.00",
        "status": "PARTIAL",
        "transaction_id": str(result.transaction.id),
        "wallet_name": "Front Desk Cash",
    }


@pytest.mark.asyncio
async def test_audit_failure_does_not_undo_posting(
    db_session: AsyncSession, session_factory, make_invoice, wallet, income_category, monkeypatch, caplog
) -> None:
    invoice = await make_invoice()

    def broken_audit_log(**kwargs):
        raise RuntimeError("audit store down")

    monkeypatch.setattr(audit_service, "FinanceAuditLog", broken_audit_log)

    with caplog.at_level(logging.ERROR, logger="app.core.audit_service"):
        result = await service.post_payment(
            db_session, _request(invoice, wallet, income_category, "2500"), performed_by=uuid4(), now=NOW
        )

    assert result.invoice.status == FeeInvoiceStatus.PARTIAL
    assert "AuditWriteFailed" in caplog.text
    assert (await _fresh_invoice(session_factory, invoice.id)).amount_paid == Decimal("2500.00")
    assert await _fresh_balance(session_factory, wallet.id) == Decimal("2500.00")


@pytest.mark.asyncio
async def test_unpaid_invoice_past_due_reads_as_overdue(
    db_session: AsyncSession, session_factory, make_invoice
) -> None:
    late = await make_invoice(due_date=NOW - timedelta(days=3))
    upcoming = await make_invoice(due_date=NOW + timedelta(days=3))

    overdue = await service.list_invoices(db_session, status_filter=FeeInvoiceStatus.OVERDUE, now=NOW)
    assert [(i.id, i.status) for i in overdue] == [(late.id, FeeInvoiceStatus.OVERDUE)]

    pending = await service.list_invoices(db_session, status_filter=FeeInvoiceStatus.PENDING, now=NOW)
    assert [(i.id, i.status) for i in pending] == [(upcoming.id, FeeInvoiceStatus.PENDING)]

    detail = await service.get_invoice(db_session, late.id, now=NOW)
    assert detail.status == FeeInvoiceStatus.OVERDUE
    assert (await _fresh_invoice(session_factory, late.id)).status == FeeInvoiceStatus.PENDING.value
