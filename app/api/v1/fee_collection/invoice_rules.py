"""
Pure dues rules for fee invoices: effective total, remaining balance,
late-penalty accrual and status derivation. No I/O; callers pass `now`.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Dict

from app.core.enums import FeeInvoiceStatus

ZERO = Decimal("0")
ONE_DAY = timedelta(days=1)


def as_utc(value: datetime) -> datetime:
    """Treat naive datetimes (e.g. read back from SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def effective_total(total_amount: Decimal, discount_amount: Decimal) -> Decimal:
    return total_amount - discount_amount


def remaining_balance(
    total_amount: Decimal,
    discount_amount: Decimal,
    penalty_amount: Decimal,
    amount_paid: Decimal,
) -> Decimal:
    owed = effective_total(total_amount, discount_amount) + penalty_amount
    return max(ZERO, owed - amount_paid)


def days_late(due_date: datetime, grace_period_days: int, now: datetime) -> int:
    """Whole days past the grace deadline; a partial day counts as a full one."""
    grace_deadline = as_utc(due_date) + timedelta(days=grace_period_days)
    overrun = as_utc(now) - grace_deadline
    if overrun <= timedelta(0):
        return 0
    days, remainder = divmod(overrun, ONE_DAY)
    if remainder:
        days += 1
    return days


def compute_penalty_delta(
    due_date: datetime,
    grace_period_days: int,
    late_fee_per_day: Decimal,
    recorded_penalty: Decimal,
    now: datetime,
) -> Decimal:
    """
    Penalty not yet recorded on the invoice.

    expected = days_late * late_fee_per_day; only the part above what is already
    recorded is returned, so repeated postings never double-charge and the
    recorded penalty never decreases.
    """
    if late_fee_per_day <= 0:
        return ZERO
    late = days_late(due_date, grace_period_days, now)
    if late == 0:
        return ZERO
    expected = late_fee_per_day * late
    if expected > recorded_penalty:
        return expected - recorded_penalty
    return ZERO


def derive_invoice_status(
    effective_total_amount: Decimal,
    penalty_amount: Decimal,
    amount_paid: Decimal,
    due_date: datetime,
    now: datetime,
) -> FeeInvoiceStatus:
    owed = effective_total_amount + penalty_amount
    if amount_paid >= owed:
        return FeeInvoiceStatus.PAID
    if amount_paid == 0:
        if as_utc(now) > as_utc(due_date):
            return FeeInvoiceStatus.OVERDUE
        return FeeInvoiceStatus.PENDING
    # Any nonzero partial payment stays PARTIAL, even past the due date.
    return FeeInvoiceStatus.PARTIAL


@dataclass(frozen=True)
class PaymentBreakdown:
    total_amount: Decimal
    discount_amount: Decimal
    penalty_amount: Decimal
    amount_paid: Decimal
    remaining_balance: Decimal
    attempted_amount: Decimal

    def as_dict(self) -> Dict[str, str]:
        return {
            "total_amount": str(self.total_amount),
            "discount_amount": str(self.discount_amount),
            "penalty_amount": str(self.penalty_amount),
            "amount_paid": str(self.amount_paid),
            "remaining_balance": str(self.remaining_balance),
            "attempted_amount": str(self.attempted_amount),
        }
