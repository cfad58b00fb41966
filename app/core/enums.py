from enum import Enum


class FeeInvoiceStatus(str, Enum):
    PENDING = "PENDING"
    PARTIAL = "PARTIAL"
    PAID = "PAID"
    OVERDUE = "OVERDUE"
    WAIVED = "WAIVED"


class WalletType(str, Enum):
    CASH = "CASH"
    BANK = "BANK"
    PETTY_CASH = "PETTY_CASH"
    INVESTMENT = "INVESTMENT"


class CategoryType(str, Enum):
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"


class LedgerTransactionType(str, Enum):
    IN = "IN"
    OUT = "OUT"


class LedgerReferenceType(str, Enum):
    FEE_INVOICE = "FEE_INVOICE"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    BANK_TRANSFER = "BANK_TRANSFER"
    CHEQUE = "CHEQUE"
    ONLINE = "ONLINE"


class AccountingPeriodStatus(str, Enum):
    OPEN = "OPEN"
    LOCKED = "LOCKED"


class FinanceAuditAction(str, Enum):
    PAYMENT_RECEIVED = "PAYMENT_RECEIVED"


class PostingErrorKind(str, Enum):
    INVALID_INPUT = "InvalidInput"
    NOT_FOUND = "NotFound"
    ALREADY_PAID = "AlreadyPaid"
    WAIVED = "Waived"
    WALLET_UNAVAILABLE = "WalletUnavailable"
    INVALID_CATEGORY = "InvalidCategory"
    PERIOD_LOCKED = "PeriodLocked"
    OVERPAYMENT_REJECTED = "OverpaymentRejected"
    INSUFFICIENT_BALANCE = "InsufficientBalance"
    COMMIT_FAILED = "CommitFailed"
