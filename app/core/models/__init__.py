from app.core.models.accounting_period import AccountingPeriod
from app.core.models.category import Category
from app.core.models.fee_invoice import FeeInvoice
from app.core.models.fee_structure import FeeStructure
from app.core.models.finance_audit_log import FinanceAuditLog
from app.core.models.ledger_transaction import LedgerTransaction
from app.core.models.wallet import Wallet

__all__ = [
    "AccountingPeriod",
    "Category",
    "FeeInvoice",
    "FeeStructure",
    "FinanceAuditLog",
    "LedgerTransaction",
    "Wallet",
]
