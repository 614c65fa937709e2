"""
Data Models Package

This package contains all Pydantic models used by FinLedger.
All records flowing through the ledger must conform to these schemas.
"""

from finledger.models.records import (
    Account,
    BillsAlerts,
    BudgetSummary,
    Category,
    CategoryBudget,
    CreditCard,
    Frequency,
    FundingSource,
    InstallmentPurchase,
    InstallmentScheduleEntry,
    LedgerSnapshot,
    Loan,
    LoanFunding,
    LoanRepayment,
    LoanStatus,
    MoneyBox,
    MoneyBoxMovement,
    MoneyBoxTransaction,
    MoneyBoxTransactionType,
    NetWorthBreakdown,
    ProcessDueResult,
    RecurringState,
    RecurringTransaction,
    RepaymentRecord,
    Transaction,
    TransactionType,
    ValidationIssue,
    ValidationResult,
    new_id,
)
from finledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Record models
    "Account",
    "Category",
    "CreditCard",
    "InstallmentPurchase",
    "LedgerSnapshot",
    "Loan",
    "LoanRepayment",
    "MoneyBox",
    "MoneyBoxTransaction",
    "RecurringTransaction",
    "Transaction",
    "new_id",
    # Enums
    "Frequency",
    "FundingSource",
    "LoanStatus",
    "MoneyBoxTransactionType",
    "RecurringState",
    "TransactionType",
    # Results
    "BillsAlerts",
    "BudgetSummary",
    "CategoryBudget",
    "InstallmentScheduleEntry",
    "LoanFunding",
    "MoneyBoxMovement",
    "NetWorthBreakdown",
    "ProcessDueResult",
    "RepaymentRecord",
    "ValidationIssue",
    "ValidationResult",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
