"""
Core Record Models for FinLedger

These models define the strict schemas for every record the ledger
derives state from. They are designed to:
1. Enforce shape rules at construction (required-iff fields, ranges)
2. Stay free of derived values (balances, statuses are never stored)
3. Be copied, never mutated, by the engine

DESIGN DECISION: Shape rules live here, referential rules do not.
A TRANSFER whose source equals its destination is a well-formed record
that references the ledger wrongly; the validator reports it with a
typed error so the scheduler can collect it instead of crashing.
"""

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


def new_id() -> str:
    """Generate a fresh record identifier."""
    return uuid4().hex


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Kind of movement a transaction represents."""
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    TRANSFER = "TRANSFER"


class MoneyBoxTransactionType(str, Enum):
    """Movement into or out of a money box."""
    DEPOSIT = "DEPOSIT"
    WITHDRAWAL = "WITHDRAWAL"


class Frequency(str, Enum):
    """How often a recurring template posts."""
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    CUSTOM_DAYS = "custom_days"


class FundingSource(str, Enum):
    """Where the money lent to someone came from."""
    ACCOUNT = "account"
    CREDIT_CARD = "creditCard"


class LoanStatus(str, Enum):
    """
    Repayment status of a peer loan.

    Always derived from the repayments, never stored on the loan.
    """
    PENDING = "PENDING"
    PARTIALLY_PAID = "PARTIALLY_PAID"
    PAID = "PAID"


class RecurringState(str, Enum):
    """
    Lifecycle state of a recurring template.

    EXHAUSTED is terminal: the template never posts again.
    """
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    EXHAUSTED = "EXHAUSTED"


# =============================================================================
# ACCOUNTS AND TRANSACTIONS
# =============================================================================

class Account(BaseModel):
    """
    A regular account (wallet, bank account).

    The balance is NOT stored - it is always derived from the
    opening balance and the transactions that reference the account.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=200)
    initial_balance: Decimal = Field(
        default=Decimal("0"),
        description="Opening balance (may be negative, e.g. overdraft)"
    )


class Category(BaseModel):
    """Income or expense category. Transfers have no category."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=200)
    type: TransactionType
    monthly_budget: Optional[Decimal] = Field(default=None, ge=0)

    @model_validator(mode='after')
    def validate_type(self) -> 'Category':
        if self.type == TransactionType.TRANSFER:
            raise ValueError("Categories apply to income or expense only")
        return self


class Transaction(BaseModel):
    """
    A posted movement of money.

    Immutable once posted: edits replace the whole record.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    type: TransactionType
    amount: Decimal = Field(
        ...,
        ge=0,
        description="Non-negative magnitude; the type gives the sign"
    )
    date: date
    account_id: str = Field(..., min_length=1, description="Source (or only) account")
    to_account_id: Optional[str] = Field(
        default=None,
        description="Destination account, TRANSFER only"
    )
    category_id: Optional[str] = None
    description: Optional[str] = Field(default=None, max_length=500)
    tag_ids: list[str] = Field(default_factory=list)

    @model_validator(mode='after')
    def validate_transfer_shape(self) -> 'Transaction':
        """TRANSFER needs a destination and no category; others the opposite."""
        if self.type == TransactionType.TRANSFER:
            if not self.to_account_id:
                raise ValueError("Transfer requires a destination account")
            if self.category_id:
                raise ValueError("Transfer cannot have a category")
        elif self.to_account_id:
            raise ValueError("Only transfers can have a destination account")
        return self


# =============================================================================
# MONEY BOXES (SAVINGS GOALS)
# =============================================================================

class MoneyBox(BaseModel):
    """A savings goal. Its balance is derived from its movements."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=200)
    goal_amount: Optional[Decimal] = Field(default=None, gt=0)
    created_at: date


class MoneyBoxTransaction(BaseModel):
    """
    A deposit into or withdrawal from a money box.

    When funded from / released to a regular account, the mirror
    transaction on that account is linked through linked_transaction_id.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    money_box_id: str = Field(..., min_length=1)
    type: MoneyBoxTransactionType
    amount: Decimal = Field(..., gt=0)
    date: date
    description: Optional[str] = Field(default=None, max_length=500)
    linked_account_id: Optional[str] = None
    linked_transaction_id: Optional[str] = None


# =============================================================================
# CREDIT CARDS
# =============================================================================

class CreditCard(BaseModel):
    """A credit card with its statement cycle days."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    name: str = Field(..., min_length=1, max_length=200)
    limit: Decimal = Field(..., ge=0)
    closing_day: int = Field(..., ge=1, le=31)
    due_day: int = Field(..., ge=1, le=31)


class InstallmentPurchase(BaseModel):
    """
    A card purchase split into equal installments.

    Per-installment value is total_amount / number_of_installments.
    The last installment is NOT adjusted for the rounding remainder.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    credit_card_id: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1, max_length=500)
    purchase_date: date
    total_amount: Decimal = Field(..., gt=0)
    number_of_installments: int = Field(..., gt=0)
    installments_paid: int = Field(default=0, ge=0)

    @model_validator(mode='after')
    def validate_paid_count(self) -> 'InstallmentPurchase':
        if self.installments_paid > self.number_of_installments:
            raise ValueError("Installments paid cannot exceed number of installments")
        return self


# =============================================================================
# PEER LOANS
# =============================================================================

class Loan(BaseModel):
    """
    Money lent to a person, to be reimbursed.

    Status and outstanding balance are derived from the repayments
    listed in repayment_ids.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    person_name: str = Field(..., min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=500)
    loan_date: date
    total_amount_to_reimburse: Decimal = Field(..., ge=0)

    funding_source: FundingSource

    # Account funding
    amount_delivered_from_account: Optional[Decimal] = Field(default=None, ge=0)
    linked_account_id: Optional[str] = None
    linked_expense_transaction_id: Optional[str] = None

    # Credit card funding
    amount_delivered_from_credit: Optional[Decimal] = Field(default=None, ge=0)
    cost_on_credit_card: Optional[Decimal] = Field(default=None, ge=0)
    linked_credit_card_id: Optional[str] = None
    linked_installment_purchase_id: Optional[str] = None

    repayment_ids: list[str] = Field(default_factory=list)


class LoanRepayment(BaseModel):
    """A payment received towards a loan."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    loan_id: str = Field(..., min_length=1)
    amount_paid: Decimal = Field(..., gt=0)
    repayment_date: date
    credited_account_id: str = Field(..., min_length=1)
    notes: Optional[str] = Field(default=None, max_length=500)
    linked_income_transaction_id: Optional[str] = None


# =============================================================================
# RECURRING TEMPLATES
# =============================================================================

class RecurringTransaction(BaseModel):
    """
    Template that materializes into concrete transactions.

    Long-lived: next_due_date, last_posted_date and
    remaining_occurrences advance on every posting.
    remaining_occurrences = None means unbounded.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str = Field(default_factory=new_id)
    description: str = Field(..., min_length=1, max_length=500)
    amount: Decimal = Field(..., ge=0)
    type: TransactionType
    category_id: Optional[str] = None
    account_id: str = Field(..., min_length=1)
    to_account_id: Optional[str] = None

    frequency: Frequency
    custom_interval_days: Optional[int] = Field(
        default=None,
        description="Interval for custom_days; range is checked when advancing"
    )
    start_date: date
    end_date: Optional[date] = None
    occurrences: Optional[int] = Field(default=None, gt=0)
    remaining_occurrences: Optional[int] = Field(default=None, ge=0)
    next_due_date: date
    last_posted_date: Optional[date] = None
    is_paused: bool = False
    notes: Optional[str] = Field(default=None, max_length=1000)

    @model_validator(mode='after')
    def validate_template(self) -> 'RecurringTransaction':
        """Validate required-iff fields and date relationships."""
        if self.frequency == Frequency.CUSTOM_DAYS and self.custom_interval_days is None:
            raise ValueError("custom_days frequency requires custom_interval_days")

        if self.type == TransactionType.TRANSFER:
            if not self.to_account_id:
                raise ValueError("Transfer requires a destination account")
            if self.category_id:
                raise ValueError("Transfer cannot have a category")
        elif self.to_account_id:
            raise ValueError("Only transfers can have a destination account")

        if self.end_date and self.end_date < self.start_date:
            raise ValueError("End date cannot be before start date")

        return self


# =============================================================================
# SNAPSHOT - everything the ledger derives state from
# =============================================================================

class LedgerSnapshot(BaseModel):
    """
    The full set of record collections at one point in time.

    The owner of persistence loads one of these, hands it to the
    ledger and stores whatever snapshot comes back.
    """

    accounts: list[Account] = Field(default_factory=list)
    categories: list[Category] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)
    money_boxes: list[MoneyBox] = Field(default_factory=list)
    money_box_transactions: list[MoneyBoxTransaction] = Field(default_factory=list)
    credit_cards: list[CreditCard] = Field(default_factory=list)
    installment_purchases: list[InstallmentPurchase] = Field(default_factory=list)
    loans: list[Loan] = Field(default_factory=list)
    loan_repayments: list[LoanRepayment] = Field(default_factory=list)
    recurring_transactions: list[RecurringTransaction] = Field(default_factory=list)

    def find_account(self, account_id: str) -> Optional[Account]:
        return next((a for a in self.accounts if a.id == account_id), None)

    def find_credit_card(self, card_id: str) -> Optional[CreditCard]:
        return next((c for c in self.credit_cards if c.id == card_id), None)

    def find_money_box(self, money_box_id: str) -> Optional[MoneyBox]:
        return next((b for b in self.money_boxes if b.id == money_box_id), None)

    def find_loan(self, loan_id: str) -> Optional[Loan]:
        return next((loan for loan in self.loans if loan.id == loan_id), None)

    def find_installment_purchase(self, purchase_id: str) -> Optional[InstallmentPurchase]:
        return next((p for p in self.installment_purchases if p.id == purchase_id), None)


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single problem found in a record."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing_reference', 'same_account')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )


class ValidationResult(BaseModel):
    """Outcome of checking one record against the ledger."""

    record_type: str
    record_id: str
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        """Valid when there is no error-level issue (warnings are okay)."""
        return not self.has_errors

    @property
    def has_errors(self) -> bool:
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        return sum(1 for issue in self.issues if issue.severity == "error")


# =============================================================================
# DERIVED RESULTS
# =============================================================================

class InstallmentScheduleEntry(BaseModel):
    """One row of a purchase's amortization schedule."""

    number: int = Field(..., ge=1, description="1-based installment number")
    due_date: date
    amount: Decimal
    is_paid: bool


class ProcessDueResult(BaseModel):
    """
    Outcome of a process_due batch.

    updated_templates holds every template passed in, posted or not,
    so the caller can persist the list as-is.
    """

    posted: list[Transaction] = Field(default_factory=list)
    updated_templates: list[RecurringTransaction] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)

    @property
    def posted_count(self) -> int:
        return len(self.posted)


class BillsAlerts(BaseModel):
    """Recurring obligations that are overdue or coming up soon."""

    overdue: list[RecurringTransaction] = Field(default_factory=list)
    upcoming: list[RecurringTransaction] = Field(default_factory=list)

    @property
    def is_clear(self) -> bool:
        return not self.overdue and not self.upcoming


class RepaymentRecord(BaseModel):
    """Everything produced by recording one loan repayment."""

    repayment: LoanRepayment
    income_transaction: Optional[Transaction] = None
    loan: Loan


class LoanFunding(BaseModel):
    """A new loan plus the side-posting that funded it."""

    loan: Loan
    expense_transaction: Optional[Transaction] = None
    installment_purchase: Optional[InstallmentPurchase] = None


class MoneyBoxMovement(BaseModel):
    """A money-box movement plus its optional mirror on an account."""

    box_transaction: MoneyBoxTransaction
    account_transaction: Optional[Transaction] = None


class NetWorthBreakdown(BaseModel):
    """The components that add up to net worth."""

    accounts_total: Decimal
    money_boxes_total: Decimal
    loan_receivables: Decimal = Field(
        ...,
        description="Outstanding loans, each clamped at zero"
    )
    card_debt: Decimal
    net_worth: Decimal


class CategoryBudget(BaseModel):
    """Spending against one expense category's monthly budget."""

    category_id: str
    month: date = Field(..., description="First day of the month covered")
    budget: Decimal
    spent: Decimal
    progress: Decimal = Field(..., description="Percent of the budget spent, capped at 100")
    is_over_budget: bool


class BudgetSummary(BaseModel):
    """Budgeted versus spent across every budgeted expense category."""

    month: date
    categories: list[CategoryBudget] = Field(default_factory=list)
    total_budgeted: Decimal
    total_spent: Decimal

    @property
    def over_budget(self) -> list[CategoryBudget]:
        return [c for c in self.categories if c.is_over_budget]
