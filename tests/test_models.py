"""
Tests for FinLedger models

Test strategy:
1. Unit tests for record shape rules (pydantic validators)
2. Result models and their derived properties
3. Audit event construction
"""

import pytest
from datetime import date
from decimal import Decimal

from pydantic import ValidationError

from finledger.models.records import (
    Category,
    Frequency,
    InstallmentPurchase,
    LedgerSnapshot,
    Loan,
    FundingSource,
    MoneyBoxTransaction,
    MoneyBoxTransactionType,
    ProcessDueResult,
    RecurringTransaction,
    Transaction,
    TransactionType,
    ValidationIssue,
    ValidationResult,
)
from finledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestTransactionModel:
    """Tests for Transaction shape rules."""

    def test_expense_creation(self):
        """Test a plain expense is accepted and gets an id."""
        tx = Transaction(
            type=TransactionType.EXPENSE,
            amount=Decimal("12.50"),
            date=date(2024, 3, 1),
            account_id="wallet",
        )
        assert tx.amount == Decimal("12.50")
        assert tx.id
        assert tx.tag_ids == []

    def test_rejects_negative_amount(self):
        """Test that amounts are magnitudes."""
        with pytest.raises(ValidationError):
            Transaction(
                type=TransactionType.INCOME,
                amount=Decimal("-1"),
                date=date(2024, 3, 1),
                account_id="wallet",
            )

    def test_transfer_requires_destination(self):
        """Test TRANSFER without to_account_id is rejected."""
        with pytest.raises(ValidationError, match="destination"):
            Transaction(
                type=TransactionType.TRANSFER,
                amount=Decimal("10"),
                date=date(2024, 3, 1),
                account_id="wallet",
            )

    def test_transfer_cannot_have_category(self):
        """Test TRANSFER with a category is rejected."""
        with pytest.raises(ValidationError, match="category"):
            Transaction(
                type=TransactionType.TRANSFER,
                amount=Decimal("10"),
                date=date(2024, 3, 1),
                account_id="wallet",
                to_account_id="bank",
                category_id="groceries",
            )

    def test_non_transfer_cannot_have_destination(self):
        """Test an expense with to_account_id is rejected."""
        with pytest.raises(ValidationError):
            Transaction(
                type=TransactionType.EXPENSE,
                amount=Decimal("10"),
                date=date(2024, 3, 1),
                account_id="wallet",
                to_account_id="bank",
            )

    def test_same_account_transfer_is_well_formed(self):
        """Test the model leaves same-account transfers to the validator."""
        tx = Transaction(
            type=TransactionType.TRANSFER,
            amount=Decimal("10"),
            date=date(2024, 3, 1),
            account_id="wallet",
            to_account_id="wallet",
        )
        assert tx.to_account_id == tx.account_id

    def test_description_whitespace_stripped(self):
        """Test that whitespace is stripped from strings."""
        tx = Transaction(
            type=TransactionType.EXPENSE,
            amount=Decimal("1"),
            date=date(2024, 3, 1),
            account_id="wallet",
            description="  Coffee  ",
        )
        assert tx.description == "Coffee"


class TestOtherRecords:
    """Tests for the remaining record models."""

    def test_category_cannot_be_transfer(self):
        """Test categories are income or expense only."""
        with pytest.raises(ValidationError):
            Category(name="Moves", type=TransactionType.TRANSFER)

    def test_money_box_transaction_requires_positive_amount(self):
        """Test zero movements are rejected."""
        with pytest.raises(ValidationError):
            MoneyBoxTransaction(
                money_box_id="trip",
                type=MoneyBoxTransactionType.DEPOSIT,
                amount=Decimal("0"),
                date=date(2024, 1, 1),
            )

    def test_installment_purchase_paid_cannot_exceed_count(self):
        """Test installments_paid is bounded by the installment count."""
        with pytest.raises(ValidationError):
            InstallmentPurchase(
                credit_card_id="card",
                description="TV",
                purchase_date=date(2024, 1, 1),
                total_amount=Decimal("300"),
                number_of_installments=3,
                installments_paid=4,
            )

    def test_installment_purchase_requires_installments(self):
        """Test zero installments are rejected."""
        with pytest.raises(ValidationError):
            InstallmentPurchase(
                credit_card_id="card",
                description="TV",
                purchase_date=date(2024, 1, 1),
                total_amount=Decimal("300"),
                number_of_installments=0,
            )

    def test_funding_source_accepts_wire_value(self):
        """Test the card funding source keeps its stored spelling."""
        loan = Loan(
            person_name="Ana",
            loan_date=date(2024, 1, 1),
            total_amount_to_reimburse=Decimal("100"),
            funding_source="creditCard",
        )
        assert loan.funding_source == FundingSource.CREDIT_CARD
        assert loan.repayment_ids == []


class TestRecurringTransactionModel:
    """Tests for recurring template shape rules."""

    def _template(self, **overrides):
        fields = dict(
            description="Rent",
            amount=Decimal("900"),
            type=TransactionType.EXPENSE,
            account_id="bank",
            frequency=Frequency.MONTHLY,
            start_date=date(2024, 1, 1),
            next_due_date=date(2024, 1, 1),
        )
        fields.update(overrides)
        return RecurringTransaction(**fields)

    def test_valid_template(self):
        """Test a monthly template is accepted."""
        template = self._template()
        assert template.is_paused is False
        assert template.remaining_occurrences is None

    def test_custom_days_requires_interval(self):
        """Test custom_days without an interval is rejected."""
        with pytest.raises(ValidationError, match="custom_interval_days"):
            self._template(frequency=Frequency.CUSTOM_DAYS)

    def test_end_before_start_rejected(self):
        """Test the end date cannot precede the start date."""
        with pytest.raises(ValidationError):
            self._template(end_date=date(2023, 12, 31))

    def test_transfer_template_requires_destination(self):
        """Test transfer templates follow transaction shape rules."""
        with pytest.raises(ValidationError):
            self._template(type=TransactionType.TRANSFER)


class TestResultModels:
    """Tests for derived result models."""

    def test_validation_result_warnings_are_valid(self):
        """Test warnings alone keep a result valid."""
        result = ValidationResult(
            record_type="transaction",
            record_id="x",
            issues=[ValidationIssue(
                field="amount", issue_type="zero_amount", message="Amount is zero", severity="warning",
            )],
        )
        assert result.is_valid
        assert result.error_count == 0

    def test_validation_issue_rejects_unknown_severity(self):
        """Test severity is restricted to known levels."""
        with pytest.raises(ValidationError):
            ValidationIssue(field="f", issue_type="t", message="m", severity="fatal")

    def test_process_due_result_counts(self):
        """Test posted_count follows the posted list."""
        result = ProcessDueResult()
        assert result.posted_count == 0
        assert result.errors == []

    def test_snapshot_lookups(self):
        """Test find_* helpers return None for unknown ids."""
        snapshot = LedgerSnapshot()
        assert snapshot.find_account("nope") is None
        assert snapshot.find_loan("nope") is None


class TestAuditModels:
    """Tests for audit event models."""

    def test_audit_event_creation(self):
        """Test AuditEvent model creation."""
        event = AuditEvent(
            event_type=AuditEventType.TRANSACTION_POSTED,
            description="Test event",
        )
        assert event.event_type == AuditEventType.TRANSACTION_POSTED
        assert event.severity == AuditSeverity.INFO
        assert event.timestamp.tzinfo is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.RECURRING_POSTED,
            entity_type="recurring",
            entity_id="rent",
            description="Posted",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "recurring_posted"
        assert log_dict["entity_id"] == "rent"
        assert log_dict["correlation_id"] is None

    def test_builder_posting_failed_is_error(self):
        """Test failed postings are logged at error severity."""
        event = AuditEventBuilder.recurring_posting_failed("rent", "Account bank does not exist", None)
        assert event.severity == AuditSeverity.ERROR
        assert event.error_message == "Account bank does not exist"

    def test_builder_money_box_movement_type(self):
        """Test movement type selects the event type."""
        deposit = AuditEventBuilder.money_box_movement("trip", "DEPOSIT", "50", None)
        withdrawal = AuditEventBuilder.money_box_movement("trip", "WITHDRAWAL", "20", None)
        assert deposit.event_type == AuditEventType.MONEY_BOX_DEPOSIT
        assert withdrawal.event_type == AuditEventType.MONEY_BOX_WITHDRAWAL
