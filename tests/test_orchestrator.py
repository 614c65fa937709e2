"""
Tests for the FinanceLedger orchestrator.

Every mutation must replace the snapshot, leave it untouched on
failure and emit its audit events.
"""

import inspect

import pytest
from datetime import date
from decimal import Decimal

from finledger.audit import AuditLogger
from finledger.engine import recurring
from finledger.engine.errors import (
    AlreadyFullyPaid,
    InsufficientFunds,
    NotFound,
    ReferentialIntegrityViolation,
)
from finledger.models.audit import AuditEventType
from finledger.models.records import (
    Category,
    Frequency,
    FundingSource,
    InstallmentPurchase,
    LoanStatus,
    RecurringState,
    Transaction,
    TransactionType,
)
from finledger.orchestrator import FinanceLedger


def _rent(**overrides):
    fields = dict(
        description="Rent",
        amount=Decimal("900"),
        type=TransactionType.EXPENSE,
        account_id="bank",
        frequency=Frequency.MONTHLY,
        start_date=date(2024, 1, 1),
    )
    fields.update(overrides)
    return recurring.new_recurring_transaction(**fields)


class TestQueries:
    """Tests for snapshot-bound queries."""

    def test_balances_and_net_worth(self, ledger):
        """Test queries read the bound snapshot."""
        assert ledger.account_balance("wallet") == Decimal("70")
        assert ledger.account_balance("bank") == Decimal("1000")
        assert ledger.net_worth() == Decimal("1070")

    def test_unknown_records(self, ledger):
        """Test queries on unknown records raise NotFound."""
        with pytest.raises(NotFound):
            ledger.loan_status("nope")
        with pytest.raises(NotFound):
            ledger.available_limit("amex")

    def test_bills_alerts_use_window(self, snapshot, monkeypatch):
        """Test the upcoming window comes from settings."""
        monkeypatch.setenv("FINLEDGER_UPCOMING_WINDOW_DAYS", "2")
        bill = _rent(start_date=date(2024, 3, 5))
        ledger = FinanceLedger(snapshot.model_copy(update={"recurring_transactions": [bill]}))
        assert ledger.bills_alerts(date(2024, 3, 1)).is_clear
        assert ledger.bills_alerts(date(2024, 3, 3)).upcoming == [bill]

    def test_purchase_due_date_and_debt(self, snapshot):
        """Test per-purchase next due date and outstanding debt."""
        purchase = InstallmentPurchase(
            id="tv", credit_card_id="card", description="TV",
            purchase_date=date(2024, 1, 15), total_amount=Decimal("200"), number_of_installments=2,
        )
        ledger = FinanceLedger(snapshot.model_copy(update={"installment_purchases": [purchase]}))
        assert ledger.next_due_date("tv") == date(2024, 1, 31)
        assert ledger.outstanding_debt("tv") == Decimal("200")

        ledger.mark_installment_paid("tv")
        assert ledger.next_due_date("tv") == date(2024, 2, 29)
        assert ledger.outstanding_debt("tv") == Decimal("100")

        ledger.mark_installment_paid("tv")
        assert ledger.next_due_date("tv") is None
        assert ledger.outstanding_debt("tv") == Decimal("0")

        with pytest.raises(NotFound):
            ledger.next_due_date("fridge")
        with pytest.raises(NotFound):
            ledger.outstanding_debt("fridge")

    def test_budgets(self, snapshot):
        """Test category spending and the budget summary read the bound snapshot."""
        groceries = Category(
            id="groceries", name="Groceries", type=TransactionType.EXPENSE,
            monthly_budget=Decimal("100"),
        )
        ledger = FinanceLedger(snapshot.model_copy(update={
            "categories": [groceries, *snapshot.categories[1:]],
        }))
        assert ledger.category_spending("groceries", date(2024, 1, 20)) == Decimal("30")
        assert ledger.category_spending("groceries", date(2024, 2, 1)) == Decimal("0")

        summary = ledger.budget_summary(date(2024, 1, 31))
        assert summary.total_budgeted == Decimal("100")
        assert summary.total_spent == Decimal("30")
        assert summary.categories[0].progress == Decimal("30")
        assert summary.over_budget == []


class TestCallerSuppliedDate:
    """Tests that date-dependent calls never fall back to the system clock."""

    @pytest.mark.parametrize("method", ["process_due", "bills_alerts"])
    def test_today_has_no_default(self, method):
        """Test today is a required parameter."""
        parameter = inspect.signature(getattr(FinanceLedger, method)).parameters["today"]
        assert parameter.default is inspect.Parameter.empty

    def test_omitting_today_fails(self, ledger):
        """Test calling without a date raises instead of reading the clock."""
        with pytest.raises(TypeError):
            ledger.process_due()
        with pytest.raises(TypeError):
            ledger.bills_alerts()


class TestLoggingSetup:
    """Tests that building a ledger leaves logging configuration alone."""

    def test_ledger_does_not_configure_logging(self, snapshot, monkeypatch):
        """Test constructing ledgers never reconfigures structlog."""
        calls = []
        monkeypatch.setattr("structlog.configure", lambda **kwargs: calls.append(kwargs))
        FinanceLedger(snapshot)
        FinanceLedger()
        assert calls == []


class TestPostTransaction:
    """Tests for post_transaction."""

    def test_appends_and_audits(self, ledger, audit_sink):
        """Test a valid transaction lands in a new snapshot."""
        before = ledger.snapshot
        tx = Transaction(
            type=TransactionType.INCOME, amount=Decimal("500"),
            date=date(2024, 1, 31), account_id="bank", category_id="salary",
        )
        ledger.post_transaction(tx)

        assert ledger.snapshot is not before
        assert len(before.transactions) == 1
        assert ledger.account_balance("bank") == Decimal("1500")
        assert audit_sink.events[-1].event_type == AuditEventType.TRANSACTION_POSTED

    def test_rejects_unknown_account(self, ledger, audit_sink):
        """Test an invalid transaction raises and is audited as a violation."""
        before = ledger.snapshot
        tx = Transaction(
            type=TransactionType.EXPENSE, amount=Decimal("5"),
            date=date(2024, 1, 31), account_id="ghost",
        )
        with pytest.raises(ReferentialIntegrityViolation):
            ledger.post_transaction(tx)

        assert ledger.snapshot is before
        assert audit_sink.events[-1].event_type == AuditEventType.INTEGRITY_VIOLATION

    def test_delete_transaction(self, ledger, audit_sink):
        """Test deleting removes the transaction and is audited."""
        ledger.delete_transaction("lunch")
        assert ledger.account_balance("wallet") == Decimal("100")
        assert audit_sink.events[-1].event_type == AuditEventType.TRANSACTION_DELETED

        with pytest.raises(NotFound):
            ledger.delete_transaction("lunch")


class TestProcessDue:
    """Tests for scheduled posting through the ledger."""

    def test_posts_and_replaces_templates(self, snapshot, audit_sink):
        """Test postings are appended and templates advanced."""
        ledger = FinanceLedger(
            snapshot.model_copy(update={"recurring_transactions": [_rent()]}),
            audit_logger=AuditLogger(audit_sink),
        )
        result = ledger.process_due(date(2024, 4, 1))

        assert result.posted_count == 4
        assert ledger.snapshot.recurring_transactions[0].next_due_date == date(2024, 5, 1)
        assert ledger.account_balance("bank") == Decimal("-2600")

        posted_events = audit_sink.of_type(AuditEventType.RECURRING_POSTED)
        assert len(posted_events) == 4
        assert len({e.correlation_id for e in posted_events}) == 1

        assert ledger.process_due(date(2024, 4, 1)).posted_count == 0

    def test_exhaustion_is_audited(self, snapshot, audit_sink):
        """Test the posting that exhausts a template emits an event."""
        ledger = FinanceLedger(
            snapshot.model_copy(update={"recurring_transactions": [_rent(occurrences=2)]}),
            audit_logger=AuditLogger(audit_sink),
        )
        ledger.process_due(date(2024, 6, 1))

        template = ledger.snapshot.recurring_transactions[0]
        assert recurring.state_of(template) == RecurringState.EXHAUSTED
        assert len(audit_sink.of_type(AuditEventType.RECURRING_EXHAUSTED)) == 1

        ledger.process_due(date(2024, 12, 1))
        assert len(audit_sink.of_type(AuditEventType.RECURRING_EXHAUSTED)) == 1

    def test_catch_up_limit_from_settings(self, snapshot, audit_sink, monkeypatch):
        """Test the configured limit stops the catch-up and is audited."""
        monkeypatch.setenv("FINLEDGER_MAX_CATCH_UP_CYCLES", "2")
        ledger = FinanceLedger(
            snapshot.model_copy(update={"recurring_transactions": [_rent()]}),
            audit_logger=AuditLogger(audit_sink),
        )
        result = ledger.process_due(date(2024, 4, 1))

        assert result.posted_count == 2
        limited = audit_sink.of_type(AuditEventType.RECURRING_CATCH_UP_LIMITED)
        assert limited[0].details["next_due_date"] == "2024-03-01"

    def test_multi_year_backlog_with_default_settings(self, snapshot, audit_sink):
        """Test a long daily backlog is fully posted and a rerun posts nothing."""
        daily = _rent(amount=Decimal("1"), frequency=Frequency.DAILY, start_date=date(2020, 1, 1))
        ledger = FinanceLedger(
            snapshot.model_copy(update={"recurring_transactions": [daily]}),
            audit_logger=AuditLogger(audit_sink),
        )
        assert ledger.process_due(date(2024, 1, 1)).posted_count == 1462
        assert ledger.snapshot.recurring_transactions[0].next_due_date == date(2024, 1, 2)
        assert audit_sink.of_type(AuditEventType.RECURRING_CATCH_UP_LIMITED) == []

        assert ledger.process_due(date(2024, 1, 1)).posted_count == 0

    def test_unexpected_engine_error_is_audited(self, snapshot, audit_sink, monkeypatch):
        """Test an unexpected failure emits a system error and leaves the snapshot alone."""
        def explode(*args, **kwargs):
            raise RuntimeError("disk on fire")

        monkeypatch.setattr(recurring, "process_due", explode)
        rent = _rent()
        ledger = FinanceLedger(
            snapshot.model_copy(update={"recurring_transactions": [rent]}),
            audit_logger=AuditLogger(audit_sink),
        )
        before = ledger.snapshot
        with pytest.raises(RuntimeError):
            ledger.process_due(date(2024, 4, 1))

        assert ledger.snapshot is before
        errors = audit_sink.of_type(AuditEventType.SYSTEM_ERROR)
        assert len(errors) == 1
        assert errors[0].details["template_id"] == rent.id
        assert errors[0].details["today"] == "2024-04-01"

    def test_failures_are_collected(self, snapshot, audit_sink):
        """Test a broken template is reported without blocking others."""
        broken = _rent(description="Gym", account_id="closed")
        ledger = FinanceLedger(
            snapshot.model_copy(update={"recurring_transactions": [broken, _rent()]}),
            audit_logger=AuditLogger(audit_sink),
        )
        result = ledger.process_due(date(2024, 1, 1))

        assert result.posted_count == 1
        assert len(result.errors) == 1
        assert len(audit_sink.of_type(AuditEventType.RECURRING_POSTING_FAILED)) == 1

    def test_pause_and_resume(self, snapshot, audit_sink):
        """Test paused templates are skipped until resumed."""
        rent = _rent()
        ledger = FinanceLedger(
            snapshot.model_copy(update={"recurring_transactions": [rent]}),
            audit_logger=AuditLogger(audit_sink),
        )
        ledger.pause_recurring(rent.id)
        assert ledger.process_due(date(2024, 3, 1)).posted_count == 0

        ledger.resume_recurring(rent.id)
        assert ledger.process_due(date(2024, 3, 1)).posted_count == 3
        assert len(audit_sink.of_type(AuditEventType.RECURRING_PAUSED)) == 1


class TestSidePostings:
    """Tests for loans, money boxes and installments."""

    def test_loan_lifecycle(self, ledger, audit_sink):
        """Test creating and repaying a loan moves money both ways."""
        funding = ledger.create_loan(
            "Ana", date(2024, 1, 10), Decimal("100"), FundingSource.ACCOUNT,
            linked_account_id="wallet",
            amount_delivered_from_account=Decimal("70"),
        )
        loan_id = funding.loan.id
        assert ledger.account_balance("wallet") == Decimal("0")
        assert ledger.loan_status(loan_id) == LoanStatus.PENDING

        ledger.record_loan_repayment(loan_id, Decimal("60"), date(2024, 2, 1), "wallet")
        ledger.record_loan_repayment(loan_id, Decimal("40"), date(2024, 3, 1), "wallet")

        assert ledger.loan_status(loan_id) == LoanStatus.PAID
        assert ledger.loan_outstanding(loan_id) == Decimal("0")
        assert ledger.account_balance("wallet") == Decimal("100")

        repayment_events = audit_sink.of_type(AuditEventType.LOAN_REPAYMENT_RECORDED)
        assert [e.details["status"] for e in repayment_events] == ["PARTIALLY_PAID", "PAID"]

    def test_card_funded_loan(self, ledger):
        """Test card funding adds card debt instead of an expense."""
        ledger.create_loan(
            "Bo", date(2024, 1, 10), Decimal("330"), FundingSource.CREDIT_CARD,
            linked_credit_card_id="card",
            amount_delivered_from_credit=Decimal("280"),
            cost_on_credit_card=Decimal("300"),
            card_installments=3,
        )
        assert ledger.card_outstanding_debt("card") == Decimal("300")
        assert ledger.next_payment_amount("card") == Decimal("100")
        assert len(ledger.snapshot.transactions) == 1

    def test_money_box_round_trip(self, ledger):
        """Test deposits and withdrawals mirror onto the linked account."""
        ledger.deposit_to_money_box("trip", Decimal("50"), date(2024, 2, 1), linked_account_id="bank")
        assert ledger.money_box_balance("trip") == Decimal("50")
        assert ledger.account_balance("bank") == Decimal("950")
        assert ledger.goal_progress("trip") == Decimal("25")

        with pytest.raises(InsufficientFunds):
            ledger.withdraw_from_money_box("trip", Decimal("60"), date(2024, 2, 2))

        ledger.withdraw_from_money_box("trip", Decimal("20"), date(2024, 2, 3), linked_account_id="bank")
        assert ledger.money_box_balance("trip") == Decimal("30")
        assert ledger.account_balance("bank") == Decimal("970")

    def test_unknown_money_box(self, ledger):
        """Test movements on an unknown box raise NotFound."""
        with pytest.raises(NotFound):
            ledger.deposit_to_money_box("car", Decimal("10"), date(2024, 2, 1))

    def test_mark_installment_paid(self, snapshot, audit_sink):
        """Test installments are paid one at a time until settled."""
        purchase = InstallmentPurchase(
            id="tv", credit_card_id="card", description="TV",
            purchase_date=date(2024, 1, 15), total_amount=Decimal("200"), number_of_installments=2,
        )
        ledger = FinanceLedger(
            snapshot.model_copy(update={"installment_purchases": [purchase]}),
            audit_logger=AuditLogger(audit_sink),
        )
        ledger.mark_installment_paid("tv")
        ledger.mark_installment_paid("tv")

        assert ledger.card_outstanding_debt("card") == Decimal("0")
        assert [e.is_paid for e in ledger.installment_schedule("tv")] == [True, True]
        with pytest.raises(AlreadyFullyPaid):
            ledger.mark_installment_paid("tv")
        assert len(audit_sink.of_type(AuditEventType.INSTALLMENT_PAID)) == 2
