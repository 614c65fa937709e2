"""
Main Orchestrator for FinLedger

This module ties the pure engine functions to one ledger snapshot and
defines the mutation flows:
1. Posting (validate -> append -> audit)
2. Scheduling (process due templates -> append postings -> audit)
3. Side-postings (loans, repayments, money boxes, installments)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is appended unless the engine accepted it
- A failed mutation leaves the snapshot untouched
- Every mutation is audited under one correlation id

The engine never sees settings, audit loggers or snapshots it does not
need. Everything stateful lives here.
"""

from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog

from finledger.audit import AuditLogger, create_correlation_id
from finledger.config import Settings, get_settings
from finledger.engine import balances, budgets, installments, loans, net_worth, recurring
from finledger.engine.errors import NotFound, ReferentialIntegrityViolation
from finledger.models.records import (
    BillsAlerts,
    BudgetSummary,
    FundingSource,
    InstallmentPurchase,
    InstallmentScheduleEntry,
    LedgerSnapshot,
    LoanFunding,
    LoanStatus,
    MoneyBoxMovement,
    NetWorthBreakdown,
    ProcessDueResult,
    RecurringState,
    RecurringTransaction,
    RepaymentRecord,
    Transaction,
)
from finledger.queries import ReferenceChecker, detach_transaction
from finledger.validation import RecordValidator

logger = structlog.get_logger(__name__)


def _replace(items: list, updated) -> list:
    """Copy of items with the record sharing updated's id swapped in."""
    return [updated if item.id == updated.id else item for item in items]


class FinanceLedger:
    """
    A ledger bound to one snapshot.

    Queries read self.snapshot. Mutations build a new snapshot and
    replace self.snapshot with it; the previous snapshot object is
    never modified, so callers holding it keep a consistent view.
    """

    def __init__(
        self,
        snapshot: Optional[LedgerSnapshot] = None,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[Settings] = None,
    ):
        self.snapshot = snapshot if snapshot is not None else LedgerSnapshot()
        self._audit_logger = audit_logger
        self._settings = settings or get_settings()

    @property
    def references(self) -> ReferenceChecker:
        return ReferenceChecker(self.snapshot)

    def _validator(self) -> RecordValidator:
        return RecordValidator(
            accounts=self.snapshot.accounts,
            categories=self.snapshot.categories,
        )

    # =========================================================================
    # Lookups
    # =========================================================================

    def _money_box(self, money_box_id: str):
        box = self.snapshot.find_money_box(money_box_id)
        if box is None:
            raise NotFound("money_box", money_box_id)
        return box

    def _loan(self, loan_id: str):
        loan = self.snapshot.find_loan(loan_id)
        if loan is None:
            raise NotFound("loan", loan_id)
        return loan

    def _purchase(self, purchase_id: str) -> InstallmentPurchase:
        purchase = self.snapshot.find_installment_purchase(purchase_id)
        if purchase is None:
            raise NotFound("installment_purchase", purchase_id)
        return purchase

    def _card(self, card_id: str):
        card = self.snapshot.find_credit_card(card_id)
        if card is None:
            raise NotFound("credit_card", card_id)
        return card

    def _template(self, template_id: str) -> RecurringTransaction:
        template = next(
            (t for t in self.snapshot.recurring_transactions if t.id == template_id),
            None,
        )
        if template is None:
            raise NotFound("recurring_transaction", template_id)
        return template

    # =========================================================================
    # Queries
    # =========================================================================

    def account_balance(self, account_id: str) -> Decimal:
        return balances.account_balance(
            account_id, self.snapshot.transactions, self.snapshot.accounts,
        )

    def money_box_balance(self, money_box_id: str) -> Decimal:
        return balances.money_box_balance(money_box_id, self.snapshot.money_box_transactions)

    def goal_progress(self, money_box_id: str) -> Optional[Decimal]:
        box = self._money_box(money_box_id)
        return balances.goal_progress(box, self.money_box_balance(money_box_id))

    def loan_status(self, loan_id: str) -> LoanStatus:
        return loans.loan_status(self._loan(loan_id), self.snapshot.loan_repayments)

    def loan_outstanding(self, loan_id: str) -> Decimal:
        """Unclamped: negative when the loan was overpaid."""
        return loans.outstanding(self._loan(loan_id), self.snapshot.loan_repayments)

    def loan_progress(self, loan_id: str) -> Decimal:
        return loans.progress_percent(self._loan(loan_id), self.snapshot.loan_repayments)

    def installment_schedule(self, purchase_id: str) -> list[InstallmentScheduleEntry]:
        purchase = self._purchase(purchase_id)
        return installments.installment_schedule(purchase, self._card(purchase.credit_card_id))

    def next_due_date(self, purchase_id: str) -> Optional[date]:
        """None once the purchase is fully paid."""
        purchase = self._purchase(purchase_id)
        return installments.next_due_date(purchase, self._card(purchase.credit_card_id))

    def outstanding_debt(self, purchase_id: str) -> Decimal:
        return installments.outstanding_debt(self._purchase(purchase_id))

    def card_outstanding_debt(self, card_id: str) -> Decimal:
        return installments.card_outstanding_debt(card_id, self.snapshot.installment_purchases)

    def available_limit(self, card_id: str) -> Decimal:
        return installments.available_limit(
            self._card(card_id), self.snapshot.installment_purchases,
        )

    def next_payment_amount(self, card_id: str) -> Decimal:
        return installments.next_payment_amount(
            self._card(card_id), self.snapshot.installment_purchases,
        )

    def bills_alerts(self, today: date) -> BillsAlerts:
        return recurring.bills_alerts(
            self.snapshot.recurring_transactions,
            today,
            window_days=self._settings.scheduler.upcoming_window_days,
        )

    def category_spending(self, category_id: str, month: date) -> Decimal:
        """Expense total for the category in the month containing month."""
        return budgets.category_spending(category_id, self.snapshot.transactions, month)

    def budget_summary(self, month: date) -> BudgetSummary:
        return budgets.budget_summary(
            self.snapshot.categories, self.snapshot.transactions, month,
        )

    def net_worth_breakdown(self) -> NetWorthBreakdown:
        return net_worth.snapshot_breakdown(self.snapshot)

    def net_worth(self) -> Decimal:
        return self.net_worth_breakdown().net_worth

    # =========================================================================
    # Mutations
    # =========================================================================

    def post_transaction(
        self,
        transaction: Transaction,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Validate a transaction against the snapshot and append it.

        Raises:
            ReferentialIntegrityViolation: an account does not exist or a
                transfer targets its own account
        """
        correlation_id = correlation_id or create_correlation_id()
        try:
            self._validator().ensure_valid(transaction)
        except ReferentialIntegrityViolation as e:
            if self._audit_logger:
                self._audit_logger.log_integrity_violation(
                    entity_type="transaction",
                    entity_id=transaction.id,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
            raise

        self.snapshot = self.snapshot.model_copy(update={
            "transactions": [*self.snapshot.transactions, transaction],
        })
        if self._audit_logger:
            self._audit_logger.log_transaction_posted(
                transaction_id=transaction.id,
                transaction_type=transaction.type.value,
                amount=str(transaction.amount),
                correlation_id=correlation_id,
            )
        return transaction

    def delete_transaction(self, transaction_id: str) -> None:
        """
        Remove a transaction and clear every link to it.

        Raises:
            NotFound: the transaction is not in the snapshot
        """
        detached_links = self.references.transaction_links(transaction_id)
        updated = detach_transaction(transaction_id, self.snapshot)
        if updated is None:
            raise NotFound("transaction", transaction_id)

        self.snapshot = updated
        if self._audit_logger:
            self._audit_logger.log_transaction_deleted(
                transaction_id=transaction_id,
                detached_links=detached_links,
                correlation_id=create_correlation_id(),
            )

    def mark_installment_paid(self, purchase_id: str) -> InstallmentPurchase:
        """
        Raises:
            NotFound: unknown purchase
            AlreadyFullyPaid: every installment is already paid
        """
        paid = installments.mark_paid(self._purchase(purchase_id))
        self.snapshot = self.snapshot.model_copy(update={
            "installment_purchases": _replace(self.snapshot.installment_purchases, paid),
        })
        if self._audit_logger:
            self._audit_logger.log_installment_paid(
                purchase_id=paid.id,
                installments_paid=paid.installments_paid,
                number_of_installments=paid.number_of_installments,
                correlation_id=create_correlation_id(),
            )
        return paid

    def record_loan_repayment(
        self,
        loan_id: str,
        amount_paid: Decimal,
        repayment_date: date,
        credited_account_id: str,
        notes: Optional[str] = None,
        create_income_transaction: bool = True,
    ) -> RepaymentRecord:
        record = loans.record_loan_repayment(
            self._loan(loan_id),
            amount_paid,
            repayment_date,
            credited_account_id,
            accounts=self.snapshot.accounts,
            notes=notes,
            create_income_transaction=create_income_transaction,
        )

        transactions = self.snapshot.transactions
        if record.income_transaction is not None:
            transactions = [*transactions, record.income_transaction]
        self.snapshot = self.snapshot.model_copy(update={
            "loans": _replace(self.snapshot.loans, record.loan),
            "loan_repayments": [*self.snapshot.loan_repayments, record.repayment],
            "transactions": transactions,
        })

        if self._audit_logger:
            correlation_id = create_correlation_id()
            self._audit_logger.log_loan_repayment_recorded(
                loan_id=loan_id,
                repayment_id=record.repayment.id,
                amount=str(amount_paid),
                status=self.loan_status(loan_id).value,
                correlation_id=correlation_id,
            )
            if record.income_transaction is not None:
                self._audit_logger.log_transaction_posted(
                    transaction_id=record.income_transaction.id,
                    transaction_type=record.income_transaction.type.value,
                    amount=str(amount_paid),
                    correlation_id=correlation_id,
                    is_user_action=False,
                )
        return record

    def create_loan(
        self,
        person_name: str,
        loan_date: date,
        total_amount_to_reimburse: Decimal,
        funding_source: FundingSource,
        **funding,
    ) -> LoanFunding:
        """
        Create a loan and its funding side-posting.

        funding takes the keyword arguments of engine.loans.create_loan
        (linked account or card, delivered amounts, card installments).
        """
        result = loans.create_loan(
            person_name,
            loan_date,
            total_amount_to_reimburse,
            funding_source,
            accounts=self.snapshot.accounts,
            credit_cards=self.snapshot.credit_cards,
            **funding,
        )

        update = {"loans": [*self.snapshot.loans, result.loan]}
        if result.expense_transaction is not None:
            update["transactions"] = [*self.snapshot.transactions, result.expense_transaction]
        if result.installment_purchase is not None:
            update["installment_purchases"] = [
                *self.snapshot.installment_purchases, result.installment_purchase,
            ]
        self.snapshot = self.snapshot.model_copy(update=update)

        if self._audit_logger:
            correlation_id = create_correlation_id()
            self._audit_logger.log_loan_created(
                loan_id=result.loan.id,
                person_name=person_name,
                funding_source=result.loan.funding_source.value,
                correlation_id=correlation_id,
            )
            if result.expense_transaction is not None:
                self._audit_logger.log_transaction_posted(
                    transaction_id=result.expense_transaction.id,
                    transaction_type=result.expense_transaction.type.value,
                    amount=str(result.expense_transaction.amount),
                    correlation_id=correlation_id,
                    is_user_action=False,
                )
        return result

    def _apply_movement(self, movement: MoneyBoxMovement, movement_type: str) -> None:
        update = {
            "money_box_transactions": [
                *self.snapshot.money_box_transactions, movement.box_transaction,
            ],
        }
        if movement.account_transaction is not None:
            update["transactions"] = [*self.snapshot.transactions, movement.account_transaction]
        self.snapshot = self.snapshot.model_copy(update=update)

        if self._audit_logger:
            self._audit_logger.log_money_box_movement(
                money_box_id=movement.box_transaction.money_box_id,
                movement_type=movement_type,
                amount=str(movement.box_transaction.amount),
                correlation_id=create_correlation_id(),
            )

    def deposit_to_money_box(
        self,
        money_box_id: str,
        amount: Decimal,
        on_date: date,
        linked_account_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> MoneyBoxMovement:
        movement = balances.deposit_to_money_box(
            self._money_box(money_box_id),
            amount,
            on_date,
            accounts=self.snapshot.accounts,
            linked_account_id=linked_account_id,
            description=description,
        )
        self._apply_movement(movement, "DEPOSIT")
        return movement

    def withdraw_from_money_box(
        self,
        money_box_id: str,
        amount: Decimal,
        on_date: date,
        linked_account_id: Optional[str] = None,
        description: Optional[str] = None,
    ) -> MoneyBoxMovement:
        """
        Raises:
            InsufficientFunds: amount exceeds the box balance
        """
        movement = balances.withdraw_from_money_box(
            self._money_box(money_box_id),
            amount,
            on_date,
            self.snapshot.money_box_transactions,
            accounts=self.snapshot.accounts,
            linked_account_id=linked_account_id,
            description=description,
        )
        self._apply_movement(movement, "WITHDRAWAL")
        return movement

    def pause_recurring(self, template_id: str) -> RecurringTransaction:
        paused = recurring.pause(self._template(template_id))
        self.snapshot = self.snapshot.model_copy(update={
            "recurring_transactions": _replace(self.snapshot.recurring_transactions, paused),
        })
        if self._audit_logger:
            self._audit_logger.log_recurring_paused(template_id, create_correlation_id())
        return paused

    def resume_recurring(self, template_id: str) -> RecurringTransaction:
        resumed = recurring.resume(self._template(template_id))
        self.snapshot = self.snapshot.model_copy(update={
            "recurring_transactions": _replace(self.snapshot.recurring_transactions, resumed),
        })
        if self._audit_logger:
            self._audit_logger.log_recurring_resumed(template_id, create_correlation_id())
        return resumed

    def process_due(self, today: date) -> ProcessDueResult:
        """
        Post every due recurring cycle up to today.

        Postings are appended to the transactions, templates are replaced
        by their advanced versions. Per-template failures end up in the
        result's errors and never abort the batch. Anything else the
        engine raises is audited as a system error and re-raised with
        the snapshot untouched.
        """
        max_cycles = self._settings.scheduler.max_catch_up_cycles
        correlation_id = create_correlation_id()
        combined = ProcessDueResult()

        # One template at a time so postings can be attributed in the audit trail.
        for template in self.snapshot.recurring_transactions:
            try:
                result = recurring.process_due(
                    [template],
                    today,
                    accounts=self.snapshot.accounts,
                    categories=self.snapshot.categories,
                    max_cycles=max_cycles,
                )
            except Exception as e:
                if self._audit_logger:
                    self._audit_logger.log_error(
                        error_type=type(e).__name__,
                        error_message=str(e),
                        details={
                            "template_id": template.id,
                            "today": today.isoformat(),
                        },
                        correlation_id=correlation_id,
                    )
                raise

            updated = result.updated_templates[0]
            combined.posted.extend(result.posted)
            combined.updated_templates.append(updated)
            combined.errors.extend(result.errors)

            if self._audit_logger:
                self._audit_template_run(template, updated, result, today, correlation_id)

        self.snapshot = self.snapshot.model_copy(update={
            "transactions": [*self.snapshot.transactions, *combined.posted],
            "recurring_transactions": combined.updated_templates,
        })
        logger.info(
            "process_due_completed",
            today=today.isoformat(),
            posted=combined.posted_count,
            errors=len(combined.errors),
        )
        return combined

    def _audit_template_run(
        self,
        before: RecurringTransaction,
        after: RecurringTransaction,
        result: ProcessDueResult,
        today: date,
        correlation_id: UUID,
    ) -> None:
        for tx in result.posted:
            self._audit_logger.log_recurring_posted(
                template_id=before.id,
                transaction_id=tx.id,
                due_date=tx.date.isoformat(),
                correlation_id=correlation_id,
            )
        for error in result.errors:
            self._audit_logger.log_recurring_posting_failed(
                template_id=before.id,
                error_message=error,
                correlation_id=correlation_id,
            )
        if (
            recurring.state_of(before) != RecurringState.EXHAUSTED
            and recurring.state_of(after) == RecurringState.EXHAUSTED
        ):
            self._audit_logger.log_recurring_exhausted(
                template_id=before.id,
                description=before.description,
                correlation_id=correlation_id,
            )
        limit = self._settings.scheduler.max_catch_up_cycles
        if limit is not None and not result.errors and recurring.is_due(after, today):
            self._audit_logger.log_recurring_catch_up_limited(
                template_id=before.id,
                limit=limit,
                next_due_date=after.next_due_date.isoformat(),
                correlation_id=correlation_id,
            )
