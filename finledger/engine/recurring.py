"""
Recurring Scheduler

Turns recurring templates into concrete transactions.

State machine per template:

    ACTIVE --pause--> PAUSED --resume--> ACTIVE
    ACTIVE --post--> ACTIVE | EXHAUSTED

EXHAUSTED is terminal and derived, never stored: a template is
exhausted once remaining_occurrences hits 0 or next_due_date has moved
past end_date.

Posting only happens while next_due_date <= today, and every posting
moves next_due_date forward. Running process_due twice against the
templates it returned therefore posts nothing the second time.
"""

from datetime import date, timedelta
from decimal import Decimal
from typing import Iterable, Optional

import structlog

from finledger.engine.calendar_math import advance, first_due_date
from finledger.engine.errors import InvalidConfiguration, LedgerError
from finledger.models.records import (
    Account,
    BillsAlerts,
    Category,
    Frequency,
    ProcessDueResult,
    RecurringState,
    RecurringTransaction,
    Transaction,
    TransactionType,
)
from finledger.validation.validator import RecordValidator

logger = structlog.get_logger(__name__)


def state_of(template: RecurringTransaction) -> RecurringState:
    """Current lifecycle state. Exhaustion wins over pausing."""
    if template.remaining_occurrences is not None and template.remaining_occurrences <= 0:
        return RecurringState.EXHAUSTED
    if template.end_date is not None and template.next_due_date > template.end_date:
        return RecurringState.EXHAUSTED
    if template.is_paused:
        return RecurringState.PAUSED
    return RecurringState.ACTIVE


def is_due(template: RecurringTransaction, today: date) -> bool:
    return state_of(template) == RecurringState.ACTIVE and template.next_due_date <= today


def pause(template: RecurringTransaction) -> RecurringTransaction:
    """Stop posting. next_due_date is left untouched."""
    return template.model_copy(update={"is_paused": True})


def resume(template: RecurringTransaction) -> RecurringTransaction:
    """
    Start posting again from the same next_due_date.

    Cycles missed while paused are caught up by the next process_due.
    """
    return template.model_copy(update={"is_paused": False})


def new_recurring_transaction(
    description: str,
    amount: Decimal,
    type: TransactionType,
    account_id: str,
    frequency: Frequency,
    start_date: date,
    custom_interval_days: Optional[int] = None,
    end_date: Optional[date] = None,
    occurrences: Optional[int] = None,
    category_id: Optional[str] = None,
    to_account_id: Optional[str] = None,
    notes: Optional[str] = None,
) -> RecurringTransaction:
    """
    Build a fresh template with its scheduling fields initialized.

    remaining_occurrences starts at occurrences and next_due_date at
    start_date.

    Raises:
        InvalidConfiguration: custom_days without a positive interval,
            or occurrences below 1
    """
    frequency = Frequency(frequency)
    if frequency == Frequency.CUSTOM_DAYS:
        # Surface a bad interval now instead of at the first posting.
        advance(start_date, frequency, custom_interval_days)
    if occurrences is not None and occurrences < 1:
        raise InvalidConfiguration(f"Occurrences must be positive (got {occurrences})")

    return RecurringTransaction(
        description=description,
        amount=amount,
        type=type,
        account_id=account_id,
        to_account_id=to_account_id,
        category_id=category_id,
        frequency=frequency,
        custom_interval_days=custom_interval_days,
        start_date=start_date,
        end_date=end_date,
        occurrences=occurrences,
        remaining_occurrences=occurrences,
        next_due_date=first_due_date(start_date, frequency, None, custom_interval_days),
        notes=notes,
    )


def post_once(
    template: RecurringTransaction,
    validator: Optional[RecordValidator] = None,
) -> tuple[Transaction, RecurringTransaction]:
    """
    Materialize the template's current due date into a transaction.

    Returns the new transaction and the advanced template. Nothing is
    produced when any step fails, so a failed posting leaves the
    template exactly as it was.

    Raises:
        InvalidConfiguration: template is not ACTIVE, or its interval is invalid
        ReferentialIntegrityViolation: the validator rejected the transaction
    """
    state = state_of(template)
    if state != RecurringState.ACTIVE:
        raise InvalidConfiguration(f"Template is {state.value.lower()}, cannot post")

    due = template.next_due_date
    following = advance(due, template.frequency, template.custom_interval_days)

    transaction = Transaction(
        type=template.type,
        amount=template.amount,
        date=due,
        account_id=template.account_id,
        to_account_id=template.to_account_id,
        category_id=template.category_id,
        description=template.description,
    )
    if validator is not None:
        validator.ensure_valid(transaction)

    remaining = template.remaining_occurrences
    if remaining is not None:
        remaining -= 1

    advanced = template.model_copy(update={
        "last_posted_date": due,
        "next_due_date": following,
        "remaining_occurrences": remaining,
    })
    return transaction, advanced


def process_due(
    templates: Iterable[RecurringTransaction],
    today: date,
    accounts: Optional[Iterable[Account]] = None,
    categories: Optional[Iterable[Category]] = None,
    max_cycles: Optional[int] = None,
) -> ProcessDueResult:
    """
    Post every due cycle of every active template.

    Backlogs are caught up in full: a template three months behind posts
    three transactions, one per missed cycle, in date order. Only when
    max_cycles is given are postings capped per template per call; the
    rest then stays due for the next call.

    A failing template is recorded in errors and skipped. Postings it
    made before failing are kept, and its returned state matches them.

    Args:
        templates: All templates; the result lists them in the same order
        today: The caller's current date
        accounts: Known accounts. When given, postings against missing
            accounts fail instead of being created.
        categories: Known categories, for warnings only
        max_cycles: Optional per-template cap; None means unbounded
    """
    if max_cycles is not None and max_cycles < 1:
        raise InvalidConfiguration(f"max_cycles must be at least 1 (got {max_cycles})")

    validator = RecordValidator(accounts=accounts, categories=categories)
    result = ProcessDueResult()

    for template in templates:
        current = template
        cycles = 0
        try:
            while (max_cycles is None or cycles < max_cycles) and is_due(current, today):
                transaction, current = post_once(current, validator)
                result.posted.append(transaction)
                cycles += 1
        except (LedgerError, ValueError) as e:
            result.errors.append(f"{template.id} ({template.description}): {e}")
            logger.warning(
                "recurring_posting_failed",
                template_id=template.id,
                error=str(e),
                posted_before_failure=cycles,
            )

        if cycles:
            logger.info(
                "recurring_template_posted",
                template_id=template.id,
                postings=cycles,
                next_due_date=current.next_due_date.isoformat(),
                state=state_of(current).value,
            )
        result.updated_templates.append(current)

    return result


def bills_alerts(
    templates: Iterable[RecurringTransaction],
    today: date,
    window_days: int = 7,
) -> BillsAlerts:
    """
    Active templates that are overdue or due within window_days.

    Overdue: next_due_date before today. Upcoming: from today up to
    today + window_days, inclusive. Both sorted by due date.
    """
    horizon = today + timedelta(days=window_days)
    active = [t for t in templates if state_of(t) == RecurringState.ACTIVE]
    overdue = sorted(
        (t for t in active if t.next_due_date < today),
        key=lambda t: t.next_due_date,
    )
    upcoming = sorted(
        (t for t in active if today <= t.next_due_date <= horizon),
        key=lambda t: t.next_due_date,
    )
    return BillsAlerts(overdue=overdue, upcoming=upcoming)
