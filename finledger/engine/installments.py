"""
Installment Amortizer

Credit-card purchases split into equal installments. The installment
value is total / count with no remainder correction on the last
installment, so outstanding debt is value x remaining installments.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

import structlog

from finledger.engine.calendar_math import add_months, clamp_day
from finledger.engine.errors import AlreadyFullyPaid, InvalidConfiguration
from finledger.models.records import (
    CreditCard,
    InstallmentPurchase,
    InstallmentScheduleEntry,
)

logger = structlog.get_logger(__name__)

ZERO = Decimal("0")


def installment_value(purchase: InstallmentPurchase) -> Decimal:
    """
    Value of a single installment.

    Raises:
        InvalidConfiguration: number_of_installments is not positive
    """
    if purchase.number_of_installments <= 0:
        raise InvalidConfiguration(
            f"Purchase {purchase.id} has {purchase.number_of_installments} installments"
        )
    return purchase.total_amount / purchase.number_of_installments


def remaining_installments(purchase: InstallmentPurchase) -> int:
    return max(purchase.number_of_installments - purchase.installments_paid, 0)


def is_fully_paid(purchase: InstallmentPurchase) -> bool:
    return purchase.installments_paid >= purchase.number_of_installments


def outstanding_debt(purchase: InstallmentPurchase) -> Decimal:
    """Amount still owed on the purchase."""
    remaining = remaining_installments(purchase)
    if remaining == 0:
        return ZERO
    return installment_value(purchase) * remaining


def total_outstanding_debt(purchases: Iterable[InstallmentPurchase]) -> Decimal:
    return sum((outstanding_debt(p) for p in purchases), ZERO)


def card_outstanding_debt(
    card_id: str,
    purchases: Iterable[InstallmentPurchase],
) -> Decimal:
    return total_outstanding_debt(p for p in purchases if p.credit_card_id == card_id)


def available_limit(card: CreditCard, purchases: Iterable[InstallmentPurchase]) -> Decimal:
    """Card limit minus the debt of its purchases. Can go negative."""
    return card.limit - card_outstanding_debt(card.id, purchases)


def mark_paid(purchase: InstallmentPurchase) -> InstallmentPurchase:
    """
    Return a copy with one more installment paid.

    Raises:
        AlreadyFullyPaid: every installment is already paid
    """
    if is_fully_paid(purchase):
        raise AlreadyFullyPaid(purchase.id)
    paid = purchase.model_copy(update={"installments_paid": purchase.installments_paid + 1})
    logger.debug(
        "installment_marked_paid",
        purchase_id=purchase.id,
        installments_paid=paid.installments_paid,
        number_of_installments=paid.number_of_installments,
    )
    return paid


def _due_date_for_cycle(purchase: InstallmentPurchase, card: CreditCard, cycle: int) -> date:
    cycle_month = add_months(purchase.purchase_date.replace(day=1), cycle)
    return clamp_day(cycle_month.year, cycle_month.month, card.due_day)


def next_due_date(purchase: InstallmentPurchase, card: CreditCard) -> Optional[date]:
    """
    Due date of the next unpaid installment.

    The card's due day in the month installments_paid months after the
    purchase month (clamped to the month's last day). None once the
    purchase is fully paid.
    """
    if is_fully_paid(purchase):
        return None
    return _due_date_for_cycle(purchase, card, purchase.installments_paid)


def installment_schedule(
    purchase: InstallmentPurchase,
    card: CreditCard,
) -> list[InstallmentScheduleEntry]:
    """Every installment of the purchase with its due date and paid flag."""
    value = installment_value(purchase)
    return [
        InstallmentScheduleEntry(
            number=cycle + 1,
            due_date=_due_date_for_cycle(purchase, card, cycle),
            amount=value,
            is_paid=cycle < purchase.installments_paid,
        )
        for cycle in range(purchase.number_of_installments)
    ]


def next_payment_amount(
    card: CreditCard,
    purchases: Iterable[InstallmentPurchase],
) -> Decimal:
    """
    Installment value of the oldest purchase on the card still being paid.

    Zero when nothing is outstanding.
    """
    upcoming: Optional[InstallmentPurchase] = min(
        (
            p for p in purchases
            if p.credit_card_id == card.id and not is_fully_paid(p)
        ),
        key=lambda p: p.purchase_date,
        default=None,
    )
    if upcoming is None:
        return ZERO
    return installment_value(upcoming)
