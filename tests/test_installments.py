"""Tests for credit card installment amortization."""

import pytest
from datetime import date
from decimal import Decimal

from finledger.engine import installments
from finledger.engine.errors import AlreadyFullyPaid
from finledger.models.records import InstallmentPurchase


def _purchase(total="300", count=3, paid=0, purchased=date(2024, 1, 15), card_id="card"):
    return InstallmentPurchase(
        credit_card_id=card_id,
        description="Television",
        purchase_date=purchased,
        total_amount=Decimal(total),
        number_of_installments=count,
        installments_paid=paid,
    )


class TestInstallmentValues:
    """Tests for installment value and outstanding debt."""

    def test_installment_value(self):
        """Test the value is total divided by count."""
        assert installments.installment_value(_purchase()) == Decimal("100")

    def test_outstanding_debt(self):
        """Test outstanding debt counts unpaid installments."""
        assert installments.outstanding_debt(_purchase(paid=1)) == Decimal("200")

    def test_remainder_is_not_adjusted(self):
        """Test uneven totals keep equal installments."""
        purchase = _purchase(total="100", count=3)
        assert installments.installment_value(purchase) * 3 < Decimal("100")
        assert installments.outstanding_debt(purchase) < Decimal("100")

    def test_mark_paid_until_settled(self):
        """Test paying every installment leaves exactly zero debt."""
        purchase = _purchase(total="100", count=3)
        for _ in range(3):
            purchase = installments.mark_paid(purchase)
        assert installments.is_fully_paid(purchase)
        assert installments.outstanding_debt(purchase) == Decimal("0")

        with pytest.raises(AlreadyFullyPaid) as exc_info:
            installments.mark_paid(purchase)
        assert exc_info.value.purchase_id == purchase.id

    def test_mark_paid_returns_copy(self):
        """Test the input purchase is not modified."""
        purchase = _purchase()
        paid = installments.mark_paid(purchase)
        assert purchase.installments_paid == 0
        assert paid.installments_paid == 1
        assert paid.id == purchase.id


class TestCardTotals:
    """Tests for per-card aggregates."""

    def test_card_outstanding_debt_and_limit(self, card):
        """Test only purchases on the card count against its limit."""
        purchases = [_purchase(paid=1), _purchase(total="50", count=1, card_id="other")]
        assert installments.card_outstanding_debt("card", purchases) == Decimal("200")
        assert installments.available_limit(card, purchases) == Decimal("800")
        assert installments.total_outstanding_debt(purchases) == Decimal("250")

    def test_next_payment_amount(self, card):
        """Test the oldest unpaid purchase sets the next payment."""
        purchases = [
            _purchase(total="600", count=6, purchased=date(2024, 3, 1)),
            _purchase(total="300", count=3, purchased=date(2024, 1, 1)),
            _purchase(total="90", count=1, paid=1, purchased=date(2023, 12, 1)),
        ]
        assert installments.next_payment_amount(card, purchases) == Decimal("100")

    def test_next_payment_amount_when_clear(self, card):
        """Test nothing outstanding means nothing to pay."""
        assert installments.next_payment_amount(card, [_purchase(paid=3)]) == Decimal("0")


class TestSchedule:
    """Tests for installment due dates."""

    def test_schedule_clamps_due_day(self, card):
        """Test a due day of 31 falls on each month's last day."""
        schedule = installments.installment_schedule(_purchase(paid=1), card)
        assert [entry.due_date for entry in schedule] == [
            date(2024, 1, 31),
            date(2024, 2, 29),
            date(2024, 3, 31),
        ]
        assert [entry.is_paid for entry in schedule] == [True, False, False]
        assert [entry.number for entry in schedule] == [1, 2, 3]

    def test_next_due_date(self, card):
        """Test the next due date follows the paid count."""
        assert installments.next_due_date(_purchase(paid=1), card) == date(2024, 2, 29)
        assert installments.next_due_date(_purchase(paid=3), card) is None
