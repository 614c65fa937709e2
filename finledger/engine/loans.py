"""
Loan Amortizer

Peer loans: money lent to a person and reimbursed through repayments.
Only repayments whose id is listed on the loan count towards it.

Outstanding balance is NOT clamped here. An overpaid loan reports a
negative outstanding amount and the caller decides how to show it.
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

import structlog

from finledger.engine.errors import InvalidConfiguration, NotFound
from finledger.engine.installments import installment_value
from finledger.models.records import (
    Account,
    CreditCard,
    FundingSource,
    InstallmentPurchase,
    Loan,
    LoanFunding,
    LoanRepayment,
    LoanStatus,
    RepaymentRecord,
    Transaction,
    TransactionType,
)

logger = structlog.get_logger(__name__)

ZERO = Decimal("0")


def repayments_for(loan: Loan, repayments: Iterable[LoanRepayment]) -> list[LoanRepayment]:
    """Repayments belonging to the loan, in the loan's own order."""
    by_id = {rp.id: rp for rp in repayments}
    return [by_id[rp_id] for rp_id in loan.repayment_ids if rp_id in by_id]


def total_paid(loan: Loan, repayments: Iterable[LoanRepayment]) -> Decimal:
    ids = set(loan.repayment_ids)
    return sum((rp.amount_paid for rp in repayments if rp.id in ids), ZERO)


def outstanding(loan: Loan, repayments: Iterable[LoanRepayment]) -> Decimal:
    """Amount still to be reimbursed. Negative on overpayment."""
    return loan.total_amount_to_reimburse - total_paid(loan, repayments)


def status_for_paid(loan: Loan, paid: Decimal) -> LoanStatus:
    if paid == 0:
        return LoanStatus.PENDING
    if paid < loan.total_amount_to_reimburse:
        return LoanStatus.PARTIALLY_PAID
    return LoanStatus.PAID


def loan_status(loan: Loan, repayments: Iterable[LoanRepayment]) -> LoanStatus:
    """PENDING with nothing paid, PAID once the total is reached, else PARTIALLY_PAID."""
    return status_for_paid(loan, total_paid(loan, repayments))


def progress_percent(loan: Loan, repayments: Iterable[LoanRepayment]) -> Decimal:
    """Share of the loan already reimbursed, 0 to 100."""
    if loan.total_amount_to_reimburse <= 0:
        return ZERO
    percent = total_paid(loan, repayments) / loan.total_amount_to_reimburse * 100
    return min(percent, Decimal("100"))


def can_delete_loan(
    loan: Loan,
    repayments: Iterable[LoanRepayment],
    override: bool = False,
) -> bool:
    """
    A partially repaid loan is protected from deletion.

    Loans with nothing paid, or fully paid, can always go. The override
    flag is the user's explicit confirmation.
    """
    if override:
        return True
    paid = total_paid(loan, repayments)
    return not (paid > 0 and status_for_paid(loan, paid) != LoanStatus.PAID)


def record_loan_repayment(
    loan: Loan,
    amount_paid: Decimal,
    repayment_date: date,
    credited_account_id: str,
    accounts: Optional[Iterable[Account]] = None,
    notes: Optional[str] = None,
    create_income_transaction: bool = True,
) -> RepaymentRecord:
    """
    Build a repayment for the loan.

    The repayment is appended to the loan's repayment_ids on the returned
    copy. Unless disabled, an INCOME transaction on the credited account
    is created and linked to the repayment.

    Args:
        accounts: When given, credited_account_id must be one of them

    Raises:
        InvalidConfiguration: amount_paid is not positive
        NotFound: credited account is not among accounts
    """
    if amount_paid <= 0:
        raise InvalidConfiguration("Repayment amount must be positive")
    if accounts is not None and not any(acc.id == credited_account_id for acc in accounts):
        raise NotFound("account", credited_account_id)

    income_tx = None
    if create_income_transaction:
        description = f"Loan repayment from {loan.person_name}"
        if notes:
            description += f": {notes}"
        income_tx = Transaction(
            type=TransactionType.INCOME,
            amount=amount_paid,
            date=repayment_date,
            account_id=credited_account_id,
            description=description[:500],
        )

    repayment = LoanRepayment(
        loan_id=loan.id,
        amount_paid=amount_paid,
        repayment_date=repayment_date,
        credited_account_id=credited_account_id,
        notes=notes,
        linked_income_transaction_id=income_tx.id if income_tx else None,
    )
    updated_loan = loan.model_copy(update={
        "repayment_ids": [*loan.repayment_ids, repayment.id],
    })

    logger.debug(
        "loan_repayment_built",
        loan_id=loan.id,
        repayment_id=repayment.id,
        amount=str(amount_paid),
    )
    return RepaymentRecord(repayment=repayment, income_transaction=income_tx, loan=updated_loan)


def create_loan(
    person_name: str,
    loan_date: date,
    total_amount_to_reimburse: Decimal,
    funding_source: FundingSource,
    accounts: Iterable[Account] = (),
    credit_cards: Iterable[CreditCard] = (),
    linked_account_id: Optional[str] = None,
    amount_delivered_from_account: Optional[Decimal] = None,
    linked_credit_card_id: Optional[str] = None,
    amount_delivered_from_credit: Optional[Decimal] = None,
    cost_on_credit_card: Optional[Decimal] = None,
    card_installments: Optional[int] = None,
    description: Optional[str] = None,
) -> LoanFunding:
    """
    Build a new loan together with the record that funded it.

    Account funding posts an EXPENSE of the delivered amount on the
    linked account. Card funding creates an installment purchase of the
    card cost, split into card_installments.

    Raises:
        InvalidConfiguration: missing funding amounts or installments < 1
        NotFound: linked account or card does not exist
    """
    funding_source = FundingSource(funding_source)
    loan = Loan(
        person_name=person_name,
        description=description,
        loan_date=loan_date,
        total_amount_to_reimburse=total_amount_to_reimburse,
        funding_source=funding_source,
    )
    suffix = f": {description}" if description else ""

    if funding_source == FundingSource.ACCOUNT:
        if not linked_account_id or not amount_delivered_from_account:
            raise InvalidConfiguration("Account funding needs an account and a delivered amount")
        if not any(acc.id == linked_account_id for acc in accounts):
            raise NotFound("account", linked_account_id)

        expense = Transaction(
            type=TransactionType.EXPENSE,
            amount=amount_delivered_from_account,
            date=loan_date,
            account_id=linked_account_id,
            description=f"Loan to {person_name}{suffix}"[:500],
        )
        loan = loan.model_copy(update={
            "linked_account_id": linked_account_id,
            "amount_delivered_from_account": amount_delivered_from_account,
            "linked_expense_transaction_id": expense.id,
        })
        logger.debug("loan_funded_from_account", loan_id=loan.id, account_id=linked_account_id)
        return LoanFunding(loan=loan, expense_transaction=expense)

    if not linked_credit_card_id or not cost_on_credit_card:
        raise InvalidConfiguration("Card funding needs a card and the cost on the card")
    if card_installments is None or card_installments < 1:
        raise InvalidConfiguration(
            f"Card funding needs at least one installment (got {card_installments})"
        )
    if not any(card.id == linked_credit_card_id for card in credit_cards):
        raise NotFound("credit_card", linked_credit_card_id)

    delivered = amount_delivered_from_credit or ZERO
    purchase = InstallmentPurchase(
        credit_card_id=linked_credit_card_id,
        description=f"Credit operation (loan to {person_name}, net {delivered}){suffix}"[:500],
        purchase_date=loan_date,
        total_amount=cost_on_credit_card,
        number_of_installments=card_installments,
    )
    loan = loan.model_copy(update={
        "linked_credit_card_id": linked_credit_card_id,
        "amount_delivered_from_credit": amount_delivered_from_credit,
        "cost_on_credit_card": cost_on_credit_card,
        "linked_installment_purchase_id": purchase.id,
    })
    logger.debug(
        "loan_funded_from_card",
        loan_id=loan.id,
        credit_card_id=linked_credit_card_id,
        installment_value=str(installment_value(purchase)),
    )
    return LoanFunding(loan=loan, installment_purchase=purchase)
