"""
Net Worth Aggregator

net worth = accounts + money boxes + loan receivables - card debt

Each loan's outstanding amount is clamped at zero for this aggregate
only, so an overpaid loan never inflates net worth. Money the user
received on top of the loan is already in the credited account.
"""

from decimal import Decimal
from typing import Iterable

from finledger.engine import balances, installments, loans
from finledger.models.records import (
    Account,
    InstallmentPurchase,
    LedgerSnapshot,
    Loan,
    LoanRepayment,
    MoneyBox,
    MoneyBoxTransaction,
    NetWorthBreakdown,
    Transaction,
)

ZERO = Decimal("0")


def loan_receivables(loan_list: Iterable[Loan], repayments: Iterable[LoanRepayment]) -> Decimal:
    """Sum of outstanding loan amounts, each clamped at zero."""
    repayments = list(repayments)
    return sum(
        (max(loans.outstanding(loan, repayments), ZERO) for loan in loan_list),
        ZERO,
    )


def net_worth_breakdown(
    accounts: Iterable[Account] = (),
    transactions: Iterable[Transaction] = (),
    money_boxes: Iterable[MoneyBox] = (),
    money_box_transactions: Iterable[MoneyBoxTransaction] = (),
    loan_list: Iterable[Loan] = (),
    loan_repayments: Iterable[LoanRepayment] = (),
    installment_purchases: Iterable[InstallmentPurchase] = (),
) -> NetWorthBreakdown:
    accounts_total = balances.total_account_balance(accounts, transactions)
    money_boxes_total = balances.total_money_box_balance(money_boxes, money_box_transactions)
    receivables = loan_receivables(loan_list, loan_repayments)
    card_debt = installments.total_outstanding_debt(installment_purchases)

    return NetWorthBreakdown(
        accounts_total=accounts_total,
        money_boxes_total=money_boxes_total,
        loan_receivables=receivables,
        card_debt=card_debt,
        net_worth=accounts_total + money_boxes_total + receivables - card_debt,
    )


def net_worth(
    accounts: Iterable[Account] = (),
    transactions: Iterable[Transaction] = (),
    money_boxes: Iterable[MoneyBox] = (),
    money_box_transactions: Iterable[MoneyBoxTransaction] = (),
    loan_list: Iterable[Loan] = (),
    loan_repayments: Iterable[LoanRepayment] = (),
    installment_purchases: Iterable[InstallmentPurchase] = (),
) -> Decimal:
    return net_worth_breakdown(
        accounts=accounts,
        transactions=transactions,
        money_boxes=money_boxes,
        money_box_transactions=money_box_transactions,
        loan_list=loan_list,
        loan_repayments=loan_repayments,
        installment_purchases=installment_purchases,
    ).net_worth


def snapshot_breakdown(snapshot: LedgerSnapshot) -> NetWorthBreakdown:
    """Net worth breakdown of everything in a snapshot."""
    return net_worth_breakdown(
        accounts=snapshot.accounts,
        transactions=snapshot.transactions,
        money_boxes=snapshot.money_boxes,
        money_box_transactions=snapshot.money_box_transactions,
        loan_list=snapshot.loans,
        loan_repayments=snapshot.loan_repayments,
        installment_purchases=snapshot.installment_purchases,
    )
