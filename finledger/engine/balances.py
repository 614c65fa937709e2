"""
Balance Ledger

Balances are folds over the transaction history. Nothing here keeps
state: every balance is recomputed from the records passed in, and
the sums are commutative so the order of the input never matters.

Unknown accounts or boxes are not errors for the queries. They simply
contribute nothing beyond their opening balance (zero when there is
no account record at all, and always zero for money boxes).
"""

from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

import structlog

from finledger.engine.errors import InsufficientFunds, InvalidConfiguration, NotFound
from finledger.models.records import (
    Account,
    MoneyBox,
    MoneyBoxMovement,
    MoneyBoxTransaction,
    MoneyBoxTransactionType,
    Transaction,
    TransactionType,
)

logger = structlog.get_logger(__name__)

ZERO = Decimal("0")


def account_flow(account_id: str, transactions: Iterable[Transaction]) -> Decimal:
    """Net effect of the transactions on one account, opening balance excluded."""
    total = ZERO
    for tx in transactions:
        if tx.type == TransactionType.INCOME:
            if tx.account_id == account_id:
                total += tx.amount
        elif tx.type == TransactionType.EXPENSE:
            if tx.account_id == account_id:
                total -= tx.amount
        else:
            # A transfer onto the same account nets to zero.
            if tx.account_id == account_id:
                total -= tx.amount
            if tx.to_account_id == account_id:
                total += tx.amount
    return total


def account_balance(
    account_id: str,
    transactions: Iterable[Transaction],
    accounts: Iterable[Account] = (),
) -> Decimal:
    """
    Current balance of an account.

    initial_balance + income - expense - transfers out + transfers in.
    The opening balance comes from the matching record in accounts,
    zero when there is none.
    """
    opening = next(
        (acc.initial_balance for acc in accounts if acc.id == account_id),
        ZERO,
    )
    return opening + account_flow(account_id, transactions)


def balance_of(account: Account, transactions: Iterable[Transaction]) -> Decimal:
    """Balance of an account record."""
    return account.initial_balance + account_flow(account.id, transactions)


def money_box_balance(
    money_box_id: str,
    money_box_transactions: Iterable[MoneyBoxTransaction],
) -> Decimal:
    """Deposits minus withdrawals for one money box."""
    total = ZERO
    for mbt in money_box_transactions:
        if mbt.money_box_id != money_box_id:
            continue
        if mbt.type == MoneyBoxTransactionType.DEPOSIT:
            total += mbt.amount
        else:
            total -= mbt.amount
    return total


def total_account_balance(
    accounts: Iterable[Account],
    transactions: Iterable[Transaction],
) -> Decimal:
    transactions = list(transactions)
    return sum((balance_of(acc, transactions) for acc in accounts), ZERO)


def total_money_box_balance(
    money_boxes: Iterable[MoneyBox],
    money_box_transactions: Iterable[MoneyBoxTransaction],
) -> Decimal:
    money_box_transactions = list(money_box_transactions)
    return sum(
        (money_box_balance(box.id, money_box_transactions) for box in money_boxes),
        ZERO,
    )


def goal_progress(money_box: MoneyBox, balance: Decimal) -> Optional[Decimal]:
    """
    Percentage of the goal reached, capped at 100.

    None when the box has no goal. A negative balance counts as 0%.
    """
    if not money_box.goal_amount:
        return None
    percent = balance / money_box.goal_amount * 100
    return max(ZERO, min(percent, Decimal("100")))


def can_withdraw(
    money_box_id: str,
    amount: Decimal,
    money_box_transactions: Iterable[MoneyBoxTransaction],
) -> bool:
    return amount <= money_box_balance(money_box_id, money_box_transactions)


# =============================================================================
# MONEY BOX MOVEMENTS
# =============================================================================

def _money_box_movement(
    movement_type: MoneyBoxTransactionType,
    money_box: MoneyBox,
    amount: Decimal,
    on_date: date,
    accounts: Iterable[Account],
    linked_account_id: Optional[str],
    description: Optional[str],
) -> MoneyBoxMovement:
    if amount <= 0:
        raise InvalidConfiguration(f"Money box {movement_type.value.lower()} must be positive")

    box_tx = MoneyBoxTransaction(
        money_box_id=money_box.id,
        type=movement_type,
        amount=amount,
        date=on_date,
        description=description,
    )
    if linked_account_id is None:
        return MoneyBoxMovement(box_transaction=box_tx)

    if not any(acc.id == linked_account_id for acc in accounts):
        raise NotFound("account", linked_account_id)

    # Money leaving the account goes into the box, and vice versa.
    if movement_type == MoneyBoxTransactionType.DEPOSIT:
        tx_type = TransactionType.EXPENSE
        label = "Deposit to money box"
    else:
        tx_type = TransactionType.INCOME
        label = "Withdrawal from money box"
    tx_description = f"{label}: {money_box.name}"
    if description:
        tx_description += f" ({description})"

    account_tx = Transaction(
        type=tx_type,
        amount=amount,
        date=on_date,
        account_id=linked_account_id,
        description=tx_description[:500],
    )
    box_tx = box_tx.model_copy(update={
        "linked_account_id": linked_account_id,
        "linked_transaction_id": account_tx.id,
    })
    return MoneyBoxMovement(box_transaction=box_tx, account_transaction=account_tx)


def deposit_to_money_box(
    money_box: MoneyBox,
    amount: Decimal,
    on_date: date,
    accounts: Iterable[Account] = (),
    linked_account_id: Optional[str] = None,
    description: Optional[str] = None,
) -> MoneyBoxMovement:
    """
    Build a deposit, optionally funded from a regular account.

    With linked_account_id, an EXPENSE on that account is created and
    linked to the deposit.

    Raises:
        InvalidConfiguration: amount is not positive
        NotFound: linked_account_id is not in accounts
    """
    movement = _money_box_movement(
        MoneyBoxTransactionType.DEPOSIT, money_box, amount, on_date,
        accounts, linked_account_id, description,
    )
    logger.debug("money_box_deposit_built", money_box_id=money_box.id, amount=str(amount))
    return movement


def withdraw_from_money_box(
    money_box: MoneyBox,
    amount: Decimal,
    on_date: date,
    money_box_transactions: Iterable[MoneyBoxTransaction],
    accounts: Iterable[Account] = (),
    linked_account_id: Optional[str] = None,
    description: Optional[str] = None,
) -> MoneyBoxMovement:
    """
    Build a withdrawal, optionally released to a regular account.

    Raises:
        InsufficientFunds: amount exceeds the current box balance
        InvalidConfiguration: amount is not positive
        NotFound: linked_account_id is not in accounts
    """
    balance = money_box_balance(money_box.id, money_box_transactions)
    if amount > balance:
        raise InsufficientFunds(
            f"Cannot withdraw {amount} from money box {money_box.id} (balance {balance})"
        )
    movement = _money_box_movement(
        MoneyBoxTransactionType.WITHDRAWAL, money_box, amount, on_date,
        accounts, linked_account_id, description,
    )
    logger.debug("money_box_withdrawal_built", money_box_id=money_box.id, amount=str(amount))
    return movement
