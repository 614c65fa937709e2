"""
Reference Queries

DESIGN DECISION: The ledger never deletes anything itself. Deletion
belongs to whoever owns persistence, but the rules for WHEN a record
may be deleted live here, next to the data they protect.

Each *_references method lists, in plain words, what still points at
a record. A record can be deleted when that list is empty.

detach_transaction is the one cascade: deleting a transaction clears
the links other records hold to it instead of blocking.
"""

from typing import Optional

from finledger.engine.loans import can_delete_loan
from finledger.models.records import LedgerSnapshot


class ReferenceChecker:
    """
    Answers "what still references this record?" over a snapshot.

    GUARANTEES:
    - Read-only: the snapshot is never modified
    - Unknown ids are not errors, they simply have no references
    """

    def __init__(self, snapshot: LedgerSnapshot):
        self._snapshot = snapshot

    def account_references(self, account_id: str) -> list[str]:
        """Everything that keeps an account from being deleted."""
        snap = self._snapshot
        blockers = []

        tx_count = sum(
            1 for t in snap.transactions
            if t.account_id == account_id or t.to_account_id == account_id
        )
        if tx_count:
            blockers.append(f"{tx_count} transaction(s) use this account")

        box_count = sum(
            1 for mbt in snap.money_box_transactions
            if mbt.linked_account_id == account_id
        )
        if box_count:
            blockers.append(f"{box_count} money box movement(s) are linked to this account")

        rt_count = sum(
            1 for rt in snap.recurring_transactions
            if rt.account_id == account_id or rt.to_account_id == account_id
        )
        if rt_count:
            blockers.append(f"{rt_count} recurring transaction(s) use this account")

        repayments_by_id = {rp.id: rp for rp in snap.loan_repayments}
        loan_count = 0
        for loan in snap.loans:
            credited = any(
                repayments_by_id[rp_id].credited_account_id == account_id
                for rp_id in loan.repayment_ids
                if rp_id in repayments_by_id
            )
            if loan.linked_account_id == account_id or credited:
                loan_count += 1
        if loan_count:
            blockers.append(f"{loan_count} loan(s) were funded from or repaid to this account")

        return blockers

    def can_delete_account(self, account_id: str) -> bool:
        return not self.account_references(account_id)

    def category_references(self, category_id: str) -> list[str]:
        snap = self._snapshot
        blockers = []

        tx_count = sum(1 for t in snap.transactions if t.category_id == category_id)
        if tx_count:
            blockers.append(f"{tx_count} transaction(s) use this category")

        rt_count = sum(1 for rt in snap.recurring_transactions if rt.category_id == category_id)
        if rt_count:
            blockers.append(f"{rt_count} recurring transaction(s) use this category")

        return blockers

    def can_delete_category(self, category_id: str) -> bool:
        return not self.category_references(category_id)

    def credit_card_references(self, card_id: str) -> list[str]:
        snap = self._snapshot
        blockers = []

        purchase_count = sum(1 for p in snap.installment_purchases if p.credit_card_id == card_id)
        if purchase_count:
            blockers.append(f"{purchase_count} installment purchase(s) are on this card")

        loan_count = sum(1 for loan in snap.loans if loan.linked_credit_card_id == card_id)
        if loan_count:
            blockers.append(f"{loan_count} loan(s) were funded with this card")

        return blockers

    def can_delete_credit_card(self, card_id: str) -> bool:
        return not self.credit_card_references(card_id)

    def installment_purchase_references(self, purchase_id: str) -> list[str]:
        loan_count = sum(
            1 for loan in self._snapshot.loans
            if loan.linked_installment_purchase_id == purchase_id
        )
        if loan_count:
            return [f"{loan_count} loan(s) were funded by this purchase"]
        return []

    def can_delete_installment_purchase(self, purchase_id: str) -> bool:
        return not self.installment_purchase_references(purchase_id)

    def can_delete_loan(self, loan_id: str, override: bool = False) -> bool:
        """
        Partially repaid loans are protected unless override is set.
        """
        loan = self._snapshot.find_loan(loan_id)
        if loan is None:
            return True
        return can_delete_loan(loan, self._snapshot.loan_repayments, override=override)

    def transaction_links(self, transaction_id: str) -> int:
        """How many records hold a link to the transaction."""
        snap = self._snapshot
        return (
            sum(1 for mbt in snap.money_box_transactions if mbt.linked_transaction_id == transaction_id)
            + sum(1 for loan in snap.loans if loan.linked_expense_transaction_id == transaction_id)
            + sum(1 for rp in snap.loan_repayments if rp.linked_income_transaction_id == transaction_id)
        )


def detach_transaction(
    transaction_id: str,
    snapshot: LedgerSnapshot,
) -> Optional[LedgerSnapshot]:
    """
    Snapshot without the transaction, with every link to it cleared.

    Money box movements lose their account link, loans lose their
    funding link, repayments lose their income link. The movements,
    loans and repayments themselves are kept. Returns None when the
    transaction is not in the snapshot.
    """
    if not any(t.id == transaction_id for t in snapshot.transactions):
        return None

    money_box_transactions = [
        mbt.model_copy(update={"linked_transaction_id": None, "linked_account_id": None})
        if mbt.linked_transaction_id == transaction_id else mbt
        for mbt in snapshot.money_box_transactions
    ]
    loans = [
        loan.model_copy(update={"linked_expense_transaction_id": None, "linked_account_id": None})
        if loan.linked_expense_transaction_id == transaction_id else loan
        for loan in snapshot.loans
    ]
    repayments = [
        rp.model_copy(update={"linked_income_transaction_id": None})
        if rp.linked_income_transaction_id == transaction_id else rp
        for rp in snapshot.loan_repayments
    ]

    return snapshot.model_copy(update={
        "transactions": [t for t in snapshot.transactions if t.id != transaction_id],
        "money_box_transactions": money_box_transactions,
        "loans": loans,
        "loan_repayments": repayments,
    })
