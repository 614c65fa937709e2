"""Typed errors raised by ledger mutations."""

from typing import Optional


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class InvalidConfiguration(LedgerError, ValueError):
    """A record or argument is configured in a way the engine cannot use."""
    pass


class NotFound(LedgerError, LookupError):
    """A mutation referenced a record that does not exist."""

    def __init__(self, entity_type: str, entity_id: Optional[str]):
        self.entity_type = entity_type
        self.entity_id = entity_id
        super().__init__(f"{entity_type} not found: {entity_id}")


class AlreadyFullyPaid(LedgerError):
    """Tried to pay an installment of a purchase with nothing left to pay."""

    def __init__(self, purchase_id: str):
        self.purchase_id = purchase_id
        super().__init__(f"Installment purchase already fully paid: {purchase_id}")


class ReferentialIntegrityViolation(LedgerError, ValueError):
    """A record references the ledger in a way that breaks its invariants."""
    pass


class InsufficientFunds(ReferentialIntegrityViolation):
    """Money-box withdrawal larger than the box balance."""
    pass
