"""
Ledger engine package.

Pure computations over record collections: calendar arithmetic,
balances, installment and loan amortization, recurring scheduling and
net worth.
"""

from finledger.engine.errors import (
    AlreadyFullyPaid,
    InsufficientFunds,
    InvalidConfiguration,
    LedgerError,
    NotFound,
    ReferentialIntegrityViolation,
)

__all__ = [
    "AlreadyFullyPaid",
    "InsufficientFunds",
    "InvalidConfiguration",
    "LedgerError",
    "NotFound",
    "ReferentialIntegrityViolation",
]
