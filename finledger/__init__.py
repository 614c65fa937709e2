"""
FinLedger - Source Package

The derived-state core of a personal-finance tracker. Turns the
append-only records a user keeps (transactions, accounts, cards,
money boxes, peer loans, recurring bills) into balances, outstanding
debt and upcoming obligations.

DESIGN PRINCIPLES:
1. Balances are derived, never stored
2. Pure functions over explicit collections
3. "Today" is always supplied by the caller
4. Mutations return new records, inputs are never modified
5. Every mutation is auditable
"""

__version__ = "1.0.0"
__author__ = "FinLedger Team"
