"""
Shared fixtures for FinLedger tests.

Every fixture builds plain records; nothing touches the network or disk.
"""

import os
from datetime import date
from decimal import Decimal

import pytest

from finledger.audit import AuditLogger, InMemoryAuditSink
from finledger.config import get_settings
from finledger.models.records import (
    Account,
    Category,
    CreditCard,
    LedgerSnapshot,
    MoneyBox,
    Transaction,
    TransactionType,
)
from finledger.orchestrator import FinanceLedger


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch):
    """Isolate every test from FINLEDGER_* variables and the settings cache."""
    for key in list(os.environ):
        if key.startswith("FINLEDGER_"):
            monkeypatch.delenv(key)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def wallet():
    return Account(id="wallet", name="Wallet", initial_balance=Decimal("100"))


@pytest.fixture
def bank():
    return Account(id="bank", name="Bank", initial_balance=Decimal("1000"))


@pytest.fixture
def groceries():
    return Category(id="groceries", name="Groceries", type=TransactionType.EXPENSE)


@pytest.fixture
def salary():
    return Category(id="salary", name="Salary", type=TransactionType.INCOME)


@pytest.fixture
def card():
    return CreditCard(id="card", name="Visa", limit=Decimal("1000"), closing_day=25, due_day=31)


@pytest.fixture
def trip_box():
    return MoneyBox(id="trip", name="Trip", goal_amount=Decimal("200"), created_at=date(2024, 1, 1))


@pytest.fixture
def snapshot(wallet, bank, groceries, salary, card, trip_box):
    return LedgerSnapshot(
        accounts=[wallet, bank],
        categories=[groceries, salary],
        credit_cards=[card],
        money_boxes=[trip_box],
        transactions=[
            Transaction(
                id="lunch",
                type=TransactionType.EXPENSE,
                amount=Decimal("30"),
                date=date(2024, 1, 5),
                account_id="wallet",
                category_id="groceries",
            ),
        ],
    )


@pytest.fixture
def audit_sink():
    return InMemoryAuditSink()


@pytest.fixture
def ledger(snapshot, audit_sink):
    return FinanceLedger(snapshot, audit_logger=AuditLogger(audit_sink))
