"""
Pytest fixtures for the ledger engine test suite.

Provides:
- Structured logging configuration and log capture
- Account, card and category fixtures (builders live in tests/builders.py)
- A deterministic clock, sequential id factory and a wired LedgerService
"""

import json
import logging
from decimal import Decimal
from io import StringIO

import pytest

from ledger_config import get_active_config
from ledger_kernel.domain.clock import DeterministicClock
from ledger_kernel.domain.models import Account, Card, Category, TransactionKind
from ledger_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from ledger_services import LedgerService, LedgerSnapshot
from tests.builders import TODAY, sequential_ids


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG, stream=StringIO())
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture
def captured_logs():
    """
    Capture ledger_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs):
            engine.settle(...)
            logs = captured_logs()
            assert any(r["message"] == "settlement_completed" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("ledger_kernel")
    previous_level = root.level
    root.setLevel(logging.DEBUG)
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)
    root.setLevel(previous_level)


# =============================================================================
# Engine and snapshot fixtures
# =============================================================================


@pytest.fixture
def id_factory():
    return sequential_ids()


@pytest.fixture
def clock():
    return DeterministicClock(TODAY)


@pytest.fixture
def engine_config():
    return get_active_config()


@pytest.fixture
def service(clock, engine_config, id_factory):
    return LedgerService(clock=clock, config=engine_config, id_factory=id_factory)


@pytest.fixture
def checking():
    return Account(id="acc-1", opening_balance=Decimal("1000.00"), name="Checking")


@pytest.fixture
def savings():
    return Account(id="acc-2", opening_balance=Decimal("250.00"), name="Savings")


@pytest.fixture
def card():
    return Card(
        id="C1",
        closing_day=10,
        due_day=20,
        default_account_id="acc-1",
        credit_limit=Decimal("5000.00"),
        name="Visa",
    )


@pytest.fixture
def categories():
    return {
        c.id: c
        for c in (
            Category(id="sales", name="Sales", kind=TransactionKind.INCOME),
            Category(id="rent", name="Office rent", kind=TransactionKind.EXPENSE),
            Category(id="payroll", name="Payroll", kind=TransactionKind.EXPENSE),
            Category(
                id="equipment",
                name="Equipment",
                kind=TransactionKind.EXPENSE,
                cash_flow_class="investment",
            ),
            Category(
                id="loan",
                name="Bank loan",
                kind=TransactionKind.INCOME,
                cash_flow_class="financing",
            ),
        )
    }


@pytest.fixture
def snapshot(checking, savings, card, categories):
    return LedgerSnapshot.of(
        accounts=[checking, savings],
        cards=[card],
        categories=categories.values(),
        snapshot_id="snap-1",
    )
