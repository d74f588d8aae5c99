"""Record builders shared by the test suite."""

import itertools
from datetime import date
from decimal import Decimal

from ledger_kernel.domain.models import Transaction, TransactionKind, TransactionStatus

TODAY = date(2024, 3, 15)


def make_tx(
    tx_id: str = "tx-1",
    kind: TransactionKind = TransactionKind.EXPENSE,
    amount: str | Decimal = "-100.00",
    due: date = date(2024, 3, 10),
    launch: date | None = None,
    status: TransactionStatus = TransactionStatus.PENDING,
    **fields,
) -> Transaction:
    """Build a Transaction with sensible defaults for tests."""
    fields.setdefault("account_id", "acc-1")
    return Transaction(
        id=tx_id,
        kind=kind,
        amount=Decimal(amount),
        launch_date=launch or due,
        due_date=due,
        status=status,
        **fields,
    )


def make_income(tx_id: str = "inc-1", amount: str = "500.00", **fields) -> Transaction:
    return make_tx(tx_id, TransactionKind.INCOME, amount, **fields)


def make_expense(tx_id: str = "exp-1", amount: str = "-200.00", **fields) -> Transaction:
    return make_tx(tx_id, TransactionKind.EXPENSE, amount, **fields)


def make_transfer(
    tx_id: str = "trf-1",
    amount: str = "-300.00",
    source: str = "acc-1",
    destination: str = "acc-2",
    **fields,
) -> Transaction:
    return make_tx(
        tx_id,
        TransactionKind.TRANSFER,
        amount,
        account_id=source,
        destination_account_id=destination,
        **fields,
    )


def make_reconciled(tx: Transaction, payment_date: date | None = None) -> Transaction:
    """Mark a record as reconciled without adjustments (as imported history)."""
    return tx.with_changes(
        status=TransactionStatus.RECONCILED,
        payment_date=payment_date or tx.due_date,
    )


def sequential_ids(prefix: str = "gen"):
    """Deterministic id factory: gen-1, gen-2, ..."""
    counter = itertools.count(1)
    return lambda: f"{prefix}-{next(counter)}"
