"""
Records -- Immutable domain records consumed and produced by the engines.

Responsibility:
    Defines Transaction, Account, Card, Category, RecurrenceRule and the
    supporting value types.  These are the in-memory snapshot the
    persistence collaborator hands to the engine.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O.

Invariants enforced:
    - Amount sign agrees with kind: income >= 0, expense <= 0, transfer
      <= 0 (the source leg carries the outgoing sign).
    - Only transfers carry a destination account.
    - Persisted status is never ``overdue``; it is derived by
      ``effective_status``.
    - Payment date and settlement adjustments exist only on reconciled
      records.
    - Monetary fields are Decimal, never float.

Failure modes:
    - InvalidInputError on any violated invariant, with the offending field.
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Self
from uuid import uuid4

from ledger_kernel.domain.money import ZERO, to_money
from ledger_kernel.domain.render import render_to_dict
from ledger_kernel.exceptions import InvalidInputError


class TransactionKind(str, Enum):
    """Direction of a financial movement."""

    INCOME = "income"
    EXPENSE = "expense"
    TRANSFER = "transfer"


class TransactionStatus(str, Enum):
    """Lifecycle status.  OVERDUE is only ever derived, never stored."""

    SCHEDULED = "scheduled"
    PENDING = "pending"
    RECONCILED = "reconciled"
    OVERDUE = "overdue"


# Statuses that still count toward projections (not yet settled).
OPEN_STATUSES: frozenset[TransactionStatus] = frozenset(
    {TransactionStatus.PENDING, TransactionStatus.SCHEDULED}
)


class Frequency(str, Enum):
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    YEARLY = "yearly"


class CashFlowClass(str, Enum):
    """Activity class used by the direct cash-flow method."""

    OPERATIONAL = "operational"
    INVESTMENT = "investment"
    FINANCING = "financing"


def _coerce_enum(enum_cls: type[Enum], value: Any, field_name: str) -> Any:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as exc:
        allowed = ", ".join(m.value for m in enum_cls)
        raise InvalidInputError(field_name, f"{value!r} is not one of: {allowed}") from exc


def _require_date(value: Any, field_name: str) -> None:
    if not isinstance(value, date):
        raise InvalidInputError(field_name, f"expected a date, got {type(value).__name__}")


def _parse_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


# ---------------------------------------------------------------------------
# Recurrence
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EndPolicy:
    """
    When a recurrence stops.

    At most one of ``until`` (inclusive end date) and ``count`` (number of
    instances including the template) is set.  Neither set means the
    series only stops at the safety cap.
    """

    until: date | None = None
    count: int | None = None

    def __post_init__(self) -> None:
        if self.until is not None and self.count is not None:
            raise InvalidInputError("end_policy", "set either an end date or a count, not both")
        if self.until is not None:
            _require_date(self.until, "end_policy.until")
        if self.count is not None:
            if isinstance(self.count, bool) or not isinstance(self.count, int):
                raise InvalidInputError("end_policy.count", "must be an integer")
            if self.count < 1:
                raise InvalidInputError("end_policy.count", f"must be >= 1, got {self.count}")

    @classmethod
    def by_date(cls, until: date) -> Self:
        return cls(until=until)

    @classmethod
    def by_count(cls, count: int) -> Self:
        return cls(count=count)

    @classmethod
    def never(cls) -> Self:
        return cls()


@dataclass(frozen=True)
class RecurrenceRule:
    """Repeat a transaction every ``interval`` units of ``frequency``."""

    frequency: Frequency
    interval: int = 1
    end_policy: EndPolicy = field(default_factory=EndPolicy)

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "frequency", _coerce_enum(Frequency, self.frequency, "recurrence.frequency")
        )
        if isinstance(self.interval, bool) or not isinstance(self.interval, int):
            raise InvalidInputError("recurrence.interval", "must be an integer")
        if self.interval < 1:
            raise InvalidInputError("recurrence.interval", f"must be >= 1, got {self.interval}")


# ---------------------------------------------------------------------------
# Settlement
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SettlementAdjustments:
    """
    Amounts recorded when a transaction is reconciled.

    ``prior_account_id`` remembers which account the record pointed to
    before settlement so that undo can restore it.
    """

    paid_amount: Decimal
    interest: Decimal = ZERO
    penalty: Decimal = ZERO
    discount: Decimal = ZERO
    prior_account_id: str | None = None

    def __post_init__(self) -> None:
        for name in ("paid_amount", "interest", "penalty", "discount"):
            value = to_money(getattr(self, name), name)
            if value < ZERO:
                raise InvalidInputError(name, f"cannot be negative, got {value}")
            object.__setattr__(self, name, value)

    @property
    def realized_magnitude(self) -> Decimal:
        """paid + interest + penalty - discount."""
        return self.paid_amount + self.interest + self.penalty - self.discount


@dataclass(frozen=True)
class InstallmentInfo:
    """Position of a record inside an installment plan (1-based)."""

    current: int
    total: int

    def __post_init__(self) -> None:
        if self.total < 1 or not 1 <= self.current <= self.total:
            raise InvalidInputError(
                "installment", f"invalid position {self.current}/{self.total}"
            )

    @property
    def label(self) -> str:
        return f"{self.current}/{self.total}"


# ---------------------------------------------------------------------------
# Transaction
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Transaction:
    """
    A single financial movement.

    Contract:
        Frozen record; every change produces a new instance through
        ``with_changes``.
    Guarantees:
        - ``amount`` is a Decimal whose sign agrees with ``kind``.
        - ``status`` is never OVERDUE.
    """

    id: str
    kind: TransactionKind
    amount: Decimal
    launch_date: date
    due_date: date
    status: TransactionStatus = TransactionStatus.PENDING
    category_id: str | None = None
    payment_date: date | None = None
    account_id: str | None = None
    destination_account_id: str | None = None
    cost_center_id: str | None = None
    card_id: str | None = None
    invoice_period_id: str | None = None
    recurrence_rule: RecurrenceRule | None = None
    settlement_adjustments: SettlementAdjustments | None = None
    installment: InstallmentInfo | None = None
    description: str = ""
    parent_id: str | None = None

    def __post_init__(self) -> None:
        if not self.id:
            raise InvalidInputError("id", "transaction id is required")
        object.__setattr__(self, "kind", _coerce_enum(TransactionKind, self.kind, "kind"))
        object.__setattr__(self, "status", _coerce_enum(TransactionStatus, self.status, "status"))
        object.__setattr__(self, "amount", to_money(self.amount))
        _require_date(self.launch_date, "launch_date")
        _require_date(self.due_date, "due_date")

        if self.status == TransactionStatus.OVERDUE:
            raise InvalidInputError("status", "overdue is derived from due date and cannot be stored")

        if self.kind == TransactionKind.INCOME and self.amount < ZERO:
            raise InvalidInputError("amount", f"income must be >= 0, got {self.amount}")
        if self.kind in (TransactionKind.EXPENSE, TransactionKind.TRANSFER) and self.amount > ZERO:
            raise InvalidInputError("amount", f"{self.kind.value} must be <= 0, got {self.amount}")

        if self.destination_account_id is not None:
            if self.kind != TransactionKind.TRANSFER:
                raise InvalidInputError("destination_account_id", "only transfers have a destination")
            if self.destination_account_id == self.account_id:
                raise InvalidInputError("destination_account_id", "must differ from the source account")

        if self.status != TransactionStatus.RECONCILED:
            if self.payment_date is not None:
                raise InvalidInputError("payment_date", "only reconciled transactions carry a payment date")
            if self.settlement_adjustments is not None:
                raise InvalidInputError(
                    "settlement_adjustments", "only reconciled transactions carry adjustments"
                )
        if self.payment_date is not None:
            _require_date(self.payment_date, "payment_date")

    # -- derived views ------------------------------------------------------

    @property
    def magnitude(self) -> Decimal:
        return abs(self.amount)

    @property
    def direction(self) -> int:
        """+1 for income, -1 for expenses and outgoing transfer legs."""
        return 1 if self.kind == TransactionKind.INCOME else -1

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_STATUSES

    @property
    def is_reconciled(self) -> bool:
        return self.status == TransactionStatus.RECONCILED

    def effective_status(self, today: date) -> TransactionStatus:
        """Persisted status, with pending items past due read as OVERDUE."""
        if self.status == TransactionStatus.PENDING and self.due_date < today:
            return TransactionStatus.OVERDUE
        return self.status

    def signed_effect(self, account_id: str) -> Decimal:
        """Movement this record causes on one account (zero if unrelated)."""
        effect = ZERO
        if self.account_id == account_id:
            effect += self.amount
        if self.kind == TransactionKind.TRANSFER and self.destination_account_id == account_id:
            effect += self.magnitude
        return effect

    def touches_account(self, account_id: str) -> bool:
        return self.account_id == account_id or self.destination_account_id == account_id

    def with_changes(self, **changes: Any) -> Transaction:
        return dataclasses.replace(self, **changes)

    # -- boundary converters ------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return render_to_dict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Transaction:
        """
        Build a record from plain data (ISO date strings, string amounts).

        A stored ``overdue`` status is read back as ``pending``.
        """
        status = data.get("status", TransactionStatus.PENDING.value)
        if status in (TransactionStatus.OVERDUE, TransactionStatus.OVERDUE.value):
            status = TransactionStatus.PENDING

        rule_data = data.get("recurrence_rule")
        rule = None
        if rule_data:
            end = rule_data.get("end_policy") or {}
            rule = RecurrenceRule(
                frequency=rule_data["frequency"],
                interval=int(rule_data.get("interval", 1)),
                end_policy=EndPolicy(
                    until=_parse_date(end.get("until")),
                    count=end.get("count"),
                ),
            )

        adj_data = data.get("settlement_adjustments")
        adjustments = None
        if adj_data:
            adjustments = SettlementAdjustments(
                paid_amount=to_money(adj_data["paid_amount"], "paid_amount"),
                interest=to_money(adj_data.get("interest", "0"), "interest"),
                penalty=to_money(adj_data.get("penalty", "0"), "penalty"),
                discount=to_money(adj_data.get("discount", "0"), "discount"),
                prior_account_id=adj_data.get("prior_account_id"),
            )

        inst_data = data.get("installment")
        installment = (
            InstallmentInfo(int(inst_data["current"]), int(inst_data["total"]))
            if inst_data
            else None
        )

        return cls(
            id=str(data["id"]),
            kind=data["kind"],
            amount=to_money(data["amount"]),
            launch_date=_parse_date(data["launch_date"]),
            due_date=_parse_date(data["due_date"]),
            status=status,
            category_id=data.get("category_id"),
            payment_date=_parse_date(data.get("payment_date")),
            account_id=data.get("account_id"),
            destination_account_id=data.get("destination_account_id"),
            cost_center_id=data.get("cost_center_id"),
            card_id=data.get("card_id"),
            invoice_period_id=data.get("invoice_period_id"),
            recurrence_rule=rule,
            settlement_adjustments=adjustments,
            installment=installment,
            description=data.get("description", ""),
            parent_id=data.get("parent_id"),
        )


# ---------------------------------------------------------------------------
# Reference records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Account:
    """Bank account with the balance it held on ``opening_balance_date``."""

    id: str
    opening_balance: Decimal = ZERO
    opening_balance_date: date | None = None
    name: str = ""

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "opening_balance", to_money(self.opening_balance, "opening_balance")
        )


@dataclass(frozen=True)
class Card:
    """Credit card; ``closing_day`` and ``due_day`` are days of the month."""

    id: str
    closing_day: int
    due_day: int
    default_account_id: str | None = None
    credit_limit: Decimal | None = None
    name: str = ""

    def __post_init__(self) -> None:
        for name in ("closing_day", "due_day"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or not 1 <= value <= 31:
                raise InvalidInputError(name, f"must be an integer in 1..31, got {value!r}")
        if self.credit_limit is not None:
            limit = to_money(self.credit_limit, "credit_limit")
            if limit < ZERO:
                raise InvalidInputError("credit_limit", f"cannot be negative, got {limit}")
            object.__setattr__(self, "credit_limit", limit)


@dataclass(frozen=True)
class Category:
    """
    Transaction category.

    ``parent_id`` forms the category tree; ``cash_flow_class`` drives the
    direct cash-flow method; ``statement_line`` pins the income-statement
    line instead of keyword classification.
    """

    id: str
    name: str = ""
    kind: TransactionKind | None = None
    parent_id: str | None = None
    cash_flow_class: CashFlowClass = CashFlowClass.OPERATIONAL
    statement_line: str | None = None

    def __post_init__(self) -> None:
        if self.kind is not None:
            object.__setattr__(self, "kind", _coerce_enum(TransactionKind, self.kind, "category.kind"))
        object.__setattr__(
            self,
            "cash_flow_class",
            _coerce_enum(CashFlowClass, self.cash_flow_class, "category.cash_flow_class"),
        )


def new_transaction_id() -> str:
    """Default id factory for records created by the engines."""
    return str(uuid4())
