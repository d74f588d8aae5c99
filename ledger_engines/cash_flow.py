"""
Module: ledger_engines.cash_flow
Responsibility:
    Period-bucketed cash-flow statements (indirect and direct method) and
    the daily forward projection of cash.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Consumes records produced by every other engine.

Invariants enforced:
    - Baseline = opening balances of the in-scope accounts + in-scope
      signed effect of reconciled records due strictly before ``start``.
    - Bucket income/expense are magnitudes over every status: a scheduled
      or pending item is treated as occurring on its due date.
    - Every bucket in [start, end] is emitted in ascending order; empty
      buckets are zero.
    - Per-bucket totals are computed first; the running balance is folded
      sequentially afterwards (closing = opening + net, next opening =
      previous closing).
    - Transfers never enter income or expense.  Their in-scope effect is
      reported as ``transfer_net`` and is not carried.
    - Purity: ``as_of`` is an argument; only used for the projected flag.

Failure modes:
    - InvalidInputError when start > end or days < 1.

Usage:
    aggregator = CashFlowAggregator()
    statement = aggregator.aggregate(
        query=CashFlowQuery(start=date(2024, 1, 1), end=date(2024, 12, 31)),
        transactions=txs, accounts=accounts, categories=categories,
        as_of=today,
    )
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Collection, Iterable, Mapping
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal
from enum import Enum
from typing import Any

from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.dates import add_months, last_of_month
from ledger_kernel.domain.models import (
    Account,
    CashFlowClass,
    Category,
    Transaction,
    TransactionKind,
)
from ledger_kernel.domain.money import ZERO
from ledger_kernel.domain.render import render_to_dict
from ledger_kernel.exceptions import InvalidInputError
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.cash_flow")


class Granularity(str, Enum):
    DAY = "day"
    MONTH = "month"
    YEAR = "year"


class CashFlowMethod(str, Enum):
    INDIRECT = "indirect"
    DIRECT = "direct"


@dataclass(frozen=True)
class CashFlowQuery:
    """Date range, bucket size, method and filters of one statement."""

    start: date
    end: date
    granularity: Granularity = Granularity.MONTH
    method: CashFlowMethod = CashFlowMethod.INDIRECT
    account_ids: frozenset[str] | None = None
    cost_center_ids: frozenset[str] | None = None

    def __post_init__(self) -> None:
        if self.start > self.end:
            raise InvalidInputError("start", f"{self.start} is after end {self.end}")
        try:
            object.__setattr__(self, "granularity", Granularity(self.granularity))
            object.__setattr__(self, "method", CashFlowMethod(self.method))
        except ValueError as exc:
            raise InvalidInputError("query", str(exc)) from exc
        if self.account_ids is not None:
            object.__setattr__(self, "account_ids", frozenset(self.account_ids))
        if self.cost_center_ids is not None:
            object.__setattr__(self, "cost_center_ids", frozenset(self.cost_center_ids))


@dataclass(frozen=True)
class DirectFlows:
    """Direct-method split of one bucket by activity class."""

    operating_income: Decimal = ZERO
    operating_expense: Decimal = ZERO
    operating_net: Decimal = ZERO
    investing: Decimal = ZERO
    financing: Decimal = ZERO
    total: Decimal = ZERO


@dataclass(frozen=True)
class CashFlowBucket:
    key: str
    start: date
    end: date
    income: Decimal
    expense: Decimal
    net: Decimal
    transfer_net: Decimal
    opening_balance: Decimal
    closing_balance: Decimal
    projected: bool
    direct: DirectFlows | None = None


@dataclass(frozen=True)
class CashFlowStatement:
    query: CashFlowQuery
    baseline_balance: Decimal
    buckets: tuple[CashFlowBucket, ...]

    @property
    def total_income(self) -> Decimal:
        return sum((b.income for b in self.buckets), ZERO)

    @property
    def total_expense(self) -> Decimal:
        return sum((b.expense for b in self.buckets), ZERO)

    @property
    def closing_balance(self) -> Decimal:
        return self.buckets[-1].closing_balance if self.buckets else self.baseline_balance

    def to_dict(self) -> dict[str, Any]:
        return render_to_dict(self)


@dataclass(frozen=True)
class DailyProjection:
    day: date
    inflow: Decimal
    outflow: Decimal
    balance: Decimal


# ---------------------------------------------------------------------------
# Bucketing helpers
# ---------------------------------------------------------------------------


def bucket_bounds(d: date, granularity: Granularity) -> tuple[date, date]:
    """Calendar period containing ``d``."""
    if granularity == Granularity.DAY:
        return d, d
    if granularity == Granularity.MONTH:
        return d.replace(day=1), last_of_month(d)
    return date(d.year, 1, 1), date(d.year, 12, 31)


def bucket_key(d: date, granularity: Granularity) -> str:
    if granularity == Granularity.DAY:
        return d.isoformat()
    if granularity == Granularity.MONTH:
        return f"{d.year:04d}-{d.month:02d}"
    return f"{d.year:04d}"


def iter_buckets(start: date, end: date, granularity: Granularity) -> Iterable[tuple[str, date, date]]:
    """(key, start, end) of every bucket overlapping [start, end], clipped to it."""
    cursor = start
    while cursor <= end:
        period_start, period_end = bucket_bounds(cursor, granularity)
        yield bucket_key(cursor, granularity), max(period_start, start), min(period_end, end)
        if granularity == Granularity.DAY:
            cursor = period_end + timedelta(days=1)
        elif granularity == Granularity.MONTH:
            cursor = add_months(period_start, 1)
        else:
            cursor = date(period_start.year + 1, 1, 1)


class _Scope:
    """Account and cost-center filter of a query."""

    def __init__(
        self,
        account_ids: Collection[str] | None,
        cost_center_ids: Collection[str] | None,
    ):
        self.account_ids = account_ids
        self.cost_center_ids = cost_center_ids

    def accounts(self, accounts: Iterable[Account]) -> list[Account]:
        if self.account_ids is None:
            return list(accounts)
        return [a for a in accounts if a.id in self.account_ids]

    def includes(self, tx: Transaction) -> bool:
        if self.cost_center_ids is not None and tx.cost_center_id not in self.cost_center_ids:
            return False
        if self.account_ids is None:
            return True
        return any(tx.touches_account(a) for a in self.account_ids)

    def signed_effect(self, tx: Transaction) -> Decimal:
        """Movement of ``tx`` on the in-scope accounts taken together."""
        if self.account_ids is None:
            effect = tx.amount
            if tx.kind == TransactionKind.TRANSFER and tx.destination_account_id is not None:
                effect += tx.magnitude
            return effect
        return sum((tx.signed_effect(a) for a in self.account_ids), ZERO)


@dataclass
class _BucketTotals:
    income: Decimal = ZERO
    expense: Decimal = ZERO
    transfer_net: Decimal = ZERO
    operating_income: Decimal = ZERO
    operating_expense: Decimal = ZERO
    investing: Decimal = ZERO
    financing: Decimal = ZERO

    def direct(self) -> DirectFlows:
        operating_net = self.operating_income - self.operating_expense
        return DirectFlows(
            operating_income=self.operating_income,
            operating_expense=self.operating_expense,
            operating_net=operating_net,
            investing=self.investing,
            financing=self.financing,
            total=operating_net + self.investing + self.financing,
        )


class CashFlowAggregator:
    """
    Cash-flow statement builder.

    Contract:
        Pure; results depend only on the arguments.
    Guarantees:
        - ``buckets[i].opening_balance == buckets[i-1].closing_balance``.
        - ``buckets[0].opening_balance == baseline_balance``.
    """

    def __init__(self, default_class: CashFlowClass = CashFlowClass.OPERATIONAL):
        self._default_class = CashFlowClass(default_class)

    def baseline_balance(
        self,
        query: CashFlowQuery,
        transactions: Iterable[Transaction],
        accounts: Iterable[Account],
    ) -> Decimal:
        scope = _Scope(query.account_ids, query.cost_center_ids)
        opening = sum((a.opening_balance for a in scope.accounts(accounts)), ZERO)
        carried = sum(
            (
                scope.signed_effect(tx)
                for tx in transactions
                if tx.is_reconciled and tx.due_date < query.start and scope.includes(tx)
            ),
            ZERO,
        )
        return opening + carried

    @traced_engine("cash_flow", "1.0", fingerprint_fields=("query", "as_of"))
    def aggregate(
        self,
        *,
        query: CashFlowQuery,
        transactions: Iterable[Transaction],
        accounts: Iterable[Account],
        categories: Mapping[str, Category] | None = None,
        as_of: date,
    ) -> CashFlowStatement:
        transactions = tuple(transactions)
        categories = categories or {}
        scope = _Scope(query.account_ids, query.cost_center_ids)
        baseline = self.baseline_balance(query, transactions, accounts)

        logger.info("cash_flow_started", extra={
            "start": query.start.isoformat(),
            "end": query.end.isoformat(),
            "granularity": query.granularity.value,
            "method": query.method.value,
        })

        totals: dict[str, _BucketTotals] = defaultdict(_BucketTotals)
        for tx in transactions:
            if not query.start <= tx.due_date <= query.end or not scope.includes(tx):
                continue
            bucket = totals[bucket_key(tx.due_date, query.granularity)]
            if tx.kind == TransactionKind.TRANSFER:
                bucket.transfer_net += scope.signed_effect(tx)
                continue
            if tx.kind == TransactionKind.INCOME:
                bucket.income += tx.magnitude
            else:
                bucket.expense += tx.magnitude
            if query.method == CashFlowMethod.DIRECT:
                self._add_direct(bucket, tx, categories)

        buckets = []
        running = baseline
        for key, start, end in iter_buckets(query.start, query.end, query.granularity):
            t = totals.get(key) or _BucketTotals()
            net = t.income - t.expense
            buckets.append(
                CashFlowBucket(
                    key=key,
                    start=start,
                    end=end,
                    income=t.income,
                    expense=t.expense,
                    net=net,
                    transfer_net=t.transfer_net,
                    opening_balance=running,
                    closing_balance=running + net,
                    projected=end >= as_of,
                    direct=t.direct() if query.method == CashFlowMethod.DIRECT else None,
                )
            )
            running += net

        logger.info("cash_flow_completed", extra={
            "bucket_count": len(buckets),
            "baseline": str(baseline),
            "closing": str(running),
        })
        return CashFlowStatement(query=query, baseline_balance=baseline, buckets=tuple(buckets))

    def _add_direct(
        self,
        bucket: _BucketTotals,
        tx: Transaction,
        categories: Mapping[str, Category],
    ) -> None:
        category = categories.get(tx.category_id) if tx.category_id else None
        flow_class = category.cash_flow_class if category else self._default_class
        if flow_class == CashFlowClass.INVESTMENT:
            bucket.investing += tx.amount
        elif flow_class == CashFlowClass.FINANCING:
            bucket.financing += tx.amount
        elif tx.kind == TransactionKind.INCOME:
            bucket.operating_income += tx.magnitude
        else:
            bucket.operating_expense += tx.magnitude

    @traced_engine("cash_flow.daily", "1.0", fingerprint_fields=("today", "days", "account_ids"))
    def project_daily(
        self,
        *,
        transactions: Iterable[Transaction],
        accounts: Iterable[Account],
        today: date,
        days: int = 30,
        account_ids: Collection[str] | None = None,
    ) -> tuple[DailyProjection, ...]:
        """
        Forward cash projection, one row per day starting at ``today``.

        Starts from the current realized balance of the in-scope accounts.
        Each day adds the open items due that day; open items already past
        due are added on ``today``.
        """
        if days < 1:
            raise InvalidInputError("days", f"must be >= 1, got {days}")

        scope = _Scope(account_ids, None)
        transactions = tuple(transactions)
        balance = sum((a.opening_balance for a in scope.accounts(accounts)), ZERO)
        balance += sum(
            (scope.signed_effect(tx) for tx in transactions if tx.is_reconciled and scope.includes(tx)),
            ZERO,
        )

        due: dict[date, list[Decimal]] = defaultdict(list)
        for tx in transactions:
            if tx.is_open and scope.includes(tx):
                due[max(tx.due_date, today)].append(scope.signed_effect(tx))

        rows = []
        for offset in range(days):
            day = today + timedelta(days=offset)
            effects = due.get(day, [])
            inflow = sum((e for e in effects if e > ZERO), ZERO)
            outflow = sum((-e for e in effects if e < ZERO), ZERO)
            balance += inflow - outflow
            rows.append(DailyProjection(day=day, inflow=inflow, outflow=outflow, balance=balance))
        return tuple(rows)
