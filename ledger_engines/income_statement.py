"""
Module: ledger_engines.income_statement
Responsibility:
    Result statement for a period on an accrual or a cash basis: revenue,
    deductions, variable costs, operating expense groups, EBITDA and the
    financial result.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Keyword rules arrive as arguments (from EngineConfig through the
    service layer); the engine never reads configuration itself.

Invariants enforced:
    - Accrual basis: records whose due date is in [start, end], every
      status except scheduled.
    - Cash basis: reconciled records whose payment date is in [start, end].
    - Income counts positive and expense negative; transfers and records
      without a known category are left out.
    - net revenue = gross revenue + deductions
      gross profit = net revenue + variable costs
      EBITDA       = gross profit + personnel + administrative + other
      net result   = EBITDA + financial result

Failure modes:
    - InvalidInputError when start > end or a rule names an unknown line.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.models import Category, Transaction, TransactionKind, TransactionStatus
from ledger_kernel.domain.money import ZERO, round_money
from ledger_kernel.domain.render import render_to_dict
from ledger_kernel.exceptions import InvalidInputError
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.income_statement")

# Row percentages are ratios, not money; their precision does not follow the
# configured monetary precision.
PERCENTAGE_DECIMAL_PLACES = 2


class StatementBasis(str, Enum):
    ACCRUAL = "accrual"
    CASH = "cash"


class StatementLine(str, Enum):
    GROSS_REVENUE = "gross_revenue"
    DEDUCTIONS = "deductions"
    VARIABLE_COSTS = "variable_costs"
    PERSONNEL = "personnel"
    ADMINISTRATIVE = "administrative"
    OTHER_OPERATING = "other_operating"
    FINANCIAL = "financial"


@dataclass(frozen=True)
class StatementLineRule:
    """Categories whose lower-cased name contains any keyword map to ``line``."""

    line: StatementLine
    keywords: tuple[str, ...]

    def __post_init__(self) -> None:
        try:
            object.__setattr__(self, "line", StatementLine(self.line))
        except ValueError as exc:
            raise InvalidInputError("statement_line_rules", str(exc)) from exc
        object.__setattr__(self, "keywords", tuple(k.lower() for k in self.keywords))

    def matches(self, name: str) -> bool:
        return any(keyword in name for keyword in self.keywords)


# Applied in order; the first match wins.
DEFAULT_STATEMENT_LINE_RULES: tuple[StatementLineRule, ...] = (
    StatementLineRule(StatementLine.DEDUCTIONS, ("tax", "refund", "return", "discount")),
    StatementLineRule(StatementLine.VARIABLE_COSTS, ("supplier", "merchandise", "cost", "raw material")),
    StatementLineRule(StatementLine.PERSONNEL, ("salary", "salaries", "payroll", "staff", "vacation", "benefit")),
    StatementLineRule(StatementLine.ADMINISTRATIVE, ("rent", "energy", "electricity", "water", "internet", "office", "accounting")),
    StatementLineRule(StatementLine.FINANCIAL, ("interest", "bank", "fine", "fee")),
)


@dataclass(frozen=True)
class StatementRow:
    name: str
    value: Decimal
    percentage: Decimal
    level: int
    is_total: bool


@dataclass(frozen=True)
class IncomeStatement:
    basis: StatementBasis
    start: date
    end: date
    rows: tuple[StatementRow, ...]
    line_totals: Mapping[StatementLine, Decimal]
    gross_revenue: Decimal
    net_revenue: Decimal
    gross_profit: Decimal
    ebitda: Decimal
    net_result: Decimal

    def to_dict(self) -> dict[str, Any]:
        return render_to_dict(self)


def classify_category(
    category: Category,
    rules: Sequence[StatementLineRule] = DEFAULT_STATEMENT_LINE_RULES,
) -> StatementLine:
    """Statement line of a category: pinned line, income, keyword rules, else other."""
    if category.statement_line:
        try:
            return StatementLine(category.statement_line)
        except ValueError as exc:
            raise InvalidInputError("statement_line", str(exc)) from exc
    if category.kind == TransactionKind.INCOME:
        return StatementLine.GROSS_REVENUE
    name = category.name.lower()
    for rule in rules:
        if rule.matches(name):
            return rule.line
    return StatementLine.OTHER_OPERATING


def _in_period(tx: Transaction, basis: StatementBasis, start: date, end: date) -> bool:
    if basis == StatementBasis.CASH:
        return tx.is_reconciled and tx.payment_date is not None and start <= tx.payment_date <= end
    return tx.status != TransactionStatus.SCHEDULED and start <= tx.due_date <= end


@traced_engine("income_statement", "1.0", fingerprint_fields=("start", "end", "basis"))
def build_income_statement(
    *,
    transactions: Iterable[Transaction],
    categories: Mapping[str, Category],
    start: date,
    end: date,
    basis: StatementBasis = StatementBasis.ACCRUAL,
    rules: Sequence[StatementLineRule] = DEFAULT_STATEMENT_LINE_RULES,
) -> IncomeStatement:
    if start > end:
        raise InvalidInputError("start", f"{start} is after end {end}")
    basis = StatementBasis(basis)

    totals = {line: ZERO for line in StatementLine}
    lines_by_category: dict[str, StatementLine] = {}
    for tx in transactions:
        if tx.kind == TransactionKind.TRANSFER or not _in_period(tx, basis, start, end):
            continue
        category = categories.get(tx.category_id) if tx.category_id else None
        if category is None:
            continue
        if category.kind is None and tx.kind == TransactionKind.INCOME and not category.statement_line:
            line = StatementLine.GROSS_REVENUE
        else:
            line = lines_by_category.get(category.id)
            if line is None:
                line = lines_by_category[category.id] = classify_category(category, rules)
        totals[line] += tx.magnitude if tx.kind == TransactionKind.INCOME else -tx.magnitude

    gross_revenue = totals[StatementLine.GROSS_REVENUE]
    net_revenue = gross_revenue + totals[StatementLine.DEDUCTIONS]
    gross_profit = net_revenue + totals[StatementLine.VARIABLE_COSTS]
    ebitda = (
        gross_profit
        + totals[StatementLine.PERSONNEL]
        + totals[StatementLine.ADMINISTRATIVE]
        + totals[StatementLine.OTHER_OPERATING]
    )
    net_result = ebitda + totals[StatementLine.FINANCIAL]

    def row(name: str, value: Decimal, level: int, is_total: bool = False) -> StatementRow:
        percentage = (
            round_money(value / net_revenue * 100, PERCENTAGE_DECIMAL_PLACES) if net_revenue else ZERO
        )
        return StatementRow(name=name, value=value, percentage=percentage, level=level, is_total=is_total)

    rows = (
        row("Gross revenue", gross_revenue, 0),
        row("(-) Deductions", totals[StatementLine.DEDUCTIONS], 1),
        row("= Net revenue", net_revenue, 0, True),
        row("(-) Variable costs", totals[StatementLine.VARIABLE_COSTS], 1),
        row("= Gross profit", gross_profit, 0, True),
        row("(-) Personnel expenses", totals[StatementLine.PERSONNEL], 1),
        row("(-) Administrative expenses", totals[StatementLine.ADMINISTRATIVE], 1),
        row("(-) Other operating expenses", totals[StatementLine.OTHER_OPERATING], 1),
        row("= EBITDA", ebitda, 0, True),
        row("(+/-) Financial result", totals[StatementLine.FINANCIAL], 1),
        row("= Net result", net_result, 0, True),
    )

    logger.info("income_statement_built", extra={
        "basis": basis.value,
        "start": start.isoformat(),
        "end": end.isoformat(),
        "net_result": str(net_result),
    })
    return IncomeStatement(
        basis=basis,
        start=start,
        end=end,
        rows=rows,
        line_totals=totals,
        gross_revenue=gross_revenue,
        net_revenue=net_revenue,
        gross_profit=gross_profit,
        ebitda=ebitda,
        net_result=net_result,
    )
