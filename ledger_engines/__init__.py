"""
Module: ledger_engines
Responsibility:
    Package entrypoint that re-exports the public symbols of the pure
    calculation engines.  This is the import surface for ledger_services.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ledger_kernel (and sibling engine modules).
    MUST NOT import ledger_config or ledger_services.

Invariants enforced:
    - Purity: engines NEVER call ``datetime.now()`` or ``date.today()``.
      "Today" is always an explicit parameter supplied by the caller.
    - Decimal-only arithmetic: money is ``Decimal``; floats are rejected.
    - Determinism: identical inputs always produce identical outputs
      (apart from ids drawn from the supplied id factory).

Failure modes:
    - LedgerEngineError subclasses propagated from individual engines.

Audit relevance:
    Engine entry points are wrapped with ``@traced_engine`` (see
    ``ledger_engines.tracer``), emitting LEDGER_ENGINE_TRACE records with
    engine name, version, input fingerprint and duration.

Usage:
    from ledger_engines import InstallmentSplitter, RecurrenceExpander
    from ledger_engines import ReconciliationEngine, SettlementRequest
    from ledger_engines import CashFlowAggregator, CashFlowQuery
"""

from ledger_kernel.logging_config import get_logger

logger = get_logger("engines")

from ledger_engines.balances import AccountBalance, BalanceProjector
from ledger_engines.cash_flow import (
    CashFlowAggregator,
    CashFlowBucket,
    CashFlowMethod,
    CashFlowQuery,
    CashFlowStatement,
    DailyProjection,
    DirectFlows,
    Granularity,
)
from ledger_engines.category_tree import category_totals, parent_map, rollup
from ledger_engines.income_statement import (
    DEFAULT_STATEMENT_LINE_RULES,
    IncomeStatement,
    StatementBasis,
    StatementLine,
    StatementLineRule,
    StatementRow,
    build_income_statement,
    classify_category,
)
from ledger_engines.installments import (
    Installment,
    InstallmentSplitter,
    build_card_purchase,
    build_installment_transactions,
)
from ledger_engines.invoice_cycle import (
    InvoiceCycleResolver,
    InvoicePeriod,
    InvoiceStatus,
    InvoiceSummary,
    available_limit,
)
from ledger_engines.liquidity import (
    LIQUIDITY_WINDOW_DAYS,
    LiquidityCalculator,
    LiquidityMetrics,
)
from ledger_engines.reconciliation import (
    BatchOutcome,
    BatchResult,
    OpenItemBucket,
    OpenItemsSummary,
    ReconciliationEngine,
    SettlementRequest,
    SettlementResult,
    open_items_summary,
)
from ledger_engines.recurrence import MAX_RECURRENCE_INSTANCES, RecurrenceExpander
from ledger_engines.tracer import compute_input_fingerprint, traced_engine

__all__ = [
    # Balances
    "AccountBalance",
    "BalanceProjector",
    # Cash flow
    "CashFlowAggregator",
    "CashFlowBucket",
    "CashFlowMethod",
    "CashFlowQuery",
    "CashFlowStatement",
    "DailyProjection",
    "DirectFlows",
    "Granularity",
    # Category tree
    "category_totals",
    "parent_map",
    "rollup",
    # Income statement
    "DEFAULT_STATEMENT_LINE_RULES",
    "IncomeStatement",
    "StatementBasis",
    "StatementLine",
    "StatementLineRule",
    "StatementRow",
    "build_income_statement",
    "classify_category",
    # Installments
    "Installment",
    "InstallmentSplitter",
    "build_card_purchase",
    "build_installment_transactions",
    # Invoice cycle
    "InvoiceCycleResolver",
    "InvoicePeriod",
    "InvoiceStatus",
    "InvoiceSummary",
    "available_limit",
    # Liquidity
    "LIQUIDITY_WINDOW_DAYS",
    "LiquidityCalculator",
    "LiquidityMetrics",
    # Reconciliation
    "BatchOutcome",
    "BatchResult",
    "OpenItemBucket",
    "OpenItemsSummary",
    "ReconciliationEngine",
    "SettlementRequest",
    "SettlementResult",
    "open_items_summary",
    # Recurrence
    "MAX_RECURRENCE_INSTANCES",
    "RecurrenceExpander",
    # Tracer
    "compute_input_fingerprint",
    "traced_engine",
]
