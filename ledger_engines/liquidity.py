"""
Module: ledger_engines.liquidity
Responsibility:
    Liquidity-cycle metrics from settled transactions: days sales
    outstanding (DSO), days payable outstanding (DPO), days inventory
    outstanding (DIO) and the cash conversion cycle (CCC).

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Only reconciled income/expense records with a payment date whose due
      date falls inside the trailing window take part.
    - Each record is weighted by its magnitude; days = max(0, payment -
      launch).
    - CCC = DIO + DSO - DPO.  An empty side yields 0, never a division
      error.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import ROUND_HALF_UP, Decimal

from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.models import Transaction, TransactionKind
from ledger_kernel.domain.money import ZERO
from ledger_kernel.exceptions import InvalidInputError
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.liquidity")

# Trailing window, in days before as_of, of records counted by the metrics.
LIQUIDITY_WINDOW_DAYS = 90


@dataclass(frozen=True)
class LiquidityMetrics:
    dso: int
    dpo: int
    dio: int
    ccc: int
    receivables_count: int
    payables_count: int


def weighted_days(pairs: Iterable[tuple[int, Decimal]]) -> int:
    """Amount-weighted average of day counts, rounded half-up; 0 when empty."""
    weighted = ZERO
    total = ZERO
    for days, amount in pairs:
        weighted += days * amount
        total += amount
    if total == ZERO:
        return 0
    return int((weighted / total).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def settlement_days(tx: Transaction) -> int:
    return max(0, (tx.payment_date - tx.launch_date).days)


class LiquidityCalculator:
    """Computes DSO/DPO/DIO/CCC over a trailing window."""

    def __init__(self, window_days: int = LIQUIDITY_WINDOW_DAYS):
        if window_days < 0:
            raise InvalidInputError("window_days", f"must be >= 0, got {window_days}")
        self._window_days = window_days

    @traced_engine("liquidity", "1.0", fingerprint_fields=("as_of", "dio"))
    def compute(
        self,
        *,
        transactions: Iterable[Transaction],
        as_of: date,
        dio: int = 0,
    ) -> LiquidityMetrics:
        window_start = as_of - timedelta(days=self._window_days)
        receivables: list[tuple[int, Decimal]] = []
        payables: list[tuple[int, Decimal]] = []

        for tx in transactions:
            if not tx.is_reconciled or tx.payment_date is None or tx.due_date < window_start:
                continue
            if tx.kind == TransactionKind.INCOME:
                receivables.append((settlement_days(tx), tx.magnitude))
            elif tx.kind == TransactionKind.EXPENSE:
                payables.append((settlement_days(tx), tx.magnitude))

        dso = weighted_days(receivables)
        dpo = weighted_days(payables)
        metrics = LiquidityMetrics(
            dso=dso,
            dpo=dpo,
            dio=dio,
            ccc=dio + dso - dpo,
            receivables_count=len(receivables),
            payables_count=len(payables),
        )
        logger.debug("liquidity_computed", extra={
            "dso": dso, "dpo": dpo, "dio": dio, "ccc": metrics.ccc,
        })
        return metrics
