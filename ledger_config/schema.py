"""
EngineConfig schema.

Frozen dataclasses the YAML configuration set is parsed into.  The
service layer reads these values and hands them to the engines as plain
constructor arguments; engines never see this module.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ledger_kernel.domain.models import CashFlowClass


@dataclass(frozen=True)
class StatementLineRuleDef:
    """Keyword rule mapping category names to an income-statement line."""

    line: str
    keywords: tuple[str, ...]


@dataclass(frozen=True)
class EngineConfig:
    """Runtime parameters of the ledger engines."""

    config_id: str
    version: int
    recurrence_safety_cap: int
    monetary_decimal_places: int
    liquidity_window_days: int
    default_cash_flow_class: CashFlowClass = CashFlowClass.OPERATIONAL
    statement_line_rules: tuple[StatementLineRuleDef, ...] = field(default_factory=tuple)
    checksum: str = ""
