"""
Pure domain layer.

This module contains immutable records and helpers with NO dependencies on:
- Database
- Time/clock (except the Clock abstraction itself)
- I/O

All domain objects are immutable and deterministic.
"""

from ledger_kernel.domain.clock import Clock, DeterministicClock, SystemClock
from ledger_kernel.domain.models import (
    OPEN_STATUSES,
    Account,
    Card,
    CashFlowClass,
    Category,
    EndPolicy,
    Frequency,
    InstallmentInfo,
    RecurrenceRule,
    SettlementAdjustments,
    Transaction,
    TransactionKind,
    TransactionStatus,
    new_transaction_id,
)
from ledger_kernel.domain.money import (
    MONETARY_DECIMAL_PLACES,
    ZERO,
    round_money,
    to_money,
    truncate_money,
)
from ledger_kernel.domain.render import render_to_dict

__all__ = [
    # Clock
    "Clock",
    "DeterministicClock",
    "SystemClock",
    # Records
    "Account",
    "Card",
    "CashFlowClass",
    "Category",
    "EndPolicy",
    "Frequency",
    "InstallmentInfo",
    "OPEN_STATUSES",
    "RecurrenceRule",
    "SettlementAdjustments",
    "Transaction",
    "TransactionKind",
    "TransactionStatus",
    "new_transaction_id",
    # Money
    "MONETARY_DECIMAL_PLACES",
    "ZERO",
    "round_money",
    "to_money",
    "truncate_money",
    # Rendering
    "render_to_dict",
]
