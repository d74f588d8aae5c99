"""
Engine Invariants Contract.

These invariants are structural law. No EngineConfig value may switch
them off. This module declares them explicitly; enforcement lives in the
engines named in each docstring and is pinned by the property tests in
tests/fuzzing.
"""

from enum import Enum, unique


@unique
class LedgerInvariant(str, Enum):
    """Non-configurable guarantees provided by the engines."""

    INSTALLMENT_SUM = "installment_sum"
    """Generated installment amounts add up to the purchase total exactly.
    Enforced by InstallmentSplitter (remainder goes to the first item)."""

    RECURRENCE_BOUNDED = "recurrence_bounded"
    """Recurrence expansion terminates within the safety cap whatever the
    end policy. Enforced by RecurrenceExpander."""

    INVOICE_MONOTONIC = "invoice_monotonic"
    """For a fixed card, later purchase dates never map to an earlier
    invoice period. Enforced by InvoiceCycleResolver."""

    UNDO_RESTORES = "undo_restores"
    """Undoing a full settlement restores the original record. Enforced by
    ReconciliationEngine.undo."""

    BALANCE_CONSERVATION = "balance_conservation"
    """Projected balance equals realized balance plus open signed amounts.
    Enforced by BalanceProjector."""

    PERSISTED_STATUS = "persisted_status"
    """Overdue is derived, never stored. Enforced by Transaction
    construction and effective_status()."""


# All invariants as a frozenset for programmatic checks.
ALL_LEDGER_INVARIANTS: frozenset[LedgerInvariant] = frozenset(LedgerInvariant)

# The kernel package may not import from these packages.
# This is enforced by tests/architecture/test_layer_boundaries.py.
FORBIDDEN_KERNEL_IMPORTS: tuple[str, ...] = (
    "ledger_engines",
    "ledger_config",
    "ledger_services",
)

# Pure engines may not import from these packages.
FORBIDDEN_ENGINE_IMPORTS: tuple[str, ...] = (
    "ledger_config",
    "ledger_services",
)
