"""
ledger_services -- Snapshot-level orchestration over the pure engines.

The only layer allowed to read the clock and the active configuration.
"""

from ledger_services.ledger_service import LedgerService
from ledger_services.snapshot import LedgerSnapshot

__all__ = ["LedgerService", "LedgerSnapshot"]
