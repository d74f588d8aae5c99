"""
Ledger Kernel

Pure foundation for the ledger and cash-flow projection engine:
- Immutable transaction, account, card and category records
- Decimal-only money helpers with an explicit rounding rule
- Calendar arithmetic with month-end clamping
- Typed exceptions with machine-readable codes
- Structured JSON logging
"""

__version__ = "0.1.0"
