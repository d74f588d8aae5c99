"""
Typed Exception Hierarchy for the Ledger Engine.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the engine (request handlers, batch jobs, presentation code)
must be able to react to a failure without parsing its message. Every
error therefore has:
  1. A TYPED exception class (catch by type, not message)
  2. A CODE class attribute (machine-readable, API-safe)
  3. Structured DATA attributes (not just a message string)

Example:
    try:
        result = engine.settle(tx, request)
    except OverpaymentError as e:
        api_response(code=e.code, paid=e.paid, outstanding=e.outstanding)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

All exceptions inherit from LedgerEngineError:

    LedgerEngineError (base)
    |
    +-- InvalidInputError
    |
    +-- InconsistentStateError
    |   +-- InvalidTransitionError
    |   +-- OverpaymentError
    |
    +-- NotFoundError
        +-- TransactionNotFoundError
        +-- AccountNotFoundError
        +-- CardNotFoundError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                  | When Raised
----------------|-----------------------|-----------------------------------------
Input           | INVALID_INPUT         | Negative counts/amounts, missing dates,
                |                       | sign/kind mismatch, malformed rules
----------------|-----------------------|-----------------------------------------
State           | INCONSISTENT_STATE    | Operation not valid for current record
                | INVALID_TRANSITION    | Status change not allowed (e.g. undo of
                |                       | a record that was never reconciled)
                | OVERPAYMENT           | Paid amount exceeds the outstanding one
----------------|-----------------------|-----------------------------------------
Lookup          | NOT_FOUND             | Id absent from the supplied snapshot
                | TRANSACTION_NOT_FOUND |
                | ACCOUNT_NOT_FOUND     |
                | CARD_NOT_FOUND        |

===============================================================================
HANDLING PATTERNS
===============================================================================

1. Single-item operations raise; the original record is never modified.
2. Batch operations never raise for a single id: each failure becomes a
   per-id outcome carrying ``code`` and ``reason``.
3. There are no retries. Every engine operation is a pure function of its
   inputs, so a retry would fail the same way.
"""


class LedgerEngineError(Exception):
    """
    Base exception for all ledger engine errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "LEDGER_ENGINE_ERROR"

    @property
    def reason(self) -> str:
        return str(self)


class InvalidInputError(LedgerEngineError):
    """Input rejected before any computation took place."""

    code: str = "INVALID_INPUT"

    def __init__(self, field: str, reason: str):
        self.field = field
        self._reason = reason
        super().__init__(f"Invalid {field}: {reason}")

    @property
    def reason(self) -> str:
        return self._reason


# State-related exceptions


class InconsistentStateError(LedgerEngineError):
    """Operation conflicts with the current state of a transaction."""

    code: str = "INCONSISTENT_STATE"

    def __init__(self, transaction_id: str, reason: str):
        self.transaction_id = transaction_id
        self._reason = reason
        super().__init__(f"Transaction {transaction_id}: {reason}")

    @property
    def reason(self) -> str:
        return self._reason


class InvalidTransitionError(InconsistentStateError):
    """Requested status transition is not allowed from the current status."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, transaction_id: str, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(
            transaction_id,
            f"cannot move from '{current}' to '{target}'",
        )


class OverpaymentError(InconsistentStateError):
    """Paid amount is larger than the amount still outstanding."""

    code: str = "OVERPAYMENT"

    def __init__(self, transaction_id: str, paid: str, outstanding: str):
        self.paid = paid
        self.outstanding = outstanding
        super().__init__(
            transaction_id,
            f"paid amount {paid} exceeds outstanding amount {outstanding}",
        )


# Lookup exceptions


class NotFoundError(LedgerEngineError):
    """Referenced entity is absent from the supplied snapshot."""

    code: str = "NOT_FOUND"
    entity: str = "entity"

    def __init__(self, entity_id: str):
        self.entity_id = entity_id
        super().__init__(f"{self.entity.capitalize()} not found: {entity_id}")


class TransactionNotFoundError(NotFoundError):
    """Transaction id does not exist in the snapshot."""

    code: str = "TRANSACTION_NOT_FOUND"
    entity: str = "transaction"


class AccountNotFoundError(NotFoundError):
    """Account id does not exist in the snapshot."""

    code: str = "ACCOUNT_NOT_FOUND"
    entity: str = "account"


class CardNotFoundError(NotFoundError):
    """Card id does not exist in the snapshot."""

    code: str = "CARD_NOT_FOUND"
    entity: str = "card"
