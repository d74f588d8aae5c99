"""
Module: ledger_engines.reconciliation
Responsibility:
    Status transitions of transactions: release a scheduled item, settle
    (fully or partially) a pending one, undo a settlement, and the batch
    forms of those transitions.  Also summarizes open items by due state.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    Inputs are frozen records; every transition returns new records.

Invariants enforced:
    - Persisted status is only scheduled, pending or reconciled; overdue is
      read through ``Transaction.effective_status``.
    - Partial settlement conserves the amount: reconciled paid leg plus the
      new pending remainder equal the original magnitude.
    - ``undo(settle(tx).reconciled) == tx`` for a full settlement.  Undo of
      a partial settlement never merges the remainder back; the two legs
      stay independent pending records.
    - Batch transitions are independent per id: one failure never blocks
      the others and never raises.  Each id is transitioned at most once
      per batch.

Failure modes:
    - InvalidInputError: missing payment date or account, discount larger
      than the amount being realized, zero payment on a non-zero record,
      settlement amounts finer than the monetary precision.
    - InconsistentStateError: the same id repeated inside one batch.
    - InvalidTransitionError: release of a non-scheduled record, settle of
      a non-pending record, undo of a non-reconciled record.
    - OverpaymentError: paid amount larger than the record's magnitude.

Audit relevance:
    ``SettlementAdjustments.prior_account_id`` keeps the account the record
    pointed to before settlement so undo can restore it.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any

from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.models import (
    SettlementAdjustments,
    Transaction,
    TransactionStatus,
    new_transaction_id,
)
from ledger_kernel.domain.money import (
    MONETARY_DECIMAL_PLACES,
    ZERO,
    round_money,
    to_money,
)
from ledger_kernel.domain.render import render_to_dict
from ledger_kernel.exceptions import (
    InconsistentStateError,
    InvalidInputError,
    InvalidTransitionError,
    LedgerEngineError,
    OverpaymentError,
    TransactionNotFoundError,
)
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.reconciliation")


@dataclass(frozen=True)
class SettlementRequest:
    """
    Caller-supplied settlement data.

    ``paid_amount`` defaults to the record's full magnitude.
    ``account_id`` overrides the record's account (required when the
    record has none).  ``remainder_due_date`` is the due date of the
    pending remainder created by a partial payment; the original due date
    is kept when omitted.
    """

    payment_date: date | None
    paid_amount: Decimal | None = None
    interest: Decimal = ZERO
    penalty: Decimal = ZERO
    discount: Decimal = ZERO
    account_id: str | None = None
    remainder_due_date: date | None = None


@dataclass(frozen=True)
class SettlementResult:
    reconciled: Transaction
    remainder: Transaction | None = None

    @property
    def is_partial(self) -> bool:
        return self.remainder is not None

    @property
    def records(self) -> tuple[Transaction, ...]:
        if self.remainder is None:
            return (self.reconciled,)
        return (self.reconciled, self.remainder)


@dataclass(frozen=True)
class BatchOutcome:
    """Result of one id inside a batch transition."""

    transaction_id: str
    succeeded: bool
    records: tuple[Transaction, ...] = ()
    code: str | None = None
    reason: str | None = None

    @classmethod
    def success(cls, transaction_id: str, records: tuple[Transaction, ...]) -> BatchOutcome:
        return cls(transaction_id=transaction_id, succeeded=True, records=records)

    @classmethod
    def failure(cls, transaction_id: str, error: LedgerEngineError) -> BatchOutcome:
        return cls(
            transaction_id=transaction_id,
            succeeded=False,
            code=error.code,
            reason=error.reason,
        )


@dataclass(frozen=True)
class BatchResult:
    outcomes: tuple[BatchOutcome, ...] = field(default_factory=tuple)

    @property
    def succeeded(self) -> tuple[BatchOutcome, ...]:
        return tuple(o for o in self.outcomes if o.succeeded)

    @property
    def failed(self) -> tuple[BatchOutcome, ...]:
        return tuple(o for o in self.outcomes if not o.succeeded)

    @property
    def records(self) -> tuple[Transaction, ...]:
        """Every record produced by the successful outcomes, in order."""
        return tuple(r for o in self.outcomes for r in o.records)

    def outcome_for(self, transaction_id: str) -> BatchOutcome | None:
        for outcome in self.outcomes:
            if outcome.transaction_id == transaction_id:
                return outcome
        return None

    def to_dict(self) -> dict[str, Any]:
        return render_to_dict(self)


@dataclass(frozen=True)
class OpenItemBucket:
    count: int = 0
    total: Decimal = ZERO


@dataclass(frozen=True)
class OpenItemsSummary:
    """Pending items split by their position relative to ``today``."""

    overdue: OpenItemBucket
    due_today: OpenItemBucket
    to_be_due: OpenItemBucket

    @property
    def count(self) -> int:
        return self.overdue.count + self.due_today.count + self.to_be_due.count


class ReconciliationEngine:
    """
    Pure reconciliation state machine.

    Contract:
        Inputs are never modified; failures raise before any record is
        produced.
    Guarantees:
        - ``settle`` returns a reconciled record and, for partial payments,
          a pending remainder with a fresh id and ``parent_id`` set to the
          original id.
        - Settlement amounts carry at most ``decimal_places`` decimals.
    """

    def __init__(self, decimal_places: int = MONETARY_DECIMAL_PLACES):
        self._decimal_places = decimal_places

    def release(self, tx: Transaction) -> Transaction:
        """scheduled -> pending."""
        if tx.status != TransactionStatus.SCHEDULED:
            logger.warning("release_rejected", extra={
                "transaction_id": tx.id, "status": tx.status.value,
            })
            raise InvalidTransitionError(tx.id, tx.status.value, TransactionStatus.PENDING.value)
        logger.info("transaction_released", extra={"transaction_id": tx.id})
        return tx.with_changes(status=TransactionStatus.PENDING)

    @traced_engine("reconciliation", "1.0", fingerprint_fields=("tx", "request"))
    def settle(
        self,
        *,
        tx: Transaction,
        request: SettlementRequest,
        id_factory: Callable[[], str] = new_transaction_id,
    ) -> SettlementResult:
        """
        Reconcile a pending (or overdue) record.

        Realized amount = sign * (paid + interest + penalty - discount).
        When ``paid < magnitude`` a pending remainder for the difference
        is returned alongside the reconciled leg.

        Raises:
            InvalidTransitionError: Record is scheduled or already reconciled.
            InvalidInputError: Missing payment date or account, or an amount
                finer than the monetary precision.
            OverpaymentError: Paid amount exceeds the record's magnitude.
        """
        if tx.status != TransactionStatus.PENDING:
            logger.warning("settlement_rejected", extra={
                "transaction_id": tx.id, "status": tx.status.value,
            })
            raise InvalidTransitionError(tx.id, tx.status.value, TransactionStatus.RECONCILED.value)

        if request.payment_date is None:
            logger.warning("settlement_rejected", extra={"transaction_id": tx.id, "field": "payment_date"})
            raise InvalidInputError("payment_date", f"required to settle {tx.id}")

        account_id = request.account_id or tx.account_id
        if account_id is None:
            logger.warning("settlement_rejected", extra={"transaction_id": tx.id, "field": "account_id"})
            raise InvalidInputError("account_id", f"required to settle {tx.id}")

        magnitude = tx.magnitude
        paid = magnitude if request.paid_amount is None else to_money(request.paid_amount, "paid_amount")
        if paid > magnitude:
            logger.warning("settlement_rejected", extra={
                "transaction_id": tx.id, "paid": str(paid), "outstanding": str(magnitude),
            })
            raise OverpaymentError(tx.id, str(paid), str(magnitude))
        if paid <= ZERO < magnitude:
            logger.warning("settlement_rejected", extra={"transaction_id": tx.id, "paid": str(paid)})
            raise InvalidInputError("paid_amount", f"must be > 0, got {paid}")

        adjustments = SettlementAdjustments(
            paid_amount=paid,
            interest=request.interest,
            penalty=request.penalty,
            discount=request.discount,
            prior_account_id=tx.account_id,
        )
        for name in ("paid_amount", "interest", "penalty", "discount"):
            value = getattr(adjustments, name)
            if round_money(value, self._decimal_places) != value:
                logger.warning("settlement_rejected", extra={"transaction_id": tx.id, "field": name})
                raise InvalidInputError(
                    name, f"{value} has more than {self._decimal_places} decimal places"
                )

        realized = adjustments.realized_magnitude
        if realized < ZERO:
            logger.warning("settlement_rejected", extra={"transaction_id": tx.id, "field": "discount"})
            raise InvalidInputError(
                "discount", f"{adjustments.discount} exceeds paid amount plus charges"
            )

        reconciled = tx.with_changes(
            status=TransactionStatus.RECONCILED,
            amount=realized * tx.direction,
            payment_date=request.payment_date,
            account_id=account_id,
            settlement_adjustments=adjustments,
        )

        remainder = None
        if paid < magnitude:
            remainder = tx.with_changes(
                id=id_factory(),
                amount=(magnitude - paid) * tx.direction,
                due_date=request.remainder_due_date or tx.due_date,
                status=TransactionStatus.PENDING,
                recurrence_rule=None,
                parent_id=tx.id,
            )

        logger.info("settlement_completed", extra={
            "transaction_id": tx.id,
            "paid": str(paid),
            "realized": str(reconciled.amount),
            "partial": remainder is not None,
            "remainder_id": remainder.id if remainder else None,
        })
        return SettlementResult(reconciled=reconciled, remainder=remainder)

    def undo(self, tx: Transaction) -> Transaction:
        """
        reconciled -> pending.

        Clears the payment date and adjustments, restores the leg amount
        (``sign * paid_amount``) and the account held before settlement.
        """
        if tx.status != TransactionStatus.RECONCILED:
            logger.warning("undo_rejected", extra={
                "transaction_id": tx.id, "status": tx.status.value,
            })
            raise InvalidTransitionError(tx.id, tx.status.value, TransactionStatus.PENDING.value)

        changes: dict[str, Any] = dict(
            status=TransactionStatus.PENDING,
            payment_date=None,
            settlement_adjustments=None,
        )
        adjustments = tx.settlement_adjustments
        if adjustments is not None:
            changes["amount"] = adjustments.paid_amount * tx.direction
            changes["account_id"] = adjustments.prior_account_id

        logger.info("settlement_undone", extra={"transaction_id": tx.id})
        return tx.with_changes(**changes)

    # -- batch ------------------------------------------------------------

    def release_many(
        self,
        transactions: Mapping[str, Transaction],
        ids: Iterable[str],
    ) -> BatchResult:
        return self._run_batch("release", transactions, ids, lambda tx: (self.release(tx),))

    def undo_many(
        self,
        transactions: Mapping[str, Transaction],
        ids: Iterable[str],
    ) -> BatchResult:
        return self._run_batch("undo", transactions, ids, lambda tx: (self.undo(tx),))

    def settle_many(
        self,
        transactions: Mapping[str, Transaction],
        ids: Iterable[str],
        request: SettlementRequest | Mapping[str, SettlementRequest],
        id_factory: Callable[[], str] = new_transaction_id,
    ) -> BatchResult:
        """
        Settle each id independently.

        ``request`` is either shared by every id or a mapping of per-id
        requests; an id without a request fails with INVALID_INPUT.
        """

        def settle_one(tx: Transaction) -> tuple[Transaction, ...]:
            if isinstance(request, Mapping):
                own = request.get(tx.id)
                if own is None:
                    raise InvalidInputError("request", f"no settlement request for {tx.id}")
            else:
                own = request
            return self.settle(tx=tx, request=own, id_factory=id_factory).records

        return self._run_batch("settle", transactions, ids, settle_one)

    def _run_batch(
        self,
        operation: str,
        transactions: Mapping[str, Transaction],
        ids: Iterable[str],
        apply: Callable[[Transaction], tuple[Transaction, ...]],
    ) -> BatchResult:
        outcomes = []
        seen: set[str] = set()
        for tx_id in ids:
            try:
                if tx_id in seen:
                    raise InconsistentStateError(tx_id, f"repeated in the same {operation} batch")
                seen.add(tx_id)
                tx = transactions.get(tx_id)
                if tx is None:
                    raise TransactionNotFoundError(tx_id)
                outcomes.append(BatchOutcome.success(tx_id, apply(tx)))
            except LedgerEngineError as exc:
                logger.warning(
                    "batch_item_failed",
                    extra={"batch_operation": operation, "item_id": tx_id},
                    exc_info=exc,
                )
                outcomes.append(BatchOutcome.failure(tx_id, exc))

        result = BatchResult(tuple(outcomes))
        logger.info("batch_completed", extra={
            "batch_operation": operation,
            "requested": len(outcomes),
            "succeeded": len(result.succeeded),
            "failed": len(result.failed),
        })
        return result


def open_items_summary(transactions: Iterable[Transaction], today: date) -> OpenItemsSummary:
    """
    Count and total the pending items that are overdue, due today, or due later.

    Scheduled items are not released yet and are left out.
    """
    buckets: dict[str, list[Decimal]] = {"overdue": [], "due_today": [], "to_be_due": []}
    for tx in transactions:
        if tx.status != TransactionStatus.PENDING:
            continue
        if tx.due_date < today:
            buckets["overdue"].append(tx.magnitude)
        elif tx.due_date == today:
            buckets["due_today"].append(tx.magnitude)
        else:
            buckets["to_be_due"].append(tx.magnitude)

    return OpenItemsSummary(**{
        name: OpenItemBucket(count=len(values), total=sum(values, ZERO))
        for name, values in buckets.items()
    })
