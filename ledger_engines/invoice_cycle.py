"""
Module: ledger_engines.invoice_cycle
Responsibility:
    Map credit-card purchases to invoice periods and summarize invoices
    (closing date, due date, totals, payment status, available limit).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ledger_kernel and sibling engine modules.

Invariants enforced:
    - Monotonic: for a fixed card, a later purchase date never maps to an
      earlier invoice period.
    - A purchase made on or after the effective closing day belongs to the
      following month's invoice.  The effective closing day is the
      configured one clamped to the length of the purchase month.
    - Purity: "today" is always an argument, never read from a clock.

Failure modes:
    - InvalidInputError on a negative offset or a malformed period id.

Usage:
    resolver = InvoiceCycleResolver()
    period = resolver.resolve(purchase_date=date(2024, 3, 10), card=card)
    period.identifier  # "C1_2024-04" for a card closing on the 5th
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any

from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.dates import (
    clamp_day_to_month,
    month_key,
    shift_month,
)
from ledger_kernel.domain.models import Card, Transaction
from ledger_kernel.domain.money import ZERO
from ledger_kernel.domain.render import render_to_dict
from ledger_kernel.exceptions import InvalidInputError
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.invoice_cycle")


@dataclass(frozen=True, order=True)
class InvoicePeriod:
    """A card's invoice for one calendar month."""

    card_id: str
    year: int
    month: int

    @property
    def identifier(self) -> str:
        return f"{self.card_id}_{month_key(self.year, self.month)}"

    @property
    def month_key(self) -> str:
        return month_key(self.year, self.month)

    @classmethod
    def parse(cls, identifier: str) -> InvoicePeriod:
        """Inverse of ``identifier``: "<card_id>_YYYY-MM"."""
        card_id, sep, key = identifier.rpartition("_")
        try:
            year_str, month_str = key.split("-")
            year, month = int(year_str), int(month_str)
        except ValueError as exc:
            raise InvalidInputError("invoice_period_id", f"malformed id {identifier!r}") from exc
        if not sep or not card_id or not 1 <= month <= 12:
            raise InvalidInputError("invoice_period_id", f"malformed id {identifier!r}")
        return cls(card_id, year, month)

    def shifted(self, months: int) -> InvoicePeriod:
        year, month = shift_month(self.year, self.month, months)
        return InvoicePeriod(self.card_id, year, month)


class InvoiceStatus(str, Enum):
    OPEN = "open"
    CLOSED = "closed"
    PARTIAL = "partial"
    PAID = "paid"


@dataclass(frozen=True)
class InvoiceSummary:
    """Totals of one invoice as of a given day."""

    period: InvoicePeriod
    closing_date: date
    due_date: date
    total: Decimal
    paid_amount: Decimal
    status: InvoiceStatus
    transaction_ids: tuple[str, ...]

    @property
    def outstanding(self) -> Decimal:
        return self.total - self.paid_amount

    def to_dict(self) -> dict[str, Any]:
        data = render_to_dict(self)
        data["identifier"] = self.period.identifier
        return data


class InvoiceCycleResolver:
    """
    Pure invoice-cycle calculator.

    Contract:
        Deterministic mapping from (purchase date, card, offset) to an
        invoice period.
    Guarantees:
        - ``resolve`` is non-decreasing in the purchase date.
        - Year rollover is handled (a December purchase after closing goes
          to January of the next year).
    """

    @traced_engine("invoice_cycle", "1.0", fingerprint_fields=("purchase_date", "offset"))
    def resolve(self, *, purchase_date: date, card: Card, offset: int = 0) -> InvoicePeriod:
        """
        Invoice period for a purchase made on ``purchase_date``.

        ``offset`` moves the result that many months further (used for
        installments and for "next invoice" navigation).

        Raises:
            InvalidInputError: offset < 0.
        """
        if offset < 0:
            logger.warning("invoice_resolve_rejected", extra={"card_id": card.id, "offset": offset})
            raise InvalidInputError("offset", f"must be >= 0, got {offset}")

        closing_day = clamp_day_to_month(purchase_date.year, purchase_date.month, card.closing_day)
        shift = offset + (1 if purchase_date.day >= closing_day else 0)
        year, month = shift_month(purchase_date.year, purchase_date.month, shift)
        return InvoicePeriod(card.id, year, month)

    def current_period(self, card: Card, today: date, offset: int = 0) -> InvoicePeriod:
        """The invoice still open on ``today`` (plus ``offset`` months)."""
        return self.resolve(purchase_date=today, card=card, offset=offset)

    def closing_date(self, *, period: InvoicePeriod, card: Card) -> date:
        """Effective closing day of the invoice month."""
        day = clamp_day_to_month(period.year, period.month, card.closing_day)
        return date(period.year, period.month, day)

    def due_date(self, *, period: InvoicePeriod, card: Card) -> date:
        """Due day in the invoice month when it falls after closing, else the next month."""
        if card.due_day > card.closing_day:
            year, month = period.year, period.month
        else:
            year, month = shift_month(period.year, period.month, 1)
        return date(year, month, clamp_day_to_month(year, month, card.due_day))

    def assign(self, transaction: Transaction, card: Card) -> Transaction:
        """Copy of ``transaction`` attached to the invoice its launch date falls in."""
        period = self.resolve(purchase_date=transaction.launch_date, card=card)
        return transaction.with_changes(card_id=card.id, invoice_period_id=period.identifier)

    def period_of(self, transaction: Transaction, card: Card) -> InvoicePeriod:
        if transaction.invoice_period_id:
            return InvoicePeriod.parse(transaction.invoice_period_id)
        return self.resolve(purchase_date=transaction.launch_date, card=card)

    def summarize(
        self,
        card: Card,
        transactions: Iterable[Transaction],
        as_of: date,
    ) -> tuple[InvoiceSummary, ...]:
        """
        One summary per invoice period that has records on this card.

        Status rules:
            paid     every record reconciled
            partial  some records reconciled
            closed   nothing reconciled and ``as_of`` is on/after closing
            open     nothing reconciled and the invoice has not closed
        """
        grouped: dict[InvoicePeriod, list[Transaction]] = defaultdict(list)
        for tx in transactions:
            if tx.card_id != card.id:
                continue
            grouped[self.period_of(tx, card)].append(tx)

        summaries = []
        for period in sorted(grouped):
            records = grouped[period]
            total = sum((tx.magnitude for tx in records), ZERO)
            paid = sum((tx.magnitude for tx in records if tx.is_reconciled), ZERO)
            reconciled_count = sum(1 for tx in records if tx.is_reconciled)
            closing = self.closing_date(period=period, card=card)

            if reconciled_count == len(records):
                status = InvoiceStatus.PAID
            elif reconciled_count:
                status = InvoiceStatus.PARTIAL
            elif as_of >= closing:
                status = InvoiceStatus.CLOSED
            else:
                status = InvoiceStatus.OPEN

            summaries.append(
                InvoiceSummary(
                    period=period,
                    closing_date=closing,
                    due_date=self.due_date(period=period, card=card),
                    total=total,
                    paid_amount=paid,
                    status=status,
                    transaction_ids=tuple(tx.id for tx in records),
                )
            )

        logger.debug("invoice_summaries_built", extra={
            "card_id": card.id,
            "invoice_count": len(summaries),
        })
        return tuple(summaries)


def available_limit(card: Card, transactions: Iterable[Transaction]) -> Decimal | None:
    """
    Credit limit minus every unreconciled purchase on the card.

    Returns None for cards without a configured limit.
    """
    if card.credit_limit is None:
        return None
    used = sum(
        (tx.magnitude for tx in transactions if tx.card_id == card.id and not tx.is_reconciled),
        ZERO,
    )
    return card.credit_limit - used
