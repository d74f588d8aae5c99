"""
Module: ledger_engines.installments
Responsibility:
    Split a purchase total into N monthly installments with exact remainder
    allocation, and turn the split into pending transactions (bank-account
    purchases and credit-card purchases).

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import ledger_kernel and sibling engine modules.

Invariants enforced:
    - Sum of installment amounts equals the total exactly: every item gets
      the two-decimal truncated share and the first one also takes the
      remainder.
    - Due dates advance one calendar month per installment, keeping the
      day of month and clamping to month end.
    - Purity: no clock access, no I/O.

Failure modes:
    - InvalidInputError when count < 1, total < 0, or total has more
      decimal places than the monetary precision.

Usage:
    from ledger_engines.installments import InstallmentSplitter

    splitter = InstallmentSplitter()
    plan = splitter.split(
        total=Decimal("100.00"), count=3, first_due_date=date(2024, 1, 31),
    )
    # amounts: 33.34, 33.33, 33.33
    # due dates: 2024-01-31, 2024-02-29, 2024-03-31
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from ledger_engines.invoice_cycle import InvoiceCycleResolver
from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.dates import add_months
from ledger_kernel.domain.models import (
    Card,
    InstallmentInfo,
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
from ledger_kernel.exceptions import InvalidInputError
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.installments")


@dataclass(frozen=True)
class Installment:
    """One entry of an installment plan."""

    number: int
    amount: Decimal
    due_date: date


class InstallmentSplitter:
    """
    Pure splitter for multi-part purchases.

    Contract:
        No I/O, fully deterministic.
    Guarantees:
        - ``split`` returns exactly ``count`` installments whose amounts
          add up to ``total``.
        - Installment 1 carries ``base + remainder``; all others ``base``.
    Non-goals:
        - Does not apply interest or financing charges.
    """

    def __init__(self, decimal_places: int = MONETARY_DECIMAL_PLACES):
        self._decimal_places = decimal_places

    @traced_engine("installments", "1.0", fingerprint_fields=("total", "count", "first_due_date"))
    def split(
        self,
        *,
        total: Decimal,
        count: int,
        first_due_date: date,
    ) -> tuple[Installment, ...]:
        """
        Split ``total`` into ``count`` dated installments.

        Preconditions:
            total >= 0 with at most the monetary precision; count >= 1.

        Postconditions:
            sum(i.amount) == total; due dates are first_due_date + i months.

        Raises:
            InvalidInputError: On a negative total, a total with sub-unit
                precision, or count < 1.
        """
        total = to_money(total, "total")
        if isinstance(count, bool) or not isinstance(count, int) or count < 1:
            logger.warning("installment_split_rejected", extra={"field": "count", "count": str(count)})
            raise InvalidInputError("count", f"must be an integer >= 1, got {count!r}")
        if total < ZERO:
            logger.warning("installment_split_rejected", extra={"field": "total", "total": str(total)})
            raise InvalidInputError("total", f"cannot be negative, got {total}")
        if round_money(total, self._decimal_places) != total:
            logger.warning("installment_split_rejected", extra={"field": "total", "total": str(total)})
            raise InvalidInputError(
                "total", f"{total} has more than {self._decimal_places} decimal places"
            )

        base = truncate_money(total / count, self._decimal_places)
        remainder = round_money(total - base * count, self._decimal_places)

        installments = tuple(
            Installment(
                number=i + 1,
                amount=base + remainder if i == 0 else base,
                due_date=add_months(first_due_date, i),
            )
            for i in range(count)
        )

        logger.debug("installment_split_completed", extra={
            "total": str(total),
            "count": count,
            "base": str(base),
            "remainder": str(remainder),
        })
        return installments

    def build_transactions(
        self,
        template: Transaction,
        count: int,
        first_due_date: date | None = None,
        id_factory: Callable[[], str] = new_transaction_id,
    ) -> tuple[Transaction, ...]:
        """
        Turn a purchase record into ``count`` pending installment records.

        ``template.amount`` is the signed total.  Each record keeps the
        template's kind, sign, category, account and cost center, gets a
        fresh id, ``parent_id = template.id`` and an "(i/N)" suffix when
        ``count > 1``.
        """
        if template.kind == TransactionKind.TRANSFER:
            raise InvalidInputError("kind", "transfers cannot be split into installments")

        plan = self.split(
            total=template.magnitude,
            count=count,
            first_due_date=first_due_date or template.due_date,
        )
        records = tuple(
            _installment_record(template, item, count, id_factory(), due_date=item.due_date)
            for item in plan
        )

        logger.info("installment_plan_built", extra={
            "parent_id": template.id,
            "count": count,
            "total": str(template.amount),
        })
        return records

    def build_card_purchase(
        self,
        template: Transaction,
        card: Card,
        count: int = 1,
        id_factory: Callable[[], str] = new_transaction_id,
        resolver: InvoiceCycleResolver | None = None,
    ) -> tuple[Transaction, ...]:
        """
        Split a credit-card purchase and place each installment in its invoice.

        Installment i is treated as bought on ``template.launch_date + i``
        months; its invoice period comes from that date and its due date is
        the due date of that invoice.
        """
        if template.kind != TransactionKind.EXPENSE:
            raise InvalidInputError("kind", "card purchases must be expenses")

        resolver = resolver or InvoiceCycleResolver()
        plan = self.split(
            total=template.magnitude,
            count=count,
            first_due_date=template.launch_date,
        )

        records: list[Transaction] = []
        for item in plan:
            period = resolver.resolve(purchase_date=item.due_date, card=card)
            records.append(
                _installment_record(
                    template,
                    item,
                    count,
                    id_factory(),
                    due_date=resolver.due_date(period=period, card=card),
                    launch_date=item.due_date,
                    card_id=card.id,
                    invoice_period_id=period.identifier,
                    account_id=None,
                )
            )

        logger.info("card_purchase_built", extra={
            "parent_id": template.id,
            "card_id": card.id,
            "count": count,
            "invoices": [r.invoice_period_id for r in records],
        })
        return tuple(records)


def _installment_record(
    template: Transaction,
    item: Installment,
    count: int,
    new_record_id: str,
    **overrides,
) -> Transaction:
    description = template.description
    if count > 1:
        description = f"{description} ({item.number}/{count})".strip()
    changes = dict(
        id=new_record_id,
        amount=item.amount * template.direction if item.amount else ZERO,
        status=TransactionStatus.PENDING,
        payment_date=None,
        settlement_adjustments=None,
        recurrence_rule=None,
        installment=InstallmentInfo(item.number, count),
        description=description,
        parent_id=template.id,
    )
    changes.update(overrides)
    return template.with_changes(**changes)


def build_installment_transactions(
    template: Transaction,
    count: int,
    first_due_date: date | None = None,
    id_factory: Callable[[], str] = new_transaction_id,
) -> tuple[Transaction, ...]:
    """Convenience wrapper around ``InstallmentSplitter().build_transactions``."""
    return InstallmentSplitter().build_transactions(
        template, count, first_due_date=first_due_date, id_factory=id_factory
    )


def build_card_purchase(
    template: Transaction,
    card: Card,
    installments: int = 1,
    id_factory: Callable[[], str] = new_transaction_id,
) -> tuple[Transaction, ...]:
    """Convenience wrapper around ``InstallmentSplitter().build_card_purchase``."""
    return InstallmentSplitter().build_card_purchase(
        template, card, count=installments, id_factory=id_factory
    )
