"""
Module: ledger_engines.recurrence
Responsibility:
    Expand a transaction template plus a RecurrenceRule into a bounded,
    ordered series of dated instances.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Bounded: no expansion yields more than the safety cap
      (MAX_RECURRENCE_INSTANCES unless configured lower), whatever the end
      policy says.
    - No drift: instance k is computed from the template date as
      ``template + k * interval`` units, so a Jan 31 monthly series reads
      Jan 31, Feb 29, Mar 31 rather than sticking to the 29th.
    - The template is instance 1 and is yielded unchanged.

Failure modes:
    - InvalidInputError when no rule is available or the cap is < 1.
      A configured cap above MAX_RECURRENCE_INSTANCES is lowered to it.

Usage:
    expander = RecurrenceExpander()
    for instance in expander.expand(template, rule):
        ...
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from datetime import date, timedelta

from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.dates import add_months, add_years
from ledger_kernel.domain.models import (
    Frequency,
    RecurrenceRule,
    Transaction,
    TransactionStatus,
    new_transaction_id,
)
from ledger_kernel.exceptions import InvalidInputError
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.recurrence")

# Hard ceiling on instances per expansion, counting the template.
MAX_RECURRENCE_INSTANCES = 60


def step_date(origin: date, frequency: Frequency, steps: int) -> date:
    """``origin`` advanced ``steps`` units of ``frequency``."""
    if frequency == Frequency.WEEKLY:
        return origin + timedelta(days=7 * steps)
    if frequency == Frequency.MONTHLY:
        return add_months(origin, steps)
    return add_years(origin, steps)


class RecurrenceExpander:
    """
    Lazy recurrence expansion.

    Contract:
        ``expand`` returns a fresh generator on every call; each generator
        can be consumed once.
    Guarantees:
        - Instances are in ascending due-date order.
        - Generated instances are pending, unpaid, carry no recurrence rule
          and point to the template through ``parent_id``.
    """

    def __init__(self, safety_cap: int = MAX_RECURRENCE_INSTANCES):
        if safety_cap < 1:
            raise InvalidInputError("safety_cap", f"must be >= 1, got {safety_cap}")
        self._safety_cap = min(safety_cap, MAX_RECURRENCE_INSTANCES)

    @property
    def safety_cap(self) -> int:
        return self._safety_cap

    def expand(
        self,
        template: Transaction,
        rule: RecurrenceRule | None = None,
        id_factory: Callable[[], str] = new_transaction_id,
    ) -> Iterator[Transaction]:
        """
        Yield the template followed by its generated instances.

        Stops at whichever comes first: the next due date is after the
        rule's end date, the rule's count is reached, or the safety cap is
        reached.

        Raises:
            InvalidInputError: Neither ``rule`` nor ``template.recurrence_rule``
                is set (raised when iteration starts).
        """
        rule = rule or template.recurrence_rule
        if rule is None:
            logger.warning("recurrence_expand_rejected", extra={"template_id": template.id})
            raise InvalidInputError("recurrence_rule", f"template {template.id} has no recurrence rule")

        limit = self._safety_cap
        if rule.end_policy.count is not None:
            limit = min(limit, rule.end_policy.count)
        until = rule.end_policy.until

        logger.info("recurrence_expand_started", extra={
            "template_id": template.id,
            "frequency": rule.frequency.value,
            "interval": rule.interval,
            "limit": limit,
        })

        produced = 0
        for k in range(limit):
            if k == 0:
                instance = template
            else:
                steps = k * rule.interval
                due = step_date(template.due_date, rule.frequency, steps)
                if until is not None and due > until:
                    break
                instance = template.with_changes(
                    id=id_factory(),
                    due_date=due,
                    launch_date=step_date(template.launch_date, rule.frequency, steps),
                    status=TransactionStatus.PENDING,
                    payment_date=None,
                    settlement_adjustments=None,
                    recurrence_rule=None,
                    parent_id=template.id,
                )
            produced += 1
            yield instance

        logger.info("recurrence_expand_completed", extra={
            "template_id": template.id,
            "instances": produced,
            "capped": produced == self._safety_cap,
        })

    @traced_engine("recurrence", "1.0", fingerprint_fields=("template", "rule"))
    def expand_all(
        self,
        *,
        template: Transaction,
        rule: RecurrenceRule | None = None,
        id_factory: Callable[[], str] = new_transaction_id,
    ) -> tuple[Transaction, ...]:
        """Eager form of ``expand``."""
        return tuple(self.expand(template, rule, id_factory))
