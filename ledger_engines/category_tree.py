"""
Category hierarchy roll-up.

Parent totals are the sum of their own records plus every descendant's.
The walk is an explicit iterative traversal over a parent-pointer map, so
deep trees do not hit the recursion limit and cycles are reported instead
of looping.
"""

from __future__ import annotations

from collections import defaultdict
from collections.abc import Collection, Iterable, Mapping
from decimal import Decimal

from ledger_kernel.domain.models import Category, Transaction, TransactionKind
from ledger_kernel.domain.money import ZERO
from ledger_kernel.exceptions import InvalidInputError
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.category_tree")


def category_totals(
    transactions: Iterable[Transaction],
    kinds: Collection[TransactionKind] = (TransactionKind.INCOME, TransactionKind.EXPENSE),
) -> dict[str, Decimal]:
    """Sum of magnitudes per category id, over records of the given kinds."""
    totals: dict[str, Decimal] = defaultdict(lambda: ZERO)
    for tx in transactions:
        if tx.category_id is not None and tx.kind in kinds:
            totals[tx.category_id] += tx.magnitude
    return dict(totals)


def parent_map(categories: Iterable[Category]) -> dict[str, str | None]:
    return {c.id: c.parent_id for c in categories}


def ancestors(category_id: str, parents: Mapping[str, str | None]) -> list[str]:
    """Ancestor chain of ``category_id``, nearest first.

    Raises:
        InvalidInputError: The parent chain loops back on itself.
    """
    chain: list[str] = []
    seen = {category_id}
    current = parents.get(category_id)
    while current is not None:
        if current in seen:
            logger.warning("category_cycle_detected", extra={"category_id": category_id, "at": current})
            raise InvalidInputError("parent_id", f"category hierarchy has a cycle through {current}")
        seen.add(current)
        chain.append(current)
        current = parents.get(current)
    return chain


def rollup(
    direct_totals: Mapping[str, Decimal],
    parents: Mapping[str, str | None],
) -> dict[str, Decimal]:
    """
    Own total plus all descendants' totals, for every category.

    Every category in ``parents`` appears in the result (zero when it has
    no records below it); categories only present in ``direct_totals``
    are treated as roots.
    """
    for category_id in parents:
        ancestors(category_id, parents)

    result: dict[str, Decimal] = {cid: ZERO for cid in parents}
    for category_id, amount in direct_totals.items():
        result[category_id] = result.get(category_id, ZERO) + amount
        for ancestor in ancestors(category_id, parents):
            result[ancestor] = result.get(ancestor, ZERO) + amount
    return result
