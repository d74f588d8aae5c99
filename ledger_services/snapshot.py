"""
ledger_services.snapshot -- In-memory dataset handed over by persistence.

Responsibility:
    Hold the transactions, accounts, cards and categories the engines work
    on, resolve ids with NotFound semantics and produce updated copies.

Architecture position:
    Services -- the boundary with the persistence collaborator.  A snapshot
    is immutable; every change returns a new snapshot which the caller
    persists.

Invariants enforced:
    - Ids are unique inside each collection.
    - Lookups of unknown ids raise the typed NotFoundError subclass.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from types import MappingProxyType

from ledger_kernel.domain.models import Account, Card, Category, Transaction
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    CardNotFoundError,
    InvalidInputError,
    TransactionNotFoundError,
)


def _index(records: Iterable, collection: str) -> Mapping:
    indexed = {}
    for record in records:
        if record.id in indexed:
            raise InvalidInputError(collection, f"duplicate id {record.id}")
        indexed[record.id] = record
    return MappingProxyType(indexed)


@dataclass(frozen=True)
class LedgerSnapshot:
    """Frozen view of one ledger's records, keyed by id."""

    transactions: Mapping[str, Transaction] = field(default_factory=lambda: MappingProxyType({}))
    accounts: Mapping[str, Account] = field(default_factory=lambda: MappingProxyType({}))
    cards: Mapping[str, Card] = field(default_factory=lambda: MappingProxyType({}))
    categories: Mapping[str, Category] = field(default_factory=lambda: MappingProxyType({}))
    snapshot_id: str | None = None

    @classmethod
    def of(
        cls,
        transactions: Iterable[Transaction] = (),
        accounts: Iterable[Account] = (),
        cards: Iterable[Card] = (),
        categories: Iterable[Category] = (),
        snapshot_id: str | None = None,
    ) -> LedgerSnapshot:
        return cls(
            transactions=_index(transactions, "transactions"),
            accounts=_index(accounts, "accounts"),
            cards=_index(cards, "cards"),
            categories=_index(categories, "categories"),
            snapshot_id=snapshot_id,
        )

    # -- lookups ------------------------------------------------------------

    def get_transaction(self, transaction_id: str) -> Transaction:
        try:
            return self.transactions[transaction_id]
        except KeyError:
            raise TransactionNotFoundError(transaction_id) from None

    def get_account(self, account_id: str) -> Account:
        try:
            return self.accounts[account_id]
        except KeyError:
            raise AccountNotFoundError(account_id) from None

    def get_card(self, card_id: str) -> Card:
        try:
            return self.cards[card_id]
        except KeyError:
            raise CardNotFoundError(card_id) from None

    # -- updates ------------------------------------------------------------

    def with_transactions(self, records: Iterable[Transaction]) -> LedgerSnapshot:
        """Copy with ``records`` inserted or replacing same-id records."""
        updated = dict(self.transactions)
        for record in records:
            updated[record.id] = record
        return self._replace(transactions=MappingProxyType(updated))

    def without_transactions(self, ids: Iterable[str]) -> LedgerSnapshot:
        """Copy without the given ids; unknown ids are ignored."""
        drop = set(ids)
        kept = {k: v for k, v in self.transactions.items() if k not in drop}
        return self._replace(transactions=MappingProxyType(kept))

    def _replace(self, **changes) -> LedgerSnapshot:
        data = dict(
            transactions=self.transactions,
            accounts=self.accounts,
            cards=self.cards,
            categories=self.categories,
            snapshot_id=self.snapshot_id,
        )
        data.update(changes)
        return LedgerSnapshot(**data)
