"""
Module: ledger_engines.balances
Responsibility:
    Realized and projected balance per account from opening balances and a
    transaction set.

Architecture position:
    Engines -- pure calculation layer, zero I/O.

Invariants enforced:
    - Realized counts reconciled records only.
    - Projected = realized + signed effect of open records (pending and
      scheduled).  Nothing else is added, so the difference between the
      two views is exactly the open total.
    - Transfers move money on both legs: the source by ``amount`` and the
      destination by ``magnitude``.
    - Balances are "as of now", not date-scoped.
"""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from ledger_engines.tracer import traced_engine
from ledger_kernel.domain.models import Account, Transaction
from ledger_kernel.domain.money import ZERO
from ledger_kernel.domain.render import render_to_dict
from ledger_kernel.logging_config import get_logger

logger = get_logger("engines.balances")


@dataclass(frozen=True)
class AccountBalance:
    account_id: str
    opening: Decimal
    realized: Decimal
    pending_total: Decimal
    projected: Decimal

    def to_dict(self) -> dict[str, Any]:
        return render_to_dict(self)


class BalanceProjector:
    """Stateless balance calculator."""

    def realized_balance(self, account: Account, transactions: Iterable[Transaction]) -> Decimal:
        return account.opening_balance + sum(
            (tx.signed_effect(account.id) for tx in transactions if tx.is_reconciled),
            ZERO,
        )

    def pending_total(self, account: Account, transactions: Iterable[Transaction]) -> Decimal:
        return sum(
            (tx.signed_effect(account.id) for tx in transactions if tx.is_open),
            ZERO,
        )

    def projected_balance(self, account: Account, transactions: Iterable[Transaction]) -> Decimal:
        records = tuple(transactions)
        return self.realized_balance(account, records) + self.pending_total(account, records)

    @traced_engine("balances", "1.0", fingerprint_fields=("accounts",))
    def project(
        self,
        *,
        accounts: Iterable[Account],
        transactions: Iterable[Transaction],
    ) -> tuple[AccountBalance, ...]:
        """One AccountBalance per account, in input order, in a single pass."""
        accounts = tuple(accounts)
        realized = {a.id: ZERO for a in accounts}
        pending = {a.id: ZERO for a in accounts}

        for tx in transactions:
            if tx.is_reconciled:
                target = realized
            elif tx.is_open:
                target = pending
            else:
                continue
            for account_id in (tx.account_id, tx.destination_account_id):
                if account_id in target:
                    target[account_id] += tx.signed_effect(account_id)

        balances = tuple(
            AccountBalance(
                account_id=a.id,
                opening=a.opening_balance,
                realized=a.opening_balance + realized[a.id],
                pending_total=pending[a.id],
                projected=a.opening_balance + realized[a.id] + pending[a.id],
            )
            for a in accounts
        )
        logger.debug("balances_projected", extra={"account_count": len(balances)})
        return balances
