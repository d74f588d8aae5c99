"""
ledger_services.ledger_service -- Snapshot-level facade over the engines.

Responsibility:
    Resolve ids against a LedgerSnapshot, wire the injected clock and the
    active EngineConfig into the pure engines, and turn engine results into
    updated snapshots plus per-id batch outcomes.

Architecture position:
    Services -- orchestration over engines + kernel.  The only layer that
    reads the clock and the configuration.  Holds no ledger state; every
    call takes a snapshot and returns a new one.

Invariants enforced:
    - Engines never see the clock: "today" is read here once per call and
      passed down explicitly.
    - Single-item operations raise typed errors and leave the snapshot
      untouched; batch operations never raise for one id.
    - Batch operations are not atomic: successful ids are applied even when
      others fail.

Failure modes:
    - NotFoundError subclasses for unknown transaction, account or card ids.
    - Errors raised by the engines propagate unchanged in single-item calls.

Usage:
    service = LedgerService(clock=SystemClock())
    snapshot, result = service.settle(
        snapshot, "tx-1", SettlementRequest(payment_date=date(2024, 3, 5)),
    )
"""

from __future__ import annotations

import dataclasses
from collections.abc import Callable, Iterable
from datetime import date
from decimal import Decimal

from ledger_config import EngineConfig, get_active_config
from ledger_engines.balances import AccountBalance, BalanceProjector
from ledger_engines.cash_flow import (
    CashFlowAggregator,
    CashFlowQuery,
    CashFlowStatement,
    DailyProjection,
)
from ledger_engines.category_tree import category_totals, parent_map, rollup
from ledger_engines.income_statement import (
    DEFAULT_STATEMENT_LINE_RULES,
    IncomeStatement,
    StatementBasis,
    StatementLineRule,
    build_income_statement,
)
from ledger_engines.installments import InstallmentSplitter
from ledger_engines.invoice_cycle import (
    InvoiceCycleResolver,
    InvoicePeriod,
    InvoiceSummary,
    available_limit,
)
from ledger_engines.liquidity import LiquidityCalculator, LiquidityMetrics
from ledger_engines.reconciliation import (
    BatchOutcome,
    BatchResult,
    OpenItemsSummary,
    ReconciliationEngine,
    SettlementRequest,
    SettlementResult,
    open_items_summary,
)
from ledger_engines.recurrence import RecurrenceExpander
from ledger_kernel.domain.clock import Clock, SystemClock
from ledger_kernel.domain.models import (
    RecurrenceRule,
    Transaction,
    TransactionKind,
    TransactionStatus,
    new_transaction_id,
)
from ledger_kernel.exceptions import (
    InconsistentStateError,
    InvalidInputError,
    TransactionNotFoundError,
)
from ledger_kernel.logging_config import LogContext, get_logger
from ledger_services.snapshot import LedgerSnapshot

logger = get_logger("services.ledger")


class LedgerService:
    """
    Facade running the engines over a LedgerSnapshot.

    Contract:
        Every mutating method returns ``(new_snapshot, result)``; the input
        snapshot is never modified.
    Guarantees:
        - Engine parameters (recurrence cap, liquidity window, rounding
          precision, default cash-flow class, statement rules) come from
          the EngineConfig given at construction.
    Non-goals:
        - Does NOT persist anything; the caller stores the returned
          snapshot (or its changed records).
    """

    def __init__(
        self,
        clock: Clock | None = None,
        config: EngineConfig | None = None,
        id_factory: Callable[[], str] = new_transaction_id,
    ):
        self._clock = clock or SystemClock()
        self._config = config or get_active_config()
        self._id_factory = id_factory

        self._splitter = InstallmentSplitter(self._config.monetary_decimal_places)
        self._expander = RecurrenceExpander(self._config.recurrence_safety_cap)
        self._resolver = InvoiceCycleResolver()
        self._reconciliation = ReconciliationEngine(self._config.monetary_decimal_places)
        self._balances = BalanceProjector()
        self._cash_flow = CashFlowAggregator(self._config.default_cash_flow_class)
        self._liquidity = LiquidityCalculator(self._config.liquidity_window_days)
        self._statement_rules = tuple(
            StatementLineRule(rule.line, rule.keywords)
            for rule in self._config.statement_line_rules
        ) or DEFAULT_STATEMENT_LINE_RULES

    @property
    def config(self) -> EngineConfig:
        return self._config

    def today(self) -> date:
        return self._clock.today()

    # -- creation ---------------------------------------------------------

    def add_transaction(self, snapshot: LedgerSnapshot, tx: Transaction) -> LedgerSnapshot:
        if tx.id in snapshot.transactions:
            raise InvalidInputError("id", f"transaction {tx.id} already exists")
        return snapshot.with_transactions([tx])

    def create_recurring(
        self,
        snapshot: LedgerSnapshot,
        template: Transaction,
        rule: RecurrenceRule | None = None,
    ) -> tuple[LedgerSnapshot, tuple[Transaction, ...]]:
        """Store the template and every instance of its series."""
        with LogContext.bind(snapshot_id=snapshot.snapshot_id, operation="create_recurring"):
            rule = rule or template.recurrence_rule
            template = template.with_changes(recurrence_rule=rule)
            instances = self._expander.expand_all(
                template=template, rule=rule, id_factory=self._id_factory
            )
            return snapshot.with_transactions(instances), instances

    def create_installments(
        self,
        snapshot: LedgerSnapshot,
        template: Transaction,
        count: int,
        first_due_date: date | None = None,
    ) -> tuple[LedgerSnapshot, tuple[Transaction, ...]]:
        """Split ``template`` and store the resulting installment records."""
        with LogContext.bind(snapshot_id=snapshot.snapshot_id, operation="create_installments"):
            records = self._splitter.build_transactions(
                template, count, first_due_date=first_due_date, id_factory=self._id_factory
            )
            return snapshot.with_transactions(records), records

    def create_card_purchase(
        self,
        snapshot: LedgerSnapshot,
        template: Transaction,
        card_id: str,
        installments: int = 1,
    ) -> tuple[LedgerSnapshot, tuple[Transaction, ...]]:
        with LogContext.bind(snapshot_id=snapshot.snapshot_id, operation="create_card_purchase"):
            card = snapshot.get_card(card_id)
            records = self._splitter.build_card_purchase(
                template,
                card,
                count=installments,
                id_factory=self._id_factory,
                resolver=self._resolver,
            )
            return snapshot.with_transactions(records), records

    # -- status transitions ------------------------------------------------

    def effective_status(self, snapshot: LedgerSnapshot, transaction_id: str) -> TransactionStatus:
        return snapshot.get_transaction(transaction_id).effective_status(self.today())

    def settle(
        self,
        snapshot: LedgerSnapshot,
        transaction_id: str,
        request: SettlementRequest,
    ) -> tuple[LedgerSnapshot, SettlementResult]:
        """Settle one record; raises on failure."""
        with LogContext.bind(snapshot_id=snapshot.snapshot_id, operation="settle"):
            tx = snapshot.get_transaction(transaction_id)
            result = self._reconciliation.settle(
                tx=tx,
                request=self._with_card_account(snapshot, tx, request),
                id_factory=self._id_factory,
            )
            return snapshot.with_transactions(result.records), result

    def settle_many(
        self,
        snapshot: LedgerSnapshot,
        ids: Iterable[str],
        request: SettlementRequest,
    ) -> tuple[LedgerSnapshot, BatchResult]:
        """Settle each id independently with the same request."""
        with LogContext.bind(snapshot_id=snapshot.snapshot_id, operation="settle_many"):
            ids = tuple(ids)
            requests = {
                tx_id: self._with_card_account(snapshot, snapshot.transactions[tx_id], request)
                for tx_id in ids
                if tx_id in snapshot.transactions
            }
            result = self._reconciliation.settle_many(
                snapshot.transactions, ids, requests, id_factory=self._id_factory
            )
            return snapshot.with_transactions(result.records), result

    def undo(self, snapshot: LedgerSnapshot, transaction_id: str) -> tuple[LedgerSnapshot, Transaction]:
        with LogContext.bind(snapshot_id=snapshot.snapshot_id, operation="undo"):
            restored = self._reconciliation.undo(snapshot.get_transaction(transaction_id))
            return snapshot.with_transactions([restored]), restored

    def undo_many(self, snapshot: LedgerSnapshot, ids: Iterable[str]) -> tuple[LedgerSnapshot, BatchResult]:
        with LogContext.bind(snapshot_id=snapshot.snapshot_id, operation="undo_many"):
            result = self._reconciliation.undo_many(snapshot.transactions, ids)
            return snapshot.with_transactions(result.records), result

    def release_many(self, snapshot: LedgerSnapshot, ids: Iterable[str]) -> tuple[LedgerSnapshot, BatchResult]:
        with LogContext.bind(snapshot_id=snapshot.snapshot_id, operation="release_many"):
            result = self._reconciliation.release_many(snapshot.transactions, ids)
            return snapshot.with_transactions(result.records), result

    def delete_many(self, snapshot: LedgerSnapshot, ids: Iterable[str]) -> tuple[LedgerSnapshot, BatchResult]:
        """Independent deletions; unknown ids are reported, not raised."""
        outcomes = []
        deleted = []
        for tx_id in ids:
            if tx_id in deleted:
                outcomes.append(BatchOutcome.failure(
                    tx_id, InconsistentStateError(tx_id, "repeated in the same delete batch"),
                ))
            elif tx_id in snapshot.transactions:
                deleted.append(tx_id)
                outcomes.append(BatchOutcome.success(tx_id, ()))
            else:
                outcomes.append(BatchOutcome.failure(tx_id, TransactionNotFoundError(tx_id)))
        result = BatchResult(tuple(outcomes))
        logger.info("batch_completed", extra={
            "batch_operation": "delete",
            "requested": len(outcomes),
            "succeeded": len(deleted),
            "failed": len(outcomes) - len(deleted),
        })
        return snapshot.without_transactions(deleted), result

    def _with_card_account(
        self,
        snapshot: LedgerSnapshot,
        tx: Transaction,
        request: SettlementRequest,
    ) -> SettlementRequest:
        """Card records without an account settle against the card's default account."""
        if request.account_id or tx.account_id or not tx.card_id:
            return request
        card = snapshot.cards.get(tx.card_id)
        if card is None or card.default_account_id is None:
            return request
        return dataclasses.replace(request, account_id=card.default_account_id)

    # -- read models -------------------------------------------------------

    def balances(
        self,
        snapshot: LedgerSnapshot,
        account_ids: Iterable[str] | None = None,
    ) -> tuple[AccountBalance, ...]:
        if account_ids is None:
            accounts = tuple(snapshot.accounts.values())
        else:
            accounts = tuple(snapshot.get_account(a) for a in account_ids)
        return self._balances.project(
            accounts=accounts, transactions=snapshot.transactions.values()
        )

    def cash_flow(self, snapshot: LedgerSnapshot, query: CashFlowQuery) -> CashFlowStatement:
        with LogContext.bind(snapshot_id=snapshot.snapshot_id, operation="cash_flow"):
            for account_id in query.account_ids or ():
                snapshot.get_account(account_id)
            return self._cash_flow.aggregate(
                query=query,
                transactions=snapshot.transactions.values(),
                accounts=snapshot.accounts.values(),
                categories=snapshot.categories,
                as_of=self.today(),
            )

    def project_daily(
        self,
        snapshot: LedgerSnapshot,
        days: int = 30,
        account_ids: Iterable[str] | None = None,
    ) -> tuple[DailyProjection, ...]:
        if account_ids is not None:
            account_ids = frozenset(snapshot.get_account(a).id for a in account_ids)
        return self._cash_flow.project_daily(
            transactions=snapshot.transactions.values(),
            accounts=snapshot.accounts.values(),
            today=self.today(),
            days=days,
            account_ids=account_ids,
        )

    def liquidity(self, snapshot: LedgerSnapshot, dio: int = 0) -> LiquidityMetrics:
        return self._liquidity.compute(
            transactions=snapshot.transactions.values(), as_of=self.today(), dio=dio
        )

    def invoices(self, snapshot: LedgerSnapshot, card_id: str) -> tuple[InvoiceSummary, ...]:
        card = snapshot.get_card(card_id)
        return self._resolver.summarize(card, snapshot.transactions.values(), self.today())

    def current_invoice(self, snapshot: LedgerSnapshot, card_id: str, offset: int = 0) -> InvoicePeriod:
        return self._resolver.current_period(snapshot.get_card(card_id), self.today(), offset)

    def available_limit(self, snapshot: LedgerSnapshot, card_id: str) -> Decimal | None:
        return available_limit(snapshot.get_card(card_id), snapshot.transactions.values())

    def income_statement(
        self,
        snapshot: LedgerSnapshot,
        start: date,
        end: date,
        basis: StatementBasis = StatementBasis.ACCRUAL,
    ) -> IncomeStatement:
        return build_income_statement(
            transactions=snapshot.transactions.values(),
            categories=snapshot.categories,
            start=start,
            end=end,
            basis=basis,
            rules=self._statement_rules,
        )

    def category_rollup(
        self,
        snapshot: LedgerSnapshot,
        kinds: Iterable[TransactionKind] = (TransactionKind.INCOME, TransactionKind.EXPENSE),
    ) -> dict[str, Decimal]:
        direct = category_totals(snapshot.transactions.values(), tuple(kinds))
        return rollup(direct, parent_map(snapshot.categories.values()))

    def open_items(self, snapshot: LedgerSnapshot) -> OpenItemsSummary:
        return open_items_summary(snapshot.transactions.values(), self.today())

