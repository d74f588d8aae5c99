"""
Tests for LedgerService: snapshot in, snapshot out.

Covers:
- Creation flows (recurring series, installments, card purchases)
- Single and batch transitions, including card default-account settlement
- Read models driven by the injected clock and active configuration
- NotFound semantics and log context binding
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_config.schema import EngineConfig
from ledger_engines.cash_flow import CashFlowQuery
from ledger_engines.income_statement import StatementBasis
from ledger_engines.reconciliation import SettlementRequest
from ledger_kernel.domain.models import (
    EndPolicy,
    Frequency,
    RecurrenceRule,
    TransactionStatus,
)
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    CardNotFoundError,
    InvalidInputError,
    InvalidTransitionError,
    TransactionNotFoundError,
)
from ledger_services import LedgerService
from tests.builders import (
    TODAY,
    make_expense,
    make_income,
    make_reconciled,
    sequential_ids,
)


class TestCreation:
    """Records produced by the service land in the returned snapshot."""

    def test_add_transaction(self, service, snapshot):
        updated = service.add_transaction(snapshot, make_expense("e1"))
        assert "e1" in updated.transactions
        assert "e1" not in snapshot.transactions

    def test_add_duplicate_rejected(self, service, snapshot):
        updated = service.add_transaction(snapshot, make_expense("e1"))
        with pytest.raises(InvalidInputError):
            service.add_transaction(updated, make_expense("e1"))

    def test_create_recurring(self, service, snapshot):
        template = make_expense("rent", "-1500.00", due=date(2024, 1, 5))
        rule = RecurrenceRule(Frequency.MONTHLY, 1, EndPolicy.by_count(12))

        updated, instances = service.create_recurring(snapshot, template, rule)

        assert len(instances) == 12
        assert len(updated.transactions) == 12
        assert updated.transactions["rent"].recurrence_rule == rule
        assert instances[-1].due_date == date(2024, 12, 5)

    def test_recurring_cap_from_config(self, clock, snapshot):
        config = EngineConfig(
            config_id="test",
            version=1,
            recurrence_safety_cap=6,
            monetary_decimal_places=2,
            liquidity_window_days=90,
        )
        service = LedgerService(clock=clock, config=config, id_factory=sequential_ids())
        rule = RecurrenceRule(Frequency.WEEKLY)
        _, instances = service.create_recurring(snapshot, make_expense("w"), rule)
        assert len(instances) == 6

    def test_settlement_precision_from_config(self, clock, snapshot, service):
        config = EngineConfig(
            config_id="test",
            version=1,
            recurrence_safety_cap=60,
            monetary_decimal_places=3,
            liquidity_window_days=90,
        )
        fine = LedgerService(clock=clock, config=config, id_factory=sequential_ids())
        snap = snapshot.with_transactions([make_expense("e1", "-200.000")])
        request = SettlementRequest(payment_date=TODAY, paid_amount=Decimal("150.005"))

        _, result = fine.settle(snap, "e1", request)
        assert result.remainder.amount == Decimal("-49.995")
        with pytest.raises(InvalidInputError):
            service.settle(snap, "e1", request)

    def test_create_installments(self, service, snapshot):
        template = make_expense("buy", "-100.00", description="Desk")
        updated, records = service.create_installments(snapshot, template, 3)
        assert [r.amount for r in records] == [
            Decimal("-33.34"),
            Decimal("-33.33"),
            Decimal("-33.33"),
        ]
        assert set(updated.transactions) == {"gen-1", "gen-2", "gen-3"}

    def test_create_card_purchase(self, service, snapshot):
        template = make_expense("buy", "-90.00", due=date(2024, 3, 12), account_id=None)
        updated, records = service.create_card_purchase(snapshot, template, "C1", installments=3)
        assert [r.invoice_period_id for r in records] == ["C1_2024-04", "C1_2024-05", "C1_2024-06"]
        assert service.available_limit(updated, "C1") == Decimal("4910.00")

    def test_unknown_card(self, service, snapshot):
        with pytest.raises(CardNotFoundError):
            service.create_card_purchase(snapshot, make_expense(), "nope")


class TestTransitions:
    """Settle / undo / release / delete through the snapshot."""

    def test_effective_status_uses_clock(self, service, snapshot):
        snap = service.add_transaction(snapshot, make_expense("e1", due=date(2024, 3, 1)))
        assert service.effective_status(snap, "e1") is TransactionStatus.OVERDUE

    def test_partial_settle(self, service, snapshot):
        snap = service.add_transaction(snapshot, make_expense("e1", "-200.00"))
        snap, result = service.settle(
            snap, "e1", SettlementRequest(payment_date=TODAY, paid_amount=Decimal("150.00"))
        )
        assert snap.transactions["e1"].amount == Decimal("-150.00")
        assert snap.transactions["gen-1"].amount == Decimal("-50.00")
        assert result.remainder.id == "gen-1"

    def test_card_record_settles_against_default_account(self, service, snapshot):
        tx = make_expense("c1", "-80.00", account_id=None, card_id="C1")
        snap = service.add_transaction(snapshot, tx)
        snap, result = service.settle(snap, "c1", SettlementRequest(payment_date=TODAY))
        assert result.reconciled.account_id == "acc-1"

        snap, restored = service.undo(snap, "c1")
        assert restored.account_id is None
        assert snap.transactions["c1"] == tx

    def test_settle_unknown_id(self, service, snapshot):
        with pytest.raises(TransactionNotFoundError):
            service.settle(snapshot, "ghost", SettlementRequest(payment_date=TODAY))

    def test_failed_settle_leaves_snapshot(self, service, snapshot):
        snap = service.add_transaction(
            snapshot, make_expense("s1", status=TransactionStatus.SCHEDULED)
        )
        with pytest.raises(InvalidTransitionError):
            service.settle(snap, "s1", SettlementRequest(payment_date=TODAY))
        assert snap.transactions["s1"].status is TransactionStatus.SCHEDULED

    def test_settle_many_applies_successes(self, service, snapshot):
        snap = snapshot.with_transactions([
            make_expense("a", "-10.00"),
            make_expense("b", "-20.00", status=TransactionStatus.SCHEDULED),
            make_expense("c", "-5.00", account_id=None, card_id="C1"),
        ])
        snap, result = service.settle_many(
            snap, ["a", "b", "c", "zzz"], SettlementRequest(payment_date=TODAY)
        )

        assert {o.transaction_id for o in result.succeeded} == {"a", "c"}
        assert result.outcome_for("zzz").code == "TRANSACTION_NOT_FOUND"
        assert snap.transactions["a"].is_reconciled
        assert snap.transactions["c"].account_id == "acc-1"
        assert snap.transactions["b"].status is TransactionStatus.SCHEDULED

    def test_release_and_undo_many(self, service, snapshot):
        snap = snapshot.with_transactions([
            make_expense("s1", status=TransactionStatus.SCHEDULED),
            make_reconciled(make_expense("r1")),
        ])
        snap, released = service.release_many(snap, ["s1", "r1"])
        assert len(released.succeeded) == 1
        snap, undone = service.undo_many(snap, ["r1"])
        assert len(undone.succeeded) == 1
        assert snap.transactions["s1"].status is TransactionStatus.PENDING
        assert snap.transactions["r1"].status is TransactionStatus.PENDING

    def test_delete_many(self, service, snapshot):
        snap = snapshot.with_transactions([make_expense("a"), make_expense("b")])
        snap, result = service.delete_many(snap, ["a", "missing"])
        assert set(snap.transactions) == {"b"}
        assert result.outcome_for("missing").code == "TRANSACTION_NOT_FOUND"

    def test_repeated_ids_reported_once_applied(self, service, snapshot):
        snap = snapshot.with_transactions([make_expense("a", "-200.00"), make_expense("b")])
        settled, result = service.settle_many(
            snap, ["a", "a"], SettlementRequest(payment_date=TODAY, paid_amount=Decimal("150.00"))
        )
        assert [o.code for o in result.outcomes] == [None, "INCONSISTENT_STATE"]
        assert len(settled.transactions) == 3

        trimmed, result = service.delete_many(snap, ["b", "b"])
        assert set(trimmed.transactions) == {"a"}
        assert [o.succeeded for o in result.outcomes] == [True, False]

    def test_log_context_bound(self, service, snapshot, captured_logs):
        snap = service.add_transaction(snapshot, make_expense("e1"))
        service.settle(snap, "e1", SettlementRequest(payment_date=TODAY))
        (entry,) = [r for r in captured_logs() if r["message"] == "settlement_completed"]
        assert entry["snapshot_id"] == "snap-1"
        assert entry["operation"] == "settle"


class TestReadModels:
    """Views over a populated snapshot."""

    @pytest.fixture
    def populated(self, snapshot):
        return snapshot.with_transactions([
            make_reconciled(
                make_income("sale", "500.00", due=date(2024, 3, 1), category_id="sales"),
                payment_date=date(2024, 3, 4),
            ),
            make_expense("rent", "-200.00", due=date(2024, 3, 20), category_id="rent"),
            make_expense("late", "-50.00", due=date(2024, 3, 10), category_id="payroll"),
            make_expense(
                "card",
                "-30.00",
                due=date(2024, 4, 20),
                launch=date(2024, 3, 12),
                account_id=None,
                card_id="C1",
                invoice_period_id="C1_2024-04",
            ),
        ])

    def test_balances(self, service, populated):
        checking, savings = service.balances(populated)
        assert checking.realized == Decimal("1500.00")
        assert checking.projected == Decimal("1250.00")
        assert savings.projected == Decimal("250.00")

    def test_balances_unknown_account(self, service, populated):
        with pytest.raises(AccountNotFoundError):
            service.balances(populated, ["nope"])

    def test_cash_flow_uses_clock_for_projection(self, service, populated):
        statement = service.cash_flow(
            populated, CashFlowQuery(start=date(2024, 2, 1), end=date(2024, 4, 30))
        )
        feb, mar, apr = statement.buckets
        assert (feb.projected, mar.projected, apr.projected) == (False, True, True)
        assert mar.net == Decimal("250.00")

    def test_cash_flow_unknown_account(self, service, populated):
        with pytest.raises(AccountNotFoundError):
            service.cash_flow(
                populated,
                CashFlowQuery(start=date(2024, 1, 1), end=date(2024, 1, 31), account_ids={"x"}),
            )

    def test_project_daily(self, service, populated):
        rows = service.project_daily(populated, days=6, account_ids=["acc-1"])
        assert rows[0].day == TODAY
        # realized 1500, overdue payroll folded into today
        assert rows[0].balance == Decimal("1450.00")
        assert rows[5].balance == Decimal("1250.00")

    def test_liquidity(self, service, populated):
        assert service.liquidity(populated).dso == 3

    def test_invoices(self, service, populated):
        (invoice,) = service.invoices(populated, "C1")
        assert invoice.period.identifier == "C1_2024-04"
        assert service.current_invoice(populated, "C1").identifier == "C1_2024-04"
        assert service.available_limit(populated, "C1") == Decimal("4970.00")

    def test_income_statement(self, service, populated):
        statement = service.income_statement(populated, date(2024, 3, 1), date(2024, 3, 31))
        assert statement.gross_revenue == Decimal("500.00")
        assert statement.ebitda == Decimal("250.00")

        cash = service.income_statement(
            populated, date(2024, 3, 1), date(2024, 3, 31), StatementBasis.CASH
        )
        assert cash.net_result == Decimal("500.00")

    def test_category_rollup(self, service, populated):
        totals = service.category_rollup(populated)
        assert totals["sales"] == Decimal("500.00")
        assert totals["equipment"] == Decimal("0")

    def test_open_items(self, service, populated):
        summary = service.open_items(populated)
        assert summary.overdue.count == 1
        assert summary.to_be_due.count == 2
