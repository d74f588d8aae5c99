"""
Tests for the Invoice Cycle Resolver.

Covers:
- Closing-day boundary (purchase on closing day goes to next invoice)
- December rollover and short-month clamping
- Due dates, invoice summaries and available limit
- Period identifiers
"""

from datetime import date
from decimal import Decimal

import pytest

from ledger_engines.invoice_cycle import (
    InvoiceCycleResolver,
    InvoicePeriod,
    InvoiceStatus,
    available_limit,
)
from ledger_kernel.domain.models import Card
from ledger_kernel.exceptions import InvalidInputError
from tests.builders import make_expense, make_reconciled


def _card_purchase(tx_id, amount, launch, period_id=None):
    return make_expense(
        tx_id,
        amount,
        due=launch,
        account_id=None,
        card_id="C1",
        invoice_period_id=period_id,
    )


class TestResolve:
    """Purchase date -> invoice period."""

    def setup_method(self):
        self.resolver = InvoiceCycleResolver()
        self.card = Card(id="C1", closing_day=10, due_day=20)

    def test_day_before_closing_stays_in_month(self):
        period = self.resolver.resolve(purchase_date=date(2024, 3, 9), card=self.card)
        assert period.identifier == "C1_2024-03"

    def test_closing_day_moves_to_next_month(self):
        period = self.resolver.resolve(purchase_date=date(2024, 3, 10), card=self.card)
        assert period.identifier == "C1_2024-04"

    def test_december_rolls_into_next_year(self):
        period = self.resolver.resolve(purchase_date=date(2024, 12, 15), card=self.card)
        assert (period.year, period.month) == (2025, 1)

    def test_closing_day_clamped_in_short_month(self):
        card = Card(id="C9", closing_day=31, due_day=10)
        assert self.resolver.resolve(purchase_date=date(2024, 2, 28), card=card).month == 2
        assert self.resolver.resolve(purchase_date=date(2024, 2, 29), card=card).month == 3

    def test_offset_moves_further(self):
        period = self.resolver.resolve(purchase_date=date(2024, 11, 20), card=self.card, offset=2)
        assert period.identifier == "C1_2025-02"

    def test_negative_offset_rejected(self):
        with pytest.raises(InvalidInputError):
            self.resolver.resolve(purchase_date=date(2024, 3, 1), card=self.card, offset=-1)

    def test_current_period(self):
        assert self.resolver.current_period(self.card, date(2024, 3, 15)).identifier == "C1_2024-04"

    def test_assign_sets_card_and_period(self):
        tx = self.resolver.assign(_card_purchase("p1", "-10.00", date(2024, 3, 12)), self.card)
        assert tx.card_id == "C1"
        assert tx.invoice_period_id == "C1_2024-04"


class TestInvoiceDates:
    """Closing and due dates of a period."""

    def setup_method(self):
        self.resolver = InvoiceCycleResolver()

    def test_due_after_closing_in_same_month(self):
        card = Card(id="C1", closing_day=10, due_day=20)
        period = InvoicePeriod("C1", 2024, 4)
        assert self.resolver.closing_date(period=period, card=card) == date(2024, 4, 10)
        assert self.resolver.due_date(period=period, card=card) == date(2024, 4, 20)

    def test_due_before_closing_in_next_month(self):
        card = Card(id="C2", closing_day=25, due_day=5)
        period = InvoicePeriod("C2", 2024, 12)
        assert self.resolver.due_date(period=period, card=card) == date(2025, 1, 5)

    def test_closing_clamped(self):
        card = Card(id="C3", closing_day=31, due_day=10)
        period = InvoicePeriod("C3", 2023, 2)
        assert self.resolver.closing_date(period=period, card=card) == date(2023, 2, 28)


class TestPeriodIdentifier:
    """InvoicePeriod parsing and ordering."""

    def test_parse_round_trip(self):
        period = InvoicePeriod.parse("card_a_2024-04")
        assert period == InvoicePeriod("card_a", 2024, 4)
        assert period.identifier == "card_a_2024-04"

    @pytest.mark.parametrize("identifier", ["2024-04", "C1_2024", "C1_2024-13", "C1_x-y"])
    def test_malformed_rejected(self, identifier):
        with pytest.raises(InvalidInputError):
            InvoicePeriod.parse(identifier)

    def test_shifted_and_ordered(self):
        period = InvoicePeriod("C1", 2024, 11)
        assert period.shifted(3) == InvoicePeriod("C1", 2025, 2)
        assert period < period.shifted(1)


class TestSummaries:
    """Invoice totals and status."""

    def setup_method(self):
        self.resolver = InvoiceCycleResolver()
        self.card = Card(id="C1", closing_day=10, due_day=20, credit_limit=Decimal("1000.00"))

    def test_groups_by_period(self):
        txs = [
            _card_purchase("a", "-100.00", date(2024, 3, 2)),
            _card_purchase("b", "-50.00", date(2024, 3, 12)),
            _card_purchase("c", "-25.00", date(2024, 4, 1)),
        ]
        summaries = self.resolver.summarize(self.card, txs, as_of=date(2024, 3, 5))

        assert [s.period.identifier for s in summaries] == ["C1_2024-03", "C1_2024-04"]
        assert summaries[0].total == Decimal("100.00")
        assert summaries[1].total == Decimal("75.00")
        assert summaries[1].transaction_ids == ("b", "c")
        assert summaries[1].due_date == date(2024, 4, 20)

    def test_stored_period_id_wins(self):
        tx = _card_purchase("a", "-100.00", date(2024, 3, 2), period_id="C1_2024-06")
        (summary,) = self.resolver.summarize(self.card, [tx], as_of=date(2024, 3, 5))
        assert summary.period.identifier == "C1_2024-06"

    def test_status_open_then_closed(self):
        txs = [_card_purchase("a", "-100.00", date(2024, 3, 2))]
        (before,) = self.resolver.summarize(self.card, txs, as_of=date(2024, 3, 9))
        (after,) = self.resolver.summarize(self.card, txs, as_of=date(2024, 3, 10))
        assert before.status is InvoiceStatus.OPEN
        assert after.status is InvoiceStatus.CLOSED

    def test_status_partial_and_paid(self):
        a = _card_purchase("a", "-100.00", date(2024, 3, 2))
        b = _card_purchase("b", "-40.00", date(2024, 3, 3))

        (partial,) = self.resolver.summarize(
            self.card, [make_reconciled(a), b], as_of=date(2024, 3, 25)
        )
        assert partial.status is InvoiceStatus.PARTIAL
        assert partial.paid_amount == Decimal("100.00")
        assert partial.outstanding == Decimal("40.00")

        (paid,) = self.resolver.summarize(
            self.card, [make_reconciled(a), make_reconciled(b)], as_of=date(2024, 3, 25)
        )
        assert paid.status is InvoiceStatus.PAID

    def test_other_cards_ignored(self):
        other = make_expense("x", "-10.00", account_id=None, card_id="C2")
        assert self.resolver.summarize(self.card, [other], as_of=date(2024, 3, 1)) == ()

    def test_to_dict(self):
        txs = [_card_purchase("a", "-100.00", date(2024, 3, 2))]
        (summary,) = self.resolver.summarize(self.card, txs, as_of=date(2024, 3, 5))
        data = summary.to_dict()
        assert data["identifier"] == "C1_2024-03"
        assert data["status"] == "open"


class TestAvailableLimit:
    """Credit limit minus unreconciled purchases."""

    def test_reconciled_purchases_release_limit(self):
        card = Card(id="C1", closing_day=10, due_day=20, credit_limit=Decimal("1000.00"))
        txs = [
            _card_purchase("a", "-300.00", date(2024, 3, 2)),
            make_reconciled(_card_purchase("b", "-200.00", date(2024, 2, 2))),
        ]
        assert available_limit(card, txs) == Decimal("700.00")

    def test_no_limit(self):
        card = Card(id="C1", closing_day=10, due_day=20)
        assert available_limit(card, []) is None
