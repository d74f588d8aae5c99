"""
Tests for category hierarchy roll-up.
"""

from decimal import Decimal

import pytest

from ledger_engines.category_tree import ancestors, category_totals, parent_map, rollup
from ledger_kernel.domain.models import Category
from ledger_kernel.exceptions import InvalidInputError
from tests.builders import make_expense, make_income, make_transfer


class TestCategoryTree:
    """Parent totals are the sum of their subtree."""

    def setup_method(self):
        self.categories = [
            Category(id="ops", name="Operations"),
            Category(id="office", name="Office", parent_id="ops"),
            Category(id="rent", name="Rent", parent_id="office"),
            Category(id="cleaning", name="Cleaning", parent_id="office"),
            Category(id="sales", name="Sales"),
        ]
        self.parents = parent_map(self.categories)

    def test_ancestor_chain(self):
        assert ancestors("rent", self.parents) == ["office", "ops"]
        assert ancestors("ops", self.parents) == []

    def test_totals_by_category(self):
        txs = [
            make_expense("e1", "-100.00", category_id="rent"),
            make_expense("e2", "-50.00", category_id="rent"),
            make_income("i1", "70.00", category_id="sales"),
            make_transfer("t1", "-999.00", category_id="rent"),
            make_expense("e3", "-1.00"),
        ]
        assert category_totals(txs) == {
            "rent": Decimal("150.00"),
            "sales": Decimal("70.00"),
        }

    def test_rollup(self):
        direct = {
            "rent": Decimal("150.00"),
            "cleaning": Decimal("20.00"),
            "office": Decimal("5.00"),
            "sales": Decimal("70.00"),
        }
        totals = rollup(direct, self.parents)

        assert totals["rent"] == Decimal("150.00")
        assert totals["office"] == Decimal("175.00")
        assert totals["ops"] == Decimal("175.00")
        assert totals["sales"] == Decimal("70.00")

    def test_rollup_includes_empty_categories(self):
        assert rollup({}, self.parents)["cleaning"] == Decimal("0")

    def test_unknown_category_treated_as_root(self):
        totals = rollup({"ghost": Decimal("3")}, self.parents)
        assert totals["ghost"] == Decimal("3")

    def test_cycle_rejected(self):
        parents = {"a": "b", "b": "c", "c": "a"}
        with pytest.raises(InvalidInputError) as exc_info:
            rollup({}, parents)
        assert exc_info.value.field == "parent_id"

    def test_self_parent_rejected(self):
        with pytest.raises(InvalidInputError):
            ancestors("a", {"a": "a"})
