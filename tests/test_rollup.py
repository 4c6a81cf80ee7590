from __future__ import annotations

import unittest
from datetime import date
from decimal import Decimal

from application.category_directory import CategoryDirectory
from application.rollup import compute_budget_snapshot, rollup
from application.view_models import over_budget, percentage
from domain.models import (
    AccountingMode,
    BudgetFacts,
    BudgetLimit,
    Category,
    Scope,
    TransactionFact,
)


def _cat(id: str, name: str | None = None, parent_id: str | None = None) -> Category:
    return Category(id=id, name=name or id.title(), parent_id=parent_id)


def _limit(category_id: str, amount: str, month: int = 3, year: int = 2026) -> BudgetLimit:
    return BudgetLimit(
        id=f"b-{category_id}-{year}-{month}",
        category_id=category_id,
        amount=Decimal(amount),
        month=date(year, month, 1),
    )


def _txn(category_id: str | None, amount: str, day: date = date(2026, 3, 10)) -> TransactionFact:
    return TransactionFact(id=f"t-{category_id}-{amount}", amount=Decimal(amount), category_id=category_id, date=day)


class RollupScenarioTests(unittest.TestCase):
    def setUp(self) -> None:
        self.directory = CategoryDirectory(
            [
                _cat("food"),
                _cat("groceries", parent_id="food"),
                _cat("restaurants", parent_id="food"),
            ]
        )

    def test_parent_accumulates_children_and_keeps_own_plan(self) -> None:
        roots = rollup(
            self.directory,
            [_limit("food", "500")],
            [_txn("groceries", "300"), _txn("restaurants", "250")],
        )

        self.assertEqual(len(roots), 1)
        food = roots[0]
        self.assertEqual(food.actual, Decimal("550"))
        self.assertEqual(food.planned, Decimal("500"))
        self.assertEqual([c.category_id for c in food.children], ["groceries", "restaurants"])
        self.assertEqual([c.actual for c in food.children], [Decimal("300"), Decimal("250")])
        self.assertIn(food, over_budget(roots))

    def test_full_year_sums_monthly_limits(self) -> None:
        limits = [_limit("food", "500", month=m) for m in range(1, 13)]
        transactions = [_txn("groceries", "350", date(2026, m, 5)) for m in range(1, 13)]

        roots = rollup(self.directory, limits, transactions)

        food = roots[0]
        self.assertEqual(food.planned, Decimal("6000"))
        self.assertEqual(food.actual, Decimal("4200"))
        self.assertEqual(over_budget(roots), ())
        self.assertEqual(percentage(food.actual, food.planned), 70)

    def test_orphaned_transaction_is_dropped_silently(self) -> None:
        roots = rollup(
            self.directory,
            [],
            [_txn("groceries", "10"), _txn("deleted-category", "999"), _txn(None, "5")],
        )

        self.assertEqual([r.category_id for r in roots], ["food"])
        self.assertEqual(roots[0].actual, Decimal("10"))

    def test_child_limits_do_not_roll_into_parent_plan(self) -> None:
        roots = rollup(self.directory, [_limit("groceries", "200")], [])

        food = roots[0]
        self.assertEqual(food.planned, Decimal("0"))
        self.assertEqual(food.actual, Decimal("0"))
        self.assertEqual([c.category_id for c in food.children], ["groceries"])
        self.assertEqual(food.children[0].planned, Decimal("200"))


class RollupInvariantTests(unittest.TestCase):
    def test_zero_activity_children_are_suppressed_and_empty_roots_dropped(self) -> None:
        directory = CategoryDirectory(
            [
                _cat("home"),
                _cat("rent", parent_id="home"),
                _cat("repairs", parent_id="home"),
                _cat("idle"),
                _cat("idle-child", parent_id="idle"),
            ]
        )

        roots = rollup(directory, [], [_txn("rent", "1200")])

        self.assertEqual([r.category_id for r in roots], ["home"])
        self.assertEqual([c.category_id for c in roots[0].children], ["rent"])

    def test_parent_actual_is_own_plus_retained_children(self) -> None:
        directory = CategoryDirectory(
            [_cat("car"), _cat("fuel", parent_id="car"), _cat("insurance", parent_id="car")]
        )
        roots = rollup(directory, [], [_txn("car", "40"), _txn("fuel", "60"), _txn("insurance", "100")])

        car = roots[0]
        self.assertEqual(car.actual, Decimal("40") + sum(c.actual for c in car.children))

    def test_roots_and_children_sorted_by_actual_descending(self) -> None:
        directory = CategoryDirectory(
            [
                _cat("a"),
                _cat("a1", parent_id="a"),
                _cat("a2", parent_id="a"),
                _cat("b"),
                _cat("c"),
            ]
        )
        roots = rollup(
            directory,
            [],
            [_txn("a1", "5"), _txn("a2", "15"), _txn("b", "100"), _txn("c", "50")],
        )

        self.assertEqual([r.category_id for r in roots], ["b", "c", "a"])
        self.assertEqual([c.category_id for c in roots[2].children], ["a2", "a1"])

    def test_equal_actuals_keep_category_order(self) -> None:
        directory = CategoryDirectory([_cat("x"), _cat("y"), _cat("z")])
        roots = rollup(directory, [], [_txn("z", "10"), _txn("x", "10"), _txn("y", "10")])

        self.assertEqual([r.category_id for r in roots], ["x", "y", "z"])

    def test_planned_only_root_is_kept(self) -> None:
        directory = CategoryDirectory([_cat("travel")])
        roots = rollup(directory, [_limit("travel", "300")], [])

        self.assertEqual(len(roots), 1)
        self.assertEqual(roots[0].planned, Decimal("300"))
        self.assertEqual(roots[0].children, ())

    def test_unresolved_parent_makes_category_a_root(self) -> None:
        directory = CategoryDirectory([_cat("gifts", parent_id="gone")])
        roots = rollup(directory, [], [_txn("gifts", "20")])

        self.assertEqual([r.category_id for r in roots], ["gifts"])
        self.assertEqual(roots[0].actual, Decimal("20"))

    def test_rollup_is_idempotent(self) -> None:
        facts = BudgetFacts(
            categories=[_cat("food"), _cat("groceries", parent_id="food"), _cat("fun")],
            budget_limits=[_limit("food", "100"), _limit("fun", "50")],
            transactions=[_txn("groceries", "30"), _txn("fun", "30"), _txn("food", "1")],
        )
        scope = Scope.single(2026, 3)

        first = compute_budget_snapshot(scope, AccountingMode.ACCRUAL, facts)
        second = compute_budget_snapshot(scope, AccountingMode.ACCRUAL, facts)

        self.assertEqual(first, second)
        self.assertEqual([r.category_id for r in first.roots], [r.category_id for r in second.roots])
        self.assertEqual(first.scope, scope)
        self.assertIs(first.mode, AccountingMode.ACCRUAL)


if __name__ == "__main__":
    unittest.main()
