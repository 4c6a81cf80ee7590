from __future__ import annotations

import unittest
from datetime import date
from decimal import Decimal

from application.dashboard import DashboardAggregator
from domain.models import (
    Account,
    AssetClass,
    BudgetLimit,
    Card,
    Category,
    CategoryType,
    DashboardFacts,
    Investment,
    TransactionFact,
)

TODAY = date(2026, 3, 15)


def _txn(category_id: str | None, amount: str, due: date = TODAY, **kwargs) -> TransactionFact:
    return TransactionFact(
        id=f"t-{category_id}-{amount}",
        amount=Decimal(amount),
        category_id=category_id,
        date=due,
        due_date=due,
        **kwargs,
    )


def _limit(category_id: str, amount: str) -> BudgetLimit:
    return BudgetLimit(id=f"b-{category_id}", category_id=category_id, amount=Decimal(amount), month=date(2026, 3, 1))


CATEGORIES = [
    Category(id="food", name="Food", color="#f00"),
    Category(id="groceries", name="Groceries", parent_id="food"),
    Category(id="restaurants", name="Restaurants", parent_id="food"),
    Category(id="rent", name="Rent"),
    Category(id="gifts", name="Gifts", parent_id="deleted"),
    Category(id="salary", name="Salary", type=CategoryType.INCOME),
]


class DashboardAggregatorTests(unittest.TestCase):
    def setUp(self) -> None:
        self.aggregator = DashboardAggregator()

    def test_balances_investments_and_cards(self) -> None:
        facts = DashboardFacts(
            today=TODAY,
            accounts=[
                Account(id="a1", name="Checking", balance=Decimal("1500.00")),
                Account(id="a2", name="Overdraft", balance=Decimal("-200.50")),
            ],
            investments=[
                Investment(id="i1", name="CDB", asset_class=AssetClass.FIXED_INCOME, value=Decimal("100"), quantity=Decimal("3")),
                Investment(id="i2", name="BTC", asset_class=AssetClass.CRYPTO, value=Decimal("100"), quantity=Decimal("1")),
            ],
            cards=[
                Card(id="c1", name="Visa", credit_limit=Decimal("5000")),
                Card(id="c2", name="Elo", credit_limit=Decimal("1000")),
            ],
            open_credit=[_txn(None, "800"), _txn(None, "200", date(2026, 5, 10))],
            month_open_credit=[_txn(None, "800")],
        )

        snapshot = self.aggregator.aggregate(facts)

        self.assertEqual(snapshot.total_balance, Decimal("1299.50"))
        self.assertEqual(snapshot.investments_total, Decimal("400"))
        self.assertEqual([(s.name, s.value) for s in snapshot.allocation], [("Fixed Income", 75), ("Crypto", 25)])
        self.assertEqual(snapshot.allocation[0].raw, Decimal("300"))
        self.assertEqual(snapshot.credit_limit_total, Decimal("6000"))
        self.assertEqual(snapshot.credit_used, Decimal("1000"))
        self.assertEqual(snapshot.credit_used_this_month, Decimal("800"))
        self.assertEqual(snapshot.available_credit, Decimal("5000"))

    def test_no_investments_yields_empty_allocation(self) -> None:
        snapshot = self.aggregator.aggregate(DashboardFacts(today=TODAY))

        self.assertEqual(snapshot.allocation, ())
        self.assertEqual(snapshot.investments_total, Decimal("0"))

    def test_monthly_totals_and_due_today(self) -> None:
        facts = DashboardFacts(
            today=TODAY,
            month_expenses=[_txn("rent", "1000"), _txn("groceries", "120.40")],
            month_income=[_txn("salary", "5000", type=CategoryType.INCOME)],
            due_today=[_txn("rent", "1000", status="open"), _txn("rent", "5", date(2026, 3, 14), status="open")],
        )

        snapshot = self.aggregator.aggregate(facts)

        self.assertEqual(snapshot.monthly_expenses, Decimal("1120.40"))
        self.assertEqual(snapshot.monthly_income, Decimal("5000"))
        self.assertEqual(snapshot.due_today, Decimal("1000"))

    def test_expense_breakdown_groups_by_parent_name(self) -> None:
        facts = DashboardFacts(
            today=TODAY,
            categories=CATEGORIES,
            month_expenses=[
                _txn("groceries", "100"),
                _txn("restaurants", "250"),
                _txn("groceries", "50"),
                _txn("rent", "900"),
                _txn("gifts", "30"),
                _txn("missing", "75"),
            ],
        )

        breakdown = self.aggregator.aggregate(facts).expenses_by_category

        self.assertEqual([(s.name, s.value) for s in breakdown], [
            ("Rent", Decimal("900")),
            ("Food", Decimal("400")),
            ("Gifts", Decimal("30")),
        ])
        food = breakdown[1]
        self.assertEqual(food.color, "#f00")
        self.assertEqual([(c.name, c.value) for c in food.children], [
            ("Restaurants", Decimal("250")),
            ("Groceries", Decimal("150")),
        ])
        self.assertEqual(breakdown[0].children, ())

    def test_budget_progress_counts_subcategories_and_keeps_top_four(self) -> None:
        categories = CATEGORIES + [
            Category(id="fun", name="Fun"),
            Category(id="health", name="Health"),
            Category(id="pets", name="Pets"),
        ]
        facts = DashboardFacts(
            today=TODAY,
            categories=categories,
            budget_limits=[
                _limit("food", "500"),
                _limit("rent", "1000"),
                _limit("fun", "0"),
                _limit("health", "100"),
                _limit("pets", "100"),
            ],
            month_expenses=[
                _txn("groceries", "300"),
                _txn("restaurants", "250"),
                _txn("food", "10"),
                _txn("rent", "900"),
                _txn("fun", "40"),
                _txn("health", "20"),
                _txn("pets", "5"),
            ],
        )

        progress = self.aggregator.aggregate(facts).budget_progress

        self.assertEqual(len(progress), 4)
        self.assertEqual([p.category_id for p in progress], ["food", "rent", "health", "pets"])
        self.assertEqual(progress[0].spent, Decimal("560"))
        self.assertEqual(progress[0].percentage, 112)
        self.assertEqual(progress[1].percentage, 90)

    def test_zero_limit_budget_reports_zero_percent(self) -> None:
        facts = DashboardFacts(
            today=TODAY,
            categories=[Category(id="fun", name="Fun")],
            budget_limits=[_limit("fun", "0")],
            month_expenses=[_txn("fun", "40")],
        )

        progress = self.aggregator.aggregate(facts).budget_progress

        self.assertEqual(progress[0].percentage, 0)
        self.assertEqual(progress[0].spent, Decimal("40"))


if __name__ == "__main__":
    unittest.main()
