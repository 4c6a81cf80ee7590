from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable

from application.category_directory import CategoryDirectory
from application.view_models import percentage
from domain.models import (
    AllocationSlice,
    AssetClass,
    BudgetLimit,
    BudgetProgress,
    DashboardFacts,
    DashboardSnapshot,
    ExpenseSlice,
    TransactionFact,
)

logger = logging.getLogger(__name__)

TOP_BUDGET_ITEMS = 4


def _total(values: Iterable[Decimal]) -> Decimal:
    return sum(values, Decimal("0"))


def _amounts(transactions: Iterable[TransactionFact]) -> Decimal:
    return _total(txn.amount for txn in transactions)


class DashboardAggregator:
    """Blends balances, investments, cards and current-month spending into one snapshot.

    Works from its own facts (current month, due-date scoped) and never reuses
    the budget rollup output.
    """

    def aggregate(self, facts: DashboardFacts) -> DashboardSnapshot:
        directory = CategoryDirectory(facts.categories)
        investments_total = _total(inv.total for inv in facts.investments)

        snapshot = DashboardSnapshot(
            today=facts.today,
            total_balance=_total(account.balance for account in facts.accounts),
            investments_total=investments_total,
            allocation=self.allocation(facts),
            monthly_income=_amounts(facts.month_income),
            monthly_expenses=_amounts(facts.month_expenses),
            due_today=_amounts(txn for txn in facts.due_today if txn.due_date == facts.today),
            credit_limit_total=_total(card.credit_limit for card in facts.cards),
            credit_used=_amounts(facts.open_credit),
            credit_used_this_month=_amounts(facts.month_open_credit),
            expenses_by_category=self.expenses_by_category(directory, facts.month_expenses),
            budget_progress=self.budget_progress(directory, facts.budget_limits, facts.month_expenses),
            recent_transactions=tuple(facts.recent),
            category_names={category.id: category.name for category in facts.categories},
        )
        logger.info(
            "Dashboard snapshot computed today=%s balance=%s investments=%s expenses=%s income=%s",
            facts.today,
            snapshot.total_balance,
            snapshot.investments_total,
            snapshot.monthly_expenses,
            snapshot.monthly_income,
        )
        return snapshot

    def allocation(self, facts: DashboardFacts) -> tuple[AllocationSlice, ...]:
        buckets: dict[AssetClass, Decimal] = {asset_class: Decimal("0") for asset_class in AssetClass}
        for inv in facts.investments:
            buckets[inv.asset_class] += inv.total
        total = _total(buckets.values())
        return tuple(
            AllocationSlice(
                name=asset_class.label,
                value=percentage(value, total),
                color=asset_class.color,
                raw=value,
            )
            for asset_class, value in buckets.items()
            if value > 0
        )

    def expenses_by_category(
        self,
        directory: CategoryDirectory,
        expenses: Iterable[TransactionFact],
    ) -> tuple[ExpenseSlice, ...]:
        # Keyed by display name; every category with spending is kept.
        roots: dict[str, dict] = {}
        for txn in expenses:
            category = directory.get(txn.category_id)
            if category is None:
                continue
            parent = directory.parent_of(category.id)
            root = parent or category
            entry = roots.setdefault(root.name, {"value": Decimal("0"), "color": root.color, "children": {}})
            entry["value"] += txn.amount
            if parent is not None:
                child = entry["children"].setdefault(category.name, {"value": Decimal("0"), "color": category.color})
                child["value"] += txn.amount

        slices = [
            ExpenseSlice(
                name=name,
                value=entry["value"],
                color=entry["color"],
                children=tuple(
                    sorted(
                        (
                            ExpenseSlice(name=child_name, value=child["value"], color=child["color"])
                            for child_name, child in entry["children"].items()
                        ),
                        key=lambda s: s.value,
                        reverse=True,
                    )
                ),
            )
            for name, entry in roots.items()
        ]
        return tuple(sorted(slices, key=lambda s: s.value, reverse=True))

    def budget_progress(
        self,
        directory: CategoryDirectory,
        limits: Iterable[BudgetLimit],
        expenses: Iterable[TransactionFact],
    ) -> tuple[BudgetProgress, ...]:
        expenses = list(expenses)
        items: list[BudgetProgress] = []
        for limit in limits:
            spent = _amounts(
                txn
                for txn in expenses
                if txn.category_id == limit.category_id
                or getattr(directory.parent_of(txn.category_id), "id", None) == limit.category_id
            )
            category = directory.get(limit.category_id)
            items.append(
                BudgetProgress(
                    category_id=limit.category_id,
                    name=category.name if category else "Category",
                    color=category.color if category else "#137fec",
                    icon=category.icon if category else "category",
                    limit=limit.amount,
                    spent=spent,
                    percentage=percentage(spent, limit.amount),
                )
            )
        items.sort(key=lambda item: item.percentage, reverse=True)
        return tuple(items[:TOP_BUDGET_ITEMS])
