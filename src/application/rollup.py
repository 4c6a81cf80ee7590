from __future__ import annotations

import logging
from decimal import Decimal
from typing import Iterable

from application.category_directory import CategoryDirectory
from domain.models import (
    AccountingMode,
    BudgetFacts,
    BudgetLimit,
    BudgetSnapshot,
    CategorySpending,
    ParentCategorySpending,
    Scope,
    TransactionFact,
)

logger = logging.getLogger(__name__)


def _by_actual_desc(items: Iterable[CategorySpending]) -> list:
    # sorted() is stable: equal actuals keep their fact order.
    return sorted(items, key=lambda item: item.actual, reverse=True)


def rollup(
    directory: CategoryDirectory,
    budget_limits: Iterable[BudgetLimit],
    transactions: Iterable[TransactionFact],
) -> tuple[ParentCategorySpending, ...]:
    """Fold flat facts into a two-level planned-vs-actual view.

    Every limit row in scope is summed into its category's ``planned``, so a
    full-year load yields annual totals from per-month rows. Only limits set
    directly on a root count toward that root's ``planned``; a child's own
    limits stay on the child entry. Facts whose category does not resolve are
    dropped.
    """
    planned: dict[str, Decimal] = {category.id: Decimal("0") for category in directory}
    actual: dict[str, Decimal] = dict(planned)

    for limit in budget_limits:
        if limit.category_id in planned:
            planned[limit.category_id] += limit.amount

    dropped = 0
    for txn in transactions:
        if txn.category_id in actual:
            actual[txn.category_id] += txn.amount
        else:
            dropped += 1
    if dropped:
        logger.debug("rollup dropped %d transactions with unresolved categories", dropped)

    def spending(category_id: str) -> CategorySpending:
        category = directory.get(category_id)
        return CategorySpending(
            category_id=category.id,
            name=category.name,
            color=category.color,
            icon=category.icon,
            planned=planned[category.id],
            actual=actual[category.id],
        )

    roots: list[ParentCategorySpending] = []
    for root in directory.roots():
        own = spending(root.id)
        children = [spending(child.id) for child in directory.children_of(root.id)]
        retained = [child for child in children if child.has_activity]
        roots.append(
            ParentCategorySpending(
                category_id=own.category_id,
                name=own.name,
                color=own.color,
                icon=own.icon,
                planned=own.planned,
                actual=own.actual + sum((child.actual for child in children), Decimal("0")),
                children=tuple(_by_actual_desc(retained)),
            )
        )

    visible = [root for root in roots if root.has_activity or root.children]
    return tuple(_by_actual_desc(visible))


def compute_budget_snapshot(scope: Scope, mode: AccountingMode, facts: BudgetFacts) -> BudgetSnapshot:
    """Pure snapshot computation: the same scope, mode and facts always give the same result."""
    directory = CategoryDirectory(facts.categories)
    roots = rollup(directory, facts.budget_limits, facts.transactions)
    logger.info(
        "Budget snapshot computed year=%s month=%s mode=%s categories=%d roots=%d",
        scope.year,
        scope.month or "all",
        mode.value,
        len(directory),
        len(roots),
    )
    return BudgetSnapshot(scope=scope, mode=mode, roots=roots)

