from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Sequence

from domain.models import (
    AllocationSlice,
    BudgetSnapshot,
    CategorySpending,
    ParentCategorySpending,
)

PLACEHOLDER_SLICE = AllocationSlice(name="Awaiting assets", value=100, color="#324d67")
HEALTHY_RATIO = Decimal("0.5")


@dataclass(frozen=True)
class BudgetTotals:
    planned: Decimal
    actual: Decimal
    remaining: Decimal
    percent_used: int


@dataclass(frozen=True)
class BudgetView:
    snapshot: BudgetSnapshot
    selected_parent_id: str | None
    items: tuple[CategorySpending, ...]
    totals: BudgetTotals
    over_budget: tuple[CategorySpending, ...]
    healthy: tuple[CategorySpending, ...]
    chart: tuple[dict[str, Any], ...]


def percentage(actual: Decimal, planned: Decimal) -> int:
    """round(actual / planned * 100), half away from zero; 0 when nothing is planned."""
    if not planned:
        return 0
    ratio = Decimal(actual) / Decimal(planned) * 100
    return int(ratio.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def is_over_budget(item: CategorySpending) -> bool:
    return item.planned > 0 and item.actual > item.planned


def is_healthy(item: CategorySpending) -> bool:
    return item.planned > 0 and item.actual < item.planned * HEALTHY_RATIO


def over_budget(items: Iterable[CategorySpending]) -> tuple[CategorySpending, ...]:
    return tuple(item for item in items if is_over_budget(item))


def healthy(items: Iterable[CategorySpending]) -> tuple[CategorySpending, ...]:
    return tuple(item for item in items if is_healthy(item))


def drill_down(
    roots: Sequence[ParentCategorySpending],
    selected_parent_id: str | None = None,
) -> tuple[CategorySpending, ...]:
    if selected_parent_id is None:
        return tuple(roots)
    for root in roots:
        if root.category_id == selected_parent_id:
            return root.children
    return ()


def budget_totals(items: Iterable[CategorySpending]) -> BudgetTotals:
    items = list(items)
    planned = sum((item.planned for item in items), Decimal("0"))
    actual = sum((item.actual for item in items), Decimal("0"))
    return BudgetTotals(
        planned=planned,
        actual=actual,
        remaining=planned - actual,
        percent_used=percentage(actual, planned),
    )


def chart_series(items: Iterable[CategorySpending]) -> tuple[dict[str, Any], ...]:
    return tuple(
        {
            "category_id": item.category_id,
            "name": item.name,
            "color": item.color,
            "planned": float(item.planned),
            "actual": float(item.actual),
        }
        for item in items
    )


def allocation_chart(slices: Sequence[AllocationSlice]) -> tuple[AllocationSlice, ...]:
    """Never hand an empty series to the allocation chart."""
    if not slices:
        return (PLACEHOLDER_SLICE,)
    return tuple(slices)


def build_budget_view(snapshot: BudgetSnapshot, selected_parent_id: str | None = None) -> BudgetView:
    items = drill_down(snapshot.roots, selected_parent_id)
    return BudgetView(
        snapshot=snapshot,
        selected_parent_id=selected_parent_id,
        items=items,
        totals=budget_totals(items),
        over_budget=over_budget(items),
        healthy=healthy(items),
        chart=chart_series(items),
    )
