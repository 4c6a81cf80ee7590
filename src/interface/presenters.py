from __future__ import annotations

from domain.models import (
    AllocationSlice,
    BudgetLimit,
    Category,
    CategorySpending,
    DashboardSnapshot,
    ExpenseSlice,
    ParentCategorySpending,
)
from domain.schemas import (
    AllocationSliceOut,
    BudgetChartPoint,
    BudgetLimitOut,
    BudgetProgressOut,
    BudgetTotalsOut,
    BudgetViewOut,
    CategoryOut,
    CategorySpendingOut,
    DashboardOut,
    DashboardStats,
    ExpenseSliceOut,
    RecentTransactionOut,
)
from application.view_models import BudgetView, allocation_chart, percentage


def category_out(category: Category) -> CategoryOut:
    return CategoryOut(
        id=category.id,
        name=category.name,
        type=category.type.value,
        color=category.color,
        icon=category.icon,
        parent_id=category.parent_id,
    )


def budget_limit_out(limit: BudgetLimit) -> BudgetLimitOut:
    return BudgetLimitOut(id=limit.id, category_id=limit.category_id, amount=float(limit.amount), month=limit.month)


def spending_out(item: CategorySpending) -> CategorySpendingOut:
    children = item.children if isinstance(item, ParentCategorySpending) else ()
    return CategorySpendingOut(
        category_id=item.category_id,
        name=item.name,
        color=item.color,
        icon=item.icon,
        planned=float(item.planned),
        actual=float(item.actual),
        percentage=percentage(item.actual, item.planned),
        children=[spending_out(child) for child in children],
    )


def budget_view_out(view: BudgetView, loading: bool = False, last_error: str | None = None) -> BudgetViewOut:
    snapshot = view.snapshot
    return BudgetViewOut(
        year=snapshot.scope.year,
        month=snapshot.scope.month,
        mode=snapshot.mode.value,
        selected_parent_id=view.selected_parent_id,
        loading=loading,
        last_error=last_error,
        items=[spending_out(item) for item in view.items],
        totals=BudgetTotalsOut(
            planned=float(view.totals.planned),
            actual=float(view.totals.actual),
            remaining=float(view.totals.remaining),
            percent_used=view.totals.percent_used,
        ),
        over_budget=[item.category_id for item in view.over_budget],
        healthy=[item.category_id for item in view.healthy],
        chart=[BudgetChartPoint(**point) for point in view.chart],
    )


def _allocation_out(slice_: AllocationSlice) -> AllocationSliceOut:
    return AllocationSliceOut(name=slice_.name, value=slice_.value, color=slice_.color, raw=float(slice_.raw))


def _expense_out(slice_: ExpenseSlice) -> ExpenseSliceOut:
    return ExpenseSliceOut(
        name=slice_.name,
        value=float(slice_.value),
        color=slice_.color,
        children=[_expense_out(child) for child in slice_.children],
    )


def dashboard_out(snapshot: DashboardSnapshot, loading: bool = False, last_error: str | None = None) -> DashboardOut:
    return DashboardOut(
        today=snapshot.today,
        loading=loading,
        last_error=last_error,
        stats=DashboardStats(
            total_balance=float(snapshot.total_balance),
            investments_total=float(snapshot.investments_total),
            monthly_income=float(snapshot.monthly_income),
            monthly_expenses=float(snapshot.monthly_expenses),
            due_today=float(snapshot.due_today),
            credit_limit_total=float(snapshot.credit_limit_total),
            credit_used=float(snapshot.credit_used),
            credit_used_this_month=float(snapshot.credit_used_this_month),
            available_credit=float(snapshot.available_credit),
        ),
        allocation=[_allocation_out(s) for s in allocation_chart(snapshot.allocation)],
        expenses_by_category=[_expense_out(s) for s in snapshot.expenses_by_category],
        budget_progress=[
            BudgetProgressOut(
                category_id=item.category_id,
                name=item.name,
                color=item.color,
                icon=item.icon,
                limit=float(item.limit),
                spent=float(item.spent),
                percentage=item.percentage,
            )
            for item in snapshot.budget_progress
        ],
        recent_transactions=[
            RecentTransactionOut(
                id=txn.id,
                description=txn.description,
                amount=float(txn.amount),
                date=txn.date,
                type=txn.type.value,
                category_id=txn.category_id,
                category_name=snapshot.category_names.get(txn.category_id),
            )
            for txn in snapshot.recent_transactions
        ],
    )
