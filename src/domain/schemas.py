from __future__ import annotations

from datetime import date, datetime
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, Field, field_validator


class SetBudgetLimitRequest(BaseModel):
    category_id: str = Field(min_length=1)
    amount: float = Field(ge=0, description="Monthly limit for the category, non-negative.")
    month: Optional[date] = Field(
        default=None,
        description="Any day of the target month (YYYY-MM-DD or YYYY-MM). Defaults to the selected month.",
    )

    @field_validator("month", mode="before")
    @classmethod
    def coerce_month(cls, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        text = value.strip()
        if not text:
            return None
        for fmt in ("%Y-%m-%d", "%Y-%m", "%Y/%m/%d", "%m/%Y"):
            try:
                return datetime.strptime(text, fmt).date()
            except ValueError:
                continue
        return value


class CategoryCreate(BaseModel):
    name: str = Field(min_length=1)
    type: Literal["expense", "income"] = "expense"
    color: Optional[str] = None
    icon: Optional[str] = None
    parent_id: Optional[str] = None


class CategoryUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    type: Optional[Literal["expense", "income"]] = None
    color: Optional[str] = None
    icon: Optional[str] = None
    parent_id: Optional[str] = None


class CategoryOut(BaseModel):
    id: str
    name: str
    type: str
    color: str
    icon: str
    parent_id: Optional[str] = None


class CategorySpendingOut(BaseModel):
    category_id: str
    name: str
    color: str
    icon: str
    planned: float
    actual: float
    percentage: int
    children: List["CategorySpendingOut"] = Field(default_factory=list)


class BudgetTotalsOut(BaseModel):
    planned: float
    actual: float
    remaining: float
    percent_used: int


class BudgetChartPoint(BaseModel):
    category_id: str
    name: str
    color: str
    planned: float
    actual: float


class BudgetViewOut(BaseModel):
    year: int
    month: Optional[int] = None
    mode: Literal["accrual", "cash"]
    selected_parent_id: Optional[str] = None
    loading: bool = False
    last_error: Optional[str] = None
    items: List[CategorySpendingOut] = Field(default_factory=list)
    totals: BudgetTotalsOut
    over_budget: List[str] = Field(default_factory=list, description="Category ids spending above plan.")
    healthy: List[str] = Field(default_factory=list, description="Category ids below half of plan.")
    chart: List[BudgetChartPoint] = Field(default_factory=list)


class BudgetLimitOut(BaseModel):
    id: str
    category_id: str
    amount: float
    month: date


class AllocationSliceOut(BaseModel):
    name: str
    value: int
    color: str
    raw: float = 0.0


class ExpenseSliceOut(BaseModel):
    name: str
    value: float
    color: str
    children: List["ExpenseSliceOut"] = Field(default_factory=list)


class BudgetProgressOut(BaseModel):
    category_id: str
    name: str
    color: str
    icon: str
    limit: float
    spent: float
    percentage: int


class RecentTransactionOut(BaseModel):
    id: str
    description: str
    amount: float
    date: date
    type: str
    category_id: Optional[str] = None
    category_name: Optional[str] = None


class DashboardStats(BaseModel):
    total_balance: float
    investments_total: float
    monthly_income: float
    monthly_expenses: float
    due_today: float
    credit_limit_total: float
    credit_used: float
    credit_used_this_month: float
    available_credit: float


class DashboardOut(BaseModel):
    today: date
    loading: bool = False
    last_error: Optional[str] = None
    stats: DashboardStats
    allocation: List[AllocationSliceOut] = Field(default_factory=list)
    expenses_by_category: List[ExpenseSliceOut] = Field(default_factory=list)
    budget_progress: List[BudgetProgressOut] = Field(default_factory=list)
    recent_transactions: List[RecentTransactionOut] = Field(default_factory=list)
