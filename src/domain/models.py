from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

ZERO = Decimal("0")


class CategoryType(str, Enum):
    EXPENSE = "expense"
    INCOME = "income"


class AccountingMode(str, Enum):
    ACCRUAL = "accrual"
    CASH = "cash"

    @classmethod
    def _missing_(cls, value):
        aliases = {"competencia": cls.ACCRUAL, "competência": cls.ACCRUAL, "caixa": cls.CASH}
        if not isinstance(value, str):
            return None
        normalized = value.strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        return aliases.get(normalized)

    @property
    def date_column(self) -> str:
        return "date" if self is AccountingMode.ACCRUAL else "due_date"


class AssetClass(str, Enum):
    FIXED_INCOME = "renda_fixa"
    EQUITIES = "acoes"
    REAL_ESTATE_FUNDS = "fiis"
    CRYPTO = "cripto"
    OTHER = "outros"

    @property
    def label(self) -> str:
        return _ASSET_CLASS_DISPLAY[self][0]

    @property
    def color(self) -> str:
        return _ASSET_CLASS_DISPLAY[self][1]


_ASSET_CLASS_DISPLAY = {
    AssetClass.FIXED_INCOME: ("Fixed Income", "#137fec"),
    AssetClass.EQUITIES: ("Equities", "#0bda5b"),
    AssetClass.REAL_ESTATE_FUNDS: ("Real Estate Funds", "#fa6238"),
    AssetClass.CRYPTO: ("Crypto", "#92adc9"),
    AssetClass.OTHER: ("Other", "#6d8399"),
}


@dataclass(frozen=True)
class Scope:
    """A (year, month) window, or the whole year when month is None."""

    year: int
    month: Optional[int] = None

    def __post_init__(self) -> None:
        if not date.min.year <= self.year <= date.max.year:
            raise ValueError(f"year must be between {date.min.year} and {date.max.year}, got {self.year}")
        if self.month is not None and not 1 <= self.month <= 12:
            raise ValueError(f"month must be between 1 and 12, got {self.month}")

    @classmethod
    def single(cls, year: int, month: int) -> "Scope":
        return cls(year=year, month=month)

    @classmethod
    def full_year(cls, year: int) -> "Scope":
        return cls(year=year)

    @property
    def is_full_year(self) -> bool:
        return self.month is None

    @property
    def first_month(self) -> date:
        return date(self.year, self.month or 1, 1)


@dataclass(frozen=True)
class DateWindow:
    start: date
    end: date
    column: str

    def contains(self, value: date) -> bool:
        return self.start <= value <= self.end


@dataclass(frozen=True)
class Principal:
    id: str
    email: str | None = None


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    type: CategoryType = CategoryType.EXPENSE
    color: str = "#3b82f6"
    icon: str = "label"
    parent_id: str | None = None


@dataclass(frozen=True)
class BudgetLimit:
    id: str
    category_id: str
    amount: Decimal
    month: date


@dataclass(frozen=True)
class TransactionFact:
    id: str
    amount: Decimal
    category_id: str | None
    date: date
    due_date: date | None = None
    type: CategoryType = CategoryType.EXPENSE
    status: str | None = None
    payment_method: str | None = None
    description: str = ""


@dataclass(frozen=True)
class Account:
    id: str
    name: str
    balance: Decimal


@dataclass(frozen=True)
class Investment:
    id: str
    name: str
    asset_class: AssetClass
    value: Decimal
    quantity: Decimal

    @property
    def total(self) -> Decimal:
        return self.value * self.quantity


@dataclass(frozen=True)
class Card:
    id: str
    name: str
    credit_limit: Decimal


@dataclass(frozen=True)
class CategorySpending:
    category_id: str
    name: str
    color: str
    icon: str
    planned: Decimal = ZERO
    actual: Decimal = ZERO

    @property
    def has_activity(self) -> bool:
        return self.planned != 0 or self.actual != 0


@dataclass(frozen=True)
class ParentCategorySpending(CategorySpending):
    children: tuple[CategorySpending, ...] = ()


@dataclass(frozen=True)
class BudgetFacts:
    categories: list[Category] = field(default_factory=list)
    budget_limits: list[BudgetLimit] = field(default_factory=list)
    transactions: list[TransactionFact] = field(default_factory=list)


@dataclass(frozen=True)
class BudgetSnapshot:
    scope: Scope
    mode: AccountingMode
    roots: tuple[ParentCategorySpending, ...] = ()


@dataclass(frozen=True)
class DashboardFacts:
    today: date
    accounts: list[Account] = field(default_factory=list)
    investments: list[Investment] = field(default_factory=list)
    cards: list[Card] = field(default_factory=list)
    categories: list[Category] = field(default_factory=list)
    budget_limits: list[BudgetLimit] = field(default_factory=list)
    month_expenses: list[TransactionFact] = field(default_factory=list)
    month_income: list[TransactionFact] = field(default_factory=list)
    due_today: list[TransactionFact] = field(default_factory=list)
    open_credit: list[TransactionFact] = field(default_factory=list)
    month_open_credit: list[TransactionFact] = field(default_factory=list)
    recent: list[TransactionFact] = field(default_factory=list)


@dataclass(frozen=True)
class AllocationSlice:
    name: str
    value: int
    color: str
    raw: Decimal = ZERO


@dataclass(frozen=True)
class ExpenseSlice:
    name: str
    value: Decimal
    color: str
    children: tuple["ExpenseSlice", ...] = ()


@dataclass(frozen=True)
class BudgetProgress:
    category_id: str
    name: str
    color: str
    icon: str
    limit: Decimal
    spent: Decimal
    percentage: int


@dataclass(frozen=True)
class DashboardSnapshot:
    today: date
    total_balance: Decimal = ZERO
    investments_total: Decimal = ZERO
    allocation: tuple[AllocationSlice, ...] = ()
    monthly_income: Decimal = ZERO
    monthly_expenses: Decimal = ZERO
    due_today: Decimal = ZERO
    credit_limit_total: Decimal = ZERO
    credit_used: Decimal = ZERO
    credit_used_this_month: Decimal = ZERO
    expenses_by_category: tuple[ExpenseSlice, ...] = ()
    budget_progress: tuple[BudgetProgress, ...] = ()
    recent_transactions: tuple[TransactionFact, ...] = ()
    category_names: dict[str, str] = field(default_factory=dict)

    @property
    def available_credit(self) -> Decimal:
        return self.credit_limit_total - self.credit_used
