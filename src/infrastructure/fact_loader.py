from __future__ import annotations

import asyncio
import logging
import time
from calendar import monthrange
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Iterable, Optional, TypeVar

from domain.models import (
    Account,
    AccountingMode,
    AssetClass,
    BudgetFacts,
    BudgetLimit,
    Card,
    Category,
    CategoryType,
    DashboardFacts,
    DateWindow,
    Investment,
    Scope,
    TransactionFact,
)
from infrastructure.retry import RetryPolicy
from infrastructure.store.base import Filter, Order, Row, TabularStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

CREDIT_PAYMENT_METHOD = "credito"
OPEN_STATUS = "open"
RECENT_LIMIT = 5


class NormalizationError(ValueError):
    pass


# ---- row normalization ----
def _nested(value: Any) -> dict[str, Any]:
    """Joined relations come back either as an object or a one-element array."""
    if isinstance(value, list):
        value = value[0] if value else None
    return value if isinstance(value, dict) else {}


def _decimal(value: Any, field_name: str) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise NormalizationError(f"{field_name} is not numeric: {value!r}") from exc


def _date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    text = str(value).strip()
    try:
        return date.fromisoformat(text[:10])
    except ValueError as exc:
        raise NormalizationError(f"unsupported date format: {text!r}") from exc


def _required_id(row: Row) -> str:
    raw = row.get("id")
    if raw is None or raw == "":
        raise NormalizationError("row is missing id")
    return str(raw)


def normalize_category(row: Row) -> Category:
    parent_id = row.get("parent_id")
    return Category(
        id=_required_id(row),
        name=str(row.get("name") or ""),
        type=CategoryType(row.get("type") or CategoryType.EXPENSE.value),
        color=str(row.get("color") or "#3b82f6"),
        icon=str(row.get("icon") or "label"),
        parent_id=str(parent_id) if parent_id else None,
    )


def normalize_budget_limit(row: Row) -> BudgetLimit:
    category_id = row.get("category_id") or _nested(row.get("categories")).get("id")
    month = _date(row.get("month"))
    if not category_id or month is None:
        raise NormalizationError("budget limit is missing category_id or month")
    return BudgetLimit(
        id=_required_id(row),
        category_id=str(category_id),
        amount=_decimal(row.get("amount"), "amount"),
        month=month,
    )


def normalize_transaction(row: Row) -> TransactionFact:
    category_id = row.get("category_id") or _nested(row.get("categories")).get("id")
    posted_on = _date(row.get("date"))
    due_date = _date(row.get("due_date"))
    if posted_on is None and due_date is None:
        raise NormalizationError("transaction has neither date nor due_date")
    raw_type = str(row.get("type") or CategoryType.EXPENSE.value).lower()
    return TransactionFact(
        id=str(row.get("id") or ""),
        amount=abs(_decimal(row.get("amount"), "amount")),
        category_id=str(category_id) if category_id else None,
        date=posted_on or due_date,
        due_date=due_date,
        type=CategoryType.INCOME if raw_type == CategoryType.INCOME.value else CategoryType.EXPENSE,
        status=row.get("status"),
        payment_method=row.get("payment_method"),
        description=str(row.get("description") or ""),
    )


def normalize_account(row: Row) -> Account:
    return Account(
        id=_required_id(row),
        name=str(row.get("name") or ""),
        balance=_decimal(row.get("balance"), "balance"),
    )


def normalize_investment(row: Row) -> Investment:
    raw_type = str(row.get("type") or "").strip().lower()
    try:
        asset_class = AssetClass(raw_type)
    except ValueError:
        asset_class = AssetClass.OTHER
    return Investment(
        id=_required_id(row),
        name=str(row.get("name") or ""),
        asset_class=asset_class,
        value=_decimal(row.get("value"), "value"),
        quantity=_decimal(row.get("quantity"), "quantity"),
    )


def normalize_card(row: Row) -> Card:
    return Card(
        id=str(row.get("id") or ""),
        name=str(row.get("name") or ""),
        credit_limit=_decimal(row.get("credit_limit"), "credit_limit"),
    )


def normalize_rows(rows: Iterable[Row], normalizer: Callable[[Row], T], table: str) -> list[T]:
    """Map raw rows to entities, dropping (and logging) rows that do not fit."""
    entities: list[T] = []
    for row in rows:
        if not isinstance(row, dict):
            continue
        try:
            entities.append(normalizer(row))
        except ValueError as exc:
            logger.warning("Dropping malformed %s row id=%s: %s", table, row.get("id"), exc)
    return entities


# ---- scope windows ----
def month_bounds(year: int, month: int) -> tuple[date, date]:
    return date(year, month, 1), date(year, month, monthrange(year, month)[1])


def compute_window(scope: Scope, mode: AccountingMode) -> DateWindow:
    if scope.is_full_year:
        start, end = date(scope.year, 1, 1), date(scope.year, 12, 31)
    else:
        start, end = month_bounds(scope.year, scope.month)
    return DateWindow(start=start, end=end, column=mode.date_column)


def _movement_filters(kind: CategoryType) -> list[Filter]:
    # Genuine income/expense only: no internal transfers or investment postings.
    return [
        Filter.eq("type", kind.value),
        Filter.is_null("transfer_id"),
        Filter.is_null("investment_id"),
    ]


def _in_window(column: str, start: date, end: date) -> list[Filter]:
    return [Filter.gte(column, start.isoformat()), Filter.lte(column, end.isoformat())]


class FactLoader:
    """Issues the scoped queries for one fetch concurrently and normalizes the rows."""

    def __init__(self, store: TabularStore, retry: RetryPolicy | None = None) -> None:
        self._store = store
        self._retry = retry or RetryPolicy()

    def select(
        self,
        table: str,
        filters: Iterable[Filter] = (),
        ordering: Iterable[Order] = (),
        limit: Optional[int] = None,
    ) -> list[Row]:
        filters = list(filters)
        ordering = list(ordering)
        return self._retry.call(
            lambda: self._store.select(table, filters, ordering, limit),
            description=f"select {table}",
        )

    async def _gather(self, queries: dict[str, Callable[[], list[Row]]]) -> dict[str, list[Row]]:
        # Fan-out, then a barrier: any failure abandons the whole load.
        names = list(queries)
        started = time.perf_counter()
        results = await asyncio.gather(*(asyncio.to_thread(queries[name]) for name in names))
        logger.info(
            "FactLoader gathered queries=%d in %.2fs rows=%s",
            len(names),
            time.perf_counter() - started,
            {name: len(rows) for name, rows in zip(names, results)},
        )
        return dict(zip(names, results))

    async def load_budget_facts(
        self,
        scope: Scope,
        mode: AccountingMode,
        category_type: CategoryType = CategoryType.EXPENSE,
    ) -> BudgetFacts:
        window = compute_window(scope, mode)
        last_month = window.end.replace(day=1)
        logger.info(
            "FactLoader budget load start=%s end=%s column=%s type=%s",
            window.start,
            window.end,
            window.column,
            category_type.value,
        )
        raw = await self._gather(
            {
                "categories": lambda: self.select(
                    "categories",
                    [Filter.eq("type", category_type.value)],
                    [Order("name")],
                ),
                "budgets": lambda: self.select(
                    "budgets",
                    _in_window("month", window.start, last_month),
                ),
                "transactions": lambda: self.select(
                    "transactions",
                    _movement_filters(category_type) + _in_window(window.column, window.start, window.end),
                ),
            }
        )
        return BudgetFacts(
            categories=normalize_rows(raw["categories"], normalize_category, "categories"),
            budget_limits=normalize_rows(raw["budgets"], normalize_budget_limit, "budgets"),
            transactions=normalize_rows(raw["transactions"], normalize_transaction, "transactions"),
        )

    async def load_dashboard_facts(self, today: date) -> DashboardFacts:
        start, end = month_bounds(today.year, today.month)
        month_due = _in_window("due_date", start, end)
        open_credit = [Filter.eq("payment_method", CREDIT_PAYMENT_METHOD), Filter.eq("status", OPEN_STATUS)]
        logger.info("FactLoader dashboard load today=%s month=%s..%s", today, start, end)

        raw = await self._gather(
            {
                "accounts": lambda: self.select("accounts"),
                "investments": lambda: self.select("investments"),
                "cards": lambda: self.select("cards"),
                "categories": lambda: self.select("categories"),
                "budgets": lambda: self.select("budgets", [Filter.eq("month", start.isoformat())]),
                "month_expenses": lambda: self.select(
                    "transactions", _movement_filters(CategoryType.EXPENSE) + month_due
                ),
                "month_income": lambda: self.select(
                    "transactions", _movement_filters(CategoryType.INCOME) + month_due
                ),
                "due_today": lambda: self.select(
                    "transactions",
                    _movement_filters(CategoryType.EXPENSE)
                    + [Filter.eq("status", OPEN_STATUS), Filter.eq("due_date", today.isoformat())],
                ),
                "open_credit": lambda: self.select("transactions", open_credit),
                "month_open_credit": lambda: self.select("transactions", open_credit + month_due),
                "recent": lambda: self.select(
                    "transactions", ordering=[Order("date", descending=True)], limit=RECENT_LIMIT
                ),
            }
        )

        def transactions(name: str) -> list[TransactionFact]:
            return normalize_rows(raw[name], normalize_transaction, "transactions")

        return DashboardFacts(
            today=today,
            accounts=normalize_rows(raw["accounts"], normalize_account, "accounts"),
            investments=normalize_rows(raw["investments"], normalize_investment, "investments"),
            cards=normalize_rows(raw["cards"], normalize_card, "cards"),
            categories=normalize_rows(raw["categories"], normalize_category, "categories"),
            budget_limits=normalize_rows(raw["budgets"], normalize_budget_limit, "budgets"),
            month_expenses=transactions("month_expenses"),
            month_income=transactions("month_income"),
            due_today=transactions("due_today"),
            open_credit=transactions("open_credit"),
            month_open_credit=transactions("month_open_credit"),
            recent=transactions("recent"),
        )
