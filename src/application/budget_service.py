from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal
from typing import Callable, Optional

from application.errors import BudgetScopeError, UnauthenticatedError
from application.invalidation import InvalidationSignal
from application.rollup import compute_budget_snapshot
from application.snapshot_service import SnapshotService
from application.view_models import BudgetView, build_budget_view
from domain.models import AccountingMode, BudgetLimit, BudgetSnapshot, CategoryType, Scope
from infrastructure.fact_loader import FactLoader, normalize_budget_limit
from infrastructure.retry import RetryPolicy
from infrastructure.store.base import TabularStore

logger = logging.getLogger(__name__)

BUDGET_CONFLICT_KEYS = ("user_id", "category_id", "month")


class BudgetService(SnapshotService[BudgetSnapshot]):
    """Planned-vs-actual rollup for the caller's selected scope and accounting mode."""

    label = "budget"

    def __init__(
        self,
        loader: FactLoader,
        store: TabularStore,
        retry: RetryPolicy | None = None,
        signal: InvalidationSignal | None = None,
        clock: Callable[[], date] = date.today,
    ) -> None:
        super().__init__()
        self._loader = loader
        self._store = store
        self._retry = retry or RetryPolicy()
        self._signal = signal or InvalidationSignal()
        self._signal.subscribe(self._on_invalidate)
        today = clock()
        self._initial_scope = Scope.single(today.year, today.month)
        self._initial_mode = AccountingMode.ACCRUAL

    @property
    def scope(self) -> Scope:
        """Scope of the published snapshot; a failed fetch never moves it."""
        return self.snapshot.scope if self.snapshot is not None else self._initial_scope

    @property
    def mode(self) -> AccountingMode:
        return self.snapshot.mode if self.snapshot is not None else self._initial_mode

    async def refresh(
        self,
        scope: Optional[Scope] = None,
        mode: Optional[AccountingMode] = None,
    ) -> BudgetSnapshot:
        scope = scope or self.scope
        mode = mode or self.mode

        async def produce() -> BudgetSnapshot:
            facts = await self._loader.load_budget_facts(scope, mode, CategoryType.EXPENSE)
            return compute_budget_snapshot(scope, mode, facts)

        return await self._fetch(produce)

    def view(self, selected_parent_id: str | None = None) -> BudgetView | None:
        if self.snapshot is None:
            return None
        return build_budget_view(self.snapshot, selected_parent_id)

    async def set_budget_limit(
        self,
        category_id: str,
        amount: Decimal | float | int | str,
        month: date | None = None,
    ) -> BudgetLimit | None:
        principal = await self._retry.acall(self._store.current_user, "session lookup")
        if principal is None:
            raise UnauthenticatedError("User not authenticated")

        amount = Decimal(str(amount))
        if amount < 0:
            raise ValueError("Budget limit amount must be non-negative")

        if month is None:
            if self.scope.is_full_year:
                raise BudgetScopeError("Select a single month before setting a budget limit")
            month = self.scope.first_month
        month = month.replace(day=1)

        row = {
            "user_id": principal.id,
            "category_id": category_id,
            "amount": amount,
            "month": month.isoformat(),
        }
        logger.info("Setting budget limit category_id=%s month=%s amount=%s", category_id, month, amount)
        written = await self._retry.acall(
            lambda: self._store.upsert("budgets", [row], BUDGET_CONFLICT_KEYS),
            "upsert budgets",
        )
        await self._signal.emit("budgets")
        return normalize_budget_limit(written[0]) if written else None
