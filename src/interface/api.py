from __future__ import annotations

import logging
from typing import Optional

from fastapi import FastAPI, HTTPException, Query, Request, Response, status
from fastapi.responses import JSONResponse

from application.errors import BudgetScopeError, CategoryHierarchyError, FetchFailedError, UnauthenticatedError
from application.view_models import build_budget_view
from domain.models import AccountingMode, CategoryType
from domain.schemas import (
    BudgetLimitOut,
    BudgetViewOut,
    CategoryCreate,
    CategoryOut,
    CategoryUpdate,
    DashboardOut,
    SetBudgetLimitRequest,
)
from infrastructure.store.base import StoreError
from interface.cli import Services, build_services, parse_scope
from interface.presenters import budget_limit_out, budget_view_out, category_out, dashboard_out

logger = logging.getLogger(__name__)


def create_app(services: Services) -> FastAPI:
    app = FastAPI(title="Budgetlens API")
    app.state.services = services

    @app.exception_handler(UnauthenticatedError)
    async def unauthenticated(_: Request, exc: UnauthenticatedError) -> JSONResponse:
        return JSONResponse(status_code=status.HTTP_401_UNAUTHORIZED, content={"detail": str(exc)})

    @app.exception_handler(CategoryHierarchyError)
    @app.exception_handler(BudgetScopeError)
    async def unprocessable(_: Request, exc: ValueError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"detail": str(exc)})

    @app.exception_handler(FetchFailedError)
    @app.exception_handler(StoreError)
    async def upstream_failure(_: Request, exc: RuntimeError) -> JSONResponse:
        logger.warning("Request failed against the store: %s", exc)
        return JSONResponse(status_code=status.HTTP_502_BAD_GATEWAY, content={"detail": str(exc)})

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/budget", response_model=BudgetViewOut)
    async def budget(
        year: Optional[int] = None,
        month: Optional[str] = Query(default=None, description="1-12, or 'all' for the whole year"),
        mode: str = AccountingMode.ACCRUAL.value,
        parent_id: Optional[str] = None,
    ) -> BudgetViewOut:
        try:
            scope = parse_scope(year, month)
            accounting_mode = AccountingMode(mode)
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        snapshot = await services.budget.refresh(scope, accounting_mode)
        view = build_budget_view(snapshot, parent_id)
        return budget_view_out(view, services.budget.loading, services.budget.last_error)

    @app.get("/budget/current", response_model=BudgetViewOut)
    def current_budget(parent_id: Optional[str] = None) -> BudgetViewOut:
        view = services.budget.view(parent_id)
        if view is None:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No budget snapshot loaded yet")
        return budget_view_out(view, services.budget.loading, services.budget.last_error)

    @app.put("/budget/limits", response_model=Optional[BudgetLimitOut])
    async def set_budget_limit(payload: SetBudgetLimitRequest) -> Optional[BudgetLimitOut]:
        try:
            limit = await services.budget.set_budget_limit(payload.category_id, payload.amount, payload.month)
        except BudgetScopeError:
            raise
        except ValueError as exc:
            raise HTTPException(status_code=422, detail=str(exc)) from exc
        return budget_limit_out(limit) if limit else None

    @app.get("/dashboard", response_model=DashboardOut)
    async def dashboard() -> DashboardOut:
        snapshot = await services.dashboard.refresh()
        return dashboard_out(snapshot, services.dashboard.loading, services.dashboard.last_error)

    @app.get("/categories", response_model=list[CategoryOut])
    async def list_categories(type: Optional[CategoryType] = None) -> list[CategoryOut]:
        return [category_out(c) for c in await services.categories.list_categories(type)]

    @app.post("/categories", response_model=CategoryOut, status_code=status.HTTP_201_CREATED)
    async def add_category(payload: CategoryCreate) -> CategoryOut:
        category = await services.categories.add_category(
            name=payload.name,
            type=CategoryType(payload.type),
            color=payload.color,
            icon=payload.icon,
            parent_id=payload.parent_id,
        )
        return category_out(category)

    @app.patch("/categories/{category_id}", response_model=list[CategoryOut])
    async def update_category(category_id: str, payload: CategoryUpdate) -> list[CategoryOut]:
        updated = await services.categories.update_category(category_id, payload.model_dump(exclude_unset=True))
        return [category_out(c) for c in updated]

    @app.delete("/categories/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
    async def delete_category(category_id: str) -> Response:
        await services.categories.delete_category(category_id)
        return Response(status_code=status.HTTP_204_NO_CONTENT)

    return app


app = create_app(build_services())
