from __future__ import annotations

import argparse
import asyncio
import os
import sys
from dataclasses import dataclass
from datetime import date

from application.budget_service import BudgetService
from application.category_service import CategoryService
from application.dashboard_service import DashboardService
from application.errors import FetchFailedError
from application.invalidation import InvalidationSignal
from application.view_models import build_budget_view
from domain.models import AccountingMode, Scope
from infrastructure.fact_loader import FactLoader
from infrastructure.retry import RetryPolicy
from infrastructure.store.base import TabularStore
from infrastructure.store.memory_store import InMemoryStore
from infrastructure.store.postgrest_store import PostgrestStore
from interface.presenters import budget_view_out, dashboard_out


@dataclass
class Services:
    store: TabularStore
    signal: InvalidationSignal
    budget: BudgetService
    categories: CategoryService
    dashboard: DashboardService


def build_store() -> TabularStore:
    kind = os.getenv("BUDGETLENS_STORE", "postgrest").strip().lower()
    if kind == "memory":
        return InMemoryStore()
    return PostgrestStore()


def build_services(store: TabularStore | None = None, retry: RetryPolicy | None = None) -> Services:
    store = store or build_store()
    retry = retry or RetryPolicy()
    signal = InvalidationSignal()
    loader = FactLoader(store, retry)
    return Services(
        store=store,
        signal=signal,
        budget=BudgetService(loader, store, retry, signal),
        categories=CategoryService(store, retry, signal),
        dashboard=DashboardService(loader, signal=signal),
    )


def parse_scope(year: int | None, month: str | None, today: date | None = None) -> Scope:
    today = today or date.today()
    year = today.year if year is None else year
    if month is None or str(month).strip() == "":
        return Scope.single(year, today.month)
    if str(month).strip().lower() == "all":
        return Scope.full_year(year)
    return Scope.single(year, int(month))


def _parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Budget rollups and dashboard snapshots")
    sub = parser.add_subparsers(dest="command", required=True)

    budget = sub.add_parser("budget", help="Planned vs actual by category")
    budget.add_argument("--year", type=int, default=None)
    budget.add_argument("--month", default=None, help="1-12, or 'all' for the whole year")
    budget.add_argument("--mode", default=AccountingMode.ACCRUAL.value, help="accrual/competencia or cash/caixa")
    budget.add_argument("--parent", default=None, help="Drill into a parent category id")

    sub.add_parser("dashboard", help="Current month summary")
    return parser


async def run(args: argparse.Namespace, services: Services) -> str:
    if args.command == "budget":
        scope = parse_scope(args.year, args.month)
        snapshot = await services.budget.refresh(scope, AccountingMode(args.mode))
        view = build_budget_view(snapshot, args.parent)
        return budget_view_out(view, services.budget.loading, services.budget.last_error).model_dump_json(indent=2)
    snapshot = await services.dashboard.refresh()
    return dashboard_out(snapshot).model_dump_json(indent=2)


def main(argv: list[str] | None = None) -> int:
    args = _parser().parse_args(argv)
    services = build_services()
    try:
        output = asyncio.run(run(args, services))
    except FetchFailedError as exc:
        print(f"[budgetlens] fetch failed: {exc}", file=sys.stderr)
        return 1
    except ValueError as exc:
        print(f"[budgetlens] invalid arguments: {exc}", file=sys.stderr)
        return 2
    print(output)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
