from __future__ import annotations

import logging
from typing import Any, Optional

from application.category_directory import CategoryDirectory
from application.errors import CategoryHierarchyError, UnauthenticatedError
from application.invalidation import InvalidationSignal
from domain.models import Category, CategoryType
from infrastructure.fact_loader import normalize_category, normalize_rows
from infrastructure.retry import RetryPolicy
from infrastructure.store.base import Filter, Order, TabularStore

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("name", "type", "color", "icon", "parent_id")


class CategoryService:
    """Category CRUD. Writes keep nesting to one level and emit invalidation on success."""

    def __init__(
        self,
        store: TabularStore,
        retry: RetryPolicy | None = None,
        signal: InvalidationSignal | None = None,
    ) -> None:
        self._store = store
        self._retry = retry or RetryPolicy()
        self._signal = signal or InvalidationSignal()

    async def list_categories(self, category_type: Optional[CategoryType] = None) -> list[Category]:
        filters = [Filter.eq("type", category_type.value)] if category_type else []
        rows = await self._retry.acall(
            lambda: self._store.select("categories", filters, [Order("name")]),
            "select categories",
        )
        return normalize_rows(rows, normalize_category, "categories")

    async def add_category(
        self,
        name: str,
        type: CategoryType = CategoryType.EXPENSE,
        color: str | None = None,
        icon: str | None = None,
        parent_id: str | None = None,
    ) -> Category:
        principal = await self._retry.acall(self._store.current_user, "session lookup")
        if principal is None:
            raise UnauthenticatedError("User not authenticated")

        if parent_id:
            directory = CategoryDirectory(await self.list_categories())
            self._check_parent(directory, parent_id, category_id=None)

        row: dict[str, Any] = {
            "user_id": principal.id,
            "name": name,
            "type": CategoryType(type).value,
            "color": color,
            "icon": icon,
            "parent_id": parent_id or None,
        }
        inserted = await self._retry.acall(lambda: self._store.insert("categories", [row]), "insert categories")
        logger.info("Category added name=%s parent_id=%s", name, parent_id)
        await self._signal.emit("categories")
        return normalize_category(inserted[0])

    async def update_category(self, category_id: str, updates: dict[str, Any]) -> list[Category]:
        patch = {key: value for key, value in updates.items() if key in EDITABLE_FIELDS}
        if "type" in patch:
            patch["type"] = CategoryType(patch["type"]).value

        if patch.get("parent_id"):
            directory = CategoryDirectory(await self.list_categories())
            self._check_parent(directory, patch["parent_id"], category_id=category_id)
        elif "parent_id" in patch:
            patch["parent_id"] = None

        updated = await self._retry.acall(
            lambda: self._store.update("categories", [Filter.eq("id", category_id)], patch),
            "update categories",
        )
        logger.info("Category updated id=%s fields=%s", category_id, sorted(patch))
        await self._signal.emit("categories")
        return normalize_rows(updated, normalize_category, "categories")

    async def delete_category(self, category_id: str) -> None:
        await self._retry.acall(
            lambda: self._store.delete("categories", [Filter.eq("id", category_id)]),
            "delete categories",
        )
        logger.info("Category deleted id=%s", category_id)
        await self._signal.emit("categories")

    @staticmethod
    def _check_parent(directory: CategoryDirectory, parent_id: str, category_id: str | None) -> None:
        if category_id is not None and parent_id == category_id:
            raise CategoryHierarchyError("A category cannot be its own parent")
        parent = directory.get(parent_id)
        if parent is None:
            raise CategoryHierarchyError(f"Parent category {parent_id!r} does not exist")
        if directory.parent_of(parent_id) is not None:
            raise CategoryHierarchyError(f"Parent category {parent_id!r} is itself a subcategory")
        if category_id is not None and directory.children_of(category_id):
            raise CategoryHierarchyError(f"Category {category_id!r} has subcategories and cannot be nested")
