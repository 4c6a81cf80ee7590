from __future__ import annotations

from typing import Iterable, Iterator

from application.errors import CategoryHierarchyError
from domain.models import Category


class CategoryDirectory:
    """Point-in-time index of categories with their parent/child links.

    Nesting is limited to one level and enforced at construction: a category
    whose parent itself has a (resolvable) parent is rejected. A parent id
    that does not resolve is not an error; that category is treated as a root.
    """

    def __init__(self, categories: Iterable[Category]) -> None:
        self._by_id: dict[str, Category] = {}
        for category in categories:
            self._by_id.setdefault(category.id, category)

        self._children: dict[str, list[Category]] = {}
        for category in self._by_id.values():
            parent = self.parent_of(category.id)
            if parent is None:
                continue
            if parent.id == category.id or self.parent_of(parent.id) is not None:
                raise CategoryHierarchyError(
                    f"Category {category.id!r} nests under {parent.id!r}, which is not a root category"
                )
            self._children.setdefault(parent.id, []).append(category)

    def __len__(self) -> int:
        return len(self._by_id)

    def __iter__(self) -> Iterator[Category]:
        return iter(self._by_id.values())

    def __contains__(self, category_id: object) -> bool:
        return category_id in self._by_id

    def get(self, category_id: str | None) -> Category | None:
        if category_id is None:
            return None
        return self._by_id.get(category_id)

    def parent_of(self, category_id: str | None) -> Category | None:
        category = self.get(category_id)
        if category is None or not category.parent_id:
            return None
        return self._by_id.get(category.parent_id)

    def root_id_of(self, category_id: str) -> str:
        parent = self.parent_of(category_id)
        return parent.id if parent is not None else category_id

    def children_of(self, parent_id: str) -> list[Category]:
        return list(self._children.get(parent_id, []))

    def roots(self) -> list[Category]:
        return [c for c in self._by_id.values() if self.parent_of(c.id) is None]
