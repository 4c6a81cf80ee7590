from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Iterable, Literal, Optional

from domain.models import Principal

Row = dict[str, Any]
FilterOp = Literal["eq", "neq", "gte", "lte", "is_null", "in"]


class StoreError(RuntimeError):
    pass


class TransientStoreError(StoreError):
    """A failure worth retrying (network blip, timeout, 5xx)."""


@dataclass(frozen=True)
class Filter:
    column: str
    op: FilterOp
    value: Any = None

    @classmethod
    def eq(cls, column: str, value: Any) -> "Filter":
        return cls(column, "eq", value)

    @classmethod
    def neq(cls, column: str, value: Any) -> "Filter":
        return cls(column, "neq", value)

    @classmethod
    def gte(cls, column: str, value: Any) -> "Filter":
        return cls(column, "gte", value)

    @classmethod
    def lte(cls, column: str, value: Any) -> "Filter":
        return cls(column, "lte", value)

    @classmethod
    def is_null(cls, column: str) -> "Filter":
        return cls(column, "is_null")

    @classmethod
    def isin(cls, column: str, values: Iterable[Any]) -> "Filter":
        return cls(column, "in", tuple(values))


@dataclass(frozen=True)
class Order:
    column: str
    descending: bool = False


class TabularStore(ABC):
    """Contract for the remote relational store the dashboard reads and writes."""

    name: str = "store"

    @abstractmethod
    def select(
        self,
        table: str,
        filters: Iterable[Filter] = (),
        ordering: Iterable[Order] = (),
        limit: Optional[int] = None,
    ) -> list[Row]:
        raise NotImplementedError

    @abstractmethod
    def insert(self, table: str, rows: list[Row]) -> list[Row]:
        raise NotImplementedError

    @abstractmethod
    def upsert(self, table: str, rows: list[Row], conflict_keys: Iterable[str]) -> list[Row]:
        raise NotImplementedError

    @abstractmethod
    def update(self, table: str, filters: Iterable[Filter], patch: Row) -> list[Row]:
        raise NotImplementedError

    @abstractmethod
    def delete(self, table: str, filters: Iterable[Filter]) -> None:
        raise NotImplementedError

    @abstractmethod
    def current_user(self) -> Principal | None:
        raise NotImplementedError
