from __future__ import annotations

import copy
import logging
import threading
import uuid
from datetime import date, datetime
from typing import Any, Iterable, Optional

from domain.models import Principal
from infrastructure.store.base import Filter, Order, Row, StoreError, TabularStore

logger = logging.getLogger(__name__)


def _comparable(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    return value


def _as_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and len(value) >= 10:
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None
    return None


def _range_operands(current: Any, expected: Any) -> tuple[Any, Any]:
    # Date bounds compare by calendar day, so timestamps on the last day stay inside.
    current_day, expected_day = _as_date(current), _as_date(expected)
    if current_day is not None and expected_day is not None:
        return current_day, expected_day
    return _comparable(current), _comparable(expected)


class InMemoryStore(TabularStore):
    """Dict-backed store with the same filter semantics as the remote one.

    Used by the CLI demo and the test-suite; rows are deep-copied on the way
    in and out so callers never share state with the tables.
    """

    name = "memory"

    def __init__(
        self,
        tables: dict[str, list[Row]] | None = None,
        principal: Principal | None = None,
    ) -> None:
        self._tables: dict[str, list[Row]] = {
            name: [dict(row) for row in rows] for name, rows in (tables or {}).items()
        }
        self._principal = principal
        self._lock = threading.Lock()

    def sign_in(self, principal: Principal | None) -> None:
        self._principal = principal

    def current_user(self) -> Principal | None:
        return self._principal

    def select(
        self,
        table: str,
        filters: Iterable[Filter] = (),
        ordering: Iterable[Order] = (),
        limit: Optional[int] = None,
    ) -> list[Row]:
        filters = list(filters)
        with self._lock:
            rows = [copy.deepcopy(row) for row in self._tables.get(table, []) if self._matches(row, filters)]
        for order in reversed(list(ordering)):
            rows.sort(
                key=lambda row: (row.get(order.column) is None, _comparable(row.get(order.column))),
                reverse=order.descending,
            )
        if limit is not None:
            rows = rows[:limit]
        logger.debug("InMemoryStore select table=%s filters=%d rows=%d", table, len(filters), len(rows))
        return rows

    def insert(self, table: str, rows: list[Row]) -> list[Row]:
        inserted: list[Row] = []
        with self._lock:
            target = self._tables.setdefault(table, [])
            for row in rows:
                stored = dict(row)
                stored.setdefault("id", str(uuid.uuid4()))
                target.append(stored)
                inserted.append(copy.deepcopy(stored))
        return inserted

    def upsert(self, table: str, rows: list[Row], conflict_keys: Iterable[str]) -> list[Row]:
        keys = list(conflict_keys)
        if not keys:
            raise StoreError("upsert requires at least one conflict key")
        written: list[Row] = []
        with self._lock:
            target = self._tables.setdefault(table, [])
            for row in rows:
                existing = next(
                    (
                        current
                        for current in target
                        if all(_comparable(current.get(k)) == _comparable(row.get(k)) for k in keys)
                    ),
                    None,
                )
                if existing is None:
                    existing = dict(row)
                    existing.setdefault("id", str(uuid.uuid4()))
                    target.append(existing)
                else:
                    existing.update(row)
                written.append(copy.deepcopy(existing))
        return written

    def update(self, table: str, filters: Iterable[Filter], patch: Row) -> list[Row]:
        filters = list(filters)
        updated: list[Row] = []
        with self._lock:
            for row in self._tables.get(table, []):
                if self._matches(row, filters):
                    row.update(patch)
                    updated.append(copy.deepcopy(row))
        return updated

    def delete(self, table: str, filters: Iterable[Filter]) -> None:
        filters = list(filters)
        with self._lock:
            rows = self._tables.get(table, [])
            self._tables[table] = [row for row in rows if not self._matches(row, filters)]

    def _matches(self, row: Row, filters: list[Filter]) -> bool:
        for flt in filters:
            current = _comparable(row.get(flt.column))
            expected = _comparable(flt.value)
            if flt.op == "is_null":
                if current is not None:
                    return False
            elif flt.op == "eq":
                if current != expected:
                    return False
            elif flt.op == "neq":
                if current == expected:
                    return False
            elif flt.op in ("gte", "lte"):
                current, expected = _range_operands(row.get(flt.column), flt.value)
                if current is None or (current < expected if flt.op == "gte" else current > expected):
                    return False
            elif flt.op == "in":
                if current not in {_comparable(v) for v in flt.value}:
                    return False
            else:
                raise StoreError(f"Unsupported filter operator: {flt.op!r}")
        return True
