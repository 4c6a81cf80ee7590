from __future__ import annotations

import json
import logging
import os
import socket
import time
import urllib.error
import urllib.parse
import urllib.request
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Optional

from domain.models import Principal
from infrastructure.store.base import Filter, Order, Row, StoreError, TabularStore, TransientStoreError

logger = logging.getLogger(__name__)


def _encode_value(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


def _json_default(obj: Any) -> Any:
    if isinstance(obj, Decimal):
        return float(obj)
    if isinstance(obj, date):
        return obj.isoformat()
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


class PostgrestStore(TabularStore):
    """Adapter for a PostgREST endpoint (e.g. a Supabase project)."""

    name = "postgrest"

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        access_token: str | None = None,
        timeout_seconds: float | None = None,
    ) -> None:
        self.base_url = (base_url or os.getenv("SUPABASE_URL", "http://127.0.0.1:54321")).rstrip("/")
        self.api_key = api_key or os.getenv("SUPABASE_ANON_KEY", "")
        self.access_token = access_token or os.getenv("SUPABASE_ACCESS_TOKEN") or None
        self.timeout_seconds = timeout_seconds or float(os.getenv("STORE_TIMEOUT_SECONDS", "30"))

    def set_access_token(self, token: str | None) -> None:
        self.access_token = token

    # ---- query encoding ----
    @staticmethod
    def encode_filters(filters: Iterable[Filter]) -> list[tuple[str, str]]:
        params: list[tuple[str, str]] = []
        for flt in filters:
            if flt.op == "is_null":
                params.append((flt.column, "is.null"))
            elif flt.op == "in":
                joined = ",".join(_encode_value(v) for v in flt.value)
                params.append((flt.column, f"in.({joined})"))
            elif flt.op in ("eq", "neq", "gte", "lte"):
                params.append((flt.column, f"{flt.op}.{_encode_value(flt.value)}"))
            else:
                raise StoreError(f"Unsupported filter operator: {flt.op!r}")
        return params

    @staticmethod
    def encode_ordering(ordering: Iterable[Order]) -> list[tuple[str, str]]:
        parts = [f"{o.column}.{'desc' if o.descending else 'asc'}" for o in ordering]
        return [("order", ",".join(parts))] if parts else []

    # ---- TabularStore ----
    def select(
        self,
        table: str,
        filters: Iterable[Filter] = (),
        ordering: Iterable[Order] = (),
        limit: Optional[int] = None,
    ) -> list[Row]:
        params = [("select", "*")] + self.encode_filters(filters) + self.encode_ordering(ordering)
        if limit is not None:
            params.append(("limit", str(limit)))
        return self._rows(self._request("GET", f"/rest/v1/{table}", params))

    def insert(self, table: str, rows: list[Row]) -> list[Row]:
        body = self._request("POST", f"/rest/v1/{table}", [], payload=rows, prefer="return=representation")
        return self._rows(body)

    def upsert(self, table: str, rows: list[Row], conflict_keys: Iterable[str]) -> list[Row]:
        params = [("on_conflict", ",".join(conflict_keys))]
        body = self._request(
            "POST",
            f"/rest/v1/{table}",
            params,
            payload=rows,
            prefer="resolution=merge-duplicates,return=representation",
        )
        return self._rows(body)

    def update(self, table: str, filters: Iterable[Filter], patch: Row) -> list[Row]:
        body = self._request(
            "PATCH",
            f"/rest/v1/{table}",
            self.encode_filters(filters),
            payload=patch,
            prefer="return=representation",
        )
        return self._rows(body)

    def delete(self, table: str, filters: Iterable[Filter]) -> None:
        self._request("DELETE", f"/rest/v1/{table}", self.encode_filters(filters))

    def current_user(self) -> Principal | None:
        if not self.access_token:
            return None
        try:
            body = self._request("GET", "/auth/v1/user", [])
        except StoreError as exc:
            logger.warning("PostgrestStore session lookup failed: %s", exc)
            return None
        if not isinstance(body, dict) or not body.get("id"):
            return None
        return Principal(id=str(body["id"]), email=body.get("email"))

    # ---- transport ----
    def _rows(self, body: Any) -> list[Row]:
        if body is None:
            return []
        if not isinstance(body, list):
            raise StoreError(f"Expected list of rows from store, got {type(body).__name__}")
        return [row for row in body if isinstance(row, dict)]

    def _request(
        self,
        method: str,
        path: str,
        params: list[tuple[str, str]],
        payload: Any = None,
        prefer: str | None = None,
    ) -> Any:
        url = f"{self.base_url}{path}"
        if params:
            url = f"{url}?{urllib.parse.urlencode(params, safe='(),.*')}"
        headers = {
            "Content-Type": "application/json",
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
        }
        if prefer:
            headers["Prefer"] = prefer
        data = json.dumps(payload, default=_json_default).encode("utf-8") if payload is not None else None
        req = urllib.request.Request(url=url, data=data, headers=headers, method=method)

        started = time.perf_counter()
        try:
            with urllib.request.urlopen(req, timeout=self.timeout_seconds) as resp:
                raw = resp.read().decode("utf-8")
        except urllib.error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace") if exc.fp else ""
            if exc.code >= 500:
                raise TransientStoreError(f"{method} {path} failed with HTTP {exc.code}: {detail}") from exc
            raise StoreError(f"{method} {path} failed with HTTP {exc.code}: {detail}") from exc
        except (socket.timeout, urllib.error.URLError, TimeoutError, ConnectionError) as exc:
            raise TransientStoreError(f"{method} {path} network failure: {exc}") from exc

        logger.debug("PostgrestStore %s %s complete in %.2fs", method, path, time.perf_counter() - started)
        if not raw:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError as exc:
            raise StoreError(f"{method} {path} returned invalid JSON: {exc}") from exc
