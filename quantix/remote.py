"""Remote mirror backends.

RestRemote talks to a PostgREST endpoint (the REST layer Supabase exposes)
with one resource per record kind. MemoryRemote keeps the same tables in
process and can be switched offline to simulate an outage.
"""

from __future__ import annotations

import copy
import json
import logging
import threading
from typing import Any, Protocol
from urllib.error import HTTPError, URLError
from urllib.parse import quote, urlencode
from urllib.request import Request, urlopen

from quantix.errors import RemoteError

logger = logging.getLogger(__name__)

TABLES = ("tasks", "profiles", "sessions", "journal_entries", "goals")


class RemoteStore(Protocol):
    def probe(self) -> bool: ...

    def select(self, table: str, **filters: str) -> list[dict[str, Any]]: ...

    def insert(self, table: str, row: dict[str, Any]) -> None: ...

    def upsert(self, table: str, row: dict[str, Any]) -> None: ...

    def delete(self, table: str, record_id: str) -> None: ...


class RestRemote:
    """Minimal PostgREST client over urllib."""

    def __init__(self, base_url: str, api_key: str, timeout: float = 10.0) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout

    def _url(self, table: str, filters: dict[str, str] | None = None) -> str:
        url = f"{self.base_url}/rest/v1/{quote(table)}"
        if filters:
            url += "?" + urlencode({k: f"eq.{v}" for k, v in filters.items()})
        return url

    def _request(
        self,
        method: str,
        url: str,
        body: Any = None,
        prefer: str | None = None,
    ) -> Any:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        data = json.dumps(body).encode("utf-8") if body is not None else None
        request = Request(url, data=data, headers=headers, method=method)
        try:
            with urlopen(request, timeout=self.timeout) as response:
                payload = response.read()
        except HTTPError as e:
            raise RemoteError(f"{method} {url} returned {e.code} {e.reason}") from e
        except (URLError, OSError) as e:
            raise RemoteError(f"{method} {url} failed: {e}") from e
        if not payload:
            return None
        try:
            return json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise RemoteError(f"{method} {url} returned malformed JSON") from e

    def probe(self) -> bool:
        try:
            self._request("GET", self._url("profiles") + "?select=id&limit=1")
        except RemoteError as e:
            logger.warning("Remote probe failed: %s", e)
            return False
        return True

    def select(self, table: str, **filters: str) -> list[dict[str, Any]]:
        result = self._request("GET", self._url(table, filters))
        if result is None:
            return []
        if not isinstance(result, list):
            raise RemoteError(f"Unexpected {table} payload: {type(result).__name__}")
        return [row for row in result if isinstance(row, dict)]

    def insert(self, table: str, row: dict[str, Any]) -> None:
        self._request("POST", self._url(table), [row], prefer="return=minimal")

    def upsert(self, table: str, row: dict[str, Any]) -> None:
        self._request(
            "POST",
            self._url(table),
            [row],
            prefer="resolution=merge-duplicates,return=minimal",
        )

    def delete(self, table: str, record_id: str) -> None:
        self._request("DELETE", self._url(table, {"id": record_id}), prefer="return=minimal")


class MemoryRemote:
    """In-process remote with the same table semantics as RestRemote."""

    def __init__(self, tables: dict[str, list[dict[str, Any]]] | None = None) -> None:
        self.online = True
        self.calls: list[tuple[str, str]] = []
        self._lock = threading.Lock()
        self._tables: dict[str, dict[str, dict[str, Any]]] = {t: {} for t in TABLES}
        for table, rows in (tables or {}).items():
            for row in rows:
                self._tables.setdefault(table, {})[str(row["id"])] = dict(row)

    def _check(self, op: str, table: str) -> None:
        self.calls.append((op, table))
        if not self.online:
            raise RemoteError(f"{op} {table}: remote offline")

    def rows(self, table: str) -> list[dict[str, Any]]:
        with self._lock:
            return [copy.deepcopy(r) for r in self._tables.get(table, {}).values()]

    def probe(self) -> bool:
        return self.online

    def select(self, table: str, **filters: str) -> list[dict[str, Any]]:
        self._check("select", table)
        with self._lock:
            rows = self._tables.get(table, {}).values()
            return [
                copy.deepcopy(r)
                for r in rows
                if all(str(r.get(k)) == str(v) for k, v in filters.items())
            ]

    def insert(self, table: str, row: dict[str, Any]) -> None:
        self._check("insert", table)
        with self._lock:
            bucket = self._tables.setdefault(table, {})
            if str(row["id"]) in bucket:
                raise RemoteError(f"insert {table}: duplicate id {row['id']}")
            bucket[str(row["id"])] = copy.deepcopy(row)

    def upsert(self, table: str, row: dict[str, Any]) -> None:
        self._check("upsert", table)
        with self._lock:
            bucket = self._tables.setdefault(table, {})
            merged = dict(bucket.get(str(row["id"]), {}))
            merged.update(copy.deepcopy(row))
            bucket[str(row["id"])] = merged

    def delete(self, table: str, record_id: str) -> None:
        self._check("delete", table)
        with self._lock:
            self._tables.get(table, {}).pop(str(record_id), None)
