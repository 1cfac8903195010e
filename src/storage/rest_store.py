# src/storage/rest_store.py

"""PostgREST record store for a hosted backend with row-level security."""

import logging
from typing import Any
from urllib.parse import urlencode

from curl_cffi import requests as curl_requests

from src.config.settings import Settings
from src.storage.record_store import (
    SERVER_COLUMNS,
    Join,
    OrderBy,
    RecordStore,
    StoreError,
    check_columns,
    check_table,
)

logger = logging.getLogger("price_tracker.store")


def _select_clause(joins: tuple[Join, ...]) -> str:
    """``*`` plus one ``alias:foreign_key(*)`` embed per join."""
    parts = ["*"]
    parts.extend(f"{j.alias}:{j.foreign_key}(*)" for j in joins)
    return ",".join(parts)


def _order_param(order_by: tuple[OrderBy, ...]) -> str:
    """Render PostgREST's ``order=col.desc,col2.asc`` value."""
    return ",".join(
        f"{o.column}.{'desc' if o.descending else 'asc'}"
        for o in order_by
    )


def _filter_value(value: Any) -> str:
    """Encode an equality filter value as ``eq.<value>``."""
    if value is None:
        return "is.null"
    return f"eq.{value}"


class RestRecordStore(RecordStore):
    """Talks to ``{base_url}/rest/v1/<table>`` with the session's token.

    The hosted database enforces ``user_id = auth.uid()`` on its own;
    the ``user_id`` filter is still sent on every call so a
    misconfigured policy never leaks another user's rows.  Failed calls
    are not retried.
    """

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        session: Any | None = None,
    ) -> None:
        self.base_url = (base_url or Settings.SUPABASE_URL).rstrip("/")
        self.api_key = api_key or Settings.SUPABASE_ANON_KEY
        self.session = session or curl_requests.Session(
            impersonate=Settings.IMPERSONATE_BROWSER
        )
        self.access_token: str | None = None
        self._timeout: int = Settings.REQUEST_TIMEOUT
        if not self.base_url:
            logger.warning("RestRecordStore created without a base URL")

    def close(self) -> None:
        """Close the underlying HTTP session."""
        self.session.close()

    def _headers(self, prefer: str | None = None) -> dict[str, str]:
        headers = {
            "apikey": self.api_key,
            "Authorization": f"Bearer {self.access_token or self.api_key}",
            "Accept": "application/json",
            "Content-Type": "application/json",
        }
        if prefer:
            headers["Prefer"] = prefer
        return headers

    def _request(
        self,
        method: str,
        table: str,
        params: list[tuple[str, str]],
        body: dict[str, Any] | None = None,
        prefer: str | None = None,
    ) -> list[dict[str, Any]]:
        """Send one request and return the decoded row list."""
        url = f"{self.base_url}/rest/v1/{table}?{urlencode(params)}"
        try:
            resp = self.session.request(
                method,
                url,
                headers=self._headers(prefer),
                json=body,
                timeout=self._timeout,
            )
        except Exception as exc:
            logger.debug(
                "%s %s raised: %s", method, table, exc, exc_info=True,
            )
            raise StoreError(f"{method} {table} failed: {exc}") from exc

        if resp.status_code >= 400:
            detail = resp.text[:200]
            logger.debug(
                "%s %s returned HTTP %d: %s",
                method, table, resp.status_code, detail,
            )
            raise StoreError(
                f"{method} {table} returned HTTP {resp.status_code}"
            )

        if resp.status_code == 204 or not resp.text.strip():
            return []
        try:
            data = resp.json()
        except ValueError as exc:
            raise StoreError(f"{method} {table}: invalid JSON") from exc
        if isinstance(data, dict):
            return [data]
        if not isinstance(data, list):
            raise StoreError(f"{method} {table}: unexpected payload")
        return data

    def _scope(
        self,
        table: str,
        user_id: str,
        filters: dict[str, Any] | None,
    ) -> list[tuple[str, str]]:
        """Equality filters plus the mandatory ``user_id`` filter."""
        conditions = dict(filters or {})
        check_columns(table, list(conditions))
        params = [("user_id", _filter_value(user_id))]
        params.extend(
            (column, _filter_value(value))
            for column, value in conditions.items()
        )
        return params

    def _check_writable(self, table: str, row: dict[str, Any]) -> None:
        check_columns(table, list(row))
        server = SERVER_COLUMNS.intersection(row)
        if server:
            raise StoreError(
                f"Cannot write server column(s): {', '.join(sorted(server))}"
            )

    # ── RecordStore API ──────────────────────────────────

    def fetch_all(
        self,
        table: str,
        user_id: str,
        filters: dict[str, Any] | None = None,
        order_by: tuple[OrderBy, ...] = (),
    ) -> list[dict[str, Any]]:
        return self.fetch_joined(table, user_id, (), filters, order_by)

    def fetch_joined(
        self,
        table: str,
        user_id: str,
        joins: tuple[Join, ...],
        filters: dict[str, Any] | None = None,
        order_by: tuple[OrderBy, ...] = (),
    ) -> list[dict[str, Any]]:
        check_table(table)
        for join in joins:
            check_columns(table, [join.foreign_key])
            check_table(join.table)
        params = [("select", _select_clause(joins))]
        params.extend(self._scope(table, user_id, filters))
        if order_by:
            check_columns(table, [o.column for o in order_by])
            params.append(("order", _order_param(order_by)))
        return self._request("GET", table, params)

    def insert(
        self, table: str, user_id: str, row: dict[str, Any],
    ) -> dict[str, Any]:
        check_table(table)
        self._check_writable(table, row)
        rows = self._request(
            "POST",
            table,
            [("select", "*")],
            body={**row, "user_id": user_id},
            prefer="return=representation",
        )
        if not rows:
            raise StoreError(f"POST {table} returned no row")
        return rows[0]

    def update(
        self,
        table: str,
        user_id: str,
        row_id: str,
        changes: dict[str, Any],
    ) -> dict[str, Any]:
        check_table(table)
        self._check_writable(table, changes)
        params = [("select", "*")]
        params.extend(self._scope(table, user_id, {"id": row_id}))
        rows = self._request(
            "PATCH",
            table,
            params,
            body=changes,
            prefer="return=representation",
        )
        if not rows:
            raise StoreError(f"{table} row {row_id} not found")
        return rows[0]

    def delete(self, table: str, user_id: str, row_id: str) -> bool:
        check_table(table)
        rows = self._request(
            "DELETE",
            table,
            self._scope(table, user_id, {"id": row_id}),
            prefer="return=representation",
        )
        return bool(rows)
