"""Integration with a hosted Supabase project (PostgREST + Storage HTTP APIs)."""
from __future__ import annotations

import logging
from typing import Any, Mapping, Sequence
from urllib.parse import quote, urlparse

import httpx

from gogocae.core.errors import Conflict, NotFound, RemoteFailure

from .changefeed import ChangeEvent, ChangeFeed

logger = logging.getLogger(__name__)

_UNIQUE_VIOLATION = "23505"


class SupabaseHTTP:
    """Shared connection handling for the REST and storage endpoints."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        *,
        timeout: float = 30.0,
        http_client: httpx.Client | None = None,
    ) -> None:
        parsed = urlparse(base_url)
        if not parsed.scheme or not parsed.netloc:
            raise ValueError("base_url must include scheme and host")

        self._base_url = f"{parsed.scheme}://{parsed.netloc}{parsed.path.rstrip('/')}"
        self._api_key = api_key
        self._client = http_client or httpx.Client(timeout=timeout)
        self._owns_client = http_client is None

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _headers(self, extra: Mapping[str, str] | None = None) -> dict[str, str]:
        headers = {
            "apikey": self._api_key,
            "Authorization": f"Bearer {self._api_key}",
        }
        if extra:
            headers.update(extra)
        return headers

    def _send(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        url = f"{self._base_url}{path}"
        headers = self._headers(kwargs.pop("headers", None))
        try:
            response = self._client.request(method, url, headers=headers, **kwargs)
        except httpx.HTTPError as exc:
            logger.warning("%s %s failed: %s", method, path, exc)
            raise RemoteFailure(f"Backend unreachable: {exc}") from exc

        if response.status_code >= 400:
            code, message = self._error_details(response)
            if code == _UNIQUE_VIOLATION or response.status_code == 409:
                raise Conflict(message or "Duplicate value")
            raise RemoteFailure(message or f"Backend returned HTTP {response.status_code}", status=response.status_code, code=code)
        return response

    @staticmethod
    def _error_details(response: httpx.Response) -> tuple[str | None, str]:
        try:
            body = response.json()
        except ValueError:
            return None, response.text.strip()
        if not isinstance(body, dict):
            return None, str(body)
        code = body.get("code") or body.get("statusCode")
        message = body.get("message") or body.get("error") or ""
        return (str(code) if code is not None else None), str(message)

    def close(self) -> None:  # pragma: no cover - best effort cleanup
        if self._owns_client:
            self._client.close()


def _encode_filter(value: Any) -> str:
    if value is None:
        return "is.null"
    if isinstance(value, bool):
        return f"eq.{str(value).lower()}"
    return f"eq.{value}"


class PostgrestDatastore(SupabaseHTTP):
    """Datastore backed by the PostgREST endpoint of a Supabase project.

    Rows returned by successful writes are published to ``change_feed``, so
    watchers in this process see them. Writes made by other processes are not
    observed.
    """

    _RETURN_ROWS = {"Prefer": "return=representation"}

    def __init__(self, base_url: str, api_key: str, *, change_feed: ChangeFeed | None = None, **kwargs: Any) -> None:
        super().__init__(base_url, api_key, **kwargs)
        self.change_feed = change_feed

    def _publish(self, table: str, kind: str, rows: Sequence[dict[str, Any]]) -> None:
        if self.change_feed is None:
            return
        for row in rows:
            self.change_feed.publish(ChangeEvent(table=table, kind=kind, record=row))  # type: ignore[arg-type]

    @staticmethod
    def _params(filters: Mapping[str, Any] | None) -> dict[str, str]:
        return {column: _encode_filter(value) for column, value in (filters or {}).items()}

    def _rows(self, response: httpx.Response) -> list[dict[str, Any]]:
        if not response.content:
            return []
        data = response.json()
        if isinstance(data, dict):
            return [data]
        return list(data)

    # ------------------------------------------------------------------
    # public API
    # ------------------------------------------------------------------
    def insert(self, table: str, record: Mapping[str, Any]) -> dict[str, Any]:
        rows = self.insert_many(table, [record])
        if not rows:
            raise RemoteFailure(f"Insert into {table} returned no row")
        return rows[0]

    def insert_many(self, table: str, records: Sequence[Mapping[str, Any]]) -> list[dict[str, Any]]:
        if not records:
            return []
        payload = [{key: value for key, value in record.items() if value is not None} for record in records]
        response = self._send("POST", f"/rest/v1/{table}", json=payload, headers=self._RETURN_ROWS)
        rows = self._rows(response)
        self._publish(table, "insert", rows)
        return rows

    def update(self, table: str, row_id: str, fields: Mapping[str, Any]) -> dict[str, Any]:
        response = self._send(
            "PATCH",
            f"/rest/v1/{table}",
            params={"id": _encode_filter(row_id)},
            json=dict(fields),
            headers=self._RETURN_ROWS,
        )
        rows = self._rows(response)
        if not rows:
            raise NotFound(table, row_id)
        self._publish(table, "update", rows)
        return rows[0]

    def update_where(self, table: str, filters: Mapping[str, Any], fields: Mapping[str, Any]) -> int:
        response = self._send(
            "PATCH",
            f"/rest/v1/{table}",
            params=self._params(filters),
            json=dict(fields),
            headers=self._RETURN_ROWS,
        )
        rows = self._rows(response)
        self._publish(table, "update", rows)
        return len(rows)

    def get(self, table: str, row_id: str) -> dict[str, Any]:
        response = self._send("GET", f"/rest/v1/{table}", params={"select": "*", "id": _encode_filter(row_id)})
        rows = self._rows(response)
        if not rows:
            raise NotFound(table, row_id)
        return rows[0]

    def query(
        self,
        table: str,
        filters: Mapping[str, Any] | None = None,
        *,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[dict[str, Any]]:
        params = {"select": "*", **self._params(filters)}
        if order_by:
            params["order"] = f"{order_by}.{'desc' if descending else 'asc'}"
        if limit is not None:
            params["limit"] = str(limit)
        return self._rows(self._send("GET", f"/rest/v1/{table}", params=params))

    def delete(self, table: str, row_id: str) -> None:
        response = self._send(
            "DELETE",
            f"/rest/v1/{table}",
            params={"id": _encode_filter(row_id)},
            headers=self._RETURN_ROWS,
        )
        rows = self._rows(response)
        if not rows:
            raise NotFound(table, row_id)
        self._publish(table, "delete", rows)

    def delete_where(self, table: str, filters: Mapping[str, Any]) -> int:
        response = self._send("DELETE", f"/rest/v1/{table}", params=self._params(filters), headers=self._RETURN_ROWS)
        rows = self._rows(response)
        self._publish(table, "delete", rows)
        return len(rows)


class SupabaseStorage(SupabaseHTTP):
    """Blob store backed by a public Supabase storage bucket."""

    def __init__(self, base_url: str, api_key: str, *, bucket: str = "design-files", **kwargs: Any) -> None:
        super().__init__(base_url, api_key, **kwargs)
        self._bucket = bucket

    def public_url(self, path: str) -> str:
        return f"{self._base_url}/storage/v1/object/public/{self._bucket}/{quote(path)}"

    def upload(self, path: str, data: bytes, content_type: str | None = None) -> str:
        self._send(
            "POST",
            f"/storage/v1/object/{self._bucket}/{quote(path)}",
            content=data,
            headers={"Content-Type": content_type or "application/octet-stream", "x-upsert": "false"},
        )
        return self.public_url(path)


__all__ = ["PostgrestDatastore", "SupabaseStorage", "SupabaseHTTP"]
