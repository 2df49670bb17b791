"""Infrastructure layer for relational persistence."""
from __future__ import annotations

import copy
import uuid
from datetime import datetime, timezone
from typing import Any, Mapping, Protocol, Sequence

from gogocae.core.errors import Conflict, NotFound

from .changefeed import ChangeEvent, ChangeFeed

USERS = "users"
VEHICLE_MODELS = "vehicle_models"
ANALYSIS_REQUESTS = "analysis_requests"
MESSAGES = "messages"
NOTIFICATIONS = "notifications"
STATUS_HISTORY = "status_history"

Row = dict[str, Any]
Filters = Mapping[str, Any]

# column that receives the insert timestamp when the caller omits it
_TIMESTAMP_COLUMNS = {STATUS_HISTORY: "changed_at"}


class Datastore(Protocol):
    """Persistence contract for every table of the desk.

    ``filters`` are equality matches; a ``None`` value matches NULL.
    Writes are published to ``change_feed`` when one is set.
    """

    change_feed: ChangeFeed | None

    def insert(self, table: str, record: Mapping[str, Any]) -> Row: ...

    def insert_many(self, table: str, records: Sequence[Mapping[str, Any]]) -> list[Row]: ...

    def update(self, table: str, row_id: str, fields: Mapping[str, Any]) -> Row: ...

    def update_where(self, table: str, filters: Filters, fields: Mapping[str, Any]) -> int: ...

    def get(self, table: str, row_id: str) -> Row: ...

    def query(
        self,
        table: str,
        filters: Filters | None = None,
        *,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Row]: ...

    def delete(self, table: str, row_id: str) -> None: ...

    def delete_where(self, table: str, filters: Filters) -> int: ...


def _matches(row: Mapping[str, Any], filters: Filters | None) -> bool:
    if not filters:
        return True
    return all(row.get(column) == value for column, value in filters.items())


def _sort_key(value: Any) -> tuple[int, Any]:
    # NULLs sort last in ascending order, like PostgreSQL
    return (1, "") if value is None else (0, value)


class InMemoryDatastore:
    """Simple in-memory datastore for fast iteration and tests."""

    def __init__(
        self,
        *,
        change_feed: ChangeFeed | None = None,
        unique: Mapping[str, Sequence[str]] | None = None,
    ) -> None:
        self._tables: dict[str, dict[str, Row]] = {}
        self.change_feed = change_feed
        self._unique = {table: tuple(columns) for table, columns in (unique or {VEHICLE_MODELS: ("name",)}).items()}

    # ------------------------------------------------------------------
    # internal helpers
    # ------------------------------------------------------------------
    def _table(self, table: str) -> dict[str, Row]:
        return self._tables.setdefault(table, {})

    def _publish(self, table: str, kind: str, row: Row) -> None:
        if self.change_feed is not None:
            self.change_feed.publish(ChangeEvent(table=table, kind=kind, record=copy.deepcopy(row)))  # type: ignore[arg-type]

    def _check_unique(self, table: str, row: Mapping[str, Any], *, exclude: str | None = None) -> None:
        for column in self._unique.get(table, ()):
            value = row.get(column)
            if value is None:
                continue
            for existing_id, existing in self._table(table).items():
                if existing_id != exclude and existing.get(column) == value:
                    raise Conflict(f"{table}.{column} '{value}' already exists")

    def _prepare(self, table: str, record: Mapping[str, Any]) -> Row:
        now = datetime.now(timezone.utc).isoformat()
        row = copy.deepcopy(dict(record))
        row.setdefault("id", str(uuid.uuid4()))
        timestamp_column = _TIMESTAMP_COLUMNS.get(table, "created_at")
        if not row.get(timestamp_column):
            row[timestamp_column] = now
        if table == ANALYSIS_REQUESTS and not row.get("updated_at"):
            row["updated_at"] = now
        row["id"] = str(row["id"])
        return row

    # ------------------------------------------------------------------
    # CRUD operations
    # ------------------------------------------------------------------
    def insert(self, table: str, record: Mapping[str, Any]) -> Row:
        row = self._prepare(table, record)
        if row["id"] in self._table(table):
            raise Conflict(f"{table} id '{row['id']}' already exists")
        self._check_unique(table, row)
        self._table(table)[row["id"]] = row
        self._publish(table, "insert", row)
        return copy.deepcopy(row)

    def insert_many(self, table: str, records: Sequence[Mapping[str, Any]]) -> list[Row]:
        return [self.insert(table, record) for record in records]

    def update(self, table: str, row_id: str, fields: Mapping[str, Any]) -> Row:
        rows = self._table(table)
        if row_id not in rows:
            raise NotFound(table, row_id)
        candidate = {**rows[row_id], **copy.deepcopy(dict(fields))}
        self._check_unique(table, candidate, exclude=row_id)
        if table == ANALYSIS_REQUESTS and "updated_at" not in fields:
            candidate["updated_at"] = datetime.now(timezone.utc).isoformat()
        rows[row_id] = candidate
        self._publish(table, "update", candidate)
        return copy.deepcopy(candidate)

    def update_where(self, table: str, filters: Filters, fields: Mapping[str, Any]) -> int:
        matched = [row_id for row_id, row in self._table(table).items() if _matches(row, filters)]
        for row_id in matched:
            self.update(table, row_id, fields)
        return len(matched)

    def get(self, table: str, row_id: str) -> Row:
        row = self._table(table).get(str(row_id))
        if row is None:
            raise NotFound(table, row_id)
        return copy.deepcopy(row)

    def query(
        self,
        table: str,
        filters: Filters | None = None,
        *,
        order_by: str | None = None,
        descending: bool = False,
        limit: int | None = None,
    ) -> list[Row]:
        rows = [copy.deepcopy(row) for row in self._table(table).values() if _matches(row, filters)]
        if order_by:
            rows.sort(key=lambda row: _sort_key(row.get(order_by)), reverse=descending)
        if limit is not None:
            rows = rows[:limit]
        return rows

    def delete(self, table: str, row_id: str) -> None:
        row = self._table(table).pop(str(row_id), None)
        if row is None:
            raise NotFound(table, row_id)
        self._publish(table, "delete", row)

    def delete_where(self, table: str, filters: Filters) -> int:
        matched = [row_id for row_id, row in self._table(table).items() if _matches(row, filters)]
        for row_id in matched:
            self.delete(table, row_id)
        return len(matched)

    def reset(self) -> None:
        self._tables.clear()
