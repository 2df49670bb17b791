"""Change notification contract.

Subscribers register interest in a table (optionally narrowed by equality
filters) and are called after every matching insert, update or delete. They
are expected to re-fetch whatever state they display.
"""
from __future__ import annotations

import itertools
import logging
from dataclasses import dataclass
from typing import Any, Callable, Literal, Mapping, Protocol

logger = logging.getLogger(__name__)

ChangeKind = Literal["insert", "update", "delete"]


@dataclass(frozen=True, slots=True)
class ChangeEvent:
    table: str
    kind: ChangeKind
    record: Mapping[str, Any]


ChangeHandler = Callable[[ChangeEvent], None]


class Subscription(Protocol):
    def close(self) -> None: ...


class ChangeFeed(Protocol):
    """Contract for change-feed integrations."""

    def subscribe(
        self,
        table: str,
        on_event: ChangeHandler,
        *,
        filters: Mapping[str, Any] | None = None,
        kinds: set[ChangeKind] | None = None,
    ) -> Subscription: ...

    def publish(self, event: ChangeEvent) -> None: ...


@dataclass(slots=True)
class _LocalSubscription:
    feed: "LocalChangeFeed"
    key: int

    def close(self) -> None:
        self.feed._subscribers.pop(self.key, None)


class LocalChangeFeed:
    """In-process change feed fed by :class:`InMemoryDatastore`."""

    def __init__(self) -> None:
        self._subscribers: dict[int, tuple[str, dict[str, Any], set[str] | None, ChangeHandler]] = {}
        self._ids = itertools.count(1)

    def subscribe(
        self,
        table: str,
        on_event: ChangeHandler,
        *,
        filters: Mapping[str, Any] | None = None,
        kinds: set[ChangeKind] | None = None,
    ) -> Subscription:
        key = next(self._ids)
        self._subscribers[key] = (table, dict(filters or {}), set(kinds) if kinds else None, on_event)
        return _LocalSubscription(self, key)

    def publish(self, event: ChangeEvent) -> None:
        for table, filters, kinds, handler in list(self._subscribers.values()):
            if table != event.table:
                continue
            if kinds is not None and event.kind not in kinds:
                continue
            if any(event.record.get(column) != value for column, value in filters.items()):
                continue
            try:
                handler(event)
            except Exception:
                # a broken subscriber must not fail the write that triggered it
                logger.exception("change handler failed for %s %s", event.kind, event.table)

    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def reset(self) -> None:
        self._subscribers.clear()
