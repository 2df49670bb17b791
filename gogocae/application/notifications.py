"""Notification dispatch and inbox management."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Sequence

from gogocae.core.errors import NotFound, PermissionDenied, RemoteFailure
from gogocae.core.messages import MessageCatalog
from gogocae.domain import Notification, User
from gogocae.domain.notifications import LifecycleEvent, build_notifications
from gogocae.infrastructure.changefeed import ChangeFeed, Subscription
from gogocae.infrastructure.datastore import NOTIFICATIONS, Datastore

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class DispatchReport:
    delivered: list[Notification] = field(default_factory=list)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class NotificationService:
    """Creates notifications and serves each recipient's inbox."""

    DEFAULT_LIMIT = 50

    def __init__(
        self,
        datastore: Datastore,
        *,
        change_feed: ChangeFeed | None = None,
        catalog: MessageCatalog | None = None,
    ) -> None:
        self._datastore = datastore
        self._change_feed = change_feed
        self._catalog = catalog

    # ── Dispatch ──────────────────────────────────────────────────────

    def dispatch(self, notifications: Sequence[Notification]) -> DispatchReport:
        """Insert ``notifications`` in one batch.

        Best effort: a backend failure is logged and returned on the report,
        never raised, because the triggering change is already committed.
        """

        if not notifications:
            return DispatchReport()
        try:
            rows = self._datastore.insert_many(NOTIFICATIONS, [item.to_row() for item in notifications])
        except RemoteFailure as exc:
            logger.warning("notification dispatch failed for %d recipient(s)", len(notifications), exc_info=True)
            return DispatchReport(error=exc.message)
        return DispatchReport(delivered=[Notification.from_row(row) for row in rows])

    def dispatch_event(self, event: LifecycleEvent, *, now: datetime) -> DispatchReport:
        return self.dispatch(build_notifications(event, now=now, catalog=self._catalog))

    # ── Query ─────────────────────────────────────────────────────────

    def list_for_user(self, user: User, *, unread_only: bool = False, limit: int | None = DEFAULT_LIMIT) -> list[Notification]:
        filters: dict[str, object] = {"user_id": user.id}
        if unread_only:
            filters["is_read"] = False
        rows = self._datastore.query(NOTIFICATIONS, filters, order_by="created_at", descending=True, limit=limit)
        return [Notification.from_row(row) for row in rows]

    def unread_count(self, user: User) -> int:
        return len(self._datastore.query(NOTIFICATIONS, {"user_id": user.id, "is_read": False}))

    # ── Actions (recipient only) ──────────────────────────────────────

    def _owned(self, notification_id: str, user: User) -> Notification:
        try:
            notification = Notification.from_row(self._datastore.get(NOTIFICATIONS, notification_id))
        except NotFound:
            raise NotFound("Notification", notification_id) from None
        if notification.user_id != user.id:
            raise PermissionDenied("Only the recipient can change this notification")
        return notification

    def mark_read(self, notification_id: str, user: User) -> Notification:
        self._owned(notification_id, user)
        row = self._datastore.update(NOTIFICATIONS, notification_id, {"is_read": True})
        return Notification.from_row(row)

    def mark_all_read(self, user: User) -> int:
        return self._datastore.update_where(NOTIFICATIONS, {"user_id": user.id, "is_read": False}, {"is_read": True})

    def delete(self, notification_id: str, user: User) -> None:
        self._owned(notification_id, user)
        self._datastore.delete(NOTIFICATIONS, notification_id)

    def delete_all(self, user: User) -> int:
        return self._datastore.delete_where(NOTIFICATIONS, {"user_id": user.id})

    # ── Change watching ───────────────────────────────────────────────

    def watch(self, user: User, on_change: Callable[[list[Notification]], None]) -> Subscription:
        """Call ``on_change`` with the refreshed inbox whenever a notification arrives for ``user``."""

        if self._change_feed is None:
            raise RuntimeError("no change feed configured")
        return self._change_feed.subscribe(
            NOTIFICATIONS,
            lambda _event: on_change(self.list_for_user(user)),
            filters={"user_id": user.id},
            kinds={"insert"},
        )
