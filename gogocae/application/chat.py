from __future__ import annotations

from typing import Callable

from gogocae.core.errors import PermissionDenied, SessionRequired, ValidationError
from gogocae.domain import AnalysisRequest, Message, NewMessage, User
from gogocae.infrastructure.changefeed import ChangeFeed, Subscription
from gogocae.infrastructure.datastore import MESSAGES, Datastore

from .notifications import DispatchReport, NotificationService
from .requests import Clock, RequestService, utc_now


class ChatService:
    """Per-request message thread between the requester and the analysts."""

    def __init__(
        self,
        datastore: Datastore,
        *,
        requests: RequestService,
        notifications: NotificationService,
        change_feed: ChangeFeed | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._datastore = datastore
        self._requests = requests
        self._notifications = notifications
        self._change_feed = change_feed
        self._clock = clock

    def _participating(self, request_id: str, user: User | None) -> tuple[User, AnalysisRequest]:
        if user is None:
            raise SessionRequired()
        request = self._requests.get_request(request_id, user)
        if not user.is_manager and user.id not in (request.requester_id, request.assigned_to):
            raise PermissionDenied("Only participants can use this conversation")
        return user, request

    def post_message(
        self,
        request_id: str,
        content: str,
        acting_user: User | None,
        *,
        file_url: str | None = None,
    ) -> tuple[Message, DispatchReport]:
        author, request = self._participating(request_id, acting_user)
        text = (content or "").strip()
        if not text:
            raise ValidationError("Message content is required", details={"content": "empty"})

        now = self._clock()
        row = self._datastore.insert(
            MESSAGES,
            {
                "request_id": request.id,
                "user_id": author.id,
                "content": text,
                "file_url": file_url,
                "created_at": now.isoformat(),
            },
        )
        report = self._notifications.dispatch_event(
            NewMessage(request=request, author=author, content=text), now=now
        )
        return Message.from_row(row), report

    def list_messages(self, request_id: str, acting_user: User | None) -> list[Message]:
        _, request = self._participating(request_id, acting_user)
        rows = self._datastore.query(MESSAGES, {"request_id": request.id}, order_by="created_at")
        return [Message.from_row(row) for row in rows]

    def watch(self, request_id: str, acting_user: User | None, on_change: Callable[[list[Message]], None]) -> Subscription:
        self._participating(request_id, acting_user)
        if self._change_feed is None:
            raise RuntimeError("no change feed configured")
        return self._change_feed.subscribe(
            MESSAGES,
            lambda _event: on_change(self.list_messages(request_id, acting_user)),
            filters={"request_id": request_id},
            kinds={"insert"},
        )
