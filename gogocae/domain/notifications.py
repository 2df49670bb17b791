"""Lifecycle events and the recipient rule for each of them."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Sequence, Union

from gogocae.core.messages import MessageCatalog, default_catalog

from .requests import AnalysisRequest, Notification, RequestStatus, User

STATUS_CHANGE = "status_change"
ASSIGNMENT = "assignment"
REPORT_UPLOADED = "report_uploaded"
NEW_REQUEST = "new_request"
NEW_MESSAGE = "new_message"


@dataclass(frozen=True, slots=True)
class StatusChanged:
    request: AnalysisRequest
    to_status: RequestStatus


@dataclass(frozen=True, slots=True)
class Assigned:
    request: AnalysisRequest
    assignee: User


@dataclass(frozen=True, slots=True)
class ReportUploaded:
    request: AnalysisRequest


@dataclass(frozen=True, slots=True)
class NewRequest:
    request: AnalysisRequest
    requester: User
    managers: Sequence[User] = field(default_factory=tuple)


@dataclass(frozen=True, slots=True)
class NewMessage:
    request: AnalysisRequest
    author: User
    content: str


LifecycleEvent = Union[StatusChanged, Assigned, ReportUploaded, NewRequest, NewMessage]


def recipients_for(event: LifecycleEvent) -> list[str]:
    """Return recipient user ids for ``event``, without duplicates, in a stable order."""

    request = event.request
    if isinstance(event, (StatusChanged, ReportUploaded)):
        candidates = [request.requester_id]
    elif isinstance(event, Assigned):
        candidates = [event.assignee.id, request.requester_id]
    elif isinstance(event, NewRequest):
        candidates = [manager.id for manager in event.managers if manager.is_manager]
    elif isinstance(event, NewMessage):
        candidates = [
            user_id
            for user_id in (request.requester_id, request.assigned_to)
            if user_id and user_id != event.author.id
        ]
    else:
        raise TypeError(f"unsupported event: {type(event).__name__}")

    seen: set[str] = set()
    ordered: list[str] = []
    for user_id in candidates:
        if user_id not in seen:
            seen.add(user_id)
            ordered.append(user_id)
    return ordered


def build_notifications(
    event: LifecycleEvent,
    *,
    now: datetime,
    catalog: MessageCatalog | None = None,
) -> list[Notification]:
    catalog = catalog or default_catalog()
    request = event.request
    base = {"analysis_name": request.analysis_name}
    notifications: list[Notification] = []

    def _make(user_id: str, kind: str, template: str, **values: object) -> Notification:
        title, content = catalog.render(template, **base, **values)
        return Notification(
            user_id=user_id,
            type=kind,
            title=title,
            content=content,
            request_id=request.id,
            created_at=now,
        )

    if isinstance(event, Assigned):
        # the assignee and the requester get different texts
        for user_id in recipients_for(event):
            template = "assignment_assignee" if user_id == event.assignee.id else "assignment_requester"
            notifications.append(_make(user_id, ASSIGNMENT, template))
        return notifications

    if isinstance(event, StatusChanged):
        kind, values = STATUS_CHANGE, {"status_label": catalog.status_label(event.to_status.value)}
    elif isinstance(event, ReportUploaded):
        kind, values = REPORT_UPLOADED, {}
    elif isinstance(event, NewRequest):
        kind, values = NEW_REQUEST, {"requester_name": event.requester.name}
    else:
        kind, values = NEW_MESSAGE, {"author_name": event.author.name, "preview": catalog.preview(event.content)}

    for user_id in recipients_for(event):
        notifications.append(_make(user_id, kind, kind, **values))
    return notifications
