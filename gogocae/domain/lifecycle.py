"""Request lifecycle: state machine and assignment rule.

Both operations are pure. They validate the request against the transition
table, compute the field changes and return them together with the pending
history entry and notifications. Committing those effects is the job of
``gogocae.application.requests.RequestService``.

Usage::

    outcome = apply_transition(request, "in_progress", acting_user, now=now)
    datastore.update("analysis_requests", request.id, outcome.changes)
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Any, Mapping

from gogocae.core.errors import (
    AssignmentRequired,
    InvalidTransition,
    PermissionDenied,
    SessionRequired,
    ValidationError,
)
from gogocae.core.messages import MessageCatalog

from .notifications import Assigned, LifecycleEvent, ReportUploaded, StatusChanged, build_notifications
from .requests import AnalysisRequest, Notification, RequestStatus, StatusHistoryEntry, User

TransitionTable = Mapping[RequestStatus, frozenset[RequestStatus]]

# Observed behaviour of the dashboard: every status is reachable from every status.
PERMISSIVE_TRANSITIONS: TransitionTable = {
    status: frozenset(RequestStatus) for status in RequestStatus
}

# Opt-in table: never move backwards; staying on the same status is allowed.
FORWARD_TRANSITIONS: TransitionTable = {
    status: frozenset(target for target in RequestStatus if target.rank >= status.rank)
    for status in RequestStatus
}


@dataclass(slots=True)
class TransitionOutcome:
    """Result of a validated lifecycle operation, not yet persisted."""

    request: AnalysisRequest
    changes: dict[str, Any]
    history: StatusHistoryEntry
    event: LifecycleEvent
    notifications: list[Notification] = field(default_factory=list)

    @property
    def from_status(self) -> RequestStatus:
        return self.history.from_status  # type: ignore[return-value]

    @property
    def to_status(self) -> RequestStatus:
        return self.history.to_status


def parse_status(value: RequestStatus | str, *, current: RequestStatus | None = None) -> RequestStatus:
    if isinstance(value, RequestStatus):
        return value
    try:
        return RequestStatus(str(value))
    except ValueError:
        current_value = current.value if current else None
        raise InvalidTransition(current_value, str(value), "unknown status") from None


def require_manager(acting_user: User | None, action: str) -> User:
    if acting_user is None:
        raise SessionRequired()
    if not acting_user.is_manager:
        raise PermissionDenied(f"Only managers can {action}")
    return acting_user


def check_transition(
    request: AnalysisRequest,
    target: RequestStatus | str,
    acting_user: User | None,
    *,
    with_report: bool = False,
    table: TransitionTable = PERMISSIVE_TRANSITIONS,
) -> tuple[User, RequestStatus]:
    """Validate a status change without computing its effects.

    Raises:
        SessionRequired: no acting user.
        PermissionDenied: the acting user is not a manager.
        InvalidTransition: the target is not a known status or the table forbids it.
        AssignmentRequired: a work status was requested while nobody is assigned.
        ValidationError: a report was attached to a non-completed target.
    """

    actor = require_manager(acting_user, "change request status")
    target_status = parse_status(target, current=request.status)

    if target_status not in table.get(request.status, frozenset()):
        raise InvalidTransition(request.status.value, target_status.value, "not allowed by the transition table")
    if target_status is not RequestStatus.PENDING_ASSIGNMENT and request.assigned_to is None:
        raise AssignmentRequired(request.id, target_status.value)
    if with_report and target_status is not RequestStatus.COMPLETED:
        raise ValidationError("A report can only be attached when completing a request")
    return actor, target_status


def apply_transition(
    request: AnalysisRequest,
    target: RequestStatus | str,
    acting_user: User | None,
    *,
    now: datetime,
    report_file_url: str | None = None,
    table: TransitionTable = PERMISSIVE_TRANSITIONS,
    catalog: MessageCatalog | None = None,
) -> TransitionOutcome:
    """Validate and compute a status transition (see :func:`check_transition`)."""

    actor, target_status = check_transition(
        request, target, acting_user, with_report=bool(report_file_url), table=table
    )

    changes: dict[str, Any] = {"status": target_status}
    if target_status is RequestStatus.IN_PROGRESS and request.started_date is None:
        changes["started_date"] = now
    elif target_status is RequestStatus.COMPLETED and request.completed_date is None:
        changes["completed_date"] = now
    elif target_status is RequestStatus.PENDING_ASSIGNMENT and request.assigned_to is not None:
        # back in the unassigned pool
        changes["assigned_to"] = None
        changes["assigned_date"] = None
    if report_file_url:
        changes["report_file_url"] = report_file_url

    updated = replace(request, updated_at=now, **changes)
    history = StatusHistoryEntry(
        request_id=request.id,
        changed_by=actor.id,
        from_status=request.status,
        to_status=target_status,
        changed_at=now,
    )
    event: LifecycleEvent
    if report_file_url:
        event = ReportUploaded(request=updated)
    else:
        event = StatusChanged(request=updated, to_status=target_status)
    return TransitionOutcome(
        request=updated,
        changes=changes,
        history=history,
        event=event,
        notifications=build_notifications(event, now=now, catalog=catalog),
    )


def apply_assignment(
    request: AnalysisRequest,
    manager: User,
    acting_user: User | None,
    *,
    now: datetime,
    catalog: MessageCatalog | None = None,
) -> TransitionOutcome:
    """Attach ``manager`` to ``request``.

    A pending request moves to ``before_start`` in the same operation.
    ``assigned_date`` is refreshed on every call.
    """

    actor = require_manager(acting_user, "assign requests")
    if not manager.is_manager:
        raise ValidationError(f"User {manager.id} is not a manager and cannot be assigned")

    changes: dict[str, Any] = {"assigned_to": manager.id, "assigned_date": now}
    target_status = request.status
    if request.status is RequestStatus.PENDING_ASSIGNMENT:
        target_status = RequestStatus.BEFORE_START
        changes["status"] = target_status

    updated = replace(request, updated_at=now, **changes)
    history = StatusHistoryEntry(
        request_id=request.id,
        changed_by=actor.id,
        from_status=request.status,
        to_status=target_status,
        changed_at=now,
    )
    event = Assigned(request=updated, assignee=manager)
    return TransitionOutcome(
        request=updated,
        changes=changes,
        history=history,
        event=event,
        notifications=build_notifications(event, now=now, catalog=catalog),
    )


def check_invariant(request: AnalysisRequest) -> bool:
    """Return True when status and assignee agree."""

    return (request.status is RequestStatus.PENDING_ASSIGNMENT) == (request.assigned_to is None)
