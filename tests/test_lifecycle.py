from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from gogocae.core.errors import (
    AssignmentRequired,
    InvalidTransition,
    PermissionDenied,
    SessionRequired,
    ValidationError,
)
from gogocae.domain import (
    FORWARD_TRANSITIONS,
    AnalysisRequest,
    NewMessage,
    NewRequest,
    RequestStatus,
    User,
    UserRole,
    apply_assignment,
    apply_transition,
    check_invariant,
)
from gogocae.domain.notifications import build_notifications, recipients_for

NOW = datetime(2025, 3, 3, 9, 0, tzinfo=timezone.utc)

REQUESTER = User(id="client-1", name="Kim Design", role=UserRole.CLIENT)
U1 = User(id="mgr-1", name="Park Analyst", role=UserRole.MANAGER)
U2 = User(id="mgr-2", name="Choi Analyst", role=UserRole.MANAGER)


def _request(status: RequestStatus = RequestStatus.PENDING_ASSIGNMENT, assigned_to: str | None = None, **extra) -> AnalysisRequest:
    return AnalysisRequest(
        id="req-1",
        requester_id=REQUESTER.id,
        vehicle_model_id="veh-1",
        analysis_name="Door sag",
        status=status,
        assigned_to=assigned_to,
        request_date=date(2025, 3, 1),
        **extra,
    )


def test_unknown_status_is_rejected():
    with pytest.raises(InvalidTransition):
        apply_transition(_request(RequestStatus.BEFORE_START, U1.id), "cancelled", U1, now=NOW)


def test_work_status_requires_assignee():
    request = _request()
    with pytest.raises(AssignmentRequired):
        apply_transition(request, "in_progress", U1, now=NOW)
    assert request.status is RequestStatus.PENDING_ASSIGNMENT
    assert request.started_date is None


def test_pending_to_pending_without_assignee_is_allowed():
    outcome = apply_transition(_request(), RequestStatus.PENDING_ASSIGNMENT, U1, now=NOW)
    assert outcome.history.from_status is RequestStatus.PENDING_ASSIGNMENT
    assert outcome.history.to_status is RequestStatus.PENDING_ASSIGNMENT


def test_started_date_is_set_once():
    outcome = apply_transition(_request(RequestStatus.BEFORE_START, U1.id), "in_progress", U1, now=NOW)
    assert outcome.request.started_date == NOW

    later = NOW + timedelta(hours=3)
    again = apply_transition(outcome.request, "in_progress", U1, now=later)
    assert again.request.started_date == NOW
    assert "started_date" not in again.changes


def test_completed_date_is_set_once():
    first = apply_transition(_request(RequestStatus.IN_PROGRESS, U1.id), "completed", U1, now=NOW)
    back = apply_transition(first.request, "in_progress", U1, now=NOW + timedelta(days=1))
    again = apply_transition(back.request, "completed", U1, now=NOW + timedelta(days=2))
    assert again.request.completed_date == NOW


def test_backward_moves_are_permitted_by_default():
    outcome = apply_transition(_request(RequestStatus.COMPLETED, U1.id), "before_start", U1, now=NOW)
    assert outcome.request.status is RequestStatus.BEFORE_START


def test_forward_table_rejects_backward_moves():
    with pytest.raises(InvalidTransition):
        apply_transition(
            _request(RequestStatus.COMPLETED, U1.id), "before_start", U1, now=NOW, table=FORWARD_TRANSITIONS
        )
    outcome = apply_transition(
        _request(RequestStatus.BEFORE_START, U1.id), "completed", U1, now=NOW, table=FORWARD_TRANSITIONS
    )
    assert outcome.request.status is RequestStatus.COMPLETED


def test_returning_to_pending_releases_assignee():
    request = _request(RequestStatus.BEFORE_START, U1.id, assigned_date=NOW)
    outcome = apply_transition(request, "pending_assignment", U1, now=NOW)
    assert outcome.request.assigned_to is None
    assert outcome.request.assigned_date is None
    assert check_invariant(outcome.request)


def test_report_only_on_completion():
    with pytest.raises(ValidationError):
        apply_transition(
            _request(RequestStatus.BEFORE_START, U1.id), "in_progress", U1, now=NOW, report_file_url="memory://r.pdf"
        )


def test_report_upload_notifies_requester_once():
    outcome = apply_transition(
        _request(RequestStatus.IN_PROGRESS, U1.id), "completed", U1, now=NOW, report_file_url="memory://r.pdf"
    )
    assert outcome.request.report_file_url == "memory://r.pdf"
    assert [(n.user_id, n.type) for n in outcome.notifications] == [(REQUESTER.id, "report_uploaded")]


def test_only_managers_change_status():
    with pytest.raises(PermissionDenied):
        apply_transition(_request(RequestStatus.BEFORE_START, U1.id), "in_progress", REQUESTER, now=NOW)
    with pytest.raises(SessionRequired):
        apply_transition(_request(RequestStatus.BEFORE_START, U1.id), "in_progress", None, now=NOW)


def test_status_change_notifies_requester():
    outcome = apply_transition(_request(RequestStatus.BEFORE_START, U1.id), "in_progress", U1, now=NOW)
    assert len(outcome.notifications) == 1
    notification = outcome.notifications[0]
    assert notification.user_id == REQUESTER.id
    assert notification.type == "status_change"
    assert "In progress" in notification.content
    assert notification.request_id == "req-1"


def test_assignment_on_pending_moves_to_before_start():
    outcome = apply_assignment(_request(), U1, U2, now=NOW)
    assert outcome.request.status is RequestStatus.BEFORE_START
    assert outcome.request.assigned_to == U1.id
    assert outcome.request.assigned_date == NOW
    assert outcome.history.from_status is RequestStatus.PENDING_ASSIGNMENT
    assert outcome.history.to_status is RequestStatus.BEFORE_START
    assert outcome.history.changed_by == U2.id
    assert [n.user_id for n in outcome.notifications] == [U1.id, REQUESTER.id]
    assert {n.type for n in outcome.notifications} == {"assignment"}
    assert outcome.notifications[0].title != outcome.notifications[1].title


def test_reassignment_keeps_status_and_refreshes_date():
    request = _request(RequestStatus.IN_PROGRESS, U1.id, assigned_date=NOW, started_date=NOW)
    later = NOW + timedelta(days=2)
    outcome = apply_assignment(request, U2, U1, now=later)
    assert outcome.request.status is RequestStatus.IN_PROGRESS
    assert outcome.request.assigned_to == U2.id
    assert outcome.request.assigned_date == later
    assert outcome.request.started_date == NOW


def test_assignee_must_be_a_manager():
    with pytest.raises(ValidationError):
        apply_assignment(_request(), REQUESTER, U1, now=NOW)


def test_new_request_goes_to_every_manager():
    event = NewRequest(request=_request(), requester=REQUESTER, managers=[U1, U2, REQUESTER])
    assert recipients_for(event) == [U1.id, U2.id]
    notifications = build_notifications(event, now=NOW)
    assert all(n.type == "new_request" for n in notifications)
    assert "Kim Design" in notifications[0].content


def test_new_message_skips_author_and_truncates_preview():
    request = _request(RequestStatus.IN_PROGRESS, U1.id)
    text = "x" * 80
    event = NewMessage(request=request, author=U1, content=text)
    assert recipients_for(event) == [REQUESTER.id]

    notifications = build_notifications(event, now=NOW)
    assert notifications[0].content.endswith("x" * 50 + "...")

    unassigned = NewMessage(request=_request(), author=REQUESTER, content="hello")
    assert recipients_for(unassigned) == []
