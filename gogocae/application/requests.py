"""Application service for analysis requests.

Commits the effects computed by :mod:`gogocae.domain.lifecycle` in a fixed
order: request update, history entry, notifications. The backend offers no
multi-statement transaction, so the semantics are best effort:

* a failed request update raises and nothing else is written;
* a failed history insert raises after the request update is committed;
* a failed notification insert or recipient lookup is logged and reported on
  the result only.

There is no version token. Two callers acting on the same stale request both
succeed; the last update wins and both append history and notifications.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Callable, Mapping, Sequence

from gogocae.core.errors import DeskError, InvalidTransition, NotFound, RemoteFailure, SessionRequired, ValidationError
from gogocae.core.schema import NewRequestPayload
from gogocae.core.uploads import UploadedFile, design_file_path, report_file_path
from gogocae.domain import (
    PERMISSIVE_TRANSITIONS,
    AnalysisRequest,
    DesignFile,
    Notification,
    RequestStatus,
    StatusHistoryEntry,
    TransitionOutcome,
    User,
    apply_assignment,
    apply_transition,
    check_invariant,
)
from gogocae.domain.lifecycle import TransitionTable, check_transition
from gogocae.domain.notifications import NewRequest
from gogocae.infrastructure.changefeed import ChangeFeed, Subscription
from gogocae.infrastructure.datastore import ANALYSIS_REQUESTS, VEHICLE_MODELS, Datastore
from gogocae.infrastructure.storage import BlobStore

from .history import HistoryRecorder
from .notifications import NotificationService
from .users import UserService

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

UNASSIGNED = "unassigned"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _to_wire(fields: Mapping[str, Any]) -> dict[str, Any]:
    wire: dict[str, Any] = {}
    for key, value in fields.items():
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, (datetime, date)):
            value = value.isoformat()
        wire[key] = value
    return wire


@dataclass(slots=True)
class LifecycleResult:
    """Committed outcome of a lifecycle operation."""

    request: AnalysisRequest
    history: StatusHistoryEntry
    notifications: list[Notification] = field(default_factory=list)
    notification_error: str | None = None


class RequestService:
    """Coordinates request intake, assignment and status changes."""

    def __init__(
        self,
        datastore: Datastore,
        blob_store: BlobStore,
        *,
        users: UserService,
        history: HistoryRecorder,
        notifications: NotificationService,
        change_feed: ChangeFeed | None = None,
        clock: Clock = utc_now,
        transitions: TransitionTable = PERMISSIVE_TRANSITIONS,
    ) -> None:
        self._datastore = datastore
        self._blobs = blob_store
        self._users = users
        self._history = history
        self._notifications = notifications
        self._change_feed = change_feed
        self._clock = clock
        self._transitions = transitions

    # ------------------------------------------------------------------
    # intake
    # ------------------------------------------------------------------
    def create_request(
        self,
        payload: NewRequestPayload,
        files: Sequence[UploadedFile],
        acting_user: User | None,
    ) -> tuple[AnalysisRequest, str | None]:
        """Register a new request and notify every manager.

        Returns the stored request and the notification error, if any.
        Validation happens before any write. A failed upload after the insert
        leaves the request without design files.
        """

        if acting_user is None:
            raise SessionRequired()

        analysis_name = payload.analysis_name.strip()
        errors: dict[str, str] = {}
        if not analysis_name:
            errors["analysis_name"] = "Analysis name is required"
        if not payload.vehicle_model_id:
            errors["vehicle_model_id"] = "Select a vehicle model"
        if not files:
            errors["design_files"] = "Attach at least one design file"
        if errors:
            raise ValidationError(next(iter(errors.values())), details=errors)

        try:
            self._datastore.get(VEHICLE_MODELS, payload.vehicle_model_id)
        except NotFound:
            raise ValidationError(
                "Unknown vehicle model", details={"vehicle_model_id": payload.vehicle_model_id}
            ) from None

        now = self._clock()
        row = self._datastore.insert(
            ANALYSIS_REQUESTS,
            {
                "requester_id": acting_user.id,
                "vehicle_model_id": payload.vehicle_model_id,
                "analysis_name": analysis_name,
                "description": (payload.description or "").strip() or None,
                "parent_request_id": payload.parent_request_id,
                "status": RequestStatus.PENDING_ASSIGNMENT.value,
                "assigned_to": None,
                "request_date": now.date().isoformat(),
                "design_files": [],
            },
        )
        request_id = str(row["id"])
        logger.info("request %s created by %s", request_id, acting_user.id)

        try:
            uploaded = [
                DesignFile(
                    name=item.name,
                    url=self._blobs.upload(design_file_path(request_id, item.name, now), item.data, item.content_type),
                    size=item.size,
                )
                for item in files
            ]
            row = self._datastore.update(
                ANALYSIS_REQUESTS, request_id, {"design_files": [item.to_row() for item in uploaded]}
            )
        except DeskError:
            logger.warning("request %s left without design files after a failed upload", request_id)
            raise

        request = AnalysisRequest.from_row(row)
        self._history.record(
            request_id, acting_user.id, None, RequestStatus.PENDING_ASSIGNMENT, changed_at=now
        )
        try:
            managers = self._users.managers()
        except RemoteFailure as exc:
            # the request is stored; a failed recipient lookup only skips the notices
            logger.warning("manager lookup failed for new request %s", request_id, exc_info=True)
            return request, exc.message
        report = self._notifications.dispatch_event(
            NewRequest(request=request, requester=acting_user, managers=managers),
            now=now,
        )
        return request, report.error

    # ------------------------------------------------------------------
    # queries
    # ------------------------------------------------------------------
    def get_request(self, request_id: str, acting_user: User | None = None) -> AnalysisRequest:
        try:
            request = AnalysisRequest.from_row(self._datastore.get(ANALYSIS_REQUESTS, request_id))
        except NotFound:
            raise NotFound("Request", request_id) from None
        if acting_user is not None and not acting_user.is_manager and request.requester_id != acting_user.id:
            # clients only see their own tickets
            raise NotFound("Request", request_id)
        return request

    def list_requests(
        self,
        acting_user: User,
        *,
        status: RequestStatus | str | None = None,
        vehicle_model_id: str | None = None,
        assigned_to: str | None = None,
        requester_id: str | None = None,
    ) -> list[AnalysisRequest]:
        filters: dict[str, Any] = {}
        if status:
            try:
                filters["status"] = RequestStatus(status).value
            except ValueError:
                raise ValidationError(f"Unknown status '{status}'") from None
        if vehicle_model_id:
            filters["vehicle_model_id"] = vehicle_model_id
        if assigned_to:
            filters["assigned_to"] = None if assigned_to == UNASSIGNED else assigned_to
        if requester_id:
            filters["requester_id"] = requester_id
        if not acting_user.is_manager:
            filters["requester_id"] = acting_user.id
        rows = self._datastore.query(ANALYSIS_REQUESTS, filters, order_by="created_at", descending=True)
        return [AnalysisRequest.from_row(row) for row in rows]

    def history(self, request_id: str, acting_user: User | None = None) -> list[StatusHistoryEntry]:
        self.get_request(request_id, acting_user)
        return self._history.list_for_request(request_id)

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    def assign(self, request_id: str, manager_id: str, acting_user: User | None) -> LifecycleResult:
        request = self.get_request(request_id)
        manager = self._users.get(manager_id)
        outcome = apply_assignment(request, manager, acting_user, now=self._clock())
        return self._commit(outcome)

    def transition(
        self,
        request_id: str,
        target: RequestStatus | str,
        acting_user: User | None,
        *,
        report_file_url: str | None = None,
    ) -> LifecycleResult:
        request = self.get_request(request_id)
        outcome = apply_transition(
            request,
            target,
            acting_user,
            now=self._clock(),
            report_file_url=report_file_url,
            table=self._transitions,
        )
        return self._commit(outcome)

    def upload_report(self, request_id: str, report: UploadedFile, acting_user: User | None) -> LifecycleResult:
        """Store the report file and complete the request with its URL."""

        if not report.data:
            raise ValidationError("The report file is empty", details={"report": report.name})
        request = self.get_request(request_id)
        check_transition(request, RequestStatus.COMPLETED, acting_user, with_report=True, table=self._transitions)
        path = report_file_path(request_id, report.name, self._clock())
        url = self._blobs.upload(path, report.data, report.content_type)
        return self.transition(request_id, RequestStatus.COMPLETED, acting_user, report_file_url=url)

    def _commit(self, outcome: TransitionOutcome) -> LifecycleResult:
        if not check_invariant(outcome.request):
            raise InvalidTransition(
                outcome.from_status.value, outcome.to_status.value, "status and assignee disagree"
            )
        fields = _to_wire({**outcome.changes, "updated_at": outcome.request.updated_at})
        row = self._datastore.update(ANALYSIS_REQUESTS, outcome.request.id, fields)
        entry = self._history.record_entry(outcome.history)
        logger.info(
            "request %s: %s -> %s by %s",
            outcome.request.id,
            outcome.from_status.value,
            outcome.to_status.value,
            outcome.history.changed_by,
        )
        report = self._notifications.dispatch(outcome.notifications)
        return LifecycleResult(
            request=AnalysisRequest.from_row(row),
            history=entry,
            notifications=report.delivered,
            notification_error=report.error,
        )

    # ------------------------------------------------------------------
    # change watching
    # ------------------------------------------------------------------
    def watch_request(self, request_id: str, on_change: Callable[[AnalysisRequest], None]) -> Subscription:
        """Re-fetch the request and hand it to ``on_change`` after every stored change."""

        if self._change_feed is None:
            raise RuntimeError("no change feed configured")
        return self._change_feed.subscribe(
            ANALYSIS_REQUESTS,
            lambda _event: on_change(self.get_request(request_id)),
            filters={"id": request_id},
            kinds={"update"},
        )
