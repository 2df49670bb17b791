"""Dashboard, calendar and statistics views over the request list."""
from __future__ import annotations

from calendar import monthrange
from datetime import date

import pandas as pd

from gogocae.domain import AnalysisRequest, RequestStatus, User

from .requests import RequestService
from .users import UserService
from .vehicles import VehicleService

REPORT_COLUMNS = [
    "id",
    "analysis_name",
    "vehicle",
    "requester",
    "assignee",
    "status",
    "request_date",
    "assigned_date",
    "started_date",
    "completed_date",
    "design_files",
    "report_file_url",
]


class ReportingService:
    RECENT_LIMIT = 5

    def __init__(self, requests: RequestService, vehicles: VehicleService, users: UserService) -> None:
        self._requests = requests
        self._vehicles = vehicles
        self._users = users

    def dashboard(self, user: User) -> dict[str, object]:
        """Counts and most recent requests visible to ``user``."""

        requests = self._requests.list_requests(user)
        by_status = {status: 0 for status in RequestStatus}
        for request in requests:
            by_status[request.status] += 1
        return {
            "total": len(requests),
            "pending": by_status[RequestStatus.PENDING_ASSIGNMENT],
            "in_progress": by_status[RequestStatus.BEFORE_START] + by_status[RequestStatus.IN_PROGRESS],
            "completed": by_status[RequestStatus.COMPLETED],
            "recent": requests[: self.RECENT_LIMIT],
        }

    def calendar(self, user: User, year: int, month: int) -> list[dict[str, object]]:
        """Request and completion dates falling inside ``year``/``month``."""

        first = date(year, month, 1)
        last = date(year, month, monthrange(year, month)[1])
        events: list[dict[str, object]] = []
        for request in self._requests.list_requests(user):
            if request.request_date and first <= request.request_date <= last:
                events.append(self._event(request, "requested", request.request_date))
            if request.completed_date and first <= request.completed_date.date() <= last:
                events.append(self._event(request, "completed", request.completed_date.date()))
        events.sort(key=lambda item: (item["date"], item["title"]))
        return events

    @staticmethod
    def _event(request: AnalysisRequest, kind: str, day: date) -> dict[str, object]:
        return {
            "request_id": request.id,
            "title": request.analysis_name,
            "kind": kind,
            "date": day.isoformat(),
            "status": request.status.value,
        }

    def frame(self, user: User) -> pd.DataFrame:
        vehicles = {vehicle.id: vehicle.name for vehicle in self._vehicles.list_vehicles()}
        people = {person.id: person.name for person in self._users.list_users()}
        records = []
        for request in self._requests.list_requests(user):
            records.append(
                {
                    "id": request.id,
                    "analysis_name": request.analysis_name,
                    "vehicle": vehicles.get(request.vehicle_model_id, request.vehicle_model_id),
                    "requester": people.get(request.requester_id, request.requester_id),
                    "assignee": people.get(request.assigned_to, request.assigned_to) if request.assigned_to else None,
                    "status": request.status.value,
                    "request_date": request.request_date,
                    "assigned_date": request.assigned_date,
                    "started_date": request.started_date,
                    "completed_date": request.completed_date,
                    "design_files": len(request.design_files),
                    "report_file_url": request.report_file_url,
                }
            )
        return pd.DataFrame(records, columns=REPORT_COLUMNS)

    def statistics(self, user: User) -> dict[str, object]:
        frame = self.frame(user)
        by_status = {status.value: 0 for status in RequestStatus}
        by_status.update({str(key): int(value) for key, value in frame["status"].value_counts().items()})
        by_vehicle = {str(key): int(value) for key, value in frame["vehicle"].value_counts().sort_index().items()}

        turnaround: float | None = None
        done = frame.dropna(subset=["completed_date", "request_date"])
        if not done.empty:
            completed = pd.to_datetime(done["completed_date"], utc=True).dt.tz_localize(None).dt.normalize()
            requested = pd.to_datetime(done["request_date"])
            turnaround = round(float((completed - requested).dt.days.mean()), 2)

        return {
            "total": int(len(frame)),
            "by_status": by_status,
            "by_vehicle": by_vehicle,
            "mean_turnaround_days": turnaround,
        }
