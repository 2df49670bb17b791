"""Domain entities for analysis-request tickets."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Mapping


class RequestStatus(str, Enum):
    PENDING_ASSIGNMENT = "pending_assignment"
    BEFORE_START = "before_start"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"

    @property
    def rank(self) -> int:
        return _STATUS_ORDER.index(self)


_STATUS_ORDER = [
    RequestStatus.PENDING_ASSIGNMENT,
    RequestStatus.BEFORE_START,
    RequestStatus.IN_PROGRESS,
    RequestStatus.COMPLETED,
]


class UserRole(str, Enum):
    MANAGER = "manager"
    CLIENT = "client"


def parse_datetime(value: Any) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def parse_date(value: Any) -> date | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _iso(value: date | datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


@dataclass(slots=True)
class User:
    id: str
    name: str
    role: UserRole
    email: str = ""
    department: str = ""

    @property
    def is_manager(self) -> bool:
        return self.role is UserRole.MANAGER

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "User":
        return cls(
            id=str(row["id"]),
            name=str(row.get("name") or ""),
            role=UserRole(row.get("role") or UserRole.CLIENT.value),
            email=str(row.get("email") or ""),
            department=str(row.get("department") or ""),
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "role": self.role.value,
            "email": self.email,
            "department": self.department,
        }


@dataclass(slots=True)
class DesignFile:
    name: str
    url: str
    size: int

    def to_row(self) -> dict[str, Any]:
        return {"name": self.name, "url": self.url, "size": self.size}


@dataclass(slots=True)
class AnalysisRequest:
    """Aggregate root of the lifecycle.

    ``status == PENDING_ASSIGNMENT`` holds exactly when ``assigned_to`` is None.
    """

    id: str
    requester_id: str
    vehicle_model_id: str
    analysis_name: str
    status: RequestStatus = RequestStatus.PENDING_ASSIGNMENT
    assigned_to: str | None = None
    description: str | None = None
    parent_request_id: str | None = None
    request_date: date | None = None
    assigned_date: datetime | None = None
    started_date: datetime | None = None
    completed_date: datetime | None = None
    design_files: list[DesignFile] = field(default_factory=list)
    report_file_url: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "AnalysisRequest":
        files = [
            DesignFile(name=str(item.get("name", "")), url=str(item.get("url", "")), size=int(item.get("size") or 0))
            for item in row.get("design_files") or []
        ]
        return cls(
            id=str(row["id"]),
            requester_id=str(row["requester_id"]),
            vehicle_model_id=str(row["vehicle_model_id"]),
            analysis_name=str(row.get("analysis_name") or ""),
            status=RequestStatus(row.get("status") or RequestStatus.PENDING_ASSIGNMENT.value),
            assigned_to=row.get("assigned_to"),
            description=row.get("description"),
            parent_request_id=row.get("parent_request_id"),
            request_date=parse_date(row.get("request_date")),
            assigned_date=parse_datetime(row.get("assigned_date")),
            started_date=parse_datetime(row.get("started_date")),
            completed_date=parse_datetime(row.get("completed_date")),
            design_files=files,
            report_file_url=row.get("report_file_url"),
            created_at=parse_datetime(row.get("created_at")),
            updated_at=parse_datetime(row.get("updated_at")),
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "requester_id": self.requester_id,
            "vehicle_model_id": self.vehicle_model_id,
            "analysis_name": self.analysis_name,
            "status": self.status.value,
            "assigned_to": self.assigned_to,
            "description": self.description,
            "parent_request_id": self.parent_request_id,
            "request_date": _iso(self.request_date),
            "assigned_date": _iso(self.assigned_date),
            "started_date": _iso(self.started_date),
            "completed_date": _iso(self.completed_date),
            "design_files": [item.to_row() for item in self.design_files],
            "report_file_url": self.report_file_url,
            "created_at": _iso(self.created_at),
            "updated_at": _iso(self.updated_at),
        }


@dataclass(slots=True, frozen=True)
class StatusHistoryEntry:
    request_id: str
    changed_by: str
    from_status: RequestStatus | None
    to_status: RequestStatus
    changed_at: datetime
    id: str | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "StatusHistoryEntry":
        from_status = row.get("from_status")
        return cls(
            id=str(row["id"]) if row.get("id") is not None else None,
            request_id=str(row["request_id"]),
            changed_by=str(row["changed_by"]),
            from_status=RequestStatus(from_status) if from_status else None,
            to_status=RequestStatus(row["to_status"]),
            changed_at=parse_datetime(row.get("changed_at")),  # type: ignore[arg-type]
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "request_id": self.request_id,
            "changed_by": self.changed_by,
            "from_status": self.from_status.value if self.from_status else None,
            "to_status": self.to_status.value,
            "changed_at": _iso(self.changed_at),
        }


@dataclass(slots=True)
class Notification:
    user_id: str
    type: str
    title: str
    content: str
    request_id: str | None = None
    is_read: bool = False
    created_at: datetime | None = None
    id: str | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Notification":
        return cls(
            id=str(row["id"]) if row.get("id") is not None else None,
            user_id=str(row["user_id"]),
            type=str(row.get("type") or ""),
            title=str(row.get("title") or ""),
            content=str(row.get("content") or ""),
            request_id=row.get("request_id"),
            is_read=bool(row.get("is_read", False)),
            created_at=parse_datetime(row.get("created_at")),
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "type": self.type,
            "title": self.title,
            "content": self.content,
            "request_id": self.request_id,
            "is_read": self.is_read,
            "created_at": _iso(self.created_at),
        }


@dataclass(slots=True)
class VehicleModel:
    id: str
    name: str
    created_at: datetime | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "VehicleModel":
        return cls(id=str(row["id"]), name=str(row["name"]), created_at=parse_datetime(row.get("created_at")))


@dataclass(slots=True)
class Message:
    request_id: str
    user_id: str
    content: str
    file_url: str | None = None
    created_at: datetime | None = None
    id: str | None = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Message":
        return cls(
            id=str(row["id"]) if row.get("id") is not None else None,
            request_id=str(row["request_id"]),
            user_id=str(row["user_id"]),
            content=str(row.get("content") or ""),
            file_url=row.get("file_url"),
            created_at=parse_datetime(row.get("created_at")),
        )
