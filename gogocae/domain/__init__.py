"""Domain layer definitions."""

from .lifecycle import (
    FORWARD_TRANSITIONS,
    PERMISSIVE_TRANSITIONS,
    TransitionOutcome,
    apply_assignment,
    apply_transition,
    check_invariant,
    check_transition,
)
from .notifications import Assigned, NewMessage, NewRequest, ReportUploaded, StatusChanged
from .requests import (
    AnalysisRequest,
    DesignFile,
    Message,
    Notification,
    RequestStatus,
    StatusHistoryEntry,
    User,
    UserRole,
    VehicleModel,
)

__all__ = [
    "AnalysisRequest",
    "Assigned",
    "DesignFile",
    "FORWARD_TRANSITIONS",
    "Message",
    "NewMessage",
    "NewRequest",
    "Notification",
    "PERMISSIVE_TRANSITIONS",
    "ReportUploaded",
    "RequestStatus",
    "StatusChanged",
    "StatusHistoryEntry",
    "TransitionOutcome",
    "User",
    "UserRole",
    "VehicleModel",
    "apply_assignment",
    "apply_transition",
    "check_invariant",
    "check_transition",
]
