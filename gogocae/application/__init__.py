"""Application services."""

from .chat import ChatService
from .history import HistoryRecorder
from .notifications import DispatchReport, NotificationService
from .reporting import ReportingService
from .requests import LifecycleResult, RequestService
from .services import DeskServices, build_services, configure_services, get_services, reset_desk_state
from .users import UserService
from .vehicles import VehicleService

__all__ = [
    "ChatService",
    "DeskServices",
    "DispatchReport",
    "HistoryRecorder",
    "LifecycleResult",
    "NotificationService",
    "ReportingService",
    "RequestService",
    "UserService",
    "VehicleService",
    "build_services",
    "configure_services",
    "get_services",
    "reset_desk_state",
]
