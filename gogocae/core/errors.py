"""Error taxonomy shared by every layer.

Services raise these types and the HTTP layer maps them to status codes in a
single place (see ``gogocae.app``).
"""
from __future__ import annotations


class DeskError(Exception):
    """Base class for caller-facing failures."""

    kind = "error"
    status_code = 400
    retryable = False

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(DeskError):
    """Raised when input is missing or invalid; no write has happened."""

    kind = "validation_error"
    status_code = 422

    def __init__(self, message: str, details: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.details = details or {}


class InvalidTransition(DeskError):
    kind = "invalid_transition"
    status_code = 409

    def __init__(self, current: str | None, target: str, reason: str | None = None) -> None:
        msg = f"Cannot move request from '{current}' to '{target}'"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)
        self.current_status = current
        self.target_status = target


class AssignmentRequired(DeskError):
    kind = "assignment_required"
    status_code = 409

    def __init__(self, request_id: str, target: str) -> None:
        super().__init__(f"Request {request_id} needs an assignee before moving to '{target}'")
        self.request_id = request_id
        self.target_status = target


class NotFound(DeskError):
    kind = "not_found"
    status_code = 404

    def __init__(self, resource: str, resource_id: str | None = None) -> None:
        msg = resource
        if resource_id is not None:
            msg += f" id={resource_id}"
        super().__init__(f"{msg} not found")
        self.resource = resource
        self.resource_id = resource_id


class Conflict(DeskError):
    """Raised when a write would duplicate a unique value."""

    kind = "conflict"
    status_code = 409


class PermissionDenied(DeskError):
    kind = "permission_denied"
    status_code = 403


class SessionRequired(DeskError):
    kind = "session_required"
    status_code = 401

    def __init__(self, message: str = "Sign in again to continue") -> None:
        super().__init__(message)


class RemoteFailure(DeskError):
    """Raised when the datastore, blob store or auth backend call fails."""

    kind = "remote_failure"
    status_code = 502
    retryable = True

    def __init__(self, message: str, *, status: int | None = None, code: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.code = code
