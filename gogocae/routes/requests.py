from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, File, Form, Query, UploadFile

from gogocae.application import LifecycleResult, get_services
from gogocae.core.schema import AssignPayload, MessagePayload, NewRequestPayload, StatusChangePayload
from gogocae.domain import User

from .session import current_user, read_upload

router = APIRouter(prefix="/requests", tags=["requests"])


def _lifecycle_payload(result: LifecycleResult) -> dict:
    return {
        "request": result.request,
        "history": result.history,
        "notifications": result.notifications,
        "notification_error": result.notification_error,
    }


@router.get("")
def list_requests(
    status: str | None = Query(default=None),
    vehicle_model_id: str | None = Query(default=None),
    assigned_to: str | None = Query(default=None),
    requester_id: str | None = Query(default=None),
    user: User = Depends(current_user),
) -> dict:
    items = get_services().requests.list_requests(
        user,
        status=status,
        vehicle_model_id=vehicle_model_id,
        assigned_to=assigned_to,
        requester_id=requester_id,
    )
    return {"items": items}


@router.post("")
def create_request(
    analysis_name: str = Form(default=""),
    vehicle_model_id: str = Form(default=""),
    description: str | None = Form(default=None),
    parent_request_id: str | None = Form(default=None),
    files: list[UploadFile] | None = File(default=None),
    user: User = Depends(current_user),
) -> dict:
    """Register a request with its design files and notify the managers."""

    payload = NewRequestPayload(
        analysis_name=analysis_name,
        vehicle_model_id=vehicle_model_id,
        description=description,
        parent_request_id=parent_request_id,
    )
    uploads = []
    for upload in files or []:
        item = read_upload(upload)
        item.name = Path(item.name).name
        uploads.append(item)
    request, notification_error = get_services().requests.create_request(payload, uploads, user)
    return {"request": request, "notification_error": notification_error}


@router.get("/{request_id}")
def get_request(request_id: str, user: User = Depends(current_user)) -> dict:
    return {"request": get_services().requests.get_request(request_id, user)}


@router.post("/{request_id}/assign")
def assign_request(request_id: str, payload: AssignPayload, user: User = Depends(current_user)) -> dict:
    result = get_services().requests.assign(request_id, payload.manager_id, user)
    return _lifecycle_payload(result)


@router.post("/{request_id}/status")
def change_status(request_id: str, payload: StatusChangePayload, user: User = Depends(current_user)) -> dict:
    result = get_services().requests.transition(
        request_id, payload.status, user, report_file_url=payload.report_file_url
    )
    return _lifecycle_payload(result)


@router.post("/{request_id}/report")
def upload_report(request_id: str, file: UploadFile = File(...), user: User = Depends(current_user)) -> dict:
    report = read_upload(file)
    result = get_services().requests.upload_report(request_id, report, user)
    return _lifecycle_payload(result)


@router.get("/{request_id}/history")
def get_history(request_id: str, user: User = Depends(current_user)) -> dict:
    return {"items": get_services().requests.history(request_id, user)}


@router.get("/{request_id}/messages")
def list_messages(request_id: str, user: User = Depends(current_user)) -> dict:
    return {"items": get_services().chat.list_messages(request_id, user)}


@router.post("/{request_id}/messages")
def post_message(request_id: str, payload: MessagePayload, user: User = Depends(current_user)) -> dict:
    message, report = get_services().chat.post_message(request_id, payload.content, user, file_url=payload.file_url)
    return {"message": message, "notifications": report.delivered, "notification_error": report.error}
