from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from gogocae.application import get_services
from gogocae.domain import User

from .session import current_user

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
def list_notifications(
    unread_only: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=500),
    user: User = Depends(current_user),
) -> dict:
    service = get_services().notifications
    return {
        "items": service.list_for_user(user, unread_only=unread_only, limit=limit),
        "unread": service.unread_count(user),
    }


@router.post("/read-all")
def mark_all_read(user: User = Depends(current_user)) -> dict:
    return {"updated": get_services().notifications.mark_all_read(user)}


@router.post("/{notification_id}/read")
def mark_read(notification_id: str, user: User = Depends(current_user)) -> dict:
    return {"notification": get_services().notifications.mark_read(notification_id, user)}


@router.delete("")
def delete_all(user: User = Depends(current_user)) -> dict:
    return {"deleted": get_services().notifications.delete_all(user)}


@router.delete("/{notification_id}")
def delete_notification(notification_id: str, user: User = Depends(current_user)) -> dict:
    get_services().notifications.delete(notification_id, user)
    return {"deleted": 1}
