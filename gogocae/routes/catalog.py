from __future__ import annotations

from fastapi import APIRouter, Depends, Query

from gogocae.application import get_services
from gogocae.core.schema import UserPayload, VehiclePayload
from gogocae.domain import User

from .session import current_user

router = APIRouter(tags=["catalog"])


@router.post("/users")
def register_user(payload: UserPayload) -> dict:
    """Store the profile of a user created by the auth provider."""

    return {"user": get_services().users.register(payload)}


@router.get("/users")
def list_users(role: str | None = Query(default=None), _: User = Depends(current_user)) -> dict:
    return {"items": get_services().users.list_users(role)}


@router.get("/users/me")
def get_profile(user: User = Depends(current_user)) -> dict:
    return {"user": user}


@router.get("/vehicles")
def list_vehicles() -> dict:
    return {"items": get_services().vehicles.list_vehicles()}


@router.post("/vehicles")
def add_vehicle(payload: VehiclePayload, user: User = Depends(current_user)) -> dict:
    return {"vehicle": get_services().vehicles.add(payload.name, user)}


@router.delete("/vehicles/{vehicle_id}")
def delete_vehicle(vehicle_id: str, user: User = Depends(current_user)) -> dict:
    get_services().vehicles.delete(vehicle_id, user)
    return {"deleted": vehicle_id}
