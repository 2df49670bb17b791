from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field


class NewRequestPayload(BaseModel):
    analysis_name: str = ""
    vehicle_model_id: str = ""
    description: str | None = None
    parent_request_id: str | None = None


class StatusChangePayload(BaseModel):
    status: str
    report_file_url: str | None = None


class AssignPayload(BaseModel):
    manager_id: str


class MessagePayload(BaseModel):
    content: str = ""
    file_url: str | None = None


class VehiclePayload(BaseModel):
    name: str = ""


class UserPayload(BaseModel):
    name: str = Field(min_length=1)
    email: str = ""
    department: str = ""
    role: Literal["manager", "client"] = "client"
    id: str | None = None
