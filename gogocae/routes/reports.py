from __future__ import annotations

from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, Query
from fastapi.responses import Response

from gogocae.application import get_services
from gogocae.domain import User
from gogocae.exporters.request_export import requests_csv_bytes, requests_xlsx_bytes

from .session import current_user

router = APIRouter(prefix="/reports", tags=["reports"])

_XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@router.get("/dashboard")
def get_dashboard(user: User = Depends(current_user)) -> dict:
    return get_services().reporting.dashboard(user)


@router.get("/statistics")
def get_statistics(user: User = Depends(current_user)) -> dict:
    return get_services().reporting.statistics(user)


@router.get("/calendar")
def get_calendar(
    year: int | None = Query(default=None, ge=2000, le=2100),
    month: int | None = Query(default=None, ge=1, le=12),
    user: User = Depends(current_user),
) -> dict:
    today = date.today()
    year = year or today.year
    month = month or today.month
    return {"year": year, "month": month, "items": get_services().reporting.calendar(user, year, month)}


@router.get("/export")
def export_requests(
    format: Literal["csv", "xlsx"] = Query(default="csv"),
    user: User = Depends(current_user),
) -> Response:
    frame = get_services().reporting.frame(user)
    if format == "xlsx":
        body, media_type = requests_xlsx_bytes(frame), _XLSX
    else:
        body, media_type = requests_csv_bytes(frame), "text/csv"
    return Response(
        content=body,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="analysis_requests.{format}"'},
    )
