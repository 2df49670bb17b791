from __future__ import annotations

from io import BytesIO
from pathlib import Path

import pandas as pd


def _localise(frame: pd.DataFrame) -> pd.DataFrame:
    # Excel cannot store timezone-aware datetimes
    frame = frame.copy()
    for column in ("assigned_date", "started_date", "completed_date"):
        if column in frame:
            frame[column] = pd.to_datetime(frame[column], utc=True).dt.tz_localize(None)
    return frame


def export_requests_csv(path: Path, frame: pd.DataFrame) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(path, index=False)
    return path


def export_requests_xlsx(path: Path, frame: pd.DataFrame) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    _localise(frame).to_excel(path, index=False, sheet_name="requests", engine="openpyxl")
    return path


def requests_csv_bytes(frame: pd.DataFrame) -> bytes:
    return frame.to_csv(index=False).encode("utf-8-sig")


def requests_xlsx_bytes(frame: pd.DataFrame) -> bytes:
    buffer = BytesIO()
    _localise(frame).to_excel(buffer, index=False, sheet_name="requests", engine="openpyxl")
    return buffer.getvalue()
