from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime
from pathlib import PurePosixPath


@dataclass(slots=True)
class UploadedFile:
    """A file received from the caller, held in memory until stored."""

    name: str
    data: bytes
    content_type: str | None = None

    @property
    def size(self) -> int:
        return len(self.data)


def _extension(filename: str) -> str:
    suffix = PurePosixPath(filename).suffix
    return suffix.lstrip(".") or "bin"


def _epoch_ms(now: datetime) -> int:
    return int(now.timestamp() * 1000)


def design_file_path(request_id: str, filename: str, now: datetime) -> str:
    """Return a unique bucket path for a design file of ``request_id``."""

    suffix = secrets.token_hex(3)
    return f"{request_id}/{_epoch_ms(now)}-{suffix}.{_extension(filename)}"


def report_file_path(request_id: str, filename: str, now: datetime) -> str:
    suffix = secrets.token_hex(3)
    return f"reports/{request_id}/{_epoch_ms(now)}-{suffix}.{_extension(filename)}"
