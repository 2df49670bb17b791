from __future__ import annotations

from fastapi import Header, UploadFile

from gogocae.application import get_services
from gogocae.core.uploads import UploadedFile
from gogocae.domain import User

# Routes and dependencies are plain functions: the services block on datastore
# calls, so FastAPI runs them in its threadpool.


def current_user(x_user_id: str | None = Header(default=None)) -> User:
    """Resolve the session user handed over by the auth proxy."""

    return get_services().users.resolve_session(x_user_id)


def read_upload(upload: UploadFile) -> UploadedFile:
    try:
        data = upload.file.read()
        return UploadedFile(name=upload.filename or "upload.bin", data=data, content_type=upload.content_type)
    finally:
        upload.file.close()
