"""Blob storage hooks.

Design files and reports live in an external bucket. Tests and local runs use
:class:`InMemoryBlobStore`; a Supabase deployment installs
:class:`gogocae.infrastructure.supabase.SupabaseStorage` instead.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from gogocae.core.errors import Conflict


class BlobStore(Protocol):
    """Contract for blob storage integrations."""

    def upload(self, path: str, data: bytes, content_type: str | None = None) -> str:
        """Store ``data`` under ``path`` and return its public URL."""


@dataclass(slots=True)
class StoredBlob:
    path: str
    data: bytes
    content_type: str | None = None


class InMemoryBlobStore:
    """Keeps uploaded objects in a dict keyed by path."""

    def __init__(self, base_url: str = "memory://design-files") -> None:
        self._base_url = base_url.rstrip("/")
        self._objects: dict[str, StoredBlob] = {}

    def upload(self, path: str, data: bytes, content_type: str | None = None) -> str:
        if path in self._objects:
            raise Conflict(f"Object '{path}' already exists")
        self._objects[path] = StoredBlob(path=path, data=bytes(data), content_type=content_type)
        return f"{self._base_url}/{path}"

    def get(self, path: str) -> StoredBlob | None:
        return self._objects.get(path)

    def paths(self) -> list[str]:
        return sorted(self._objects)

    def reset(self) -> None:
        self._objects.clear()
