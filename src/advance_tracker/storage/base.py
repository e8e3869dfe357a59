"""Blob storage interface for receipts and avatars."""

from __future__ import annotations

from typing import Protocol, runtime_checkable


@runtime_checkable
class BlobStorage(Protocol):
    """Stores uploaded files and hands back an opaque public URL."""

    def put(self, data: bytes, filename: str, content_type: str | None = None) -> str:
        """Store ``data`` and return its public URL."""
        ...

    def delete(self, url: str) -> None:
        """Remove a previously stored file. Unknown URLs are ignored."""
        ...
