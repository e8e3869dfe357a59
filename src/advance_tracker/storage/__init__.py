"""Blob storage for uploaded files."""

from functools import lru_cache

from advance_tracker.config import get_settings
from advance_tracker.storage.base import BlobStorage
from advance_tracker.storage.local import LocalBlobStorage


@lru_cache(maxsize=1)
def get_storage() -> BlobStorage:
    """Storage backend configured from settings."""
    settings = get_settings()
    return LocalBlobStorage(settings.storage_dir, settings.public_base_url)


__all__ = ["BlobStorage", "LocalBlobStorage", "get_storage"]
