"""Local filesystem blob storage."""

from __future__ import annotations

import logging
from pathlib import Path, PurePosixPath
from urllib.parse import quote, unquote
from uuid import uuid4

from advance_tracker.services.errors import ExternalWriteError

logger = logging.getLogger(__name__)

FILES_PREFIX = "/files/"


class LocalBlobStorage:
    """Saves files under ``base_dir`` and serves them from ``<public_base_url>/files/``."""

    def __init__(self, base_dir: str | Path, public_base_url: str):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        self.public_base_url = public_base_url.rstrip("/")

    @staticmethod
    def make_key(filename: str) -> str:
        """Unique key keeping the original extension."""
        suffix = PurePosixPath(filename.replace("\\", "/")).suffix.lower()
        return f"{uuid4().hex}{suffix}"

    def path_for(self, key: str) -> Path:
        clean_key = PurePosixPath(key.replace("\\", "/")).name
        return self.base_dir / clean_key

    def url_for(self, key: str) -> str:
        return f"{self.public_base_url}{FILES_PREFIX}{quote(key)}"

    def key_from_url(self, url: str) -> str | None:
        prefix = f"{self.public_base_url}{FILES_PREFIX}"
        if not url.startswith(prefix):
            return None
        return unquote(url[len(prefix):]) or None

    def put(self, data: bytes, filename: str, content_type: str | None = None) -> str:
        key = self.make_key(filename)
        path = self.path_for(key)
        try:
            path.write_bytes(data)
        except OSError as e:
            raise ExternalWriteError("store_file", e) from e
        logger.info("Stored %s (%d bytes, %s) as %s", filename, len(data), content_type, key)
        return self.url_for(key)

    def delete(self, url: str) -> None:
        key = self.key_from_url(url)
        if key is None:
            logger.debug("Ignoring delete of foreign url %s", url)
            return
        try:
            self.path_for(key).unlink(missing_ok=True)
        except OSError as e:
            raise ExternalWriteError("delete_file", e) from e
