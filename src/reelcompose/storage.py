"""Object storage collaborator.

The pipeline only needs three operations, captured by ObjectStorage.
LocalObjectStorage keeps objects as files under a root directory and
hands out URLs below a configurable public base URL, mirroring the
layout of a hosted bucket (`<base>/<key>`).
"""

import os
import tempfile
from pathlib import Path
from typing import Protocol
from urllib.parse import quote

from .errors import ObjectNotFoundError, StorageError


class ObjectStorage(Protocol):
    def download(self, key: str) -> bytes:
        """Return the object's bytes. Raises ObjectNotFoundError / StorageError."""

    def upload(
        self, key: str, data: bytes, content_type: str, overwrite: bool = True,
    ) -> None:
        """Store bytes under key. Raises StorageError."""

    def public_url(self, key: str) -> str:
        """Public URL for key."""


def normalize_key(key: str) -> str:
    """Strip leading slashes and reject empty or parent-relative keys."""
    cleaned = str(key).strip().lstrip("/")
    if not cleaned:
        raise StorageError("Storage key is required")
    if any(part in ("", ".", "..") for part in cleaned.split("/")):
        raise StorageError(f"Invalid storage key: {key!r}")
    return cleaned


class LocalObjectStorage:
    """Directory-backed object storage."""

    def __init__(self, root: str | Path, public_base_url: str):
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")

    def _object_path(self, key: str) -> Path:
        return self.root / normalize_key(key)

    def download(self, key: str) -> bytes:
        path = self._object_path(key)
        if not path.is_file():
            raise ObjectNotFoundError(f"Object not found: {key}")
        try:
            return path.read_bytes()
        except OSError as exc:
            raise StorageError(f"Could not read {key}: {exc}") from exc

    def upload(
        self, key: str, data: bytes, content_type: str, overwrite: bool = True,
    ) -> None:
        # content_type is part of the interface; the filesystem has nowhere to keep it.
        path = self._object_path(key)
        if path.exists() and not overwrite:
            raise StorageError(f"Object already exists: {key}")
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            # Write then rename so readers never see a half-written object.
            fd, tmp = tempfile.mkstemp(dir=path.parent, prefix=".upload-")
            with os.fdopen(fd, "wb") as f:
                f.write(data)
            os.replace(tmp, path)
        except OSError as exc:
            raise StorageError(f"Could not write {key}: {exc}") from exc

    def public_url(self, key: str) -> str:
        return f"{self.public_base_url}/{quote(normalize_key(key))}"

    def exists(self, key: str) -> bool:
        return self._object_path(key).is_file()

    def delete(self, key: str) -> None:
        self._object_path(key).unlink(missing_ok=True)
