"""Resolve a stored clip reference and download it into the run workspace.

Responses store the public URL of their recording, e.g.
  https://<host>/storage/v1/object/public/videos/<key>
The storage key is the URL path with the public prefix stripped and
percent-decoding undone. A bare key (no scheme) is used as is.

Every failure collapses to FetchError. There are no retries here; the
orchestrator decides what a failed fetch means.
"""

import logging
import posixpath
from pathlib import Path, PurePosixPath
from urllib.parse import unquote, urlparse

from .errors import FetchError, StorageError
from .storage import ObjectStorage
from .workspace import RunWorkspace

logger = logging.getLogger(__name__)

DEFAULT_PUBLIC_PREFIX = "/storage/v1/object/public/videos/"

_DEFAULT_SUFFIX = ".webm"


def storage_key_from_reference(
    reference: str | None, public_prefix: str = DEFAULT_PUBLIC_PREFIX,
) -> str:
    """Resolve a stored clip reference (public URL or key) to a storage key.

    Raises:
        FetchError: Empty reference, URL outside the public prefix, or a
            key that escapes the bucket.
    """
    if reference is None or not str(reference).strip():
        raise FetchError(diagnostic="empty clip reference")
    reference = str(reference).strip()

    parsed = urlparse(reference)
    if parsed.scheme in ("http", "https"):
        path = parsed.path
        prefix = "/" + public_prefix.strip("/") + "/"
        if not path.startswith(prefix):
            raise FetchError(diagnostic=f"URL is outside {prefix}: {reference}")
        key = unquote(path[len(prefix):])
    elif parsed.scheme:
        raise FetchError(diagnostic=f"unsupported reference scheme '{parsed.scheme}'")
    else:
        key = unquote(reference)

    key = key.lstrip("/")
    parts = key.split("/")
    if not key or any(part in ("", ".", "..") for part in parts):
        raise FetchError(diagnostic=f"unparsable storage key: {key!r}")
    return key


def fetch(
    reference: str | None,
    storage: ObjectStorage,
    workspace: RunWorkspace,
    name: str,
    public_prefix: str = DEFAULT_PUBLIC_PREFIX,
) -> Path:
    """Download a clip into the run workspace.

    Args:
        reference: Public URL or storage key of the raw clip.
        storage: Object storage collaborator.
        workspace: Run workspace; the local file is registered there.
        name: Run-unique stem for the local file (e.g. "raw_<response id>").
        public_prefix: URL path prefix in front of storage keys.

    Returns:
        Path to the downloaded file, keeping the source extension.

    Raises:
        FetchError: Unparsable reference, missing object, transport or
            local write failure.
    """
    key = storage_key_from_reference(reference, public_prefix)
    suffix = PurePosixPath(posixpath.basename(key)).suffix
    if not suffix[1:].isalnum():
        suffix = _DEFAULT_SUFFIX

    try:
        data = storage.download(key)
    except (StorageError, OSError) as exc:
        raise FetchError(diagnostic=f"{key}: {exc}") from exc
    if not data:
        raise FetchError(diagnostic=f"{key}: object is empty")

    local = workspace.path(f"{name}{suffix}")
    try:
        local.write_bytes(data)
    except OSError as exc:
        raise FetchError(diagnostic=f"could not write {local.name}: {exc}") from exc

    logger.debug("fetched %s -> %s (%d bytes)", key, local.name, len(data))
    return local
