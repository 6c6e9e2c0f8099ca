"""Upload the finished video and return its public URL.

Destination keys are deterministic per owner, so a re-run overwrites
the previous output instead of piling up copies. The local file leaves
the run workspace only after the upload succeeded; on failure it stays
registered and run cleanup removes it.
"""

import logging
from pathlib import Path

from .errors import PublishError, StorageError
from .storage import ObjectStorage
from .workspace import RunWorkspace

logger = logging.getLogger(__name__)

CONTENT_TYPE = "video/mp4"


def testimonial_key(prefix: str, testimonial_id: str) -> str:
    return f"{prefix.strip('/')}/testimonial_{testimonial_id}.mp4"


def response_key(prefix: str, response_id: str) -> str:
    return f"{prefix.strip('/')}/response_with_intro_{response_id}.mp4"


def publish(
    local_path: str | Path,
    destination_key: str,
    storage: ObjectStorage,
    workspace: RunWorkspace,
) -> str:
    """Upload `local_path` to `destination_key` (overwrite allowed).

    Returns:
        Public URL of the uploaded object.

    Raises:
        PublishError: Local read, upload or URL lookup failed.
    """
    local_path = Path(local_path)
    try:
        data = local_path.read_bytes()
        storage.upload(destination_key, data, content_type=CONTENT_TYPE, overwrite=True)
        url = storage.public_url(destination_key)
    except (OSError, StorageError) as exc:
        raise PublishError(diagnostic=f"{destination_key}: {exc}") from exc

    logger.info("published %s (%d bytes)", destination_key, len(data))
    workspace.release(local_path)
    return url
