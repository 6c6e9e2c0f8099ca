"""Error taxonomy for the composition pipeline.

Every pipeline error carries two messages:
  - user_message: short, safe to show to end users (str(err) returns it).
  - diagnostic: ffmpeg stderr tail, exit code, storage error text. Logged
    for operators, never meant for end users.

Recoverable per-response errors (FetchError, ConversionError during
normalization) are turned into skips by the orchestrator. Everything
else fails the run.
"""


class CompositionError(Exception):
    """Base class for all composition failures."""

    default_message = "Video composition failed"

    def __init__(self, user_message: str | None = None, diagnostic: str = ""):
        self.user_message = user_message or self.default_message
        self.diagnostic = diagnostic
        # Set by the orchestrator to the RunState the run failed in.
        self.state = None
        super().__init__(self.user_message)

    def __str__(self) -> str:
        return self.user_message


class FetchError(CompositionError):
    default_message = "Could not download the recorded answer"


class ConversionError(CompositionError):
    default_message = "Could not convert a video segment"


class ConcatenationError(CompositionError):
    default_message = "Could not join the video segments"


class PublishError(CompositionError):
    default_message = "Could not upload the finished video"


class NoProcessableInputError(CompositionError):
    default_message = "No processable responses"


class CompositionBusyError(CompositionError):
    default_message = "A video is already being generated for this testimonial"


class CompositionCancelled(CompositionError):
    default_message = "Video composition was cancelled"


# ── Collaborator errors ──────────────────────────────────────────


class StorageError(Exception):
    """Object storage failure (transport, permissions, bad key)."""


class ObjectNotFoundError(StorageError):
    """The requested object does not exist."""


class RecordStoreError(Exception):
    """Record persistence failure."""


class RecordNotFoundError(RecordStoreError):
    """The requested record does not exist."""
