"""reelcompose — testimonial video composition.

Fetch each recorded answer, normalize it, put a question title card in
front of it, open with an intro card, join everything in question order
and publish the result. Transient files are cleaned up on every exit.
"""

from .errors import (
    CompositionBusyError,
    CompositionCancelled,
    CompositionError,
    ConcatenationError,
    ConversionError,
    FetchError,
    NoProcessableInputError,
    PublishError,
)
from .models import CompositionRequest, CompositionResult, ResponseAsset
from .pipeline import Compositor
from .sanitize import sanitize

__all__ = [
    "Compositor",
    "CompositionRequest",
    "CompositionResult",
    "ResponseAsset",
    "sanitize",
    "CompositionError",
    "FetchError",
    "ConversionError",
    "ConcatenationError",
    "PublishError",
    "NoProcessableInputError",
    "CompositionBusyError",
    "CompositionCancelled",
]
