"""Data model for a composition run.

A CompositionRequest is built on demand from the record store when a
merge is requested and is never persisted. Segments are transient files
owned by exactly one run; the manifest orders them for concatenation.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path


class RunState(Enum):
    COLLECTING = "collecting"
    NORMALIZING = "normalizing"
    CARD_GENERATION = "card_generation"
    SEQUENCING = "sequencing"
    PUBLISHING = "publishing"
    DONE = "done"
    FAILED = "failed"


class SegmentKind(Enum):
    INTRO_CARD = "intro_card"
    TITLE_CARD = "title_card"
    NORMALIZED_CLIP = "normalized_clip"


@dataclass(frozen=True)
class ResponseAsset:
    """One question's recorded answer plus the metadata needed to place it."""

    response_id: str
    question_id: str
    question_text: str
    clip_reference: str | None
    ordering_key: int
    created_at: datetime | None = None

    @property
    def sort_key(self) -> tuple:
        # Ties on ordering_key break by creation time; missing timestamps sort first.
        created = self.created_at.timestamp() if self.created_at else float("-inf")
        return (self.ordering_key, created, self.response_id)


@dataclass(frozen=True)
class CompositionRequest:
    testimonial_id: str
    respondent_name: str
    respondent_role: str
    assets: tuple[ResponseAsset, ...] = ()

    def ordered_assets(self) -> list[ResponseAsset]:
        return sorted(self.assets, key=lambda a: a.sort_key)


@dataclass(frozen=True)
class Segment:
    kind: SegmentKind
    path: Path
    response_id: str | None = None


@dataclass
class CompositionManifest:
    """Ordered segments: [intro?, (title, clip) per included response].

    The single-response variant has no intro segment.
    """

    segments: list[Segment] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.segments)

    def paths(self) -> list[Path]:
        return [s.path for s in self.segments]

    def kinds(self) -> list[SegmentKind]:
        return [s.kind for s in self.segments]

    def response_ids(self) -> list[str]:
        """Response ids of the included clips, in playback order."""
        return [
            s.response_id for s in self.segments
            if s.kind is SegmentKind.NORMALIZED_CLIP
        ]


@dataclass
class CompositionResult:
    url: str
    storage_key: str
    included: int
    skipped: int
    skipped_response_ids: list[str] = field(default_factory=list)
    manifest: CompositionManifest = field(default_factory=CompositionManifest)
    run_id: str = ""
    # False when the video was published but the record update failed.
    recorded: bool = True
