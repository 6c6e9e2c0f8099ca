"""Sequencer — ordered manifest and the final concatenation.

The manifest is [intro, title_1, clip_1, title_2, clip_2, ...] (the
single-response variant has no intro). It is written as an ffmpeg
concat-demuxer list and joined in ONE re-encoding pass.

There is no stream-copy mode: segments come from independent ffmpeg
runs, and copied joins of their timestamps stutter or desync.
"""

import logging
from pathlib import Path

from . import ffmpeg
from .config import VideoSettings
from .errors import ConcatenationError
from .models import CompositionManifest, Segment, SegmentKind
from .normalize import audio_encode_args, video_encode_args
from .workspace import RunWorkspace

logger = logging.getLogger(__name__)


def build_manifest(
    intro: Segment | None,
    pairs: list[tuple[Segment, Segment]],
) -> CompositionManifest:
    """Lay out segments in playback order.

    Args:
        intro: Intro card segment, or None for the single-response variant.
        pairs: (title card, normalized clip) per included response, already
            in ordering-key order.

    Raises:
        ValueError: A pair is out of shape (title/clip swapped or owned by
            different responses).
    """
    segments = []
    if intro is not None:
        if intro.kind is not SegmentKind.INTRO_CARD:
            raise ValueError(f"Expected an intro card first, got {intro.kind.value}")
        segments.append(intro)
    for title, clip in pairs:
        if title.kind is not SegmentKind.TITLE_CARD or clip.kind is not SegmentKind.NORMALIZED_CLIP:
            raise ValueError(
                f"Expected (title_card, normalized_clip), got ({title.kind.value}, {clip.kind.value})"
            )
        if title.response_id != clip.response_id:
            raise ValueError(
                f"Title card for {title.response_id} paired with clip for {clip.response_id}"
            )
        segments.extend([title, clip])
    return CompositionManifest(segments)


def _quote_concat_path(path: Path) -> str:
    # concat demuxer quoting: close the quote, escaped quote, reopen.
    return "'" + str(path.resolve()).replace("'", "'\\''") + "'"


def write_concat_list(manifest: CompositionManifest, list_path: str | Path) -> Path:
    """Write the concat-demuxer list file for `manifest`."""
    list_path = Path(list_path)
    lines = [f"file {_quote_concat_path(p)}" for p in manifest.paths()]
    list_path.write_text("\n".join(lines) + "\n")
    return list_path


def build_concat_args(list_path: str | Path, video: VideoSettings) -> list[str]:
    return [
        "-f", "concat", "-safe", "0", "-i", str(list_path),
        "-map", "0:v:0", "-map", "0:a:0",
        *video_encode_args(video, preset=video.concat_preset),
        *audio_encode_args(video),
        "-movflags", "+faststart",
    ]


def concatenate(
    manifest: CompositionManifest,
    workspace: RunWorkspace,
    name: str,
    video: VideoSettings,
    timeout: float,
    context: ffmpeg.RunContext | None = None,
) -> Path:
    """Join the manifest's segments into one mp4 in the run workspace.

    Returns:
        Path to the joined video (still registered with the workspace).

    Raises:
        ConcatenationError: Empty manifest, list write failure, or ffmpeg
            failure.
    """
    if not len(manifest):
        raise ConcatenationError(diagnostic="empty manifest")

    list_path = workspace.path("concat.txt")
    try:
        write_concat_list(manifest, list_path)
    except OSError as exc:
        raise ConcatenationError(diagnostic=f"could not write concat list: {exc}") from exc

    output = workspace.path(f"{name}.mp4")
    logger.info("joining %d segments into %s", len(manifest), output.name)
    try:
        ffmpeg.run_ffmpeg(
            build_concat_args(list_path, video), output, timeout=timeout, context=context,
        )
    except ffmpeg.FFmpegError as exc:
        raise ConcatenationError(diagnostic=exc.diagnostic) from exc

    workspace.release(list_path)
    return output


def build(
    intro: Segment | None,
    pairs: list[tuple[Segment, Segment]],
    workspace: RunWorkspace,
    name: str,
    video: VideoSettings,
    timeout: float,
    context: ffmpeg.RunContext | None = None,
) -> tuple[CompositionManifest, Path]:
    """Build the manifest and join it. Returns (manifest, joined video path)."""
    manifest = build_manifest(intro, pairs)
    return manifest, concatenate(manifest, workspace, name, video, timeout, context)
