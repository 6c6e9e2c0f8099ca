"""Segment normalizer — raw recording to the canonical segment format.

Every segment that goes into the concat list must share one format, or
the joined video drifts out of sync. Normalized clips are:
  - H.264 / yuv420p / SAR 1 at the configured frame size and fps,
  - AAC audio at the configured sample rate and channel layout.

Aspect ratio is preserved: the larger dimension is fitted to the frame
and the remainder padded with centered bars (letterbox or pillarbox).
Nothing is ever cropped. Recordings without audio get a silent track
so that their segments still line up with the cards' audio streams.
"""

import logging
from pathlib import Path

from . import ffmpeg
from .config import VideoSettings
from .errors import ConversionError
from .workspace import RunWorkspace

logger = logging.getLogger(__name__)


def scale_pad_filter(width: int, height: int, fps: int) -> str:
    """Filter chain that fits a clip inside width x height without cropping.

    `a` is the input aspect ratio. Wider than the frame -> fit width,
    otherwise fit height; -2 keeps the other side even for yuv420p.
    """
    ratio = f"{width}/{height}"
    return (
        f"scale=w='if(gt(a,{ratio}),{width},-2)':h='if(gt(a,{ratio}),-2,{height})',"
        f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2:color=black,"
        f"setsar=1,fps={fps},format=yuv420p"
    )


def audio_encode_args(video: VideoSettings) -> list[str]:
    """AAC settings shared by clips, cards and the final join."""
    return [
        "-c:a", video.audio_codec,
        "-b:a", video.audio_bitrate,
        "-ar", str(video.sample_rate),
        "-ac", str(video.channels),
    ]


def video_encode_args(video: VideoSettings, preset: str | None = None) -> list[str]:
    return [
        "-c:v", video.video_codec,
        "-preset", preset or video.preset,
        "-crf", str(video.crf),
        "-pix_fmt", "yuv420p",
        "-r", str(video.fps),
    ]


def silent_audio_source(video: VideoSettings) -> str:
    return f"anullsrc=channel_layout={video.channel_layout}:sample_rate={video.sample_rate}"


def build_normalize_args(
    raw_path: str | Path, video: VideoSettings, has_audio: bool,
) -> list[str]:
    """ffmpeg arguments (without binary and output) for one clip."""
    args = ["-i", str(raw_path)]
    if has_audio:
        maps = ["-map", "0:v:0", "-map", "0:a:0"]
    else:
        args += ["-f", "lavfi", "-i", silent_audio_source(video)]
        maps = ["-map", "0:v:0", "-map", "1:a:0", "-shortest"]

    return [
        *args,
        *maps,
        "-vf", scale_pad_filter(video.width, video.height, video.fps),
        *video_encode_args(video),
        *audio_encode_args(video),
        "-movflags", "+faststart",
    ]


def normalize(
    raw_path: str | Path,
    workspace: RunWorkspace,
    name: str,
    video: VideoSettings,
    timeout: float,
    context: ffmpeg.RunContext | None = None,
) -> Path:
    """Transcode one raw recording into a canonical mp4 segment.

    On success the raw file is deleted (the normalized file supersedes
    it). On failure the raw file is left registered for run cleanup.

    Args:
        raw_path: Downloaded recording, registered in `workspace`.
        workspace: Run workspace for the output file.
        name: Run-unique stem for the output (e.g. "clip_<response id>").
        video: Target format.
        timeout: Seconds allowed for this transcode.
        context: Run controls (cancel, deadline, transcode slots).

    Returns:
        Path to the normalized mp4.

    Raises:
        ConversionError: ffmpeg failed, timed out, or wrote nothing.
        CompositionCancelled: The run was cancelled or hit its deadline.
    """
    raw_path = Path(raw_path)
    output = workspace.path(f"{name}.mp4")
    has_audio = ffmpeg.has_audio_stream(raw_path, context)
    if not has_audio:
        logger.info("%s has no audio stream, adding a silent track", raw_path.name)

    try:
        ffmpeg.run_ffmpeg(
            build_normalize_args(raw_path, video, has_audio),
            output, timeout=timeout, context=context,
        )
    except ffmpeg.FFmpegError as exc:
        raise ConversionError(diagnostic=exc.diagnostic) from exc

    workspace.release(raw_path)
    return output
