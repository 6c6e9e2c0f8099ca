"""Intro and question title cards.

The card frame is drawn with Pillow (the bundled ffmpeg build has no
drawtext filter) and then encoded by ffmpeg: the still frame looped for
the card's duration, plus a silent `anullsrc` track matching the
normalized clips' audio format.

Card layout (intro):
  ┌─────────────────────────────────────┐
  │                                     │
  │              Jane Doe               │  ← name_font_size
  │                 CTO                 │  ← role_font_size
  │                                     │
  └─────────────────────────────────────┘

Title cards carry the question text on a semi-transparent box, wrapped
to fit max_text_width of the frame. The same font measures and draws
every line. All user text goes through sanitize() first.

Durations, sizes and colors come from CardSettings only; requests never
control them.
"""

import logging
from pathlib import Path

from PIL import Image, ImageDraw

from . import ffmpeg
from .common import load_font, wrap_text
from .config import CardSettings, VideoSettings
from .errors import ConversionError
from .normalize import audio_encode_args, silent_audio_source, video_encode_args
from .sanitize import sanitize
from .workspace import RunWorkspace

logger = logging.getLogger(__name__)

LINE_SPACING = 1.3              # line height as a multiple of font size
BOX_BORDER = 5


# ── Layout ───────────────────────────────────────────────────────


def layout_lines(
    blocks: list[tuple[str, int]],
    video: VideoSettings,
    cards: CardSettings,
) -> list[tuple[str, int, int]]:
    """Sanitize, wrap and vertically center text blocks.

    Args:
        blocks: (raw text, font size) in top-to-bottom order.

    Returns:
        (sanitized line, font size, y offset from frame center) per line.
        Empty blocks produce no lines.
    """
    max_width = int(video.width * cards.max_text_width)
    lines = []
    for text, size in blocks:
        safe = sanitize(text).strip()
        if not safe:
            continue
        for line in wrap_text(safe, size, max_width, cards.font_file):
            lines.append((line, size))

    heights = [round(size * LINE_SPACING) for _, size in lines]
    top = -sum(heights) / 2
    placed = []
    for (line, size), line_h in zip(lines, heights):
        center = top + line_h / 2
        placed.append((line, size, round(center)))
        top += line_h
    return placed


def render_frame(
    lines: list[tuple[str, int, int]],
    video: VideoSettings,
    cards: CardSettings,
    output: str | Path,
    boxed: bool = False,
) -> Path:
    """Draw laid-out lines centered on a full-size card frame (PNG).

    Each line is centered horizontally and placed at its offset from the
    frame's vertical center. With `boxed`, every line gets a box of
    `box_opacity` black behind it, BOX_BORDER px wider than the text.
    """
    w, h = video.resolution
    base = Image.new("RGBA", (w, h), (*cards.background, 255))
    boxes = Image.new("RGBA", (w, h), (0, 0, 0, 0))
    box_draw = ImageDraw.Draw(boxes)

    placed = []
    for text, size, offset in lines:
        font = load_font(size, cards.font_file)
        left, top, right, bottom = box_draw.textbbox((0, 0), text, font=font)
        x = (w - (right - left)) / 2 - left
        y = (h - (bottom - top)) / 2 + offset - top
        placed.append((text, font, x, y))
        if boxed:
            box_draw.rectangle(
                [x + left - BOX_BORDER, y + top - BOX_BORDER,
                 x + right + BOX_BORDER, y + bottom + BOX_BORDER],
                fill=(0, 0, 0, round(255 * cards.box_opacity)),
            )

    frame = Image.alpha_composite(base, boxes).convert("RGB")
    draw = ImageDraw.Draw(frame)
    for text, font, x, y in placed:
        draw.text((x, y), text, fill=cards.text_color, font=font)

    output = Path(output)
    frame.save(output, format="PNG")
    return output


def build_card_args(
    frame: str | Path,
    duration: float,
    video: VideoSettings,
) -> list[str]:
    """ffmpeg arguments (without binary and output) for one card."""
    dur = f"{duration:.3f}"
    return [
        "-loop", "1", "-framerate", str(video.fps), "-t", dur, "-i", str(frame),
        "-f", "lavfi", "-t", dur, "-i", silent_audio_source(video),
        "-map", "0:v:0", "-map", "1:a:0",
        "-vf", "setsar=1,format=yuv420p",
        *video_encode_args(video),
        *audio_encode_args(video),
        "-t", dur,
        "-movflags", "+faststart",
    ]


# ── Card synthesis ───────────────────────────────────────────────


def _render_card(lines, duration, workspace, name, video, cards, timeout, context,
                 what, boxed=False) -> Path:
    frame = workspace.path(f"{name}.png")
    output = workspace.path(f"{name}.mp4")
    try:
        render_frame(lines, video, cards, frame, boxed=boxed)
    except OSError as exc:
        raise ConversionError(f"Could not create the {what}", diagnostic=str(exc)) from exc

    try:
        ffmpeg.run_ffmpeg(build_card_args(frame, duration, video), output,
                          timeout=timeout, context=context)
    except ffmpeg.FFmpegError as exc:
        raise ConversionError(f"Could not create the {what}", diagnostic=exc.diagnostic) from exc

    workspace.release(frame)
    logger.debug("rendered %s %s", what, output.name)
    return output


def make_intro_card(
    name: str,
    role: str,
    workspace: RunWorkspace,
    video: VideoSettings,
    cards: CardSettings,
    timeout: float,
    context: ffmpeg.RunContext | None = None,
) -> Path:
    """Render the intro card with the respondent's name and role.

    Raises:
        ConversionError: Frame drawing or ffmpeg failed. Fatal to the run.
    """
    lines = layout_lines(
        [(name, cards.name_font_size), (role, cards.role_font_size)], video, cards,
    )
    return _render_card(lines, cards.intro_duration, workspace, "intro", video, cards,
                        timeout, context, "intro card")


def make_title_card(
    question_text: str,
    workspace: RunWorkspace,
    name: str,
    video: VideoSettings,
    cards: CardSettings,
    timeout: float,
    context: ffmpeg.RunContext | None = None,
) -> Path:
    """Render a question title card.

    Args:
        question_text: Raw question text (sanitized here).
        name: Run-unique stem for the output (e.g. "title_<response id>").

    Raises:
        ConversionError: Frame drawing or ffmpeg failed. Fatal to the run.
    """
    lines = layout_lines([(question_text, cards.question_font_size)], video, cards)
    return _render_card(lines, cards.title_duration, workspace, name, video, cards,
                        timeout, context, "question title card", boxed=True)
