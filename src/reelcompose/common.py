"""reelcompose.common — shared utilities for card and clip composition.

Contains: color parsing, path variable resolution, font lookup,
text measuring and line wrapping for card overlays.
"""

import re
from pathlib import Path

from PIL import ImageFont


# ── Font paths ─────────────────────────────────────────────────────
# Inter preferred for clean card text, DejaVu Sans as fallback.

FONT_PATHS = [
    Path.home() / ".local/share/fonts/Inter.ttc",
    Path("/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf"),
    Path("/usr/share/fonts/TTF/DejaVuSans.ttf"),
    Path("/Library/Fonts/Arial.ttf"),
]

# ── Color utilities ────────────────────────────────────────────────

def parse_hex_color(hex_str: str) -> tuple[int, int, int]:
    """Convert '#RRGGBB' or 'RRGGBB' string to (R, G, B) tuple."""
    hex_str = hex_str.lstrip("#")
    if len(hex_str) != 6 or not all(c in "0123456789abcdefABCDEF" for c in hex_str):
        raise ValueError(f"Invalid hex color: '{hex_str}'")
    return (int(hex_str[0:2], 16), int(hex_str[2:4], 16), int(hex_str[4:6], 16))


# ── Path utilities ─────────────────────────────────────────────────

def resolve_path_vars(text: str, paths: dict[str, str]) -> str:
    """Replace ${name} variables in a string using the paths dict."""
    def _replace(match):
        key = match.group(1)
        if key not in paths:
            raise ValueError(f"Unknown path variable: ${{{key}}}")
        return str(paths[key])
    return re.sub(r"\$\{(\w+)\}", _replace, text)


# ── Font loading ───────────────────────────────────────────────────

def find_font_file(override: str | Path | None = None) -> Path | None:
    """Return the first usable font file, or None if nothing is installed.

    An explicit override wins when it exists on disk.
    """
    candidates = [Path(override)] if override else []
    candidates.extend(FONT_PATHS)
    for font_path in candidates:
        if font_path.is_file():
            return font_path
    return None


def load_font(
    size: int, font_file: str | Path | None = None,
) -> ImageFont.FreeTypeFont | ImageFont.ImageFont:
    """Load the card font (or fallback) at the given size.

    Inter.ttc is a font collection. Index 0 = Regular.
    """
    path = find_font_file(font_file)
    if path is not None:
        try:
            return ImageFont.truetype(str(path), size=size, index=0)
        except (OSError, IndexError):
            pass
    # Last resort: Pillow's bundled default font (a bitmap font when
    # Pillow was built without FreeType).
    return ImageFont.load_default(size=size)


# ── Text measuring ─────────────────────────────────────────────────

def text_width(text: str, size: int, font_file: str | Path | None = None) -> float:
    """Pixel width of a single line of text at the given font size."""
    return load_font(size, font_file).getlength(text)


def wrap_text(
    text: str,
    size: int,
    max_width: int,
    font_file: str | Path | None = None,
) -> list[str]:
    """Greedy word wrap so every line fits within max_width pixels.

    A single word wider than max_width is kept on its own line rather than
    split mid-word.
    """
    words = text.split()
    if not words:
        return [""]

    lines = []
    current = words[0]
    for word in words[1:]:
        candidate = f"{current} {word}"
        if text_width(candidate, size, font_file) <= max_width:
            current = candidate
        else:
            lines.append(current)
            current = word
    lines.append(current)
    return lines
