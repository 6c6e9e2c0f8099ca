"""Settings loader — YAML configuration for the composition pipeline.

Every key is optional; missing keys fall back to the defaults below.
Follows the same ${var} path resolution as the other YAML loaders.

Settings schema:
  paths:
    root: "/srv/reelcompose"
  video:
    resolution: [1280, 720]
    fps: 30
    video_codec: libx264
    preset: ultrafast          # normalize + cards
    concat_preset: medium      # final re-encode
    crf: 23
    audio_codec: aac
    audio_bitrate: 128k
    sample_rate: 44100
    channel_layout: stereo
  cards:
    intro_duration: 4
    title_duration: 3
    name_font_size: 48
    role_font_size: 32
    question_font_size: 36
    background: "#000000"
    text_color: "#FFFFFF"
    box_opacity: 0.5
    font_file: null
    max_text_width: 0.85       # fraction of frame width
  pipeline:
    work_dir: "${root}/work"
    workers: 2
    max_concurrent_transcodes: 4
    stage_timeout: 300
    pipeline_timeout: 1800
    on_busy: wait              # "wait" or "reject"
    ffmpeg: null               # defaults to the imageio-ffmpeg binary
  storage:
    root: "${root}/storage"
    public_base_url: "http://localhost:8000/storage/v1/object/public/videos"
    public_path_prefix: "/storage/v1/object/public/videos/"
    merged_prefix: merged_testimonials
    single_prefix: responses_with_intro
  records: "${root}/records.yaml"
"""

from dataclasses import dataclass, field, fields, replace
from pathlib import Path

import yaml

from .common import parse_hex_color, resolve_path_vars


VALID_ON_BUSY = {"wait", "reject"}

VALID_CHANNEL_LAYOUTS = {"mono": 1, "stereo": 2}


@dataclass(frozen=True)
class VideoSettings:
    resolution: tuple[int, int] = (1280, 720)
    fps: int = 30
    video_codec: str = "libx264"
    preset: str = "ultrafast"
    concat_preset: str = "medium"
    crf: int = 23
    audio_codec: str = "aac"
    audio_bitrate: str = "128k"
    sample_rate: int = 44100
    channel_layout: str = "stereo"

    @property
    def width(self) -> int:
        return self.resolution[0]

    @property
    def height(self) -> int:
        return self.resolution[1]

    @property
    def channels(self) -> int:
        return VALID_CHANNEL_LAYOUTS[self.channel_layout]


@dataclass(frozen=True)
class CardSettings:
    intro_duration: float = 4.0
    title_duration: float = 3.0
    name_font_size: int = 48
    role_font_size: int = 32
    question_font_size: int = 36
    background: tuple[int, int, int] = (0, 0, 0)
    text_color: tuple[int, int, int] = (255, 255, 255)
    box_opacity: float = 0.5
    font_file: str | None = None
    max_text_width: float = 0.85


@dataclass(frozen=True)
class PipelineSettings:
    work_dir: Path = field(default_factory=lambda: Path("work"))
    workers: int = 2
    max_concurrent_transcodes: int = 4
    stage_timeout: float = 300.0
    pipeline_timeout: float = 1800.0
    on_busy: str = "wait"
    ffmpeg: str | None = None


@dataclass(frozen=True)
class StorageSettings:
    root: Path = field(default_factory=lambda: Path("storage"))
    public_base_url: str = "http://localhost:8000/storage/v1/object/public/videos"
    public_path_prefix: str = "/storage/v1/object/public/videos/"
    merged_prefix: str = "merged_testimonials"
    single_prefix: str = "responses_with_intro"


@dataclass(frozen=True)
class Settings:
    video: VideoSettings = field(default_factory=VideoSettings)
    cards: CardSettings = field(default_factory=CardSettings)
    pipeline: PipelineSettings = field(default_factory=PipelineSettings)
    storage: StorageSettings = field(default_factory=StorageSettings)
    records: Path = field(default_factory=lambda: Path("records.yaml"))

    def with_work_dir(self, work_dir: str | Path) -> "Settings":
        """Copy of these settings with a different work directory."""
        return replace(self, pipeline=replace(self.pipeline, work_dir=Path(work_dir)))


# ── Loading ───────────────────────────────────────────────────────


def load_settings(config_path: str | Path) -> Settings:
    """Load, validate, and normalize a settings file.

    Processing pipeline:
      1. Parse YAML (an empty file means all defaults).
      2. Resolve ${path} variables in every string value.
      3. Build each settings block, rejecting unknown keys.
      4. Validate ranges and enum values.

    Args:
        config_path: Path to the YAML settings file.

    Returns:
        Frozen Settings instance.

    Raises:
        ValueError: Unknown key or invalid value.
        FileNotFoundError: Missing settings file.
    """
    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    if not isinstance(raw, dict):
        raise ValueError("Settings: top level must be a mapping")

    paths = {k: str(v) for k, v in (raw.get("paths") or {}).items()}
    raw = _resolve_vars(raw, paths)

    unknown = set(raw) - {"paths", "video", "cards", "pipeline", "storage", "records"}
    if unknown:
        raise ValueError(f"Settings: unknown section(s) {sorted(unknown)}")

    video = _build_video(raw.get("video") or {})
    cards = _build_cards(raw.get("cards") or {})
    pipeline = _build_pipeline(raw.get("pipeline") or {})
    storage = _build_storage(raw.get("storage") or {})

    kwargs = {"video": video, "cards": cards, "pipeline": pipeline, "storage": storage}
    if raw.get("records") is not None:
        kwargs["records"] = Path(raw["records"])
    return Settings(**kwargs)


def _resolve_vars(obj, paths: dict):
    """Recursively resolve ${var} in all string values."""
    if isinstance(obj, str):
        return resolve_path_vars(obj, paths)
    elif isinstance(obj, dict):
        return {k: _resolve_vars(v, paths) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_resolve_vars(item, paths) for item in obj]
    return obj


def _check_keys(section: str, values: dict, cls) -> None:
    allowed = {f.name for f in fields(cls)}
    unknown = set(values) - allowed
    if unknown:
        raise ValueError(f"Settings: unknown key(s) in '{section}': {sorted(unknown)}")


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _positive(section: str, key: str, value) -> None:
    if not _is_number(value) or value <= 0:
        raise ValueError(f"Settings: {section}.{key} must be > 0, got {value!r}")


def _build_video(values: dict) -> VideoSettings:
    _check_keys("video", values, VideoSettings)
    values = dict(values)
    if "resolution" in values:
        res = values["resolution"]
        if not isinstance(res, (list, tuple)) or len(res) != 2:
            raise ValueError(f"Settings: video.resolution must be [width, height], got {res!r}")
        values["resolution"] = (int(res[0]), int(res[1]))
        for dim in values["resolution"]:
            # libx264 with yuv420p needs even frame dimensions.
            if dim <= 0 or dim % 2:
                raise ValueError(
                    f"Settings: video.resolution values must be positive and even, got {res!r}"
                )
    for key in ("fps", "sample_rate"):
        if key in values:
            _positive("video", key, values[key])
    layout = values.get("channel_layout", "stereo")
    if layout not in VALID_CHANNEL_LAYOUTS:
        raise ValueError(
            f"Settings: invalid video.channel_layout '{layout}'. "
            f"Valid: {sorted(VALID_CHANNEL_LAYOUTS)}"
        )
    return VideoSettings(**values)


def _build_cards(values: dict) -> CardSettings:
    _check_keys("cards", values, CardSettings)
    values = dict(values)
    for key in ("intro_duration", "title_duration", "name_font_size",
                "role_font_size", "question_font_size"):
        if key in values:
            _positive("cards", key, values[key])
    for key in ("background", "text_color"):
        if key in values:
            values[key] = parse_hex_color(str(values[key]))
    opacity = values.get("box_opacity", 0.5)
    if not _is_number(opacity) or not 0 <= opacity <= 1:
        raise ValueError(f"Settings: cards.box_opacity must be in [0, 1], got {opacity!r}")
    width = values.get("max_text_width", 0.85)
    if not _is_number(width) or not 0 < width <= 1:
        raise ValueError(f"Settings: cards.max_text_width must be in (0, 1], got {width!r}")
    return CardSettings(**values)


def _build_pipeline(values: dict) -> PipelineSettings:
    _check_keys("pipeline", values, PipelineSettings)
    values = dict(values)
    if "work_dir" in values:
        values["work_dir"] = Path(values["work_dir"])
    for key in ("workers", "max_concurrent_transcodes"):
        if key in values and (
            not isinstance(values[key], int) or isinstance(values[key], bool) or values[key] < 1
        ):
            raise ValueError(f"Settings: pipeline.{key} must be an integer >= 1, got {values[key]!r}")
    for key in ("stage_timeout", "pipeline_timeout"):
        if key in values:
            _positive("pipeline", key, values[key])
    on_busy = values.get("on_busy", "wait")
    if on_busy not in VALID_ON_BUSY:
        raise ValueError(
            f"Settings: invalid pipeline.on_busy '{on_busy}'. Valid: {sorted(VALID_ON_BUSY)}"
        )
    return PipelineSettings(**values)


def _build_storage(values: dict) -> StorageSettings:
    _check_keys("storage", values, StorageSettings)
    values = dict(values)
    if "root" in values:
        values["root"] = Path(values["root"])
    prefix = values.get("public_path_prefix")
    if prefix is not None and not str(prefix).startswith("/"):
        raise ValueError(
            f"Settings: storage.public_path_prefix must start with '/', got {prefix!r}"
        )
    return StorageSettings(**values)
