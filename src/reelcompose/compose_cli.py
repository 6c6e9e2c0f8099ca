"""CLI for composition runs against the local storage + YAML records.

Usage:
    # Full testimonial: intro, then title card + answer per question
    reelcompose compose --config settings.yaml --testimonial t-1

    # One response behind its question title card
    reelcompose intro --config settings.yaml --response r-1

    # Check a settings file
    reelcompose validate --config settings.yaml
"""

import argparse
import logging
import sys
import time

from .config import load_settings
from .errors import CompositionError, RecordStoreError
from .pipeline import Compositor


def _parser(description: str) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description=description)
    parser.add_argument(
        "--config", required=True,
        help="Path to YAML settings file",
    )
    parser.add_argument(
        "--work-dir", default=None,
        help="Override pipeline.work_dir for this run",
    )
    parser.add_argument(
        "--log-level", default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )
    return parser


def _compositor(parsed) -> Compositor:
    logging.basicConfig(
        level=parsed.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    settings = load_settings(parsed.config)
    if parsed.work_dir:
        settings = settings.with_work_dir(parsed.work_dir)
    return Compositor.from_settings(settings)


def _fail(exc: Exception) -> None:
    # Users see the short message; the diagnostic is already in the log.
    print(f"Error: {exc}", file=sys.stderr)
    sys.exit(1)


def main(args=None):
    parser = _parser("Compose a full testimonial video.")
    parser.add_argument(
        "--testimonial", required=True,
        help="Testimonial id",
    )
    parsed = parser.parse_args(args)
    compositor = _compositor(parsed)

    print(f"Composing testimonial {parsed.testimonial}")
    t0 = time.monotonic()
    try:
        result = compositor.compose_full_testimonial(parsed.testimonial)
    except (CompositionError, RecordStoreError) as exc:
        _fail(exc)

    print(f"  Included: {result.included}  Skipped: {result.skipped}")
    for rid in result.skipped_response_ids:
        print(f"  SKIP   {rid}")
    if not result.recorded:
        print("  WARNING: video published but the record was not updated")
    print(f"\nDone ({time.monotonic() - t0:.1f}s): {result.url}")


def intro_main(args=None):
    parser = _parser("Compose one response behind its question title card.")
    parser.add_argument(
        "--response", required=True,
        help="Response id",
    )
    parsed = parser.parse_args(args)
    compositor = _compositor(parsed)

    print(f"Composing response {parsed.response}")
    t0 = time.monotonic()
    try:
        url = compositor.compose_single_response_with_intro(parsed.response)
    except (CompositionError, RecordStoreError) as exc:
        _fail(exc)
    print(f"\nDone ({time.monotonic() - t0:.1f}s): {url}")


def validate_main(args=None):
    parser = argparse.ArgumentParser(description="Validate a settings file.")
    parser.add_argument(
        "--config", required=True,
        help="Path to YAML settings file",
    )
    parsed = parser.parse_args(args)

    settings = load_settings(parsed.config)
    video, cards, pipeline = settings.video, settings.cards, settings.pipeline
    print("Settings valid.")
    print(f"  Video:    {video.width}x{video.height} @ {video.fps}fps, "
          f"{video.video_codec}/{video.audio_codec} {video.sample_rate}Hz {video.channel_layout}")
    print(f"  Cards:    intro {cards.intro_duration}s, title {cards.title_duration}s")
    print(f"  Pipeline: work_dir={pipeline.work_dir} workers={pipeline.workers} "
          f"max_transcodes={pipeline.max_concurrent_transcodes} on_busy={pipeline.on_busy}")
    print(f"  Storage:  {settings.storage.root} -> {settings.storage.public_base_url}")
    print(f"  Records:  {settings.records}")


if __name__ == "__main__":
    main()
