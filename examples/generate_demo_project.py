#!/usr/bin/env python3
"""Generate a self-contained demo project for reelcompose.

Creates examples/demo/ with:
  - storage/responses/*   synthetic recordings in mixed shapes
  - records.yaml          one testimonial answering three questions
  - settings.yaml         paths pointing at the directories above

The recordings differ on purpose so the normalizer has work to do:
a landscape clip with audio, a portrait "phone" clip, and a clip with
no audio track at all.

Usage:
    python examples/generate_demo_project.py
    # Then compose:
    reelcompose compose --config examples/demo/settings.yaml --testimonial demo-1
"""

import subprocess
from pathlib import Path

import imageio_ffmpeg
import yaml

DEMO_DIR = Path(__file__).resolve().parent / "demo"
BASE_URL = "http://localhost:8000/storage/v1/object/public/videos"

_FFMPEG = imageio_ffmpeg.get_ffmpeg_exe()

# (response id, question id, size, color, duration, has audio)
RECORDINGS = [
    ("resp-1", "q-1", "640x360", "0x3C78B4", 3.0, True),    # landscape
    ("resp-2", "q-2", "360x640", "0xB43C3C", 2.5, True),    # portrait phone
    ("resp-3", "q-3", "480x480", "0x3CA03C", 2.0, False),   # square, silent
]

QUESTIONS = [
    {"id": "q-1", "text": "What problem were you trying to solve?", "order": 1},
    {"id": "q-2", "text": "What's changed since you started using us?", "order": 2},
    {"id": "q-3", "text": "Would you recommend us to a colleague?", "order": 3},
]


def _record(out: Path, size: str, color: str, duration: float, audio: bool) -> None:
    args = [_FFMPEG, "-y", "-f", "lavfi", "-i", f"color=c={color}:s={size}:d={duration}:r=25"]
    if audio:
        args += ["-f", "lavfi", "-i", f"sine=frequency=440:duration={duration}", "-shortest"]
    args += ["-c:v", "libx264", "-pix_fmt", "yuv420p"]
    if audio:
        args += ["-c:a", "aac"]
    subprocess.run([*args, str(out)], check=True, capture_output=True)


def main():
    responses_dir = DEMO_DIR / "storage" / "responses"
    responses_dir.mkdir(parents=True, exist_ok=True)

    responses = []
    for rid, qid, size, color, duration, audio in RECORDINGS:
        out = responses_dir / f"{rid}.mp4"
        if out.exists():
            print(f"  skip {rid} (exists)")
        else:
            _record(out, size, color, duration, audio)
            print(f"  wrote {rid} ({size}, {duration}s, {'audio' if audio else 'silent'})")
        responses.append({
            "id": rid,
            "testimonial_id": "demo-1",
            "question_id": qid,
            "video_url": f"{BASE_URL}/responses/{rid}.mp4",
            "intro_video_url": None,
            "intro_generated": False,
        })

    records = {
        "testimonials": [{
            "id": "demo-1",
            "customer_name": "Jane Doe",
            "customer_position": "CTO, Example Corp",
            "status": "pending",
            "video_url": None,
        }],
        "questions": QUESTIONS,
        "responses": responses,
    }
    (DEMO_DIR / "records.yaml").write_text(yaml.safe_dump(records, sort_keys=False))

    settings = {
        "paths": {"demo": str(DEMO_DIR)},
        "pipeline": {"work_dir": "${demo}/work"},
        "storage": {"root": "${demo}/storage", "public_base_url": BASE_URL},
        "records": "${demo}/records.yaml",
    }
    (DEMO_DIR / "settings.yaml").write_text(yaml.safe_dump(settings, sort_keys=False))

    print(f"\nDone. Demo project in {DEMO_DIR}")


if __name__ == "__main__":
    main()
