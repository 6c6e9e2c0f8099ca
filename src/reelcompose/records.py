"""Record persistence collaborator.

RecordStore is the narrow interface the pipeline reads from and writes
back to. YamlRecordStore keeps the three tables the pipeline touches in
one YAML file, for the CLI and for tests.

Records file schema:
  testimonials:
    - id: t-1
      customer_name: "Jane Doe"
      customer_position: "CTO"
      status: pending            # set to "completed" by a full composition
      video_url: null            # compositor output
      completed_at: null
  questions:
    - id: q-1
      text: "What problem did we solve?"
      order: 1
  responses:
    - id: r-1
      testimonial_id: t-1
      question_id: q-1
      video_url: "https://.../storage/v1/object/public/videos/r-1.webm"
      created_at: 2025-04-01T10:00:00
      intro_video_url: null      # single-response compositor output
      intro_generated: false
"""

import os
import tempfile
import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

import yaml

from .errors import RecordNotFoundError, RecordStoreError


@dataclass(frozen=True)
class TestimonialRecord:
    __test__ = False  # not a pytest test class

    id: str
    customer_name: str
    customer_position: str
    status: str = "pending"
    video_url: str | None = None
    completed_at: datetime | None = None


@dataclass(frozen=True)
class ResponseRecord:
    id: str
    testimonial_id: str
    question_id: str
    question_text: str | None
    order: int
    video_url: str | None
    created_at: datetime | None = None
    intro_video_url: str | None = None
    intro_generated: bool = False


class RecordStore(Protocol):
    def get_testimonial(self, testimonial_id: str) -> TestimonialRecord: ...

    def get_responses_for_testimonial(self, testimonial_id: str) -> list[ResponseRecord]:
        """Responses ordered by (question order, created_at)."""

    def get_response(self, response_id: str) -> ResponseRecord: ...

    def set_testimonial_result(
        self, testimonial_id: str, video_url: str, completed_at: datetime,
    ) -> None: ...

    def set_response_intro_result(
        self, response_id: str, video_url: str, generated: bool = True,
    ) -> None: ...


class YamlRecordStore:
    """RecordStore backed by a single YAML file.

    Reads reload the file every time; writes are serialized with a lock
    and replace the file atomically.
    """

    def __init__(self, path: str | Path):
        self.path = Path(path)
        self._lock = threading.Lock()

    # ── File I/O ────────────────────────────────────────────────

    def _load(self) -> dict:
        try:
            with open(self.path) as f:
                raw = yaml.safe_load(f) or {}
        except FileNotFoundError as exc:
            raise RecordStoreError(f"Records file not found: {self.path}") from exc
        except yaml.YAMLError as exc:
            raise RecordStoreError(f"Records file is not valid YAML: {exc}") from exc
        for table in ("testimonials", "questions", "responses"):
            raw.setdefault(table, [])
        return raw

    def _save(self, data: dict) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".records-")
        try:
            with os.fdopen(fd, "w") as f:
                yaml.safe_dump(data, f, sort_keys=False)
            os.replace(tmp, self.path)
        except OSError as exc:
            Path(tmp).unlink(missing_ok=True)
            raise RecordStoreError(f"Could not write records file: {exc}") from exc

    @staticmethod
    def _find(rows: list[dict], row_id: str, table: str) -> dict:
        for row in rows:
            if str(row.get("id")) == str(row_id):
                return row
        raise RecordNotFoundError(f"{table} '{row_id}' not found")

    # ── Reads ───────────────────────────────────────────────────

    def get_testimonial(self, testimonial_id: str) -> TestimonialRecord:
        row = self._find(self._load()["testimonials"], testimonial_id, "testimonial")
        return TestimonialRecord(
            id=str(row["id"]),
            customer_name=row.get("customer_name") or "",
            customer_position=row.get("customer_position") or "",
            status=row.get("status") or "pending",
            video_url=row.get("video_url"),
            completed_at=_parse_time(row.get("completed_at")),
        )

    def get_responses_for_testimonial(self, testimonial_id: str) -> list[ResponseRecord]:
        data = self._load()
        # Unknown testimonial is an error, not an empty answer set.
        self._find(data["testimonials"], testimonial_id, "testimonial")
        questions = {str(q["id"]): q for q in data["questions"]}
        records = [
            self._response_record(row, questions)
            for row in data["responses"]
            if str(row.get("testimonial_id")) == str(testimonial_id)
        ]
        return sorted(records, key=_response_sort_key)

    def get_response(self, response_id: str) -> ResponseRecord:
        data = self._load()
        row = self._find(data["responses"], response_id, "response")
        questions = {str(q["id"]): q for q in data["questions"]}
        return self._response_record(row, questions)

    @staticmethod
    def _response_record(row: dict, questions: dict) -> ResponseRecord:
        question = questions.get(str(row.get("question_id")), {})
        return ResponseRecord(
            id=str(row["id"]),
            testimonial_id=str(row.get("testimonial_id")),
            question_id=str(row.get("question_id")),
            question_text=question.get("text"),
            order=int(question.get("order", 0)),
            video_url=row.get("video_url"),
            created_at=_parse_time(row.get("created_at")),
            intro_video_url=row.get("intro_video_url"),
            intro_generated=bool(row.get("intro_generated", False)),
        )

    # ── Writes ──────────────────────────────────────────────────

    def set_testimonial_result(
        self, testimonial_id: str, video_url: str, completed_at: datetime,
    ) -> None:
        with self._lock:
            data = self._load()
            row = self._find(data["testimonials"], testimonial_id, "testimonial")
            row["video_url"] = video_url
            row["status"] = "completed"
            row["completed_at"] = completed_at
            row["updated_at"] = completed_at
            self._save(data)

    def set_response_intro_result(
        self, response_id: str, video_url: str, generated: bool = True,
    ) -> None:
        with self._lock:
            data = self._load()
            row = self._find(data["responses"], response_id, "response")
            row["intro_video_url"] = video_url
            row["intro_generated"] = generated
            row["updated_at"] = datetime.now(timezone.utc)
            self._save(data)


def _response_sort_key(record: ResponseRecord) -> tuple:
    created = record.created_at.timestamp() if record.created_at else float("-inf")
    return (record.order, created, record.id)


def _parse_time(value) -> datetime | None:
    """YAML timestamps load as datetime; quoted ones arrive as ISO strings."""
    if value is None or isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError as exc:
        raise RecordStoreError(f"Invalid timestamp: {value!r}") from exc
