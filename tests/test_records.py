"""Tests for the YAML record store."""

from datetime import datetime, timezone

import pytest
import yaml


RECORDS = {
    "testimonials": [
        {"id": "t-1", "customer_name": "Jane Doe", "customer_position": "CTO"},
        {"id": "t-2", "customer_name": "No Answers", "customer_position": ""},
    ],
    "questions": [
        {"id": "q-1", "text": "What problem did we solve?", "order": 1},
        {"id": "q-2", "text": "Would you recommend us?", "order": 2},
    ],
    "responses": [
        {"id": "r-2", "testimonial_id": "t-1", "question_id": "q-2",
         "video_url": "r-2.webm", "created_at": "2025-04-01T10:05:00"},
        {"id": "r-1", "testimonial_id": "t-1", "question_id": "q-1",
         "video_url": "r-1.webm", "created_at": "2025-04-01T10:00:00"},
        {"id": "r-1b", "testimonial_id": "t-1", "question_id": "q-1",
         "video_url": None, "created_at": "2025-04-01T09:00:00"},
    ],
}


@pytest.fixture
def store(write_records):
    from reelcompose.records import YamlRecordStore

    return YamlRecordStore(write_records(RECORDS))


class TestReads:
    def test_get_testimonial(self, store):
        t = store.get_testimonial("t-1")
        assert t.customer_name == "Jane Doe"
        assert t.customer_position == "CTO"
        assert t.status == "pending"

    def test_unknown_testimonial(self, store):
        from reelcompose.errors import RecordNotFoundError

        with pytest.raises(RecordNotFoundError):
            store.get_testimonial("t-404")

    def test_responses_ordered_by_question_then_created(self, store):
        responses = store.get_responses_for_testimonial("t-1")
        assert [r.id for r in responses] == ["r-1b", "r-1", "r-2"]
        assert responses[1].question_text == "What problem did we solve?"
        assert responses[2].order == 2

    def test_responses_for_testimonial_without_answers(self, store):
        assert store.get_responses_for_testimonial("t-2") == []

    def test_responses_for_unknown_testimonial(self, store):
        from reelcompose.errors import RecordNotFoundError

        with pytest.raises(RecordNotFoundError):
            store.get_responses_for_testimonial("t-404")

    def test_get_response(self, store):
        r = store.get_response("r-2")
        assert r.testimonial_id == "t-1"
        assert r.question_text == "Would you recommend us?"
        assert r.created_at == datetime(2025, 4, 1, 10, 5)
        assert r.intro_generated is False

    def test_missing_file(self, tmp_path):
        from reelcompose.errors import RecordStoreError
        from reelcompose.records import YamlRecordStore

        with pytest.raises(RecordStoreError, match="not found"):
            YamlRecordStore(tmp_path / "missing.yaml").get_testimonial("t-1")

    def test_invalid_timestamp(self, write_records):
        from reelcompose.errors import RecordStoreError
        from reelcompose.records import YamlRecordStore

        path = write_records({
            "testimonials": [{"id": "t-1", "completed_at": "yesterday"}],
        })
        with pytest.raises(RecordStoreError, match="Invalid timestamp"):
            YamlRecordStore(path).get_testimonial("t-1")


class TestWrites:
    def test_set_testimonial_result(self, store):
        when = datetime(2025, 4, 2, 12, 0, tzinfo=timezone.utc)
        store.set_testimonial_result("t-1", "https://cdn/x.mp4", completed_at=when)

        t = store.get_testimonial("t-1")
        assert t.video_url == "https://cdn/x.mp4"
        assert t.status == "completed"
        assert t.completed_at == when

    def test_set_testimonial_result_keeps_response_urls(self, store):
        when = datetime(2025, 4, 2, 12, 0, tzinfo=timezone.utc)
        store.set_testimonial_result("t-1", "https://cdn/x.mp4", completed_at=when)
        assert store.get_response("r-1").video_url == "r-1.webm"

    def test_set_response_intro_result(self, store):
        store.set_response_intro_result("r-1", "https://cdn/r.mp4")

        r = store.get_response("r-1")
        assert r.intro_video_url == "https://cdn/r.mp4"
        assert r.intro_generated is True
        # The raw submission URL is untouched.
        assert r.video_url == "r-1.webm"

    def test_write_is_valid_yaml(self, store):
        store.set_response_intro_result("r-2", "https://cdn/r2.mp4")
        data = yaml.safe_load(store.path.read_text())
        assert {t["id"] for t in data["testimonials"]} == {"t-1", "t-2"}

    def test_write_unknown_response(self, store):
        from reelcompose.errors import RecordNotFoundError

        with pytest.raises(RecordNotFoundError):
            store.set_response_intro_result("r-404", "https://cdn/r.mp4")
