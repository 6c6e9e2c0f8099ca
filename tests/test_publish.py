"""Tests for publishing the finished video."""

import pytest


@pytest.fixture
def storage(tmp_path):
    from reelcompose.storage import LocalObjectStorage

    return LocalObjectStorage(tmp_path / "bucket", "https://cdn.example.com/videos")


class TestKeys:
    def test_testimonial_key(self):
        from reelcompose.publish import testimonial_key

        assert testimonial_key("merged_testimonials", "t-1") == "merged_testimonials/testimonial_t-1.mp4"

    def test_response_key(self):
        from reelcompose.publish import response_key

        assert response_key("/responses_with_intro/", "r-1") == "responses_with_intro/response_with_intro_r-1.mp4"


class TestPublish:
    def test_uploads_and_returns_url(self, storage, workspace):
        from reelcompose.publish import publish

        final = workspace.path("final.mp4")
        final.write_bytes(b"mp4 bytes")
        url = publish(final, "merged_testimonials/testimonial_t-1.mp4", storage, workspace)

        assert url == "https://cdn.example.com/videos/merged_testimonials/testimonial_t-1.mp4"
        assert storage.download("merged_testimonials/testimonial_t-1.mp4") == b"mp4 bytes"
        assert not final.exists()

    def test_rerun_overwrites(self, storage, workspace):
        from reelcompose.publish import publish

        for content in (b"first", b"second"):
            final = workspace.path("final.mp4")
            final.write_bytes(content)
            publish(final, "k.mp4", storage, workspace)
        assert storage.download("k.mp4") == b"second"

    def test_upload_failure_keeps_file_registered(self, storage, workspace, monkeypatch):
        from reelcompose.errors import PublishError, StorageError
        from reelcompose.publish import publish

        def _fail(key, data, content_type, overwrite=True):
            raise StorageError("bucket unavailable")

        monkeypatch.setattr(storage, "upload", _fail)
        final = workspace.path("final.mp4")
        final.write_bytes(b"x")
        with pytest.raises(PublishError) as exc_info:
            publish(final, "k.mp4", storage, workspace)
        assert "bucket unavailable" in exc_info.value.diagnostic
        assert final in workspace.registered()

    def test_missing_local_file(self, storage, workspace):
        from reelcompose.errors import PublishError
        from reelcompose.publish import publish

        with pytest.raises(PublishError):
            publish(workspace.path("never.mp4"), "k.mp4", storage, workspace)
