"""Tests for clip reference resolution and fetching."""

import pytest


PUBLIC = "https://abc.supabase.co/storage/v1/object/public/videos/"


class TestStorageKeyFromReference:
    def test_public_url(self):
        from reelcompose.fetch import storage_key_from_reference

        key = storage_key_from_reference(PUBLIC + "responses/r-1.webm")
        assert key == "responses/r-1.webm"

    def test_percent_decoding(self):
        from reelcompose.fetch import storage_key_from_reference

        key = storage_key_from_reference(PUBLIC + "my%20clip.webm")
        assert key == "my clip.webm"

    def test_query_string_ignored(self):
        from reelcompose.fetch import storage_key_from_reference

        key = storage_key_from_reference(PUBLIC + "r-1.webm?token=abc")
        assert key == "r-1.webm"

    def test_bare_key(self):
        from reelcompose.fetch import storage_key_from_reference

        assert storage_key_from_reference("/responses/r-1.mp4") == "responses/r-1.mp4"

    def test_custom_prefix(self):
        from reelcompose.fetch import storage_key_from_reference

        key = storage_key_from_reference("https://cdn.example.com/media/a.mp4", "/media/")
        assert key == "a.mp4"

    @pytest.mark.parametrize("ref", [None, "", "   "])
    def test_empty(self, ref):
        from reelcompose.errors import FetchError
        from reelcompose.fetch import storage_key_from_reference

        with pytest.raises(FetchError):
            storage_key_from_reference(ref)

    def test_url_outside_prefix(self):
        from reelcompose.errors import FetchError
        from reelcompose.fetch import storage_key_from_reference

        with pytest.raises(FetchError):
            storage_key_from_reference("https://evil.example.com/other/r-1.webm")

    def test_unsupported_scheme(self):
        from reelcompose.errors import FetchError
        from reelcompose.fetch import storage_key_from_reference

        with pytest.raises(FetchError):
            storage_key_from_reference("file:///etc/passwd")

    def test_parent_segments(self):
        from reelcompose.errors import FetchError
        from reelcompose.fetch import storage_key_from_reference

        with pytest.raises(FetchError):
            storage_key_from_reference(PUBLIC + "a/%2E%2E/secret")


class TestFetch:
    @pytest.fixture
    def storage(self, tmp_path):
        from reelcompose.storage import LocalObjectStorage

        return LocalObjectStorage(tmp_path / "bucket", PUBLIC)

    def test_downloads_into_workspace(self, storage, workspace):
        from reelcompose.fetch import fetch

        storage.upload("r-1.webm", b"webm bytes", content_type="video/webm")
        path = fetch(PUBLIC + "r-1.webm", storage, workspace, "raw_r-1")
        assert path.read_bytes() == b"webm bytes"
        assert path.name == "run_test_raw_r-1.webm"
        assert path in workspace.registered()

    def test_default_suffix(self, storage, workspace):
        from reelcompose.fetch import fetch

        storage.upload("noext", b"bytes", content_type="video/webm")
        path = fetch("noext", storage, workspace, "raw_x")
        assert path.suffix == ".webm"

    def test_missing_object(self, storage, workspace):
        from reelcompose.errors import FetchError
        from reelcompose.fetch import fetch

        with pytest.raises(FetchError) as exc_info:
            fetch(PUBLIC + "gone.webm", storage, workspace, "raw_gone")
        assert "gone.webm" in exc_info.value.diagnostic
        assert str(exc_info.value) == "Could not download the recorded answer"

    def test_empty_object(self, storage, workspace):
        from reelcompose.errors import FetchError
        from reelcompose.fetch import fetch

        storage.upload("empty.webm", b"", content_type="video/webm")
        with pytest.raises(FetchError, match="recorded answer"):
            fetch("empty.webm", storage, workspace, "raw_empty")
