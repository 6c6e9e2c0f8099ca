"""Tests for the directory-backed object storage."""

import pytest


@pytest.fixture
def storage(tmp_path):
    from reelcompose.storage import LocalObjectStorage

    return LocalObjectStorage(tmp_path / "bucket", "https://cdn.example.com/videos/")


class TestLocalObjectStorage:
    def test_upload_then_download(self, storage):
        storage.upload("a/b.mp4", b"data", content_type="video/mp4")
        assert storage.download("a/b.mp4") == b"data"
        assert storage.exists("a/b.mp4")

    def test_download_missing(self, storage):
        from reelcompose.errors import ObjectNotFoundError

        with pytest.raises(ObjectNotFoundError):
            storage.download("nope.webm")

    def test_overwrite(self, storage):
        storage.upload("k.mp4", b"one", content_type="video/mp4")
        storage.upload("k.mp4", b"two", content_type="video/mp4", overwrite=True)
        assert storage.download("k.mp4") == b"two"

    def test_no_overwrite(self, storage):
        from reelcompose.errors import StorageError

        storage.upload("k.mp4", b"one", content_type="video/mp4")
        with pytest.raises(StorageError, match="already exists"):
            storage.upload("k.mp4", b"two", content_type="video/mp4", overwrite=False)

    def test_public_url(self, storage):
        assert storage.public_url("merged/t 1.mp4") == "https://cdn.example.com/videos/merged/t%201.mp4"

    def test_leading_slash_stripped(self, storage):
        storage.upload("/x.mp4", b"x", content_type="video/mp4")
        assert storage.download("x.mp4") == b"x"

    @pytest.mark.parametrize("key", ["", "../escape.mp4", "a//b.mp4", "a/./b"])
    def test_invalid_keys(self, storage, key):
        from reelcompose.errors import StorageError

        with pytest.raises(StorageError):
            storage.download(key)

    def test_delete(self, storage):
        storage.upload("d.mp4", b"x", content_type="video/mp4")
        storage.delete("d.mp4")
        assert not storage.exists("d.mp4")
