"""Tests for the object store client against a fake boto3 client."""

from __future__ import annotations

import pytest

from gallery_sync.config import StorageConfig, StorageCredentials
from gallery_sync.errors import StorageError
from gallery_sync.storage import ObjectStore, public_base_url


def test_virtual_hosted_public_urls(store: ObjectStore) -> None:
    key = store.object_key("0123456789ab", 600, "webp")

    assert key == "photos/0123456789ab_600.webp"
    assert store.public_url(key) == "https://gallery.s3.example.com/photos/0123456789ab_600.webp"


def test_path_style_public_base() -> None:
    assert public_base_url("https://s3.example.com:9000", "gallery", "path") == "https://s3.example.com:9000/gallery"
    assert public_base_url("http://minio.local", "gallery", "virtual") == "http://gallery.minio.local"


def test_album_subpath_is_optional(credentials: StorageCredentials, fake_s3) -> None:
    with_album = ObjectStore(credentials, StorageConfig(album_subpath=True), client=fake_s3)
    without_album = ObjectStore(credentials, StorageConfig(), client=fake_s3)

    assert with_album.object_key("abc", 1800, "jpg", album="2025-01-26") == "photos/2025-01-26/abc_1800.jpg"
    assert without_album.object_key("abc", 1800, "jpg", album="2025-01-26") == "photos/abc_1800.jpg"


def test_key_is_recovered_from_its_url(store: ObjectStore) -> None:
    url = store.public_url("photos/my album/abc_600.webp")

    assert " " not in url
    assert store.key_from_url(url) == "photos/my album/abc_600.webp"
    assert store.key_from_url("https://elsewhere.example.com/photos/abc_600.webp") is None
    assert store.key_from_url("") is None


def test_upload_sets_caching_and_public_access(store: ObjectStore, fake_s3) -> None:
    url = store.upload("photos/abc_600.webp", b"payload", "image/webp")

    assert url == "https://gallery.s3.example.com/photos/abc_600.webp"
    stored = fake_s3.objects["photos/abc_600.webp"]
    assert stored["Bucket"] == "gallery"
    assert stored["Body"] == b"payload"
    assert stored["ContentType"] == "image/webp"
    assert stored["CacheControl"] == "public, max-age=31536000, immutable"
    assert stored["ACL"] == "public-read"


def test_upload_failure_raises_storage_error(store: ObjectStore, fake_s3) -> None:
    fake_s3.fail_put.add("photos/abc_600.webp")

    with pytest.raises(StorageError, match="InternalError"):
        store.upload("photos/abc_600.webp", b"payload", "image/webp")


def test_deletions_are_independent(store: ObjectStore, fake_s3) -> None:
    """One failing delete neither raises nor stops its siblings."""

    fake_s3.objects.update({"photos/a_600.webp": {}, "photos/a_1800.webp": {}})
    fake_s3.fail_delete.add("photos/a_600.webp")

    outcome = store.delete_objects(["photos/a_600.webp", "photos/a_1800.webp"])

    assert outcome.deleted == ["photos/a_1800.webp"]
    assert list(outcome.failed) == ["photos/a_600.webp"]
    assert "photos/a_1800.webp" not in fake_s3.objects
    assert sorted(fake_s3.delete_attempts) == ["photos/a_1800.webp", "photos/a_600.webp"]


def test_delete_of_nothing_makes_no_calls(store: ObjectStore, fake_s3) -> None:
    outcome = store.delete_objects([])

    assert outcome.deleted == []
    assert fake_s3.delete_attempts == []


def test_duplicate_keys_are_deleted_once(store: ObjectStore, fake_s3) -> None:
    store.delete_objects(["photos/a.webp", "photos/a.webp"])

    assert fake_s3.delete_attempts == ["photos/a.webp"]
