"""Shared fixtures: a fake S3 client, in-test images and isolated settings."""

from __future__ import annotations

import io
import threading
from collections.abc import Callable, Iterable
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest
from botocore.exceptions import ClientError
from PIL import Image

from gallery_sync.config import Settings, StorageConfig, StorageCredentials
from gallery_sync.storage import ObjectStore

FIXED_NOW = datetime(2026, 1, 2, 3, 4, 5, 678000, tzinfo=timezone.utc)
FIXED_NOW_ISO = "2026-01-02T03:04:05.678Z"


class FakeS3Client:
    """Records put/delete calls; selected keys fail with a ClientError."""

    def __init__(self, fail_put: Iterable[str] = (), fail_delete: Iterable[str] = ()) -> None:
        self.objects: dict[str, dict[str, Any]] = {}
        self.deleted: list[str] = []
        self.delete_attempts: list[str] = []
        self.fail_put = set(fail_put)
        self.fail_delete = set(fail_delete)
        self._lock = threading.Lock()

    @staticmethod
    def _error(operation: str) -> ClientError:
        return ClientError({"Error": {"Code": "InternalError", "Message": "simulated failure"}}, operation)

    def put_object(self, **kwargs: Any) -> dict[str, Any]:
        if kwargs["Key"] in self.fail_put:
            raise self._error("PutObject")
        with self._lock:
            self.objects[kwargs["Key"]] = kwargs
        return {}

    def delete_object(self, Bucket: str, Key: str) -> dict[str, Any]:  # noqa: N803 - boto3 keyword names
        with self._lock:
            self.delete_attempts.append(Key)
        if Key in self.fail_delete:
            raise self._error("DeleteObject")
        with self._lock:
            self.objects.pop(Key, None)
            self.deleted.append(Key)
        return {}


@pytest.fixture
def credentials() -> StorageCredentials:
    return StorageCredentials(
        endpoint_url="https://s3.example.com",
        region="auto",
        bucket="gallery",
        access_key_id="AKIATEST",
        secret_access_key="not-a-secret",
    )


@pytest.fixture
def fake_s3() -> FakeS3Client:
    return FakeS3Client()


@pytest.fixture
def store(credentials: StorageCredentials, fake_s3: FakeS3Client) -> ObjectStore:
    return ObjectStore(credentials, StorageConfig(), client=fake_s3)


@pytest.fixture
def clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    cfg = Settings()
    cfg.source.kind = "filesystem"
    cfg.source.root = tmp_path / "photos"
    cfg.catalogue.path = tmp_path / "data" / "photos.json"
    cfg.projects.root = tmp_path / "projects"
    cfg.projects.output = tmp_path / "data" / "projects.json"
    return cfg


def image_bytes(
    size: tuple[int, int] = (64, 48),
    color: tuple[int, int, int] | str = (200, 120, 40),
    fmt: str = "JPEG",
    exif: Image.Exif | None = None,
) -> bytes:
    image = Image.new("RGB", size, color)
    buffer = io.BytesIO()
    params: dict[str, Any] = {}
    if exif is not None:
        params["exif"] = exif
    image.save(buffer, format=fmt, **params)
    return buffer.getvalue()


@pytest.fixture
def make_image() -> Callable[..., bytes]:
    return image_bytes


@pytest.fixture
def write_photo(tmp_path: Path) -> Callable[..., Path]:
    """Write an image below ``tmp_path/photos`` and return its path."""

    def _write(relative: str, data: bytes | None = None, **image_kwargs: Any) -> Path:
        path = tmp_path / "photos" / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data if data is not None else image_bytes(**image_kwargs))
        return path

    return _write
