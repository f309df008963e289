"""S3-compatible object store client for rendition uploads and cleanup."""

from __future__ import annotations

from collections.abc import Iterable
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote, unquote, urlsplit

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from gallery_sync.config import StorageConfig, StorageCredentials
from gallery_sync.errors import StorageError
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "storage"})

RENDITION_SIZES: tuple[int, int] = (600, 1800)


@dataclass
class DeleteOutcome:
    """Per-key result of a best-effort bulk delete."""

    deleted: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)


def build_s3_client(credentials: StorageCredentials, addressing_style: str) -> Any:
    """Create a boto3 S3 client for the configured endpoint."""

    return boto3.client(
        "s3",
        endpoint_url=credentials.endpoint_url,
        region_name=credentials.region,
        aws_access_key_id=credentials.access_key_id,
        aws_secret_access_key=credentials.secret_access_key,
        config=BotoConfig(
            s3={"addressing_style": addressing_style},
            retries={"max_attempts": 3, "mode": "standard"},
        ),
    )


def public_base_url(endpoint_url: str, bucket: str, addressing_style: str) -> str:
    """Public URL prefix for objects in ``bucket``.

    ``virtual`` gives ``https://<bucket>.<endpoint host>``; ``path`` gives
    ``https://<endpoint host>/<bucket>``.
    """

    parts = urlsplit(endpoint_url)
    scheme = parts.scheme or "https"
    host = parts.netloc or parts.path.strip("/")
    if addressing_style == "path":
        return f"{scheme}://{host}/{bucket}"
    return f"{scheme}://{bucket}.{host}"


class ObjectStore:
    """Uploads renditions under deterministic keys and removes orphaned ones."""

    def __init__(self, credentials: StorageCredentials, config: StorageConfig, client: Any | None = None) -> None:
        self._bucket = credentials.bucket
        self._config = config
        self._client = client if client is not None else build_s3_client(credentials, config.addressing_style)
        self._public_base = public_base_url(credentials.endpoint_url, credentials.bucket, config.addressing_style)

    @property
    def public_base(self) -> str:
        return self._public_base

    def object_key(self, photo_id: str, size: int, extension: str, album: str | None = None) -> str:
        """``<prefix>/[<album>/]<id>_<size>.<ext>``; the album segment only when configured."""

        segments = [self._config.key_prefix.strip("/")] if self._config.key_prefix else []
        if self._config.album_subpath and album:
            segments.append(album.strip("/"))
        segments.append(f"{photo_id}_{size}.{extension}")
        return "/".join(segments)

    def public_url(self, key: str) -> str:
        return f"{self._public_base}/{quote(key, safe='/')}"

    def key_from_url(self, url: str) -> str | None:
        """Recover an object key from a URL built by :meth:`public_url`, if it belongs to this bucket."""

        prefix = f"{self._public_base}/"
        if not url or not url.startswith(prefix):
            return None
        return unquote(url[len(prefix) :]) or None

    def upload(self, key: str, data: bytes, content_type: str) -> str:
        """Store ``data`` publicly with immutable caching and return its public URL.

        Raises:
            StorageError: If the request fails.
        """

        try:
            self._client.put_object(
                Bucket=self._bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                CacheControl=self._config.cache_control,
                ACL=self._config.acl,
            )
        except (ClientError, BotoCoreError) as exc:
            raise StorageError(f"upload of {key} failed: {_describe_error(exc)}") from exc

        LOGGER.debug("object_uploaded", extra={"key": key, "bytes": len(data), "content_type": content_type})
        return self.public_url(key)

    def delete_objects(self, keys: Iterable[str]) -> DeleteOutcome:
        """Delete every key independently and concurrently.

        A failing key is logged and reported; it never prevents the other
        deletions and never raises.
        """

        unique_keys = list(dict.fromkeys(keys))
        outcome = DeleteOutcome()
        if not unique_keys:
            return outcome

        workers = max(1, min(self._config.delete_workers, len(unique_keys)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {executor.submit(self._delete_one, key): key for key in unique_keys}
            for future in as_completed(futures):
                key = futures[future]
                error = future.result()
                if error is None:
                    outcome.deleted.append(key)
                else:
                    outcome.failed[key] = error
                    LOGGER.warning("object_delete_failed", extra={"key": key, "error": error})

        outcome.deleted.sort()
        return outcome

    def _delete_one(self, key: str) -> str | None:
        try:
            self._client.delete_object(Bucket=self._bucket, Key=key)
        except (ClientError, BotoCoreError) as exc:
            return _describe_error(exc)
        return None


def _describe_error(exc: Exception) -> str:
    if isinstance(exc, ClientError):
        error = exc.response.get("Error", {})
        code = error.get("Code") or "ClientError"
        message = error.get("Message") or str(exc)
        endpoint = error.get("Endpoint")
        suffix = f" (redirect to {endpoint})" if endpoint else ""
        return f"[{code}] {message}{suffix}"
    return f"[{type(exc).__name__}] {exc}"


__all__ = ["DeleteOutcome", "ObjectStore", "RENDITION_SIZES", "build_s3_client", "public_base_url"]
