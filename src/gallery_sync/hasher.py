"""Content identity helpers for source files."""

from __future__ import annotations

import hashlib
import re
from pathlib import Path
from typing import Final

CONTENT_ID_LENGTH: Final[int] = 12

_CONTENT_ID_RE: Final[re.Pattern[str]] = re.compile(rf"^[0-9a-f]{{{CONTENT_ID_LENGTH}}}$")


def compute_content_id(path: Path, chunk_size: int = 1 << 20) -> str:
    """Return the content identity of a file.

    The identity is the first 12 hex characters of the SHA-256 digest of the
    raw bytes: identical bytes give the same id, any edit gives a new one.

    Raises:
        OSError: If the file cannot be read.
    """

    digest = hashlib.sha256()
    with path.open("rb") as handle:
        for chunk in iter(lambda: handle.read(chunk_size), b""):
            digest.update(chunk)
    return digest.hexdigest()[:CONTENT_ID_LENGTH]


def content_id_for_bytes(data: bytes) -> str:
    """Same as :func:`compute_content_id` for an in-memory buffer."""

    return hashlib.sha256(data).hexdigest()[:CONTENT_ID_LENGTH]


def is_content_id(photo_id: str) -> bool:
    """True when ``photo_id`` has the shape of a content-hash identity."""

    return bool(_CONTENT_ID_RE.match(photo_id))


__all__ = ["CONTENT_ID_LENGTH", "compute_content_id", "content_id_for_bytes", "is_content_id"]
