"""Filesystem scanner for the photo source root."""

from __future__ import annotations

import os
from collections.abc import Iterable
from dataclasses import dataclass
from pathlib import Path

from gallery_sync.errors import EnumerationError
from utils.logging import get_logger

LOGGER = get_logger(__name__)

DEFAULT_IMAGE_EXTENSIONS: frozenset[str] = frozenset(
    {
        ".jpg",
        ".jpeg",
        ".png",
        ".webp",
        ".heic",
        ".tif",
        ".tiff",
    }
)

# Files some operating systems drop next to photos.
_SYSTEM_FILE_NAMES: frozenset[str] = frozenset({"thumbs.db", "desktop.ini", "icon\r"})


@dataclass(frozen=True)
class FileInfo:
    """Lightweight file metadata for scanning results."""

    path: Path
    size_bytes: int
    mtime: float

    @property
    def folder(self) -> str | None:
        """Name of the directory holding the file, used for album derivation."""

        return self.path.parent.name or None


def is_hidden(name: str) -> bool:
    return name.startswith(".") or name.lower() in _SYSTEM_FILE_NAMES


def _raise_walk_error(exc: OSError) -> None:
    raise EnumerationError(f"Cannot read source directory {exc.filename}: {exc.strerror or exc}") from exc


def scan_root(root: Path, extensions: Iterable[str] | None = None) -> list[FileInfo]:
    """Recursively list eligible image files below ``root``.

    Hidden files and directories are skipped and only extensions from the
    allow-list are kept. The result is sorted by path so repeated scans of
    an unchanged tree are identical.

    Args:
        root: Source root directory.
        extensions: Allowed extensions, lowercased and including the leading dot.
            Defaults to :data:`DEFAULT_IMAGE_EXTENSIONS`.

    Raises:
        EnumerationError: If the root is missing or any directory cannot be read.
            A partial listing is never returned.
    """

    allowed = frozenset(extensions) if extensions else DEFAULT_IMAGE_EXTENSIONS
    root = root.expanduser()

    if not root.exists():
        raise EnumerationError(f"Source root does not exist: {root}")
    if not root.is_dir():
        raise EnumerationError(f"Source root is not a directory: {root}")

    found: list[FileInfo] = []
    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise_walk_error):
        dirnames[:] = sorted(name for name in dirnames if not is_hidden(name))
        for name in sorted(filenames):
            if is_hidden(name):
                continue
            path = Path(dirpath) / name
            if path.suffix.lower() not in allowed:
                continue
            try:
                stat = path.stat()
            except OSError as exc:
                raise EnumerationError(f"Cannot stat source file {path}: {exc}") from exc
            found.append(FileInfo(path=path.resolve(), size_bytes=stat.st_size, mtime=stat.st_mtime))

    found.sort(key=lambda info: str(info.path))
    LOGGER.info("scan_complete", extra={"root": str(root), "file_count": len(found)})
    return found


__all__ = ["DEFAULT_IMAGE_EXTENSIONS", "FileInfo", "is_hidden", "scan_root"]
