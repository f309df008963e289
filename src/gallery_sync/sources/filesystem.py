"""Directory-tree source with content-hash identities."""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from pathlib import Path

from gallery_sync.errors import EnumerationError
from gallery_sync.hasher import compute_content_id, is_content_id
from gallery_sync.models import CaptureMetadata, SourcePhoto
from gallery_sync.scanner import scan_root


class FilesystemSource:
    """Photos below a root directory; the parent folder name is the album hint."""

    name = "filesystem"

    def __init__(self, root: Path, extensions: Iterable[str] | None = None) -> None:
        self.root = Path(root).expanduser()
        self._extensions = frozenset(extensions) if extensions else None

    def enumerate(self) -> list[SourcePhoto]:
        files = scan_root(self.root, self._extensions)
        resolved_root = self.root.resolve()

        photos: list[SourcePhoto] = []
        for info in files:
            folder = info.folder if info.path.parent != resolved_root else None
            photos.append(
                SourcePhoto(
                    source_key=str(info.path),
                    filename=info.path.name,
                    path=info.path,
                    album_hint=folder,
                )
            )
        return photos

    def identify(self, photo: SourcePhoto) -> str:
        """Content id of the file bytes.

        Raises:
            EnumerationError: If the file vanished or cannot be read. Treating
                it as absent could delete a photo that still exists.
        """

        path = photo.path or Path(photo.source_key)
        try:
            return compute_content_id(path)
        except OSError as exc:
            raise EnumerationError(f"Cannot read source file {path}: {exc}") from exc

    def owns_identity(self, photo_id: str) -> bool:
        return is_content_id(photo_id)

    @contextmanager
    def materialize(self, photos: Sequence[SourcePhoto]) -> Iterator[dict[str, Path]]:
        files: dict[str, Path] = {}
        for photo in photos:
            if photo.photo_id is None:
                continue
            files[photo.photo_id] = photo.path or Path(photo.source_key)
        yield files

    def native_metadata(self, photo: SourcePhoto) -> CaptureMetadata | None:
        return photo.metadata


__all__ = ["FilesystemSource"]
