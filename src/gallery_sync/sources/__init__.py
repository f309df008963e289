"""Photo sources: where candidates come from and how they are identified."""

from __future__ import annotations

from collections.abc import Sequence
from contextlib import AbstractContextManager
from pathlib import Path
from typing import Protocol, runtime_checkable

from gallery_sync.config import Settings
from gallery_sync.errors import ConfigurationError
from gallery_sync.models import CaptureMetadata, SourcePhoto
from gallery_sync.sources.filesystem import FilesystemSource
from gallery_sync.sources.photos_library import CommandRunner, PhotosLibrarySource


@runtime_checkable
class PhotoSource(Protocol):
    """Capabilities the sync pipeline needs from a source.

    ``enumerate`` must either return the complete candidate list or raise
    :class:`~gallery_sync.errors.EnumerationError`. ``identify`` returns the
    idempotence key; ``owns_identity`` tells whether a catalogue id was
    produced by this source's scheme. ``materialize`` yields readable files
    for the requested photos, keyed by id, and releases anything it
    acquired on exit.
    """

    name: str

    def enumerate(self) -> list[SourcePhoto]: ...

    def identify(self, photo: SourcePhoto) -> str: ...

    def owns_identity(self, photo_id: str) -> bool: ...

    def materialize(self, photos: Sequence[SourcePhoto]) -> AbstractContextManager[dict[str, Path]]: ...

    def native_metadata(self, photo: SourcePhoto) -> CaptureMetadata | None: ...


def build_source(settings: Settings, runner: CommandRunner | None = None) -> PhotoSource:
    """Instantiate the source selected by ``settings.source.kind``."""

    cfg = settings.source
    if cfg.kind == "filesystem":
        return FilesystemSource(cfg.root, extensions=cfg.extensions)
    if cfg.kind == "photos_library":
        return PhotosLibrarySource(
            cfg.album,
            executable=cfg.osxphotos_bin,
            export_extensions=cfg.export_extensions,
            runner=runner,
        )
    raise ConfigurationError(f"Unsupported source kind {cfg.kind!r}")


__all__ = ["FilesystemSource", "PhotoSource", "PhotosLibrarySource", "build_source"]
