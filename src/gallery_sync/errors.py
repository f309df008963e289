"""Exception hierarchy for the photo sync run."""

from __future__ import annotations


class GallerySyncError(RuntimeError):
    """Base class for all gallery sync failures."""


class ConfigurationError(GallerySyncError):
    """Required settings or credentials are missing or invalid. Fatal."""


class EnumerationError(GallerySyncError):
    """The photo source could not be fully enumerated. Fatal.

    Raised instead of returning an empty or partial listing so that the
    reconciler never deletes entries it merely failed to see.
    """


class SourceError(GallerySyncError):
    """The source failed while materializing photos for the add phase. Fatal."""


class PhotoProcessingError(GallerySyncError):
    """A single photo could not be ingested. The run continues without it."""

    def __init__(self, photo_id: str, filename: str, reason: str) -> None:
        super().__init__(f"{filename} ({photo_id}): {reason}")
        self.photo_id = photo_id
        self.filename = filename
        self.reason = reason


class StorageError(GallerySyncError):
    """An object store request failed."""


class TranscodeError(GallerySyncError):
    """Image bytes could not be decoded or re-encoded into renditions."""


__all__ = [
    "ConfigurationError",
    "EnumerationError",
    "GallerySyncError",
    "PhotoProcessingError",
    "SourceError",
    "StorageError",
    "TranscodeError",
]
