"""Typed records shared across the sync pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

# Order of keys in the serialized ``exif`` object.
EXIF_FIELDS: tuple[str, ...] = (
    "camera",
    "lens",
    "focal_length",
    "focal_length_35mm",
    "aperture",
    "shutter_speed",
    "iso",
    "exposure_compensation",
)


@dataclass(frozen=True)
class ExifSummary:
    """Display-ready capture parameters. Absent values stay ``None`` and are never serialized."""

    camera: str | None = None
    lens: str | None = None
    focal_length: str | None = None
    focal_length_35mm: str | None = None
    aperture: str | None = None
    shutter_speed: str | None = None
    iso: int | None = None
    exposure_compensation: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {}
        for name in EXIF_FIELDS:
            value = getattr(self, name)
            if value is not None:
                payload[name] = value
        return payload

    @classmethod
    def from_dict(cls, raw: Any) -> "ExifSummary":
        if not isinstance(raw, dict):
            return cls()
        values: dict[str, Any] = {}
        for name in EXIF_FIELDS:
            value = raw.get(name)
            if name == "iso":
                if isinstance(value, int) and not isinstance(value, bool):
                    values[name] = value
            elif isinstance(value, str):
                values[name] = value
        return cls(**values)


@dataclass(frozen=True)
class CaptureMetadata:
    """Raw capture metadata as read from image bytes or a library record.

    Numeric values are kept unformatted; :mod:`gallery_sync.exif` turns
    them into display strings. Location data is never carried.
    """

    captured_at: str | None = None
    make: str | None = None
    model: str | None = None
    lens: str | None = None
    focal_length: float | None = None
    focal_length_35mm: float | None = None
    aperture: float | None = None
    shutter_speed: float | None = None
    iso: int | None = None
    exposure_bias: float | None = None

    def merged_over(self, fallback: "CaptureMetadata") -> "CaptureMetadata":
        """Return a copy where every absent field is taken from ``fallback``."""

        values = {}
        for item in fields(self):
            value = getattr(self, item.name)
            values[item.name] = value if value is not None else getattr(fallback, item.name)
        return CaptureMetadata(**values)


@dataclass(frozen=True)
class SourcePhoto:
    """One candidate produced by a source enumeration.

    ``source_key`` is the handle the source needs to fetch bytes later
    (an absolute path or a library UUID). ``photo_id`` is filled in by the
    source's identity step.
    """

    source_key: str
    filename: str
    photo_id: str | None = None
    path: Path | None = None
    width: int | None = None
    height: int | None = None
    album_hint: str | None = None
    metadata: CaptureMetadata | None = None


@dataclass(frozen=True)
class CatalogueEntry:
    """One durable catalogue record. Entries are added or removed whole, never edited.

    Entries loaded from disk keep their decoded JSON object in ``record`` and
    serialize back to it unchanged; the typed fields are a read-only view used
    for sorting and pruning.
    """

    id: str
    filename: str
    album: str
    date_taken: str
    date_uploaded: str
    width: int
    height: int
    thumb_url: str
    preview_url: str
    exif: ExifSummary = field(default_factory=ExifSummary)
    luminance: float | None = None
    record: dict[str, Any] | None = field(default=None, compare=False, repr=False)

    def to_dict(self) -> dict[str, Any]:
        if self.record is not None:
            return dict(self.record)
        payload: dict[str, Any] = {
            "id": self.id,
            "filename": self.filename,
            "album": self.album,
            "date_taken": self.date_taken,
            "date_uploaded": self.date_uploaded,
            "width": self.width,
            "height": self.height,
            "thumb_url": self.thumb_url,
            "preview_url": self.preview_url,
            "exif": self.exif.to_dict(),
        }
        if self.luminance is not None:
            payload["luminance"] = self.luminance
        return payload

    @classmethod
    def from_dict(cls, raw: dict[str, Any]) -> "CatalogueEntry":
        """Build an entry from decoded JSON, keeping the whole object verbatim for serialization.

        Raises:
            ValueError: If ``raw`` has no usable ``id``.
        """

        photo_id = raw.get("id")
        if not isinstance(photo_id, str) or not photo_id:
            raise ValueError("catalogue entry has no id")

        luminance = raw.get("luminance")
        if isinstance(luminance, bool) or not isinstance(luminance, (int, float)):
            luminance = None

        return cls(
            id=photo_id,
            filename=str(raw.get("filename") or ""),
            album=str(raw.get("album") or ""),
            date_taken=str(raw.get("date_taken") or ""),
            date_uploaded=str(raw.get("date_uploaded") or ""),
            width=_as_int(raw.get("width")),
            height=_as_int(raw.get("height")),
            thumb_url=str(raw.get("thumb_url") or ""),
            preview_url=str(raw.get("preview_url") or ""),
            exif=ExifSummary.from_dict(raw.get("exif")),
            luminance=luminance,
            record=dict(raw),
        )


def _as_int(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        return int(value)
    return 0


__all__ = ["CaptureMetadata", "CatalogueEntry", "EXIF_FIELDS", "ExifSummary", "SourcePhoto"]
