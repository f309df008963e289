"""Capture metadata extraction and display formatting.

Formatting helpers are pure functions from a raw value to the string
stored in the catalogue. Their output is part of the catalogue format, so
numbers are rendered the way the gallery front-end has always seen them:
integral floats without a trailing ``.0`` and other values in their
shortest round-trip form.

Location metadata (the GPS IFD) is never read.
"""

from __future__ import annotations

import io
import math
import re
from collections.abc import Callable, Mapping
from datetime import datetime
from typing import Any, TypeVar

from PIL import ExifTags, Image

from gallery_sync.models import CaptureMetadata, ExifSummary
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "exif"})

T = TypeVar("T")

_EXIF_DATETIME_FORMATS: tuple[str, ...] = ("%Y:%m:%d %H:%M:%S", "%Y-%m-%d %H:%M:%S", "%Y:%m:%d %H:%M")
_APPLE_DUPLICATE_RE = re.compile(r"apple apple", re.IGNORECASE)


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves away from zero for positives, matching browser ``Math.round``."""

    factor = 10**digits
    return math.floor(value * factor + 0.5) / factor


def format_number(value: float | int) -> str:
    """Render a number without a spurious ``.0`` (``2.0`` -> ``"2"``, ``0.3`` -> ``"0.3"``)."""

    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return repr(value) if isinstance(value, float) else str(value)


def format_shutter_speed(seconds: float | None) -> str | None:
    """``2.0`` -> ``"2s"``; ``0.004`` -> ``"1/250s"``."""

    if seconds is None or seconds <= 0:
        return None
    if seconds >= 1:
        return f"{format_number(seconds)}s"
    return f"1/{int(round_half_up(1 / seconds))}s"


def format_exposure_compensation(ev: float | None) -> str | None:
    """``0`` -> ``"0 EV"``, ``0.3`` -> ``"+0.3 EV"``, ``-1`` -> ``"-1 EV"``, ``None`` -> ``None``."""

    if ev is None:
        return None
    if ev == 0:
        return "0 EV"
    sign = "+" if ev > 0 else ""
    return f"{sign}{format_number(ev)} EV"


def format_focal_length(mm: float | None) -> str | None:
    """Round to one decimal and append ``mm``."""

    if mm is None:
        return None
    return f"{format_number(round_half_up(float(mm), 1))}mm"


def format_aperture(f_number: float | None) -> str | None:
    if f_number is None:
        return None
    return f"f/{format_number(f_number)}"


def format_camera(make: str | None, model: str | None) -> str | None:
    """Join make and model, collapsing the ``Apple Apple ...`` duplication some sources emit."""

    camera = " ".join(part for part in (make, model) if part)
    camera = _APPLE_DUPLICATE_RE.sub("Apple", camera, count=1)
    return camera or None


def build_exif_summary(metadata: CaptureMetadata | None) -> ExifSummary:
    """Turn raw capture metadata into the sparse catalogue ``exif`` block."""

    if metadata is None:
        return ExifSummary()
    return ExifSummary(
        camera=format_camera(metadata.make, metadata.model),
        lens=metadata.lens or None,
        focal_length=format_focal_length(metadata.focal_length),
        focal_length_35mm=format_focal_length(metadata.focal_length_35mm),
        aperture=format_aperture(metadata.aperture),
        shutter_speed=format_shutter_speed(metadata.shutter_speed),
        iso=metadata.iso,
        exposure_compensation=format_exposure_compensation(metadata.exposure_bias),
    )


def parse_exif_datetime(value: Any) -> str | None:
    """Parse an EXIF ``YYYY:MM:DD HH:MM:SS`` stamp into ISO ``YYYY-MM-DDTHH:MM:SS``."""

    if isinstance(value, bytes):
        value = value.decode("ascii", errors="ignore")
    if not isinstance(value, str):
        return None
    text = value.strip().replace("\x00", "")
    for fmt in _EXIF_DATETIME_FORMATS:
        try:
            return datetime.strptime(text, fmt).isoformat(timespec="seconds")
        except ValueError:
            continue
    return None


def _clean_text(value: Any) -> str | None:
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="ignore")
    if not isinstance(value, str):
        return None
    text = value.replace("\x00", "").strip()
    return text or None


def _to_float(value: Any) -> float | None:
    if isinstance(value, (tuple, list)):
        value = value[0] if value else None
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError, ZeroDivisionError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number


def _to_int(value: Any) -> int | None:
    number = _to_float(value)
    if number is None:
        return None
    return int(number)


def _rounded(value: Any, digits: int) -> float | None:
    number = _to_float(value)
    if number is None:
        return None
    return round_half_up(number, digits)


def _safe(label: str, getter: Callable[[], T]) -> T | None:
    """Evaluate one field getter; a failure leaves just that field absent."""

    try:
        return getter()
    except Exception as exc:  # noqa: BLE001 - any decoder error only drops the field
        LOGGER.debug("exif_field_unreadable", extra={"field": label, "error": str(exc)})
        return None


def extract_capture_metadata(data: bytes) -> CaptureMetadata:
    """Read capture parameters embedded in image bytes.

    Every field is read independently; unreadable or missing tags leave the
    field ``None``. Images without EXIF yield an empty :class:`CaptureMetadata`.
    """

    try:
        with Image.open(io.BytesIO(data)) as image:
            exif = image.getexif()
    except Exception as exc:  # noqa: BLE001 - metadata is optional for ingestion
        LOGGER.warning("exif_unreadable", extra={"error": str(exc)})
        return CaptureMetadata()

    if not exif:
        return CaptureMetadata()

    base = ExifTags.Base
    sub_ifd: Mapping[int, Any] = _safe("exif_ifd", lambda: exif.get_ifd(ExifTags.IFD.Exif)) or {}

    def tag(key: int) -> Any:
        return sub_ifd.get(key, exif.get(key))

    captured_at = _safe(
        "captured_at",
        lambda: parse_exif_datetime(tag(base.DateTimeOriginal)) or parse_exif_datetime(exif.get(base.DateTime)),
    )

    return CaptureMetadata(
        captured_at=captured_at,
        make=_safe("make", lambda: _clean_text(exif.get(base.Make))),
        model=_safe("model", lambda: _clean_text(exif.get(base.Model))),
        lens=_safe("lens", lambda: _clean_text(tag(base.LensModel))),
        focal_length=_safe("focal_length", lambda: _to_float(tag(base.FocalLength))),
        focal_length_35mm=_safe("focal_length_35mm", lambda: _to_float(tag(base.FocalLengthIn35mmFilm)) or None),
        aperture=_safe("aperture", lambda: _to_float(tag(base.FNumber))),
        shutter_speed=_safe("shutter_speed", lambda: _to_float(tag(base.ExposureTime))),
        iso=_safe("iso", lambda: _to_int(tag(base.ISOSpeedRatings))),
        exposure_bias=_safe("exposure_bias", lambda: _rounded(tag(base.ExposureBiasValue), 1)),
    )


def metadata_from_library_record(record: Mapping[str, Any]) -> CaptureMetadata:
    """Map a photo-library query record (``date`` + ``exif_info``) to :class:`CaptureMetadata`."""

    info = record.get("exif_info")
    if not isinstance(info, Mapping):
        info = {}

    date_value = record.get("date")
    captured_at = date_value if isinstance(date_value, str) and date_value else None

    return CaptureMetadata(
        captured_at=captured_at,
        make=_clean_text(info.get("camera_make")),
        model=_clean_text(info.get("camera_model")),
        lens=_clean_text(info.get("lens_model")),
        focal_length=_to_float(info.get("focal_length")),
        focal_length_35mm=_to_float(info.get("focal_length_35mm")),
        aperture=_to_float(info.get("aperture")),
        shutter_speed=_to_float(info.get("shutter_speed")),
        iso=_to_int(info.get("iso")),
        exposure_bias=_to_float(info.get("exposure_bias")),
    )


__all__ = [
    "build_exif_summary",
    "extract_capture_metadata",
    "format_aperture",
    "format_camera",
    "format_exposure_compensation",
    "format_focal_length",
    "format_number",
    "format_shutter_speed",
    "metadata_from_library_record",
    "parse_exif_datetime",
    "round_half_up",
]
