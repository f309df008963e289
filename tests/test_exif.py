"""Tests for capture metadata formatting and extraction."""

from __future__ import annotations

import io

import pytest
from PIL import ExifTags, Image
from PIL.TiffImagePlugin import IFDRational

from gallery_sync.exif import (
    build_exif_summary,
    extract_capture_metadata,
    format_aperture,
    format_camera,
    format_exposure_compensation,
    format_focal_length,
    format_shutter_speed,
    metadata_from_library_record,
    parse_exif_datetime,
)
from gallery_sync.models import CaptureMetadata


@pytest.mark.parametrize(
    ("seconds", "expected"),
    [(2.0, "2s"), (1, "1s"), (2.5, "2.5s"), (0.004, "1/250s"), (1 / 3, "1/3s"), (0, None), (None, None)],
)
def test_format_shutter_speed(seconds: float | None, expected: str | None) -> None:
    assert format_shutter_speed(seconds) == expected


@pytest.mark.parametrize(
    ("ev", "expected"),
    [(0, "0 EV"), (0.0, "0 EV"), (0.3, "+0.3 EV"), (-1, "-1 EV"), (-0.7, "-0.7 EV"), (1.0, "+1 EV"), (None, None)],
)
def test_format_exposure_compensation(ev: float | None, expected: str | None) -> None:
    assert format_exposure_compensation(ev) == expected


def test_focal_length_rounds_to_one_decimal() -> None:
    assert format_focal_length(6.86) == "6.9mm"
    assert format_focal_length(26) == "26mm"
    assert format_focal_length(24.0) == "24mm"
    assert format_focal_length(None) is None


def test_aperture_is_rendered_verbatim() -> None:
    assert format_aperture(1.8) == "f/1.8"
    assert format_aperture(8.0) == "f/8"


def test_camera_collapses_duplicated_apple_make() -> None:
    assert format_camera("Apple", "Apple iPhone 14") == "Apple iPhone 14"
    assert format_camera("apple", "APPLE iPhone 15 Pro") == "Apple iPhone 15 Pro"
    assert format_camera("FUJIFILM", "X-T5") == "FUJIFILM X-T5"
    assert format_camera(None, "X100V") == "X100V"
    assert format_camera(None, None) is None


def test_summary_omits_absent_fields() -> None:
    """Missing values never become null or zero-filled keys."""

    summary = build_exif_summary(CaptureMetadata(make="Sony", model="ILCE-7M4", iso=400, exposure_bias=None))

    assert summary.to_dict() == {"camera": "Sony ILCE-7M4", "iso": 400}


def test_summary_key_order_is_stable() -> None:
    metadata = CaptureMetadata(
        make="Apple",
        model="Apple iPhone 14",
        lens="iPhone 14 back camera 5.7mm f/1.5",
        focal_length=5.7,
        focal_length_35mm=26,
        aperture=1.5,
        shutter_speed=0.004,
        iso=50,
        exposure_bias=0,
    )

    assert list(build_exif_summary(metadata).to_dict()) == [
        "camera",
        "lens",
        "focal_length",
        "focal_length_35mm",
        "aperture",
        "shutter_speed",
        "iso",
        "exposure_compensation",
    ]


def test_parse_exif_datetime() -> None:
    assert parse_exif_datetime("2024:05:01 10:11:12") == "2024-05-01T10:11:12"
    assert parse_exif_datetime(b"2024:05:01 10:11:12\x00") == "2024-05-01T10:11:12"
    assert parse_exif_datetime("0000:00:00 00:00:00") is None
    assert parse_exif_datetime(None) is None


def _jpeg_with_exif() -> bytes:
    exif = Image.Exif()
    exif[ExifTags.Base.Make] = "Apple"
    exif[ExifTags.Base.Model] = "Apple iPhone 14"
    exif[ExifTags.Base.DateTimeOriginal] = "2024:05:01 10:11:12"
    exif[ExifTags.Base.FNumber] = IFDRational(18, 10)
    exif[ExifTags.Base.ExposureTime] = IFDRational(1, 250)
    exif[ExifTags.Base.ISOSpeedRatings] = 100

    buffer = io.BytesIO()
    Image.new("RGB", (32, 24), "gray").save(buffer, format="JPEG", exif=exif)
    return buffer.getvalue()


def test_extract_capture_metadata_reads_embedded_tags() -> None:
    metadata = extract_capture_metadata(_jpeg_with_exif())

    assert metadata.captured_at == "2024-05-01T10:11:12"
    assert metadata.aperture == pytest.approx(1.8)
    assert metadata.shutter_speed == pytest.approx(0.004)
    assert metadata.iso == 100

    summary = build_exif_summary(metadata)
    assert summary.camera == "Apple iPhone 14"
    assert summary.aperture == "f/1.8"
    assert summary.shutter_speed == "1/250s"


def test_extract_capture_metadata_without_exif_is_empty(make_image) -> None:
    assert extract_capture_metadata(make_image(fmt="PNG")) == CaptureMetadata()


def test_extract_capture_metadata_tolerates_garbage() -> None:
    assert extract_capture_metadata(b"definitely not an image") == CaptureMetadata()


def test_metadata_from_library_record() -> None:
    record = {
        "uuid": "8D3E-11",
        "date": "2024-05-01T10:11:12-07:00",
        "exif_info": {
            "camera_make": "Apple",
            "camera_model": "Apple iPhone 14",
            "lens_model": "iPhone 14 back camera",
            "focal_length": 5.7,
            "aperture": 1.5,
            "shutter_speed": 0.01,
            "iso": 64,
            "exposure_bias": 0.3,
        },
    }

    summary = build_exif_summary(metadata_from_library_record(record))

    assert summary.to_dict() == {
        "camera": "Apple iPhone 14",
        "lens": "iPhone 14 back camera",
        "focal_length": "5.7mm",
        "aperture": "f/1.5",
        "shutter_speed": "1/100s",
        "iso": 64,
        "exposure_compensation": "+0.3 EV",
    }


def test_library_record_without_exif_info() -> None:
    metadata = metadata_from_library_record({"date": None, "exif_info": None})

    assert metadata == CaptureMetadata()


def test_embedded_f_number_is_not_rounded() -> None:
    exif = Image.Exif()
    exif[ExifTags.Base.FNumber] = IFDRational(1414, 1000)
    buffer = io.BytesIO()
    Image.new("RGB", (16, 16), "gray").save(buffer, format="JPEG", exif=exif)

    metadata = extract_capture_metadata(buffer.getvalue())

    assert metadata.aperture == pytest.approx(1.414)
    assert build_exif_summary(metadata).aperture == "f/1.414"
