"""Rendition encoding and perceptual luminance."""

from __future__ import annotations

import io
from dataclasses import dataclass

import numpy as np
from PIL import Image, ImageCms, ImageOps
from PIL.Image import Resampling
from pillow_heif import register_heif_opener

from gallery_sync.config import RenditionConfig
from gallery_sync.errors import TranscodeError
from gallery_sync.exif import round_half_up
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "transcoder"})

register_heif_opener()

# CIE XYZ from linear sRGB (D65).
_RGB_TO_XYZ = np.array(
    [
        [0.4124, 0.3576, 0.1805],
        [0.2126, 0.7152, 0.0722],
        [0.0193, 0.1192, 0.9505],
    ],
    dtype=np.float64,
)
_REFERENCE_WHITE = np.array([95.047, 100.0, 108.883], dtype=np.float64)

_PIL_FORMATS: dict[str, str] = {"webp": "WEBP", "jpeg": "JPEG"}


@dataclass(frozen=True)
class TranscodeResult:
    """Encoded renditions plus facts about the original."""

    thumb: bytes
    preview: bytes
    width: int
    height: int
    luminance: float | None = None


def rgb_to_lab(pixels: np.ndarray) -> np.ndarray:
    """Convert an ``(..., 3)`` array of 8-bit sRGB values to CIE L*a*b*.

    Gamma-encoded sRGB is linearized with the piecewise inverse transfer
    function, mapped to XYZ, normalized by the D65 reference white and
    passed through the cube-root/linear Lab function.
    """

    rgb = np.asarray(pixels, dtype=np.float64) / 255.0
    linear = np.where(rgb > 0.04045, ((rgb + 0.055) / 1.055) ** 2.4, rgb / 12.92)
    xyz = (linear @ _RGB_TO_XYZ.T) * 100.0
    ratio = xyz / _REFERENCE_WHITE
    f = np.where(ratio > 0.008856, np.cbrt(ratio), 7.787 * ratio + 16.0 / 116.0)

    lab = np.empty_like(f)
    lab[..., 0] = 116.0 * f[..., 1] - 16.0
    lab[..., 1] = 500.0 * (f[..., 0] - f[..., 1])
    lab[..., 2] = 200.0 * (f[..., 1] - f[..., 2])
    return lab


def luminance_sample_size(size: tuple[int, int], grid: int) -> tuple[int, int]:
    """Largest ``(width, height)`` with the same aspect ratio that fits inside ``grid`` x ``grid``."""

    bound = max(1, grid)
    width, height = size
    scale = min(bound / width, bound / height)
    return (
        max(1, min(bound, int(round_half_up(width * scale)))),
        max(1, min(bound, int(round_half_up(height * scale)))),
    )


def perceptual_luminance(image: Image.Image, grid: int = 50) -> float:
    """Mean CIE L* (0-100) over a sample fitted inside ``grid`` x ``grid``, one decimal.

    The sample keeps the aspect ratio and is enlarged when the image is
    smaller than the grid.
    """

    size = luminance_sample_size(image.size, grid)
    # Drop alpha before resampling; RGBA resizes premultiply.
    sample = image.convert("RGB").resize(size, resample=Resampling.LANCZOS)
    pixels = np.asarray(sample)
    lightness = rgb_to_lab(pixels.reshape(-1, 3))[:, 0]
    return round_half_up(float(lightness.mean()), 1)


def _to_srgb(image: Image.Image) -> Image.Image:
    """Bake an embedded ICC profile into sRGB pixels so it can be dropped."""

    icc = image.info.get("icc_profile")
    if not icc or image.mode not in ("RGB", "RGBA"):
        return image
    try:
        source_profile = ImageCms.ImageCmsProfile(io.BytesIO(icc))
        target_profile = ImageCms.createProfile("sRGB")
        converted = ImageCms.profileToProfile(image, source_profile, target_profile, outputMode=image.mode)
    except (ImageCms.PyCMSError, OSError, ValueError) as exc:
        LOGGER.debug("icc_conversion_skipped", extra={"error": str(exc)})
        return image
    return converted if converted is not None else image


def _normalize_mode(image: Image.Image, output_format: str) -> Image.Image:
    has_alpha = image.mode in ("RGBA", "LA", "PA") or (image.mode == "P" and "transparency" in image.info)
    if output_format == "jpeg":
        if has_alpha:
            rgba = image.convert("RGBA")
            flattened = Image.new("RGB", rgba.size, (255, 255, 255))
            flattened.paste(rgba, mask=rgba.split()[-1])
            return flattened
        return image if image.mode == "RGB" else image.convert("RGB")
    if has_alpha:
        return image if image.mode == "RGBA" else image.convert("RGBA")
    return image if image.mode == "RGB" else image.convert("RGB")


def build_rendition(image: Image.Image, max_width: int, quality: int, output_format: str) -> bytes:
    """Resize to at most ``max_width`` pixels wide (never upscaling) and encode without metadata."""

    width, height = image.size
    bound = max(1, int(max_width))
    if width > bound:
        new_height = max(1, int(round_half_up(height * bound / width)))
        resized = image.resize((bound, new_height), resample=Resampling.LANCZOS)
    else:
        resized = image.copy()

    resized = _normalize_mode(resized, output_format)
    resized.info = {}

    buffer = io.BytesIO()
    resized.save(buffer, format=_PIL_FORMATS[output_format], quality=quality, exif=b"")
    return buffer.getvalue()


class ImageTranscoder:
    """Produces thumbnail and preview renditions for one original."""

    def __init__(self, config: RenditionConfig) -> None:
        if config.format not in _PIL_FORMATS:
            raise ValueError(f"Unsupported rendition format: {config.format!r}")
        self._config = config

    @property
    def extension(self) -> str:
        return self._config.extension

    @property
    def content_type(self) -> str:
        return self._config.content_type

    def transcode(self, data: bytes) -> TranscodeResult:
        """Decode ``data`` and build both renditions.

        Raises:
            TranscodeError: If the bytes cannot be decoded or the renditions cannot be encoded.
        """

        try:
            return self._transcode(data)
        except MemoryError:
            raise
        except Exception as exc:  # noqa: BLE001 - Pillow plugins raise SyntaxError, struct.error and others
            raise TranscodeError(f"{type(exc).__name__}: {exc}") from exc

    def _transcode(self, data: bytes) -> TranscodeResult:
        cfg = self._config
        with Image.open(io.BytesIO(data)) as opened:
            opened.load()
            oriented = ImageOps.exif_transpose(opened)
        oriented = _to_srgb(oriented)

        thumb = build_rendition(oriented, cfg.thumb_size, cfg.thumb_quality, cfg.format)
        preview = build_rendition(oriented, cfg.preview_size, cfg.preview_quality, cfg.format)
        luminance = perceptual_luminance(oriented, cfg.luminance_grid) if cfg.compute_luminance else None

        width, height = oriented.size
        return TranscodeResult(thumb=thumb, preview=preview, width=width, height=height, luminance=luminance)


__all__ = [
    "ImageTranscoder",
    "TranscodeResult",
    "build_rendition",
    "luminance_sample_size",
    "perceptual_luminance",
    "rgb_to_lab",
]
