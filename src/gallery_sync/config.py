"""Configuration loader and typed settings for the gallery sync job."""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from gallery_sync.errors import ConfigurationError

SETTINGS_ENV = "GALLERY_SYNC_SETTINGS"

SOURCE_KINDS: tuple[str, ...] = ("filesystem", "photos_library")
RENDITION_FORMATS: tuple[str, ...] = ("webp", "jpeg")
ADDRESSING_STYLES: tuple[str, ...] = ("virtual", "path")

# Environment variable -> StorageCredentials attribute.
CREDENTIAL_ENV_VARS: dict[str, str] = {
    "S3_ENDPOINT_URL": "endpoint_url",
    "S3_REGION": "region",
    "S3_BUCKET": "bucket",
    "S3_ACCESS_KEY_ID": "access_key_id",
    "S3_SECRET_ACCESS_KEY": "secret_access_key",
}


@dataclass
class SourceConfig:
    """Where photos come from and how they are filtered."""

    kind: str = "photos_library"
    root: Path = Path("photos")
    album: str = "fxi_io_gallery"
    extensions: frozenset[str] = field(
        default_factory=lambda: frozenset({".jpg", ".jpeg", ".png", ".webp", ".heic", ".tif", ".tiff"})
    )
    undated_album: str = "undated"
    osxphotos_bin: str = "osxphotos"
    export_extensions: tuple[str, ...] = (".jpeg", ".jpg", ".png")


@dataclass
class CatalogueConfig:
    """Location of the persisted JSON catalogue."""

    path: Path = Path("src/data/photos.json")


@dataclass
class RenditionConfig:
    """Derivative sizes, encoder settings and luminance sampling."""

    format: str = "webp"
    thumb_size: int = 600
    thumb_quality: int = 85
    preview_size: int = 1800
    preview_quality: int = 88
    compute_luminance: bool = True
    luminance_grid: int = 50

    @property
    def extension(self) -> str:
        return "jpg" if self.format == "jpeg" else self.format

    @property
    def content_type(self) -> str:
        return f"image/{self.format}"


@dataclass
class StorageConfig:
    """Object key layout and upload directives."""

    key_prefix: str = "photos"
    album_subpath: bool = False
    addressing_style: str = "virtual"
    cache_control: str = "public, max-age=31536000, immutable"
    acl: str = "public-read"
    delete_workers: int = 8


@dataclass
class ProjectsConfig:
    """Inputs and output of the project catalogue aggregation."""

    root: Path = Path("projects")
    output: Path = Path("src/data/projects.json")


@dataclass
class Settings:
    """Top-level settings for one sync invocation."""

    source: SourceConfig = field(default_factory=SourceConfig)
    catalogue: CatalogueConfig = field(default_factory=CatalogueConfig)
    renditions: RenditionConfig = field(default_factory=RenditionConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    projects: ProjectsConfig = field(default_factory=ProjectsConfig)


@dataclass(frozen=True)
class StorageCredentials:
    """Connection details for the S3-compatible bucket. All fields are required."""

    endpoint_url: str
    region: str
    bucket: str
    access_key_id: str
    secret_access_key: str

    def __repr__(self) -> str:
        return (
            f"StorageCredentials(endpoint_url={self.endpoint_url!r}, region={self.region!r}, "
            f"bucket={self.bucket!r}, access_key_id={self.access_key_id!r}, secret_access_key='***')"
        )


def load_storage_credentials(environ: Mapping[str, str] | None = None) -> StorageCredentials:
    """Read object store credentials from environment-style variables.

    Raises:
        ConfigurationError: Naming every variable that is unset or empty.
    """

    env = os.environ if environ is None else environ
    values: dict[str, str] = {}
    missing: list[str] = []
    for var_name, attr in CREDENTIAL_ENV_VARS.items():
        value = (env.get(var_name) or "").strip()
        if not value:
            missing.append(var_name)
            continue
        values[attr] = value

    if missing:
        raise ConfigurationError(
            "Missing object storage configuration. Set "
            + ", ".join(missing)
            + " (required: "
            + ", ".join(CREDENTIAL_ENV_VARS)
            + ")."
        )
    return StorageCredentials(**values)


def _project_root() -> Path:
    return Path(__file__).resolve().parents[2]


def _resolve_settings_path(settings_path: Path | str | None) -> Path:
    """Explicit path, then ``$GALLERY_SYNC_SETTINGS``, then ``config/settings.yaml``."""

    if settings_path:
        return Path(settings_path).expanduser().resolve()

    env_override = os.getenv(SETTINGS_ENV)
    if env_override:
        return Path(env_override).expanduser().resolve()

    candidates = [
        (Path.cwd() / "config" / "settings.yaml").resolve(),
        (_project_root() / "config" / "settings.yaml").resolve(),
    ]
    for candidate in candidates:
        if candidate.exists():
            return candidate
    return candidates[0]


def _as_dict(value: Any) -> dict[str, Any]:
    if isinstance(value, dict):
        return value
    return {}


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _normalize_extension(value: str) -> str:
    text = value.strip().lower()
    return text if text.startswith(".") else f".{text}"


def load_settings(settings_path: Path | str | None = None) -> Settings:
    """Load settings from YAML, falling back to defaults.

    A missing file yields defaults. Keys with the wrong type are ignored
    individually; a value outside an enumerated choice raises
    :class:`ConfigurationError` since it would change pipeline semantics.
    """

    path = _resolve_settings_path(settings_path)
    settings = Settings()

    if not path.exists() or not path.is_file():
        return settings

    with path.open("r", encoding="utf-8") as fp:
        try:
            raw = yaml.safe_load(fp) or {}
        except yaml.YAMLError as exc:
            raise ConfigurationError(f"Could not parse settings file {path}: {exc}") from exc

    if not isinstance(raw, dict):
        return settings

    source_raw = _as_dict(raw.get("source"))
    source_cfg = settings.source
    if isinstance(source_raw.get("kind"), str):
        source_cfg.kind = source_raw["kind"]
    if isinstance(source_raw.get("root"), str):
        source_cfg.root = Path(source_raw["root"])
    if isinstance(source_raw.get("album"), str):
        source_cfg.album = source_raw["album"]
    if isinstance(source_raw.get("extensions"), list):
        source_cfg.extensions = frozenset(
            _normalize_extension(str(item)) for item in source_raw["extensions"] if str(item).strip()
        )
    if isinstance(source_raw.get("undated_album"), str):
        source_cfg.undated_album = source_raw["undated_album"]
    if isinstance(source_raw.get("osxphotos_bin"), str):
        source_cfg.osxphotos_bin = source_raw["osxphotos_bin"]
    if isinstance(source_raw.get("export_extensions"), list):
        source_cfg.export_extensions = tuple(
            _normalize_extension(str(item)) for item in source_raw["export_extensions"] if str(item).strip()
        )

    catalogue_raw = _as_dict(raw.get("catalogue"))
    if isinstance(catalogue_raw.get("path"), str):
        settings.catalogue.path = Path(catalogue_raw["path"])

    renditions_raw = _as_dict(raw.get("renditions"))
    rendition_cfg = settings.renditions
    if isinstance(renditions_raw.get("format"), str):
        rendition_cfg.format = renditions_raw["format"].lower()
    for key in ("thumb_size", "thumb_quality", "preview_size", "preview_quality", "luminance_grid"):
        if _is_int(renditions_raw.get(key)):
            setattr(rendition_cfg, key, renditions_raw[key])
    if isinstance(renditions_raw.get("compute_luminance"), bool):
        rendition_cfg.compute_luminance = renditions_raw["compute_luminance"]

    storage_raw = _as_dict(raw.get("storage"))
    storage_cfg = settings.storage
    if isinstance(storage_raw.get("key_prefix"), str):
        storage_cfg.key_prefix = storage_raw["key_prefix"].strip("/")
    if isinstance(storage_raw.get("album_subpath"), bool):
        storage_cfg.album_subpath = storage_raw["album_subpath"]
    if isinstance(storage_raw.get("addressing_style"), str):
        storage_cfg.addressing_style = storage_raw["addressing_style"].lower()
    if isinstance(storage_raw.get("cache_control"), str):
        storage_cfg.cache_control = storage_raw["cache_control"]
    if isinstance(storage_raw.get("acl"), str):
        storage_cfg.acl = storage_raw["acl"]
    if _is_int(storage_raw.get("delete_workers")):
        storage_cfg.delete_workers = max(1, storage_raw["delete_workers"])

    projects_raw = _as_dict(raw.get("projects"))
    if isinstance(projects_raw.get("root"), str):
        settings.projects.root = Path(projects_raw["root"])
    if isinstance(projects_raw.get("output"), str):
        settings.projects.output = Path(projects_raw["output"])

    validate_settings(settings)
    return settings


def validate_settings(settings: Settings) -> None:
    """Reject enumerated options the pipeline does not understand."""

    if settings.source.kind not in SOURCE_KINDS:
        raise ConfigurationError(
            f"Unsupported source kind {settings.source.kind!r}; expected one of {', '.join(SOURCE_KINDS)}"
        )
    if settings.renditions.format not in RENDITION_FORMATS:
        raise ConfigurationError(
            f"Unsupported rendition format {settings.renditions.format!r}; "
            f"expected one of {', '.join(RENDITION_FORMATS)}"
        )
    if settings.storage.addressing_style not in ADDRESSING_STYLES:
        raise ConfigurationError(
            f"Unsupported addressing style {settings.storage.addressing_style!r}; "
            f"expected one of {', '.join(ADDRESSING_STYLES)}"
        )


__all__ = [
    "CREDENTIAL_ENV_VARS",
    "CatalogueConfig",
    "ProjectsConfig",
    "RenditionConfig",
    "Settings",
    "SourceConfig",
    "StorageConfig",
    "StorageCredentials",
    "load_settings",
    "load_storage_credentials",
    "validate_settings",
]
