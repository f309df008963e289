"""Sync run orchestration: load, enumerate, diff, prune, populate, persist."""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from gallery_sync.albums import resolve_placement
from gallery_sync.catalogue import load_catalogue, save_catalogue
from gallery_sync.config import Settings
from gallery_sync.errors import ConfigurationError, PhotoProcessingError, StorageError, TranscodeError
from gallery_sync.exif import build_exif_summary, extract_capture_metadata
from gallery_sync.models import CatalogueEntry, SourcePhoto
from gallery_sync.reconcile import ReconcilePlan, plan_reconciliation, populate
from gallery_sync.sources import PhotoSource
from gallery_sync.storage import ObjectStore
from gallery_sync.transcoder import ImageTranscoder
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "pipeline"})

# Extension of renditions written before the current encoder generation.
LEGACY_RENDITION_EXTENSION = "jpg"


def format_timestamp(moment: datetime) -> str:
    """UTC ISO-8601 with milliseconds and a ``Z`` suffix."""

    utc = moment.astimezone(timezone.utc) if moment.tzinfo else moment.replace(tzinfo=timezone.utc)
    return utc.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SyncReport:
    """Outcome counts of one run."""

    found: int = 0
    added: int = 0
    failed: int = 0
    removed: int = 0
    unchanged: int = 0
    deferred: int = 0
    duplicates: int = 0
    legacy: int = 0
    orphaned_objects: int = 0
    dry_run: bool = False
    failures: list[PhotoProcessingError] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "found": self.found,
            "added": self.added,
            "failed": self.failed,
            "removed": self.removed,
            "unchanged": self.unchanged,
            "deferred": self.deferred,
            "duplicates": self.duplicates,
            "legacy": self.legacy,
            "orphaned_objects": self.orphaned_objects,
            "dry_run": self.dry_run,
        }


class SyncPipeline:
    """One source, one bucket, one catalogue file.

    The run never touches the store or the catalogue before the source has
    been completely enumerated and identified. Once pruning starts, the
    catalogue is written back even if the add phase aborts.
    """

    def __init__(
        self,
        settings: Settings,
        source: PhotoSource,
        store: ObjectStore | None,
        transcoder: ImageTranscoder | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.settings = settings
        self.source = source
        self.store = store
        self.transcoder = transcoder or ImageTranscoder(settings.renditions)
        self._clock = clock or _utc_now

    @property
    def catalogue_path(self) -> Path:
        return self.settings.catalogue.path

    def run(self, limit: int | None = None, dry_run: bool = False) -> SyncReport:
        """Execute one sync pass.

        Raises:
            EnumerationError: If the source cannot be listed or identified; nothing is modified.
            SourceError: If the source cannot provide files during the add phase.
            ConfigurationError: If no object store was supplied for a non-dry run.
        """

        report = SyncReport(dry_run=dry_run)
        LOGGER.info(
            "sync_start",
            extra={
                "source": self.source.name,
                "catalogue": str(self.catalogue_path),
                "limit": limit,
                "dry_run": dry_run,
            },
        )

        catalogue = load_catalogue(self.catalogue_path)
        LOGGER.info("catalogue_loaded", extra={"entry_count": len(catalogue)})

        photos = self.source.enumerate()
        report.found = len(photos)
        candidates = self._identify(photos, report)

        plan = plan_reconciliation(catalogue, candidates.keys(), self.source.owns_identity, limit)
        report.unchanged = len(plan.kept)
        report.deferred = len(plan.deferred)
        report.legacy = plan.legacy
        LOGGER.info(
            "reconcile_plan",
            extra={
                "kept": len(plan.kept),
                "to_delete": len(plan.to_delete),
                "legacy": plan.legacy,
                "to_add": len(plan.to_add),
                "deferred": len(plan.deferred),
            },
        )

        if dry_run:
            report.removed = len(plan.to_delete)
            for photo_id in plan.to_add:
                LOGGER.info("photo_pending", extra={"id": photo_id, "photo_filename": candidates[photo_id].filename})
            LOGGER.info("sync_complete", extra=report.as_dict())
            return report

        if self.store is None:
            raise ConfigurationError("An object store is required unless running with dry_run")

        new_entries: list[CatalogueEntry] = []
        try:
            self._prune(plan, report)
            self._populate([candidates[photo_id] for photo_id in plan.to_add], new_entries, report)
        finally:
            final = populate(plan.kept, new_entries)
            written = save_catalogue(self.catalogue_path, final)
            LOGGER.info("catalogue_written", extra={"path": str(self.catalogue_path), "entry_count": written})

        LOGGER.info("sync_complete", extra=report.as_dict())
        return report

    def _identify(self, photos: Sequence[SourcePhoto], report: SyncReport) -> dict[str, SourcePhoto]:
        """Attach identities; byte-identical duplicates collapse onto the first occurrence."""

        candidates: dict[str, SourcePhoto] = {}
        for photo in photos:
            photo_id = self.source.identify(photo)
            if photo_id in candidates:
                report.duplicates += 1
                LOGGER.info(
                    "duplicate_source_skipped",
                    extra={"id": photo_id, "photo_filename": photo.filename, "kept_filename": candidates[photo_id].filename},
                )
                continue
            candidates[photo_id] = replace(photo, photo_id=photo_id)
        return candidates

    def _prune(self, plan: ReconcilePlan, report: SyncReport) -> None:
        if not plan.to_delete:
            return
        assert self.store is not None

        keys: list[str] = []
        for entry in plan.to_delete:
            keys.extend(self.rendition_keys(entry))

        outcome = self.store.delete_objects(keys)
        report.removed = len(plan.to_delete)
        report.orphaned_objects = len(outcome.failed)
        LOGGER.info(
            "entries_pruned",
            extra={
                "entries": len(plan.to_delete),
                "objects_deleted": len(outcome.deleted),
                "objects_failed": len(outcome.failed),
            },
        )

    def rendition_keys(self, entry: CatalogueEntry) -> list[str]:
        """Object keys holding ``entry``'s renditions.

        Keys come from the stored URLs when they point into this bucket;
        otherwise they are rebuilt from the naming convention, using the
        legacy extension for ids the active source does not own.
        """

        assert self.store is not None
        renditions = self.settings.renditions
        if self.source.owns_identity(entry.id):
            extension = self.transcoder.extension
        else:
            extension = LEGACY_RENDITION_EXTENSION

        keys: list[str] = []
        for size, url in ((renditions.thumb_size, entry.thumb_url), (renditions.preview_size, entry.preview_url)):
            key = self.store.key_from_url(url) or self.store.object_key(entry.id, size, extension, entry.album)
            keys.append(key)
        return keys

    def _populate(self, photos: Sequence[SourcePhoto], new_entries: list[CatalogueEntry], report: SyncReport) -> None:
        if not photos:
            return

        with self.source.materialize(photos) as files:
            for index, photo in enumerate(photos, start=1):
                photo_id = photo.photo_id or ""
                try:
                    entry = self._ingest(photo, files.get(photo_id))
                except PhotoProcessingError as exc:
                    report.failed += 1
                    report.failures.append(exc)
                    LOGGER.warning(
                        "photo_failed",
                        extra={"id": exc.photo_id, "photo_filename": exc.filename, "error": exc.reason},
                    )
                    continue

                new_entries.append(entry)
                report.added += 1
                LOGGER.info(
                    "photo_added",
                    extra={
                        "id": entry.id,
                        "photo_filename": entry.filename,
                        "album": entry.album,
                        "progress": f"{index}/{len(photos)}",
                    },
                )

    def _ingest(self, photo: SourcePhoto, path: Path | None) -> CatalogueEntry:
        """Extract, transcode and upload one photo.

        Raises:
            PhotoProcessingError: For any failure confined to this photo.
        """

        assert self.store is not None
        photo_id = photo.photo_id or photo.source_key

        def failure(reason: str) -> PhotoProcessingError:
            return PhotoProcessingError(photo_id, photo.filename, reason)

        if path is None:
            raise failure("source produced no file for this photo")
        try:
            data = path.read_bytes()
        except OSError as exc:
            raise failure(f"cannot read {path}: {exc}") from exc

        embedded = extract_capture_metadata(data)
        native = self.source.native_metadata(photo)
        metadata = native.merged_over(embedded) if native is not None else embedded

        try:
            result = self.transcoder.transcode(data)
        except TranscodeError as exc:
            raise failure(f"transcode failed: {exc}") from exc

        ingested_at = format_timestamp(self._clock())
        placement = resolve_placement(
            metadata.captured_at,
            photo.album_hint,
            undated_album=self.settings.source.undated_album,
            ingested_at=ingested_at,
        )

        renditions = self.settings.renditions
        extension = self.transcoder.extension
        content_type = self.transcoder.content_type
        thumb_key = self.store.object_key(photo_id, renditions.thumb_size, extension, placement.album)
        preview_key = self.store.object_key(photo_id, renditions.preview_size, extension, placement.album)
        try:
            thumb_url = self.store.upload(thumb_key, result.thumb, content_type)
            preview_url = self.store.upload(preview_key, result.preview, content_type)
        except StorageError as exc:
            raise failure(str(exc)) from exc

        return CatalogueEntry(
            id=photo_id,
            filename=photo.filename,
            album=placement.album,
            date_taken=placement.date_taken,
            date_uploaded=ingested_at,
            width=photo.width or result.width,
            height=photo.height or result.height,
            thumb_url=thumb_url,
            preview_url=preview_url,
            exif=build_exif_summary(metadata),
            luminance=result.luminance,
        )


__all__ = ["LEGACY_RENDITION_EXTENSION", "SyncPipeline", "SyncReport", "format_timestamp"]
