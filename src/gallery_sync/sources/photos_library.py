"""Photo-library source driven by the ``osxphotos`` command-line tool.

Enumeration runs ``osxphotos query --album <name> --json``; originals are
exported on demand into a run-scoped temporary directory named by UUID.
Library UUIDs are the identities, so re-exports of the same asset keep
their catalogue entry even when the exported bytes differ.
"""

from __future__ import annotations

import json
import subprocess
import tempfile
from collections.abc import Callable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from pathlib import Path
from typing import Any

from gallery_sync.errors import EnumerationError, SourceError
from gallery_sync.exif import metadata_from_library_record
from gallery_sync.models import CaptureMetadata, SourcePhoto
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "source", "source": "photos_library"})

CommandRunner = Callable[[Sequence[str]], str]

DEFAULT_EXPORT_EXTENSIONS: tuple[str, ...] = (".jpeg", ".jpg", ".png")
UUID_LIST_NAME = "uuids.txt"


def run_command(args: Sequence[str]) -> str:
    """Run ``args`` and return stdout.

    Raises:
        subprocess.CalledProcessError: On a non-zero exit status.
        OSError: If the executable cannot be started.
    """

    completed = subprocess.run(list(args), check=True, capture_output=True, text=True)
    return completed.stdout


def _command_failure(exc: Exception) -> str:
    if isinstance(exc, subprocess.CalledProcessError):
        stderr = (exc.stderr or "").strip() if isinstance(exc.stderr, str) else ""
        return f"exit status {exc.returncode}" + (f": {stderr}" if stderr else "")
    return str(exc)


def _as_positive_int(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    number = int(value)
    return number if number > 0 else None


class PhotosLibrarySource:
    """Members of one named album in the local photo library."""

    name = "photos_library"

    def __init__(
        self,
        album: str,
        *,
        executable: str = "osxphotos",
        export_extensions: Sequence[str] = DEFAULT_EXPORT_EXTENSIONS,
        runner: CommandRunner | None = None,
    ) -> None:
        self.album = album
        self._executable = executable
        self._export_extensions = tuple(export_extensions) or DEFAULT_EXPORT_EXTENSIONS
        self._runner = runner or run_command

    def query_args(self) -> list[str]:
        return [self._executable, "query", "--album", self.album, "--json"]

    def export_args(self, export_dir: Path, uuid_file: Path) -> list[str]:
        return [
            self._executable,
            "export",
            str(export_dir),
            "--uuid-from-file",
            str(uuid_file),
            "--skip-original-if-edited",
            "--convert-to-jpeg",
            "--filename",
            "{uuid}",
            "--edited-suffix",
            "",
            "--no-progress",
        ]

    def enumerate(self) -> list[SourcePhoto]:
        """Query the album; any failure aborts instead of yielding a partial list.

        Raises:
            EnumerationError: If the tool fails or prints something other than a JSON array.
        """

        try:
            output = self._runner(self.query_args())
        except (subprocess.CalledProcessError, OSError) as exc:
            raise EnumerationError(f"Photo library query for album {self.album!r} failed: {_command_failure(exc)}") from exc

        try:
            records = json.loads(output or "[]")
        except json.JSONDecodeError as exc:
            raise EnumerationError(f"Photo library query returned invalid JSON: {exc}") from exc
        if not isinstance(records, list):
            raise EnumerationError("Photo library query did not return a JSON array")

        photos: list[SourcePhoto] = []
        for record in records:
            if not isinstance(record, Mapping) or record.get("isphoto") is not True:
                continue
            uuid = record.get("uuid")
            if not isinstance(uuid, str) or not uuid:
                LOGGER.warning("library_record_skipped", extra={"reason": "missing uuid"})
                continue
            filename = record.get("original_filename") or record.get("filename") or uuid
            photos.append(
                SourcePhoto(
                    source_key=uuid,
                    filename=str(filename),
                    width=_as_positive_int(record.get("original_width")),
                    height=_as_positive_int(record.get("original_height")),
                    metadata=metadata_from_library_record(record),
                )
            )

        photos.sort(key=lambda photo: photo.source_key)
        LOGGER.info("library_query_complete", extra={"album": self.album, "photo_count": len(photos)})
        return photos

    def identify(self, photo: SourcePhoto) -> str:
        return photo.source_key

    def owns_identity(self, photo_id: str) -> bool:
        return "-" in photo_id

    @contextmanager
    def materialize(self, photos: Sequence[SourcePhoto]) -> Iterator[dict[str, Path]]:
        """Export ``photos`` into a temporary directory removed on every exit path.

        Photos the tool did not produce a file for are missing from the
        yielded mapping.

        Raises:
            SourceError: If the export command fails.
        """

        uuids = [photo.source_key for photo in photos]
        with tempfile.TemporaryDirectory(prefix="gallery-sync-export-") as tmp:
            export_dir = Path(tmp)
            if not uuids:
                yield {}
                return

            uuid_file = export_dir / UUID_LIST_NAME
            uuid_file.write_text("\n".join(uuids) + "\n", encoding="utf-8")

            LOGGER.info("library_export_start", extra={"photo_count": len(uuids), "export_dir": str(export_dir)})
            try:
                self._runner(self.export_args(export_dir, uuid_file))
            except (subprocess.CalledProcessError, OSError) as exc:
                raise SourceError(f"Photo library export failed: {_command_failure(exc)}") from exc

            exported: dict[str, Path] = {}
            for photo in photos:
                located = self._locate_export(export_dir, photo.source_key)
                if located is None:
                    LOGGER.warning("library_export_missing", extra={"id": photo.source_key, "photo_filename": photo.filename})
                    continue
                identity = photo.photo_id or photo.source_key
                exported[identity] = located
            yield exported

    def _locate_export(self, export_dir: Path, uuid: str) -> Path | None:
        for extension in self._export_extensions:
            candidate = export_dir / f"{uuid}{extension}"
            if candidate.is_file():
                return candidate
        return None

    def native_metadata(self, photo: SourcePhoto) -> CaptureMetadata | None:
        return photo.metadata


__all__ = ["CommandRunner", "DEFAULT_EXPORT_EXTENSIONS", "PhotosLibrarySource", "run_command"]
