"""Command-line entry point for the gallery sync job.

``gallery-sync run`` reconciles the photo source against the bucket and the
catalogue file; ``gallery-sync sync-projects`` rebuilds the project list.
Fatal errors exit with status 1; photos that fail individually are
reported but do not change the exit status.
"""

from __future__ import annotations

from pathlib import Path

import typer

from gallery_sync.config import Settings, load_settings, load_storage_credentials, validate_settings
from gallery_sync.errors import GallerySyncError
from gallery_sync.pipeline import SyncPipeline, SyncReport
from gallery_sync.projects import sync_projects
from gallery_sync.sources import build_source
from gallery_sync.storage import ObjectStore
from utils.logging import get_logger

LOGGER = get_logger(__name__)

app = typer.Typer(add_completion=False, help="Sync a photo source into object storage and the gallery catalogue.")


def _apply_cli_overrides(
    settings: Settings,
    source: str | None,
    root: Path | None,
    album: str | None,
    catalogue: Path | None,
) -> Settings:
    """Apply command-line overrides on top of the loaded settings."""

    if source:
        settings.source.kind = source
    if root is not None:
        settings.source.root = root
    if album:
        settings.source.album = album
    if catalogue is not None:
        settings.catalogue.path = catalogue
    validate_settings(settings)
    return settings


def _echo_report(report: SyncReport) -> None:
    prefix = "[dry run] " if report.dry_run else ""
    typer.echo(
        f"{prefix}found={report.found} added={report.added} skipped={report.failed} "
        f"removed={report.removed} unchanged={report.unchanged} deferred={report.deferred} "
        f"duplicates={report.duplicates}"
    )
    if report.orphaned_objects:
        typer.echo(f"{report.orphaned_objects} remote object(s) could not be deleted", err=True)
    for failure in report.failures:
        typer.echo(f"failed: {failure}", err=True)


@app.command("run")
def run(
    limit: int | None = typer.Option(
        None,
        "--limit",
        min=0,
        help="Maximum number of new photos to ingest in this run. Deletions are never capped.",
    ),
    source: str | None = typer.Option(
        None,
        "--source",
        help="Source kind: filesystem or photos_library. Defaults to source.kind in settings.yaml.",
    ),
    root: Path | None = typer.Option(
        None,
        "--root",
        file_okay=False,
        dir_okay=True,
        help="Photo root directory for the filesystem source.",
    ),
    album: str | None = typer.Option(
        None,
        "--album",
        help="Album name for the photos_library source.",
    ),
    catalogue: Path | None = typer.Option(
        None,
        "--catalogue",
        dir_okay=False,
        help="Catalogue JSON path. Defaults to catalogue.path in settings.yaml.",
    ),
    settings_path: Path | None = typer.Option(
        None,
        "--settings",
        dir_okay=False,
        help="Settings YAML file. Defaults to $GALLERY_SYNC_SETTINGS or config/settings.yaml.",
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Compute and report the plan without touching the bucket or the catalogue.",
    ),
) -> None:
    """Ingest new photos, prune removed ones and rewrite the catalogue."""

    try:
        settings = _apply_cli_overrides(load_settings(settings_path), source, root, album, catalogue)
        store = None if dry_run else ObjectStore(load_storage_credentials(), settings.storage)
        pipeline = SyncPipeline(settings, build_source(settings), store)
        report = pipeline.run(limit=limit, dry_run=dry_run)
    except GallerySyncError as exc:
        LOGGER.error("sync_aborted", extra={"error": str(exc), "error_type": type(exc).__name__})
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    _echo_report(report)


@app.command("sync-projects")
def sync_projects_command(
    root: Path | None = typer.Option(
        None,
        "--root",
        file_okay=False,
        dir_okay=True,
        help="Directory holding <project>/project.json files. Defaults to projects.root in settings.yaml.",
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        dir_okay=False,
        help="Output JSON path. Defaults to projects.output in settings.yaml.",
    ),
    settings_path: Path | None = typer.Option(
        None,
        "--settings",
        dir_okay=False,
        help="Settings YAML file.",
    ),
) -> None:
    """Aggregate project.json files into a single list sorted by most recent year."""

    try:
        settings = load_settings(settings_path)
        target = output or settings.projects.output
        count = sync_projects(root or settings.projects.root, target)
    except GallerySyncError as exc:
        typer.echo(f"error: {exc}", err=True)
        raise typer.Exit(code=1) from exc

    typer.echo(f"wrote {count} projects to {target}")


def main() -> None:
    app()


if __name__ == "__main__":
    main()
