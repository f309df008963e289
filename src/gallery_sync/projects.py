"""Aggregate per-project ``project.json`` files into one catalogue."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from gallery_sync.errors import EnumerationError
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "projects"})

PROJECT_FILE_NAME = "project.json"


def _year_last(project: Any) -> float:
    value = project.get("year_last") if isinstance(project, dict) else None
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return 0
    return value


def collect_projects(projects_root: Path) -> list[Any]:
    """Read every ``<root>/<dir>/project.json``, newest ``year_last`` first.

    Directories without the file are ignored; unreadable or invalid JSON is
    skipped with a warning.

    Raises:
        EnumerationError: If ``projects_root`` is not a readable directory.
    """

    if not projects_root.is_dir():
        raise EnumerationError(f"Projects directory does not exist: {projects_root}")

    try:
        directories = sorted(child for child in projects_root.iterdir() if child.is_dir())
    except OSError as exc:
        raise EnumerationError(f"Cannot list projects directory {projects_root}: {exc}") from exc

    projects: list[Any] = []
    for directory in directories:
        project_file = directory / PROJECT_FILE_NAME
        if not project_file.is_file():
            continue
        try:
            projects.append(json.loads(project_file.read_text(encoding="utf-8")))
        except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
            LOGGER.warning("project_skipped", extra={"project": directory.name, "error": str(exc)})

    projects.sort(key=_year_last, reverse=True)
    return projects


def sync_projects(projects_root: Path, output: Path) -> int:
    """Write the aggregated project list to ``output`` and return its length."""

    projects = collect_projects(projects_root)
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(json.dumps(projects, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
    LOGGER.info("projects_written", extra={"path": str(output), "project_count": len(projects)})
    return len(projects)


__all__ = ["PROJECT_FILE_NAME", "collect_projects", "sync_projects"]
