"""Persisted JSON catalogue of ingested photos."""

from __future__ import annotations

import json
import os
from collections.abc import Iterable
from pathlib import Path

from gallery_sync.models import CatalogueEntry
from gallery_sync.reconcile import sort_catalogue
from utils.logging import get_logger

LOGGER = get_logger(__name__, extra={"component": "catalogue"})


def load_catalogue(path: Path) -> list[CatalogueEntry]:
    """Read the catalogue file.

    A missing, unreadable or corrupt file is treated as an empty catalogue:
    every source photo then shows up as new. Individual malformed records
    are dropped with a warning instead of discarding the whole file.
    """

    if not path.exists():
        LOGGER.info("catalogue_missing", extra={"path": str(path)})
        return []

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as exc:
        LOGGER.warning("catalogue_unreadable", extra={"path": str(path), "error": str(exc)})
        return []

    if not isinstance(raw, list):
        LOGGER.warning("catalogue_unreadable", extra={"path": str(path), "error": "top-level value is not an array"})
        return []

    entries: list[CatalogueEntry] = []
    seen: set[str] = set()
    for index, item in enumerate(raw):
        if not isinstance(item, dict):
            LOGGER.warning("catalogue_entry_skipped", extra={"index": index, "error": "not an object"})
            continue
        try:
            entry = CatalogueEntry.from_dict(item)
        except ValueError as exc:
            LOGGER.warning("catalogue_entry_skipped", extra={"index": index, "error": str(exc)})
            continue
        if entry.id in seen:
            LOGGER.warning("catalogue_entry_skipped", extra={"index": index, "id": entry.id, "error": "duplicate id"})
            continue
        seen.add(entry.id)
        entries.append(entry)

    return entries


def serialize_catalogue(entries: Iterable[CatalogueEntry]) -> str:
    """Render entries as the on-disk JSON text: newest first, two-space indent, trailing newline."""

    payload = [entry.to_dict() for entry in sort_catalogue(entries)]
    return json.dumps(payload, indent=2, ensure_ascii=False) + "\n"


def save_catalogue(path: Path, entries: Iterable[CatalogueEntry]) -> int:
    """Write the catalogue atomically and return the number of entries written."""

    items = list(entries)
    text = serialize_catalogue(items)
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f".{path.name}.tmp")
    tmp_path.write_text(text, encoding="utf-8")
    os.replace(tmp_path, path)
    return len(items)


__all__ = ["load_catalogue", "save_catalogue", "serialize_catalogue"]
