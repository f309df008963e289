"""Album and capture-date derivation."""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date, datetime

_ISO_PREFIX_RE = re.compile(r"^(\d{4})-(\d{2})-(\d{2})")
_MONTH_NAME_RE = re.compile(r"^(\d{4})_([a-z]+)_(\d{1,2})(?!\d)", re.IGNORECASE)

_MONTHS: dict[str, int] = {
    "january": 1,
    "february": 2,
    "march": 3,
    "april": 4,
    "may": 5,
    "june": 6,
    "july": 7,
    "august": 8,
    "september": 9,
    "october": 10,
    "november": 11,
    "december": 12,
}
# Three-letter abbreviations map to the same months.
_MONTHS.update({name[:3]: number for name, number in list(_MONTHS.items())})


@dataclass(frozen=True)
class AlbumPlacement:
    album: str
    date_taken: str


def _valid_date(year: int, month: int, day: int) -> str | None:
    try:
        return date(year, month, day).isoformat()
    except ValueError:
        return None


def parse_folder_date(folder: str) -> str | None:
    """Extract a ``YYYY-MM-DD`` date from a folder name, or ``None``.

    Recognized prefixes are ``2025-01-26...`` and ``2025_january_26...``
    (month names are case-insensitive).
    """

    match = _ISO_PREFIX_RE.match(folder)
    if match:
        year, month, day = (int(part) for part in match.groups())
        return _valid_date(year, month, day)

    match = _MONTH_NAME_RE.match(folder)
    if match:
        month = _MONTHS.get(match.group(2).lower())
        if month is None:
            return None
        return _valid_date(int(match.group(1)), month, int(match.group(3)))

    return None


def album_from_folder(folder: str) -> str:
    """Folder-convention album: the parsed date, else the folder name itself."""

    return parse_folder_date(folder) or folder


def is_iso_timestamp(value: str | None) -> bool:
    """True for an ISO-8601 timestamp with at least a full date."""

    if not value or not _ISO_PREFIX_RE.match(value):
        return False
    try:
        datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return False
    return True


def resolve_placement(
    captured_at: str | None,
    folder: str | None,
    *,
    undated_album: str,
    ingested_at: str,
) -> AlbumPlacement:
    """Decide ``album`` and ``date_taken`` for a new catalogue entry.

    Priority: embedded capture timestamp, then the folder naming
    convention, then ``undated_album``. ``date_taken`` falls back to the
    ingestion time whenever no date signal exists.
    """

    if captured_at and is_iso_timestamp(captured_at):
        return AlbumPlacement(album=captured_at[:10], date_taken=captured_at)

    if folder:
        folder_date = parse_folder_date(folder)
        if folder_date:
            return AlbumPlacement(album=folder_date, date_taken=f"{folder_date}T00:00:00")
        return AlbumPlacement(album=folder, date_taken=ingested_at)

    return AlbumPlacement(album=undated_album, date_taken=ingested_at)


__all__ = [
    "AlbumPlacement",
    "album_from_folder",
    "is_iso_timestamp",
    "parse_folder_date",
    "resolve_placement",
]
