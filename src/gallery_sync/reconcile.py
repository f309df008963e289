"""Pure catalogue transitions: diff against the source, then populate."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass

from gallery_sync.models import CatalogueEntry


@dataclass(frozen=True)
class ReconcilePlan:
    """Partition of one run's work.

    ``to_add`` holds the ids that will be ingested this run (already capped);
    ``deferred`` the new ids left for a later run.
    """

    kept: tuple[CatalogueEntry, ...]
    to_delete: tuple[CatalogueEntry, ...]
    to_add: tuple[str, ...]
    deferred: tuple[str, ...]
    legacy: int = 0

    @property
    def kept_ids(self) -> frozenset[str]:
        return frozenset(entry.id for entry in self.kept)


def plan_reconciliation(
    catalogue: Sequence[CatalogueEntry],
    source_ids: Iterable[str],
    owns_identity: Callable[[str], bool],
    limit: int | None = None,
) -> ReconcilePlan:
    """Diff the persisted catalogue against a complete source enumeration.

    An entry is kept iff the active identity scheme owns its id and the
    source still contains it. Entries under a foreign scheme are always
    deleted, even when a matching source item exists. ``limit`` caps only
    the additions; deletions are never capped.

    Args:
        catalogue: Entries as loaded from disk.
        source_ids: Identities of the current source, in enumeration order.
        owns_identity: Predicate telling whether an id belongs to the active scheme.
        limit: Maximum number of additions, ``None`` for no cap.
    """

    ordered_source = list(dict.fromkeys(source_ids))
    present = set(ordered_source)

    kept: list[CatalogueEntry] = []
    to_delete: list[CatalogueEntry] = []
    legacy = 0
    for entry in catalogue:
        if not owns_identity(entry.id):
            legacy += 1
            to_delete.append(entry)
        elif entry.id in present:
            kept.append(entry)
        else:
            to_delete.append(entry)

    kept_ids = {entry.id for entry in kept}
    new_ids = [photo_id for photo_id in ordered_source if photo_id not in kept_ids]
    if limit is not None and limit >= 0:
        to_add, deferred = new_ids[:limit], new_ids[limit:]
    else:
        to_add, deferred = new_ids, []

    return ReconcilePlan(
        kept=tuple(kept),
        to_delete=tuple(to_delete),
        to_add=tuple(to_add),
        deferred=tuple(deferred),
        legacy=legacy,
    )


def sort_catalogue(entries: Iterable[CatalogueEntry]) -> list[CatalogueEntry]:
    """Order by ``date_taken`` descending; ties fall back to ascending id for stable output."""

    by_id = sorted(entries, key=lambda entry: entry.id)
    return sorted(by_id, key=lambda entry: entry.date_taken, reverse=True)


def populate(kept: Iterable[CatalogueEntry], new_entries: Iterable[CatalogueEntry]) -> list[CatalogueEntry]:
    """Combine surviving and freshly ingested entries into the final, sorted catalogue.

    Raises:
        ValueError: If an id would appear twice.
    """

    combined: dict[str, CatalogueEntry] = {}
    for entry in (*kept, *new_entries):
        if entry.id in combined:
            raise ValueError(f"duplicate catalogue id {entry.id!r}")
        combined[entry.id] = entry
    return sort_catalogue(combined.values())


__all__ = ["ReconcilePlan", "plan_reconciliation", "populate", "sort_catalogue"]
