"""Turn any historically-seen raw watchlist shape into a canonical snapshot.

Accepted inputs:
- canonical document: ``{"watchlists": {"movies": {...}, "series": {...}}}``
- legacy document: the same per-kind maps at the top level
- per-kind maps keyed ``movies`` and ``series`` (older data says ``tv``)
- list entries as bare ids (``123`` / ``"123"``) or item-like records

Nothing in here raises for malformed input; bad entries are dropped.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from watchlist_sync.domain.documents import WATCHLISTS_VERSION_FIELD
from watchlist_sync.domain.errors import NormalizationError
from watchlist_sync.domain.models import Category, ItemRecord, MediaKind, WatchlistSnapshot

logger = logging.getLogger(__name__)

# Preferred id field first, then the two legacy spellings.
_ID_FIELDS = ("id", "tmdb_id", "tmdbId")

# Per-kind map keys in lookup order; the first key present wins for a kind.
_KIND_KEYS: tuple[tuple[MediaKind, tuple[str, ...]], ...] = (
    (MediaKind.MOVIE, ("movies",)),
    (MediaKind.TV, ("series", "tv")),
)

SHAPE_CANONICAL = "canonical"
SHAPE_LEGACY = "legacy"


def _coerce_id(value: Any) -> Optional[str]:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, float):
        if not value.is_integer():
            return None
        value = int(value)
    if isinstance(value, (int, str)):
        text = str(value).strip()
        return text or None
    return None


def extract_entry_id(entry: Any) -> Optional[str]:
    """Identifier of a list entry, or None when the entry yields none."""
    if isinstance(entry, Mapping):
        for key in _ID_FIELDS:
            item_id = _coerce_id(entry.get(key))
            if item_id:
                return item_id
        return None
    return _coerce_id(entry)


def _kind_map(watchlists: Mapping[str, Any], keys: tuple[str, ...]) -> Optional[Mapping[str, Any]]:
    for key in keys:
        value = watchlists.get(key)
        if isinstance(value, Mapping):
            return value
    return None


def _category_entries(kind_map: Optional[Mapping[str, Any]], category: Category) -> list[Any]:
    if kind_map is None:
        return []
    entries = kind_map.get(category.value)
    return list(entries) if isinstance(entries, (list, tuple)) else []


def has_list_data(watchlists: Any) -> bool:
    """True when at least one per-kind category list is non-empty."""
    if not isinstance(watchlists, Mapping):
        return False
    for _, keys in _KIND_KEYS:
        kind_map = _kind_map(watchlists, keys)
        if any(_category_entries(kind_map, category) for category in Category):
            return True
    return False


def _legacy_watchlists(document: Mapping[str, Any]) -> Optional[Mapping[str, Any]]:
    legacy = {
        key: document[key]
        for _, keys in _KIND_KEYS
        for key in keys
        if isinstance(document.get(key), Mapping)
    }
    return legacy or None


def extract_watchlists(document: Any) -> tuple[Optional[Mapping[str, Any]], str]:
    """Locate the per-kind lists inside a raw document.

    Canonical lists win when they hold data (or were written with the version
    marker), then legacy top-level lists, then an empty canonical map.
    Returns ``(watchlists, shape)``; shape is ``canonical``, ``legacy`` or ``""``.
    """
    if not isinstance(document, Mapping):
        return None, ""
    nested = document.get("watchlists")
    canonical = nested if isinstance(nested, Mapping) else None
    if canonical is not None and (
        has_list_data(canonical) or document.get(WATCHLISTS_VERSION_FIELD) is not None
    ):
        return canonical, SHAPE_CANONICAL
    legacy = _legacy_watchlists(document)
    if legacy is not None:
        return legacy, SHAPE_LEGACY
    if canonical is not None:
        return canonical, SHAPE_CANONICAL
    return None, ""


def normalize_watchlists(watchlists: Any, *, owner_id: str) -> WatchlistSnapshot:
    snapshot = WatchlistSnapshot(owner_id=owner_id)
    if not isinstance(watchlists, Mapping):
        return snapshot

    dropped = 0
    for kind, keys in _KIND_KEYS:
        kind_map = _kind_map(watchlists, keys)
        for category in Category:
            target = snapshot.ids(category)
            for entry in _category_entries(kind_map, category):
                item_id = extract_entry_id(entry)
                if item_id is None:
                    dropped += 1
                    continue
                target.add(item_id)
                snapshot.media_kinds.setdefault(item_id, kind)
                if isinstance(entry, Mapping) and item_id not in snapshot.items:
                    _attach_record(snapshot, entry, item_id=item_id, kind=kind)

    if dropped:
        logger.debug("dropped %d watchlist entries without an id (owner_id=%s)", dropped, owner_id)
    return snapshot


def _attach_record(
    snapshot: WatchlistSnapshot,
    entry: Mapping[str, Any],
    *,
    item_id: str,
    kind: MediaKind,
) -> None:
    try:
        snapshot.items[item_id] = ItemRecord.from_raw(entry, item_id=item_id, default_kind=kind)
    except NormalizationError as exc:
        # Keep the membership; only the metadata is unusable.
        logger.debug("ignoring item record: %s", exc)


def normalize_document(document: Any, *, owner_id: str) -> tuple[WatchlistSnapshot, str]:
    """Normalize a whole raw document; returns the snapshot and the detected shape."""
    watchlists, shape = extract_watchlists(document)
    return normalize_watchlists(watchlists, owner_id=owner_id), shape
