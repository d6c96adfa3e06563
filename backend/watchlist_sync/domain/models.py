from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from watchlist_sync.domain.errors import NormalizationError

# Owner used when nobody is signed in (local-only data).
LOCAL_OWNER = "__local__"

_YEAR_RE = re.compile(r"^\s*(\d{4})")


def owner_key(owner_id: Optional[str]) -> str:
    """Map an optional user id onto the owner key used by the cache."""
    owner = str(owner_id).strip() if owner_id is not None else ""
    return owner or LOCAL_OWNER


def wire_id(item_id: str) -> int | str:
    """Id as written to documents: an int only when it reads back as the same string."""
    if item_id.isascii() and item_id.isdigit() and str(int(item_id)) == item_id:
        return int(item_id)
    return item_id


class Category(str, Enum):
    WATCHING = "watching"
    WISHLIST = "wishlist"
    WATCHED = "watched"

    @classmethod
    def parse(cls, value: Any) -> Optional["Category"]:
        if isinstance(value, Category):
            return value
        try:
            return cls(str(value or "").strip().lower())
        except ValueError:
            return None


class MediaKind(str, Enum):
    MOVIE = "movie"
    TV = "tv"

    @property
    def document_key(self) -> str:
        """Key of this kind's lists inside the persisted `watchlists` map."""
        return "movies" if self is MediaKind.MOVIE else "series"

    @classmethod
    def parse(cls, value: Any) -> Optional["MediaKind"]:
        raw = str(value or "").strip().lower()
        if raw in {"movie", "movies", "film"}:
            return cls.MOVIE
        if raw in {"tv", "series", "show"}:
            return cls.TV
        return None


def _display_year(raw: Mapping[str, Any]) -> Optional[str]:
    year = raw.get("year")
    if isinstance(year, int) and not isinstance(year, bool):
        return str(year)
    if isinstance(year, str) and year.strip():
        return year.strip()
    for key in ("release_date", "first_air_date"):
        value = raw.get(key)
        if isinstance(value, str):
            m = _YEAR_RE.match(value)
            if m:
                return m.group(1)
    return None


class ItemRecord(BaseModel):
    """Display metadata for one tracked identifier (stored once per id)."""

    model_config = ConfigDict(extra="allow", frozen=True)

    id: str
    title: Optional[str] = None
    year: Optional[str] = None
    media_type: Optional[MediaKind] = None
    poster_path: Optional[str] = None
    vote_average: Optional[float] = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> str:
        if isinstance(value, bool) or value is None:
            raise ValueError("id is required")
        if isinstance(value, float) and value.is_integer():
            value = int(value)
        text = str(value).strip()
        if not text:
            raise ValueError("id is required")
        return text

    @classmethod
    def from_raw(
        cls,
        raw: Mapping[str, Any],
        *,
        item_id: str,
        default_kind: Optional[MediaKind] = None,
    ) -> "ItemRecord":
        """Build a record from a metadata-source item (TMDB-like dict)."""
        if not isinstance(raw, Mapping):
            raise NormalizationError(f"item record for {item_id!r} is not a mapping")

        kind = MediaKind.parse(raw.get("media_type"))
        if kind is None:
            kind = MediaKind.TV if raw.get("first_air_date") else default_kind

        data: dict[str, Any] = {str(k): v for k, v in raw.items()}
        data["id"] = item_id
        data["title"] = raw.get("title") or raw.get("name") or None
        data["year"] = _display_year(raw)
        data["media_type"] = kind
        try:
            return cls.model_validate(data)
        except ValidationError as exc:
            raise NormalizationError(f"invalid item record for {item_id!r}: {exc}") from exc

    def to_document(self) -> dict[str, Any]:
        payload = self.model_dump(mode="json", exclude_none=True)
        # The metadata source issues numeric ids; keep them numeric on the wire.
        payload["id"] = wire_id(self.id)
        return payload


@dataclass(frozen=True)
class SnapshotView:
    """Read-only view of a snapshot handed to readers outside the cache."""

    owner_id: str
    watching_ids: frozenset[str] = frozenset()
    wishlist_ids: frozenset[str] = frozenset()
    watched_ids: frozenset[str] = frozenset()
    items: Mapping[str, ItemRecord] = field(default_factory=lambda: MappingProxyType({}))

    def ids(self, category: Category | str) -> frozenset[str]:
        cat = Category.parse(category)
        if cat is None:
            return frozenset()
        return getattr(self, f"{cat.value}_ids")

    def counts(self) -> dict[str, int]:
        return {cat.value: len(self.ids(cat)) for cat in Category}


@dataclass
class WatchlistSnapshot:
    """Canonical, mutable snapshot of one owner's lists (owned by the cache store)."""

    owner_id: str
    watching_ids: set[str] = field(default_factory=set)
    wishlist_ids: set[str] = field(default_factory=set)
    watched_ids: set[str] = field(default_factory=set)
    items: dict[str, ItemRecord] = field(default_factory=dict)
    # Which per-kind list an id was read from; used when no record carries media_type.
    media_kinds: dict[str, MediaKind] = field(default_factory=dict)

    def ids(self, category: Category) -> set[str]:
        return getattr(self, f"{category.value}_ids")

    def counts(self) -> dict[str, int]:
        return {cat.value: len(self.ids(cat)) for cat in Category}

    def is_empty(self) -> bool:
        return not (self.watching_ids or self.wishlist_ids or self.watched_ids)

    def media_kind_of(self, item_id: str) -> MediaKind:
        record = self.items.get(item_id)
        if record is not None and record.media_type is not None:
            return record.media_type
        return self.media_kinds.get(item_id, MediaKind.MOVIE)

    def copy(self) -> "WatchlistSnapshot":
        # Records are frozen, so sharing them between copies is safe.
        return WatchlistSnapshot(
            owner_id=self.owner_id,
            watching_ids=set(self.watching_ids),
            wishlist_ids=set(self.wishlist_ids),
            watched_ids=set(self.watched_ids),
            items=dict(self.items),
            media_kinds=dict(self.media_kinds),
        )

    def view(self) -> SnapshotView:
        return SnapshotView(
            owner_id=self.owner_id,
            watching_ids=frozenset(self.watching_ids),
            wishlist_ids=frozenset(self.wishlist_ids),
            watched_ids=frozenset(self.watched_ids),
            items=MappingProxyType(dict(self.items)),
        )
