from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Mapping, Optional, Union

from watchlist_sync.application.normalizer import extract_entry_id
from watchlist_sync.domain.errors import NormalizationError
from watchlist_sync.domain.models import (
    Category,
    ItemRecord,
    SnapshotView,
    WatchlistSnapshot,
    owner_key,
)

if TYPE_CHECKING:
    from watchlist_sync.application.sync_gateway import LoadResult, RemoteSyncGateway

logger = logging.getLogger(__name__)

RecordInput = Union[ItemRecord, Mapping[str, Any]]


class CacheStore:
    """Holds the single live snapshot for the active owner.

    Mutations are synchronous and never suspend. When several call sites may
    race, route them through an `OperationQueue`.
    """

    def __init__(self, gateway: Optional["RemoteSyncGateway"] = None) -> None:
        self._gateway = gateway
        self._snapshot: Optional[WatchlistSnapshot] = None
        # Owner the most recent load request was for; loads for anyone else are stale.
        self._expected_owner: Optional[str] = None

    # ---- owner / lifecycle -------------------------------------------------

    @property
    def owner_id(self) -> Optional[str]:
        return self._snapshot.owner_id if self._snapshot is not None else None

    @property
    def expected_owner(self) -> Optional[str]:
        return self._expected_owner

    def is_loaded_for(self, owner_id: Optional[str]) -> bool:
        return self._snapshot is not None and self._snapshot.owner_id == owner_key(owner_id)

    def expect_owner(self, owner_id: Optional[str]) -> str:
        """Record `owner_id` as the owner the next applied load must belong to."""
        owner = owner_key(owner_id)
        self._expected_owner = owner
        return owner

    def is_current(self, owner_id: str) -> bool:
        return self._expected_owner == owner_id

    async def load(self, owner_id: Optional[str]) -> SnapshotView:
        owner = owner_key(owner_id)
        if self._snapshot is not None and self._snapshot.owner_id == owner:
            return self._snapshot.view()
        self.expect_owner(owner)
        result, _ = await self.fetch_and_apply(owner)
        return result.snapshot.view()

    async def fetch_and_apply(self, owner_id: str) -> tuple["LoadResult", bool]:
        """Fetch via the gateway and install the result unless it went stale.

        Returns the load result and whether it became the live snapshot.
        """
        if self._gateway is None:
            raise RuntimeError("CacheStore has no gateway to load from")
        result = await self._gateway.load(owner_id)
        if not self.is_current(owner_id):
            logger.info(
                "discarding stale watchlist load (owner_id=%s, expected=%s)",
                owner_id,
                self._expected_owner,
            )
            return result, False
        self._snapshot = result.snapshot
        return result, True

    def replace(self, snapshot: WatchlistSnapshot) -> None:
        self._snapshot = snapshot
        self._expected_owner = snapshot.owner_id

    def invalidate(self) -> None:
        self._snapshot = None
        self._expected_owner = None

    # ---- reads -------------------------------------------------------------

    def view(self) -> Optional[SnapshotView]:
        return self._snapshot.view() if self._snapshot is not None else None

    def capture(self) -> Optional[WatchlistSnapshot]:
        """Independent copy of the live snapshot (for rollback or persistence)."""
        return self._snapshot.copy() if self._snapshot is not None else None

    def restore(self, snapshot: WatchlistSnapshot) -> bool:
        """Put back a captured snapshot, unless the owner changed meanwhile."""
        if self._snapshot is None or self._snapshot.owner_id != snapshot.owner_id:
            return False
        self._snapshot = snapshot
        return True

    def get_item_record(self, item_id: Any) -> Optional[ItemRecord]:
        """Cached metadata for an id. None means "unknown", not "not a member"."""
        key = extract_entry_id(item_id)
        if self._snapshot is None or key is None:
            return None
        return self._snapshot.items.get(key)

    def has_item(self, item_id: Any, category: Category | str) -> bool:
        key = extract_entry_id(item_id)
        cat = Category.parse(category)
        if self._snapshot is None or key is None or cat is None:
            return False
        return key in self._snapshot.ids(cat)

    def categories_of(self, item_id: Any) -> list[Category]:
        key = extract_entry_id(item_id)
        if self._snapshot is None or key is None:
            return []
        return [cat for cat in Category if key in self._snapshot.ids(cat)]

    def counts(self) -> dict[str, int]:
        if self._snapshot is None:
            return {cat.value: 0 for cat in Category}
        return self._snapshot.counts()

    # ---- mutations -----------------------------------------------------------

    def _require(self, op: str) -> Optional[WatchlistSnapshot]:
        if self._snapshot is None:
            logger.warning("no watchlist snapshot loaded; %s ignored", op)
        return self._snapshot

    def add_item(
        self,
        item_id: Any,
        category: Category | str,
        record: Optional[RecordInput] = None,
    ) -> bool:
        snapshot = self._require("add_item")
        key = extract_entry_id(item_id)
        cat = Category.parse(category)
        if snapshot is None or key is None or cat is None:
            return False

        target = snapshot.ids(cat)
        if key in target:
            return False

        # An id is classified under one category at a time.
        for other in Category:
            if other is not cat:
                snapshot.ids(other).discard(key)
        target.add(key)

        if record is not None:
            self._upsert_record(snapshot, key, record)
        return True

    def move_item(
        self,
        item_id: Any,
        from_category: Category | str,
        to_category: Category | str,
    ) -> bool:
        snapshot = self._require("move_item")
        key = extract_entry_id(item_id)
        src = Category.parse(from_category)
        dst = Category.parse(to_category)
        if snapshot is None or key is None or src is None or dst is None or src is dst:
            return False

        source = snapshot.ids(src)
        if key not in source:
            return False
        source.discard(key)
        snapshot.ids(dst).add(key)
        return True

    def remove_item(self, item_id: Any, category: Category | str) -> bool:
        snapshot = self._require("remove_item")
        key = extract_entry_id(item_id)
        cat = Category.parse(category)
        if snapshot is None or key is None or cat is None:
            return False

        target = snapshot.ids(cat)
        if key not in target:
            return False
        target.discard(key)
        return True

    @staticmethod
    def _upsert_record(snapshot: WatchlistSnapshot, item_id: str, record: RecordInput) -> None:
        if isinstance(record, ItemRecord):
            stored = record if record.id == item_id else record.model_copy(update={"id": item_id})
        else:
            try:
                stored = ItemRecord.from_raw(
                    record,
                    item_id=item_id,
                    default_kind=snapshot.media_kinds.get(item_id),
                )
            except NormalizationError as exc:
                logger.warning("item record not stored: %s", exc)
                return
        snapshot.items[item_id] = stored
        if stored.media_type is not None:
            snapshot.media_kinds[item_id] = stored.media_type
