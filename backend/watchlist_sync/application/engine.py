from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from functools import partial
from typing import Any, Optional

from watchlist_sync.application.cache_store import CacheStore, RecordInput
from watchlist_sync.application.change_notifier import BatchHandler, ChangeNotifier, EventHandler
from watchlist_sync.application.normalizer import extract_entry_id
from watchlist_sync.application.operation_queue import OperationQueue
from watchlist_sync.application.ports import IdentityProviderPort
from watchlist_sync.application.sync_gateway import RemoteSyncGateway
from watchlist_sync.config.settings import WATCHLIST_EVENT_LOG
from watchlist_sync.domain.errors import PersistenceFailure
from watchlist_sync.domain.events import ChangeEvent, HydrationEvent, Operation, Outcome
from watchlist_sync.domain.models import (
    Category,
    ItemRecord,
    MediaKind,
    SnapshotView,
    owner_key,
)
from watchlist_sync.utils import EventLogger, format_kv

logger = logging.getLogger(__name__)


class WatchlistSyncEngine:
    """Entry point for the UI layer: load, mutate and observe one owner's lists.

    Every mutation runs inside the operation queue as one transaction:
    capture the snapshot, apply optimistically, persist, then either publish
    an "applied" event or restore the capture and publish "rolled-back".
    Mutations return booleans and never raise for expected failures.
    """

    def __init__(
        self,
        *,
        gateway: RemoteSyncGateway,
        cache: Optional[CacheStore] = None,
        queue: Optional[OperationQueue] = None,
        notifier: Optional[ChangeNotifier] = None,
        event_log: bool = WATCHLIST_EVENT_LOG,
    ) -> None:
        self._gateway = gateway
        self._cache = cache if cache is not None else CacheStore(gateway)
        self._queue = queue if queue is not None else OperationQueue(failure=False)
        self._notifier = notifier if notifier is not None else ChangeNotifier()
        self._inflight: dict[str, asyncio.Future[Optional[SnapshotView]]] = {}
        self._identity: Optional[IdentityProviderPort] = None
        self._identity_unsubscribe: Optional[Callable[[], None]] = None
        self._owner_tasks: set[asyncio.Task[Any]] = set()
        self._events = EventLogger(logger, "[watchlist]", enabled=event_log)

    @property
    def cache(self) -> CacheStore:
        return self._cache

    @property
    def gateway(self) -> RemoteSyncGateway:
        return self._gateway

    @property
    def notifier(self) -> ChangeNotifier:
        return self._notifier

    @property
    def queue(self) -> OperationQueue:
        return self._queue

    # ---- load / lifecycle --------------------------------------------------

    async def load(self, owner_id: Optional[str] = None) -> SnapshotView:
        """Snapshot for `owner_id` (None = signed-out local data).

        Served from cache when the owner matches; otherwise fetched once even
        when several callers ask concurrently. A load that was superseded by a
        newer request (or an invalidate) returns its data without installing it.
        """
        owner = owner_key(owner_id)
        if self._cache.is_loaded_for(owner) and self._cache.expected_owner == owner:
            view = self._cache.view()
            if view is not None:
                return view

        # The most recent request decides which owner may be installed.
        self._cache.expect_owner(owner)
        future = self._inflight.get(owner)
        if future is None:
            future = self._queue.submit(partial(self._load_into_cache, owner), failure=None)
            self._inflight[owner] = future
            future.add_done_callback(partial(self._forget_inflight, owner))

        view = await asyncio.shield(future)
        return view if view is not None else SnapshotView(owner_id=owner)

    def _forget_inflight(self, owner: str, future: asyncio.Future[Any]) -> None:
        if self._inflight.get(owner) is future:
            del self._inflight[owner]

    async def _load_into_cache(self, owner: str) -> SnapshotView:
        result, applied = await self._cache.fetch_and_apply(owner)
        if applied:
            self._events.set(owner_id=owner)
            self._events.info("hydrated", source=result.source, **result.snapshot.counts())
            self._notifier.publish(
                HydrationEvent(owner_id=owner, source=result.source, counts=result.snapshot.counts())
            )
        return result.snapshot.view()

    def invalidate(self) -> None:
        """Drop the cached snapshot (e.g. on sign-out); the next load re-fetches."""
        self._cache.invalidate()
        self._events.set(owner_id=None)
        self._events.info("invalidated")

    def bind_identity(self, provider: IdentityProviderPort) -> None:
        """Follow `provider`: reload whenever the signed-in owner changes."""
        self.unbind_identity()
        self._identity = provider
        self._identity_unsubscribe = provider.on_owner_changed(self._on_owner_changed)

    def unbind_identity(self) -> None:
        if self._identity_unsubscribe is not None:
            self._identity_unsubscribe()
        self._identity_unsubscribe = None
        self._identity = None

    async def start(self) -> SnapshotView:
        """Load whichever owner the bound identity provider reports."""
        owner_id = self._identity.current_owner_id() if self._identity is not None else None
        return await self.load(owner_id)

    def _on_owner_changed(self, owner_id: Optional[str]) -> None:
        owner = owner_key(owner_id)
        if self._cache.expected_owner == owner:
            return
        self.invalidate()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # Nothing to schedule on; the next explicit load picks the owner up.
            return
        task = loop.create_task(self.load(owner))
        self._owner_tasks.add(task)
        task.add_done_callback(self._owner_tasks.discard)

    async def aclose(self) -> None:
        self.unbind_identity()
        if self._owner_tasks:
            await asyncio.gather(*list(self._owner_tasks), return_exceptions=True)
        await self._queue.join()
        await self._notifier.aclose()

    # ---- mutations ---------------------------------------------------------

    async def add_item(
        self,
        item_id: Any,
        category: Category | str,
        record: Optional[RecordInput] = None,
    ) -> bool:
        return await self._queue.enqueue(partial(self._add, item_id, category, record))

    async def move_item(
        self,
        item_id: Any,
        from_category: Category | str,
        to_category: Category | str,
    ) -> bool:
        return await self._queue.enqueue(
            partial(
                self._transact,
                "move",
                item_id,
                partial(self._cache.move_item, item_id, from_category, to_category),
                from_category=from_category,
                to_category=to_category,
            )
        )

    async def remove_item(self, item_id: Any, category: Category | str) -> bool:
        return await self._queue.enqueue(
            partial(
                self._transact,
                "remove",
                item_id,
                partial(self._cache.remove_item, item_id, category),
                from_category=category,
            )
        )

    async def _add(self, item_id: Any, category: Category | str, record: Optional[RecordInput]) -> bool:
        target = Category.parse(category)
        displaced = [cat for cat in self._cache.categories_of(item_id) if cat is not target]
        return await self._transact(
            "add",
            item_id,
            partial(self._cache.add_item, item_id, category, record),
            from_category=displaced[0] if displaced else None,
            to_category=category,
        )

    async def _transact(
        self,
        operation: Operation,
        item_id: Any,
        apply: Callable[[], bool],
        *,
        from_category: Category | str | None = None,
        to_category: Category | str | None = None,
    ) -> bool:
        key = extract_entry_id(item_id) or str(item_id)
        fields = {
            "op": operation,
            "item_id": key,
            "from": _category_name(from_category),
            "to": _category_name(to_category),
        }

        before = self._cache.capture()
        if before is None:
            logger.warning("watchlist not loaded; mutation skipped %s", format_kv(**fields))
            return False
        if not apply():
            self._events.debug("noop", **fields)
            return False

        after = self._cache.capture()
        if after is None:
            raise RuntimeError("watchlist snapshot disappeared during a mutation")
        try:
            await self._gateway.persist(after)
        except Exception as exc:
            if not isinstance(exc, PersistenceFailure):
                logger.exception("watchlist persist raised unexpectedly")
            if self._cache.restore(before):
                self._gateway.mirror_local(before)
            logger.warning("watchlist mutation rolled back %s", format_kv(error=str(exc), **fields))
            self._publish_change(operation, key, "rolled-back", from_category, to_category, before.owner_id)
            return False

        self._events.info("applied", **fields)
        self._publish_change(operation, key, "applied", from_category, to_category, after.owner_id)
        return True

    def _publish_change(
        self,
        operation: Operation,
        item_id: str,
        outcome: Outcome,
        from_category: Category | str | None,
        to_category: Category | str | None,
        owner_id: str,
    ) -> None:
        self._notifier.publish(
            ChangeEvent(
                operation=operation,
                item_id=item_id,
                outcome=outcome,
                from_category=_category_name(from_category),
                to_category=_category_name(to_category),
                owner_id=owner_id,
            )
        )

    # ---- reads ---------------------------------------------------------------

    def snapshot(self) -> Optional[SnapshotView]:
        return self._cache.view()

    def get_item_record(self, item_id: Any) -> Optional[ItemRecord]:
        return self._cache.get_item_record(item_id)

    def has_item(self, item_id: Any, category: Category | str) -> bool:
        return self._cache.has_item(item_id, category)

    def counts(self) -> dict[str, int]:
        return self._cache.counts()

    def items_for(
        self,
        category: Category | str,
        media_kind: MediaKind | str | None = None,
    ) -> list[ItemRecord]:
        """Records for one list; ids without cached metadata get a minimal record."""
        cat = Category.parse(category)
        snapshot = self._cache.capture()
        if cat is None or snapshot is None:
            return []
        kind = MediaKind.parse(media_kind) if media_kind is not None else None

        out: list[ItemRecord] = []
        for item_id in sorted(snapshot.ids(cat)):
            item_kind = snapshot.media_kind_of(item_id)
            if kind is not None and item_kind is not kind:
                continue
            record = snapshot.items.get(item_id)
            out.append(record if record is not None else ItemRecord(id=item_id, media_type=item_kind))
        return out

    # ---- subscriptions -----------------------------------------------------

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        return self._notifier.subscribe(handler)

    def subscribe_debounced(self, handler: BatchHandler) -> Callable[[], None]:
        return self._notifier.subscribe_debounced(handler)


def _category_name(value: Category | str | None) -> Optional[str]:
    if value is None:
        return None
    cat = Category.parse(value)
    return cat.value if cat is not None else str(value)
