from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from watchlist_sync.application.normalizer import (
    SHAPE_CANONICAL,
    SHAPE_LEGACY,
    extract_watchlists,
    has_list_data,
    normalize_watchlists,
)
from watchlist_sync.application.ports import LocalStorePort, RemoteStorePort
from watchlist_sync.config.settings import WATCHLIST_LOCAL_KEY, WATCHLIST_REMOTE_TIMEOUT_S
from watchlist_sync.domain.documents import (
    WATCHLISTS_VERSION,
    WATCHLISTS_VERSION_FIELD,
    merge_document,
)
from watchlist_sync.domain.errors import PersistenceFailure, RemoteUnavailable
from watchlist_sync.domain.models import (
    LOCAL_OWNER,
    Category,
    MediaKind,
    WatchlistSnapshot,
    wire_id,
)
from watchlist_sync.utils import format_kv

logger = logging.getLogger(__name__)

SOURCE_REMOTE = "remote"
SOURCE_REMOTE_LEGACY = "remote-legacy"
SOURCE_LOCAL = "local"
SOURCE_LOCAL_LEGACY = "local-legacy"
SOURCE_EMPTY = "empty"


def _is_versioned(document: Any) -> bool:
    return isinstance(document, Mapping) and document.get(WATCHLISTS_VERSION_FIELD) is not None


@dataclass(frozen=True)
class LoadResult:
    snapshot: WatchlistSnapshot
    source: str


def build_watchlists_payload(snapshot: WatchlistSnapshot) -> dict[str, Any]:
    """Serialize a snapshot into the per-kind `watchlists` map of the document."""
    watchlists: dict[str, Any] = {}
    for kind in MediaKind:
        lists: dict[str, list[dict[str, Any]]] = {}
        for category in Category:
            entries: list[dict[str, Any]] = []
            for item_id in sorted(snapshot.ids(category)):
                if snapshot.media_kind_of(item_id) is not kind:
                    continue
                record = snapshot.items.get(item_id)
                if record is not None:
                    entries.append(record.to_document())
                else:
                    entries.append({"id": wire_id(item_id), "media_type": kind.value})
            lists[category.value] = entries
        watchlists[kind.document_key] = lists
    return watchlists


class RemoteSyncGateway:
    """Loads snapshots from, and persists them to, the remote and local stores.

    Reads degrade silently (remote -> remote legacy -> local mirror -> legacy
    local blob -> empty). Writes always mirror locally; a failed or timed-out
    remote write raises `PersistenceFailure` so the caller can roll back.
    """

    def __init__(
        self,
        *,
        remote: Optional[RemoteStorePort] = None,
        local: Optional[LocalStorePort] = None,
        timeout_s: float = WATCHLIST_REMOTE_TIMEOUT_S,
        local_key: str = WATCHLIST_LOCAL_KEY,
    ) -> None:
        self._remote = remote
        self._local = local
        self._timeout_s = float(timeout_s or WATCHLIST_REMOTE_TIMEOUT_S)
        self._local_key = (local_key or WATCHLIST_LOCAL_KEY).strip()

    @property
    def timeout_s(self) -> float:
        return self._timeout_s

    def local_key_for(self, owner_id: str) -> str:
        return f"{self._local_key}:{owner_id}"

    # ---- load ------------------------------------------------------------

    async def load(self, owner_id: str) -> LoadResult:
        if self._remote is not None and owner_id != LOCAL_OWNER:
            try:
                document = await self._fetch_remote(owner_id)
            except RemoteUnavailable as exc:
                logger.warning("remote watchlist load failed, using local data: %s", exc)
            else:
                watchlists, shape = extract_watchlists(document)
                # An empty canonical map only counts when we wrote it (emptied on purpose).
                if shape == SHAPE_CANONICAL and (
                    has_list_data(watchlists) or _is_versioned(document)
                ):
                    return self._loaded(owner_id, watchlists, SOURCE_REMOTE)
                if shape == SHAPE_LEGACY:
                    return self._loaded(owner_id, watchlists, SOURCE_REMOTE_LEGACY)

        local = self._load_local(owner_id)
        if local is not None:
            return local
        return self._loaded(owner_id, None, SOURCE_EMPTY)

    async def _fetch_remote(self, owner_id: str) -> Optional[dict[str, Any]]:
        if self._remote is None:
            raise RuntimeError("RemoteSyncGateway has no remote store to read from")
        try:
            return await asyncio.wait_for(self._remote.get_document(owner_id), timeout=self._timeout_s)
        except asyncio.TimeoutError as exc:
            raise RemoteUnavailable(
                f"remote read timed out after {self._timeout_s:g}s (owner_id={owner_id})"
            ) from exc
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            raise RemoteUnavailable(f"remote read failed (owner_id={owner_id}): {exc}") from exc

    def _load_local(self, owner_id: str) -> Optional[LoadResult]:
        candidates = [(self.local_key_for(owner_id), SOURCE_LOCAL)]
        if owner_id == LOCAL_OWNER:
            candidates.append((self._local_key, SOURCE_LOCAL_LEGACY))
        for key, source in candidates:
            blob = self._read_blob(key)
            watchlists, shape = extract_watchlists(blob)
            if shape:
                return self._loaded(owner_id, watchlists, source)
        return None

    def _read_blob(self, key: str) -> Optional[dict[str, Any]]:
        if self._local is None:
            return None
        try:
            return self._local.get_blob(key)
        except Exception:
            logger.exception("local watchlist read failed (key=%s)", key)
            return None

    @staticmethod
    def _loaded(owner_id: str, watchlists: Any, source: str) -> LoadResult:
        snapshot = normalize_watchlists(watchlists, owner_id=owner_id)
        logger.info(
            "watchlists loaded %s",
            format_kv(owner_id=owner_id, source=source, **snapshot.counts()),
        )
        return LoadResult(snapshot=snapshot, source=source)

    # ---- persist ---------------------------------------------------------

    def build_payload(self, snapshot: WatchlistSnapshot) -> dict[str, Any]:
        return {
            "watchlists": build_watchlists_payload(snapshot),
            WATCHLISTS_VERSION_FIELD: WATCHLISTS_VERSION,
        }

    async def persist(self, snapshot: WatchlistSnapshot) -> None:
        """Write the snapshot remotely (merge) and mirror it locally.

        The local mirror is written whatever the remote outcome. Any error
        other than cancellation surfaces as `PersistenceFailure`.
        """
        owner_id = snapshot.owner_id
        payload: Optional[dict[str, Any]] = None
        try:
            payload = self.build_payload(snapshot)
            if self._remote is not None and owner_id != LOCAL_OWNER:
                await self._write_remote(owner_id, payload)
        except (PersistenceFailure, asyncio.CancelledError):
            raise
        except Exception as exc:
            raise PersistenceFailure(f"watchlist persist failed: {exc}", owner_id=owner_id) from exc
        finally:
            if payload is not None:
                self._write_local(owner_id, payload)

    def mirror_local(self, snapshot: WatchlistSnapshot) -> None:
        try:
            payload = self.build_payload(snapshot)
        except Exception:
            logger.exception("local watchlist mirror skipped (owner_id=%s)", snapshot.owner_id)
            return
        self._write_local(snapshot.owner_id, payload)

    async def _write_remote(self, owner_id: str, payload: dict[str, Any]) -> None:
        if self._remote is None:
            raise RuntimeError("RemoteSyncGateway has no remote store to write to")
        try:
            await asyncio.wait_for(
                self._remote.set_document(owner_id, payload, merge=True),
                timeout=self._timeout_s,
            )
        except asyncio.TimeoutError as exc:
            raise PersistenceFailure(
                f"remote write timed out after {self._timeout_s:g}s", owner_id=owner_id
            ) from exc
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            raise PersistenceFailure(f"remote write failed: {exc}", owner_id=owner_id) from exc

    def _write_local(self, owner_id: str, payload: dict[str, Any]) -> None:
        if self._local is None:
            return
        key = self.local_key_for(owner_id)
        try:
            existing = self._local.get_blob(key)
            mirror = merge_document(
                existing if isinstance(existing, Mapping) else None,
                {
                    **payload,
                    "ownerId": owner_id,
                    "lastUpdated": datetime.now(timezone.utc).isoformat(),
                },
            )
            self._local.set_blob(key, mirror)
        except Exception:
            # The local mirror is best effort; the remote outcome decides success.
            logger.exception("local watchlist mirror failed (key=%s)", key)
