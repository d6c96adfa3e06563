from __future__ import annotations

import asyncio
import copy
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from watchlist_sync.application.ports.remote_store_port import RemoteStorePort
from watchlist_sync.domain.documents import merge_document


class InMemoryRemoteStore(RemoteStorePort):
    """Process-local document store with the remote store's write semantics.

    Used as the default provider and in tests; documents never leave memory.
    """

    def __init__(self, documents: Optional[Mapping[str, Mapping[str, Any]]] = None) -> None:
        self._documents: dict[str, dict[str, Any]] = {
            str(owner_id): copy.deepcopy(dict(doc)) for owner_id, doc in (documents or {}).items()
        }
        self._lock = asyncio.Lock()

    async def get_document(self, owner_id: str) -> Optional[dict[str, Any]]:
        document = self._documents.get(owner_id)
        return copy.deepcopy(document) if document is not None else None

    async def set_document(
        self,
        owner_id: str,
        payload: Mapping[str, Any],
        *,
        merge: bool = True,
    ) -> None:
        async with self._lock:
            base = self._documents.get(owner_id) if merge else None
            document = merge_document(base, payload)
            document["lastUpdated"] = datetime.now(timezone.utc).isoformat()
            self._documents[owner_id] = document

    async def close(self) -> None:
        return None
