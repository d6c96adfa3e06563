from __future__ import annotations

from typing import Any, Mapping, Optional

from watchlist_sync.application.ports.remote_store_port import RemoteStorePort


class NullRemoteStore(RemoteStorePort):
    """No remote at all: reads find nothing and writes are accepted and dropped."""

    async def get_document(self, owner_id: str) -> Optional[dict[str, Any]]:
        _ = owner_id
        return None

    async def set_document(
        self,
        owner_id: str,
        payload: Mapping[str, Any],
        *,
        merge: bool = True,
    ) -> None:
        _ = (owner_id, payload, merge)

    async def close(self) -> None:
        return None
