from __future__ import annotations

from typing import Any, Mapping, Optional, Protocol


class RemoteStorePort(Protocol):
    async def get_document(self, owner_id: str) -> Optional[dict[str, Any]]:
        """Return the owner's raw document, or None when it does not exist."""
        ...

    async def set_document(
        self,
        owner_id: str,
        payload: Mapping[str, Any],
        *,
        merge: bool = True,
    ) -> None:
        """Write `payload` for the owner.

        With `merge=True` nested maps are merged key by key and fields absent
        from `payload` are preserved; lists and scalars are replaced.
        Implementations stamp `lastUpdated`.
        """
        ...

    async def close(self) -> None:
        ...
