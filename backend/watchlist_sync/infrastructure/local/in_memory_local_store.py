from __future__ import annotations

import copy
from typing import Any, Optional

from watchlist_sync.application.ports.local_store_port import LocalStorePort


class InMemoryLocalStore(LocalStorePort):
    def __init__(self, blobs: Optional[dict[str, dict[str, Any]]] = None) -> None:
        self._blobs: dict[str, dict[str, Any]] = copy.deepcopy(blobs or {})

    def get_blob(self, key: str) -> Optional[dict[str, Any]]:
        blob = self._blobs.get(key)
        return copy.deepcopy(blob) if blob is not None else None

    def set_blob(self, key: str, value: dict[str, Any]) -> None:
        self._blobs[key] = copy.deepcopy(value)

    def keys(self) -> list[str]:
        return sorted(self._blobs)
