from __future__ import annotations

from typing import Any, Optional, Protocol


class LocalStorePort(Protocol):
    """Synchronous key/blob persistence on the local device."""

    def get_blob(self, key: str) -> Optional[dict[str, Any]]:
        ...

    def set_blob(self, key: str, value: dict[str, Any]) -> None:
        ...
