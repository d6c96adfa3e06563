from __future__ import annotations

import logging
from typing import Callable, Optional

from watchlist_sync.application.ports.identity_port import IdentityProviderPort, OwnerChangedCallback

logger = logging.getLogger(__name__)


class StaticIdentityProvider(IdentityProviderPort):
    """Identity source whose owner is set explicitly (sign-in / sign-out calls)."""

    def __init__(self, owner_id: Optional[str] = None) -> None:
        self._owner_id = owner_id
        self._callbacks: list[OwnerChangedCallback] = []

    def current_owner_id(self) -> Optional[str]:
        return self._owner_id

    def on_owner_changed(self, callback: OwnerChangedCallback) -> Callable[[], None]:
        self._callbacks.append(callback)

        def _unsubscribe() -> None:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

        return _unsubscribe

    def sign_in(self, owner_id: str) -> None:
        self.set_owner(owner_id)

    def sign_out(self) -> None:
        self.set_owner(None)

    def set_owner(self, owner_id: Optional[str]) -> None:
        if owner_id == self._owner_id:
            return
        self._owner_id = owner_id
        for callback in list(self._callbacks):
            try:
                callback(owner_id)
            except Exception:
                logger.exception("owner-changed callback %r failed", callback)
