from __future__ import annotations

from typing import Callable, Optional, Protocol

OwnerChangedCallback = Callable[[Optional[str]], None]


class IdentityProviderPort(Protocol):
    def current_owner_id(self) -> Optional[str]:
        ...

    def on_owner_changed(self, callback: OwnerChangedCallback) -> Callable[[], None]:
        """Register `callback`; returns a function that unregisters it."""
        ...
