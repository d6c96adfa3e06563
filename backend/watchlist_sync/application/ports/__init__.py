"""Contracts for the collaborators the sync engine consumes."""

from watchlist_sync.application.ports.identity_port import IdentityProviderPort, OwnerChangedCallback
from watchlist_sync.application.ports.local_store_port import LocalStorePort
from watchlist_sync.application.ports.remote_store_port import RemoteStorePort

__all__ = [
    "IdentityProviderPort",
    "LocalStorePort",
    "OwnerChangedCallback",
    "RemoteStorePort",
]
