"""
watchlist_sync - client-side state synchronization for per-user watchlists.

Public import paths are `watchlist_sync.*`; heavy modules load on first access.
"""

from __future__ import annotations

from importlib import import_module
from typing import Any, Dict, Tuple

__version__ = "0.1.0"

_LAZY_IMPORTS: Dict[str, Tuple[str, str]] = {
    # ============ domain ============
    "Category": ("watchlist_sync.domain", "Category"),
    "ChangeEvent": ("watchlist_sync.domain", "ChangeEvent"),
    "HydrationEvent": ("watchlist_sync.domain", "HydrationEvent"),
    "ItemRecord": ("watchlist_sync.domain", "ItemRecord"),
    "LOCAL_OWNER": ("watchlist_sync.domain", "LOCAL_OWNER"),
    "MediaKind": ("watchlist_sync.domain", "MediaKind"),
    "PersistenceFailure": ("watchlist_sync.domain", "PersistenceFailure"),
    "RemoteUnavailable": ("watchlist_sync.domain", "RemoteUnavailable"),
    "SnapshotView": ("watchlist_sync.domain", "SnapshotView"),
    "WatchlistSnapshot": ("watchlist_sync.domain", "WatchlistSnapshot"),
    # ============ engine ============
    "CacheStore": ("watchlist_sync.application.cache_store", "CacheStore"),
    "ChangeNotifier": ("watchlist_sync.application.change_notifier", "ChangeNotifier"),
    "OperationQueue": ("watchlist_sync.application.operation_queue", "OperationQueue"),
    "RemoteSyncGateway": ("watchlist_sync.application.sync_gateway", "RemoteSyncGateway"),
    "WatchlistSyncEngine": ("watchlist_sync.application.engine", "WatchlistSyncEngine"),
    # ============ wiring ============
    "build_watchlist_engine": ("watchlist_sync.infrastructure.factory", "build_watchlist_engine"),
}


def __getattr__(name: str) -> Any:
    if name not in _LAZY_IMPORTS:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module_path, attr_name = _LAZY_IMPORTS[name]
    module = import_module(module_path)
    value = getattr(module, attr_name)
    globals()[name] = value
    return value


def __dir__() -> Any:
    return sorted(set(list(globals().keys()) + list(_LAZY_IMPORTS.keys())))


__all__ = ["__version__", *_LAZY_IMPORTS.keys()]
