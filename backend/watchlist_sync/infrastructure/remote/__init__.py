"""Remote document stores; each loads (with its client library) on first access."""

from __future__ import annotations

from importlib import import_module
from typing import Any, Dict, Tuple

_LAZY_IMPORTS: Dict[str, Tuple[str, str]] = {
    "HttpRemoteStore": ("watchlist_sync.infrastructure.remote.http_remote_store", "HttpRemoteStore"),
    "InMemoryRemoteStore": ("watchlist_sync.infrastructure.remote.in_memory_remote_store", "InMemoryRemoteStore"),
    "NullRemoteStore": ("watchlist_sync.infrastructure.remote.null_remote_store", "NullRemoteStore"),
    "RedisRemoteStore": ("watchlist_sync.infrastructure.remote.redis_remote_store", "RedisRemoteStore"),
}


def __getattr__(name: str) -> Any:
    if name not in _LAZY_IMPORTS:
        raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
    module_path, attr_name = _LAZY_IMPORTS[name]
    value = getattr(import_module(module_path), attr_name)
    globals()[name] = value
    return value


def __dir__() -> Any:
    return sorted(set(list(globals().keys()) + list(_LAZY_IMPORTS.keys())))


__all__ = list(_LAZY_IMPORTS.keys())
