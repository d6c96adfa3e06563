"""Factories that build stores and a wired engine from configuration.

Mirrors the provider switch of the other infrastructure factories: a
provider selected without its settings falls back with a warning, an unknown
provider is a `ValueError`.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Literal, Optional

from watchlist_sync.application.change_notifier import ChangeNotifier
from watchlist_sync.application.engine import WatchlistSyncEngine
from watchlist_sync.application.ports import (
    IdentityProviderPort,
    LocalStorePort,
    RemoteStorePort,
)
from watchlist_sync.application.sync_gateway import RemoteSyncGateway
from watchlist_sync.config.settings import (
    WATCHLIST_HTTP_API_KEY,
    WATCHLIST_HTTP_BASE_URL,
    WATCHLIST_HTTP_DOCUMENT_PATH,
    WATCHLIST_LOCAL_BACKEND,
    WATCHLIST_LOCAL_DIR,
    WATCHLIST_LOCAL_KEY,
    WATCHLIST_NOTIFY_DEBOUNCE_MS,
    WATCHLIST_REDIS_KEY_PREFIX,
    WATCHLIST_REDIS_MAX_RETRIES,
    WATCHLIST_REDIS_URL,
    WATCHLIST_REMOTE_PROVIDER,
    WATCHLIST_REMOTE_TIMEOUT_S,
)

logger = logging.getLogger(__name__)

RemoteProviderType = Literal["memory", "http", "redis", "null", ""]
LocalBackendType = Literal["memory", "file", ""]


class RemoteStoreFactory:
    """Factory for remote document store instances."""

    @staticmethod
    def create(provider: RemoteProviderType | None = None) -> RemoteStorePort:
        """Create a remote store for `provider` (None reads WATCHLIST_REMOTE_PROVIDER).

        Raises:
            ValueError: If an unsupported provider is specified.
        """
        if provider is None:
            provider = WATCHLIST_REMOTE_PROVIDER  # type: ignore[assignment]

        provider = (provider or "").strip().lower()

        match provider:
            case "memory" | "":
                from watchlist_sync.infrastructure.remote.in_memory_remote_store import (
                    InMemoryRemoteStore,
                )

                return InMemoryRemoteStore()

            case "http":
                if not WATCHLIST_HTTP_BASE_URL:
                    logger.warning(
                        "WATCHLIST_REMOTE_PROVIDER=http but WATCHLIST_HTTP_BASE_URL is not set; "
                        "falling back to NullRemoteStore"
                    )
                    from watchlist_sync.infrastructure.remote.null_remote_store import (
                        NullRemoteStore,
                    )

                    return NullRemoteStore()

                from watchlist_sync.infrastructure.remote.http_remote_store import HttpRemoteStore

                return HttpRemoteStore(
                    base_url=WATCHLIST_HTTP_BASE_URL,
                    api_key=WATCHLIST_HTTP_API_KEY,
                    document_path=WATCHLIST_HTTP_DOCUMENT_PATH,
                    timeout_s=WATCHLIST_REMOTE_TIMEOUT_S,
                )

            case "redis":
                from watchlist_sync.infrastructure.remote.redis_remote_store import (
                    RedisRemoteStore,
                )

                return RedisRemoteStore(
                    redis_url=WATCHLIST_REDIS_URL,
                    key_prefix=WATCHLIST_REDIS_KEY_PREFIX,
                    timeout_s=WATCHLIST_REMOTE_TIMEOUT_S,
                    max_retries=WATCHLIST_REDIS_MAX_RETRIES,
                )

            case "null":
                from watchlist_sync.infrastructure.remote.null_remote_store import NullRemoteStore

                return NullRemoteStore()

            case _:
                raise ValueError(
                    f"Unsupported WATCHLIST_REMOTE_PROVIDER: {provider!r}. "
                    f"Supported values: 'memory', 'http', 'redis', 'null'"
                )


def create_remote_store(provider: RemoteProviderType | None = None) -> RemoteStorePort:
    return RemoteStoreFactory.create(provider)


def create_local_store(
    backend: LocalBackendType | None = None,
    *,
    root: Optional[Path | str] = None,
) -> LocalStorePort:
    """Create the local fallback store (None reads WATCHLIST_LOCAL_BACKEND)."""
    if backend is None:
        backend = WATCHLIST_LOCAL_BACKEND  # type: ignore[assignment]

    backend = (backend or "").strip().lower()

    match backend:
        case "memory" | "":
            from watchlist_sync.infrastructure.local.in_memory_local_store import (
                InMemoryLocalStore,
            )

            return InMemoryLocalStore()

        case "file":
            from watchlist_sync.infrastructure.local.json_file_local_store import (
                JsonFileLocalStore,
            )

            return JsonFileLocalStore(root if root is not None else WATCHLIST_LOCAL_DIR)

        case _:
            raise ValueError(
                f"Unsupported WATCHLIST_LOCAL_BACKEND: {backend!r}. "
                f"Supported values: 'memory', 'file'"
            )


def build_watchlist_engine(
    *,
    remote: Optional[RemoteStorePort] = None,
    local: Optional[LocalStorePort] = None,
    identity: Optional[IdentityProviderPort] = None,
    timeout_s: float = WATCHLIST_REMOTE_TIMEOUT_S,
    debounce_ms: int = WATCHLIST_NOTIFY_DEBOUNCE_MS,
    local_key: str = WATCHLIST_LOCAL_KEY,
) -> WatchlistSyncEngine:
    """Wire an engine from settings; explicit collaborators override them."""
    gateway = RemoteSyncGateway(
        remote=remote if remote is not None else create_remote_store(),
        local=local if local is not None else create_local_store(),
        timeout_s=timeout_s,
        local_key=local_key,
    )
    engine = WatchlistSyncEngine(
        gateway=gateway,
        notifier=ChangeNotifier(debounce_ms=debounce_ms),
    )
    if identity is not None:
        engine.bind_identity(identity)
    return engine
