from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from typing import Any, Mapping, Optional

import redis.asyncio as redis
from redis.exceptions import WatchError

from watchlist_sync.application.ports.remote_store_port import RemoteStorePort
from watchlist_sync.config.settings import (
    WATCHLIST_REDIS_KEY_PREFIX,
    WATCHLIST_REDIS_MAX_RETRIES,
    WATCHLIST_REDIS_URL,
    WATCHLIST_REMOTE_TIMEOUT_S,
)
from watchlist_sync.domain.documents import merge_document

logger = logging.getLogger(__name__)


class RedisRemoteStore(RemoteStorePort):
    """Redis-backed document store for multi-process deployments.

    Notes:
    - One JSON string per owner under `<prefix>:<owner_id>`.
    - Merge writes are read-merge-write under WATCH/MULTI; a concurrent
      writer triggers a retry, up to `max_retries` attempts.
    """

    def __init__(
        self,
        *,
        redis_url: str = WATCHLIST_REDIS_URL,
        key_prefix: str = WATCHLIST_REDIS_KEY_PREFIX,
        timeout_s: float = WATCHLIST_REMOTE_TIMEOUT_S,
        max_retries: int = WATCHLIST_REDIS_MAX_RETRIES,
        client: Optional[redis.Redis] = None,
    ) -> None:
        self._client = client if client is not None else redis.from_url(
            redis_url,
            decode_responses=True,  # return str, not bytes
            socket_connect_timeout=timeout_s,
            socket_timeout=timeout_s,
        )
        self._prefix = (key_prefix or "watchlist:doc").rstrip(":")
        self._max_retries = max(int(max_retries), 1)

    def _key(self, owner_id: str) -> str:
        return f"{self._prefix}:{owner_id}"

    @staticmethod
    def _decode(raw: Any) -> Optional[dict[str, Any]]:
        if not raw:
            return None
        try:
            value = json.loads(raw)
        except ValueError:
            logger.warning("ignoring undecodable watchlist document in redis")
            return None
        return value if isinstance(value, dict) else None

    async def get_document(self, owner_id: str) -> Optional[dict[str, Any]]:
        return self._decode(await self._client.get(self._key(owner_id)))

    async def set_document(
        self,
        owner_id: str,
        payload: Mapping[str, Any],
        *,
        merge: bool = True,
    ) -> None:
        key = self._key(owner_id)
        for attempt in range(1, self._max_retries + 1):
            async with self._client.pipeline(transaction=True) as pipe:
                try:
                    await pipe.watch(key)
                    base = self._decode(await pipe.get(key)) if merge else None
                    document = merge_document(base, payload)
                    document["lastUpdated"] = datetime.now(timezone.utc).isoformat()
                    pipe.multi()
                    pipe.set(key, json.dumps(document, ensure_ascii=False))
                    await pipe.execute()
                    return
                except WatchError:
                    logger.debug(
                        "concurrent watchlist write, retrying (owner_id=%s, attempt=%d)",
                        owner_id,
                        attempt,
                    )
        raise RuntimeError(
            f"watchlist document write kept conflicting after {self._max_retries} attempts"
        )

    async def close(self) -> None:
        await self._client.aclose()
