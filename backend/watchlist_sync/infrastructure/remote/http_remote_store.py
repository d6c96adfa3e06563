from __future__ import annotations

import asyncio
import logging
from typing import Any, Mapping, Optional
from urllib.parse import quote, urljoin

import aiohttp

from watchlist_sync.application.ports.remote_store_port import RemoteStorePort
from watchlist_sync.config.settings import (
    WATCHLIST_HTTP_API_KEY,
    WATCHLIST_HTTP_BASE_URL,
    WATCHLIST_HTTP_DOCUMENT_PATH,
    WATCHLIST_REMOTE_TIMEOUT_S,
)

logger = logging.getLogger(__name__)


def _join(base: str, path: str) -> str:
    base = (base or "").rstrip("/") + "/"
    path = (path or "").lstrip("/")
    return urljoin(base, path)


class HttpRemoteStore(RemoteStorePort):
    """Per-user document over a JSON HTTP API.

    `GET` reads the document (404 means "no document yet"); merge writes use
    `PATCH` and full writes `PUT`. The server is expected to apply the merge
    and stamp `lastUpdated`.
    """

    def __init__(
        self,
        *,
        base_url: str = WATCHLIST_HTTP_BASE_URL,
        api_key: str = WATCHLIST_HTTP_API_KEY,
        document_path: str = WATCHLIST_HTTP_DOCUMENT_PATH,
        timeout_s: float = WATCHLIST_REMOTE_TIMEOUT_S,
    ) -> None:
        self._base_url = (base_url or "").strip()
        self._api_key = (api_key or "").strip()
        self._document_path = document_path or "/v1/users/{owner_id}"
        self._timeout_s = float(timeout_s or 8.0)
        self._session: aiohttp.ClientSession | None = None
        self._lock = asyncio.Lock()

    def _headers(self) -> dict[str, str]:
        headers = {"content-type": "application/json", "accept": "application/json"}
        if self._api_key:
            headers["authorization"] = f"Bearer {self._api_key}"
        return headers

    def _url(self, owner_id: str) -> str:
        path = self._document_path.replace("{owner_id}", quote(str(owner_id), safe=""))
        return _join(self._base_url, path)

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is not None and not self._session.closed:
            return self._session

        async with self._lock:
            if self._session is not None and not self._session.closed:
                return self._session

            timeout = aiohttp.ClientTimeout(total=self._timeout_s)
            self._session = aiohttp.ClientSession(timeout=timeout)
            return self._session

    @staticmethod
    def _unwrap(payload: Any) -> Optional[dict[str, Any]]:
        # Accept a bare document or one wrapped as {"document": {...}} / {"data": {...}}.
        if not isinstance(payload, dict):
            return None
        for key in ("document", "data"):
            inner = payload.get(key)
            if isinstance(inner, dict):
                return inner
        return payload

    async def get_document(self, owner_id: str) -> Optional[dict[str, Any]]:
        if not self._base_url:
            return None
        session = await self._get_session()
        async with session.get(self._url(owner_id), headers=self._headers()) as resp:
            if resp.status == 404:
                return None
            if resp.status >= 400:
                text = await resp.text()
                raise RuntimeError(f"watchlist document read failed ({resp.status}): {text[:200]}")
            data = await resp.json(content_type=None)
        return self._unwrap(data)

    async def set_document(
        self,
        owner_id: str,
        payload: Mapping[str, Any],
        *,
        merge: bool = True,
    ) -> None:
        if not self._base_url:
            raise RuntimeError("WATCHLIST_HTTP_BASE_URL is not configured")
        session = await self._get_session()
        method = "PATCH" if merge else "PUT"
        async with session.request(
            method, self._url(owner_id), json=dict(payload), headers=self._headers()
        ) as resp:
            if resp.status >= 400:
                text = await resp.text()
                raise RuntimeError(f"watchlist document write failed ({resp.status}): {text[:200]}")
        logger.debug("watchlist document written (owner_id=%s, method=%s)", owner_id, method)

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None
