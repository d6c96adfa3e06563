from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable
from typing import Any, Optional

logger = logging.getLogger(__name__)

OperationFactory = Callable[[], Awaitable[Any]]

_UNSET: Any = object()


class OperationQueue:
    """Run submitted coroutine factories strictly one at a time, FIFO.

    `enqueue()` resolves once that operation (and everything it awaits) is
    done. A failing operation resolves to `failure` instead of raising, so one
    bad operation never stalls the ones behind it.
    """

    def __init__(self, *, failure: Any = False, name: str = "watchlist") -> None:
        self._failure = failure
        self._name = name
        self._pending: deque[tuple[OperationFactory, asyncio.Future[Any], Any]] = deque()
        self._worker: Optional[asyncio.Task[None]] = None
        self._idle = asyncio.Event()
        self._idle.set()

    @property
    def pending(self) -> int:
        return len(self._pending)

    @property
    def busy(self) -> bool:
        return self._worker is not None and not self._worker.done()

    def submit(self, operation: OperationFactory, *, failure: Any = _UNSET) -> asyncio.Future[Any]:
        """Take a place in line now; the returned future carries the result.

        `failure` overrides the queue-wide failure value for this operation.
        """
        loop = asyncio.get_running_loop()
        future: asyncio.Future[Any] = loop.create_future()
        sentinel = self._failure if failure is _UNSET else failure
        self._pending.append((operation, future, sentinel))
        self._idle.clear()
        if not self.busy:
            self._worker = loop.create_task(self._drain(), name=f"{self._name}-operation-queue")
        return future

    async def enqueue(self, operation: OperationFactory, *, failure: Any = _UNSET) -> Any:
        """Run `operation` after everything queued before it; return its result."""
        return await self.submit(operation, failure=failure)

    async def join(self) -> None:
        """Wait until every operation submitted so far has finished."""
        await self._idle.wait()

    async def _drain(self) -> None:
        try:
            while self._pending:
                operation, future, sentinel = self._pending.popleft()
                if future.cancelled():
                    # The submitter gave up before its turn came.
                    continue
                try:
                    result = await operation()
                except asyncio.CancelledError:
                    if not future.done():
                        future.cancel()
                    raise
                except Exception:
                    logger.exception("%s operation failed", self._name)
                    result = sentinel
                if not future.done():
                    future.set_result(result)
        finally:
            if not self._pending:
                self._idle.set()

    async def shutdown(self) -> None:
        """Cancel the worker and every operation still waiting."""
        while self._pending:
            _, future, _ = self._pending.popleft()
            future.cancel()
        worker, self._worker = self._worker, None
        if worker is not None and not worker.done():
            worker.cancel()
            await asyncio.gather(worker, return_exceptions=True)
        self._idle.set()
