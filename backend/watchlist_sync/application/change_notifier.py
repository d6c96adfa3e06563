from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any, Optional

from watchlist_sync.config.settings import WATCHLIST_NOTIFY_DEBOUNCE_MS
from watchlist_sync.domain.events import WatchlistEvent

logger = logging.getLogger(__name__)

EventHandler = Callable[[WatchlistEvent], Any]
BatchHandler = Callable[[tuple[WatchlistEvent, ...]], Any]


class ChangeNotifier:
    """Typed publish/subscribe channel for watchlist changes.

    Two kinds of subscribers:
    - `subscribe()`: called once per event, immediately (e.g. drop one card).
    - `subscribe_debounced()`: called once per burst with every event
      published within `debounce_ms` of the first one (e.g. recount badges).

    Handlers may be plain functions or coroutine functions. A failing handler
    is logged and never affects the others or the publisher.
    """

    def __init__(self, *, debounce_ms: int = WATCHLIST_NOTIFY_DEBOUNCE_MS) -> None:
        self._debounce_s = max(int(debounce_ms), 0) / 1000.0
        self._handlers: list[EventHandler] = []
        self._batch_handlers: list[BatchHandler] = []
        self._buffer: list[WatchlistEvent] = []
        self._timer: Optional[asyncio.TimerHandle] = None
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def debounce_s(self) -> float:
        return self._debounce_s

    @property
    def pending(self) -> int:
        return len(self._buffer)

    def subscribe(self, handler: EventHandler) -> Callable[[], None]:
        self._handlers.append(handler)
        return lambda: self._discard(self._handlers, handler)

    def subscribe_debounced(self, handler: BatchHandler) -> Callable[[], None]:
        self._batch_handlers.append(handler)
        return lambda: self._discard(self._batch_handlers, handler)

    @staticmethod
    def _discard(handlers: list[Any], handler: Any) -> None:
        try:
            handlers.remove(handler)
        except ValueError:
            pass

    def publish(self, event: WatchlistEvent) -> None:
        for handler in list(self._handlers):
            self._call(handler, event)

        if not self._batch_handlers:
            return
        self._buffer.append(event)
        if self._timer is not None:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            # No event loop (sync caller): nothing to coalesce with.
            self.flush()
            return
        self._timer = loop.call_later(self._debounce_s, self.flush)

    def flush(self) -> None:
        """Deliver buffered events to debounced subscribers right away."""
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if not self._buffer:
            return
        batch = tuple(self._buffer)
        self._buffer.clear()
        for handler in list(self._batch_handlers):
            self._call(handler, batch)

    def _call(self, handler: Callable[[Any], Any], payload: Any) -> None:
        try:
            result = handler(payload)
        except Exception:
            logger.exception("watchlist subscriber %r failed", handler)
            return
        if inspect.isawaitable(result):
            task = asyncio.ensure_future(result)
            self._tasks.add(task)
            task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("watchlist subscriber failed", exc_info=exc)

    async def aclose(self) -> None:
        """Flush what is buffered and wait for async subscribers to finish."""
        self.flush()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
