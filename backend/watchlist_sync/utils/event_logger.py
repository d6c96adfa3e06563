import logging
import time
from typing import Any, Dict, Optional

from watchlist_sync.utils.log_format import format_kv


class EventLogger:
    """
    Emit compact single-line engine events with shared context.

    Keeps a sequence counter and elapsed time since construction so the order
    of queued operations can be read straight off the log.
    """

    def __init__(
        self,
        logger: logging.Logger,
        prefix: str,
        *,
        base_fields: Optional[Dict[str, Any]] = None,
        enabled: bool = True,
        stacklevel: int = 3,
    ) -> None:
        self._logger = logger
        self._prefix = prefix
        self._base_fields: Dict[str, Any] = dict(base_fields or {})
        self._enabled = enabled
        self._started_at = time.monotonic()
        self._seq = 0
        self._stacklevel = stacklevel

    def set(self, **fields: Any) -> None:
        for key, value in fields.items():
            if value is None:
                self._base_fields.pop(key, None)
            else:
                self._base_fields[key] = value

    def info(self, event: str, **fields: Any) -> None:
        self._log(logging.INFO, event, **fields)

    def debug(self, event: str, **fields: Any) -> None:
        self._log(logging.DEBUG, event, **fields)

    def warning(self, event: str, **fields: Any) -> None:
        self._log(logging.WARNING, event, **fields)

    def _log(self, level: int, event: str, **fields: Any) -> None:
        if not self._enabled or not self._logger.isEnabledFor(level):
            return
        self._seq += 1
        payload: Dict[str, Any] = {
            "seq": self._seq,
            "event": event,
            "elapsed_s": round(time.monotonic() - self._started_at, 4),
        }
        payload.update(self._base_fields)
        payload.update(fields)
        self._logger.log(level, "%s %s", self._prefix, format_kv(**payload), stacklevel=self._stacklevel)
