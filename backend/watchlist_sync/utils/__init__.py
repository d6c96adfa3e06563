from watchlist_sync.utils.event_logger import EventLogger
from watchlist_sync.utils.log_format import format_kv

__all__ = ["EventLogger", "format_kv"]
