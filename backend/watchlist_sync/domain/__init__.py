from watchlist_sync.domain.errors import (
    NormalizationError,
    PersistenceFailure,
    RemoteUnavailable,
    WatchlistSyncError,
)
from watchlist_sync.domain.events import ChangeEvent, HydrationEvent, WatchlistEvent
from watchlist_sync.domain.models import (
    LOCAL_OWNER,
    Category,
    ItemRecord,
    MediaKind,
    SnapshotView,
    WatchlistSnapshot,
    owner_key,
    wire_id,
)

__all__ = [
    "LOCAL_OWNER",
    "Category",
    "ChangeEvent",
    "HydrationEvent",
    "ItemRecord",
    "MediaKind",
    "NormalizationError",
    "PersistenceFailure",
    "RemoteUnavailable",
    "SnapshotView",
    "WatchlistEvent",
    "WatchlistSnapshot",
    "WatchlistSyncError",
    "owner_key",
    "wire_id",
]
