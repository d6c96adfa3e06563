from __future__ import annotations


class WatchlistSyncError(Exception):
    """Base class for watchlist synchronization failures."""


class NormalizationError(WatchlistSyncError, ValueError):
    """A raw watchlist entry or record could not be interpreted.

    Never reaches callers: the normalizer drops (or degrades) the offending entry.
    """


class RemoteUnavailable(WatchlistSyncError):
    """The remote document store could not be reached (network/auth/timeout)."""


class PersistenceFailure(WatchlistSyncError):
    """A remote write was rejected or timed out after an optimistic mutation."""

    def __init__(self, message: str, *, owner_id: str | None = None) -> None:
        super().__init__(message)
        self.owner_id = owner_id
