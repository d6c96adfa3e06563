import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Single entrypoint for environment loading. The project `.env` wins over the
# shell so edits to `.env` always take effect.
load_dotenv(override=True)


def _get_env_int(key: str, default: Optional[int]) -> Optional[int]:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"environment variable {key} expects an integer, got {raw!r}") from exc


def _get_env_float(key: str, default: Optional[float]) -> Optional[float]:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"environment variable {key} expects a number, got {raw!r}") from exc


def _get_env_bool(key: str, default: bool) -> bool:
    raw = os.getenv(key)
    if raw is None or raw == "":
        return default
    return raw.lower() in {"1", "true", "yes", "y", "on"}


def _get_env_str(key: str, default: str) -> str:
    raw = os.getenv(key)
    return default if raw is None or raw.strip() == "" else raw.strip()


# ===== Paths =====
#
# Runtime artifacts live under `<repo>/files/`, never under `backend/`.

_PACKAGE_DIR = Path(__file__).resolve().parent.parent  # backend/watchlist_sync/
_BACKEND_DIR = _PACKAGE_DIR.parent

if _BACKEND_DIR.name == "backend":
    PROJECT_ROOT = _BACKEND_DIR.parent
else:
    PROJECT_ROOT = Path.cwd()

RUNTIME_ROOT = Path(os.getenv("RUNTIME_ROOT", PROJECT_ROOT / "files")).expanduser()


# ===== Remote document store =====

# memory | http | redis | null
WATCHLIST_REMOTE_PROVIDER = _get_env_str("WATCHLIST_REMOTE_PROVIDER", "memory").lower()

# Upper bound for any single remote read/write; slower calls count as failures.
WATCHLIST_REMOTE_TIMEOUT_S = _get_env_float("WATCHLIST_REMOTE_TIMEOUT_S", 8.0) or 8.0

WATCHLIST_HTTP_BASE_URL = _get_env_str("WATCHLIST_HTTP_BASE_URL", "")
WATCHLIST_HTTP_API_KEY = _get_env_str("WATCHLIST_HTTP_API_KEY", "")
WATCHLIST_HTTP_DOCUMENT_PATH = _get_env_str("WATCHLIST_HTTP_DOCUMENT_PATH", "/v1/users/{owner_id}")

WATCHLIST_REDIS_URL = _get_env_str("WATCHLIST_REDIS_URL", "redis://localhost:6379/0")
WATCHLIST_REDIS_KEY_PREFIX = _get_env_str("WATCHLIST_REDIS_KEY_PREFIX", "watchlist:doc")
WATCHLIST_REDIS_MAX_RETRIES = _get_env_int("WATCHLIST_REDIS_MAX_RETRIES", 5) or 5


# ===== Local fallback store =====

# memory | file
WATCHLIST_LOCAL_BACKEND = _get_env_str("WATCHLIST_LOCAL_BACKEND", "memory").lower()
WATCHLIST_LOCAL_DIR = Path(
    os.getenv("WATCHLIST_LOCAL_DIR", RUNTIME_ROOT / "watchlists")
).expanduser()
# Base key for per-owner mirrors (`<key>:<owner>`); the bare key is the legacy blob.
WATCHLIST_LOCAL_KEY = _get_env_str("WATCHLIST_LOCAL_KEY", "flicklet-data")


# ===== Change notifications =====

WATCHLIST_NOTIFY_DEBOUNCE_MS = _get_env_int("WATCHLIST_NOTIFY_DEBOUNCE_MS", 100)
if WATCHLIST_NOTIFY_DEBOUNCE_MS is None or WATCHLIST_NOTIFY_DEBOUNCE_MS < 0:
    WATCHLIST_NOTIFY_DEBOUNCE_MS = 100

# Emit one structured log line per engine operation (see EventLogger).
WATCHLIST_EVENT_LOG = _get_env_bool("WATCHLIST_EVENT_LOG", True)
