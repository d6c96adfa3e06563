from __future__ import annotations

import json
import logging
import os
import re
import tempfile
from pathlib import Path
from typing import Any, Optional

from watchlist_sync.application.ports.local_store_port import LocalStorePort
from watchlist_sync.config.settings import WATCHLIST_LOCAL_DIR

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^A-Za-z0-9._-]")


class JsonFileLocalStore(LocalStorePort):
    """One JSON file per key under `root`.

    Writes go to a temp file in the same directory and are swapped in with
    `os.replace`, so a reader never sees a half-written blob. Unreadable or
    non-object files read as None.
    """

    def __init__(self, root: Path | str = WATCHLIST_LOCAL_DIR) -> None:
        self._root = Path(root).expanduser()

    @property
    def root(self) -> Path:
        return self._root

    def path_for(self, key: str) -> Path:
        return self._root / f"{_UNSAFE_CHARS.sub('_', key)}.json"

    def get_blob(self, key: str) -> Optional[dict[str, Any]]:
        path = self.path_for(key)
        if not path.exists():
            return None
        try:
            value = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("ignoring unreadable local watchlist blob %s: %s", path, exc)
            return None
        return value if isinstance(value, dict) else None

    def set_blob(self, key: str, value: dict[str, Any]) -> None:
        self._root.mkdir(parents=True, exist_ok=True)
        path = self.path_for(key)
        fd, tmp = tempfile.mkstemp(dir=self._root, prefix=f".{path.stem}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(value, fh, ensure_ascii=False, indent=2, default=str)
            os.replace(tmp, path)
        except BaseException:
            Path(tmp).unlink(missing_ok=True)
            raise
