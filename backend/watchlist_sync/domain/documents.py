from __future__ import annotations

import copy
from typing import Any, Mapping

# Written by this engine next to `watchlists`; legacy documents never carry it.
WATCHLISTS_VERSION_FIELD = "watchlistsVersion"
WATCHLISTS_VERSION = 2


def merge_document(base: Mapping[str, Any] | None, patch: Mapping[str, Any]) -> dict[str, Any]:
    """Merge `patch` into a copy of `base`.

    Nested mappings merge key by key; lists and scalars in `patch` replace
    what `base` had. Keys only present in `base` are kept.
    """
    merged: dict[str, Any] = copy.deepcopy(dict(base)) if base else {}
    for key, value in patch.items():
        current = merged.get(key)
        if isinstance(value, Mapping) and isinstance(current, Mapping):
            merged[key] = merge_document(current, value)
        else:
            merged[key] = copy.deepcopy(value)
    return merged
