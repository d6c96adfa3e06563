from __future__ import annotations

import json
from enum import Enum
from typing import Any


def _format_value(value: Any) -> str:
    if value is None:
        return "null"
    if isinstance(value, Enum):
        value = value.value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (set, frozenset)):
        return json.dumps(sorted(str(v) for v in value), ensure_ascii=False)
    if isinstance(value, (str, list, tuple, dict)):
        # Quoted so ids with spaces/symbols stay unambiguous.
        return json.dumps(value, ensure_ascii=False, default=str)
    return json.dumps(str(value), ensure_ascii=False)


def format_kv(**fields: Any) -> str:
    """
    Render a compact single-line key=value log string; None values are skipped.

    Example:
      op="move" item_id="1" from="watching" to="watched" outcome="applied"
    """
    return " ".join(f"{key}={_format_value(value)}" for key, value in fields.items() if value is not None)
