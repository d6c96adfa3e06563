from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Mapping, Optional, Union

Operation = Literal["add", "move", "remove"]
Outcome = Literal["applied", "rolled-back"]


@dataclass(frozen=True)
class ChangeEvent:
    """Outcome of one mutation entry point call."""

    operation: Operation
    item_id: str
    outcome: Outcome
    from_category: Optional[str] = None
    to_category: Optional[str] = None
    owner_id: Optional[str] = None

    @property
    def rolled_back(self) -> bool:
        return self.outcome == "rolled-back"

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {
            "operation": self.operation,
            "itemId": self.item_id,
            "outcome": self.outcome,
        }
        if self.from_category is not None:
            payload["fromCategory"] = self.from_category
        if self.to_category is not None:
            payload["toCategory"] = self.to_category
        return payload


@dataclass(frozen=True)
class HydrationEvent:
    """A snapshot was (re)loaded for an owner and is now live in the cache."""

    owner_id: str
    # remote | remote-legacy | local | local-legacy | empty
    source: str
    counts: Mapping[str, int] = field(default_factory=dict)


WatchlistEvent = Union[ChangeEvent, HydrationEvent]
