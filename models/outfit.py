"""Persisted outfit record."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Tuple

from models.closet_item import ClosetItem
from models.selection import SelectionResult


@dataclass(frozen=True)
class Outfit:
    """Chosen items, the selection rationale and the composite image.

    Items are embedded snapshots so a saved outfit survives later closet edits.
    """

    selected_items: Tuple[ClosetItem, ...]
    selection_result: SelectionResult
    final_image: str
    id: str = field(default_factory=lambda: uuid.uuid4().hex)
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if not self.selected_items:
            raise ValueError("An outfit needs at least one selected item")
        if not self.final_image:
            raise ValueError("An outfit needs a final image")
        object.__setattr__(self, "selected_items", tuple(self.selected_items))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "selected_items": [item.to_dict() for item in self.selected_items],
            "selection_result": self.selection_result.to_dict(),
            "final_image": self.final_image,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "Outfit":
        return cls(
            id=str(payload["id"]),
            created_at=datetime.fromisoformat(payload["created_at"]),
            selected_items=tuple(ClosetItem.from_dict(item) for item in payload["selected_items"]),
            selection_result=SelectionResult.from_dict(payload["selection_result"]),
            final_image=str(payload["final_image"]),
        )


__all__ = ["Outfit"]
