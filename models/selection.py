"""Selection produced by the vision selector."""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any, Dict, Iterable, Tuple


@dataclass(frozen=True)
class SelectionResult:
    """Subset of closet item ids plus the model's styling rationale."""

    selected_ids: Tuple[str, ...]
    outfit_description: str = ""
    style: str = ""
    occasion: str = ""
    color_scheme: str = ""
    reasoning: str = ""

    def restricted_to(self, known_ids: Iterable[str]) -> Tuple["SelectionResult", Tuple[str, ...]]:
        """Return a copy keeping only ``known_ids`` and the ids that were dropped."""

        known = set(known_ids)
        kept = tuple(item_id for item_id in self.selected_ids if item_id in known)
        dropped = tuple(item_id for item_id in self.selected_ids if item_id not in known)
        return replace(self, selected_ids=kept), dropped

    def to_dict(self) -> Dict[str, Any]:
        return {
            "selected_ids": list(self.selected_ids),
            "outfit_description": self.outfit_description,
            "style": self.style,
            "occasion": self.occasion,
            "color_scheme": self.color_scheme,
            "reasoning": self.reasoning,
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "SelectionResult":
        return cls(
            selected_ids=tuple(str(item_id) for item_id in payload.get("selected_ids", ())),
            outfit_description=str(payload.get("outfit_description", "")),
            style=str(payload.get("style", "")),
            occasion=str(payload.get("occasion", "")),
            color_scheme=str(payload.get("color_scheme", "")),
            reasoning=str(payload.get("reasoning", "")),
        )


__all__ = ["SelectionResult"]
