"""Closet item data model and helpers."""

from __future__ import annotations

import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Tuple

HEX_COLOR = re.compile(r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$")
MAX_AESTHETICS = 6
MAX_PALETTE = 5
MAX_SUGGESTIONS = 5
DEFAULT_DESCRIPTION = "Clothing analysis"
DEFAULT_AESTHETICS = ("minimal",)


def _strings(values: Any, limit: int) -> Tuple[str, ...]:
    """Keep string entries only, capped at ``limit``."""

    if not isinstance(values, (list, tuple)):
        return ()
    return tuple(value for value in values if isinstance(value, str))[:limit]


def normalise_palette(values: Any) -> Tuple[str, ...]:
    """Keep valid ``#RGB``/``#RRGGBB`` strings, at most five."""

    if not isinstance(values, (list, tuple)):
        return ()
    valid = [value for value in values if isinstance(value, str) and HEX_COLOR.match(value)]
    return tuple(valid[:MAX_PALETTE])


def normalise_analysis(data: Dict[str, Any]) -> Dict[str, Any]:
    """Coerce a loose model reply into the closet item attribute shape."""

    description = data.get("description") if isinstance(data, dict) else None
    aesthetics = _strings(data.get("aesthetics"), MAX_AESTHETICS) if isinstance(data, dict) else ()
    return {
        "description": description if isinstance(description, str) else DEFAULT_DESCRIPTION,
        "aesthetics": aesthetics or DEFAULT_AESTHETICS,
        "palette": normalise_palette(data.get("palette")) if isinstance(data, dict) else (),
        "suggestions": _strings(data.get("suggestions"), MAX_SUGGESTIONS) if isinstance(data, dict) else (),
    }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ClosetItem:
    """One saved clothing photograph plus its AI-derived description."""

    id: str
    image_ref: str
    description: str
    created_at: datetime = field(default_factory=_utcnow)
    aesthetics: Tuple[str, ...] = ()
    palette: Tuple[str, ...] = ()
    suggestions: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("ClosetItem.id is required")
        if not self.image_ref:
            raise ValueError("ClosetItem.image_ref is required")
        object.__setattr__(self, "aesthetics", tuple(self.aesthetics)[:MAX_AESTHETICS])
        object.__setattr__(self, "palette", normalise_palette(list(self.palette)))
        object.__setattr__(self, "suggestions", tuple(self.suggestions)[:MAX_SUGGESTIONS])

    @classmethod
    def from_analysis(cls, image_ref: str, analysis: Dict[str, Any], item_id: str | None = None) -> "ClosetItem":
        """Build a new item from a (possibly messy) analysis payload."""

        return cls(id=item_id or uuid.uuid4().hex, image_ref=image_ref, **normalise_analysis(analysis))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "created_at": self.created_at.isoformat(),
            "image_ref": self.image_ref,
            "description": self.description,
            "aesthetics": list(self.aesthetics),
            "palette": list(self.palette),
            "suggestions": list(self.suggestions),
        }

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "ClosetItem":
        return cls(
            id=str(payload["id"]),
            created_at=datetime.fromisoformat(payload["created_at"]),
            image_ref=str(payload["image_ref"]),
            description=str(payload.get("description", "")),
            aesthetics=tuple(payload.get("aesthetics", ())),
            palette=tuple(payload.get("palette", ())),
            suggestions=tuple(payload.get("suggestions", ())),
        )


def index_by_id(items: Iterable[ClosetItem]) -> Dict[str, ClosetItem]:
    return {item.id: item for item in items}


__all__ = ["ClosetItem", "HEX_COLOR", "index_by_id", "normalise_analysis", "normalise_palette"]
