"""Keyword classification of closet item descriptions into composition roles.

Roles are checked in a fixed order and the first match wins: clothing roles
(top, bottom, one-piece) before accessory roles, and within clothing the top
vocabulary before bottoms before one-pieces. Text that matches nothing is a
top, the most common thing people photograph.
"""

from __future__ import annotations

import re
from typing import Dict, Pattern, Sequence, Tuple

from models.composition import CompositionRole

ROLE_KEYWORDS: Tuple[Tuple[CompositionRole, Sequence[str]], ...] = (
    (
        CompositionRole.TOP,
        (
            "shirt", "t-shirt", "tshirt", "tee", "top", "blouse", "sweater", "jumper",
            "pullover", "hoodie", "sweatshirt", "cardigan", "jacket", "blazer", "coat",
            "parka", "polo", "tank", "camisole", "vest", "turtleneck", "tunic",
        ),
    ),
    (
        CompositionRole.BOTTOM,
        (
            "pants", "trousers", "jeans", "shorts", "skirt", "leggings",
            "joggers", "chinos", "slacks", "sweatpants", "culottes",
        ),
    ),
    (
        CompositionRole.ONE_PIECE,
        ("dress", "jumpsuit", "romper", "playsuit", "overalls", "gown", "bodysuit", "onesie"),
    ),
    (
        CompositionRole.ACCESSORY_HAT,
        ("hat", "cap", "beanie", "beret", "fedora", "visor", "headband"),
    ),
    (
        CompositionRole.ACCESSORY_SHOE,
        (
            "shoe", "sneaker", "trainer", "boot", "heel", "sandal", "loafer", "flats",
            "pump", "slipper", "mule", "oxford", "espadrille",
        ),
    ),
    (
        CompositionRole.ACCESSORY_OTHER,
        (
            "bag", "handbag", "purse", "backpack", "tote", "clutch", "belt", "scarf",
            "sunglasses", "glasses", "watch", "necklace", "bracelet", "earring", "ring",
            "jewelry", "jewellery", "tie", "gloves",
        ),
    ),
)

DEFAULT_ROLE = CompositionRole.TOP


def _compile(keywords: Sequence[str]) -> Pattern[str]:
    alternatives = "|".join(re.escape(keyword) for keyword in sorted(keywords, key=len, reverse=True))
    return re.compile(rf"(?<![a-z])(?:{alternatives})(?:e?s)?(?![a-z])")


_PATTERNS: Dict[CompositionRole, Pattern[str]] = {role: _compile(words) for role, words in ROLE_KEYWORDS}


def classify(description: str) -> CompositionRole:
    """Map a free-text item description to the role used for composition."""

    text = (description or "").lower()
    for role, _ in ROLE_KEYWORDS:
        if _PATTERNS[role].search(text):
            return role
    return DEFAULT_ROLE


__all__ = ["DEFAULT_ROLE", "ROLE_KEYWORDS", "classify"]
