"""Ordering of selected items into garment and accessory application steps."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence, Tuple

from logic.garment_categorizer import classify
from models.closet_item import ClosetItem
from models.composition import CLOTHING_ROLES, CompositionRole

GARMENT_ORDER = {role: index for index, role in enumerate(CLOTHING_ROLES)}


@dataclass(frozen=True)
class PlannedStep:
    item: ClosetItem
    role: CompositionRole

    @property
    def required(self) -> bool:
        """Clothing steps must succeed; accessory steps may be skipped."""

        return self.role.is_clothing


@dataclass(frozen=True)
class ApplicationPlan:
    garments: Tuple[PlannedStep, ...]
    accessories: Tuple[PlannedStep, ...]

    @property
    def steps(self) -> Tuple[PlannedStep, ...]:
        return self.garments + self.accessories


def plan_applications(
    items: Sequence[ClosetItem],
    classifier: Callable[[str], CompositionRole] = classify,
) -> ApplicationPlan:
    """Classify items and order them: tops, bottoms, one-pieces, then accessories.

    Ordering is stable, so items sharing a role keep their selection order.
    """

    steps = [PlannedStep(item=item, role=classifier(item.description)) for item in items]
    garments = sorted((step for step in steps if step.role.is_clothing), key=lambda step: GARMENT_ORDER[step.role])
    accessories = [step for step in steps if step.role.is_accessory]
    return ApplicationPlan(garments=tuple(garments), accessories=tuple(accessories))


__all__ = ["ApplicationPlan", "PlannedStep", "plan_applications"]
