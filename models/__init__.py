"""Model package exports."""

from models.closet_item import ClosetItem, normalise_analysis
from models.composition import CompositionJob, CompositionRole, JobInputs, JobStatus
from models.outfit import Outfit
from models.selection import SelectionResult

__all__ = [
    "ClosetItem",
    "CompositionJob",
    "CompositionRole",
    "JobInputs",
    "JobStatus",
    "Outfit",
    "SelectionResult",
    "normalise_analysis",
]
