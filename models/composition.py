"""Composition roles and per-step job records."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from outfitly_app.errors import CompositionError


class CompositionRole(str, Enum):
    TOP = "Top"
    BOTTOM = "Bottom"
    ONE_PIECE = "OnePiece"
    ACCESSORY_HAT = "AccessoryHat"
    ACCESSORY_SHOE = "AccessoryShoe"
    ACCESSORY_OTHER = "AccessoryOther"

    @property
    def is_clothing(self) -> bool:
        return self in CLOTHING_ROLES

    @property
    def is_accessory(self) -> bool:
        return self in ACCESSORY_ROLES


CLOTHING_ROLES = (CompositionRole.TOP, CompositionRole.BOTTOM, CompositionRole.ONE_PIECE)
ACCESSORY_ROLES = (
    CompositionRole.ACCESSORY_HAT,
    CompositionRole.ACCESSORY_SHOE,
    CompositionRole.ACCESSORY_OTHER,
)


class JobStatus(str, Enum):
    SUBMITTED = "Submitted"
    POLLING = "Polling"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    TIMED_OUT = "TimedOut"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.SUCCEEDED, JobStatus.FAILED, JobStatus.TIMED_OUT)


@dataclass(frozen=True)
class JobInputs:
    """What was submitted. ``garment_image`` and ``role`` are empty for base-model jobs."""

    base_image: Optional[str]
    garment_image: Optional[str]
    role: Optional[CompositionRole]
    prompt: Optional[str] = None


@dataclass
class CompositionJob:
    """Lifecycle of one request to the image composition service."""

    inputs: JobInputs
    status: JobStatus = JobStatus.SUBMITTED
    external_job_id: Optional[str] = None
    result_image: Optional[str] = None
    attempts: int = 0
    failure: Optional[CompositionError] = field(default=None, repr=False)

    @property
    def succeeded(self) -> bool:
        return self.status is JobStatus.SUCCEEDED

    def succeed(self, image: str) -> "CompositionJob":
        self.status = JobStatus.SUCCEEDED
        self.result_image = image
        return self

    def fail(self, error: CompositionError, status: JobStatus = JobStatus.FAILED) -> "CompositionJob":
        self.status = status
        self.failure = error
        return self

    def raise_for_status(self) -> None:
        """Raise the recorded failure if the job did not succeed."""

        if self.succeeded:
            return
        if not self.status.is_terminal:
            raise CompositionError(f"Composition job is not finished (status={self.status.value})")
        raise self.failure or CompositionError(f"Composition job ended as {self.status.value}")


__all__ = [
    "ACCESSORY_ROLES",
    "CLOTHING_ROLES",
    "CompositionJob",
    "CompositionRole",
    "JobInputs",
    "JobStatus",
]
