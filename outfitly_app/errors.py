"""Error taxonomy shared by the selector, composition client and sequencer."""

from __future__ import annotations

from typing import Any, Sequence


class OutfitlyError(Exception):
    """Base class for all errors raised by Outfitly flows."""


class ConfigurationError(OutfitlyError):
    """Raised once at startup when configuration values are unusable."""

    def __init__(self, problems: Sequence[str]) -> None:
        self.problems = list(problems)
        super().__init__("Invalid configuration: " + "; ".join(self.problems))


class InsufficientItems(OutfitlyError):
    """The closet does not hold enough items to pick an outfit from."""

    def __init__(self, available: int, required: int = 2, unreadable: int = 0) -> None:
        self.available = available
        self.required = required
        self.unreadable = unreadable
        message = f"At least {required} closet items are required, found {available}"
        if unreadable:
            message += f" ({unreadable} more with unreadable images)"
        super().__init__(message)


class EmptySelection(OutfitlyError):
    """No selected id survived validation against the closet snapshot."""

    def __init__(self, dropped_ids: Sequence[str] = ()) -> None:
        self.dropped_ids = list(dropped_ids)
        super().__init__(f"Selection contained no known closet items (dropped: {self.dropped_ids})")


class UpstreamError(OutfitlyError):
    """Non-2xx or unreachable response from the vision completion service."""

    def __init__(self, status: int | None, body: str) -> None:
        self.status = status
        self.body = body
        super().__init__(f"Vision service error {status}: {body[:300]}")


class MalformedResponse(OutfitlyError):
    """The model reply is not a JSON object of the expected shape."""

    def __init__(self, message: str, raw: str) -> None:
        self.raw = raw
        super().__init__(message)


class CompositionError(OutfitlyError):
    """Base class for image composition failures."""


class SubmissionRejected(CompositionError):
    def __init__(self, status: int | None, body: Any) -> None:
        self.status = status
        self.body = body
        super().__init__(f"Composition submission rejected ({status}): {str(body)[:300]}")


class JobFailed(CompositionError):
    def __init__(self, reason: str, job_id: str | None = None) -> None:
        self.reason = reason
        self.job_id = job_id
        super().__init__(f"Composition job {job_id or '<inline>'} failed: {reason}")


class JobTimedOut(CompositionError):
    def __init__(self, job_id: str | None, attempts: int) -> None:
        self.job_id = job_id
        self.attempts = attempts
        super().__init__(f"Composition job {job_id} did not finish after {attempts} poll attempts")


class NoImageExtracted(CompositionError):
    """The service reported success but no strategy found an image reference."""

    def __init__(self, job_id: str | None, strategies_tried: Sequence[str], body: Any = None) -> None:
        self.job_id = job_id
        self.strategies_tried = list(strategies_tried)
        self.body = body
        super().__init__(
            f"Composition job {job_id} reported success without an image "
            f"(tried: {', '.join(self.strategies_tried)})"
        )


class CompositionCancelled(CompositionError):
    """The caller abandoned the request while a job was in flight."""


class BaseModelUnavailable(OutfitlyError):
    def __init__(self, cause: Exception | None) -> None:
        self.cause = cause
        super().__init__(f"Could not generate a base model image: {cause}")


class GarmentApplicationFailed(OutfitlyError):
    """A clothing step failed, so the composition was aborted."""

    def __init__(self, role: str, item_id: str, cause: Exception | None) -> None:
        self.role = role
        self.item_id = item_id
        self.cause = cause
        super().__init__(f"{role} step failed for item {item_id}: {cause}")


__all__ = [
    "OutfitlyError",
    "ConfigurationError",
    "InsufficientItems",
    "EmptySelection",
    "UpstreamError",
    "MalformedResponse",
    "CompositionError",
    "SubmissionRejected",
    "JobFailed",
    "JobTimedOut",
    "NoImageExtracted",
    "CompositionCancelled",
    "BaseModelUnavailable",
    "GarmentApplicationFailed",
]
