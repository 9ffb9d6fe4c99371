"""Pull image references, job ids and job status out of composition responses.

The composition service does not publish a stable response schema, so image
extraction is an ordered list of small pure strategies. Each takes the decoded
response body and returns a reference or ``None``; the first hit wins.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Sequence, Tuple

ARRAY_KEYS = ("output", "images", "outputs")
STRING_KEYS = ("output", "image", "image_url", "imageUrl", "url")
OBJECT_KEYS = ("output", "image", "images", "result_image")
IMAGE_KEYS = ("url", "image_url", "imageUrl", "image", "uri", "href", "b64_json")
WRAPPER_KEYS = ("result", "data")
JOB_ID_KEYS = ("id", "job_id", "jobId", "prediction_id", "request_id", "task_id")
STATUS_KEYS = ("status", "state")
REASON_KEYS = ("error", "message", "detail", "reason")

SUCCESS_STATUSES = {"completed", "complete", "succeeded", "success", "done", "finished"}
FAILURE_STATUSES = {"failed", "failure", "error", "errored", "canceled", "cancelled", "rejected"}
PENDING_STATUSES = {
    "starting", "queued", "pending", "submitted", "processing", "running", "in_progress",
    "in_queue", "in-progress",
}

Extractor = Callable[[Any], Optional[str]]


def _non_empty(value: Any) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def _from_image_object(value: Any) -> Optional[str]:
    """Return the first conventional image key exposed by ``value``."""

    if not isinstance(value, dict):
        return None
    for key in IMAGE_KEYS:
        found = _non_empty(value.get(key))
        if found:
            if key == "b64_json" and not found.startswith("data:"):
                return f"data:image/png;base64,{found}"
            return found
    return None


def _first_element(value: Any) -> Optional[str]:
    if not isinstance(value, list) or not value:
        return None
    head = value[0]
    return _non_empty(head) or _from_image_object(head)


def from_output_array(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    for key in ARRAY_KEYS:
        found = _first_element(payload.get(key))
        if found:
            return found
    return None


def from_output_string(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    for key in STRING_KEYS:
        found = _non_empty(payload.get(key))
        if found:
            return found
    return None


def from_nested_object(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    for key in OBJECT_KEYS:
        found = _from_image_object(payload.get(key))
        if found:
            return found
    return None


def from_wrapper(payload: Any) -> Optional[str]:
    """Repeat the array/object/string cases inside ``result`` or ``data``."""

    if not isinstance(payload, dict):
        return None
    for key in WRAPPER_KEYS:
        wrapped = payload.get(key)
        found = (
            _non_empty(wrapped)
            or _first_element(wrapped)
            or _from_image_object(wrapped)
            or from_output_array(wrapped)
            or from_output_string(wrapped)
            or from_nested_object(wrapped)
        )
        if found:
            return found
    return None


EXTRACTION_STRATEGIES: Tuple[Tuple[str, Extractor], ...] = (
    ("output_array", from_output_array),
    ("output_string", from_output_string),
    ("nested_object", from_nested_object),
    ("wrapper", from_wrapper),
)


@dataclass(frozen=True)
class ExtractionOutcome:
    reference: Optional[str]
    strategies_tried: Tuple[str, ...]
    strategy: Optional[str] = None

    @property
    def found(self) -> bool:
        return self.reference is not None


def extract_image(
    payload: Any, strategies: Sequence[Tuple[str, Extractor]] = EXTRACTION_STRATEGIES
) -> ExtractionOutcome:
    """Run the strategies in order and report which ones were attempted."""

    tried = []
    for name, strategy in strategies:
        tried.append(name)
        reference = strategy(payload)
        if reference:
            return ExtractionOutcome(reference=reference, strategies_tried=tuple(tried), strategy=name)
    return ExtractionOutcome(reference=None, strategies_tried=tuple(tried))


def extract_job_id(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None
    for container in (payload, payload.get("data")):
        if not isinstance(container, dict):
            continue
        for key in JOB_ID_KEYS:
            value = container.get(key)
            if isinstance(value, (str, int)) and not isinstance(value, bool) and str(value).strip():
                return str(value).strip()
    return None


def classify_status(payload: Any) -> str:
    """Return ``succeeded``, ``failed``, ``pending`` or ``unknown``."""

    if not isinstance(payload, dict):
        return "unknown"
    containers = [payload] + [payload[key] for key in WRAPPER_KEYS if isinstance(payload.get(key), dict)]
    for container in containers:
        for key in STATUS_KEYS:
            raw = container.get(key)
            if not isinstance(raw, str):
                continue
            status = raw.strip().lower()
            if status in SUCCESS_STATUSES:
                return "succeeded"
            if status in FAILURE_STATUSES:
                return "failed"
            if status in PENDING_STATUSES:
                return "pending"
    return "unknown"


def failure_reason(payload: Any) -> str:
    if isinstance(payload, dict):
        for key in REASON_KEYS:
            value = payload.get(key)
            if isinstance(value, dict):
                nested = _non_empty(value.get("message")) or _non_empty(value.get("name"))
                if nested:
                    return nested
            found = _non_empty(value)
            if found:
                return found
    return "composition service reported failure"


def describe(payload: Any) -> Dict[str, Any]:
    """Short diagnostic summary of a response body for logs."""

    if not isinstance(payload, dict):
        return {"type": type(payload).__name__}
    return {"keys": sorted(str(key) for key in payload.keys())[:12], "status": classify_status(payload)}


__all__ = [
    "EXTRACTION_STRATEGIES",
    "ExtractionOutcome",
    "classify_status",
    "describe",
    "extract_image",
    "extract_job_id",
    "failure_reason",
    "from_nested_object",
    "from_output_array",
    "from_output_string",
    "from_wrapper",
]
