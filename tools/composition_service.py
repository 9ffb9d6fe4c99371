"""Transport for the job-based image composition service."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Tuple

import requests

from models.composition import CompositionRole
from tools.observability import instrument_call


LOGGER = logging.getLogger(__name__)

ROLE_CATEGORY: Dict[CompositionRole, str] = {
    CompositionRole.TOP: "tops",
    CompositionRole.BOTTOM: "bottoms",
    CompositionRole.ONE_PIECE: "one-pieces",
    CompositionRole.ACCESSORY_HAT: "accessories",
    CompositionRole.ACCESSORY_SHOE: "accessories",
    CompositionRole.ACCESSORY_OTHER: "accessories",
}
ACCESSORY_KIND: Dict[CompositionRole, str] = {
    CompositionRole.ACCESSORY_HAT: "hat",
    CompositionRole.ACCESSORY_SHOE: "shoes",
    CompositionRole.ACCESSORY_OTHER: "other",
}
NOT_FOUND_STATUSES = (404, 405)


@dataclass(frozen=True)
class ServiceResponse:
    """HTTP status plus the decoded body (``{"raw": text}`` when not JSON)."""

    status_code: int
    body: Any

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    @property
    def not_found(self) -> bool:
        return self.status_code in NOT_FOUND_STATUSES


@dataclass(frozen=True)
class StatusConvention:
    """One way of asking the service about a job.

    ``path`` may contain ``{job_id}``; ``param_name`` sends the id as a query
    parameter instead; ``resubmit`` posts the original payload plus the id.
    """

    name: str
    method: str
    path: str
    param_name: Optional[str] = None
    resubmit: bool = False

    def render(self, job_id: str) -> Tuple[str, Dict[str, str]]:
        params = {self.param_name: job_id} if self.param_name else {}
        return self.path.format(job_id=job_id), params


STATUS_CONVENTIONS: Dict[str, StatusConvention] = {
    "status_path": StatusConvention("status_path", "GET", "/status/{job_id}"),
    "status_query": StatusConvention("status_query", "GET", "/status", param_name="id"),
    "resubmit": StatusConvention("resubmit", "POST", "/run", resubmit=True),
}


def resolve_conventions(names: Iterable[str]) -> Tuple[StatusConvention, ...]:
    """Look up registered conventions by name, keeping the given order."""

    resolved = []
    for name in names:
        if name not in STATUS_CONVENTIONS:
            raise KeyError(f"Unknown status convention: {name}")
        resolved.append(STATUS_CONVENTIONS[name])
    return tuple(resolved)


def compose_payload(
    model_name: str, base_image: str, garment_image: str, role: CompositionRole, mode: str
) -> Dict[str, Any]:
    inputs: Dict[str, Any] = {
        "model_image": base_image,
        "garment_image": garment_image,
        "category": ROLE_CATEGORY[role],
        "mode": mode,
    }
    if role in ACCESSORY_KIND:
        inputs["accessory_kind"] = ACCESSORY_KIND[role]
    return {"model_name": model_name, "inputs": inputs}


def base_model_payload(model_name: str, prompt: str) -> Dict[str, Any]:
    return {"model_name": model_name, "inputs": {"prompt": prompt}}


class ImageCompositionService(ABC):
    """Submission and status endpoints of the composition service."""

    @abstractmethod
    def submit(self, payload: Dict[str, Any]) -> ServiceResponse:
        """Submit a job; the reply holds either the image or a job id."""

    @abstractmethod
    def check_status(
        self, convention: StatusConvention, job_id: str, payload: Dict[str, Any]
    ) -> ServiceResponse:
        """Ask about ``job_id`` using ``convention``."""


class HTTPCompositionService(ImageCompositionService):
    """``requests`` implementation with bearer-key auth."""

    def __init__(
        self,
        base_url: str,
        api_key: str,
        run_path: str = "/run",
        timeout_seconds: float = 60.0,
    ) -> None:
        if not base_url:
            raise ValueError("base_url is required for the composition service")
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.run_path = run_path
        self.timeout_seconds = timeout_seconds

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[Dict[str, str]] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> ServiceResponse:
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        response = requests.request(
            method,
            f"{self.base_url}{path}",
            headers=headers,
            params=params or None,
            json=body,
            timeout=self.timeout_seconds,
        )
        try:
            decoded = response.json()
        except ValueError:
            decoded = {"raw": response.text}
        return ServiceResponse(status_code=response.status_code, body=decoded)

    @instrument_call("composition", "submit")
    def submit(self, payload: Dict[str, Any]) -> ServiceResponse:
        return self._request("POST", self.run_path, body=payload)

    @instrument_call("composition", "check_status")
    def check_status(
        self, convention: StatusConvention, job_id: str, payload: Dict[str, Any]
    ) -> ServiceResponse:
        path, params = convention.render(job_id)
        body = None
        if convention.resubmit:
            path, body = self.run_path, {**payload, "id": job_id}
        LOGGER.debug("Checking composition job", extra={"job_id": job_id, "convention": convention.name})
        return self._request(convention.method, path, params=params, body=body)


__all__ = [
    "ACCESSORY_KIND",
    "HTTPCompositionService",
    "ImageCompositionService",
    "ROLE_CATEGORY",
    "STATUS_CONVENTIONS",
    "ServiceResponse",
    "StatusConvention",
    "base_model_payload",
    "compose_payload",
    "resolve_conventions",
]
