"""Client owning the submit/poll/extract protocol for one composition job."""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, Optional, Sequence

import requests

from logic.extraction import classify_status, describe, extract_image, extract_job_id, failure_reason
from models.composition import CompositionJob, CompositionRole, JobInputs, JobStatus
from outfitly_app.errors import (
    CompositionCancelled,
    JobFailed,
    JobTimedOut,
    NoImageExtracted,
    SubmissionRejected,
)
from outfitly_app.logging_config import get_logger, log_event
from tools.composition_service import (
    STATUS_CONVENTIONS,
    ImageCompositionService,
    ServiceResponse,
    StatusConvention,
    base_model_payload,
    compose_payload,
)

LOGGER = get_logger(__name__)


class CompositionJobClient:
    """Drives a single composition job to a terminal state.

    The service may answer a submission with the finished image or with a job
    id. In the second case the job is polled: after an initial grace delay each
    attempt walks the status conventions in order and uses the first answer
    that is not "not found". A job that is still unresolved after
    ``max_attempts`` gets one identical resubmission before it is declared
    timed out.

    ``apply`` and ``create_base_model`` never raise for service-side failures;
    they return the job with ``status`` and ``failure`` filled in. Only
    cancellation is raised, as :class:`CompositionCancelled`.
    """

    def __init__(
        self,
        service: ImageCompositionService,
        model_name: str = "tryon-v1.6",
        base_model_name: str = "model-create",
        mode: str = "balanced",
        conventions: Sequence[StatusConvention] | None = None,
        initial_delay_seconds: float = 5.0,
        poll_interval_seconds: float = 2.0,
        max_attempts: int = 40,
        backoff_factor: float = 1.0,
        max_interval_seconds: float = 30.0,
        sleep: Optional[Callable[[float], None]] = None,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.service = service
        self.model_name = model_name
        self.base_model_name = base_model_name
        self.mode = mode
        self.conventions = tuple(conventions) if conventions is not None else tuple(STATUS_CONVENTIONS.values())
        self.initial_delay_seconds = initial_delay_seconds
        self.poll_interval_seconds = poll_interval_seconds
        self.max_attempts = max_attempts
        self.backoff_factor = max(1.0, backoff_factor)
        self.max_interval_seconds = max_interval_seconds
        self._sleep = sleep

    def apply(
        self,
        base_image: str,
        garment_image: str,
        role: CompositionRole,
        mode: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> CompositionJob:
        """Dress ``base_image`` in ``garment_image`` and return the finished job."""

        job = CompositionJob(inputs=JobInputs(base_image=base_image, garment_image=garment_image, role=role))
        payload = compose_payload(self.model_name, base_image, garment_image, role, mode or self.mode)
        return self._run(job, payload, cancel_event)

    def create_base_model(self, prompt: str, cancel_event: Optional[threading.Event] = None) -> CompositionJob:
        """Generate a neutral model image; a job without garment input."""

        job = CompositionJob(inputs=JobInputs(base_image=None, garment_image=None, role=None, prompt=prompt))
        return self._run(job, base_model_payload(self.base_model_name, prompt), cancel_event)

    def _run(
        self, job: CompositionJob, payload: Dict[str, Any], cancel_event: Optional[threading.Event]
    ) -> CompositionJob:
        role = job.inputs.role.value if job.inputs.role else "base_model"
        self._check_cancelled(cancel_event)
        try:
            response = self.service.submit(payload)
        except requests.RequestException as exc:
            log_event(LOGGER, logging.ERROR, "composition_submit_unreachable", role=role, error=str(exc))
            return job.fail(SubmissionRejected(status=None, body=str(exc)))

        if not response.ok:
            log_event(
                LOGGER,
                logging.ERROR,
                "composition_submit_rejected",
                role=role,
                status_code=response.status_code,
            )
            return job.fail(SubmissionRejected(status=response.status_code, body=response.body))

        outcome = extract_image(response.body)
        if outcome.found:
            log_event(LOGGER, logging.INFO, "composition_inline_result", role=role, strategy=outcome.strategy)
            return job.succeed(outcome.reference)

        job_id = extract_job_id(response.body)
        status = classify_status(response.body)
        if status == "failed":
            return job.fail(JobFailed(reason=failure_reason(response.body), job_id=job_id))
        if not job_id:
            log_event(
                LOGGER,
                logging.ERROR,
                "composition_submit_unusable",
                role=role,
                response=describe(response.body),
            )
            return job.fail(NoImageExtracted(job_id=None, strategies_tried=outcome.strategies_tried, body=response.body))

        job.external_job_id = job_id
        job.status = JobStatus.POLLING
        log_event(LOGGER, logging.INFO, "composition_job_polling", role=role, job_id=job_id)
        return self._poll(job, payload, cancel_event)

    def _poll(
        self, job: CompositionJob, payload: Dict[str, Any], cancel_event: Optional[threading.Event]
    ) -> CompositionJob:
        job_id = job.external_job_id or ""
        interval = self.poll_interval_seconds
        success_without_image: Optional[NoImageExtracted] = None

        self._wait(self.initial_delay_seconds, cancel_event)
        for attempt in range(1, self.max_attempts + 1):
            job.attempts = attempt
            response = self._check_once(job_id, payload, cancel_event)
            if response is not None and response.ok:
                outcome = extract_image(response.body)
                if outcome.found:
                    log_event(
                        LOGGER,
                        logging.INFO,
                        "composition_job_succeeded",
                        job_id=job_id,
                        attempts=attempt,
                        strategy=outcome.strategy,
                    )
                    return job.succeed(outcome.reference)
                status = classify_status(response.body)
                if status == "failed":
                    reason = failure_reason(response.body)
                    log_event(LOGGER, logging.ERROR, "composition_job_failed", job_id=job_id, reason=reason)
                    return job.fail(JobFailed(reason=reason, job_id=job_id))
                if status == "succeeded":
                    success_without_image = NoImageExtracted(job_id, outcome.strategies_tried, response.body)
                    log_event(
                        LOGGER,
                        logging.WARNING,
                        "composition_success_without_image",
                        job_id=job_id,
                        attempt=attempt,
                        response=describe(response.body),
                    )
            else:
                log_event(
                    LOGGER,
                    logging.WARNING,
                    "composition_poll_inconclusive",
                    job_id=job_id,
                    attempt=attempt,
                    status_code=response.status_code if response is not None else None,
                )

            if attempt < self.max_attempts:
                self._wait(interval, cancel_event)
                interval = min(interval * self.backoff_factor, self.max_interval_seconds)

        return self._last_resort(job, payload, cancel_event, success_without_image)

    def _check_once(
        self, job_id: str, payload: Dict[str, Any], cancel_event: Optional[threading.Event]
    ) -> Optional[ServiceResponse]:
        """Return the first status answer that is not "not found", if any."""

        for convention in self.conventions:
            self._check_cancelled(cancel_event)
            try:
                response = self.service.check_status(convention, job_id, payload)
            except requests.RequestException as exc:
                LOGGER.warning(
                    "Status check failed",
                    extra={"job_id": job_id, "convention": convention.name, "error": str(exc)},
                )
                continue
            if response.not_found:
                continue
            return response
        return None

    def _last_resort(
        self,
        job: CompositionJob,
        payload: Dict[str, Any],
        cancel_event: Optional[threading.Event],
        success_without_image: Optional[NoImageExtracted],
    ) -> CompositionJob:
        job_id = job.external_job_id
        self._check_cancelled(cancel_event)
        log_event(LOGGER, logging.WARNING, "composition_resubmitting", job_id=job_id, attempts=job.attempts)
        try:
            response = self.service.submit(payload)
        except requests.RequestException as exc:
            LOGGER.warning("Last-resort resubmission failed", extra={"job_id": job_id, "error": str(exc)})
            response = None

        if response is not None and response.ok:
            outcome = extract_image(response.body)
            if outcome.found:
                log_event(LOGGER, logging.INFO, "composition_resubmit_succeeded", job_id=job_id)
                return job.succeed(outcome.reference)
            if classify_status(response.body) == "failed":
                return job.fail(JobFailed(reason=failure_reason(response.body), job_id=job_id))

        if success_without_image is not None:
            return job.fail(success_without_image)
        log_event(LOGGER, logging.ERROR, "composition_job_timed_out", job_id=job_id, attempts=job.attempts)
        return job.fail(JobTimedOut(job_id=job_id, attempts=job.attempts), status=JobStatus.TIMED_OUT)

    def _wait(self, seconds: float, cancel_event: Optional[threading.Event]) -> None:
        """Sleep between polls. An injected ``sleep`` always runs; cancellation is checked after it."""

        if seconds > 0:
            if self._sleep is not None:
                self._sleep(seconds)
            elif cancel_event is not None:
                cancel_event.wait(seconds)
            else:
                time.sleep(seconds)
        if cancel_event is not None and cancel_event.is_set():
            raise CompositionCancelled("Composition was cancelled while waiting for the service")

    @staticmethod
    def _check_cancelled(cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise CompositionCancelled("Composition was cancelled")


__all__ = ["CompositionJobClient"]
