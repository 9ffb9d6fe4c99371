"""Composition sequencer: threads the model image through every garment job."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, replace
from functools import reduce
from typing import Callable, Optional, Sequence, Tuple

from logic.application_plan import PlannedStep, plan_applications
from models.closet_item import ClosetItem
from models.composition import CompositionRole
from models.outfit import Outfit
from models.selection import SelectionResult
from outfitly_app.config import DEFAULT_BASE_MODEL_PROMPT
from outfitly_app.errors import (
    BaseModelUnavailable,
    CompositionCancelled,
    CompositionError,
    GarmentApplicationFailed,
)
from outfitly_app.logging_config import get_logger, log_event, operation_context
from tools.closet_repository import ClosetRepository
from tools.composition_client import CompositionJobClient
from tools.image_encoding import to_transport

logger = get_logger(__name__)


@dataclass(frozen=True)
class StepRecord:
    item_id: str
    role: CompositionRole
    before_image: str
    after_image: Optional[str]
    error: Optional[str] = None

    @property
    def applied(self) -> bool:
        return self.after_image is not None


@dataclass(frozen=True)
class CompositionState:
    """Accumulator of the fold: the current image and what each step did."""

    current_image: str
    history: Tuple[StepRecord, ...] = ()

    def advance(self, step: PlannedStep, image: str) -> "CompositionState":
        record = StepRecord(step.item.id, step.role, self.current_image, image)
        return replace(self, current_image=image, history=self.history + (record,))

    def skip(self, step: PlannedStep, error: str) -> "CompositionState":
        record = StepRecord(step.item.id, step.role, self.current_image, None, error)
        return replace(self, history=self.history + (record,))

    @property
    def skipped(self) -> Tuple[StepRecord, ...]:
        return tuple(record for record in self.history if not record.applied)


class CompositionSequencer:
    """Builds one composite outfit image and persists the resulting Outfit.

    Clothing is applied first (tops, bottoms, one-pieces), each job's output
    becoming the next job's model image; any clothing failure aborts the run.
    Accessories follow and are skipped on failure, leaving the image as it was.
    """

    def __init__(
        self,
        client: CompositionJobClient,
        repository: ClosetRepository,
        base_model_prompt: str = DEFAULT_BASE_MODEL_PROMPT,
        mode: Optional[str] = None,
        transport: Callable[[str], str] = to_transport,
    ) -> None:
        self.client = client
        self.repository = repository
        self.base_model_prompt = base_model_prompt
        self.mode = mode
        self._transport = transport

    def compose(
        self,
        selected_items: Sequence[ClosetItem],
        selection_result: SelectionResult,
        base_model_image: Optional[str] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> Outfit:
        if not selected_items:
            raise ValueError("compose needs at least one selected item")

        with operation_context("agent:sequencer.compose") as correlation_id:
            log_event(
                logger,
                level=logging.INFO,
                event="agent_call_started",
                agent="sequencer",
                method="compose",
                correlation_id=correlation_id,
                item_count=len(selected_items),
                personal_photo=base_model_image is not None,
            )
            start = self.resolve_base_image(base_model_image, cancel_event)
            plan = plan_applications(selected_items)
            final_state = reduce(
                lambda state, step: self.apply_step(state, step, cancel_event),
                plan.steps,
                CompositionState(current_image=start),
            )

            self._check_cancelled(cancel_event)
            outfit = self.repository.save_outfit(
                Outfit(
                    selected_items=tuple(selected_items),
                    selection_result=selection_result,
                    final_image=final_state.current_image,
                )
            )
            log_event(
                logger,
                level=logging.INFO,
                event="agent_call_completed",
                agent="sequencer",
                method="compose",
                correlation_id=correlation_id,
                outfit_id=outfit.id,
                applied=[record.role.value for record in final_state.history if record.applied],
                skipped=[record.item_id for record in final_state.skipped],
            )
            return outfit

    def resolve_base_image(self, base_model_image: Optional[str], cancel_event: Optional[threading.Event] = None) -> str:
        """Use the personal photo when given, otherwise generate a neutral model."""

        if base_model_image:
            try:
                return self._transport(base_model_image)
            except (OSError, ValueError) as exc:
                raise BaseModelUnavailable(exc) from exc
        job = self.client.create_base_model(self.base_model_prompt, cancel_event=cancel_event)
        if not job.succeeded or not job.result_image:
            log_event(logger, level=logging.ERROR, event="base_model_unavailable", agent="sequencer", status=job.status.value)
            raise BaseModelUnavailable(job.failure)
        return job.result_image

    def apply_step(
        self, state: CompositionState, step: PlannedStep, cancel_event: Optional[threading.Event] = None
    ) -> CompositionState:
        """Apply one planned item on top of ``state.current_image``."""

        self._check_cancelled(cancel_event)
        try:
            garment_image = self._transport(step.item.image_ref)
        except (OSError, ValueError) as exc:
            return self._handle_failure(state, step, CompositionError(f"Unreadable item image: {exc}"))

        job = self.client.apply(
            state.current_image, garment_image, step.role, mode=self.mode, cancel_event=cancel_event
        )
        if job.succeeded and job.result_image:
            log_event(
                logger,
                level=logging.INFO,
                event="composition_step_applied",
                agent="sequencer",
                item_id=step.item.id,
                role=step.role.value,
                attempts=job.attempts,
            )
            return state.advance(step, job.result_image)
        return self._handle_failure(state, step, job.failure)

    def _handle_failure(
        self, state: CompositionState, step: PlannedStep, error: Optional[Exception]
    ) -> CompositionState:
        if step.required:
            log_event(
                logger,
                level=logging.ERROR,
                event="composition_step_failed",
                agent="sequencer",
                item_id=step.item.id,
                role=step.role.value,
                error=str(error),
            )
            raise GarmentApplicationFailed(step.role.value, step.item.id, error)
        log_event(
            logger,
            level=logging.WARNING,
            event="composition_accessory_skipped",
            agent="sequencer",
            item_id=step.item.id,
            role=step.role.value,
            error=str(error),
        )
        return state.skip(step, str(error))

    @staticmethod
    def _check_cancelled(cancel_event: Optional[threading.Event]) -> None:
        if cancel_event is not None and cancel_event.is_set():
            raise CompositionCancelled("Composition was cancelled")


__all__ = ["CompositionSequencer", "CompositionState", "StepRecord"]
