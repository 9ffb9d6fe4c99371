"""Outfit orchestration: closet snapshot, vision selection, then composition."""

import logging
import threading
from typing import Optional

from agents.composition_sequencer import CompositionSequencer
from agents.vision_selector import VisionSelectorClient
from models.closet_item import index_by_id
from models.outfit import Outfit
from outfitly_app.errors import CompositionCancelled, InsufficientItems
from outfitly_app.logging_config import get_logger, log_event, operation_context
from tools.closet_repository import ClosetRepository
from tools.image_encoding import encode_closet


LOGGER = get_logger(__name__)


class OutfitOrchestrator:
    """Runs one user-initiated outfit request end to end.

    Each call is a single attempt. Failures propagate to the caller, which
    decides whether to retry the whole request.
    """

    def __init__(
        self,
        repository: ClosetRepository,
        selector: VisionSelectorClient,
        sequencer: CompositionSequencer,
        encode_workers: int = 4,
    ) -> None:
        self.repository = repository
        self.selector = selector
        self.sequencer = sequencer
        self.encode_workers = encode_workers

    def generate_outfit(self, cancel_event: Optional[threading.Event] = None) -> Outfit:
        with operation_context("agent:orchestrator.generate_outfit") as correlation_id:
            items = self.repository.list_closet_items()
            log_event(
                LOGGER,
                level=logging.INFO,
                event="agent_call_started",
                agent="orchestrator",
                method="generate_outfit",
                correlation_id=correlation_id,
                closet_size=len(items),
            )
            if len(items) < self.selector.min_items:
                raise InsufficientItems(available=len(items), required=self.selector.min_items)

            snapshot = encode_closet(items, max_workers=self.encode_workers)
            if len(snapshot) < self.selector.min_items:
                raise InsufficientItems(
                    available=len(snapshot), required=self.selector.min_items, unreadable=len(items) - len(snapshot)
                )
            selection = self.selector.select(snapshot)
            if cancel_event is not None and cancel_event.is_set():
                raise CompositionCancelled("Outfit request was cancelled after selection")

            by_id = index_by_id(items)
            selected = [by_id[item_id] for item_id in selection.selected_ids]
            outfit = self.sequencer.compose(
                selected,
                selection,
                base_model_image=self.repository.get_user_reference_photo(),
                cancel_event=cancel_event,
            )
            log_event(
                LOGGER,
                level=logging.INFO,
                event="agent_call_completed",
                agent="orchestrator",
                method="generate_outfit",
                correlation_id=correlation_id,
                outfit_id=outfit.id,
            )
            return outfit


__all__ = ["OutfitOrchestrator"]
