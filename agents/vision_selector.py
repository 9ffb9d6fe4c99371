"""Vision selector: asks the language model to pick an outfit from the closet."""
from __future__ import annotations

import json
import logging
from typing import List, Sequence

from logic.safety import SELECTION_PROMPT, system_instruction
from logic.validation import parse_selection
from models.selection import SelectionResult
from outfitly_app.errors import EmptySelection, InsufficientItems
from outfitly_app.logging_config import get_logger, log_event, operation_context
from tools.image_encoding import SnapshotEntry
from tools.vision_service import VisionCompletionService

logger = get_logger(__name__)

MIN_CLOSET_SIZE = 2


class VisionSelectorClient:
    """Sends the closet snapshot to the vision model and validates its pick."""

    def __init__(self, service: VisionCompletionService, min_items: int = MIN_CLOSET_SIZE) -> None:
        self.service = service
        self.min_items = min_items
        self.system_instruction = system_instruction(
            "outfit selector. Choose items that work together and explain the choice briefly."
        )

    def select(self, snapshot: Sequence[SnapshotEntry]) -> SelectionResult:
        """Return the model's selection restricted to ids present in ``snapshot``.

        Raises:
            InsufficientItems: fewer than ``min_items`` entries; no request is sent.
            UpstreamError: the completion service failed. Not retried here.
            MalformedResponse: the reply is not JSON or lacks ``selectedIds``.
            EmptySelection: none of the returned ids exist in the snapshot.
        """

        if len(snapshot) < self.min_items:
            raise InsufficientItems(available=len(snapshot), required=self.min_items)

        with operation_context("agent:selector.select") as correlation_id:
            log_event(
                logger,
                level=logging.INFO,
                event="agent_call_started",
                agent="selector",
                method="select",
                correlation_id=correlation_id,
                closet_size=len(snapshot),
            )
            reply = self.service.complete(
                self.system_instruction,
                self._closet_text(snapshot),
                [entry.image for entry in snapshot],
            )
            payload = parse_selection(reply)

            unique_ids = list(dict.fromkeys(payload.selected_ids))
            if len(unique_ids) != len(payload.selected_ids):
                logger.warning("Selector returned duplicate ids; keeping first occurrences")

            proposed = SelectionResult(
                selected_ids=tuple(unique_ids),
                outfit_description=payload.outfit_description,
                style=payload.style,
                occasion=payload.occasion,
                color_scheme=payload.color_scheme,
                reasoning=payload.reasoning,
            )
            result, dropped = proposed.restricted_to(entry.item.id for entry in snapshot)
            if dropped:
                log_event(
                    logger,
                    level=logging.WARNING,
                    event="selector_ids_dropped",
                    agent="selector",
                    dropped_ids=list(dropped),
                    kept=len(result.selected_ids),
                )
            if not result.selected_ids:
                raise EmptySelection(dropped_ids=dropped)

            log_event(
                logger,
                level=logging.INFO,
                event="agent_call_completed",
                agent="selector",
                method="select",
                correlation_id=correlation_id,
                selected_ids=list(result.selected_ids),
            )
            return result

    @staticmethod
    def _closet_text(snapshot: Sequence[SnapshotEntry]) -> str:
        lines: List[str] = [SELECTION_PROMPT, "", "Closet items:"]
        for index, entry in enumerate(snapshot, start=1):
            item = entry.item
            record = {
                "id": item.id,
                "description": item.description,
                "palette": list(item.palette),
                "aesthetics": list(item.aesthetics),
            }
            lines.append(f"{index}. {json.dumps(record)}")
        return "\n".join(lines)


__all__ = ["MIN_CLOSET_SIZE", "VisionSelectorClient"]
