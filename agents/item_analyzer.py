"""Single-item analysis: describe one clothing photo and store it in the closet."""
from __future__ import annotations

import logging
from typing import Optional

from logic.safety import ANALYSIS_PROMPT, system_instruction
from logic.validation import parse_json_object
from models.closet_item import ClosetItem
from outfitly_app.errors import MalformedResponse
from outfitly_app.logging_config import get_logger, log_event, operation_context
from tools.closet_repository import ClosetRepository
from tools.image_encoding import to_transport
from tools.vision_service import VisionCompletionService

logger = get_logger(__name__)


class ItemAnalyzer:
    """Turns a clothing photo into a normalised :class:`ClosetItem`."""

    def __init__(self, service: VisionCompletionService, repository: Optional[ClosetRepository] = None) -> None:
        self.service = service
        self.repository = repository
        self.system_instruction = system_instruction(
            "fashion assistant. Reply with compact, structured JSON only."
        )

    def analyze(self, image_ref: str) -> ClosetItem:
        with operation_context("agent:analyzer.analyze") as correlation_id:
            reply = self.service.complete(self.system_instruction, ANALYSIS_PROMPT, [to_transport(image_ref)])
            try:
                analysis = parse_json_object(reply) if reply else {}
            except MalformedResponse:
                # Free text is still a usable description.
                logger.warning("Analysis reply was not JSON; using it as the description")
                analysis = {"description": reply}
            item = ClosetItem.from_analysis(image_ref, analysis)
            log_event(
                logger,
                level=logging.INFO,
                event="agent_call_completed",
                agent="analyzer",
                method="analyze",
                correlation_id=correlation_id,
                item_id=item.id,
                palette_size=len(item.palette),
            )
            return item

    def analyze_and_save(self, image_ref: str) -> ClosetItem:
        if self.repository is None:
            raise RuntimeError("ItemAnalyzer has no repository to save into")
        return self.repository.save_closet_item(self.analyze(image_ref))


__all__ = ["ItemAnalyzer"]
