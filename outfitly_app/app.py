"""Outfitly app bootstrap."""

import logging
import threading
from typing import List, Optional

from agents.composition_sequencer import CompositionSequencer
from agents.item_analyzer import ItemAnalyzer
from agents.orchestrator import OutfitOrchestrator
from agents.vision_selector import VisionSelectorClient
from models.closet_item import ClosetItem
from models.outfit import Outfit
from outfitly_app.config import OutfitlyConfig
from outfitly_app.logging_config import configure_logging, get_logger, log_event
from tools.closet_repository import ClosetRepository, build_repository
from tools.composition_client import CompositionJobClient
from tools.composition_service import HTTPCompositionService, ImageCompositionService, resolve_conventions
from tools.vision_service import VisionCompletionService, build_vision_service


LOGGER = get_logger(__name__)


class OutfitlyApp:
    """Wires together configuration, services, repository and flows.

    The config is validated here, once, so a bad key or URL fails at startup
    rather than in the middle of a composition. Tests pass in their own
    services and repository.
    """

    def __init__(
        self,
        config: OutfitlyConfig | None = None,
        vision_service: VisionCompletionService | None = None,
        composition_service: ImageCompositionService | None = None,
        repository: ClosetRepository | None = None,
    ) -> None:
        self.config = (config or OutfitlyConfig.from_env()).validate()
        configure_logging()

        self.repository = repository or build_repository(
            self.config.repository_backend, self.config.repository_path
        )
        self.vision_service = vision_service or build_vision_service(self.config)
        self.composition_service = composition_service or HTTPCompositionService(
            base_url=self.config.composition_base_url or "",
            api_key=self.config.composition_api_key or "",
            timeout_seconds=self.config.request_timeout_seconds,
        )

        self.analyzer = ItemAnalyzer(self.vision_service, repository=self.repository)
        self.selector = VisionSelectorClient(self.vision_service)
        self.composition_client = CompositionJobClient(
            self.composition_service,
            model_name=self.config.composition_model_name,
            base_model_name=self.config.base_model_name,
            mode=self.config.composition_mode,
            conventions=resolve_conventions(self.config.status_conventions),
            initial_delay_seconds=self.config.poll_initial_delay_seconds,
            poll_interval_seconds=self.config.poll_interval_seconds,
            max_attempts=self.config.poll_max_attempts,
            backoff_factor=self.config.poll_backoff_factor,
        )
        self.sequencer = CompositionSequencer(
            self.composition_client,
            self.repository,
            base_model_prompt=self.config.base_model_prompt,
        )
        self.orchestrator = OutfitOrchestrator(
            self.repository,
            self.selector,
            self.sequencer,
            encode_workers=self.config.encode_workers,
        )
        log_event(
            LOGGER,
            level=logging.INFO,
            event="app_started",
            vision_provider=self.config.vision_provider,
            repository_backend=self.config.repository_backend,
            environment=self.config.environment or "local",
        )

    def analyze_item(self, image_ref: str) -> ClosetItem:
        """Describe a clothing photo and save it to the closet."""

        return self.analyzer.analyze_and_save(image_ref)

    def generate_outfit(self, cancel_event: Optional[threading.Event] = None) -> Outfit:
        return self.orchestrator.generate_outfit(cancel_event=cancel_event)

    def closet(self) -> List[ClosetItem]:
        return self.repository.list_closet_items()

    def delete_closet_item(self, item_id: str) -> bool:
        return self.repository.delete_closet_item(item_id)

    def clear_closet(self) -> int:
        return self.repository.clear_closet()

    def outfits(self) -> List[Outfit]:
        return self.repository.list_outfits()

    def delete_outfit(self, outfit_id: str) -> bool:
        return self.repository.delete_outfit(outfit_id)

    def set_reference_photo(self, image_ref: str) -> str:
        return self.repository.set_user_reference_photo(image_ref)

    def clear_reference_photo(self) -> None:
        self.repository.clear_user_reference_photo()


__all__ = ["OutfitlyApp"]
