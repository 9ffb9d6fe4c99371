"""Shared fixtures and offline fakes for the Outfitly test-suite."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any, Dict, List, Sequence

import pytest

from models.closet_item import ClosetItem
from tools.closet_repository import JSONClosetRepository
from tools.composition_service import ImageCompositionService, ServiceResponse, StatusConvention


def make_item(item_id: str, description: str, minutes_ago: int = 0) -> ClosetItem:
    return ClosetItem(
        id=item_id,
        image_ref=f"https://images.example.com/{item_id}.jpg",
        description=description,
        created_at=datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc) - timedelta(minutes=minutes_ago),
        aesthetics=("minimal",),
        palette=("#FFFFFF",),
    )


class ScriptedCompositionService(ImageCompositionService):
    """Replays canned responses; the last status reply per convention repeats.

    Conventions without a script answer 404 so the client moves on.
    Exceptions in a script are raised instead of returned.
    """

    def __init__(
        self,
        submit_responses: Sequence[Any],
        status_responses: Dict[str, Sequence[Any]] | None = None,
    ) -> None:
        self.submit_responses = list(submit_responses)
        self.status_responses = {name: list(replies) for name, replies in (status_responses or {}).items()}
        self.submitted: List[Dict[str, Any]] = []
        self.status_calls: List[tuple] = []
        self.on_status = None

    def submit(self, payload: Dict[str, Any]) -> ServiceResponse:
        self.submitted.append(payload)
        reply = self.submit_responses.pop(0) if len(self.submit_responses) > 1 else self.submit_responses[0]
        if isinstance(reply, Exception):
            raise reply
        return reply

    def check_status(self, convention: StatusConvention, job_id: str, payload: Dict[str, Any]) -> ServiceResponse:
        self.status_calls.append((convention.name, job_id))
        if self.on_status is not None:
            self.on_status()
        queue = self.status_responses.get(convention.name)
        if not queue:
            return ServiceResponse(404, {"error": "not found"})
        reply = queue.pop(0) if len(queue) > 1 else queue[0]
        if isinstance(reply, Exception):
            raise reply
        return reply


class InlineCompositionService(ImageCompositionService):
    """Answers every submission immediately with a numbered image URL."""

    def __init__(self) -> None:
        self.submitted: List[Dict[str, Any]] = []

    def submit(self, payload: Dict[str, Any]) -> ServiceResponse:
        self.submitted.append(payload)
        if "prompt" in payload["inputs"]:
            return ServiceResponse(200, {"output": ["https://cdn.example.com/base.png"]})
        return ServiceResponse(200, {"output": [f"https://cdn.example.com/step-{len(self.submitted)}.png"]})

    def check_status(self, convention: StatusConvention, job_id: str, payload: Dict[str, Any]) -> ServiceResponse:
        raise AssertionError("inline results never need polling")


@pytest.fixture()
def repository(tmp_path: Path) -> JSONClosetRepository:
    return JSONClosetRepository(base_dir=tmp_path / "closet")


@pytest.fixture()
def closet_items() -> List[ClosetItem]:
    return [
        make_item("top-1", "White cotton t-shirt with crew neck", minutes_ago=3),
        make_item("bottom-1", "Slim fit dark blue jeans", minutes_ago=2),
        make_item("hat-1", "Black baseball cap", minutes_ago=1),
    ]
