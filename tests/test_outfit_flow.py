"""End-to-end outfit generation through the app, HTTP API and CLI."""

from __future__ import annotations

import dataclasses
import json
import signal
import threading

import pytest
from fastapi.testclient import TestClient

import main
from conftest import InlineCompositionService, make_item
from outfitly_app.app import OutfitlyApp
from outfitly_app.config import OutfitlyConfig
from outfitly_app.errors import CompositionCancelled, InsufficientItems
from server.api import app as api_app, get_outfitly
from tools.vision_service import MockVisionService

SELECTION_REPLY = json.dumps(
    {
        "selectedIds": ["hat-1", "top-1", "bottom-1"],
        "outfitDescription": "Relaxed weekend look",
        "style": "casual",
        "occasion": "brunch",
        "colorScheme": "white and indigo",
        "reasoning": "Neutral top balances dark denim.",
    }
)


def _config() -> OutfitlyConfig:
    return OutfitlyConfig(
        openai_api_key="sk-test",
        composition_base_url="https://tryon.example.com",
        composition_api_key="fal-key",
        poll_initial_delay_seconds=0,
        poll_interval_seconds=0,
    )


@pytest.fixture()
def build_app(repository):
    def _build(*replies):
        vision = MockVisionService(list(replies))
        composition = InlineCompositionService()
        outfitly = OutfitlyApp(
            config=_config(), vision_service=vision, composition_service=composition, repository=repository
        )
        return outfitly, vision, composition

    return _build


def test_generate_outfit_end_to_end(build_app, repository, closet_items) -> None:
    for item in closet_items:
        repository.save_closet_item(item)
    outfitly, vision, composition = build_app(SELECTION_REPLY)

    outfit = outfitly.generate_outfit()

    assert len(vision.calls) == 1
    assert len(vision.calls[0].images) == 3
    categories = [payload["inputs"].get("category") for payload in composition.submitted]
    assert categories == [None, "tops", "bottoms", "accessories"]
    assert composition.submitted[1]["inputs"]["model_image"] == "https://cdn.example.com/base.png"
    assert composition.submitted[2]["inputs"]["model_image"] == "https://cdn.example.com/step-2.png"
    assert outfit.final_image == "https://cdn.example.com/step-4.png"
    assert outfit.selection_result.occasion == "brunch"
    assert [saved.id for saved in outfitly.outfits()] == [outfit.id]


def test_reference_photo_skips_base_model(build_app, repository, closet_items) -> None:
    for item in closet_items:
        repository.save_closet_item(item)
    outfitly, _, composition = build_app(SELECTION_REPLY)
    outfitly.set_reference_photo("https://me.example.com/photo.jpg")

    outfitly.generate_outfit()

    assert "prompt" not in composition.submitted[0]["inputs"]
    assert composition.submitted[0]["inputs"]["model_image"] == "https://me.example.com/photo.jpg"


def test_small_closet_is_rejected_before_any_service_call(build_app, repository, closet_items) -> None:
    repository.save_closet_item(closet_items[0])
    outfitly, vision, composition = build_app(SELECTION_REPLY)

    with pytest.raises(InsufficientItems):
        outfitly.generate_outfit()
    assert vision.calls == []
    assert composition.submitted == []


def _missing_file_item(tmp_path):
    return dataclasses.replace(make_item("gone-1", "Grey wool sweater"), image_ref=str(tmp_path / "deleted.jpg"))


def test_unreadable_closet_image_is_left_out_of_selection(build_app, repository, closet_items, tmp_path) -> None:
    for item in [*closet_items, _missing_file_item(tmp_path)]:
        repository.save_closet_item(item)
    outfitly, vision, _ = build_app(SELECTION_REPLY)

    outfit = outfitly.generate_outfit()

    assert len(vision.calls[0].images) == 3
    assert "gone-1" not in vision.calls[0].user_text
    assert {item.id for item in outfit.selected_items} == {"hat-1", "top-1", "bottom-1"}


def test_unreadable_images_count_against_the_minimum(build_app, repository, closet_items, tmp_path) -> None:
    repository.save_closet_item(closet_items[0])
    repository.save_closet_item(_missing_file_item(tmp_path))
    outfitly, vision, composition = build_app(SELECTION_REPLY)

    with pytest.raises(InsufficientItems) as excinfo:
        outfitly.generate_outfit()

    assert excinfo.value.available == 1
    assert excinfo.value.unreadable == 1
    assert vision.calls == []
    assert composition.submitted == []


def test_cancelled_request_saves_nothing(build_app, repository, closet_items) -> None:
    for item in closet_items:
        repository.save_closet_item(item)
    outfitly, _, composition = build_app(SELECTION_REPLY)
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(CompositionCancelled):
        outfitly.generate_outfit(cancel_event=cancel)
    assert composition.submitted == []
    assert outfitly.outfits() == []


@pytest.fixture()
def api(build_app):
    def _client(*replies):
        outfitly, _, _ = build_app(*replies)
        api_app.dependency_overrides[get_outfitly] = lambda: outfitly
        return TestClient(api_app), outfitly

    yield _client
    api_app.dependency_overrides.clear()


def test_api_closet_and_outfit_endpoints(api) -> None:
    client, _ = api(
        '{"description": "White cotton t-shirt", "palette": ["#FFFFFF"]}',
        '{"description": "Slim fit dark blue jeans"}',
    )

    assert client.get("/healthz").json()["status"] == "ok"
    first = client.post("/closet/items", json={"image_ref": "https://images.example.com/tee.jpg"}).json()
    second = client.post("/closet/items", json={"image_ref": "https://images.example.com/jeans.jpg"}).json()
    assert first["palette"] == ["#FFFFFF"]
    assert len(client.get("/closet/items").json()) == 2

    assert client.delete(f"/closet/items/{second['id']}").json() == {"deleted": second["id"]}
    assert client.delete(f"/closet/items/{second['id']}").status_code == 404
    assert client.delete("/closet/items").json() == {"deleted": 1}

    assert client.put("/profile/reference-photo", json={"image_ref": "https://me/p.jpg"}).status_code == 200
    assert client.delete("/profile/reference-photo").json() == {"image_ref": None}


def test_api_generate_reports_errors_and_success(api, repository, closet_items) -> None:
    client, _ = api(SELECTION_REPLY)

    too_small = client.post("/outfits/generate")
    assert too_small.status_code == 400

    for item in closet_items:
        repository.save_closet_item(item)
    created = client.post("/outfits/generate")
    assert created.status_code == 200
    outfit_id = created.json()["id"]
    assert [outfit["id"] for outfit in client.get("/outfits").json()] == [outfit_id]
    assert client.delete(f"/outfits/{outfit_id}").status_code == 200
    assert client.delete(f"/outfits/{outfit_id}").status_code == 404


def test_api_maps_upstream_failures_to_bad_gateway(api, repository, closet_items) -> None:
    client, _ = api("not json at all")
    for item in closet_items:
        repository.save_closet_item(item)

    response = client.post("/outfits/generate")

    assert response.status_code == 502


def test_cli_lists_closet_and_reports_errors(build_app, repository, closet_items, capsys) -> None:
    repository.save_closet_item(closet_items[0])
    outfitly, _, _ = build_app()

    assert main.main(["closet"], app=outfitly) == 0
    listed = json.loads(capsys.readouterr().out)
    assert listed == [{"id": "top-1", "description": "White cotton t-shirt with crew neck"}]

    assert main.main(["generate"], app=outfitly) == 1
    assert "At least 2 closet items" in capsys.readouterr().err


def test_api_generate_survives_a_deleted_closet_image(api, repository, closet_items, tmp_path) -> None:
    client, _ = api(SELECTION_REPLY)
    repository.save_closet_item(closet_items[0])
    repository.save_closet_item(closet_items[1])
    repository.save_closet_item(_missing_file_item(tmp_path))

    response = client.post("/outfits/generate")

    assert response.status_code == 200
    assert {item["id"] for item in response.json()["selected_items"]} <= {"top-1", "bottom-1"}

    repository.delete_closet_item("top-1")
    too_few = client.post("/outfits/generate")
    assert too_few.status_code == 400
    assert "unreadable" in too_few.json()["detail"]


class _InterruptedApp:
    """Receives Ctrl-C halfway through generation and reports what it saw."""

    def __init__(self) -> None:
        self.cancel_event = None

    def generate_outfit(self, cancel_event=None):
        self.cancel_event = cancel_event
        signal.raise_signal(signal.SIGINT)
        if cancel_event.wait(1):
            raise CompositionCancelled("Outfit request was cancelled")
        raise AssertionError("interrupt did not reach the cancel event")


def test_cli_ctrl_c_cancels_generation(capsys) -> None:
    original_handler = signal.getsignal(signal.SIGINT)
    interrupted = _InterruptedApp()

    assert main.main(["generate"], app=interrupted) == 1

    assert interrupted.cancel_event.is_set()
    assert "cancelled" in capsys.readouterr().err
    assert signal.getsignal(signal.SIGINT) is original_handler
