"""Vision selector and item analyzer tests using the offline mock service."""

from __future__ import annotations

import dataclasses
import json
from pathlib import Path

import pytest

from agents.item_analyzer import ItemAnalyzer
from agents.vision_selector import VisionSelectorClient
from conftest import make_item
from outfitly_app.errors import EmptySelection, InsufficientItems, MalformedResponse, UpstreamError
from tools.image_encoding import SnapshotEntry, encode_closet, split_data_url, to_transport
from tools.vision_service import MockVisionService


def _snapshot(items):
    return [SnapshotEntry(item=item, image=item.image_ref) for item in items]


def _selection_reply(ids, **extra) -> str:
    payload = {"selectedIds": ids, "outfitDescription": "Relaxed weekend look", "style": "casual"}
    payload.update(extra)
    return json.dumps(payload)


def test_selector_refuses_small_closet_without_calling_the_model(closet_items) -> None:
    service = MockVisionService([_selection_reply(["top-1"])])
    selector = VisionSelectorClient(service)

    with pytest.raises(InsufficientItems) as excinfo:
        selector.select(_snapshot(closet_items[:1]))

    assert excinfo.value.available == 1
    assert service.calls == []


def test_selector_sends_every_item_and_image_in_order(closet_items) -> None:
    service = MockVisionService([_selection_reply(["top-1", "bottom-1"], colorScheme="white and indigo")])

    result = VisionSelectorClient(service).select(_snapshot(closet_items))

    assert result.selected_ids == ("top-1", "bottom-1")
    assert result.color_scheme == "white and indigo"
    call = service.calls[0]
    assert call.images == [item.image_ref for item in closet_items]
    assert call.user_text.index('"id": "top-1"') < call.user_text.index('"id": "hat-1"')
    assert "Outfitly outfit selector" in call.system_instruction


def test_selector_drops_unknown_and_duplicate_ids(closet_items) -> None:
    service = MockVisionService([_selection_reply(["ghost", "bottom-1", "top-1", "bottom-1"])])

    result = VisionSelectorClient(service).select(_snapshot(closet_items))

    assert result.selected_ids == ("bottom-1", "top-1")


def test_selector_raises_when_no_id_survives(closet_items) -> None:
    service = MockVisionService([_selection_reply(["ghost-1", "ghost-2"])])

    with pytest.raises(EmptySelection) as excinfo:
        VisionSelectorClient(service).select(_snapshot(closet_items))

    assert excinfo.value.dropped_ids == ["ghost-1", "ghost-2"]


def test_selector_surfaces_malformed_and_upstream_errors(closet_items) -> None:
    with pytest.raises(MalformedResponse):
        VisionSelectorClient(MockVisionService(["Wear the shirt with jeans."])).select(_snapshot(closet_items))

    failing = MockVisionService([UpstreamError(status=503, body="overloaded")])
    with pytest.raises(UpstreamError):
        VisionSelectorClient(failing).select(_snapshot(closet_items))
    assert len(failing.calls) == 1


def test_analyzer_normalises_messy_reply(repository) -> None:
    reply = (
        "```json\n"
        + json.dumps(
            {
                "description": "Navy wool blazer",
                "aesthetics": ["tailored", "smart", 3, "preppy", "classic", "office", "minimal", "extra"],
                "palette": ["#1F2A44", "navy", "#FFF", "#12345G"],
                "suggestions": ["grey trousers", "white shirt"],
            }
        )
        + "\n```"
    )
    analyzer = ItemAnalyzer(MockVisionService([reply]), repository=repository)

    item = analyzer.analyze_and_save("https://images.example.com/blazer.jpg")

    assert item.description == "Navy wool blazer"
    assert item.aesthetics == ("tailored", "smart", "preppy", "classic", "office", "minimal")
    assert item.palette == ("#1F2A44", "#FFF")
    assert item.suggestions == ("grey trousers", "white shirt")
    assert [saved.id for saved in repository.list_closet_items()] == [item.id]


def test_analyzer_falls_back_to_defaults() -> None:
    analyzer = ItemAnalyzer(MockVisionService(['{"palette": "not-a-list"}', "A red knitted scarf"]))

    empty = analyzer.analyze("https://images.example.com/a.jpg")
    free_text = analyzer.analyze("https://images.example.com/b.jpg")

    assert empty.description == "Clothing analysis"
    assert empty.aesthetics == ("minimal",)
    assert empty.palette == ()
    assert free_text.description == "A red knitted scarf"


def test_analyzer_encodes_local_files(tmp_path: Path) -> None:
    photo = tmp_path / "shirt.png"
    photo.write_bytes(b"\x89PNG fake bytes")
    service = MockVisionService(['{"description": "Shirt"}'])

    item = ItemAnalyzer(service).analyze(str(photo))

    sent = service.calls[0].images[0]
    assert sent.startswith("data:image/png;base64,")
    assert split_data_url(sent) == ("image/png", b"\x89PNG fake bytes")
    assert item.image_ref == str(photo)


def test_transport_and_snapshot_encoding(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        to_transport(str(tmp_path / "missing.jpg"))
    assert to_transport("data:image/jpeg;base64,AAAA") == "data:image/jpeg;base64,AAAA"

    items = [make_item(f"item-{index}", "Shirt") for index in range(6)]
    snapshot = encode_closet(items, max_workers=3)

    assert [entry.item.id for entry in snapshot] == [item.id for item in items]
    assert snapshot[0].image == items[0].image_ref


def test_snapshot_leaves_out_unreadable_images(tmp_path: Path) -> None:
    readable = make_item("kept", "Shirt")
    missing = dataclasses.replace(make_item("missing", "Jeans"), image_ref=str(tmp_path / "missing.jpg"))

    snapshot = encode_closet([missing, readable])

    assert [entry.item.id for entry in snapshot] == ["kept"]
