"""Response parsing tests for the composition service and model replies."""

import pytest

from logic.extraction import classify_status, extract_image, extract_job_id, failure_reason
from logic.validation import parse_json_object, parse_selection, strip_code_fence
from outfitly_app.errors import MalformedResponse

URL = "https://cdn.example.com/result.png"


@pytest.mark.parametrize(
    "payload",
    [
        {"output": [URL]},
        {"output": URL},
        {"output": {"url": URL}},
        {"images": [{"url": URL}]},
        {"result": {"image_url": URL}},
        {"data": {"output": [URL]}},
        {"result": [URL]},
    ],
)
def test_every_known_shape_yields_the_same_reference(payload) -> None:
    outcome = extract_image(payload)

    assert outcome.found
    assert outcome.reference == URL


def test_b64_json_becomes_a_data_url() -> None:
    outcome = extract_image({"data": [{"b64_json": "aGVsbG8="}]})

    assert outcome.reference == "data:image/png;base64,aGVsbG8="


def test_unrecognised_shape_reports_strategies_tried() -> None:
    outcome = extract_image({"status": "completed", "id": "job-1"})

    assert not outcome.found
    assert outcome.strategies_tried == ("output_array", "output_string", "nested_object", "wrapper")


def test_empty_strings_are_not_images() -> None:
    assert not extract_image({"output": ["  "], "image": ""}).found
    assert not extract_image(["not", "a", "dict"]).found


def test_job_id_and_status_helpers() -> None:
    assert extract_job_id({"id": "abc"}) == "abc"
    assert extract_job_id({"data": {"job_id": 42}}) == "42"
    assert extract_job_id({"status": "queued"}) is None

    assert classify_status({"status": "COMPLETED"}) == "succeeded"
    assert classify_status({"status": "in_queue"}) == "pending"
    assert classify_status({"data": {"state": "failed"}}) == "failed"
    assert classify_status({"raw": "<html>"}) == "unknown"


def test_failure_reason_prefers_nested_messages() -> None:
    assert failure_reason({"status": "failed", "error": {"name": "ImageLoadError", "message": "bad image"}}) == "bad image"
    assert failure_reason({"status": "failed", "error": "NSFW content"}) == "NSFW content"
    assert failure_reason({"status": "failed"}) == "composition service reported failure"


def test_strip_code_fence() -> None:
    assert strip_code_fence('```json\n{"a": 1}\n```') == '{"a": 1}'
    assert strip_code_fence('  {"a": 1}  ') == '{"a": 1}'


def test_parse_json_object_rejects_non_objects() -> None:
    with pytest.raises(MalformedResponse):
        parse_json_object("[1, 2, 3]")
    with pytest.raises(MalformedResponse) as excinfo:
        parse_json_object("I picked the white shirt")
    assert excinfo.value.raw == "I picked the white shirt"


def test_parse_selection_accepts_camel_case_and_coerces_ids() -> None:
    payload = parse_selection(
        '```json\n{"selectedIds": ["a", 7, ""], "outfitDescription": "Casual", '
        '"colorScheme": ["white", "blue"], "extra": true}\n```'
    )

    assert payload.selected_ids == ["a", "7"]
    assert payload.outfit_description == "Casual"
    assert payload.color_scheme == "white, blue"
    assert payload.reasoning == ""


def test_parse_selection_requires_selected_ids() -> None:
    with pytest.raises(MalformedResponse):
        parse_selection('{"outfitDescription": "Casual"}')
    with pytest.raises(MalformedResponse):
        parse_selection('{"selectedIds": "a"}')
