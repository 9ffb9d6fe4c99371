"""Pydantic schemas and helpers for validating model replies."""

from __future__ import annotations

import json
import re
from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from outfitly_app.errors import MalformedResponse

_FENCE = re.compile(r"^```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?```$", re.DOTALL)


def strip_code_fence(text: str) -> str:
    """Remove an optional ```json ... ``` wrapper around a reply."""

    stripped = (text or "").strip()
    match = _FENCE.match(stripped)
    return match.group(1).strip() if match else stripped


def parse_json_object(text: str) -> Dict[str, Any]:
    """Parse a (possibly fenced) reply into a JSON object or raise MalformedResponse."""

    body = strip_code_fence(text)
    try:
        parsed = json.loads(body)
    except json.JSONDecodeError as exc:
        raise MalformedResponse(f"Reply is not valid JSON: {exc.msg}", raw=text) from exc
    if not isinstance(parsed, dict):
        raise MalformedResponse("Reply JSON is not an object", raw=text)
    return parsed


class SelectionPayload(BaseModel):
    """Shape the selector model is instructed to return."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    selected_ids: List[str] = Field(alias="selectedIds")
    outfit_description: str = Field("", alias="outfitDescription")
    style: str = ""
    occasion: str = ""
    color_scheme: str = Field("", alias="colorScheme")
    reasoning: str = ""

    @field_validator("selected_ids", mode="before")
    @classmethod
    def _coerce_ids(cls, value: Any) -> Any:
        if not isinstance(value, list):
            raise ValueError("selectedIds must be an array")
        return [str(item).strip() for item in value if item is not None and str(item).strip()]

    @field_validator("outfit_description", "style", "occasion", "color_scheme", "reasoning", mode="before")
    @classmethod
    def _coerce_text(cls, value: Any) -> str:
        if value is None:
            return ""
        if isinstance(value, list):
            return ", ".join(str(part) for part in value)
        return str(value)


def parse_selection(text: str) -> SelectionPayload:
    """Parse the selector reply, raising MalformedResponse on any schema problem."""

    parsed = parse_json_object(text)
    try:
        return SelectionPayload.model_validate(parsed)
    except ValidationError as exc:
        raise MalformedResponse(f"Selection reply failed schema checks: {exc.errors()}", raw=text) from exc


__all__ = ["SelectionPayload", "parse_json_object", "parse_selection", "strip_code_fence"]
