"""Vision completion service abstractions and implementations."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

import google.generativeai as genai
import requests
from google.api_core import exceptions as google_exceptions

from outfitly_app.errors import UpstreamError
from tools.image_encoding import split_data_url
from tools.observability import instrument_call


LOGGER = logging.getLogger(__name__)


class VisionCompletionService(ABC):
    """Language model endpoint that accepts text plus image attachments."""

    @abstractmethod
    def complete(self, system_instruction: str, user_text: str, images: Sequence[str] = ()) -> str:
        """Return the model's free-form text reply.

        ``images`` are http(s) URLs or ``data:`` URLs. Implementations raise
        :class:`UpstreamError` for transport failures and non-2xx responses.
        """


class OpenAIVisionService(VisionCompletionService):
    """Chat-completions client sending ``text`` and ``image_url`` content parts."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        endpoint: str = "https://api.openai.com/v1/chat/completions",
        temperature: float = 0.3,
        timeout_seconds: float = 60.0,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required for the OpenAI vision service")
        self.api_key = api_key
        self.model = model
        self.endpoint = endpoint
        self.temperature = temperature
        self.timeout_seconds = timeout_seconds

    def _messages(self, system_instruction: str, user_text: str, images: Sequence[str]) -> List[Dict[str, Any]]:
        content: List[Dict[str, Any]] = [{"type": "text", "text": user_text}]
        content.extend({"type": "image_url", "image_url": {"url": image}} for image in images)
        return [
            {"role": "system", "content": system_instruction},
            {"role": "user", "content": content},
        ]

    @instrument_call("vision", "openai.complete")
    def complete(self, system_instruction: str, user_text: str, images: Sequence[str] = ()) -> str:
        headers = {
            "Content-Type": "application/json",
            "Authorization": f"Bearer {self.api_key}",
        }
        body = {
            "model": self.model,
            "temperature": self.temperature,
            "messages": self._messages(system_instruction, user_text, images),
        }
        LOGGER.info("Requesting vision completion", extra={"model": self.model, "image_count": len(images)})
        try:
            response = requests.post(self.endpoint, headers=headers, json=body, timeout=self.timeout_seconds)
        except requests.RequestException as exc:
            LOGGER.error("Vision service unreachable", exc_info=exc)
            raise UpstreamError(status=None, body=str(exc)) from exc

        if not 200 <= response.status_code < 300:
            raise UpstreamError(status=response.status_code, body=response.text)

        try:
            payload = response.json()
            content = payload["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as exc:
            raise UpstreamError(status=response.status_code, body=response.text) from exc
        return (content or "").strip()


class GeminiVisionService(VisionCompletionService):
    """Gemini client built on ``google-generativeai``."""

    def __init__(
        self,
        api_key: str,
        model: str = "gemini-1.5-flash",
        temperature: float = 0.3,
        timeout_seconds: float = 60.0,
    ) -> None:
        if not api_key:
            raise ValueError("api_key is required for the Gemini vision service")
        genai.configure(api_key=api_key)
        self.model = model
        self.temperature = temperature
        self.timeout_seconds = timeout_seconds

    def _image_part(self, image: str) -> Dict[str, Any]:
        if image.startswith("data:"):
            mime_type, data = split_data_url(image)
            return {"mime_type": mime_type, "data": data}
        try:
            response = requests.get(image, timeout=self.timeout_seconds)
            response.raise_for_status()
        except requests.RequestException as exc:
            raise UpstreamError(status=None, body=f"Could not download image: {exc}") from exc
        mime_type = response.headers.get("Content-Type", "image/jpeg").split(";", 1)[0]
        return {"mime_type": mime_type, "data": response.content}

    @instrument_call("vision", "gemini.complete")
    def complete(self, system_instruction: str, user_text: str, images: Sequence[str] = ()) -> str:
        model = genai.GenerativeModel(model_name=self.model, system_instruction=system_instruction)
        parts: List[Any] = [user_text] + [self._image_part(image) for image in images]
        LOGGER.info("Requesting vision completion", extra={"model": self.model, "image_count": len(images)})
        try:
            response = model.generate_content(
                parts,
                generation_config={"temperature": self.temperature},
                request_options={"timeout": self.timeout_seconds},
            )
            return (response.text or "").strip()
        except google_exceptions.GoogleAPICallError as exc:
            raise UpstreamError(status=getattr(exc, "code", None), body=str(exc)) from exc
        except ValueError as exc:
            # ``response.text`` raises when the candidate was blocked or empty.
            raise UpstreamError(status=None, body=str(exc)) from exc


@dataclass
class VisionCall:
    system_instruction: str
    user_text: str
    images: List[str] = field(default_factory=list)


class MockVisionService(VisionCompletionService):
    """Offline deterministic service replaying canned replies for tests."""

    def __init__(self, responses: Sequence[str | Exception] = ()) -> None:
        self.responses = list(responses)
        self.calls: List[VisionCall] = []

    def complete(self, system_instruction: str, user_text: str, images: Sequence[str] = ()) -> str:
        self.calls.append(VisionCall(system_instruction, user_text, list(images)))
        if not self.responses:
            raise UpstreamError(status=None, body="no canned response left")
        reply = self.responses.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


def build_vision_service(config: Any) -> VisionCompletionService:
    """Create the provider selected by ``config.vision_provider``."""

    if config.vision_provider == "gemini":
        return GeminiVisionService(
            api_key=config.google_api_key,
            model=config.vision_model,
            temperature=config.vision_temperature,
            timeout_seconds=config.request_timeout_seconds,
        )
    return OpenAIVisionService(
        api_key=config.openai_api_key,
        model=config.vision_model,
        endpoint=config.vision_endpoint,
        temperature=config.vision_temperature,
        timeout_seconds=config.request_timeout_seconds,
    )


__all__ = [
    "GeminiVisionService",
    "MockVisionService",
    "OpenAIVisionService",
    "VisionCall",
    "VisionCompletionService",
    "build_vision_service",
]
