"""Configuration validation and structured logging tests."""

from __future__ import annotations

import io
import json
import logging
from pathlib import Path

import pytest

from outfitly_app.config import DEFAULT_GEMINI_MODEL, OutfitlyConfig
from outfitly_app.errors import ConfigurationError
from outfitly_app.logging_config import JsonFormatter, log_event, operation_context, redact_for_log


def _valid(**overrides) -> OutfitlyConfig:
    values = dict(
        openai_api_key="sk-test",
        composition_base_url="https://tryon.example.com/v1",
        composition_api_key="fal-key",
    )
    values.update(overrides)
    return OutfitlyConfig(**values)


def test_valid_config_passes() -> None:
    config = _valid()
    assert config.validate() is config


def test_validate_reports_every_problem() -> None:
    config = _valid(
        openai_api_key="bad-key",
        composition_base_url="ftp://tryon",
        poll_max_attempts=0,
        poll_interval_seconds=-1,
        status_conventions=["status_path", "carrier_pigeon"],
    )

    with pytest.raises(ConfigurationError) as excinfo:
        config.validate()

    problems = " ".join(excinfo.value.problems)
    assert "sk-" in problems
    assert "composition_base_url" in problems
    assert "poll_max_attempts" in problems
    assert "non-negative" in problems
    assert "carrier_pigeon" in problems


def test_gemini_provider_needs_google_key() -> None:
    with pytest.raises(ConfigurationError):
        _valid(vision_provider="gemini", openai_api_key=None).validate()
    assert _valid(vision_provider="gemini", openai_api_key=None, google_api_key="g-key").validate()


def test_from_env_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("APP_CONFIG_PATH", raising=False)
    monkeypatch.delenv("APP_ENV", raising=False)
    monkeypatch.setenv("VISION_PROVIDER", "gemini")
    monkeypatch.delenv("VISION_MODEL", raising=False)
    monkeypatch.setenv("POLL_MAX_ATTEMPTS", "7")
    monkeypatch.setenv("STATUS_CONVENTIONS", "status_query, status_path")
    monkeypatch.setenv("REPOSITORY_BACKEND", "SQLite")

    config = OutfitlyConfig.from_env()

    assert config.vision_provider == "gemini"
    assert config.vision_model == DEFAULT_GEMINI_MODEL
    assert config.poll_max_attempts == 7
    assert config.status_conventions == ["status_query", "status_path"]
    assert config.repository_backend == "sqlite"


def test_from_env_merges_yaml_file(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    config_file = tmp_path / "staging.yaml"
    config_file.write_text(
        "# staging\n"
        'composition_base_url: "https://tryon.example.com"\n'
        "poll_interval_seconds: 0.5\n"
        "poll_max_attempts: not-a-number\n"
    )
    monkeypatch.setenv("APP_CONFIG_PATH", str(config_file))
    for key in ("COMPOSITION_BASE_URL", "POLL_INTERVAL_SECONDS", "POLL_MAX_ATTEMPTS"):
        monkeypatch.delenv(key, raising=False)

    config = OutfitlyConfig.from_env()

    assert config.composition_base_url == "https://tryon.example.com"
    assert config.poll_interval_seconds == 0.5
    with pytest.raises(ConfigurationError, match="poll_max_attempts"):
        config.validate()


def test_redaction_scrubs_secrets_text_and_images() -> None:
    scrubbed = redact_for_log(
        {
            "api_key": "sk-secret",
            "description": "Navy blazer",
            "image": "data:image/png;base64," + "A" * 2000,
            "contact": "jane@example.com",
            "nested": [{"Authorization": "Bearer x"}],
            "long": "x" * 900,
            "count": 3,
        }
    )

    assert scrubbed["api_key"] == "[redacted]"
    assert scrubbed["description"] == "[redacted]"
    assert scrubbed["image"] == "[data:image/png;base64 2022 chars]"
    assert scrubbed["contact"] == "[redacted-email]"
    assert scrubbed["nested"] == [{"Authorization": "[redacted]"}]
    assert scrubbed["long"].endswith("...[truncated]")
    assert scrubbed["count"] == 3


def test_log_event_emits_json_with_operation_and_correlation() -> None:
    stream = io.StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(JsonFormatter())
    logger = logging.getLogger("outfitly.tests.logging")
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False

    try:
        with operation_context("agent:test.run") as correlation_id:
            log_event(logger, logging.INFO, "step_done", role="Top", reasoning="private")
    finally:
        logger.removeHandler(handler)

    entry = json.loads(stream.getvalue().strip())
    assert entry["event"] == "step_done"
    assert entry["operation"] == "agent:test.run"
    assert entry["correlation_id"] == correlation_id
    assert entry["role"] == "Top"
    assert entry["reasoning"] == "[redacted]"
