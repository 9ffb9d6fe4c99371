"""Configuration helpers for the Outfitly services."""

from dataclasses import dataclass, field
from pathlib import Path
import os
from typing import List, Optional

from outfitly_app.errors import ConfigurationError

DEFAULT_VISION_MODEL = "gpt-4o-mini"
DEFAULT_VISION_ENDPOINT = "https://api.openai.com/v1/chat/completions"
DEFAULT_GEMINI_MODEL = "gemini-1.5-flash"
DEFAULT_STATUS_CONVENTIONS = ("status_path", "status_query", "resubmit")
DEFAULT_BASE_MODEL_PROMPT = (
    "Full-body studio photo of a neutral fashion model standing upright, facing the camera, "
    "arms relaxed, wearing plain fitted neutral base layers, plain light grey background."
)
VISION_PROVIDERS = ("openai", "gemini")
REPOSITORY_BACKENDS = ("json", "sqlite")


def _as_float(raw: Optional[str], default: float) -> float:
    if raw in (None, ""):
        return default
    try:
        return float(raw)
    except ValueError:
        return float("nan")


def _as_int(raw: Optional[str], default: int) -> int:
    if raw in (None, ""):
        return default
    try:
        return int(raw)
    except ValueError:
        return -1


@dataclass
class OutfitlyConfig:
    """Configuration values for the Outfitly services.

    Every client receives the values it needs through its constructor, so this
    object is read once at startup and validated with :meth:`validate` before
    anything talks to the network.
    """

    vision_provider: str = "openai"
    vision_model: str = DEFAULT_VISION_MODEL
    vision_endpoint: str = DEFAULT_VISION_ENDPOINT
    vision_temperature: float = 0.3
    openai_api_key: Optional[str] = None
    google_api_key: Optional[str] = None
    composition_base_url: Optional[str] = None
    composition_api_key: Optional[str] = None
    composition_model_name: str = "tryon-v1.6"
    base_model_name: str = "model-create"
    composition_mode: str = "balanced"
    base_model_prompt: str = DEFAULT_BASE_MODEL_PROMPT
    poll_initial_delay_seconds: float = 5.0
    poll_interval_seconds: float = 2.0
    poll_max_attempts: int = 40
    poll_backoff_factor: float = 1.0
    status_conventions: List[str] = field(default_factory=lambda: list(DEFAULT_STATUS_CONVENTIONS))
    request_timeout_seconds: float = 60.0
    encode_workers: int = 4
    repository_backend: str = "json"
    repository_path: Optional[str] = None
    environment: str | None = None

    @classmethod
    def from_env(cls) -> "OutfitlyConfig":
        """Build a config from environment variables or an environment YAML file.

        Environment specific YAML lives in ``config/environments/<env>.yaml`` by
        default and is merged with environment variables so that secrets can be
        injected by the runtime environment.
        """

        env_name = os.getenv("APP_ENV")
        config_path = os.getenv("APP_CONFIG_PATH")
        config_dir = Path(os.getenv("OUTFITLY_CONFIG_DIR", "config/environments"))
        yaml_config: dict = {}

        if config_path:
            path = Path(config_path)
        elif env_name:
            path = config_dir / f"{env_name}.yaml"
        else:
            path = None

        if path and path.exists():
            yaml_config = cls._load_yaml_config(path)

        def get_value(key: str, default: Optional[str] = None) -> Optional[str]:
            env_key = key.upper()
            return os.getenv(env_key, yaml_config.get(key, default))

        conventions = get_value("status_conventions")
        provider = str(get_value("vision_provider", "openai")).lower()
        default_model = DEFAULT_GEMINI_MODEL if provider == "gemini" else DEFAULT_VISION_MODEL
        return cls(
            vision_provider=provider,
            vision_model=str(get_value("vision_model", default_model)),
            vision_endpoint=str(get_value("vision_endpoint", DEFAULT_VISION_ENDPOINT)),
            vision_temperature=_as_float(get_value("vision_temperature"), 0.3),
            openai_api_key=get_value("openai_api_key"),
            google_api_key=get_value("google_api_key"),
            composition_base_url=get_value("composition_base_url"),
            composition_api_key=get_value("composition_api_key"),
            composition_model_name=str(get_value("composition_model_name", "tryon-v1.6")),
            base_model_name=str(get_value("base_model_name", "model-create")),
            composition_mode=str(get_value("composition_mode", "balanced")),
            base_model_prompt=str(get_value("base_model_prompt", DEFAULT_BASE_MODEL_PROMPT)),
            poll_initial_delay_seconds=_as_float(get_value("poll_initial_delay_seconds"), 5.0),
            poll_interval_seconds=_as_float(get_value("poll_interval_seconds"), 2.0),
            poll_max_attempts=_as_int(get_value("poll_max_attempts"), 40),
            poll_backoff_factor=_as_float(get_value("poll_backoff_factor"), 1.0),
            status_conventions=(
                [name.strip() for name in conventions.split(",") if name.strip()]
                if conventions
                else list(DEFAULT_STATUS_CONVENTIONS)
            ),
            request_timeout_seconds=_as_float(get_value("request_timeout_seconds"), 60.0),
            encode_workers=_as_int(get_value("encode_workers"), 4),
            repository_backend=str(get_value("repository_backend", "json")).lower(),
            repository_path=get_value("repository_path"),
            environment=env_name,
        )

    def validate(self) -> "OutfitlyConfig":
        """Check every setting once and raise with the full list of problems."""

        problems: List[str] = []
        if self.vision_provider not in VISION_PROVIDERS:
            problems.append(f"vision_provider must be one of {VISION_PROVIDERS}")
        elif self.vision_provider == "openai":
            if not self.openai_api_key or not self.openai_api_key.startswith("sk-"):
                problems.append("openai_api_key must be set and start with 'sk-'")
        elif not self.google_api_key:
            problems.append("google_api_key is required for the gemini provider")

        if not self.composition_base_url or not self.composition_base_url.startswith(("http://", "https://")):
            problems.append("composition_base_url must be an http(s) URL")
        if not self.composition_api_key:
            problems.append("composition_api_key is required")

        # NaN fails every comparison, so unparseable numbers land here too.
        if not self.poll_initial_delay_seconds >= 0 or not self.poll_interval_seconds >= 0:
            problems.append("poll delays must be non-negative numbers")
        if self.poll_max_attempts < 1:
            problems.append("poll_max_attempts must be at least 1")
        if not self.poll_backoff_factor >= 1:
            problems.append("poll_backoff_factor must be at least 1")
        if not self.request_timeout_seconds > 0:
            problems.append("request_timeout_seconds must be positive")
        if self.encode_workers < 1:
            problems.append("encode_workers must be at least 1")
        if not self.status_conventions:
            problems.append("at least one status convention is required")
        unknown = [name for name in self.status_conventions if name not in DEFAULT_STATUS_CONVENTIONS]
        if unknown:
            problems.append(f"unknown status conventions: {unknown}")

        if self.repository_backend not in REPOSITORY_BACKENDS:
            problems.append(f"repository_backend must be one of {REPOSITORY_BACKENDS}")

        if problems:
            raise ConfigurationError(problems)
        return self

    @staticmethod
    def _load_yaml_config(path: Path) -> dict:
        """Parse a minimal YAML/INI-style config without external dependencies."""

        config: dict[str, str] = {}
        for line in path.read_text().splitlines():
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if ":" not in stripped:
                continue
            key, raw_value = stripped.split(":", 1)
            value = raw_value.strip()
            if (value.startswith("\"") and value.endswith("\"")) or (
                value.startswith("'") and value.endswith("'")
            ):
                value = value[1:-1]
            config[key.strip()] = value
        return config
