import json
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .errors import ConfigError


def load_config(path: str) -> Dict[str, Any]:
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    if config_path.suffix.lower() in {".json"}:
        with config_path.open("r", encoding="utf-8") as f:
            data = json.load(f)
    elif config_path.suffix.lower() in {".yml", ".yaml"}:
        with config_path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    else:
        raise ConfigError(f"Unsupported config format: {config_path.suffix}")

    if not isinstance(data, dict):
        raise ConfigError(f"Config root must be a mapping: {config_path}")
    return data


@dataclass(frozen=True)
class Settings:
    """Process configuration, built once at startup and passed down."""

    completion_api_key: Optional[str] = None
    completion_model: str = "llama-3.1-8b-instant"
    completion_url: str = "https://api.groq.com/openai/v1/chat/completions"
    completion_timeout: float = 10.0
    port: int = 3000
    base_url: Optional[str] = None
    runtime_mode: str = "development"
    keep_alive_interval: float = 14 * 60
    dialogflow_project_id: str = "digibot-qkf9"
    dialogflow_knowledge_base_id: str = "Njc5Njg3MDI3MDg3NjM4NTI5"
    dialogflow_credentials: str = "service-account.json"
    lookup_timeout: float = 10.0
    default_language: str = "en-US"
    firebase_credentials: str = "firebase-service-account.json"
    cache_ttl_seconds: float = 30 * 60
    cache_capacity: int = 100
    assistant_name: str = "GrowBot"
    assistant_topic: str = "gardening"

    @property
    def completion_configured(self) -> bool:
        return bool(self.completion_api_key)

    @property
    def keep_alive_enabled(self) -> bool:
        return self.runtime_mode == "production" and bool(self.base_url)


# Environment variables win over config file values; first name found wins.
ENV_VARS: Dict[str, tuple] = {
    "completion_api_key": ("COMPLETION_API_KEY", "GROQ_API_KEY"),
    "completion_model": ("COMPLETION_MODEL",),
    "port": ("PORT",),
    "base_url": ("BASE_URL", "RENDER_EXTERNAL_URL"),
    "runtime_mode": ("RUNTIME_MODE",),
    "dialogflow_project_id": ("DIALOGFLOW_PROJECT_ID",),
    "dialogflow_knowledge_base_id": ("DIALOGFLOW_KNOWLEDGE_BASE_ID",),
    "dialogflow_credentials": ("DIALOGFLOW_CREDENTIALS",),
    "firebase_credentials": ("FIREBASE_CREDENTIALS",),
}


def load_settings(path: Optional[str] = None, environ: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if environ is None else environ
    path = path or env.get("RELAY_CONFIG")
    raw: Dict[str, Any] = load_config(path) if path else {}

    for name, env_names in ENV_VARS.items():
        for env_name in env_names:
            value = env.get(env_name)
            if value:
                raw[name] = value
                break

    known = {f.name: f for f in fields(Settings)}
    unknown = sorted(set(raw) - set(known))
    if unknown:
        raise ConfigError(f"Unknown config keys: {', '.join(unknown)}")

    values: Dict[str, Any] = {}
    for name, value in raw.items():
        values[name] = _coerce(name, value, known[name].type)
    return Settings(**values)


def _coerce(name: str, value: Any, annotation: Any) -> Any:
    try:
        if annotation is int:
            return int(value)
        if annotation is float:
            return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid value for {name}: {value!r}") from exc
    if value is None:
        return None
    return str(value)
