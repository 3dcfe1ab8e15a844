"""Configuration system for VoiceRelay.

Supports loading from environment variables (and a ``.env`` file), YAML
files, dicts, or programmatic construction via Pydantic models. A config
is built once at startup and handed to
:class:`~voicerelay.bridge.VoiceRelay`; nothing in the relay mutates it
afterwards.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigError(ValueError):
    """Raised when required configuration is missing."""


class RealtimeConfig(BaseModel):
    """Configuration for the realtime AI side."""

    url: str = "wss://api.openai.com/v1/realtime"
    model: str = "gpt-4o-realtime-preview-2024-10-01"
    voice: str = "alloy"
    temperature: float = 0.8
    beta: str = "realtime=v1"

    @property
    def endpoint(self) -> str:
        """Full WebSocket URL including the model query parameter."""
        return f"{self.url}?model={self.model}"


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"


class BridgeConfig(BaseModel):
    """Top-level VoiceRelay configuration.

    The five top-level fields are required and have no defaults: the AI
    service credential, the system instructions, the listen port, the
    greeting spoken at the start of every call, and the webhook that
    receives scheduled meetings.

    Examples:
        # Programmatic
        config = BridgeConfig(
            openai_api_key="sk-...",
            system_message="You are a scheduling assistant.",
            port=1313,
            greeting="Hi! How can I help?",
            webhook_url="https://hooks.example.com/schedule",
        )

        # From the environment (OPENAI_API_KEY, SYSTEM_MESSAGE, PORT, ...)
        config = BridgeConfig.from_env()

        # From YAML
        config = BridgeConfig.from_yaml("relay.yaml")
    """

    openai_api_key: str = Field(min_length=1)
    system_message: str = Field(min_length=1)
    port: int = Field(gt=0, lt=65536)
    greeting: str = Field(min_length=1)
    webhook_url: str = Field(min_length=1)

    host: str = "0.0.0.0"
    realtime: RealtimeConfig = Field(default_factory=RealtimeConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def from_env(
        cls,
        env_file: str | Path | None = ".env",
        default_port: int | None = None,
    ) -> BridgeConfig:
        """Load configuration from environment variables.

        Values are read by :class:`EnvSettings`; a ``.env`` file fills in
        anything the process environment does not set.

        Args:
            env_file: Path of the dotenv file, or ``None`` to skip it.
            default_port: Port used when ``PORT`` is not set.

        Raises:
            ConfigError: If any required variable is missing or empty.
        """
        settings = EnvSettings(_env_file=env_file)
        if settings.port is None:
            settings.port = default_port

        missing = [
            name.upper() for name in REQUIRED_SETTINGS
            if getattr(settings, name) in ("", None)
        ]
        if missing:
            raise ConfigError(
                f"Missing required environment variables: {', '.join(missing)}"
            )

        data: dict[str, Any] = {
            "openai_api_key": settings.openai_api_key,
            "system_message": settings.system_message,
            "port": settings.port,
            "greeting": settings.greetings_response,
            "webhook_url": settings.webhook_url,
        }
        for flat_key, name in OPTIONAL_SETTINGS.items():
            value = getattr(settings, name)
            if value:
                data[flat_key] = value

        return cls._from_raw(data)

    @classmethod
    def from_yaml(cls, path: str | Path) -> BridgeConfig:
        """Load configuration from a YAML file."""
        path = Path(path)
        with path.open() as f:
            data = yaml.safe_load(f) or {}
        return cls._from_raw(data)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BridgeConfig:
        """Load configuration from a dictionary.

        Supports both the nested format and a flat shorthand:

        Nested:
            {"realtime": {"voice": "verse"}, "logging": {"level": "DEBUG"}, ...}

        Shorthand:
            {"voice": "verse", "log_level": "DEBUG", ...}
        """
        return cls._from_raw(dict(data))

    @classmethod
    def _from_raw(cls, data: dict[str, Any]) -> BridgeConfig:
        """Normalize and construct config from a raw dict."""
        flat_mappings = {
            "realtime_url": ("realtime", "url"),
            "model": ("realtime", "model"),
            "voice": ("realtime", "voice"),
            "temperature": ("realtime", "temperature"),
            "log_level": ("logging", "level"),
        }

        for flat_key, (section, nested_key) in flat_mappings.items():
            if flat_key in data:
                data.setdefault(section, {})
                data[section][nested_key] = data.pop(flat_key)

        return cls(**data)


class EnvSettings(BaseSettings):
    """Raw process settings, named after their environment variables.

    Empty values mean "not set"; :meth:`BridgeConfig.from_env` decides
    which of them are required.
    """

    openai_api_key: str = ""
    system_message: str = ""
    port: int | None = None
    greetings_response: str = ""
    webhook_url: str = ""

    host: str = ""
    openai_realtime_model: str = ""
    openai_voice: str = ""
    log_level: str = ""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_ignore_empty=True,
        extra="ignore",
    )


# Settings that must be non-empty, by field name (upper-cased for the env var)
REQUIRED_SETTINGS: tuple[str, ...] = (
    "openai_api_key",
    "system_message",
    "port",
    "greetings_response",
    "webhook_url",
)

# BridgeConfig flat key -> EnvSettings field
OPTIONAL_SETTINGS: dict[str, str] = {
    "host": "host",
    "model": "openai_realtime_model",
    "voice": "openai_voice",
    "log_level": "log_level",
}


def load_config(
    source: str | Path | dict[str, Any] | BridgeConfig | None = None,
) -> BridgeConfig:
    """Load a BridgeConfig from any supported source.

    Args:
        source: ``None`` for the process environment, a YAML file path,
            a dict, or an existing BridgeConfig.

    Returns:
        A BridgeConfig instance.
    """
    if source is None:
        return BridgeConfig.from_env()
    if isinstance(source, BridgeConfig):
        return source
    if isinstance(source, dict):
        return BridgeConfig.from_dict(source)
    if isinstance(source, (str, Path)):
        path = Path(source)
        if not path.exists():
            raise ConfigError(f"Config file not found: {path}")
        return BridgeConfig.from_yaml(path)
    raise TypeError(f"Cannot load config from {type(source)}")


# Default YAML template for `voicerelay init`
DEFAULT_CONFIG_YAML = """\
# VoiceRelay Configuration

openai_api_key: sk-your-key-here
system_message: >-
  You are a friendly assistant answering phone calls. Help the caller
  schedule a business meeting.
greeting: Hello! Thanks for calling. How can I help you today?
webhook_url: https://hooks.example.com/schedule

host: 0.0.0.0
port: 1313

realtime:
  model: gpt-4o-realtime-preview-2024-10-01
  voice: alloy
  temperature: 0.8

logging:
  level: INFO
"""
