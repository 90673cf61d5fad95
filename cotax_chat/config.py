"""Configuration loading and validation for the Cotax chat client."""

from __future__ import annotations

from copy import deepcopy
import logging
import os
from pathlib import Path
from typing import Any, Literal
from urllib.parse import urlparse

from platformdirs import user_config_path, user_state_path
from pydantic import BaseModel, Field, ValidationError, field_validator

from .exceptions import ConfigValidationError
from .quick_replies import DEFAULT_PHRASES, TABLE_PHRASE
from .session import DEFAULT_GREETING

import tomllib

LOGGER = logging.getLogger(__name__)

APP_NAME = "cotax-chat"
CONFIG_DIR = user_config_path(APP_NAME)
CONFIG_PATH = CONFIG_DIR / "config.toml"
DEFAULT_LOG_PATH = str(user_state_path(APP_NAME) / "app.log")

VALID_LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


def _non_empty_string(value: Any) -> str:
    if not isinstance(value, str):
        raise ValueError("Expected a string value.")
    normalized = value.strip()
    if not normalized:
        raise ValueError("String value must not be empty.")
    return normalized


class AppConfig(BaseModel):
    """Application metadata and the opening assistant message."""

    title: str = "Cotax.AI"
    greeting: str = DEFAULT_GREETING

    @field_validator("title", "greeting", mode="before")
    @classmethod
    def _validate_non_empty_string(cls, value: Any) -> str:
        return _non_empty_string(value)


class BackendConfig(BaseModel):
    """Chat and image endpoints."""

    provider: Literal["http", "ollama"] = "http"
    base_url: str = "http://localhost:3000"
    chat_path: str = "/api/chat"
    image_path: str = "/api/generate-image"
    timeout: int = Field(default=120, ge=1, le=3600)
    retries: int = Field(default=2, ge=0, le=10)
    retry_backoff_seconds: float = Field(default=0.5, ge=0.0, le=60.0)

    @field_validator("base_url", mode="before")
    @classmethod
    def _validate_base_url(cls, value: Any) -> str:
        normalized = _non_empty_string(value).rstrip("/")
        parsed = urlparse(normalized)
        if parsed.scheme.lower() not in {"http", "https"}:
            raise ValueError("base_url must use http or https scheme.")
        if not parsed.hostname:
            raise ValueError("base_url must include a hostname.")
        return normalized

    @field_validator("chat_path", "image_path", mode="before")
    @classmethod
    def _validate_path(cls, value: Any) -> str:
        normalized = _non_empty_string(value)
        if not normalized.startswith("/"):
            raise ValueError("Endpoint paths must start with '/'.")
        return normalized


class OllamaConfig(BaseModel):
    """Settings for the ``ollama`` provider."""

    host: str = "http://localhost:11434"
    model: str = "llama3.2"
    system_prompt: str = "You are Cotax, a friendly and precise personal tax assistant."

    @field_validator("host", "model", mode="before")
    @classmethod
    def _validate_required_string(cls, value: Any) -> str:
        return _non_empty_string(value)

    @field_validator("system_prompt", mode="before")
    @classmethod
    def _normalize_prompt(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Expected a string value.")
        return value.strip()


class QuickRepliesConfig(BaseModel):
    """Canned phrases offered as one-press replies."""

    phrases: list[str] = Field(default_factory=lambda: list(DEFAULT_PHRASES))
    table_phrase: str = TABLE_PHRASE

    @field_validator("phrases", mode="before")
    @classmethod
    def _validate_phrases(cls, value: Any) -> list[str]:
        if not isinstance(value, list):
            raise ValueError("phrases must be a list of strings.")
        normalized: list[str] = []
        for item in value:
            candidate = _non_empty_string(item)
            if candidate not in normalized:
                normalized.append(candidate)
        return normalized

    @field_validator("table_phrase", mode="before")
    @classmethod
    def _validate_table_phrase(cls, value: Any) -> str:
        return _non_empty_string(value)


class LoggingConfig(BaseModel):
    """Logging behavior and output destinations."""

    level: str = "INFO"
    structured: bool = True
    log_to_file: bool = False
    log_file_path: str = DEFAULT_LOG_PATH

    @field_validator("level", mode="before")
    @classmethod
    def _validate_level(cls, value: Any) -> str:
        if not isinstance(value, str):
            raise ValueError("Logging level must be a string.")
        normalized = value.strip().upper()
        if normalized not in VALID_LOG_LEVELS:
            raise ValueError(f"Unsupported log level {normalized!r}.")
        return normalized

    @field_validator("log_file_path", mode="before")
    @classmethod
    def _validate_log_file_path(cls, value: Any) -> str:
        return _non_empty_string(value)


class Config(BaseModel):
    """Root configuration model for all sections."""

    app: AppConfig = AppConfig()
    backend: BackendConfig = BackendConfig()
    ollama: OllamaConfig = OllamaConfig()
    quick_replies: QuickRepliesConfig = QuickRepliesConfig()
    logging: LoggingConfig = LoggingConfig()


DEFAULT_CONFIG: dict[str, dict[str, Any]] = Config().model_dump()


def ensure_config_dir(config_dir: Path | None = None) -> Path:
    """Ensure that the config directory exists and return its path."""
    directory = config_dir or CONFIG_DIR
    try:
        directory.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        LOGGER.warning("Unable to create config directory %s: %s", directory, exc)
    return directory


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override values onto base values."""
    merged: dict[str, Any] = deepcopy(base)
    for key, value in override.items():
        if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def _enforce_private_permissions(path: Path) -> None:
    """Best-effort enforcement of private file permissions on POSIX systems."""
    if os.name != "posix" or not path.exists():
        return
    try:
        path.chmod(0o600)
    except OSError as exc:
        LOGGER.warning("Unable to enforce 0600 permissions for %s: %s", path, exc)


def _validate_config(raw: dict[str, Any]) -> dict[str, dict[str, Any]]:
    """Validate merged config and fall back to safe defaults when invalid."""
    try:
        return Config.model_validate(raw).model_dump()
    except ValidationError as exc:
        LOGGER.warning("Configuration validation failed, using safe defaults: %s", exc)
        return deepcopy(DEFAULT_CONFIG)
    except Exception as exc:  # noqa: BLE001 - unexpected model construction failure.
        raise ConfigValidationError(f"Unable to validate configuration: {exc}") from exc


def load_config(config_path: Path | None = None) -> dict[str, dict[str, Any]]:
    """Load configuration from TOML, merge with defaults, and validate.

    The optional ``config_path`` argument is intended for tests and tooling.
    """
    target_path = config_path or CONFIG_PATH
    ensure_config_dir(target_path.parent)

    raw_data: dict[str, Any] = {}
    if target_path.exists():
        _enforce_private_permissions(target_path)
        try:
            raw_data = tomllib.loads(target_path.read_text(encoding="utf-8"))
        except (OSError, tomllib.TOMLDecodeError) as exc:
            LOGGER.warning("Failed to parse config at %s: %s", target_path, exc)
            raw_data = {}

    return _validate_config(_deep_merge(DEFAULT_CONFIG, raw_data))
