"""Typed parsing and validation for dispatch config files.

Example file:

    schema_version = 1

    [dispatch]
    base_url = "https://api.example.com"
    timeout_seconds = 5.0
    circuit_breaker_threshold = 3
"""

from __future__ import annotations

import tomllib
from dataclasses import asdict, dataclass
from pathlib import Path

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator

from .exceptions import ConfigFileNotFoundError, ConfigFileParseError, ConfigFileValidationError

_SCHEMA_VERSION = 1


@dataclass(frozen=True)
class DispatchConfigFile:
    """Validated dispatch config values loaded from a TOML file."""

    base_url: str | None = None
    timeout_seconds: float | None = None
    max_payload_bytes: int | None = None
    sanitize_error_messages: bool | None = None
    max_retries: int | None = None
    backoff_base_seconds: float | None = None
    backoff_max_seconds: float | None = None
    backoff_jitter_seconds: float | None = None
    circuit_breaker_threshold: int | None = None
    circuit_breaker_reset_seconds: float | None = None
    circuit_breaker_sweep_seconds: float | None = None
    rate_limit_max_requests: int | None = None
    rate_limit_window_seconds: float | None = None
    rate_limit_queue_delay_seconds: float | None = None
    rate_limit_overflow: str | None = None
    cache_ttl_seconds: float | None = None
    cache_sweep_seconds: float | None = None
    metrics_capacity: int | None = None
    csrf_cookie_name: str | None = None

    def as_dict(self) -> dict[str, object]:
        return asdict(self)


class _DispatchSectionModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    base_url: str | None = None
    timeout_seconds: float | None = None
    max_payload_bytes: int | None = None
    sanitize_error_messages: bool | None = None
    max_retries: int | None = None
    backoff_base_seconds: float | None = None
    backoff_max_seconds: float | None = None
    backoff_jitter_seconds: float | None = None
    circuit_breaker_threshold: int | None = None
    circuit_breaker_reset_seconds: float | None = None
    circuit_breaker_sweep_seconds: float | None = None
    rate_limit_max_requests: int | None = None
    rate_limit_window_seconds: float | None = None
    rate_limit_queue_delay_seconds: float | None = None
    rate_limit_overflow: str | None = None
    cache_ttl_seconds: float | None = None
    cache_sweep_seconds: float | None = None
    metrics_capacity: int | None = None
    csrf_cookie_name: str | None = None

    @field_validator("base_url", "csrf_cookie_name")
    @classmethod
    def _validate_non_empty_text(cls, value: str | None) -> str | None:
        if value is None:
            return None
        text = value.strip()
        if not text:
            raise ValueError
        return text

    @field_validator("rate_limit_overflow")
    @classmethod
    def _validate_overflow(cls, value: str | None) -> str | None:
        if value is None:
            return None
        mode = value.strip().lower()
        if mode not in {"queue", "raise"}:
            raise ValueError
        return mode

    @field_validator(
        "max_payload_bytes",
        "circuit_breaker_threshold",
        "rate_limit_max_requests",
        "metrics_capacity",
    )
    @classmethod
    def _validate_positive_int(cls, value: int | None) -> int | None:
        if value is None:
            return None
        if value < 1:
            raise ValueError
        return value

    @field_validator(
        "timeout_seconds",
        "max_retries",
        "backoff_base_seconds",
        "backoff_max_seconds",
        "backoff_jitter_seconds",
        "circuit_breaker_reset_seconds",
        "rate_limit_queue_delay_seconds",
        "cache_ttl_seconds",
    )
    @classmethod
    def _validate_non_negative(cls, value: float | None) -> float | None:
        if value is None:
            return None
        if value < 0:
            raise ValueError
        return value

    @field_validator(
        "circuit_breaker_sweep_seconds",
        "rate_limit_window_seconds",
        "cache_sweep_seconds",
    )
    @classmethod
    def _validate_positive(cls, value: float | None) -> float | None:
        if value is None:
            return None
        if value <= 0:
            raise ValueError
        return value


class _ConfigFileModel(BaseModel):
    model_config = ConfigDict(extra="forbid", frozen=True)

    schema_version: int
    dispatch: _DispatchSectionModel

    @field_validator("schema_version")
    @classmethod
    def _validate_schema_version(cls, value: int) -> int:
        if value != _SCHEMA_VERSION:
            raise ValueError
        return value


def _format_validation_error(exc: ValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ("<root>",)))
    message = str(first.get("msg", "invalid value"))
    return f"{location}: {message}"


def load_dispatch_config_file(path: Path) -> DispatchConfigFile:
    """Load and validate a dispatch TOML config file."""
    if not path.exists():
        raise ConfigFileNotFoundError(str(path))

    raw_payload = path.read_text(encoding="utf-8")
    try:
        payload: object = tomllib.loads(raw_payload)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigFileParseError(str(path), str(exc)) from exc

    try:
        model = _ConfigFileModel.model_validate(payload)
    except ValidationError as exc:
        raise ConfigFileValidationError(str(path), _format_validation_error(exc)) from exc

    return DispatchConfigFile(**model.dispatch.model_dump())
