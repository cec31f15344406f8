"""Centralised, injectable configuration for the request dispatcher."""

from __future__ import annotations

import os
from dataclasses import dataclass, replace
from typing import Self

from dotenv import load_dotenv

from .config_file import DispatchConfigFile

_OVERFLOW_MODES = frozenset({"queue", "raise"})


class PositiveIntegerEnvVarError(ValueError):
    """Raised when an environment variable must be a positive integer."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a positive integer.")


class NonNegativeNumberEnvVarError(ValueError):
    """Raised when an environment variable must be a non-negative number."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a non-negative number.")


class PositiveNumberEnvVarError(ValueError):
    """Raised when an environment variable must be a number greater than zero."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a number greater than zero.")


class BooleanEnvVarError(ValueError):
    """Raised when an environment variable must be a supported boolean."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be a boolean value (true/false, 1/0, yes/no, on/off).")


class OverflowModeEnvVarError(ValueError):
    """Raised when the rate limiter overflow mode is not recognised."""

    def __init__(self, env_name: str) -> None:
        super().__init__(f"{env_name} must be one of: queue, raise.")


@dataclass(frozen=True)
class DispatchConfig:
    """Immutable configuration object for the dispatcher and its collaborators.

    Load from environment with `DispatchConfig.from_env()` or construct directly for testing.
    """

    # Remote API
    base_url: str = ""
    timeout_seconds: float = 10.0
    max_payload_bytes: int = 5 * 1024 * 1024
    sanitize_error_messages: bool = False

    # Retries
    max_retries: int = 3
    backoff_base_seconds: float = 1.0
    backoff_max_seconds: float = 10.0
    backoff_jitter_seconds: float = 0.0

    # Circuit breaker
    circuit_breaker_threshold: int = 5
    circuit_breaker_reset_seconds: float = 60.0
    circuit_breaker_sweep_seconds: float = 30.0

    # Rate limiting
    rate_limit_max_requests: int = 50
    rate_limit_window_seconds: float = 1.0
    rate_limit_queue_delay_seconds: float = 0.1
    rate_limit_overflow: str = "queue"

    # Cache
    cache_ttl_seconds: float = 300.0
    cache_sweep_seconds: float = 60.0

    # Monitoring
    metrics_capacity: int = 1000

    # Session collaborators
    bearer_token: str = ""
    csrf_cookie_name: str = "csrf_token"

    @classmethod
    def from_env(cls, dotenv_path: str | None = None) -> Self:
        """Load configuration from environment variables.

        Args:
            dotenv_path: Optional path to .env file. If None, uses default .env discovery.

        Returns:
            DispatchConfig instance populated from environment.
        """
        load_dotenv(dotenv_path)

        return cls(
            base_url=os.getenv("DISPATCH_BASE_URL", "").strip(),
            timeout_seconds=_parse_non_negative_float(
                os.getenv("DISPATCH_TIMEOUT_SECONDS", "10"), env_name="DISPATCH_TIMEOUT_SECONDS"
            ),
            max_payload_bytes=_parse_positive_int(
                os.getenv("DISPATCH_MAX_PAYLOAD_BYTES", str(5 * 1024 * 1024)),
                env_name="DISPATCH_MAX_PAYLOAD_BYTES",
            ),
            sanitize_error_messages=_parse_optional_bool(
                os.getenv("DISPATCH_SANITIZE_ERRORS", ""),
                env_name="DISPATCH_SANITIZE_ERRORS",
            )
            or False,
            max_retries=_parse_non_negative_int(
                os.getenv("DISPATCH_MAX_RETRIES", "3"), env_name="DISPATCH_MAX_RETRIES"
            ),
            backoff_base_seconds=_parse_non_negative_float(
                os.getenv("DISPATCH_BACKOFF_BASE_SECONDS", "1"),
                env_name="DISPATCH_BACKOFF_BASE_SECONDS",
            ),
            backoff_max_seconds=_parse_non_negative_float(
                os.getenv("DISPATCH_BACKOFF_MAX_SECONDS", "10"),
                env_name="DISPATCH_BACKOFF_MAX_SECONDS",
            ),
            backoff_jitter_seconds=_parse_non_negative_float(
                os.getenv("DISPATCH_BACKOFF_JITTER_SECONDS", "0"),
                env_name="DISPATCH_BACKOFF_JITTER_SECONDS",
            ),
            circuit_breaker_threshold=_parse_positive_int(
                os.getenv("DISPATCH_CIRCUIT_BREAKER_THRESHOLD", "5"),
                env_name="DISPATCH_CIRCUIT_BREAKER_THRESHOLD",
            ),
            circuit_breaker_reset_seconds=_parse_non_negative_float(
                os.getenv("DISPATCH_CIRCUIT_BREAKER_RESET_SECONDS", "60"),
                env_name="DISPATCH_CIRCUIT_BREAKER_RESET_SECONDS",
            ),
            circuit_breaker_sweep_seconds=_parse_positive_float(
                os.getenv("DISPATCH_CIRCUIT_BREAKER_SWEEP_SECONDS", "30"),
                env_name="DISPATCH_CIRCUIT_BREAKER_SWEEP_SECONDS",
            ),
            rate_limit_max_requests=_parse_positive_int(
                os.getenv("DISPATCH_RATE_LIMIT_MAX_REQUESTS", "50"),
                env_name="DISPATCH_RATE_LIMIT_MAX_REQUESTS",
            ),
            rate_limit_window_seconds=_parse_positive_float(
                os.getenv("DISPATCH_RATE_LIMIT_WINDOW_SECONDS", "1"),
                env_name="DISPATCH_RATE_LIMIT_WINDOW_SECONDS",
            ),
            rate_limit_queue_delay_seconds=_parse_non_negative_float(
                os.getenv("DISPATCH_RATE_LIMIT_QUEUE_DELAY_SECONDS", "0.1"),
                env_name="DISPATCH_RATE_LIMIT_QUEUE_DELAY_SECONDS",
            ),
            rate_limit_overflow=_parse_overflow_mode(
                os.getenv("DISPATCH_RATE_LIMIT_OVERFLOW", "queue"),
                env_name="DISPATCH_RATE_LIMIT_OVERFLOW",
            ),
            cache_ttl_seconds=_parse_non_negative_float(
                os.getenv("DISPATCH_CACHE_TTL_SECONDS", "300"),
                env_name="DISPATCH_CACHE_TTL_SECONDS",
            ),
            cache_sweep_seconds=_parse_positive_float(
                os.getenv("DISPATCH_CACHE_SWEEP_SECONDS", "60"),
                env_name="DISPATCH_CACHE_SWEEP_SECONDS",
            ),
            metrics_capacity=_parse_positive_int(
                os.getenv("DISPATCH_METRICS_CAPACITY", "1000"),
                env_name="DISPATCH_METRICS_CAPACITY",
            ),
            bearer_token=os.getenv("DISPATCH_BEARER_TOKEN", "").strip(),
            csrf_cookie_name=os.getenv("DISPATCH_CSRF_COOKIE_NAME", "csrf_token").strip()
            or "csrf_token",
        )

    def with_overrides(
        self,
        *,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        max_retries: int | None = None,
        bearer_token: str | None = None,
    ) -> Self:
        """Return a new config with specified overrides (for CLI options)."""
        return replace(
            self,
            base_url=self.base_url if base_url is None else base_url.strip(),
            timeout_seconds=self.timeout_seconds if timeout_seconds is None else timeout_seconds,
            max_retries=self.max_retries if max_retries is None else max_retries,
            bearer_token=self.bearer_token if bearer_token is None else bearer_token.strip(),
        )

    def with_file_overrides(self, file_config: DispatchConfigFile) -> Self:
        """Return a new config with config-file values overriding env/default values."""
        overrides = {
            name: value
            for name, value in file_config.as_dict().items()
            if value is not None
        }
        return replace(self, **overrides)


def _parse_positive_int(value: str, *, env_name: str) -> int:
    """Parse a required positive integer from an environment variable."""
    try:
        parsed = int(value.strip())
    except ValueError as exc:
        raise PositiveIntegerEnvVarError(env_name) from exc
    if parsed < 1:
        raise PositiveIntegerEnvVarError(env_name)
    return parsed


def _parse_non_negative_int(value: str, *, env_name: str) -> int:
    try:
        parsed = int(value.strip())
    except ValueError as exc:
        raise NonNegativeNumberEnvVarError(env_name) from exc
    if parsed < 0:
        raise NonNegativeNumberEnvVarError(env_name)
    return parsed


def _parse_non_negative_float(value: str, *, env_name: str) -> float:
    """Parse a non-negative number from an environment variable."""
    try:
        parsed = float(value.strip())
    except ValueError as exc:
        raise NonNegativeNumberEnvVarError(env_name) from exc
    if parsed < 0:
        raise NonNegativeNumberEnvVarError(env_name)
    return parsed


def _parse_positive_float(value: str, *, env_name: str) -> float:
    try:
        parsed = float(value.strip())
    except ValueError as exc:
        raise PositiveNumberEnvVarError(env_name) from exc
    if not parsed > 0:
        raise PositiveNumberEnvVarError(env_name)
    return parsed


def _parse_optional_bool(value: str, *, env_name: str) -> bool | None:
    """Parse an optional boolean from an environment variable."""
    text = value.strip().lower()
    if not text:
        return None
    if text in {"1", "true", "yes", "y", "on"}:
        return True
    if text in {"0", "false", "no", "n", "off"}:
        return False
    raise BooleanEnvVarError(env_name)


def _parse_overflow_mode(value: str, *, env_name: str) -> str:
    mode = value.strip().lower() or "queue"
    if mode not in _OVERFLOW_MODES:
        raise OverflowModeEnvVarError(env_name)
    return mode
