"""Tests for DispatchConfig behaviour."""

import pytest

from request_dispatch.config import (
    BooleanEnvVarError,
    DispatchConfig,
    NonNegativeNumberEnvVarError,
    OverflowModeEnvVarError,
    PositiveIntegerEnvVarError,
    PositiveNumberEnvVarError,
)
from request_dispatch.config_file import DispatchConfigFile


def test_defaults_match_documented_values() -> None:
    config = DispatchConfig()

    assert config.timeout_seconds == 10.0
    assert config.max_payload_bytes == 5 * 1024 * 1024
    assert config.max_retries == 3
    assert config.circuit_breaker_threshold == 5
    assert config.circuit_breaker_reset_seconds == 60.0
    assert config.rate_limit_max_requests == 50
    assert config.rate_limit_window_seconds == 1.0
    assert config.rate_limit_queue_delay_seconds == 0.1
    assert config.cache_ttl_seconds == 300.0
    assert config.cache_sweep_seconds == 60.0
    assert config.circuit_breaker_sweep_seconds == 30.0


def test_from_env_reads_dispatch_variables(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DISPATCH_BASE_URL", " https://api.example.com ")
    monkeypatch.setenv("DISPATCH_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("DISPATCH_MAX_RETRIES", "0")
    monkeypatch.setenv("DISPATCH_SANITIZE_ERRORS", "yes")
    monkeypatch.setenv("DISPATCH_CIRCUIT_BREAKER_THRESHOLD", "2")
    monkeypatch.setenv("DISPATCH_RATE_LIMIT_MAX_REQUESTS", "7")
    monkeypatch.setenv("DISPATCH_RATE_LIMIT_OVERFLOW", "RAISE")
    monkeypatch.setenv("DISPATCH_BEARER_TOKEN", "secret")

    config = DispatchConfig.from_env()

    assert config.base_url == "https://api.example.com"
    assert config.timeout_seconds == 2.5
    assert config.max_retries == 0
    assert config.sanitize_error_messages is True
    assert config.circuit_breaker_threshold == 2
    assert config.rate_limit_max_requests == 7
    assert config.rate_limit_overflow == "raise"
    assert config.bearer_token == "secret"


def test_from_env_uses_defaults_when_unset() -> None:
    config = DispatchConfig.from_env()

    assert config == DispatchConfig()


@pytest.mark.parametrize(
    ("env_name", "value", "error_type"),
    [
        ("DISPATCH_CIRCUIT_BREAKER_THRESHOLD", "0", PositiveIntegerEnvVarError),
        ("DISPATCH_RATE_LIMIT_MAX_REQUESTS", "many", PositiveIntegerEnvVarError),
        ("DISPATCH_TIMEOUT_SECONDS", "-1", NonNegativeNumberEnvVarError),
        ("DISPATCH_MAX_RETRIES", "-2", NonNegativeNumberEnvVarError),
        ("DISPATCH_SANITIZE_ERRORS", "maybe", BooleanEnvVarError),
        ("DISPATCH_RATE_LIMIT_OVERFLOW", "drop", OverflowModeEnvVarError),
        ("DISPATCH_CACHE_SWEEP_SECONDS", "0", PositiveNumberEnvVarError),
        ("DISPATCH_CIRCUIT_BREAKER_SWEEP_SECONDS", "0", PositiveNumberEnvVarError),
        ("DISPATCH_RATE_LIMIT_WINDOW_SECONDS", "0", PositiveNumberEnvVarError),
        ("DISPATCH_RATE_LIMIT_WINDOW_SECONDS", "soon", PositiveNumberEnvVarError),
    ],
)
def test_from_env_rejects_invalid_values(
    monkeypatch: pytest.MonkeyPatch,
    env_name: str,
    value: str,
    error_type: type[ValueError],
) -> None:
    monkeypatch.setenv(env_name, value)

    with pytest.raises(error_type) as exc_info:
        DispatchConfig.from_env()

    assert env_name in str(exc_info.value)


def test_with_overrides_preserves_fields() -> None:
    base = DispatchConfig(
        base_url="https://api.example.com",
        timeout_seconds=4.0,
        max_retries=2,
        circuit_breaker_threshold=9,
        rate_limit_max_requests=11,
        bearer_token="token",
    )

    updated = base.with_overrides(base_url="https://other.example.com", max_retries=0)

    assert updated.base_url == "https://other.example.com"
    assert updated.max_retries == 0
    assert updated.timeout_seconds == base.timeout_seconds
    assert updated.circuit_breaker_threshold == base.circuit_breaker_threshold
    assert updated.rate_limit_max_requests == base.rate_limit_max_requests
    assert updated.bearer_token == base.bearer_token


def test_with_overrides_without_values_returns_equal_config() -> None:
    base = DispatchConfig(base_url="https://api.example.com")

    assert base.with_overrides() == base


def test_with_file_overrides_only_applies_set_values() -> None:
    base = DispatchConfig(base_url="https://env.example.com", timeout_seconds=3.0)
    file_config = DispatchConfigFile(timeout_seconds=7.5, circuit_breaker_threshold=2)

    updated = base.with_file_overrides(file_config)

    assert updated.base_url == "https://env.example.com"
    assert updated.timeout_seconds == 7.5
    assert updated.circuit_breaker_threshold == 2
    assert updated.max_retries == base.max_retries
