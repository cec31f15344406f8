"""Tests for config-file schema parsing and fail-fast validation."""

from __future__ import annotations

from pathlib import Path

import pytest

from request_dispatch.config_file import load_dispatch_config_file
from request_dispatch.exceptions import (
    ConfigFileNotFoundError,
    ConfigFileParseError,
    ConfigFileValidationError,
)


def _write(path: Path, content: str) -> Path:
    path.write_text(content.strip(), encoding="utf-8")
    return path


def test_load_dispatch_config_file_parses_valid_toml(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "dispatch.toml",
        """
schema_version = 1

[dispatch]
base_url = " https://api.example.com "
timeout_seconds = 5
sanitize_error_messages = true
max_retries = 1
circuit_breaker_threshold = 3
rate_limit_max_requests = 20
rate_limit_overflow = "Queue"
cache_ttl_seconds = 0
""",
    )

    parsed = load_dispatch_config_file(path)

    assert parsed.base_url == "https://api.example.com"
    assert parsed.timeout_seconds == 5.0
    assert parsed.sanitize_error_messages is True
    assert parsed.max_retries == 1
    assert parsed.circuit_breaker_threshold == 3
    assert parsed.rate_limit_max_requests == 20
    assert parsed.rate_limit_overflow == "queue"
    assert parsed.cache_ttl_seconds == 0.0
    assert parsed.backoff_base_seconds is None


def test_load_dispatch_config_file_missing_path(tmp_path: Path) -> None:
    with pytest.raises(ConfigFileNotFoundError):
        load_dispatch_config_file(tmp_path / "missing.toml")


def test_load_dispatch_config_file_rejects_invalid_toml(tmp_path: Path) -> None:
    path = _write(tmp_path / "broken.toml", "schema_version = = 1")

    with pytest.raises(ConfigFileParseError) as exc_info:
        load_dispatch_config_file(path)

    assert "could not be parsed" in str(exc_info.value)


def test_load_dispatch_config_file_rejects_unknown_schema_version(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "dispatch.toml",
        """
schema_version = 2

[dispatch]
timeout_seconds = 5
""",
    )

    with pytest.raises(ConfigFileValidationError) as exc_info:
        load_dispatch_config_file(path)

    assert "schema_version" in str(exc_info.value)


def test_load_dispatch_config_file_rejects_unknown_keys(tmp_path: Path) -> None:
    path = _write(
        tmp_path / "dispatch.toml",
        """
schema_version = 1

[dispatch]
retry_forever = true
""",
    )

    with pytest.raises(ConfigFileValidationError) as exc_info:
        load_dispatch_config_file(path)

    assert "retry_forever" in str(exc_info.value)


@pytest.mark.parametrize(
    ("line", "field"),
    [
        ("circuit_breaker_threshold = 0", "circuit_breaker_threshold"),
        ("timeout_seconds = -1", "timeout_seconds"),
        ('rate_limit_overflow = "drop"', "rate_limit_overflow"),
        ('base_url = "   "', "base_url"),
        ("cache_sweep_seconds = 0", "cache_sweep_seconds"),
        ("circuit_breaker_sweep_seconds = 0.0", "circuit_breaker_sweep_seconds"),
        ("rate_limit_window_seconds = 0", "rate_limit_window_seconds"),
    ],
)
def test_load_dispatch_config_file_rejects_invalid_values(
    tmp_path: Path, line: str, field: str
) -> None:
    path = _write(tmp_path / "dispatch.toml", f"schema_version = 1\n\n[dispatch]\n{line}\n")

    with pytest.raises(ConfigFileValidationError) as exc_info:
        load_dispatch_config_file(path)

    assert field in str(exc_info.value)
