"""Test-only exceptions for enforcing constraints."""

from __future__ import annotations


class NetworkIsolationError(RuntimeError):
    """Raised when a test attempts a real network connection."""

    def __init__(self, attempted: str) -> None:
        super().__init__(
            "Tests must not make network connections! "
            "Use mocks or FakeTransport instead. "
            f"Attempted connection to: {attempted}"
        )


class FakeResponseMissingError(ValueError):
    """Raised when a fake transport has no scripted outcome left."""

    def __init__(self, url: str) -> None:
        super().__init__(f"No scripted response for URL: {url}")
