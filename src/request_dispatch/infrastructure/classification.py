"""Error classification for transport outcomes.

Maps raw transport exceptions and HTTP responses onto the closed set of
`DispatchError` kinds, decodes JSON bodies, and unwraps `{data, message?}`
success envelopes.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime

import requests
from pydantic import JsonValue, TypeAdapter, ValidationError
from requests.structures import CaseInsensitiveDict

from ..exceptions import (
    AuthenticationError,
    AuthorizationError,
    ClientError,
    DispatchError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    RequestTimeoutError,
    ServerError,
    ServiceUnavailableError,
    UnknownResponseError,
)
from ..types import TransportResponse

_JSON_ADAPTER: TypeAdapter[JsonValue] = TypeAdapter(JsonValue)

_STATUS_ERRORS: dict[int, type[ClientError] | type[ServerError]] = {
    401: AuthenticationError,
    403: AuthorizationError,
    404: NotFoundError,
    503: ServiceUnavailableError,
}

_EMAIL_RE = re.compile(r"[a-zA-Z0-9._+-]+@[a-zA-Z0-9._+-]+\.[a-zA-Z0-9._+-]+")
_CARD_RE = re.compile(r"\b\d{16}\b")
_PIN_RE = re.compile(r"\b\d{4}\b")


class UndecodableBodyError(ValueError):
    """Raised when a response body is not valid JSON."""


def decode_json(text: str) -> JsonValue:
    """Decode a JSON body; an empty body decodes to None."""
    if not text.strip():
        return None
    try:
        return _JSON_ADAPTER.validate_json(text)
    except ValidationError as exc:
        raise UndecodableBodyError(str(exc)) from exc


def unwrap_envelope(payload: JsonValue) -> JsonValue:
    """Return `payload["data"]` for `{data, message?}` envelopes, else the payload."""
    if isinstance(payload, dict) and "data" in payload:
        message = payload.get("message")
        if message is None or isinstance(message, str):
            return payload["data"]
    return payload


def sanitize_message(message: str) -> str:
    """Mask emails, card numbers and PINs in remote error messages."""
    message = _EMAIL_RE.sub("[EMAIL]", message)
    message = _CARD_RE.sub("[CARD]", message)
    return _PIN_RE.sub("[PIN]", message)


def parse_retry_after(headers: Mapping[str, str] | None) -> float | None:
    """Parse Retry-After header into seconds, if available."""
    if not headers:
        return None
    value = CaseInsensitiveDict(headers).get("Retry-After")
    if not value:
        return None
    value = value.strip()
    if value.isdigit():
        return float(value)
    try:
        dt = parsedate_to_datetime(value)
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=UTC)
        delta = (dt - datetime.now(UTC)).total_seconds()
        return max(0.0, delta)
    except (AttributeError, OverflowError, TypeError, ValueError):
        return None


def error_for_status(
    response: TransportResponse,
    *,
    sanitize: bool = False,
) -> DispatchError:
    """Build the classified error for a non-2xx/3xx response.

    A JSON error body of shape `{message, code, details}` overrides the
    defaults of the chosen error kind.
    """
    status = response.status_code
    message: str | None = None
    code: str | None = None
    details: object = None
    try:
        body = decode_json(response.text)
    except UndecodableBodyError:
        body = None
    if isinstance(body, dict):
        raw_message = body.get("message")
        raw_code = body.get("code")
        message = raw_message if isinstance(raw_message, str) and raw_message else None
        code = raw_code if isinstance(raw_code, str) and raw_code else None
        details = body.get("details")
    if message is not None and sanitize:
        message = sanitize_message(message)

    if status == 429:
        return RateLimitError(
            message,
            retry_after=parse_retry_after(response.headers),
            status_code=status,
            code=code,
            details=details,
        )
    error_type = _STATUS_ERRORS.get(status)
    if error_type is None:
        error_type = ServerError if status >= 500 else ClientError
    error = error_type(message, status_code=status, code=code, details=details)
    error.retry_after = parse_retry_after(response.headers)
    return error


def classify_exception(error: Exception) -> DispatchError:
    """Classify a transport-level exception raised before any HTTP response."""
    if isinstance(error, DispatchError):
        return error
    if isinstance(error, (TimeoutError, requests.Timeout)):
        return RequestTimeoutError(details=str(error) or None)
    return NetworkError(details=str(error) or type(error).__name__)


def decode_success(response: TransportResponse) -> JsonValue:
    """Decode and unwrap a successful response body."""
    try:
        payload = decode_json(response.text)
    except UndecodableBodyError as exc:
        raise UnknownResponseError(
            status_code=response.status_code,
            details=_response_details(response),
        ) from exc
    return unwrap_envelope(payload)


def _response_details(response: TransportResponse) -> str:
    """Return a compact status/body summary for error reporting."""
    body = " ".join(response.text.split())
    if len(body) > 300:
        body = body[:300] + "..."
    return f"status={response.status_code}, body={body}"
