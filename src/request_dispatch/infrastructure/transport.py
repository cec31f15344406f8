"""HTTP transport implementations for infrastructure.

Usage example:
    import requests

    from request_dispatch.infrastructure.transport import RequestsTransport

    transport = RequestsTransport(session=requests.Session())
    response = await transport.send(
        "GET",
        "https://api.example.com/contacts",
        headers={"Content-Type": "application/json"},
        body=None,
        timeout_seconds=10.0,
    )
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping
from typing_extensions import override

import requests
from requests.structures import CaseInsensitiveDict

from ..protocols import Transport
from ..types import TransportResponse


class RequestsTransport(Transport):
    """Requests-backed transport.

    Each exchange runs in a worker thread so the event loop stays free; the
    per-attempt timeout is also handed to requests so the thread itself
    gives up on a stalled connection.
    """

    def __init__(self, *, session: requests.Session | None = None) -> None:
        self._session = session or requests.Session()

    @property
    def session(self) -> requests.Session:
        return self._session

    @override
    async def send(
        self,
        method: str,
        url: str,
        *,
        headers: Mapping[str, str],
        body: bytes | None,
        timeout_seconds: float | None,
    ) -> TransportResponse:
        return await asyncio.to_thread(
            self._send_sync,
            method,
            url,
            dict(headers),
            body,
            timeout_seconds,
        )

    @override
    def close(self) -> None:
        self._session.close()

    def _send_sync(
        self,
        method: str,
        url: str,
        headers: dict[str, str],
        body: bytes | None,
        timeout_seconds: float | None,
    ) -> TransportResponse:
        response = self._session.request(
            method,
            url,
            headers=headers,
            data=body,
            timeout=timeout_seconds,
        )
        return TransportResponse(
            status_code=response.status_code,
            text=response.text,
            headers=CaseInsensitiveDict(response.headers),
        )
