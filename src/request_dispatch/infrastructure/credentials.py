"""Session and cookie collaborators used by the built-in interceptors."""

from __future__ import annotations

from typing_extensions import override

from requests.cookies import RequestsCookieJar

from ..protocols import CookieStore, TokenProvider


class StaticTokenProvider(TokenProvider):
    """Token provider returning a fixed bearer token (empty means signed out)."""

    def __init__(self, token: str | None = None) -> None:
        self._token = token or None

    @override
    async def get_token(self) -> str | None:
        return self._token


class RequestsCookieStore(CookieStore):
    """Cookie store reading from a requests cookie jar."""

    def __init__(self, jar: RequestsCookieJar) -> None:
        self._jar = jar

    @override
    def get_cookie(self, name: str) -> str | None:
        value = self._jar.get(name)
        return value or None
