"""Shared fixtures: an in-memory stand-in for ``aiohttp.ClientSession``."""

from __future__ import annotations

import json
from typing import Any

import pytest


class FakeResponse:
    """Mimics the parts of ``aiohttp.ClientResponse`` the client reads."""

    def __init__(
        self,
        status: int = 200,
        payload: Any = None,
        headers: dict[str, str] | None = None,
        error: Exception | None = None,
    ) -> None:
        self.status = status
        self._payload = payload if payload is not None else {}
        self.headers = headers or {}
        self._error = error

    async def json(self, content_type: str | None = None) -> Any:
        return self._payload

    async def text(self) -> str:
        return json.dumps(self._payload)

    async def __aenter__(self) -> FakeResponse:
        if self._error is not None:
            raise self._error
        return self

    async def __aexit__(self, *exc: Any) -> bool:
        return False


class FakeSession:
    """Routes requests to queued responses by method and URL fragment.

    Each queued response is used once, in the order it was added.
    """

    def __init__(self) -> None:
        self.calls: list[tuple[str, str, dict[str, Any]]] = []
        self.closed = False
        self._routes: list[tuple[str, str, FakeResponse]] = []

    def add(self, method: str, fragment: str, response: FakeResponse) -> None:
        self._routes.append((method, fragment, response))

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append((method, url, kwargs))
        for i, (route_method, fragment, response) in enumerate(self._routes):
            if route_method == method and fragment in url:
                del self._routes[i]
                return response
        raise AssertionError(f"Unexpected request {method} {url}")

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        return self.request("POST", url, **kwargs)

    def calls_to(self, method: str, fragment: str = "") -> list[tuple[str, str, dict[str, Any]]]:
        return [c for c in self.calls if c[0] == method and fragment in c[1]]

    async def close(self) -> None:
        self.closed = True


SIGN_IN_RESPONSE = {
    "idToken": "id-token-1",
    "refreshToken": "refresh-token-1",
    "expiresIn": "3600",
    "localId": "user_1",
}


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def signed_in_session(session: FakeSession) -> FakeSession:
    """A session whose first sign-in request succeeds."""
    session.add("POST", "signInWithPassword", FakeResponse(payload=SIGN_IN_RESPONSE))
    return session
