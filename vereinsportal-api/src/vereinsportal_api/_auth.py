"""Firebase Auth session handling for the document store."""

from __future__ import annotations

import asyncio
import time
from typing import Any

import aiohttp

from .const import (
    AUTH_REFRESH_ENDPOINT,
    AUTH_SIGNIN_ENDPOINT,
    TOKEN_REFRESH_MARGIN_SECONDS,
)
from .exceptions import ApiConnectionError, AuthenticationError


class FirebaseAuth:
    """Manages the member's Firebase ID token.

    Lifecycle:
        1. Call ``authenticate(email, password)`` to obtain ID and refresh tokens.
        2. Use ``get_headers()`` to obtain headers for document store calls;
           the ID token is refreshed shortly before it expires.
        3. On 401, the client calls ``mark_unauthenticated()`` so the next
           call refreshes; if the refresh fails the member must sign in again.
    """

    def __init__(self, session: aiohttp.ClientSession, api_key: str) -> None:
        self._session = session
        self._api_key = api_key
        self._id_token: str | None = None
        self._refresh_token: str | None = None
        self._expires_at: float = 0.0
        self._user_id: str | None = None
        self._lock = asyncio.Lock()

    @property
    def is_authenticated(self) -> bool:
        return self._refresh_token is not None

    @property
    def user_id(self) -> str | None:
        """Firebase uid of the signed-in member (also their ``users`` document id)."""
        return self._user_id

    async def authenticate(self, email: str, password: str) -> None:
        """Sign in with email and password.

        Raises:
            AuthenticationError: On invalid credentials or a disabled account.
            ApiConnectionError: If the server is unreachable.
        """
        data = await self._post(
            AUTH_SIGNIN_ENDPOINT,
            json={"email": email, "password": password, "returnSecureToken": True},
        )
        self._store(
            id_token=data["idToken"],
            refresh_token=data["refreshToken"],
            expires_in=data.get("expiresIn", "3600"),
            user_id=data["localId"],
        )

    async def get_headers(self) -> dict[str, str]:
        """Build headers for a document store request.

        Raises:
            AuthenticationError: If not signed in or the refresh was rejected.
        """
        async with self._lock:
            if not self.is_authenticated:
                raise AuthenticationError("Not authenticated. Call authenticate() first.")
            if self._id_token is None or time.monotonic() >= self._expires_at:
                await self._refresh()
            return {"Authorization": f"Bearer {self._id_token}"}

    def mark_unauthenticated(self) -> None:
        """Drop the current ID token (e.g. after a 401) so it gets refreshed."""
        self._id_token = None

    async def _refresh(self) -> None:
        data = await self._post(
            AUTH_REFRESH_ENDPOINT,
            data={"grant_type": "refresh_token", "refresh_token": self._refresh_token},
        )
        self._store(
            id_token=data["id_token"],
            refresh_token=data["refresh_token"],
            expires_in=data.get("expires_in", "3600"),
            user_id=data.get("user_id", self._user_id),
        )

    def _store(
        self,
        *,
        id_token: str,
        refresh_token: str,
        expires_in: str | int,
        user_id: str | None,
    ) -> None:
        self._id_token = id_token
        self._refresh_token = refresh_token
        self._expires_at = time.monotonic() + int(expires_in) - TOKEN_REFRESH_MARGIN_SECONDS
        self._user_id = user_id

    async def _post(self, url: str, **kwargs: Any) -> dict[str, Any]:
        try:
            async with self._session.post(
                url, params={"key": self._api_key}, **kwargs
            ) as resp:
                body = await resp.json(content_type=None)
                if resp.status == 200:
                    return body
        except aiohttp.ClientError as err:
            raise ApiConnectionError(f"Connection error during sign-in: {err}") from err

        # Firebase reports e.g. INVALID_LOGIN_CREDENTIALS or TOKEN_EXPIRED here.
        message = (body or {}).get("error", {}).get("message", f"HTTP {resp.status}")
        self._id_token = None
        if url == AUTH_REFRESH_ENDPOINT:
            self._refresh_token = None
        raise AuthenticationError(f"Sign-in failed: {message}")
