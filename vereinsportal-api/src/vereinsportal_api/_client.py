"""Vereinsportal document store client."""

from __future__ import annotations

import logging
import uuid
from datetime import date, datetime, timezone
from typing import Any, Iterable

import aiohttp

from ._auth import FirebaseAuth
from ._serialization import camelize, encode_fields, encode_value
from .const import (
    DEFAULT_DATABASE_ID,
    DEFAULT_PAGE_SIZE,
    DEFAULT_TIMEZONE,
    DOCUMENTS_PATH,
    EVENTS_COLLECTION,
    FIRESTORE_BASE,
    RESPONSES_COLLECTION,
    TEAMS_COLLECTION,
    USERS_COLLECTION,
)
from .exceptions import (
    ApiConnectionError,
    ApiResponseError,
    AuthenticationError,
    PermissionDeniedError,
    RateLimitError,
    RsvpClosedError,
)
from .models import (
    Document,
    Event,
    EventMutation,
    EventResponse,
    Member,
    Occurrence,
    ResponseStatus,
    Team,
)
from .rsvp import (
    RsvpPolicy,
    RsvpSummary,
    resolve_response,
    response_document_id,
    summarize_responses,
)

_LOGGER = logging.getLogger(__name__)

Params = list[tuple[str, str]]


class VereinsportalClient:
    """Async client for the club portal's Firestore database.

    Usage::

        async with aiohttp.ClientSession() as session:
            client = VereinsportalClient("my-club", "web-api-key", session)
            await client.authenticate("user@example.com", "password")
            events = await client.async_get_events()

    If no session is provided, the client creates and manages its own.
    The caller is responsible for calling ``async_close()`` when done
    (or use the client as an async context manager).
    """

    def __init__(
        self,
        project_id: str,
        api_key: str,
        session: aiohttp.ClientSession | None = None,
        *,
        database_id: str = DEFAULT_DATABASE_ID,
        timezone: str = DEFAULT_TIMEZONE,
    ) -> None:
        self._owns_session = session is None
        self._session = session or aiohttp.ClientSession()
        self._auth = FirebaseAuth(self._session, api_key)
        self._documents_path = DOCUMENTS_PATH.format(
            project_id=project_id, database_id=database_id
        )
        self._timezone = timezone

    async def __aenter__(self) -> VereinsportalClient:
        return self

    async def __aexit__(self, *_: Any) -> None:
        await self.async_close()

    @property
    def authenticated(self) -> bool:
        """Whether the client holds a usable session."""
        return self._auth.is_authenticated

    @property
    def user_id(self) -> str | None:
        """uid of the signed-in member."""
        return self._auth.user_id

    # ------------------------------------------------------------------ #
    #  Authentication
    # ------------------------------------------------------------------ #

    async def authenticate(self, email: str, password: str) -> None:
        """Sign in with email and password.

        Raises:
            AuthenticationError: On invalid credentials.
            ApiConnectionError: If the server is unreachable.
        """
        await self._auth.authenticate(email, password)

    async def async_close(self) -> None:
        """Close the HTTP session if the client owns it."""
        if self._owns_session:
            await self._session.close()

    # ------------------------------------------------------------------ #
    #  Documents
    # ------------------------------------------------------------------ #

    async def async_get_collection(self, collection: str) -> list[Document]:
        """Read every document of a collection, following page tokens."""
        documents: list[Document] = []
        page_token: str | None = None
        while True:
            params: Params = [("pageSize", str(DEFAULT_PAGE_SIZE))]
            if page_token:
                params.append(("pageToken", page_token))
            data = await self._request("GET", self._url(collection), params=params)
            documents.extend(
                Document.from_api_response(d) for d in (data or {}).get("documents", [])
            )
            page_token = (data or {}).get("nextPageToken")
            if not page_token:
                return documents

    async def async_get_document(self, collection: str, document_id: str) -> Document | None:
        """Read a single document, or None if it does not exist."""
        try:
            data = await self._request("GET", self._url(collection, document_id))
        except ApiResponseError as err:
            if err.status_code == 404:
                return None
            raise
        return Document.from_api_response(data)

    async def async_set_document(
        self,
        collection: str,
        document_id: str,
        fields: dict[str, Any],
        *,
        merge: bool = True,
    ) -> Document:
        """Write a document.

        With ``merge`` only the given top-level fields are replaced and all
        others are kept; without it the document is overwritten.
        """
        params: Params = []
        if merge:
            params = [("updateMask.fieldPaths", key) for key in fields]
        data = await self._request(
            "PATCH",
            self._url(collection, document_id),
            params=params,
            json_body={"fields": encode_fields(fields)},
        )
        return Document.from_api_response(data)

    async def async_create_document(
        self,
        collection: str,
        fields: dict[str, Any],
        *,
        document_id: str | None = None,
    ) -> Document:
        """Create a new document; a random id is chosen if none is given."""
        data = await self._request(
            "POST",
            self._url(collection),
            params=[("documentId", document_id or uuid.uuid4().hex)],
            json_body={"fields": encode_fields(fields)},
        )
        return Document.from_api_response(data)

    async def async_delete_document(self, collection: str, document_id: str) -> None:
        """Delete a document. Deleting a missing document is not an error."""
        await self._request("DELETE", self._url(collection, document_id))

    async def async_run_query(
        self, collection: str, equal_to: dict[str, Any]
    ) -> list[Document]:
        """Return the documents of ``collection`` whose fields equal ``equal_to``."""
        filters = [
            {
                "fieldFilter": {
                    "field": {"fieldPath": path},
                    "op": "EQUAL",
                    "value": encode_value(value),
                }
            }
            for path, value in equal_to.items()
        ]
        query: dict[str, Any] = {"from": [{"collectionId": collection}]}
        if len(filters) == 1:
            query["where"] = filters[0]
        elif filters:
            query["where"] = {"compositeFilter": {"op": "AND", "filters": filters}}
        data = await self._request(
            "POST",
            f"{FIRESTORE_BASE}/{self._documents_path}:runQuery",
            json_body={"structuredQuery": query},
        )
        return [
            Document.from_api_response(row["document"])
            for row in (data or [])
            if "document" in row
        ]

    # ------------------------------------------------------------------ #
    #  Events
    # ------------------------------------------------------------------ #

    async def async_get_events(self) -> list[Event]:
        """Fetch all event definitions. Documents that cannot be mapped are skipped."""
        events: list[Event] = []
        for doc in await self.async_get_collection(EVENTS_COLLECTION):
            try:
                events.append(Event.from_document(doc, timezone=self._timezone))
            except (KeyError, TypeError, ValueError):
                _LOGGER.warning("Skipping malformed event %s", doc.id, exc_info=True)
        return events

    async def async_get_event(self, event_id: str) -> Event | None:
        doc = await self.async_get_document(EVENTS_COLLECTION, event_id)
        if doc is None:
            return None
        return Event.from_document(doc, timezone=self._timezone)

    async def async_create_event(self, event: EventMutation) -> Event:
        """Create a new event, recording the signed-in member as its author."""
        fields = event.to_fields()
        fields["createdBy"] = self.user_id
        fields["createdAt"] = datetime.now(timezone.utc)
        doc = await self.async_create_document(EVENTS_COLLECTION, fields)
        return Event.from_document(doc, timezone=self._timezone)

    async def async_update_event(
        self,
        event_id: str,
        event: EventMutation,
        *,
        fields: Iterable[str] | None = None,
    ) -> Event:
        """Update an existing event; author and creation time are kept.

        Args:
            event_id: The event to update.
            event: The new values.
            fields: snake_case names of the stored fields to write. Fields not
                named keep their stored value. Defaults to every field.
        """
        doc = await self.async_set_document(
            EVENTS_COLLECTION, event_id, event.to_fields(only=fields), merge=True
        )
        return Event.from_document(doc, timezone=self._timezone)

    async def async_delete_event(self, event_id: str) -> None:
        await self.async_delete_document(EVENTS_COLLECTION, event_id)

    # ------------------------------------------------------------------ #
    #  Members and teams
    # ------------------------------------------------------------------ #

    async def async_get_member(self, user_id: str | None = None) -> Member:
        """Fetch a member profile, by default the signed-in member's.

        Raises:
            ApiResponseError: If the profile does not exist.
        """
        user_id = user_id or self.user_id
        if user_id is None:
            raise AuthenticationError("Not authenticated. Call authenticate() first.")
        doc = await self.async_get_document(USERS_COLLECTION, user_id)
        if doc is None:
            raise ApiResponseError(f"No member profile for {user_id}", status_code=404)
        return Member.from_document(doc)

    async def async_get_teams(self) -> list[Team]:
        docs = await self.async_get_collection(TEAMS_COLLECTION)
        return [Team.from_document(doc) for doc in docs]

    # ------------------------------------------------------------------ #
    #  RSVP
    # ------------------------------------------------------------------ #

    async def async_get_responses(self, event_id: str, event_date: date) -> list[EventResponse]:
        """Fetch all responses to one occurrence."""
        docs = await self.async_run_query(
            RESPONSES_COLLECTION,
            {"eventId": event_id, "eventDate": event_date.isoformat()},
        )
        responses: list[EventResponse] = []
        for doc in docs:
            try:
                responses.append(EventResponse.from_document(doc))
            except (KeyError, ValueError):
                _LOGGER.warning("Skipping malformed response %s", doc.id, exc_info=True)
        return responses

    async def async_get_summary(
        self, occurrence: Occurrence, user_id: str | None = None
    ) -> RsvpSummary:
        """Counts per status for an occurrence plus the member's own answer."""
        responses = await self.async_get_responses(occurrence.event.id, occurrence.day)
        return summarize_responses(
            responses, user_id=user_id or self.user_id, occurrence=occurrence
        )

    async def async_respond(
        self,
        occurrence: Occurrence,
        status: ResponseStatus,
        *,
        user_id: str | None = None,
        policy: RsvpPolicy = RsvpPolicy.UPSERT,
        now: datetime | None = None,
    ) -> ResponseStatus | None:
        """Record a member's answer to an occurrence.

        Args:
            occurrence: The occurrence being answered.
            status: The status the member clicked.
            user_id: Defaults to the signed-in member.
            policy: ``TOGGLE`` removes the response when ``status`` is repeated.
            now: If given, responses after the RSVP deadline are refused.

        Returns:
            The stored status, or None if the response was removed.

        Raises:
            RsvpClosedError: If ``now`` is past the occurrence's RSVP deadline.
        """
        if now is not None and not occurrence.is_rsvp_open(now):
            raise RsvpClosedError(
                f"Responses for {occurrence.uid} closed at {occurrence.rsvp_deadline}"
            )
        user_id = user_id or self.user_id
        if user_id is None:
            raise AuthenticationError("Not authenticated. Call authenticate() first.")

        doc_id = response_document_id(occurrence.event.id, occurrence.day, user_id)
        existing = await self.async_get_document(RESPONSES_COLLECTION, doc_id)
        current: ResponseStatus | None = None
        if existing is not None:
            try:
                current = ResponseStatus(existing.fields.get("status"))
            except ValueError:
                current = None

        new_status = resolve_response(current, status, policy)
        if new_status is None:
            await self.async_delete_document(RESPONSES_COLLECTION, doc_id)
            return None

        await self.async_set_document(
            RESPONSES_COLLECTION,
            doc_id,
            camelize(
                {
                    "event_id": occurrence.event.id,
                    "event_date": occurrence.day.isoformat(),
                    "user_id": user_id,
                    "status": new_status.value,
                    "responded_at": now or datetime.now(timezone.utc),
                }
            ),
            merge=False,
        )
        return new_status

    # ------------------------------------------------------------------ #
    #  Internal HTTP layer
    # ------------------------------------------------------------------ #

    def _url(self, collection: str, document_id: str | None = None) -> str:
        url = f"{FIRESTORE_BASE}/{self._documents_path}/{collection}"
        if document_id is not None:
            url = f"{url}/{document_id}"
        return url

    async def _request(
        self,
        method: str,
        url: str,
        *,
        params: Params | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> Any:
        """Execute a document store request with authentication.

        A 401 is retried once with a refreshed ID token.

        Raises:
            AuthenticationError: On 401 responses that survive a token refresh.
            PermissionDeniedError: On 403 responses (security rules).
            RateLimitError: On 429 responses.
            ApiResponseError: On other non-2xx responses.
            ApiConnectionError: On network errors.
        """
        kwargs: dict[str, Any] = {}
        if params:
            kwargs["params"] = params
        if json_body is not None:
            kwargs["json"] = json_body

        for attempt in range(2):
            headers = await self._auth.get_headers()
            try:
                async with self._session.request(
                    method, url, headers=headers, **kwargs
                ) as resp:
                    if resp.status == 401 and attempt == 0:
                        self._auth.mark_unauthenticated()
                        continue
                    if resp.status < 400:
                        if resp.status == 204:
                            return None
                        return await resp.json(content_type=None)
                    body = await resp.text()
                    retry_after = resp.headers.get("Retry-After")
                    status = resp.status
            except aiohttp.ClientError as err:
                raise ApiConnectionError(f"Connection error: {err}") from err
            raise _error_for(status, body, retry_after)
        raise AuthenticationError("Authentication failed: HTTP 401")


def _error_for(status: int, body: str, retry_after: str | None) -> Exception:
    if status == 401:
        return AuthenticationError(f"Authentication failed: HTTP {status}")
    if status == 403:
        return PermissionDeniedError(f"Permission denied: {body}", status_code=status)
    if status == 429:
        return RateLimitError(retry_after=float(retry_after) if retry_after else None)
    return ApiResponseError(f"API error: HTTP {status} - {body}", status_code=status)
