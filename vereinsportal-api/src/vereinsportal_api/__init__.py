"""Async Python client and calendar logic for the Vereinsportal club portal."""

from .const import __version__
from ._client import VereinsportalClient
from ._watcher import ChangeSet, CollectionWatcher
from .exceptions import (
    ApiConnectionError,
    ApiResponseError,
    AuthenticationError,
    EventValidationError,
    PermissionDeniedError,
    RateLimitError,
    RsvpClosedError,
    VereinsportalError,
)
from .models import (
    Document,
    Event,
    EventMutation,
    EventResponse,
    Member,
    Occurrence,
    Recurrence,
    ResponseStatus,
    Team,
)
from .recurrence import Expansion, expand, expand_detailed
from .rsvp import (
    RsvpPolicy,
    RsvpSummary,
    resolve_response,
    response_document_id,
    summarize_responses,
)
from .validation import EVENT_FORM_SCHEMA, event_mutation_from_form
from .views import (
    day_window,
    group_by_day,
    month_window,
    occurrences_between,
    upcoming,
    week_window,
)

__all__ = [
    "__version__",
    "VereinsportalClient",
    "ChangeSet",
    "CollectionWatcher",
    "ApiConnectionError",
    "ApiResponseError",
    "AuthenticationError",
    "EventValidationError",
    "PermissionDeniedError",
    "RateLimitError",
    "RsvpClosedError",
    "VereinsportalError",
    "Document",
    "Event",
    "EventMutation",
    "EventResponse",
    "Member",
    "Occurrence",
    "Recurrence",
    "ResponseStatus",
    "Team",
    "Expansion",
    "expand",
    "expand_detailed",
    "RsvpPolicy",
    "RsvpSummary",
    "resolve_response",
    "response_document_id",
    "summarize_responses",
    "EVENT_FORM_SCHEMA",
    "event_mutation_from_form",
    "day_window",
    "group_by_day",
    "month_window",
    "occurrences_between",
    "upcoming",
    "week_window",
]
