"""RSVP aggregation and response policies."""

from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date
from typing import Iterable

from .models import EventResponse, Occurrence, ResponseStatus


class RsvpPolicy(str, enum.Enum):
    """How a click on a status button is turned into a write.

    ``UPSERT`` always stores the chosen status. ``TOGGLE`` removes the
    response when the member clicks the status they already gave.
    """

    UPSERT = "upsert"
    TOGGLE = "toggle"


@dataclass(frozen=True)
class RsvpSummary:
    """Response counts for one occurrence plus the current member's answer."""

    attending: int = 0
    declined: int = 0
    uncertain: int = 0
    own_status: ResponseStatus | None = None

    @property
    def total(self) -> int:
        return self.attending + self.declined + self.uncertain

    def count(self, status: ResponseStatus) -> int:
        return getattr(self, status.name.lower())


def response_document_id(event_id: str, event_date: date, user_id: str) -> str:
    """Document id of the single response of ``user_id`` to one occurrence."""
    return f"{event_id}_{event_date.isoformat()}_{user_id}"


def summarize_responses(
    responses: Iterable[EventResponse],
    *,
    user_id: str | None = None,
    occurrence: Occurrence | None = None,
) -> RsvpSummary:
    """Count responses per status.

    Args:
        responses: Responses, usually already scoped to one occurrence.
        user_id: Member whose own status should be reported.
        occurrence: If given, responses for other occurrences are ignored.
    """
    counts = {status: 0 for status in ResponseStatus}
    own_status: ResponseStatus | None = None
    seen: set[str] = set()
    for response in responses:
        if occurrence is not None and response.key != occurrence.key:
            continue
        # One vote per member and occurrence, even if the store holds duplicates.
        if response.user_id in seen:
            continue
        seen.add(response.user_id)
        counts[response.status] += 1
        if user_id is not None and response.user_id == user_id:
            own_status = response.status
    return RsvpSummary(
        attending=counts[ResponseStatus.ATTENDING],
        declined=counts[ResponseStatus.DECLINED],
        uncertain=counts[ResponseStatus.UNCERTAIN],
        own_status=own_status,
    )


def resolve_response(
    current: ResponseStatus | None,
    chosen: ResponseStatus,
    policy: RsvpPolicy = RsvpPolicy.UPSERT,
) -> ResponseStatus | None:
    """Return the status to store, or None if the response should be removed."""
    if policy is RsvpPolicy.TOGGLE and current is chosen:
        return None
    return chosen
