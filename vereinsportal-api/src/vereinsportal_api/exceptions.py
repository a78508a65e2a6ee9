"""Exception hierarchy for the Vereinsportal API client."""

from __future__ import annotations


class VereinsportalError(Exception):
    """Base exception for all Vereinsportal errors."""


class AuthenticationError(VereinsportalError):
    """Sign-in failed or the ID token could not be refreshed."""


class ApiConnectionError(VereinsportalError):
    """Document store is unreachable (network error, DNS, timeout)."""


class ApiResponseError(VereinsportalError):
    """Document store returned an unexpected error response.

    Attributes:
        status_code: HTTP status code, if available.
    """

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class PermissionDeniedError(ApiResponseError):
    """Security rules rejected the request (HTTP 403)."""


class RateLimitError(ApiResponseError):
    """Document store returned 429 Too Many Requests.

    Attributes:
        retry_after: Seconds to wait before retrying, if provided by the server.
    """

    def __init__(
        self,
        message: str = "Rate limited",
        *,
        status_code: int = 429,
        retry_after: float | None = None,
    ) -> None:
        super().__init__(message, status_code=status_code)
        self.retry_after = retry_after


class EventValidationError(VereinsportalError):
    """Event form input was rejected.

    Attributes:
        errors: Mapping of form field name to a human readable message.
    """

    def __init__(self, errors: dict[str, str]) -> None:
        super().__init__(
            "; ".join(f"{field}: {msg}" for field, msg in sorted(errors.items()))
        )
        self.errors = errors


class RsvpClosedError(VereinsportalError):
    """The RSVP deadline of an occurrence has passed."""
