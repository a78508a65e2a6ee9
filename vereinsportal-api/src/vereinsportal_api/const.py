"""Constants for the Vereinsportal API client."""

__version__ = "0.1.0"

FIRESTORE_BASE = "https://firestore.googleapis.com/v1"
DATABASE_PATH = "projects/{project_id}/databases/{database_id}"
DOCUMENTS_PATH = f"{DATABASE_PATH}/documents"
DEFAULT_DATABASE_ID = "(default)"

AUTH_SIGNIN_ENDPOINT = (
    "https://identitytoolkit.googleapis.com/v1/accounts:signInWithPassword"
)
AUTH_REFRESH_ENDPOINT = "https://securetoken.googleapis.com/v1/token"

# Refresh the ID token this many seconds before Firebase says it expires.
TOKEN_REFRESH_MARGIN_SECONDS = 60

EVENTS_COLLECTION = "events"
RESPONSES_COLLECTION = "event_responses"
USERS_COLLECTION = "users"
TEAMS_COLLECTION = "teams"

DEFAULT_PAGE_SIZE = 300
DEFAULT_TIMEZONE = "Europe/Berlin"

MAX_EXPANSION_ITERATIONS = 100
"""Hard cap on loop iterations when expanding one recurring event."""
