"""Constants for the Vereinsportal integration."""

from datetime import timedelta
from typing import Final

DOMAIN: Final = "vereinsportal"

CONF_PROJECT_ID: Final = "project_id"
CONF_API_KEY: Final = "api_key"
CONF_EMAIL: Final = "email"
CONF_PASSWORD: Final = "password"

DEFAULT_UPDATE_INTERVAL_SECONDS: Final = 300  # 5 minutes

# How far ahead the entity state looks for the next occurrence.
UPCOMING_HORIZON: Final = timedelta(days=30)
# Shown length of occurrences stored without an end time.
DEFAULT_EVENT_DURATION: Final = timedelta(hours=1)
