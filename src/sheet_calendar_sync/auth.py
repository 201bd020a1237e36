"""
OAuth credentials shared by the Calendar and Sheets clients.
"""

import logging
from pathlib import Path

from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from sheet_calendar_sync.models import ConfigurationError

logger = logging.getLogger(__name__)

SCOPES = [
    "https://www.googleapis.com/auth/calendar",
    "https://www.googleapis.com/auth/spreadsheets",
]


def load_credentials(credentials_file: Path, token_file: Path) -> Credentials:
    """Return valid user credentials, running the browser flow when needed.

    The refreshed or newly granted token is written back to ``token_file``.
    """
    creds = None
    if token_file.exists():
        try:
            creds = Credentials.from_authorized_user_file(str(token_file), SCOPES)
        except ValueError as e:
            logger.warning(f"Ignoring unreadable token file {token_file}: {e}")
            creds = None

    if creds and creds.valid:
        return creds

    if creds and creds.expired and creds.refresh_token:
        try:
            creds.refresh(Request())
            logger.debug("Refreshed Google credentials")
        except RefreshError as e:
            logger.warning(f"Token refresh failed, re-authorising: {e}")
            creds = None
    else:
        creds = None

    if creds is None:
        if not credentials_file.exists():
            raise ConfigurationError(
                f"OAuth client secrets not found: {credentials_file}. "
                "Download them from the Google Cloud console."
            )
        flow = InstalledAppFlow.from_client_secrets_file(str(credentials_file), SCOPES)
        creds = flow.run_local_server(port=0)
        logger.info("Obtained new Google credentials")

    token_file.parent.mkdir(parents=True, exist_ok=True)
    token_file.write_text(creds.to_json())
    return creds
