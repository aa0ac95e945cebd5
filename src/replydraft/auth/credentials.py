"""Gmail OAuth2 credential management.

Provides helpers for:
- Loading/refreshing Gmail OAuth2 credentials from token.json
- Building the Gmail API service client
"""

from __future__ import annotations

from pathlib import Path

import google.auth.transport.requests
import structlog
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow  # type: ignore[import-untyped]
from googleapiclient.discovery import Resource, build

logger = structlog.get_logger()

# Read threads and history, create drafts.  No send scope: drafts only.
DEFAULT_GMAIL_SCOPES: list[str] = [
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/gmail.compose",
]

DEFAULT_TOKEN_PATH: str = "token.json"
DEFAULT_CREDENTIALS_PATH: str = "credentials.json"


def get_gmail_credentials(
    token_path: str | Path = DEFAULT_TOKEN_PATH,
    credentials_path: str | Path = DEFAULT_CREDENTIALS_PATH,
    scopes: list[str] | None = None,
    interactive: bool = True,
) -> Credentials:
    """Load Gmail OAuth2 credentials, refreshing or creating as needed.

    If ``token_path`` exists and the stored credentials are valid (or can be
    refreshed), they are returned directly.  Otherwise, when ``interactive``
    is set, an OAuth2 flow is started via
    ``InstalledAppFlow.run_local_server()``.

    The resulting credentials are persisted to ``token_path`` for future use.

    Args:
        token_path: Path to the cached OAuth2 token file.
        credentials_path: Path to the OAuth2 client-secrets file.
        scopes: OAuth2 scopes to request.  Defaults to
            ``DEFAULT_GMAIL_SCOPES`` (gmail.readonly + gmail.compose).
        interactive: Whether a browser consent flow may be started.  The
            HTTP server passes ``False``.

    Returns:
        A ``google.oauth2.credentials.Credentials`` instance ready for API
        calls.

    Raises:
        PermissionError: If no usable token exists and ``interactive`` is
            ``False``.
    """
    if scopes is None:
        scopes = DEFAULT_GMAIL_SCOPES

    token_path = Path(token_path)
    credentials_path = Path(credentials_path)
    creds: Credentials | None = None

    if token_path.exists():
        creds = Credentials.from_authorized_user_file(str(token_path), scopes)  # type: ignore[no-untyped-call]

    if creds and creds.valid:
        return creds

    if creds and creds.expired and creds.refresh_token:
        logger.info("Refreshing Gmail credentials", token_path=str(token_path))
        creds.refresh(google.auth.transport.requests.Request())
    elif interactive:
        flow = InstalledAppFlow.from_client_secrets_file(str(credentials_path), scopes)
        creds = flow.run_local_server(port=0)
    else:
        msg = f"No valid Gmail token at {token_path}; run the OAuth flow first"
        raise PermissionError(msg)

    token_path.write_text(creds.to_json())
    return creds


def get_gmail_service(
    credentials: Credentials | None = None,
) -> Resource:
    """Build and return a Gmail API v1 service client.

    Args:
        credentials: Pre-loaded OAuth2 credentials.  If ``None``,
            ``get_gmail_credentials()`` is called to obtain them.

    Returns:
        A ``googleapiclient.discovery.Resource`` for the Gmail API v1.
    """
    if credentials is None:
        credentials = get_gmail_credentials()
    return build("gmail", "v1", credentials=credentials)
