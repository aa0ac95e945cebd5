"""Shared fixtures for live integration tests.

Provides session-scoped fixtures that create real service clients using
credentials from environment variables (via Settings). Each fixture skips
the test if the required credentials are not available.
"""

from __future__ import annotations

import pytest

from replydraft.config import Settings


@pytest.fixture(scope="session")
def _live_settings() -> Settings:
    """Load application settings from environment for live tests."""
    return Settings()


@pytest.fixture(scope="session")
def agent_email(_live_settings: Settings) -> str:
    """Return the configured agent email address, skip if not set."""
    if not _live_settings.agent_email:
        pytest.skip("AGENT_EMAIL not configured")
    return _live_settings.agent_email


@pytest.fixture(scope="session")
def gmail_client(_live_settings: Settings):
    """Create a real GmailClient using OAuth2 credentials.

    Skips if the Gmail token file does not exist.
    """
    if not _live_settings.gmail_token_path.exists():
        pytest.skip("Gmail token not available")

    from replydraft.auth.credentials import get_gmail_credentials, get_gmail_service
    from replydraft.email.client import GmailClient

    credentials = get_gmail_credentials(
        token_path=_live_settings.gmail_token_path,
        credentials_path=_live_settings.gmail_credentials_path,
        interactive=False,
    )
    return GmailClient(get_gmail_service(credentials), _live_settings.agent_email)
