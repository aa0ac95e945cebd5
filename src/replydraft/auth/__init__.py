"""Authentication module for Gmail API credential management."""

from replydraft.auth.credentials import (
    get_gmail_credentials,
    get_gmail_service,
)

__all__ = [
    "get_gmail_credentials",
    "get_gmail_service",
]
