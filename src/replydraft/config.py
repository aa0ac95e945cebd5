"""Centralized, typed configuration using pydantic-settings.

Provides a single ``Settings`` class backed by ``.env`` file and environment
variables, a cached ``get_settings()`` accessor, and a ``validate_credentials()``
startup gate that enforces credential presence in production mode.

IMPORTANT: This module has ZERO imports from the ``replydraft`` package to
prevent circular imports.  Only stdlib, pydantic, pydantic_settings, and
structlog are used.
"""

from __future__ import annotations

import sys
from functools import lru_cache
from pathlib import Path

import structlog
from pydantic import SecretStr, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = structlog.get_logger()


class Settings(BaseSettings):
    """Application settings loaded from environment variables and ``.env`` file.

    ``SecretStr`` fields prevent accidental leaks in logs or error output.
    Staging durations are in seconds; the sweep interval must be shorter
    than the draft TTL so that worst-case staleness stays bounded.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # -- General ---------------------------------------------------------------
    production: bool = False
    http_port: int = 8000
    agent_email: str = ""

    # -- Audit -----------------------------------------------------------------
    audit_db_path: Path = Path("data/audit.db")

    # -- Gmail -----------------------------------------------------------------
    gmail_token_path: Path = Path("token.json")
    gmail_credentials_path: Path = Path("credentials.json")
    history_max_results: int = 10

    # -- LLM / Anthropic -------------------------------------------------------
    anthropic_api_key: SecretStr = SecretStr("")
    compose_model: str = "claude-sonnet-4-5-20250929"

    # -- Knowledge base --------------------------------------------------------
    knowledge_base_path: Path | None = None

    # -- Observability ---------------------------------------------------------
    sentry_dsn: str = ""

    # -- Draft staging ---------------------------------------------------------
    draft_ttl_seconds: int = 600
    sweep_interval_seconds: int = 300
    mail_creation_attempts: int = 2
    invalidate_superseded_drafts: bool = False

    @model_validator(mode="after")
    def sweep_must_be_shorter_than_ttl(self) -> Settings:
        """Ensure the sweep cadence bounds how long an expired draft can linger."""
        if self.sweep_interval_seconds <= 0:
            raise ValueError("sweep_interval_seconds must be positive")
        if self.sweep_interval_seconds >= self.draft_ttl_seconds:
            raise ValueError(
                f"sweep_interval_seconds ({self.sweep_interval_seconds}) must be "
                f"shorter than draft_ttl_seconds ({self.draft_ttl_seconds})"
            )
        if self.mail_creation_attempts < 1:
            raise ValueError("mail_creation_attempts must be at least 1")
        return self


@lru_cache
def get_settings() -> Settings:
    """Return a cached ``Settings`` instance.

    The ``@lru_cache`` decorator ensures environment variables are parsed
    exactly once.  Call ``get_settings.cache_clear()`` in tests to reset.

    Returns:
        The application ``Settings``.
    """
    try:
        return Settings()
    except ValidationError as exc:
        # Log only the structured errors list -- never the full exception
        # which may contain raw SecretStr values.
        logger.error("settings_validation_failed", errors=exc.errors())
        sys.exit(1)


def validate_credentials(settings: Settings) -> None:
    """Enforce credential presence at startup.

    In **production** mode (``settings.production is True``), the application
    exits with a clear error block if any required credential is missing.

    In **development** mode, each missing credential is logged as a warning
    but the application continues to start.

    Args:
        settings: The loaded application settings.
    """
    errors: list[str] = []

    if not settings.gmail_token_path.exists():
        errors.append(f"Gmail token file not found: {settings.gmail_token_path}")

    if not settings.anthropic_api_key.get_secret_value():
        errors.append("ANTHROPIC_API_KEY is empty or not set")

    if not settings.agent_email:
        errors.append("AGENT_EMAIL is empty or not set")

    if not errors:
        logger.info("credential_validation_passed")
        return

    if settings.production:
        for err in errors:
            logger.error("credential_missing", detail=err)
        print("\n=== STARTUP FAILED ===", file=sys.stderr)
        print("Missing required credentials for production mode:", file=sys.stderr)
        for err in errors:
            print(f"  - {err}", file=sys.stderr)
        print("======================\n", file=sys.stderr)
        sys.exit(1)
    else:
        for err in errors:
            logger.warning("credential_missing_dev", detail=err)
