"""Tests for logging setup, service wiring and FastAPI app creation."""

from __future__ import annotations

import inspect
from pathlib import Path
from unittest.mock import MagicMock, patch

import structlog
from fastapi import FastAPI
from fastapi.testclient import TestClient
from pydantic import SecretStr

from replydraft.app import configure_logging, create_app, initialize_services
from replydraft.audit.store import close_audit_db
from replydraft.confirmation.protocol import ConfirmationProtocol
from replydraft.config import Settings
from replydraft.staging.sweeper import DraftSweeper


def _reset_structlog() -> None:
    """Reset structlog so cached loggers don't leak between tests."""
    structlog.reset_defaults()


def _base_settings(tmp_path: Path, **overrides) -> Settings:
    """Build a Settings instance pointing audit_db to tmp_path.

    By default all optional credentials are empty so no external services
    are initialized.  Pass keyword overrides to customise.
    """
    defaults = {
        "audit_db_path": tmp_path / "audit.db",
        "gmail_token_path": tmp_path / "nonexistent-token.json",
    }
    defaults.update(overrides)
    return Settings(_env_file=None, **defaults)  # type: ignore[call-arg]


def _with_credentials(tmp_path: Path, **overrides) -> Settings:
    token_path = tmp_path / "token.json"
    token_path.write_text("{}")
    return _base_settings(
        tmp_path,
        gmail_token_path=token_path,
        agent_email="me@company.com",
        anthropic_api_key=SecretStr("test-key"),
        **overrides,
    )


class TestConfigureLogging:
    """Tests for structlog configuration in dev and production modes."""

    def test_development_mode_uses_console_renderer(self) -> None:
        _reset_structlog()
        configure_logging(production=False)
        processors = structlog.get_config()["processors"]
        assert any(isinstance(p, structlog.dev.ConsoleRenderer) for p in processors)

    def test_production_mode_uses_json_renderer(self) -> None:
        _reset_structlog()
        configure_logging(production=True)
        processors = structlog.get_config()["processors"]
        assert any(isinstance(p, structlog.processors.JSONRenderer) for p in processors)

    def test_sentry_processor_added_when_enabled(self) -> None:
        _reset_structlog()
        sentinel = MagicMock()
        with patch("replydraft.app.get_sentry_processor", return_value=sentinel):
            configure_logging(production=True, sentry_enabled=True)
        assert sentinel in structlog.get_config()["processors"]
        _reset_structlog()

    def test_service_bound_to_context(self) -> None:
        _reset_structlog()
        configure_logging()
        assert structlog.contextvars.get_contextvars()["service"] == "reply-draft-assistant"
        structlog.contextvars.clear_contextvars()


class TestInitializeServices:
    """Tests for service initialization with mocked external dependencies."""

    def test_creates_audit_db_connection(self, tmp_path: Path) -> None:
        _reset_structlog()
        configure_logging(production=False)
        audit_path = tmp_path / "custom" / "audit.db"
        settings = _base_settings(tmp_path, audit_db_path=audit_path)

        services = initialize_services(settings)

        assert services["audit_conn"] is not None
        assert services["audit_logger"] is not None
        assert audit_path.exists()
        close_audit_db(services["audit_conn"])

    def test_workflow_disabled_without_credentials(self, tmp_path: Path) -> None:
        _reset_structlog()
        configure_logging(production=False)
        settings = _base_settings(tmp_path)

        services = initialize_services(settings)

        assert services["gmail_client"] is None
        assert services["draft_generator"] is None
        assert services["protocol"] is None
        assert isinstance(services["sweeper"], DraftSweeper)
        assert len(services["knowledge_base"]) > 0
        close_audit_db(services["audit_conn"])

    def test_missing_knowledge_base_falls_back_to_empty(self, tmp_path: Path) -> None:
        _reset_structlog()
        configure_logging(production=False)
        settings = _base_settings(tmp_path, knowledge_base_path=tmp_path / "missing.yaml")

        services = initialize_services(settings)

        assert len(services["knowledge_base"]) == 0
        close_audit_db(services["audit_conn"])

    def test_protocol_wired_with_gmail_and_generator(self, tmp_path: Path) -> None:
        _reset_structlog()
        configure_logging(production=False)
        settings = _with_credentials(tmp_path, mail_creation_attempts=3)
        mock_gmail_client = MagicMock()

        with (
            patch("replydraft.auth.credentials.get_gmail_credentials", return_value=MagicMock()),
            patch("replydraft.auth.credentials.get_gmail_service", return_value=MagicMock()),
            patch("replydraft.email.client.GmailClient", return_value=mock_gmail_client),
            patch("replydraft.llm.client.get_anthropic_client", return_value=MagicMock()),
        ):
            services = initialize_services(settings)

        assert services["gmail_client"] is mock_gmail_client
        assert services["draft_generator"] is not None
        protocol = services["protocol"]
        assert isinstance(protocol, ConfirmationProtocol)
        assert protocol.store is services["draft_store"]
        close_audit_db(services["audit_conn"])

    def test_gmail_failure_disables_workflow(self, tmp_path: Path) -> None:
        _reset_structlog()
        configure_logging(production=False)
        settings = _with_credentials(tmp_path)

        with (
            patch(
                "replydraft.auth.credentials.get_gmail_credentials",
                side_effect=PermissionError("token expired"),
            ),
            patch("replydraft.llm.client.get_anthropic_client", return_value=MagicMock()),
        ):
            services = initialize_services(settings)

        assert services["gmail_client"] is None
        assert services["protocol"] is None
        close_audit_db(services["audit_conn"])


class TestCreateApp:
    """Tests for FastAPI app creation."""

    def test_returns_fastapi_instance_with_lifespan(self, tmp_path: Path) -> None:
        _reset_structlog()
        configure_logging(production=False)
        services = initialize_services(_base_settings(tmp_path))

        app = create_app(services)

        assert isinstance(app, FastAPI)
        assert app.router.lifespan_context is not None
        assert isinstance(app.state.settings, Settings)
        close_audit_db(services["audit_conn"])

    def test_no_deprecated_on_event(self) -> None:
        source = inspect.getsource(create_app)
        assert "on_event" not in source

    def test_draft_routes_registered(self, tmp_path: Path) -> None:
        _reset_structlog()
        configure_logging(production=False)
        services = initialize_services(_base_settings(tmp_path))

        app = create_app(services)

        route_paths = {route.path for route in app.routes}
        assert {
            "/drafts/prepare",
            "/drafts/{token}",
            "/drafts/{token}/confirm",
            "/drafts/{token}/cancel",
            "/health",
            "/ready",
            "/metrics",
        } <= route_paths
        close_audit_db(services["audit_conn"])

    def test_lifespan_starts_and_stops_sweeper(self, tmp_path: Path) -> None:
        _reset_structlog()
        configure_logging(production=False)
        services = initialize_services(_base_settings(tmp_path))
        sweeper = services["sweeper"]

        with TestClient(create_app(services)) as client:
            assert sweeper.running
            assert client.get("/health").status_code == 200

        assert not sweeper.running

    def test_prepare_returns_503_when_workflow_disabled(self, tmp_path: Path) -> None:
        _reset_structlog()
        configure_logging(production=False)
        services = initialize_services(_base_settings(tmp_path))

        with TestClient(create_app(services)) as client:
            resp = client.post("/drafts/prepare", json={"instructions": "Reply to Jane"})

        assert resp.status_code == 503


class TestMainImport:
    """Test that main() can be imported without side effects."""

    def test_main_importable(self) -> None:
        from replydraft.app import main, run

        assert callable(main)
        assert callable(run)
