"""Application entry point for the reply draft assistant HTTP service.

Configures:
- **structlog** with JSON rendering (production) or colored console (development)
- **Sentry** error reporting via structlog-sentry when ``SENTRY_DSN`` is set
- **Audit logging** of every draft lifecycle event to SQLite
- **Gmail** thread, history and draft-creation adapters
- **Anthropic** draft generator and the YAML company knowledge base
- **Draft sweeper** background task tied to the FastAPI lifespan
- **Prometheus** metrics and request-ID middleware
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI

from replydraft.audit.logger import AuditLogger
from replydraft.audit.store import close_audit_db, init_audit_db
from replydraft.config import Settings, get_settings, validate_credentials
from replydraft.confirmation.protocol import ConfirmationProtocol
from replydraft.context.history import GmailHistorySource
from replydraft.context.orchestrator import ContextOrchestrator
from replydraft.health import register_health_routes
from replydraft.llm.knowledge_base import DEFAULT_KB_PATH, KnowledgeBase
from replydraft.observability.metrics import setup_metrics
from replydraft.observability.middleware import SERVICE_NAME, RequestIdMiddleware
from replydraft.observability.sentry import get_sentry_processor, init_sentry
from replydraft.routes import router as drafts_router
from replydraft.staging.store import InMemoryDraftStore
from replydraft.staging.sweeper import DraftSweeper

logger = structlog.get_logger()


def configure_logging(production: bool = False, sentry_enabled: bool = False) -> None:
    """Configure structlog for production (JSON) or development (console).

    Production mode (*production=True*): JSON rendering at INFO level.
    Development mode: colored console rendering at DEBUG level.

    Args:
        production: Enable production mode if ``True``.
        sentry_enabled: Forward ERROR-level events to Sentry.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
    ]
    if sentry_enabled:
        shared_processors.append(get_sentry_processor())
    shared_processors += [
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if production:
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
        log_level = logging.INFO
    else:
        renderer = structlog.dev.ConsoleRenderer()
        log_level = logging.DEBUG

    structlog.configure(
        processors=[*shared_processors, renderer],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )

    structlog.contextvars.bind_contextvars(service=SERVICE_NAME)


def initialize_services(settings: Settings | None = None) -> dict[str, Any]:
    """Set up all shared services for the application.

    Creates the audit database and AuditLogger, the staging store, the
    GmailClient (if a token is available), the Anthropic draft generator
    (if an API key is set), the knowledge base, and -- when both Gmail and
    the generator are available -- the ``ConfirmationProtocol`` and its
    ``DraftSweeper``.  Optional services that fail to initialize are logged
    and disabled rather than crashing startup.

    Args:
        settings: Application settings.  If ``None``, ``get_settings()`` is used.

    Returns:
        A dict of initialized service instances keyed by name.
    """
    if settings is None:
        settings = get_settings()

    services: dict[str, Any] = {"_settings": settings}

    # a. SQLite audit database
    audit_conn = init_audit_db(settings.audit_db_path)
    services["audit_conn"] = audit_conn
    audit_logger = AuditLogger(audit_conn)
    services["audit_logger"] = audit_logger

    # b. Staging store
    store = InMemoryDraftStore(ttl=timedelta(seconds=settings.draft_ttl_seconds))
    services["draft_store"] = store

    # c. GmailClient (if gmail token file exists)
    gmail_client = None
    if settings.gmail_token_path.exists():
        try:
            from replydraft.auth.credentials import get_gmail_credentials, get_gmail_service
            from replydraft.email.client import GmailClient

            credentials = get_gmail_credentials(
                token_path=settings.gmail_token_path,
                credentials_path=settings.gmail_credentials_path,
                interactive=False,
            )
            gmail_client = GmailClient(get_gmail_service(credentials), settings.agent_email)
            logger.info("GmailClient initialized")
        except Exception:
            logger.warning("Failed to initialize GmailClient", exc_info=True)
    else:
        logger.info("Gmail token file not found, GmailClient disabled")
    services["gmail_client"] = gmail_client

    # d. Anthropic draft generator (if anthropic_api_key is set)
    draft_generator = None
    api_key = settings.anthropic_api_key.get_secret_value()
    if api_key:
        try:
            from replydraft.llm.client import get_anthropic_client
            from replydraft.llm.composer import AnthropicDraftGenerator

            draft_generator = AnthropicDraftGenerator(
                get_anthropic_client(api_key), model=settings.compose_model
            )
            logger.info("Anthropic draft generator initialized", model=settings.compose_model)
        except Exception:
            logger.warning("Failed to initialize Anthropic client", exc_info=True)
    else:
        logger.info("ANTHROPIC_API_KEY not set, draft generator disabled")
    services["draft_generator"] = draft_generator

    # e. Knowledge base (empty if the file is missing or invalid)
    kb_path = settings.knowledge_base_path or DEFAULT_KB_PATH
    try:
        knowledge_base = KnowledgeBase.from_file(kb_path)
    except (FileNotFoundError, ValueError):
        logger.warning("Knowledge base unavailable, continuing without it", path=str(kb_path), exc_info=True)
        knowledge_base = KnowledgeBase([])
    services["knowledge_base"] = knowledge_base

    # f. Confirmation protocol + sweeper (requires Gmail and the generator)
    protocol = None
    if gmail_client is not None and draft_generator is not None:
        orchestrator = ContextOrchestrator(
            threads=gmail_client,
            history=GmailHistorySource(gmail_client, max_results=settings.history_max_results),
            knowledge=knowledge_base,
        )
        protocol = ConfirmationProtocol(
            orchestrator,
            draft_generator,
            gmail_client,
            store,
            audit_logger=audit_logger,
            agent_email=settings.agent_email,
            mail_creation_attempts=settings.mail_creation_attempts,
            invalidate_superseded=settings.invalidate_superseded_drafts,
        )
        logger.info("Confirmation protocol initialized")
    else:
        logger.info("GmailClient or draft generator unavailable, draft workflow disabled")
    services["protocol"] = protocol

    services["sweeper"] = DraftSweeper(
        store,
        interval_seconds=settings.sweep_interval_seconds,
        on_expired=protocol.record_expired if protocol is not None else None,
        audit_logger=audit_logger,
    )

    return services


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Lifespan context manager for FastAPI startup and shutdown.

    On startup: starts the draft sweeper.
    On shutdown: stops the sweeper and closes the audit database connection.

    Args:
        app: The FastAPI application instance.

    Yields:
        Control to the application.
    """
    services = app.state.services
    sweeper: DraftSweeper | None = services.get("sweeper")
    if sweeper is not None:
        sweeper.start()
    logger.info("FastAPI application starting")
    yield
    if sweeper is not None:
        await sweeper.stop()
    audit_conn = services.get("audit_conn")
    if audit_conn is not None:
        close_audit_db(audit_conn)
        logger.info("Audit database connection closed")


def create_app(services: dict[str, Any]) -> FastAPI:
    """Create the FastAPI app with lifespan, draft routes, health and metrics.

    Args:
        services: The initialized services dict from ``initialize_services``.

    Returns:
        The configured FastAPI application.
    """
    fastapi_app = FastAPI(title="Reply Draft Assistant", lifespan=lifespan)
    fastapi_app.state.services = services
    fastapi_app.state.settings = services.get("_settings") or get_settings()
    fastapi_app.add_middleware(RequestIdMiddleware)
    fastapi_app.include_router(drafts_router)
    register_health_routes(fastapi_app)
    setup_metrics(fastapi_app)
    return fastapi_app


async def main() -> None:
    """Main entry point: configure, initialize services, and serve HTTP.

    1. Configure Sentry and logging
    2. Validate credentials (exits in production when missing)
    3. Initialize services and create the FastAPI app
    4. Run uvicorn until shutdown
    """
    settings = get_settings()
    sentry_enabled = init_sentry(
        settings.sentry_dsn,
        environment="production" if settings.production else "development",
    )
    configure_logging(production=settings.production, sentry_enabled=sentry_enabled)
    logger.info("Application starting")

    validate_credentials(settings)

    services = initialize_services(settings)
    fastapi_app = create_app(services)

    config = uvicorn.Config(
        fastapi_app,
        host="0.0.0.0",
        port=settings.http_port,
        log_level="info",
    )
    server = uvicorn.Server(config)
    await server.serve()


def run() -> None:
    """Console-script entry point."""
    asyncio.run(main())


if __name__ == "__main__":
    run()
