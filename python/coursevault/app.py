"""FastAPI application creation and configuration.

This module creates and configures the FastAPI application instance.
It registers exception handlers, auth middleware, request-id middleware, and routes.

Middleware Ordering (Critical):
- Middleware runs in reverse order of registration
- RequestIDMiddleware is added LAST so it runs FIRST (outermost)
- This ensures all requests (including auth failures) get X-Request-ID

Component Lifecycle:
- Settings are read once; the lifespan turns them into VaultConfig,
  TranscriptionConfig and DownloaderConfig and passes them to constructors
- One httpx.AsyncClient is created at startup for the transcription provider
  and closed at shutdown
- The job manager cancels in-flight pipelines at shutdown; each records a
  failed outcome before the process exits
"""

import json
from contextlib import asynccontextmanager
from uuid import UUID

import httpx
from fastapi import FastAPI, Request

from coursevault.api.routes import create_api_router
from coursevault.auth.middleware import AuthMiddleware
from coursevault.auth.verifier import SharedSecretVerifier, TokenVerifier
from coursevault.config import Environment, get_settings
from coursevault.db.session import SessionFactory, get_session_factory, session_scope
from coursevault.errors import ApiErrorCode
from coursevault.logging import configure_logging, get_logger
from coursevault.middleware.request_id import RequestIDMiddleware
from coursevault.responses import error_json, register_exception_handlers
from coursevault.services.analysis import (
    AnalysisJobManager,
    TingwuAdapter,
    TranscriptionService,
    VideoDownloader,
)
from coursevault.services.bootstrap import ensure_user
from coursevault.services.crypto import CredentialVault

logger = get_logger(__name__)


def create_bootstrap_callback(session_factory: SessionFactory | None = None):
    """Create a bootstrap callback that opens its own database session per call."""

    def bootstrap(user_id: UUID) -> UUID:
        with session_scope(session_factory) as db:
            return ensure_user(db, user_id)

    return bootstrap


def create_token_verifier() -> SharedSecretVerifier:
    settings = get_settings()
    return SharedSecretVerifier(settings.jwt_secret, algorithm=settings.jwt_algorithm)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the long-lived collaborators and tear them down on shutdown.

    Collaborators already placed on app.state by create_app (tests inject
    fakes this way) are used as-is.
    """
    settings = get_settings()
    transcription_config = settings.transcription_config()

    app.state.httpx_client = httpx.AsyncClient(
        timeout=httpx.Timeout(transcription_config.timeout_s, connect=10.0),
        limits=httpx.Limits(max_connections=20, max_keepalive_connections=5),
    )

    app.state.vault = getattr(app.state, "vault", None) or CredentialVault(
        settings.vault_config()
    )

    downloader = getattr(app.state, "downloader", None) or VideoDownloader(
        settings.downloader_config()
    )
    transcriber = getattr(app.state, "transcriber", None)
    if transcriber is None:
        adapter = (
            TingwuAdapter(app.state.httpx_client, transcription_config)
            if transcription_config.is_configured
            else None
        )
        transcriber = TranscriptionService(adapter, transcription_config)

    session_factory = getattr(app.state, "session_factory", None) or get_session_factory()
    app.state.job_manager = AnalysisJobManager(session_factory, downloader, transcriber)

    logger.info(
        "components_initialized",
        provider_configured=transcription_config.is_configured,
        fallback_enabled=transcription_config.fallback_enabled,
        poll_interval_s=transcription_config.poll_interval_s,
        max_polls=transcription_config.max_polls,
    )

    yield

    await app.state.job_manager.shutdown()
    await app.state.httpx_client.aclose()
    logger.info("httpx_client_closed")


def create_app(
    skip_auth_middleware: bool = False,
    token_verifier: TokenVerifier | None = None,
    *,
    session_factory: SessionFactory | None = None,
    vault: CredentialVault | None = None,
    downloader: VideoDownloader | None = None,
    transcriber: TranscriptionService | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        skip_auth_middleware: If True, skip adding auth middleware (for testing).
        token_verifier: Optional custom token verifier (for testing).
        session_factory: Session factory for the job manager and user bootstrap.
        vault: Pre-built credential vault (for testing).
        downloader: Pre-built downloader (for testing).
        transcriber: Pre-built transcription service (for testing).

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()
    configure_logging(json_format=settings.vault_env != Environment.LOCAL)

    app = FastAPI(
        title="Course Vault API",
        description="Encrypted course credential storage and video knowledge-point analysis",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )

    app.state.session_factory = session_factory
    app.state.vault = vault
    app.state.downloader = downloader
    app.state.transcriber = transcriber

    register_exception_handlers(app)

    @app.middleware("http")
    async def catch_json_decode_errors(request: Request, call_next):
        """Reject malformed JSON bodies before they reach route handlers."""
        if request.method in ("POST", "PUT", "PATCH"):
            content_type = request.headers.get("content-type", "")
            if "application/json" in content_type:
                body = await request.body()
                if body:
                    try:
                        json.loads(body)
                    except json.JSONDecodeError:
                        return error_json(
                            ApiErrorCode.E_INVALID_REQUEST, "Malformed JSON body", 400
                        )
        return await call_next(request)

    app.include_router(create_api_router())

    if not skip_auth_middleware:
        app.add_middleware(
            AuthMiddleware,
            verifier=token_verifier or create_token_verifier(),
            bootstrap_callback=create_bootstrap_callback(session_factory),
        )
        logger.info("auth_middleware_enabled", env=settings.vault_env.value)

    return app


def add_request_id_middleware(app: FastAPI, log_requests: bool = True) -> None:
    """Add request-id middleware to the app.

    Call AFTER all other middleware is added so it runs FIRST and every
    response, including auth failures, carries X-Request-ID.
    """
    app.add_middleware(RequestIDMiddleware, log_requests=log_requests)
