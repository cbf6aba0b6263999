"""ACMS FastAPI application entry point.

Creates the FastAPI app, configures middleware, includes routers, and
manages the lifecycle of the complaint store, complaint service, and
poll service.
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, AsyncIterator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import ORJSONResponse

from config.settings import Settings, settings
from src.api.router import api_router
from src.middleware.anonymity import AnonymityMiddleware
from src.middleware.rate_limit import RateLimitMiddleware
from src.services.screening import DEFAULT_BLOCKLIST, Blocklist

if TYPE_CHECKING:
    from src.services.complaint_store import ComplaintStore

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

VERSION = "0.1.0"


# ---------------------------------------------------------------------------
# Structured logging configuration
# ---------------------------------------------------------------------------


def _configure_logging(app_settings: Settings) -> None:
    """Set up structlog with JSON or console rendering based on settings."""
    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if app_settings.log_format == "json":
        processors.append(structlog.processors.format_exc_info)
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            app_settings.log_level.lower(),
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


# ---------------------------------------------------------------------------
# Service construction
# ---------------------------------------------------------------------------


def build_blocklist(app_settings: Settings) -> Blocklist:
    """Built-in terms plus configured extras, minus configured allowances."""
    blocklist = DEFAULT_BLOCKLIST
    if extra := app_settings.extra_blocked_term_list:
        blocklist = blocklist.extended(extra)
    if allowed := app_settings.allowed_term_list:
        blocklist = blocklist.without(allowed)
    return blocklist


def build_store(app_settings: Settings) -> ComplaintStore:
    """Hosted store when a backend URL is configured, in-memory otherwise."""
    from src.services.complaint_store import HostedComplaintStore, InMemoryComplaintStore

    if app_settings.backend_url:
        return HostedComplaintStore(
            app_settings.backend_url,
            app_settings.backend_api_key,
            timeout=app_settings.backend_timeout_seconds,
            max_retries=app_settings.backend_max_retries,
        )
    if app_settings.is_production:
        logger.warning("app.in_memory_store_in_production")
    return InMemoryComplaintStore()


# ---------------------------------------------------------------------------
# Application lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Start and stop ACMS services.

    On startup the blocklist is built once, the complaint store is
    selected, and the complaint and poll services are stored on
    ``app.state``.  On shutdown the store's HTTP client is closed.
    """
    app_settings: Settings = app.state.settings
    _configure_logging(app_settings)
    logger.info("app.startup", env=app_settings.env)

    app.state.start_time = time.time()

    # -- 1. Blocklist ---------------------------------------------------------
    blocklist = build_blocklist(app_settings)
    app.state.blocklist = blocklist
    logger.info("app.blocklist_loaded", terms=len(blocklist))

    # -- 2. Complaint store and service ---------------------------------------
    from src.services.complaints import ComplaintService

    store = build_store(app_settings)
    app.state.complaints = ComplaintService(
        store,
        blocklist,
        screening_policy=app_settings.screening_policy,
        tracking_prefix=app_settings.tracking_id_prefix,
        max_id_attempts=app_settings.tracking_id_max_attempts,
    )
    logger.info(
        "app.complaint_service_initialised",
        store=type(store).__name__,
        screening_policy=app_settings.screening_policy,
    )

    # -- 3. Polls -------------------------------------------------------------
    from src.services.polls import PollService

    polls = PollService(blocklist, screening_policy=app_settings.screening_policy)
    if app_settings.seed_demo_polls and not app_settings.is_production:
        await polls.seed_demo_polls()
    app.state.polls = polls
    logger.info("app.poll_service_initialised")

    logger.info("app.startup_complete")

    yield

    # -- Shutdown -------------------------------------------------------------
    logger.info("app.shutdown_start")
    await store.close()
    logger.info("app.shutdown_complete")


# ---------------------------------------------------------------------------
# FastAPI application
# ---------------------------------------------------------------------------


def create_app(app_settings: Settings | None = None) -> FastAPI:
    """Build the ACMS application for *app_settings* (module settings by default)."""
    cfg = app_settings or settings

    app = FastAPI(
        title="ACMS API",
        description=(
            "Anonymous Complaint Management System -- submit complaints "
            "anonymously, track them by tracking ID, and take part in polls."
        ),
        version=VERSION,
        lifespan=lifespan,
        default_response_class=ORJSONResponse,
        docs_url="/docs" if not cfg.is_production else None,
        redoc_url="/redoc" if not cfg.is_production else None,
    )
    app.state.settings = cfg

    # -- CORS middleware ----------------------------------------------------
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cfg.cors_origin_list,
        allow_credentials=False,
        allow_methods=["GET", "POST", "PATCH", "OPTIONS"],
        allow_headers=["Content-Type", "Accept", "X-Admin-API-Key"],
    )

    # -- Custom middleware --------------------------------------------------
    app.add_middleware(AnonymityMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        max_requests_per_minute=cfg.rate_limit_per_minute,
        lookup_requests_per_minute=cfg.lookup_rate_limit_per_minute,
        trusted_proxy_count=cfg.trusted_proxy_count,
    )

    app.include_router(api_router)

    @app.get("/api", response_class=ORJSONResponse)
    async def api_info() -> dict:
        """API information endpoint."""
        return {
            "name": "ACMS API",
            "description": "Anonymous Complaint Management System",
            "version": VERSION,
            "docs": "/docs",
            "endpoints": {
                "submit_complaint": "/api/v1/complaints",
                "track_complaint": "/api/v1/complaints/track/{tracking_id}",
                "screening": "/api/v1/screening/check",
                "polls": "/api/v1/polls",
                "admin": "/api/v1/admin",
                "health": "/api/v1/health",
            },
        }

    return app


app = create_app()
