"""FastAPI entry point: ``uvicorn app.main:app``."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.config import get_settings
from app.dependencies import close_email_transport
from api.v1.router import api_v1_router
from api.routes import health
from db.database import close_db, init_db
from integrations.claude_client import close_claude_client, get_claude_client
from core.constants import ACTOR_ID_HEADER, REQUEST_ID_HEADER
from core.logging_config import setup_logging
from core.middleware import RequestContextMiddleware, setup_exception_handlers

logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Create tables, report which collaborators are configured, then release clients on shutdown."""
    settings = get_settings()
    setup_logging()

    await init_db()

    if get_claude_client() is not None:
        logger.info("Claude content generation enabled", model=settings.CLAUDE_MODEL)
    else:
        logger.info("Claude not configured, AI personalization falls back to template content")

    if not settings.email_transport_configured:
        logger.warning("EMAIL_API_URL not set, immediate sends will fail")

    logger.info(
        "Application started",
        app=settings.APP_NAME,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
    )
    yield
    await close_claude_client()
    await close_email_transport()
    await close_db()
    logger.info("Application shut down")


def create_app() -> FastAPI:
    """Build the API app. Route handlers resolve the engine and its collaborators per request."""
    settings = get_settings()

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        description="Runs lead automation workflows: triggers, conditions, "
                    "waits and actions with email fallbacks and run analytics.",
        docs_url="/docs" if settings.is_development else None,
        redoc_url="/redoc" if settings.is_development else None,
        lifespan=lifespan,
    )

    app.add_middleware(RequestContextMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", ACTOR_ID_HEADER, REQUEST_ID_HEADER],
    )

    setup_exception_handlers(app)

    # Unversioned probe path
    app.include_router(health.router, prefix="/api", tags=["Health"])

    app.include_router(api_v1_router, prefix=settings.API_V1_PREFIX)

    return app


app = create_app()
