"""FastAPI application factory.

Creates the app with logging middleware, metrics middleware, CORS, Sentry,
lifespan wiring of the meeting components, and the v1 API router.
"""

from __future__ import annotations

from contextlib import asynccontextmanager
from collections.abc import AsyncGenerator

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.requests import Request
from fastapi.responses import Response

from src.zoom_helper.config import get_settings
from src.zoom_helper.core.database import close_db, get_session, init_db
from src.zoom_helper.core.monitoring import MetricsMiddleware, get_metrics_response, init_sentry
from src.zoom_helper.api.middleware.logging import LoggingMiddleware, configure_structlog
from src.zoom_helper.api.v1.router import router as v1_router
from src.zoom_helper.meetings.analysis import AnalysisCoalescer
from src.zoom_helper.meetings.bot.manager import BotManager
from src.zoom_helper.meetings.bot.recall_client import RecallClient
from src.zoom_helper.meetings.realtime.broadcaster import Broadcaster
from src.zoom_helper.meetings.repository import MeetingRepository
from src.zoom_helper.services.llm import TranscriptAnalyzer


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan: init DB, Sentry and meeting components on
    startup; stop background work and close the DB on shutdown."""
    log = structlog.get_logger(__name__)
    settings = get_settings()
    configure_structlog()
    await init_db()

    # Initialize Sentry if DSN is configured
    if settings.SENTRY_DSN:
        init_sentry(dsn=settings.SENTRY_DSN, environment=settings.ENVIRONMENT.value)

    meeting_repo = MeetingRepository(session_factory=get_session)
    broadcaster = Broadcaster()
    analyzer = TranscriptAnalyzer(settings)
    coalescer = AnalysisCoalescer(
        fetch_transcript=meeting_repo.get_meeting_transcript,
        summarize=analyzer.get_sales_analysis,
        persist_analysis=meeting_repo.save_sales_analysis,
        publish=broadcaster.publish_message,
    )

    # Recall.ai bot creation needs an API key; webhooks work without one
    recall_client = None
    if settings.RECALL_AI_API_KEY:
        recall_client = RecallClient(
            api_key=settings.RECALL_AI_API_KEY,
            region=settings.RECALL_AI_REGION,
        )
    else:
        log.warning("startup.recall_not_configured")

    bot_manager = BotManager(
        repository=meeting_repo,
        broadcaster=broadcaster,
        coalescer=coalescer,
        analyzer=analyzer,
        settings=settings,
        recall_client=recall_client,
    )

    app.state.meeting_repository = meeting_repo
    app.state.broadcaster = broadcaster
    app.state.analysis_coalescer = coalescer
    app.state.bot_manager = bot_manager
    log.info(
        "startup.complete",
        environment=settings.ENVIRONMENT.value,
        bot_creation=recall_client is not None,
    )

    yield

    # ── Shutdown ──────────────────────────────────────────────────────────
    await bot_manager.shutdown()
    await coalescer.shutdown()
    await close_db()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    settings = get_settings()

    app = FastAPI(
        title="Zoom Helper API",
        version="0.1.0",
        description="Live meeting transcripts with definitions, answers and sales analysis",
        lifespan=lifespan,
    )

    # Middleware is added in reverse order (last added = outermost)

    # CORS middleware
    if settings.CORS_ALLOWED_ORIGINS == "*":
        origins = ["*"]
    else:
        origins = [o.strip() for o in settings.CORS_ALLOWED_ORIGINS.split(",")]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Logging middleware (logs every request with timing)
    app.add_middleware(LoggingMiddleware)

    # Metrics middleware (outermost -- records Prometheus metrics for all requests)
    app.add_middleware(MetricsMiddleware)

    app.include_router(v1_router)

    # Prometheus metrics endpoint (infrastructure route, outside v1 router)
    @app.get("/metrics", include_in_schema=False)
    async def metrics(request: Request) -> Response:
        """Prometheus metrics endpoint."""
        return get_metrics_response()

    return app


# Module-level app for uvicorn
app = create_app()
