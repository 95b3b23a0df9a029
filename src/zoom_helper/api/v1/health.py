"""Health check endpoints.

Provides liveness (/health) and readiness (/health/ready) checks. Readiness
verifies database connectivity and reports how many meetings currently have
a sales analysis job in flight.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from src.zoom_helper.config import get_settings
from src.zoom_helper.core.database import get_engine

router = APIRouter(tags=["health"])


@router.get("/health")
async def health_check():
    """Basic liveness check.

    No external dependencies are checked -- just that the server is running.
    """
    settings = get_settings()
    return {"status": "ok", "environment": settings.ENVIRONMENT.value}


async def _check_dependencies(request: Request) -> dict:
    """Check database connectivity, LLM keys, and analysis load."""
    checks: dict = {"database": "ok", "llm": "ok"}

    try:
        engine = get_engine()
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        checks["database"] = "error"
        checks["database_error"] = str(e)

    settings = get_settings()
    if not (settings.ANTHROPIC_API_KEY or settings.OPENAI_API_KEY):
        checks["llm"] = "no_keys"

    coalescer = getattr(request.app.state, "analysis_coalescer", None)
    checks["active_analysis_jobs"] = coalescer.active_meetings if coalescer is not None else 0
    checks["bot_creation"] = "ok" if settings.RECALL_AI_API_KEY else "disabled"

    return checks


@router.get("/health/ready")
async def readiness_check(request: Request):
    """Readiness check: returns 200 if the database is reachable, 503 otherwise."""
    checks = await _check_dependencies(request)
    healthy = checks.get("database") == "ok"

    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content={
            "status": "ready" if healthy else "degraded",
            "checks": checks,
        },
    )
