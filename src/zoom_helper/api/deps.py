"""FastAPI dependencies for components created in the application lifespan.

Each component is stored on ``app.state`` at startup. Endpoints resolve them
through these helpers, which answer 503 when a component is missing (for
example when startup failed or the app was built without a lifespan).
"""

from __future__ import annotations

from typing import Any

from fastapi import HTTPException, Request, status


def _from_state(request: Request, name: str, detail: str) -> Any:
    component = getattr(request.app.state, name, None)
    if component is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=detail,
        )
    return component


def get_meeting_repository(request: Request) -> Any:
    """Retrieve MeetingRepository from app.state, 503 if not available."""
    return _from_state(request, "meeting_repository", "Meeting repository not initialized")


def get_bot_manager(request: Request) -> Any:
    """Retrieve BotManager from app.state, 503 if not available."""
    return _from_state(request, "bot_manager", "Bot manager not initialized")
