"""REST API and WebSocket endpoints for meetings.

Provides endpoints for listing meetings, viewing a meeting with its
transcript, sending a bot into a call, receiving Recall.ai webhooks, and a
WebSocket that viewers use to follow the meeting list and live transcripts.

The webhook endpoint is unauthenticated -- Recall.ai calls it directly.
When RECALL_AI_WEBHOOK_TOKEN is configured the X-Recall-Token header must
match it.
"""

from __future__ import annotations

import json
from typing import Any

import structlog
from fastapi import (
    APIRouter,
    Depends,
    HTTPException,
    Request,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from src.zoom_helper.api.deps import get_bot_manager, get_meeting_repository
from src.zoom_helper.config import get_settings
from src.zoom_helper.meetings.bot.manager import WebhookRejected
from src.zoom_helper.meetings.schemas import Meeting, MeetingCreateRequest, MeetingDetail

logger = structlog.get_logger(__name__)

router = APIRouter(prefix="/meetings", tags=["meetings"])


class BotStatusResponse(BaseModel):
    """Response for bot status."""

    bot_id: str
    status: str


# ── REST Endpoints ───────────────────────────────────────────────────────────


@router.get("", response_model=list[Meeting])
async def list_meetings(
    repo: Any = Depends(get_meeting_repository),
) -> list[Meeting]:
    """List all meetings, most recently updated first."""
    return await repo.list_meetings()


@router.post("", response_model=Meeting, status_code=status.HTTP_201_CREATED)
async def create_meeting(
    body: MeetingCreateRequest,
    bot_mgr: Any = Depends(get_bot_manager),
) -> Meeting:
    """Send a meeting bot to a call and register the meeting."""
    if not bot_mgr.can_create_bots:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Bot creation unavailable (Recall.ai API key not configured)",
        )
    return await bot_mgr.create_meeting_bot(body)


@router.get("/{meeting_id}", response_model=MeetingDetail)
async def get_meeting(
    meeting_id: int,
    repo: Any = Depends(get_meeting_repository),
) -> MeetingDetail:
    """Get a meeting with its transcript ordered by call time."""
    meeting = await repo.get_meeting(meeting_id)
    if meeting is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Meeting not found: {meeting_id}",
        )
    transcripts = await repo.get_meeting_transcript(meeting_id)
    return MeetingDetail(meeting=meeting, transcripts=transcripts)


@router.get("/{meeting_id}/bot/status", response_model=BotStatusResponse)
async def get_bot_status(
    meeting_id: int,
    repo: Any = Depends(get_meeting_repository),
    bot_mgr: Any = Depends(get_bot_manager),
) -> BotStatusResponse:
    """Live bot status as reported by Recall.ai."""
    meeting = await repo.get_meeting(meeting_id)
    if meeting is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Meeting not found: {meeting_id}",
        )
    if not bot_mgr.can_create_bots:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Recall.ai API key not configured",
        )
    bot_status = await bot_mgr.get_bot_status(meeting.bot_id)
    return BotStatusResponse(bot_id=meeting.bot_id, status=bot_status)


@router.post("/webhook", response_model=None)
async def receive_webhook(
    request: Request,
    bot_mgr: Any = Depends(get_bot_manager),
) -> dict | JSONResponse:
    """Recall.ai webhook receiver.

    Handles bot status events and transcript.data lines. Transcript lines
    are stored and broadcast before responding; enrichment continues in the
    background.
    """
    webhook_token = get_settings().RECALL_AI_WEBHOOK_TOKEN
    if webhook_token:
        request_token = request.headers.get("X-Recall-Token", "")
        if request_token != webhook_token:
            logger.warning("webhook.invalid_token")
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"error": "Invalid webhook token"},
            )

    try:
        payload = await request.json()
    except ValueError:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Invalid payload"},
        )

    try:
        await bot_mgr.handle_webhook(payload)
    except WebhookRejected as exc:
        logger.info("webhook.rejected", reason=str(exc))
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": str(exc)},
        )

    return {"success": True}


# ── WebSocket Endpoint ───────────────────────────────────────────────────────


@router.websocket("/ws")
async def meetings_websocket(websocket: WebSocket) -> None:
    """Viewer subscription socket.

    Message formats:
    Receive: { "type": "joinRoom", "room": "index" | "meeting_<id>" }
             { "type": "leaveRoom", "room": "..." }
             { "type": "ping" }
    Send:    { "event": "<name>", "data": ... } for every published event
             { "type": "pong" }
    """
    broadcaster = getattr(websocket.app.state, "broadcaster", None)
    if broadcaster is None:
        await websocket.close(code=1011)
        return

    await websocket.accept()
    logger.info("websocket.connected")

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "detail": "Invalid JSON"})
                continue
            if not isinstance(message, dict):
                await websocket.send_json({"type": "error", "detail": "Invalid message"})
                continue

            msg_type = message.get("type", "")
            room = message.get("room")

            if msg_type in ("joinRoom", "leaveRoom"):
                if not isinstance(room, str) or not room:
                    await websocket.send_json({"type": "error", "detail": "Missing room"})
                    continue
                if msg_type == "joinRoom":
                    broadcaster.join(room, websocket)
                else:
                    broadcaster.leave(room, websocket)

            elif msg_type == "ping":
                await websocket.send_json({"type": "pong"})

            else:
                await websocket.send_json({
                    "type": "error",
                    "detail": f"Unknown message type: {msg_type}",
                })

    except WebSocketDisconnect:
        logger.info("websocket.disconnected")
    finally:
        broadcaster.disconnect(websocket)
