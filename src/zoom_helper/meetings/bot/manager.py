"""BotManager for meeting bot lifecycle and live transcript processing.

Handles:
- Bot creation via Recall.ai with a realtime transcript webhook endpoint
- Webhook event processing: bot status changes and transcript lines
- Per-line enrichment (definitions, question answering) run in the
  background after the webhook has been acknowledged
- Sales analysis triggering through the AnalysisCoalescer
- Broadcasting every change to meeting viewers
"""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import ValidationError

from src.zoom_helper.meetings.analysis.coalescer import meeting_topic
from src.zoom_helper.meetings.realtime.broadcaster import INDEX_TOPIC
from src.zoom_helper.meetings.schemas import (
    BotStatus,
    Feature,
    Meeting,
    MeetingCreate,
    MeetingCreateRequest,
    RecallStatusData,
    RecallTranscriptData,
    SalesAnalysis,
    TranscriptEntry,
    TranscriptEntryCreate,
    TranscriptTimestamps,
    TranscriptUpdate,
)

if TYPE_CHECKING:
    from src.zoom_helper.meetings.analysis.coalescer import AnalysisCoalescer
    from src.zoom_helper.meetings.bot.recall_client import RecallClient
    from src.zoom_helper.meetings.realtime.broadcaster import Broadcaster
    from src.zoom_helper.meetings.repository import MeetingRepository
    from src.zoom_helper.services.llm import TranscriptAnalyzer

logger = structlog.get_logger(__name__)

TRANSCRIPT_EVENT = "transcript.data"

# Webhook event -> bot status recorded on the meeting
STATUS_EVENTS: dict[str, BotStatus] = {
    "bot.in_call_recording": BotStatus.IN_CALL_RECORDING,
    "bot.call_ended": BotStatus.CALL_ENDED,
    "bot.done": BotStatus.DONE,
}


class WebhookRejected(ValueError):
    """Webhook payload cannot be processed (answered with HTTP 400)."""


class BotManager:
    """Coordinates Recall.ai bots, transcript ingestion, and enrichment.

    Args:
        repository: MeetingRepository for meetings and transcript lines.
        broadcaster: Broadcaster used to notify meeting viewers.
        coalescer: AnalysisCoalescer that runs rolling sales analysis.
        analyzer: TranscriptAnalyzer for definitions and question answering.
        settings: Application settings (bot name, webhook URL).
        recall_client: RecallClient for bot creation. None when no
            Recall.ai API key is configured; webhooks are still processed.
    """

    def __init__(
        self,
        repository: MeetingRepository,
        broadcaster: Broadcaster,
        coalescer: AnalysisCoalescer,
        analyzer: TranscriptAnalyzer,
        settings: Any,
        recall_client: RecallClient | None = None,
    ) -> None:
        self._repository = repository
        self._broadcaster = broadcaster
        self._coalescer = coalescer
        self._analyzer = analyzer
        self._settings = settings
        self._recall = recall_client
        self._tasks: set[asyncio.Task[None]] = set()

    @property
    def can_create_bots(self) -> bool:
        return self._recall is not None

    # ── Bot Lifecycle ────────────────────────────────────────────────────

    def build_bot_config(self, meeting_url: str, bot_name: str | None = None) -> dict:
        """Recall.ai bot configuration with meeting-caption transcripts
        streamed to our webhook."""
        return {
            "meeting_url": meeting_url,
            "bot_name": bot_name or self._settings.MEETING_BOT_NAME,
            "recording_config": {
                "transcript": {
                    "provider": {
                        "meeting_captions": {},
                    },
                },
                "realtime_endpoints": [
                    {
                        "type": "webhook",
                        "url": self._settings.webhook_url,
                        "events": [TRANSCRIPT_EVENT],
                    },
                ],
            },
        }

    async def create_meeting_bot(self, request: MeetingCreateRequest) -> Meeting:
        """Send a bot into a meeting and persist the meeting.

        Raises:
            RuntimeError: If no Recall.ai client is configured.
        """
        if self._recall is None:
            raise RuntimeError("Recall.ai API key not configured")

        bot_response = await self._recall.create_bot(
            self.build_bot_config(request.meeting_url, request.bot_name)
        )

        features = set(request.functionality)
        enable_sales_analysis = Feature.SALES_ANALYSIS in features
        meeting = await self._repository.create_meeting(
            MeetingCreate(
                bot_id=bot_response["id"],
                bot_status=BotStatus.CREATED,
                enable_definitions=Feature.DEFINITIONS in features,
                enable_question_answering=Feature.QUESTION_ANSWERING in features,
                enable_sales_analysis=enable_sales_analysis,
                sales_analysis=SalesAnalysis() if enable_sales_analysis else None,
            )
        )

        await self._broadcaster.publish(
            INDEX_TOPIC, "newMeeting", meeting.model_dump(mode="json", by_alias=True)
        )
        logger.info(
            "bot.created",
            bot_id=meeting.bot_id,
            meeting_id=meeting.id,
            features=sorted(f.value for f in features),
        )
        return meeting

    async def get_bot_status(self, bot_id: str) -> str:
        if self._recall is None:
            raise RuntimeError("Recall.ai API key not configured")
        return await self._recall.get_bot_status(bot_id)

    # ── Webhook Processing ───────────────────────────────────────────────

    async def handle_webhook(self, payload: Any) -> None:
        """Process a Recall.ai webhook event.

        Transcript lines are persisted and broadcast before this returns;
        enrichment continues in the background.

        Raises:
            WebhookRejected: Malformed payload, unknown bot, or unsupported
                event type.
        """
        if not payload or not isinstance(payload, dict):
            raise WebhookRejected("Invalid payload")

        event = payload.get("event")
        data = payload.get("data")
        if not event or not isinstance(data, dict) or not isinstance(data.get("bot"), dict):
            raise WebhookRejected("Missing data in payload")

        bot_id = data["bot"].get("id")
        meeting = await self._repository.get_meeting_by_bot_id(bot_id) if bot_id else None
        if meeting is None:
            logger.warning("webhook.unknown_bot", bot_id=bot_id or "UNKNOWN", event_type=event)
            raise WebhookRejected("Meeting not found for bot_id")

        if event == TRANSCRIPT_EVENT:
            await self._handle_transcript(meeting, data.get("data") or {})
        elif event in STATUS_EVENTS:
            await self._handle_status_change(meeting, STATUS_EVENTS[event], data.get("data") or {})
        else:
            raise WebhookRejected(f"Unsupported event type: {event}")

    async def _handle_status_change(
        self, meeting: Meeting, status: BotStatus, status_data: dict
    ) -> None:
        updated = await self._repository.update_bot_status(meeting.id, status)
        await self._broadcaster.publish(
            INDEX_TOPIC, "meetingUpdated", updated.model_dump(mode="json", by_alias=True)
        )
        await self._broadcaster.publish(meeting_topic(meeting.id), "bot_status", status.value)
        logger.info(
            "bot.status_changed",
            bot_id=meeting.bot_id,
            meeting_id=meeting.id,
            status=status.value,
            sub_code=RecallStatusData.model_validate(status_data).sub_code,
        )

    async def _handle_transcript(self, meeting: Meeting, transcript_data: dict) -> None:
        try:
            parsed = RecallTranscriptData.model_validate(transcript_data)
        except ValidationError as exc:
            raise WebhookRejected(f"Invalid transcript data: {exc.error_count()} errors") from exc

        if not parsed.words:
            logger.info("bot.transcript_empty", bot_id=meeting.bot_id, meeting_id=meeting.id)
            return

        entry = await self._repository.create_transcript(_transcript_from_words(meeting.id, parsed))
        await self._broadcaster.publish(
            meeting_topic(meeting.id), "newTranscript", entry.model_dump(mode="json")
        )
        logger.debug("bot.transcript_stored", meeting_id=meeting.id, transcript_id=entry.id)

        if meeting.enable_sales_analysis:
            self._coalescer.trigger(meeting.id, entry.id)

        if meeting.enable_definitions or meeting.enable_question_answering:
            self._spawn(self.enrich_transcript(meeting, entry))

    # ── Enrichment ───────────────────────────────────────────────────────

    async def enrich_transcript(self, meeting: Meeting, entry: TranscriptEntry) -> TranscriptUpdate:
        """Run enabled per-line enrichments concurrently and store results.

        A failing enrichment is logged and does not affect the other.
        """
        update = TranscriptUpdate()
        jobs = []
        if meeting.enable_definitions:
            jobs.append(self._add_definitions(meeting, entry, update))
        if meeting.enable_question_answering:
            jobs.append(self._add_answer(meeting, entry, update))

        results = await asyncio.gather(*jobs, return_exceptions=True)
        for result in results:
            if isinstance(result, Exception):
                logger.warning(
                    "bot.enrichment_failed",
                    meeting_id=meeting.id,
                    transcript_id=entry.id,
                    error_type=type(result).__name__,
                    error=str(result),
                )

        if not update.is_empty():
            try:
                await self._repository.update_transcript(entry.id, update)
            except Exception:
                logger.warning(
                    "bot.enrichment_save_failed",
                    meeting_id=meeting.id,
                    transcript_id=entry.id,
                    exc_info=True,
                )
        return update

    async def _add_definitions(
        self, meeting: Meeting, entry: TranscriptEntry, update: TranscriptUpdate
    ) -> None:
        result = await self._analyzer.get_definitions(entry.text)
        payload = result.model_dump(mode="json")
        await self._broadcaster.publish(
            meeting_topic(meeting.id), "transcriptUpdated", {"id": entry.id, **payload}
        )
        update.definitions = result.definitions

    async def _add_answer(
        self, meeting: Meeting, entry: TranscriptEntry, update: TranscriptUpdate
    ) -> None:
        result = await self._analyzer.get_question_answer(entry.text)
        if not result.is_question or not result.answer:
            return
        await self._broadcaster.publish(
            meeting_topic(meeting.id),
            "transcriptUpdated",
            {"id": entry.id, **result.model_dump(mode="json")},
        )
        update.answer = result.answer

    # ── Background Tasks ─────────────────────────────────────────────────

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def join(self) -> None:
        """Wait for all background enrichment tasks to finish."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def shutdown(self) -> None:
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)


def _transcript_from_words(meeting_id: int, data: RecallTranscriptData) -> TranscriptEntryCreate:
    """Collapse a transcript.data word list into a single transcript line."""
    words = data.words
    first, last = words[0], words[-1]
    return TranscriptEntryCreate(
        meeting_id=meeting_id,
        text=" ".join(w.text for w in words),
        speaker=data.participant.name or "unknown",
        timestamps=TranscriptTimestamps(
            start_timestamp=first.start_timestamp,
            end_timestamp=last.end_timestamp,
        ),
    )
