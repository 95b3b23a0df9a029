"""Shared test fixtures.

Provides:
- InMemoryMeetingRepository: test double for MeetingRepository
- RecordingBroadcaster: captures every published event
- Fake settings (SimpleNamespace) for components that read configuration
- transcript_payload / status_payload: builders for Recall.ai webhook bodies

No database or network access is needed by any test.
"""

from __future__ import annotations

from datetime import datetime, timezone
from types import SimpleNamespace
from typing import Any

import pytest

from src.zoom_helper.meetings.schemas import (
    BotStatus,
    Meeting,
    MeetingCreate,
    SalesAnalysis,
    TranscriptEntry,
    TranscriptEntryCreate,
    TranscriptUpdate,
)


# ── In-Memory Repository ────────────────────────────────────────────────────


class InMemoryMeetingRepository:
    """In-memory test double with the MeetingRepository interface."""

    def __init__(self) -> None:
        self.meetings: dict[int, Meeting] = {}
        self.transcripts: dict[int, TranscriptEntry] = {}
        self.saved_analyses: list[tuple[int, SalesAnalysis]] = []
        self._next_meeting_id = 1
        self._next_transcript_id = 1

    async def create_meeting(self, data: MeetingCreate) -> Meeting:
        now = datetime.now(timezone.utc)
        meeting = Meeting(
            id=self._next_meeting_id,
            bot_id=data.bot_id,
            bot_status=data.bot_status.value,
            enable_definitions=data.enable_definitions,
            enable_question_answering=data.enable_question_answering,
            enable_sales_analysis=data.enable_sales_analysis,
            sales_analysis=data.sales_analysis,
            created_at=now,
            updated_at=now,
        )
        self._next_meeting_id += 1
        self.meetings[meeting.id] = meeting
        return meeting

    async def list_meetings(self) -> list[Meeting]:
        return sorted(self.meetings.values(), key=lambda m: m.updated_at, reverse=True)

    async def get_meeting(self, meeting_id: int) -> Meeting | None:
        return self.meetings.get(meeting_id)

    async def get_meeting_by_bot_id(self, bot_id: str) -> Meeting | None:
        for meeting in self.meetings.values():
            if meeting.bot_id == bot_id:
                return meeting
        return None

    async def update_bot_status(self, meeting_id: int, status: BotStatus) -> Meeting:
        meeting = self.meetings.get(meeting_id)
        if meeting is None:
            raise ValueError(f"Meeting not found: {meeting_id}")
        updated = meeting.model_copy(
            update={"bot_status": status.value, "updated_at": datetime.now(timezone.utc)}
        )
        self.meetings[meeting_id] = updated
        return updated

    async def save_sales_analysis(self, meeting_id: int, analysis: SalesAnalysis) -> None:
        self.saved_analyses.append((meeting_id, analysis))
        meeting = self.meetings.get(meeting_id)
        if meeting is not None:
            self.meetings[meeting_id] = meeting.model_copy(update={"sales_analysis": analysis})

    async def create_transcript(self, data: TranscriptEntryCreate) -> TranscriptEntry:
        entry = TranscriptEntry(
            id=self._next_transcript_id,
            meeting_id=data.meeting_id,
            text=data.text,
            speaker=data.speaker,
            timestamps=data.timestamps,
            start_relative=data.timestamps.start_timestamp.relative,
        )
        self._next_transcript_id += 1
        self.transcripts[entry.id] = entry
        return entry

    async def get_meeting_transcript(self, meeting_id: int) -> list[TranscriptEntry]:
        entries = [e for e in self.transcripts.values() if e.meeting_id == meeting_id]
        return sorted(entries, key=lambda e: (e.start_relative, e.id))

    async def update_transcript(self, transcript_id: int, data: TranscriptUpdate) -> None:
        entry = self.transcripts[transcript_id]
        changes = {
            field: getattr(data, field)
            for field in ("definitions", "answer")
            if getattr(data, field) is not None
        }
        self.transcripts[transcript_id] = entry.model_copy(update=changes)


# ── Recording Broadcaster ───────────────────────────────────────────────────


class RecordingBroadcaster:
    """Broadcaster test double that records (topic, event, data) tuples."""

    def __init__(self) -> None:
        self.events: list[tuple[str, str, Any]] = []

    async def publish(self, topic: str, event: str, data: Any) -> int:
        self.events.append((topic, event, data))
        return 1

    async def publish_message(self, topic: str, message: dict[str, Any]) -> None:
        await self.publish(topic, message["type"], message.get("payload"))

    def named(self, event: str) -> list[tuple[str, str, Any]]:
        return [e for e in self.events if e[1] == event]


# ── Builders ────────────────────────────────────────────────────────────────


def _transcript_payload(
    bot_id: str,
    words: list[str] | None = None,
    speaker: str | None = "Alice",
    start: float = 12.5,
) -> dict:
    """A Recall.ai transcript.data webhook body."""
    words = ["How", "do", "hypertables", "work?"] if words is None else words
    return {
        "event": "transcript.data",
        "data": {
            "data": {
                "words": [
                    {
                        "text": word,
                        "start_timestamp": {"relative": start + i},
                        "end_timestamp": {"relative": start + i + 0.5},
                    }
                    for i, word in enumerate(words)
                ],
                "participant": {
                    "id": 100,
                    "name": speaker,
                    "is_host": False,
                    "platform": "zoom",
                    "extra_data": {},
                },
            },
            "realtime_endpoint": {"id": "re-1", "metadata": {}},
            "transcript": {"id": "tr-1", "metadata": {}},
            "recording": {"id": "rec-1", "metadata": {}},
            "bot": {"id": bot_id, "metadata": {}},
        },
    }


def _status_payload(bot_id: str, event: str = "bot.in_call_recording") -> dict:
    """A Recall.ai bot status webhook body."""
    return {
        "event": event,
        "data": {
            "data": {
                "code": event.removeprefix("bot."),
                "sub_code": None,
                "updated_at": "2025-06-01T10:00:00Z",
            },
            "bot": {"id": bot_id, "metadata": {}},
        },
    }


# ── Fixtures ────────────────────────────────────────────────────────────────


@pytest.fixture
def repository() -> InMemoryMeetingRepository:
    return InMemoryMeetingRepository()


@pytest.fixture
def broadcaster() -> RecordingBroadcaster:
    return RecordingBroadcaster()


@pytest.fixture
def mock_settings():
    """Settings with the fields read by the meeting components."""
    return SimpleNamespace(
        MEETING_BOT_NAME="Zoom Helper",
        webhook_url="https://helper.example.com/api/v1/meetings/webhook",
        FAST_MODEL="anthropic/claude-3-5-haiku-latest",
        ANALYSIS_MODEL="openai/gpt-4.1-nano",
        ANTHROPIC_API_KEY="sk-ant-test",
        OPENAI_API_KEY="sk-openai-test",
        LLM_TIMEOUT=30,
        LLM_MAX_RETRIES=2,
        RECALL_AI_WEBHOOK_TOKEN="",
    )


@pytest.fixture
def transcript_payload():
    """Builder for transcript.data webhook bodies."""
    return _transcript_payload


@pytest.fixture
def status_payload():
    """Builder for bot status webhook bodies."""
    return _status_payload
