"""Pydantic v2 schemas for the meeting domain.

Defines the data contracts for meetings, transcript entries, LLM enrichment
results (definitions, question answers, sales analysis), and the Recall.ai
webhook payloads. The repository, bot manager, analysis coalescer, and API
layer all import from this module.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


# ── Enums ────────────────────────────────────────────────────────────────────


class BotStatus(str, Enum):
    """Lifecycle status of the Recall.ai bot attached to a meeting."""

    CREATED = "created"
    IN_CALL_RECORDING = "in_call_recording"
    CALL_ENDED = "call_ended"
    DONE = "done"


class Feature(str, Enum):
    """Per-meeting enrichment features selectable at bot creation."""

    DEFINITIONS = "definitions"
    QUESTION_ANSWERING = "question_answering"
    SALES_ANALYSIS = "sales_analysis"


# ── LLM Enrichment Results ───────────────────────────────────────────────────


class Definition(BaseModel):
    """A technical term found in a transcript line, with its definition."""

    word: str = Field(description="The word or term as it appears in the sentence")
    definition: str = Field(description="Concise definition of the term")


class DefinitionsResult(BaseModel):
    """Definitions extracted from a single transcript line."""

    definitions: list[Definition] = Field(default_factory=list)


class QuestionAnswer(BaseModel):
    """Question detection and answer for a single transcript line."""

    is_question: bool = Field(
        default=False,
        description="Whether the sentence is an answerable question",
    )
    answer: str = Field(
        default="",
        description="The answer if answerable, or empty string if not a question",
    )


class SalesAnalysis(BaseModel):
    """Rolling four-category summary of a sales conversation.

    Serialized with camelCase keys (currentState, businessOutcomes,
    solutionRequirements, metrics), which is what viewers and the stored
    JSON column expect. Categories with no relevant information are empty.
    """

    model_config = ConfigDict(populate_by_name=True)

    current_state: list[str] = Field(
        default_factory=list,
        alias="currentState",
        description="Current situation or problems with their current database",
    )
    business_outcomes: list[str] = Field(
        default_factory=list,
        alias="businessOutcomes",
        description="Desired outcomes or goals of moving to Timescale",
    )
    solution_requirements: list[str] = Field(
        default_factory=list,
        alias="solutionRequirements",
        description="Technical requirements or features needed from the database",
    )
    metrics: list[str] = Field(
        default_factory=list,
        description="Measurable goals or KPIs for their database",
    )

    def to_payload(self) -> dict[str, list[str]]:
        """Dump with camelCase keys for publishing and storage."""
        return self.model_dump(by_alias=True)


# Name used by the analysis coalescer for the summarizer's output
AnalysisResult = SalesAnalysis


# ── Meeting Models ───────────────────────────────────────────────────────────


class MeetingCreate(BaseModel):
    """Data needed to persist a meeting right after its bot is created."""

    bot_id: str
    bot_status: BotStatus = BotStatus.CREATED
    enable_definitions: bool = False
    enable_question_answering: bool = False
    enable_sales_analysis: bool = False
    sales_analysis: SalesAnalysis | None = None


class Meeting(BaseModel):
    """A meeting tracked through its Recall.ai bot."""

    id: int
    bot_id: str
    bot_status: str
    enable_definitions: bool = False
    enable_question_answering: bool = False
    enable_sales_analysis: bool = False
    sales_analysis: SalesAnalysis | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


# ── Transcript Models ────────────────────────────────────────────────────────


class TimestampPoint(BaseModel):
    """A point in the call: seconds since recording start plus wall clock."""

    relative: float
    absolute: str | None = None


class TranscriptTimestamps(BaseModel):
    """Start and end of a transcript line."""

    start_timestamp: TimestampPoint
    end_timestamp: TimestampPoint | None = None


class TranscriptEntryCreate(BaseModel):
    """A transcript line ready to be inserted."""

    meeting_id: int
    text: str
    speaker: str
    timestamps: TranscriptTimestamps


class TranscriptEntry(BaseModel):
    """A persisted transcript line with its enrichment results."""

    id: int
    meeting_id: int
    text: str
    speaker: str
    timestamps: TranscriptTimestamps
    start_relative: float = 0.0
    definitions: list[Definition] | None = None
    answer: str | None = None


class TranscriptUpdate(BaseModel):
    """Enrichment fields written back to a transcript line."""

    definitions: list[Definition] | None = None
    answer: str | None = None

    def is_empty(self) -> bool:
        return not self.model_dump(exclude_none=True)


# ── API Request / Response Models ────────────────────────────────────────────


class MeetingCreateRequest(BaseModel):
    """Request to send a bot into a meeting."""

    meeting_url: str = Field(description="Zoom / Meet / Teams URL the bot should join")
    bot_name: str | None = Field(None, description="Display name of the bot in the call")
    functionality: list[Feature] = Field(default_factory=list)


class MeetingDetail(BaseModel):
    """A meeting together with its ordered transcript."""

    meeting: Meeting
    transcripts: list[TranscriptEntry] = Field(default_factory=list)


# ── Recall.ai Webhook Payloads ───────────────────────────────────────────────


class RecallWord(BaseModel):
    """A single recognised word from a transcript.data event."""

    text: str
    start_timestamp: TimestampPoint
    end_timestamp: TimestampPoint | None = None


class RecallParticipant(BaseModel):
    """Speaker attribution in a transcript.data event."""

    id: int | None = None
    name: str | None = None
    is_host: bool = False
    platform: str | None = None
    extra_data: dict[str, Any] = Field(default_factory=dict)


class RecallTranscriptData(BaseModel):
    """Inner ``data.data`` object of a transcript.data event."""

    words: list[RecallWord] = Field(default_factory=list)
    participant: RecallParticipant = Field(default_factory=RecallParticipant)


class RecallStatusData(BaseModel):
    """Inner ``data.data`` object of a bot status event."""

    code: str = ""
    sub_code: str | None = None
    updated_at: str | None = None
