"""Meeting repository -- async CRUD for meetings and transcript lines.

Provides MeetingRepository with the session_factory callable pattern.
Handles serialization between Pydantic schemas and SQLAlchemy models;
JSON columns use model_dump(mode="json") for save and model_validate()
for load.

Database failures are re-raised as StorageError so callers (notably the
analysis coalescer) can handle storage outages without depending on
SQLAlchemy exception types.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator, Callable, Iterator
from contextlib import contextmanager

import structlog
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.zoom_helper.meetings.errors import StorageError
from src.zoom_helper.meetings.models import MeetingModel, TranscriptModel
from src.zoom_helper.meetings.schemas import (
    BotStatus,
    Definition,
    Meeting,
    MeetingCreate,
    SalesAnalysis,
    TranscriptEntry,
    TranscriptEntryCreate,
    TranscriptTimestamps,
    TranscriptUpdate,
)

logger = structlog.get_logger(__name__)


# ── Serialization Helpers ───────────────────────────────────────────────────


def _model_to_meeting(model: MeetingModel) -> Meeting:
    """Convert MeetingModel to Meeting schema."""
    analysis = None
    if model.sales_analysis is not None:
        analysis = SalesAnalysis.model_validate(model.sales_analysis)
    return Meeting(
        id=model.id,
        bot_id=model.bot_id,
        bot_status=model.bot_status,
        enable_definitions=model.enable_definitions,
        enable_question_answering=model.enable_question_answering,
        enable_sales_analysis=model.enable_sales_analysis,
        sales_analysis=analysis,
        created_at=model.created_at,
        updated_at=model.updated_at or model.created_at,
    )


def _model_to_transcript(model: TranscriptModel) -> TranscriptEntry:
    """Convert TranscriptModel to TranscriptEntry schema."""
    definitions = None
    if model.definitions is not None:
        definitions = [Definition.model_validate(d) for d in model.definitions]
    timestamps = TranscriptTimestamps.model_validate(model.timestamps)
    start_relative = model.start_relative
    if start_relative is None:
        start_relative = timestamps.start_timestamp.relative
    return TranscriptEntry(
        id=model.id,
        meeting_id=model.meeting_id,
        text=model.text,
        speaker=model.speaker,
        timestamps=timestamps,
        start_relative=start_relative,
        definitions=definitions,
        answer=model.answer,
    )


@contextmanager
def _storage_errors(operation: str, **context: object) -> Iterator[None]:
    """Re-raise SQLAlchemy failures as StorageError."""
    try:
        yield
    except SQLAlchemyError as exc:
        logger.warning("repository.storage_error", operation=operation, **context, exc_info=True)
        raise StorageError(f"{operation} failed: {exc}") from exc


# ── Repository ──────────────────────────────────────────────────────────────


class MeetingRepository:
    """Async CRUD operations for meetings and their transcripts.

    Args:
        session_factory: Async callable that yields AsyncSession instances.
    """

    def __init__(
        self, session_factory: Callable[..., AsyncGenerator[AsyncSession, None]]
    ) -> None:
        self._session_factory = session_factory

    # ── Meetings ─────────────────────────────────────────────────────────

    async def create_meeting(self, data: MeetingCreate) -> Meeting:
        """Insert a meeting for a freshly created bot.

        Args:
            data: MeetingCreate with bot id and feature flags.

        Returns:
            Meeting with all persisted fields.
        """
        with _storage_errors("create_meeting", bot_id=data.bot_id):
            async for session in self._session_factory():
                model = MeetingModel(
                    bot_id=data.bot_id,
                    bot_status=data.bot_status.value,
                    enable_definitions=data.enable_definitions,
                    enable_question_answering=data.enable_question_answering,
                    enable_sales_analysis=data.enable_sales_analysis,
                    sales_analysis=(
                        data.sales_analysis.to_payload()
                        if data.sales_analysis is not None
                        else None
                    ),
                )
                session.add(model)
                await session.commit()
                await session.refresh(model)
                return _model_to_meeting(model)

    async def list_meetings(self) -> list[Meeting]:
        """Return all meetings, most recently updated first."""
        with _storage_errors("list_meetings"):
            async for session in self._session_factory():
                stmt = select(MeetingModel).order_by(MeetingModel.updated_at.desc())
                result = await session.execute(stmt)
                return [_model_to_meeting(m) for m in result.scalars().all()]

    async def get_meeting(self, meeting_id: int) -> Meeting | None:
        """Get a meeting by primary key."""
        with _storage_errors("get_meeting", meeting_id=meeting_id):
            async for session in self._session_factory():
                model = await session.get(MeetingModel, meeting_id)
                if model is None:
                    return None
                return _model_to_meeting(model)

    async def get_meeting_by_bot_id(self, bot_id: str) -> Meeting | None:
        """Get a meeting by its Recall.ai bot ID (webhook lookup)."""
        with _storage_errors("get_meeting_by_bot_id", bot_id=bot_id):
            async for session in self._session_factory():
                stmt = select(MeetingModel).where(MeetingModel.bot_id == bot_id)
                result = await session.execute(stmt)
                model = result.scalars().first()
                if model is None:
                    return None
                return _model_to_meeting(model)

    async def update_bot_status(self, meeting_id: int, status: BotStatus) -> Meeting:
        """Update the bot status of a meeting.

        Raises:
            ValueError: If meeting not found.
        """
        with _storage_errors("update_bot_status", meeting_id=meeting_id):
            async for session in self._session_factory():
                model = await session.get(MeetingModel, meeting_id)
                if model is None:
                    raise ValueError(f"Meeting not found: {meeting_id}")
                model.bot_status = status.value
                await session.commit()
                await session.refresh(model)
                return _model_to_meeting(model)

    async def save_sales_analysis(self, meeting_id: int, analysis: SalesAnalysis) -> None:
        """Overwrite the stored sales analysis for a meeting.

        Raises:
            StorageError: If the write fails.
        """
        with _storage_errors("save_sales_analysis", meeting_id=meeting_id):
            async for session in self._session_factory():
                stmt = (
                    update(MeetingModel)
                    .where(MeetingModel.id == meeting_id)
                    .values(sales_analysis=analysis.to_payload())
                )
                await session.execute(stmt)
                await session.commit()
                logger.debug("repository.sales_analysis_saved", meeting_id=meeting_id)

    # ── Transcripts ──────────────────────────────────────────────────────

    async def create_transcript(self, data: TranscriptEntryCreate) -> TranscriptEntry:
        """Insert a transcript line and return it with its generated id."""
        with _storage_errors("create_transcript", meeting_id=data.meeting_id):
            async for session in self._session_factory():
                model = TranscriptModel(
                    meeting_id=data.meeting_id,
                    text=data.text,
                    speaker=data.speaker,
                    timestamps=data.timestamps.model_dump(mode="json"),
                )
                session.add(model)
                await session.commit()
                await session.refresh(model)
                return _model_to_transcript(model)

    async def get_meeting_transcript(self, meeting_id: int) -> list[TranscriptEntry]:
        """Return a meeting's transcript ordered by call time.

        Raises:
            StorageError: If the read fails.
        """
        with _storage_errors("get_meeting_transcript", meeting_id=meeting_id):
            async for session in self._session_factory():
                stmt = (
                    select(TranscriptModel)
                    .where(TranscriptModel.meeting_id == meeting_id)
                    .order_by(TranscriptModel.start_relative.asc(), TranscriptModel.id.asc())
                )
                result = await session.execute(stmt)
                return [_model_to_transcript(m) for m in result.scalars().all()]

    async def update_transcript(self, transcript_id: int, data: TranscriptUpdate) -> None:
        """Write enrichment results (definitions, answer) to a transcript line."""
        values: dict = {}
        if data.definitions is not None:
            values["definitions"] = [d.model_dump(mode="json") for d in data.definitions]
        if data.answer is not None:
            values["answer"] = data.answer
        if not values:
            return

        with _storage_errors("update_transcript", transcript_id=transcript_id):
            async for session in self._session_factory():
                stmt = (
                    update(TranscriptModel)
                    .where(TranscriptModel.id == transcript_id)
                    .values(**values)
                )
                await session.execute(stmt)
                await session.commit()
