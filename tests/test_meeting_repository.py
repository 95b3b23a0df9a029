"""Tests for MeetingRepository serialization and error mapping.

The repository is exercised against fake AsyncSession objects: model to
schema conversion, the SQLAlchemyError -> StorageError mapping, and the
no-op path of update_transcript. Query semantics are covered by the
in-memory repository used in the API and bot tests.
"""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.exc import OperationalError

from src.zoom_helper.meetings.errors import AnalysisError, StorageError
from src.zoom_helper.meetings.models import MeetingModel, TranscriptModel
from src.zoom_helper.meetings.repository import (
    MeetingRepository,
    _model_to_meeting,
    _model_to_transcript,
)
from src.zoom_helper.meetings.schemas import BotStatus, SalesAnalysis, TranscriptUpdate


NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _factory(session):
    async def session_factory():
        yield session

    return session_factory


def _failing_session() -> MagicMock:
    session = MagicMock()
    session.execute = AsyncMock(
        side_effect=OperationalError("SELECT 1", {}, Exception("connection refused"))
    )
    session.get = AsyncMock(
        side_effect=OperationalError("SELECT 1", {}, Exception("connection refused"))
    )
    return session


class TestSerialization:
    def test_meeting_with_stored_analysis(self):
        model = MeetingModel(
            id=3,
            bot_id="bot-3",
            bot_status="in_call_recording",
            enable_definitions=False,
            enable_question_answering=True,
            enable_sales_analysis=True,
            sales_analysis={
                "currentState": ["Self-hosted Postgres"],
                "businessOutcomes": [],
                "solutionRequirements": ["Compression"],
                "metrics": [],
            },
            created_at=NOW,
            updated_at=NOW,
        )

        meeting = _model_to_meeting(model)

        assert meeting.id == 3
        assert meeting.sales_analysis.current_state == ["Self-hosted Postgres"]
        assert meeting.sales_analysis.solution_requirements == ["Compression"]

    def test_meeting_without_analysis(self):
        model = MeetingModel(
            id=1,
            bot_id="bot-1",
            bot_status="created",
            enable_definitions=True,
            enable_question_answering=False,
            enable_sales_analysis=False,
            sales_analysis=None,
            created_at=NOW,
            updated_at=None,
        )

        meeting = _model_to_meeting(model)

        assert meeting.sales_analysis is None
        assert meeting.updated_at == NOW

    def test_transcript_falls_back_to_timestamp_for_order(self):
        model = TranscriptModel(
            id=11,
            meeting_id=1,
            text="What is a hypertable?",
            speaker="Bob",
            timestamps={"start_timestamp": {"relative": 42.5}, "end_timestamp": None},
            definitions=[{"word": "hypertable", "definition": "Partitioned table"}],
            answer=None,
        )

        entry = _model_to_transcript(model)

        assert entry.start_relative == 42.5
        assert entry.definitions[0].word == "hypertable"
        assert entry.timestamps.end_timestamp is None


class TestStorageErrors:
    @pytest.mark.asyncio
    async def test_fetch_failure_raises_storage_error(self):
        repo = MeetingRepository(session_factory=_factory(_failing_session()))

        with pytest.raises(StorageError) as exc_info:
            await repo.get_meeting_transcript(1)

        assert isinstance(exc_info.value, AnalysisError)
        assert isinstance(exc_info.value.__cause__, OperationalError)

    @pytest.mark.asyncio
    async def test_persist_failure_raises_storage_error(self):
        repo = MeetingRepository(session_factory=_factory(_failing_session()))

        with pytest.raises(StorageError):
            await repo.save_sales_analysis(1, SalesAnalysis())

    @pytest.mark.asyncio
    async def test_lookup_failure_raises_storage_error(self):
        repo = MeetingRepository(session_factory=_factory(_failing_session()))

        with pytest.raises(StorageError):
            await repo.get_meeting(1)


class TestWrites:
    @pytest.mark.asyncio
    async def test_save_sales_analysis_commits(self):
        session = MagicMock()
        session.execute = AsyncMock()
        session.commit = AsyncMock()
        repo = MeetingRepository(session_factory=_factory(session))

        await repo.save_sales_analysis(4, SalesAnalysis(metrics=["uptime"]))

        session.execute.assert_awaited_once()
        session.commit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_empty_transcript_update_skips_database(self):
        session = MagicMock()
        session.execute = AsyncMock()
        repo = MeetingRepository(session_factory=_factory(session))

        await repo.update_transcript(1, TranscriptUpdate())

        session.execute.assert_not_called()

    @pytest.mark.asyncio
    async def test_update_bot_status_missing_meeting(self):
        session = MagicMock()
        session.get = AsyncMock(return_value=None)
        repo = MeetingRepository(session_factory=_factory(session))

        with pytest.raises(ValueError, match="Meeting not found"):
            await repo.update_bot_status(9, BotStatus.DONE)
