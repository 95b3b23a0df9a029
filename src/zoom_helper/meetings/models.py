"""Meeting persistence models.

Two SQLAlchemy models:
- MeetingModel: One row per Recall.ai bot, with per-meeting feature flags
  and the latest sales analysis (JSONB, camelCase keys)
- TranscriptModel: One row per transcript line, with enrichment results

TranscriptModel.start_relative is a stored generated column derived from
timestamps.start_timestamp.relative so transcripts can be read in call order.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import (
    Boolean,
    Computed,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    func,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from src.zoom_helper.core.database import Base


class MeetingModel(Base):
    """A meeting joined by a Recall.ai bot.

    sales_analysis is only populated for meetings created with the
    sales_analysis feature; it is overwritten by every completed
    analysis run.
    """

    __tablename__ = "meeting"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    bot_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    bot_status: Mapped[str] = mapped_column(String, nullable=False)
    enable_definitions: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    enable_question_answering: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    enable_sales_analysis: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False, server_default=text("false")
    )
    sales_analysis: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )


class TranscriptModel(Base):
    """A single transcript line spoken in a meeting."""

    __tablename__ = "transcript"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    meeting_id: Mapped[int] = mapped_column(
        Integer,
        ForeignKey("meeting.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    text: Mapped[str] = mapped_column(Text, nullable=False)
    speaker: Mapped[str] = mapped_column(String, nullable=False)
    timestamps: Mapped[dict] = mapped_column(JSONB, nullable=False)
    start_relative: Mapped[float | None] = mapped_column(
        Float,
        Computed("((timestamps->'start_timestamp'->>'relative')::float)", persisted=True),
        index=True,
    )
    definitions: Mapped[list | None] = mapped_column(JSONB, nullable=True)
    answer: Mapped[str | None] = mapped_column(Text, nullable=True)
