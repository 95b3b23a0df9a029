"""Create meeting and transcript tables.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18

- meeting: one row per Recall.ai bot with feature flags and the latest
  sales analysis (JSONB)
- transcript: one row per transcript line; start_relative is a stored
  generated column extracted from timestamps for call-order reads
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB

# revision identifiers, used by Alembic.
revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── meeting table ────────────────────────────────────────────────────

    op.create_table(
        "meeting",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("bot_id", sa.String(), nullable=False),
        sa.Column("bot_status", sa.String(), nullable=False),
        sa.Column(
            "enable_definitions",
            sa.Boolean(),
            server_default=sa.text("false"),
            nullable=False,
        ),
        sa.Column(
            "enable_question_answering",
            sa.Boolean(),
            server_default=sa.text("false"),
            nullable=False,
        ),
        sa.Column(
            "enable_sales_analysis",
            sa.Boolean(),
            server_default=sa.text("false"),
            nullable=False,
        ),
        sa.Column("sales_analysis", JSONB(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_meeting_bot_id", "meeting", ["bot_id"])

    # ── transcript table ─────────────────────────────────────────────────

    op.create_table(
        "transcript",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column(
            "meeting_id",
            sa.Integer(),
            sa.ForeignKey("meeting.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("text", sa.Text(), nullable=False),
        sa.Column("speaker", sa.String(), nullable=False),
        sa.Column("timestamps", JSONB(), nullable=False),
        sa.Column(
            "start_relative",
            sa.Float(),
            sa.Computed(
                "((timestamps->'start_timestamp'->>'relative')::float)",
                persisted=True,
            ),
        ),
        sa.Column("definitions", JSONB(), nullable=True),
        sa.Column("answer", sa.Text(), nullable=True),
    )
    op.create_index("ix_transcript_meeting_id", "transcript", ["meeting_id"])
    op.create_index("ix_transcript_start_relative", "transcript", ["start_relative"])


def downgrade() -> None:
    op.drop_index("ix_transcript_start_relative", table_name="transcript")
    op.drop_index("ix_transcript_meeting_id", table_name="transcript")
    op.drop_table("transcript")
    op.drop_index("ix_meeting_bot_id", table_name="meeting")
    op.drop_table("meeting")
