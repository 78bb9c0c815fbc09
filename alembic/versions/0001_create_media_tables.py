"""Create lessons, media_resources and transcript_records tables

Revision ID: 0001_create_media_tables
Revises:
Create Date: 2026-10-17

"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "0001_create_media_tables"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "lessons",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("lesson_type", sa.String(length=32), nullable=False, server_default="video"),
        sa.Column("video_url", sa.Text(), nullable=True),
        sa.Column("duration", sa.String(length=32), nullable=True),
        sa.Column("content", sa.Text(), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        "media_resources",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("lesson_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("source_kind", sa.String(length=32), nullable=False, server_default="none"),
        sa.Column("platform", sa.String(length=32), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="idle"),
        sa.Column("reference", sa.Text(), nullable=True),
        sa.Column("ready_reference", sa.Text(), nullable=True),
        sa.Column("ready_platform", sa.String(length=32), nullable=True),
        sa.Column("ready_source_kind", sa.String(length=32), nullable=True),
        sa.Column("upload_session_id", sa.String(length=255), nullable=True),
        sa.Column("upload_url", sa.Text(), nullable=True),
        sa.Column("completed_session_id", sa.String(length=255), nullable=True),
        sa.Column("provider_asset_id", sa.String(length=255), nullable=True),
        sa.Column("duration_seconds", sa.Integer(), nullable=True),
        sa.Column("title", sa.String(length=255), nullable=True),
        sa.Column("thumbnail_url", sa.Text(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["lesson_id"], ["lessons.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_media_resources_lesson_id", "media_resources", ["lesson_id"], unique=True)
    op.create_index("ix_media_resources_status", "media_resources", ["status"], unique=False)
    op.create_index("ix_media_resources_upload_session_id", "media_resources", ["upload_session_id"], unique=False)

    op.create_table(
        "transcript_records",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("lesson_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("ai_transcript", sa.Text(), nullable=True),
        sa.Column("user_transcript", sa.Text(), nullable=True),
        sa.Column("transcript_source", sa.String(length=32), nullable=False, server_default="none"),
        sa.Column("transcript_status", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column("generated_from_reference", sa.Text(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("generation_started_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("generation_completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["lesson_id"], ["lessons.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_transcript_records_lesson_id", "transcript_records", ["lesson_id"], unique=True)
    op.create_index("ix_transcript_records_transcript_status", "transcript_records", ["transcript_status"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_transcript_records_transcript_status", table_name="transcript_records")
    op.drop_index("ix_transcript_records_lesson_id", table_name="transcript_records")
    op.drop_table("transcript_records")
    op.drop_index("ix_media_resources_upload_session_id", table_name="media_resources")
    op.drop_index("ix_media_resources_status", table_name="media_resources")
    op.drop_index("ix_media_resources_lesson_id", table_name="media_resources")
    op.drop_table("media_resources")
    op.drop_table("lessons")
