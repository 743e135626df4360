"""Create podcast_configurations table

Revision ID: 0001
Revises: None
Create Date: 2026-10-18 12:00:00
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import mysql

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "podcast_configurations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("topics", sa.Text, nullable=True),
        sa.Column("speaker_background", sa.Text, nullable=True),
        sa.Column("podcast_structure", sa.Text, nullable=True),
        sa.Column("text_style", sa.Text, nullable=True),
        sa.Column("duration_minutes", sa.Integer, nullable=True),
        sa.Column("script", sa.Text().with_variant(mysql.LONGTEXT(), "mysql"), nullable=True),
        sa.Column("audio_url", sa.String(1024), nullable=True),
        sa.Column("video_url", sa.String(1024), nullable=True),
        sa.Column("created_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime, nullable=False, server_default=sa.func.now()),
        mysql_charset="utf8mb4",
        mysql_collate="utf8mb4_unicode_ci",
    )
    op.create_index("ix_podcast_configurations_created_at", "podcast_configurations", ["created_at"])


def downgrade() -> None:
    op.drop_index("ix_podcast_configurations_created_at", table_name="podcast_configurations")
    op.drop_table("podcast_configurations")
