from __future__ import annotations
"""PodcastConfiguration ORM model: a saved set of podcast settings and outputs."""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime, Integer, String, Text, func
from sqlalchemy.dialects.mysql import LONGTEXT
from sqlalchemy.orm import Mapped, mapped_column

from castforge.database import Base

# LONGTEXT on MySQL, plain TEXT elsewhere
LongText = Text().with_variant(LONGTEXT(), "mysql")


class PodcastConfiguration(Base):
    """Editorial settings plus the script and media URLs generated from them."""

    __tablename__ = "podcast_configurations"
    __table_args__ = {
        "mysql_charset": "utf8mb4",
        "mysql_collate": "utf8mb4_unicode_ci",
    }

    id: Mapped[str] = mapped_column(
        String(36),
        primary_key=True,
        default=lambda: str(uuid.uuid4()),
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    topics: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    speaker_background: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    podcast_structure: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    text_style: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    duration_minutes: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    script: Mapped[Optional[str]] = mapped_column(LongText, nullable=True)
    audio_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    video_url: Mapped[Optional[str]] = mapped_column(String(1024), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), nullable=False, index=True,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, server_default=func.now(), onupdate=func.now(), nullable=False,
    )

    def __repr__(self) -> str:
        return f"<PodcastConfiguration {self.id}: {self.name}>"
