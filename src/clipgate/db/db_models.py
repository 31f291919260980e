"""SQLAlchemy ORM models."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    """Base declarative class."""


class MediaItemModel(Base):
    __tablename__ = "media_item"

    id: Mapped[str] = mapped_column(String(64), primary_key=True)
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    status: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    source_path: Mapped[str] = mapped_column(String(512), nullable=False)
    declared_duration: Mapped[float | None] = mapped_column(Float)
    title: Mapped[str | None] = mapped_column(String(256))
    category: Mapped[str | None] = mapped_column(String(64))
    normalized_path: Mapped[str | None] = mapped_column(String(512))
    staging_uri: Mapped[str | None] = mapped_column(String(512))
    public_url: Mapped[str | None] = mapped_column(String(512))
    thumbnail_url: Mapped[str | None] = mapped_column(Text)
    cdn_asset_id: Mapped[str | None] = mapped_column(String(128))
    quarantine_ref: Mapped[str | None] = mapped_column(String(512))
    failure_reason: Mapped[str | None] = mapped_column(Text)
    error_category: Mapped[str | None] = mapped_column(String(16))
    user_message: Mapped[str | None] = mapped_column(String(256))
    attempts: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, nullable=False, index=True
    )

    decisions: Mapped[list["ModerationDecisionModel"]] = relationship(
        back_populates="item",
        cascade="all, delete-orphan",
        order_by="ModerationDecisionModel.id",
    )


class ModerationDecisionModel(Base):
    """Append-only history of verdicts; the newest row is the current one."""

    __tablename__ = "moderation_decision"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    item_id: Mapped[str] = mapped_column(
        String(64), ForeignKey("media_item.id"), nullable=False, index=True
    )
    approved: Mapped[bool] = mapped_column(Boolean, nullable=False)
    visual_passed: Mapped[bool] = mapped_column(Boolean, nullable=False)
    audio_status: Mapped[str] = mapped_column(String(16), nullable=False)
    reason: Mapped[str | None] = mapped_column(Text)
    transcript: Mapped[str | None] = mapped_column(Text)
    keywords_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    decided_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    item: Mapped[MediaItemModel] = relationship(back_populates="decisions")
