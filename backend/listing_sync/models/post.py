from __future__ import annotations

import uuid
from datetime import UTC, date, datetime
from enum import Enum

from sqlalchemy import Date, DateTime, Enum as SAEnum, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from listing_sync.db.base import Base


class PostType(str, Enum):
    STANDARD = "standard"
    EVENT = "event"
    OFFER = "offer"
    PRODUCT = "product"
    ALERT = "alert"


class PostStatus(str, Enum):
    DRAFT = "draft"
    SCHEDULED = "scheduled"
    PUBLISHED = "published"
    FAILED = "failed"


class Post(Base):
    __tablename__ = "posts"
    __table_args__ = (Index("ix_posts_listing_status_published", "listing_id", "status", "published_at"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    listing_id: Mapped[str] = mapped_column(String(36), ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True)
    content_type: Mapped[PostType] = mapped_column(
        SAEnum(PostType, name="post_type", native_enum=False),
        nullable=False,
        default=PostType.STANDARD,
    )
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    call_to_action_type: Mapped[str | None] = mapped_column(String(40), nullable=True)
    call_to_action_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    media_urls_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    event_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    event_start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    event_end_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    offer_coupon_code: Mapped[str | None] = mapped_column(String(120), nullable=True)
    offer_redeem_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    offer_terms: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[PostStatus] = mapped_column(
        SAEnum(PostStatus, name="post_status", native_enum=False),
        nullable=False,
        default=PostStatus.DRAFT,
        index=True,
    )
    scheduled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    google_post_id: Mapped[str | None] = mapped_column(String(512), nullable=True)
    published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )
