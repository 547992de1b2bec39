from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import DateTime, Enum as SAEnum, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from listing_sync.db.base import Base


class ReviewSentiment(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


class ReplyStatus(str, Enum):
    PENDING = "pending"
    DRAFT_READY = "draft_ready"
    APPROVED = "approved"
    PUBLISHED = "published"
    FAILED = "failed"


class Review(Base):
    __tablename__ = "reviews"
    __table_args__ = (
        UniqueConstraint("listing_id", "google_review_id", name="uq_reviews_listing_google_review"),
        Index("ix_reviews_listing_response_status", "listing_id", "response_status"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    listing_id: Mapped[str] = mapped_column(String(36), ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True)
    google_review_id: Mapped[str] = mapped_column(String(255), nullable=False)
    google_review_name: Mapped[str | None] = mapped_column(String(512), nullable=True)
    reviewer_name: Mapped[str] = mapped_column(String(255), nullable=False, default="Anonymous")
    reviewer_photo_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    star_rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    sentiment: Mapped[ReviewSentiment] = mapped_column(
        SAEnum(ReviewSentiment, name="review_sentiment", native_enum=False),
        nullable=False,
        default=ReviewSentiment.NEUTRAL,
    )
    review_reply: Mapped[str | None] = mapped_column(Text, nullable=True)
    reply_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    draft_reply: Mapped[str | None] = mapped_column(Text, nullable=True)
    response_status: Mapped[ReplyStatus] = mapped_column(
        SAEnum(ReplyStatus, name="review_reply_status", native_enum=False),
        nullable=False,
        default=ReplyStatus.PENDING,
    )
    reply_error: Mapped[str | None] = mapped_column(Text, nullable=True)
    reply_published_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    google_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    synced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
