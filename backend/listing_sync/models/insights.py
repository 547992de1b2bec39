from __future__ import annotations

import uuid
from datetime import UTC, date, datetime

from sqlalchemy import Date, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from listing_sync.db.base import Base


class PerformanceSample(Base):
    __tablename__ = "performance_daily"
    __table_args__ = (UniqueConstraint("listing_id", "date", name="uq_performance_daily_listing_date"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    listing_id: Mapped[str] = mapped_column(String(36), ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True)
    sample_date: Mapped[date] = mapped_column("date", Date, nullable=False)
    impressions_desktop_maps: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    impressions_desktop_search: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    impressions_mobile_maps: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    impressions_mobile_search: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    direction_requests: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    call_clicks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    website_clicks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    conversations: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    bookings: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    food_orders: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    synced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))


class SearchKeyword(Base):
    __tablename__ = "search_keywords"
    __table_args__ = (
        UniqueConstraint("listing_id", "keyword", "sync_period", name="uq_search_keywords_listing_keyword_period"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    listing_id: Mapped[str] = mapped_column(String(36), ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True)
    keyword: Mapped[str] = mapped_column(String(512), nullable=False)
    impressions: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    sync_period: Mapped[str] = mapped_column(String(32), nullable=False)
    synced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))


class MediaItem(Base):
    __tablename__ = "media_items"
    __table_args__ = (UniqueConstraint("listing_id", "google_media_name", name="uq_media_items_listing_name"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    listing_id: Mapped[str] = mapped_column(String(36), ForeignKey("listings.id", ondelete="CASCADE"), nullable=False, index=True)
    google_media_name: Mapped[str] = mapped_column(String(512), nullable=False)
    media_format: Mapped[str] = mapped_column(String(16), nullable=False, default="PHOTO")
    category: Mapped[str | None] = mapped_column(String(64), nullable=True)
    google_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    thumbnail_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    view_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    synced_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
