from __future__ import annotations

import uuid
from datetime import UTC, datetime
from enum import Enum

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, Float, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from listing_sync.db.base import Base


class ListingStatus(str, Enum):
    ACTIVE = "active"
    DISCONNECTED = "disconnected"
    SUSPENDED = "suspended"


class Listing(Base):
    __tablename__ = "listings"
    __table_args__ = (UniqueConstraint("google_location_name", name="uq_listings_google_location_name"),)

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    tenant_id: Mapped[str] = mapped_column(String(36), nullable=False, index=True)
    google_location_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    google_account_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    business_name: Mapped[str] = mapped_column(String(255), nullable=False)
    address_line1: Mapped[str | None] = mapped_column(String(255), nullable=True)
    address_line2: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str | None] = mapped_column(String(120), nullable=True)
    state: Mapped[str | None] = mapped_column(String(120), nullable=True)
    postal_code: Mapped[str | None] = mapped_column(String(32), nullable=True)
    country: Mapped[str | None] = mapped_column(String(8), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(64), nullable=True)
    website: Mapped[str | None] = mapped_column(String(512), nullable=True)
    maps_url: Mapped[str | None] = mapped_column(String(512), nullable=True)
    primary_category: Mapped[str | None] = mapped_column(String(255), nullable=True)
    additional_categories_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    regular_hours_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    special_hours_json: Mapped[str | None] = mapped_column(Text, nullable=True)
    latitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    longitude: Mapped[float | None] = mapped_column(Float, nullable=True)
    attributes_json: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    has_products: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    open_status: Mapped[str | None] = mapped_column(String(40), nullable=True)
    verification_status: Mapped[str | None] = mapped_column(String(40), nullable=True)
    status: Mapped[ListingStatus] = mapped_column(
        SAEnum(ListingStatus, name="listing_status", native_enum=False),
        nullable=False,
        default=ListingStatus.ACTIVE,
        index=True,
    )
    average_rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    total_review_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    location_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reviews_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    metrics_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    keywords_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    media_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )


class ListingCredential(Base):
    __tablename__ = "listing_credentials"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    listing_id: Mapped[str] = mapped_column(String(36), nullable=False, unique=True, index=True)
    encrypted_secret_blob: Mapped[str] = mapped_column(Text, nullable=False)
    key_reference: Mapped[str] = mapped_column(String(255), nullable=False)
    key_version: Mapped[str] = mapped_column(String(32), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
