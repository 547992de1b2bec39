"""listing sync foundation tables

Revision ID: 20260301_0001
Revises:
Create Date: 2026-03-01 09:00:00
"""
from alembic import op
import sqlalchemy as sa


revision = "20260301_0001"
down_revision = None
branch_labels = None
depends_on = None


def _listing_fk() -> sa.ForeignKey:
    return sa.ForeignKey("listings.id", ondelete="CASCADE")


def upgrade() -> None:
    op.create_table(
        "listings",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=36), nullable=False),
        sa.Column("google_location_name", sa.String(length=255), nullable=True),
        sa.Column("google_account_id", sa.String(length=255), nullable=True),
        sa.Column("business_name", sa.String(length=255), nullable=False),
        sa.Column("address_line1", sa.String(length=255), nullable=True),
        sa.Column("address_line2", sa.String(length=255), nullable=True),
        sa.Column("city", sa.String(length=120), nullable=True),
        sa.Column("state", sa.String(length=120), nullable=True),
        sa.Column("postal_code", sa.String(length=32), nullable=True),
        sa.Column("country", sa.String(length=8), nullable=True),
        sa.Column("phone", sa.String(length=64), nullable=True),
        sa.Column("website", sa.String(length=512), nullable=True),
        sa.Column("maps_url", sa.String(length=512), nullable=True),
        sa.Column("primary_category", sa.String(length=255), nullable=True),
        sa.Column("additional_categories_json", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("regular_hours_json", sa.Text(), nullable=True),
        sa.Column("special_hours_json", sa.Text(), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("attributes_json", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("has_products", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("open_status", sa.String(length=40), nullable=True),
        sa.Column("verification_status", sa.String(length=40), nullable=True),
        sa.Column("status", sa.String(length=12), nullable=False, server_default="ACTIVE"),
        sa.Column("average_rating", sa.Float(), nullable=True),
        sa.Column("total_review_count", sa.Integer(), nullable=True),
        sa.Column("location_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviews_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("metrics_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("keywords_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("media_synced_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("google_location_name", name="uq_listings_google_location_name"),
    )
    op.create_index("ix_listings_tenant_id", "listings", ["tenant_id"])
    op.create_index("ix_listings_status", "listings", ["status"])

    op.create_table(
        "listing_credentials",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("listing_id", sa.String(length=36), nullable=False),
        sa.Column("encrypted_secret_blob", sa.Text(), nullable=False),
        sa.Column("key_reference", sa.String(length=255), nullable=False),
        sa.Column("key_version", sa.String(length=32), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_listing_credentials_listing_id", "listing_credentials", ["listing_id"], unique=True)

    op.create_table(
        "reviews",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=36), nullable=False),
        sa.Column("listing_id", sa.String(length=36), _listing_fk(), nullable=False),
        sa.Column("google_review_id", sa.String(length=255), nullable=False),
        sa.Column("google_review_name", sa.String(length=512), nullable=True),
        sa.Column("reviewer_name", sa.String(length=255), nullable=False, server_default="Anonymous"),
        sa.Column("reviewer_photo_url", sa.String(length=1024), nullable=True),
        sa.Column("star_rating", sa.Integer(), nullable=True),
        sa.Column("comment", sa.Text(), nullable=True),
        sa.Column("sentiment", sa.String(length=8), nullable=False, server_default="NEUTRAL"),
        sa.Column("review_reply", sa.Text(), nullable=True),
        sa.Column("reply_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("draft_reply", sa.Text(), nullable=True),
        sa.Column("response_status", sa.String(length=11), nullable=False, server_default="PENDING"),
        sa.Column("reply_error", sa.Text(), nullable=True),
        sa.Column("reply_published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("google_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("synced_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("listing_id", "google_review_id", name="uq_reviews_listing_google_review"),
    )
    op.create_index("ix_reviews_tenant_id", "reviews", ["tenant_id"])
    op.create_index("ix_reviews_listing_id", "reviews", ["listing_id"])
    op.create_index("ix_reviews_reviewed_at", "reviews", ["reviewed_at"])
    op.create_index("ix_reviews_listing_response_status", "reviews", ["listing_id", "response_status"])

    op.create_table(
        "posts",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=36), nullable=False),
        sa.Column("listing_id", sa.String(length=36), _listing_fk(), nullable=False),
        sa.Column("content_type", sa.String(length=8), nullable=False, server_default="STANDARD"),
        sa.Column("title", sa.String(length=255), nullable=True),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("call_to_action_type", sa.String(length=40), nullable=True),
        sa.Column("call_to_action_url", sa.String(length=1024), nullable=True),
        sa.Column("media_urls_json", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("event_title", sa.String(length=255), nullable=True),
        sa.Column("event_start_date", sa.Date(), nullable=True),
        sa.Column("event_end_date", sa.Date(), nullable=True),
        sa.Column("offer_coupon_code", sa.String(length=120), nullable=True),
        sa.Column("offer_redeem_url", sa.String(length=1024), nullable=True),
        sa.Column("offer_terms", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=9), nullable=False, server_default="DRAFT"),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("google_post_id", sa.String(length=512), nullable=True),
        sa.Column("published_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_posts_tenant_id", "posts", ["tenant_id"])
    op.create_index("ix_posts_listing_id", "posts", ["listing_id"])
    op.create_index("ix_posts_status", "posts", ["status"])
    op.create_index("ix_posts_listing_status_published", "posts", ["listing_id", "status", "published_at"])

    op.create_table(
        "media_items",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=36), nullable=False),
        sa.Column("listing_id", sa.String(length=36), _listing_fk(), nullable=False),
        sa.Column("google_media_name", sa.String(length=512), nullable=False),
        sa.Column("media_format", sa.String(length=16), nullable=False, server_default="PHOTO"),
        sa.Column("category", sa.String(length=64), nullable=True),
        sa.Column("google_url", sa.String(length=1024), nullable=True),
        sa.Column("thumbnail_url", sa.String(length=1024), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("view_count", sa.Integer(), nullable=True),
        sa.Column("created_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("synced_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("listing_id", "google_media_name", name="uq_media_items_listing_name"),
    )
    op.create_index("ix_media_items_tenant_id", "media_items", ["tenant_id"])
    op.create_index("ix_media_items_listing_id", "media_items", ["listing_id"])

    op.create_table(
        "performance_daily",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("listing_id", sa.String(length=36), _listing_fk(), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("impressions_desktop_maps", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("impressions_desktop_search", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("impressions_mobile_maps", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("impressions_mobile_search", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("direction_requests", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("call_clicks", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("website_clicks", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("conversations", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("bookings", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("food_orders", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("synced_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("listing_id", "date", name="uq_performance_daily_listing_date"),
    )
    op.create_index("ix_performance_daily_listing_id", "performance_daily", ["listing_id"])

    op.create_table(
        "search_keywords",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("listing_id", sa.String(length=36), _listing_fk(), nullable=False),
        sa.Column("keyword", sa.String(length=512), nullable=False),
        sa.Column("impressions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("sync_period", sa.String(length=32), nullable=False),
        sa.Column("synced_at", sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint("listing_id", "keyword", "sync_period", name="uq_search_keywords_listing_keyword_period"),
    )
    op.create_index("ix_search_keywords_listing_id", "search_keywords", ["listing_id"])

    op.create_table(
        "listing_audits",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=36), nullable=False),
        sa.Column("listing_id", sa.String(length=36), _listing_fk(), nullable=False),
        sa.Column("overall_score", sa.Float(), nullable=False),
        sa.Column("max_score", sa.Float(), nullable=False),
        sa.Column("percentage", sa.Float(), nullable=False),
        sa.Column("letter_grade", sa.String(length=4), nullable=False),
        sa.Column("categories_json", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("recommendations_json", sa.Text(), nullable=False, server_default="[]"),
        sa.Column("audit_data_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_listing_audits_tenant_id", "listing_audits", ["tenant_id"])
    op.create_index("ix_listing_audits_listing_created", "listing_audits", ["listing_id", "created_at"])

    op.create_table(
        "activity_logs",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.String(length=36), nullable=True),
        sa.Column("listing_id", sa.String(length=36), nullable=True),
        sa.Column("actor_type", sa.String(length=16), nullable=False, server_default="system"),
        sa.Column("action", sa.String(length=120), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("metadata_json", sa.Text(), nullable=False, server_default="{}"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_activity_logs_tenant_id", "activity_logs", ["tenant_id"])
    op.create_index("ix_activity_logs_listing_id", "activity_logs", ["listing_id"])
    op.create_index("ix_activity_logs_action", "activity_logs", ["action"])
    op.create_index("ix_activity_logs_created_at", "activity_logs", ["created_at"])

    op.create_table(
        "notification_channels",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("channel_id", sa.String(length=255), nullable=False),
        sa.Column("listing_id", sa.String(length=36), _listing_fk(), nullable=False),
        sa.Column("channel_type", sa.String(length=40), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_notification_channels_channel_id", "notification_channels", ["channel_id"], unique=True)
    op.create_index("ix_notification_channels_listing_id", "notification_channels", ["listing_id"])


def downgrade() -> None:
    op.drop_table("notification_channels")
    op.drop_table("activity_logs")
    op.drop_table("listing_audits")
    op.drop_table("search_keywords")
    op.drop_table("performance_daily")
    op.drop_table("media_items")
    op.drop_table("posts")
    op.drop_table("reviews")
    op.drop_table("listing_credentials")
    op.drop_table("listings")
