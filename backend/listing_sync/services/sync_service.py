from __future__ import annotations

import calendar
import json
import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from typing import Any

from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from listing_sync.core.config import get_settings
from listing_sync.core.errors import ListingNotFoundError, ListingNotLinkedError, ListingSyncError
from listing_sync.core.metrics import sync_runs_total
from listing_sync.models.insights import MediaItem, PerformanceSample, SearchKeyword
from listing_sync.models.listing import Listing
from listing_sync.models.review import ReplyStatus, Review, ReviewSentiment
from listing_sync.providers.errors import ProviderError
from listing_sync.providers.google_business import GoogleBusinessClient, v4_location_name
from listing_sync.providers.google_types import GoogleLocation, GoogleReview
from listing_sync.services.activity_service import record_activity


logger = logging.getLogger("listing_sync.sync")

STAR_RATINGS = {"ONE": 1, "TWO": 2, "THREE": 3, "FOUR": 4, "FIVE": 5}

_SENTIMENT_BY_RATING = {
    "FIVE": ReviewSentiment.POSITIVE,
    "FOUR": ReviewSentiment.POSITIVE,
    "THREE": ReviewSentiment.NEUTRAL,
    "TWO": ReviewSentiment.NEGATIVE,
    "ONE": ReviewSentiment.NEGATIVE,
}

METRIC_COLUMNS = {
    "BUSINESS_IMPRESSIONS_DESKTOP_MAPS": "impressions_desktop_maps",
    "BUSINESS_IMPRESSIONS_DESKTOP_SEARCH": "impressions_desktop_search",
    "BUSINESS_IMPRESSIONS_MOBILE_MAPS": "impressions_mobile_maps",
    "BUSINESS_IMPRESSIONS_MOBILE_SEARCH": "impressions_mobile_search",
    "BUSINESS_DIRECTION_REQUESTS": "direction_requests",
    "CALL_CLICKS": "call_clicks",
    "WEBSITE_CLICKS": "website_clicks",
    "BUSINESS_CONVERSATIONS": "conversations",
    "BUSINESS_BOOKINGS": "bookings",
    "BUSINESS_FOOD_ORDERS": "food_orders",
}


@dataclass(frozen=True)
class ReviewSyncResult:
    synced: int
    new_reviews: int


@dataclass(frozen=True)
class KeywordSyncResult:
    synced: int
    sync_period: str


def star_rating_to_number(star_rating: str | None) -> int | None:
    if star_rating is None:
        return None
    return STAR_RATINGS.get(star_rating.upper())


def derive_sentiment(star_rating: str | int | None) -> ReviewSentiment:
    if isinstance(star_rating, int):
        star_rating = {value: name for name, value in STAR_RATINGS.items()}.get(star_rating)
    if not star_rating:
        return ReviewSentiment.NEUTRAL
    return _SENTIMENT_BY_RATING.get(star_rating.upper(), ReviewSentiment.NEUTRAL)


def get_linked_listing(db: Session, listing_id: str) -> Listing:
    listing = db.get(Listing, listing_id)
    if listing is None:
        raise ListingNotFoundError(f"Listing {listing_id} not found.")
    if not listing.google_location_name:
        raise ListingNotLinkedError(f"Listing {listing_id} has no linked Google location name.")
    return listing


def sync_location(db: Session, listing_id: str, client: GoogleBusinessClient) -> Listing:
    listing = get_linked_listing(db, listing_id)
    try:
        remote = client.get_location(listing.id, listing.google_location_name)
        _apply_location(listing, remote)
        listing.location_synced_at = datetime.now(UTC)
        db.commit()
    except (ProviderError, ListingSyncError, SQLAlchemyError):
        db.rollback()
        sync_runs_total.labels(family="location", outcome="failed").inc()
        raise
    db.refresh(listing)
    sync_runs_total.labels(family="location", outcome="success").inc()
    logger.info("sync.location.completed", extra={"listing_id": listing.id, "tenant_id": listing.tenant_id})
    record_activity(
        db,
        tenant_id=listing.tenant_id,
        listing_id=listing.id,
        action="location_synced",
        description=f"Synced listing details for {listing.business_name} from Google.",
        metadata={"google_location_name": listing.google_location_name},
    )
    return listing


def _apply_location(listing: Listing, remote: GoogleLocation) -> None:
    if remote.title:
        listing.business_name = remote.title
    listing.phone = remote.phone_numbers.primary_phone if remote.phone_numbers else None
    listing.website = remote.website_uri
    listing.maps_url = remote.metadata.maps_uri if remote.metadata else None
    listing.description = remote.profile.description if remote.profile else None
    listing.open_status = remote.open_info.status if remote.open_info else None

    categories = remote.categories
    primary = categories.primary_category if categories else None
    listing.primary_category = primary.display_name if primary else None
    additional = [c.display_name for c in categories.additional_categories if c.display_name] if categories else []
    listing.additional_categories_json = json.dumps(additional)

    address = remote.storefront_address
    if address is not None:
        lines = address.address_lines
        listing.address_line1 = lines[0] if len(lines) > 0 else None
        listing.address_line2 = lines[1] if len(lines) > 1 else None
        listing.city = address.locality
        listing.state = address.administrative_area
        listing.postal_code = address.postal_code
        listing.country = address.region_code

    if remote.latlng is not None:
        listing.latitude = remote.latlng.latitude
        listing.longitude = remote.latlng.longitude

    listing.regular_hours_json = json.dumps(remote.regular_hours) if remote.regular_hours else None
    listing.special_hours_json = json.dumps(remote.special_hours) if remote.special_hours else None


def sync_reviews(db: Session, listing_id: str, client: GoogleBusinessClient) -> ReviewSyncResult:
    """Upsert every remote review keyed by (listing, review id); safe to re-run."""
    listing = get_linked_listing(db, listing_id)
    location_name = v4_location_name(listing.google_location_name, listing.google_account_id)
    touched: dict[str, Review] = {}
    synced = 0
    new_reviews = 0
    average_rating: float | None = None
    total_review_count: int | None = None

    try:
        for page in client.iter_review_pages(listing.id, location_name):
            for item in page.reviews:
                try:
                    remote = GoogleReview.model_validate(item)
                    fields = _review_fields(remote)
                except (ValidationError, ValueError, TypeError) as exc:
                    logger.warning(
                        "sync.reviews.item_skipped",
                        extra={"listing_id": listing.id, "error": f"{item.get('reviewId')}: {exc}"},
                    )
                    continue
                if not remote.review_id:
                    continue
                row = touched.get(remote.review_id) or _find_review(db, listing.id, remote.review_id)
                if row is None:
                    row = Review(tenant_id=listing.tenant_id, listing_id=listing.id, google_review_id=remote.review_id)
                    db.add(row)
                    new_reviews += 1
                _apply_review(row, fields)
                touched[remote.review_id] = row
                synced += 1
            if page.average_rating is not None:
                average_rating = page.average_rating
            if page.total_review_count is not None:
                total_review_count = page.total_review_count
            db.commit()

        if average_rating is not None:
            listing.average_rating = average_rating
            listing.total_review_count = total_review_count
        listing.reviews_synced_at = datetime.now(UTC)
        db.commit()
    except (ProviderError, ListingSyncError, SQLAlchemyError):
        db.rollback()
        sync_runs_total.labels(family="reviews", outcome="failed").inc()
        raise

    sync_runs_total.labels(family="reviews", outcome="success").inc()
    logger.info("sync.reviews.completed", extra={"listing_id": listing.id, "tenant_id": listing.tenant_id})
    record_activity(
        db,
        tenant_id=listing.tenant_id,
        listing_id=listing.id,
        action="reviews_synced",
        description=f"Synced {synced} reviews ({new_reviews} new) from Google.",
        metadata={"synced": synced, "new_reviews": new_reviews},
    )
    return ReviewSyncResult(synced=synced, new_reviews=new_reviews)


def _find_review(db: Session, listing_id: str, google_review_id: str) -> Review | None:
    return (
        db.query(Review)
        .filter(Review.listing_id == listing_id, Review.google_review_id == google_review_id)
        .first()
    )


def _review_fields(remote: GoogleReview) -> dict[str, Any]:
    reply = remote.review_reply
    reviewer = remote.reviewer
    return {
        "google_review_name": remote.name,
        "reviewer_name": (reviewer.display_name if reviewer else None) or "Anonymous",
        "reviewer_photo_url": reviewer.profile_photo_url if reviewer else None,
        "star_rating": star_rating_to_number(remote.star_rating),
        "comment": remote.comment,
        "sentiment": derive_sentiment(remote.star_rating),
        "review_reply": reply.comment if reply else None,
        "reply_time": reply.update_time if reply else None,
        "reviewed_at": remote.create_time,
        "google_updated_at": remote.update_time,
    }


def _apply_review(row: Review, fields: dict[str, Any]) -> None:
    for key, value in fields.items():
        setattr(row, key, value)
    if fields["review_reply"]:
        # A reply already live on Google is authoritative for the local status.
        row.response_status = ReplyStatus.PUBLISHED
    elif row.response_status is None:
        row.response_status = ReplyStatus.PENDING
    row.synced_at = datetime.now(UTC)


def sync_reviews_for_listings(
    db: Session,
    listing_ids: Sequence[str],
    client_factory: Callable[[Session], GoogleBusinessClient],
) -> list[dict[str, Any]]:
    results: list[dict[str, Any]] = []
    for listing_id in listing_ids:
        try:
            outcome = sync_reviews(db, listing_id, client_factory(db))
        except (ProviderError, ListingSyncError, SQLAlchemyError) as exc:
            results.append({"listing_id": listing_id, "success": False, "error": str(exc)})
            continue
        results.append(
            {
                "listing_id": listing_id,
                "success": True,
                "synced": outcome.synced,
                "new_reviews": outcome.new_reviews,
            }
        )
    return results


def sync_performance(
    db: Session,
    listing_id: str,
    client: GoogleBusinessClient,
    *,
    today: date | None = None,
) -> int:
    listing = get_linked_listing(db, listing_id)
    end = today or datetime.now(UTC).date()
    start = end - timedelta(days=get_settings().performance_window_days)

    try:
        response = client.fetch_daily_metrics(listing.id, listing.google_location_name, start=start, end=end)
        by_day: dict[date, dict[str, int]] = {}
        for series in response.iter_series():
            column = METRIC_COLUMNS.get(series.metric_name or "")
            if column is None or series.time_series is None:
                continue
            for point in series.time_series.dated_values:
                by_day.setdefault(point.date.to_date(), {})[column] = point.value

        synced_at = datetime.now(UTC)
        for day in sorted(by_day):
            row = (
                db.query(PerformanceSample)
                .filter(PerformanceSample.listing_id == listing.id, PerformanceSample.sample_date == day)
                .first()
            )
            if row is None:
                row = PerformanceSample(listing_id=listing.id, sample_date=day)
                db.add(row)
            values = by_day[day]
            for column in METRIC_COLUMNS.values():
                setattr(row, column, values.get(column, 0))
            row.synced_at = synced_at
        listing.metrics_synced_at = synced_at
        db.commit()
    except (ProviderError, ListingSyncError, SQLAlchemyError):
        db.rollback()
        sync_runs_total.labels(family="performance", outcome="failed").inc()
        raise

    sync_runs_total.labels(family="performance", outcome="success").inc()
    record_activity(
        db,
        tenant_id=listing.tenant_id,
        listing_id=listing.id,
        action="performance_synced",
        description=f"Synced {len(by_day)} days of performance metrics from Google.",
        metadata={"days": len(by_day), "start": start.isoformat(), "end": end.isoformat()},
    )
    return len(by_day)


def sync_search_keywords(
    db: Session,
    listing_id: str,
    client: GoogleBusinessClient,
    *,
    today: date | None = None,
) -> KeywordSyncResult:
    listing = get_linked_listing(db, listing_id)
    end = today or datetime.now(UTC).date()
    start = months_before(end, get_settings().keyword_window_months)
    sync_period = f"{start.isoformat()}_{end.isoformat()}"

    try:
        counts = client.fetch_search_keywords(listing.id, listing.google_location_name, start=start, end=end)
        impressions_by_keyword: dict[str, int] = {}
        for count in counts:
            impressions_by_keyword[count.search_keyword] = count.insight_count.value if count.insight_count else 0

        synced_at = datetime.now(UTC)
        for keyword, impressions in impressions_by_keyword.items():
            row = (
                db.query(SearchKeyword)
                .filter(
                    SearchKeyword.listing_id == listing.id,
                    SearchKeyword.keyword == keyword,
                    SearchKeyword.sync_period == sync_period,
                )
                .first()
            )
            if row is None:
                row = SearchKeyword(listing_id=listing.id, keyword=keyword, sync_period=sync_period)
                db.add(row)
            row.impressions = impressions
            row.synced_at = synced_at
        listing.keywords_synced_at = synced_at
        db.commit()
    except (ProviderError, ListingSyncError, SQLAlchemyError):
        db.rollback()
        sync_runs_total.labels(family="keywords", outcome="failed").inc()
        raise

    sync_runs_total.labels(family="keywords", outcome="success").inc()
    record_activity(
        db,
        tenant_id=listing.tenant_id,
        listing_id=listing.id,
        action="keywords_synced",
        description=f"Synced {len(impressions_by_keyword)} search keywords for {sync_period}.",
        metadata={"synced": len(impressions_by_keyword), "sync_period": sync_period},
    )
    return KeywordSyncResult(synced=len(impressions_by_keyword), sync_period=sync_period)


def sync_media(db: Session, listing_id: str, client: GoogleBusinessClient) -> int:
    listing = get_linked_listing(db, listing_id)
    location_name = v4_location_name(listing.google_location_name, listing.google_account_id)

    try:
        items = client.list_media(listing.id, location_name)
        synced_at = datetime.now(UTC)
        seen: dict[str, MediaItem] = {}
        for item in items:
            row = seen.get(item.name) or (
                db.query(MediaItem)
                .filter(MediaItem.listing_id == listing.id, MediaItem.google_media_name == item.name)
                .first()
            )
            if row is None:
                row = MediaItem(tenant_id=listing.tenant_id, listing_id=listing.id, google_media_name=item.name)
                db.add(row)
            row.media_format = item.media_format or "PHOTO"
            row.category = item.location_association.category if item.location_association else None
            row.google_url = item.google_url
            row.thumbnail_url = item.thumbnail_url
            row.description = item.description
            row.view_count = item.insights.view_count if item.insights else None
            row.created_time = item.create_time
            row.synced_at = synced_at
            seen[item.name] = row
        listing.media_synced_at = synced_at
        db.commit()
    except (ProviderError, ListingSyncError, SQLAlchemyError):
        db.rollback()
        sync_runs_total.labels(family="media", outcome="failed").inc()
        raise

    sync_runs_total.labels(family="media", outcome="success").inc()
    record_activity(
        db,
        tenant_id=listing.tenant_id,
        listing_id=listing.id,
        action="media_synced",
        description=f"Synced {len(seen)} media items from Google.",
        metadata={"synced": len(seen)},
    )
    return len(seen)


def months_before(value: date, months: int) -> date:
    month_index = value.year * 12 + (value.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)
