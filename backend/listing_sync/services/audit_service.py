from __future__ import annotations

import json
import logging
from dataclasses import asdict
from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from listing_sync.core.errors import AuditNotFoundError, ListingNotFoundError
from listing_sync.models.audit import AuditRecord
from listing_sync.models.insights import MediaItem
from listing_sync.models.listing import Listing
from listing_sync.models.post import Post, PostStatus
from listing_sync.models.review import ReplyStatus, Review
from listing_sync.services.activity_service import record_activity
from listing_sync.services.audit_scoring import ListingFacts, score_listing


logger = logging.getLogger("listing_sync.audit")

RECENT_POST_WINDOW = timedelta(days=7)
MONTHLY_POST_WINDOW = timedelta(days=30)
REPLY_OVERDUE_AFTER = timedelta(hours=24)
RESPONDED_STATUSES = (ReplyStatus.PUBLISHED, ReplyStatus.APPROVED)


def collect_listing_facts(db: Session, listing: Listing, *, now: datetime) -> ListingFacts:
    photo_count = db.query(func.count(MediaItem.id)).filter(MediaItem.listing_id == listing.id).scalar() or 0

    published = db.query(Post).filter(Post.listing_id == listing.id, Post.status == PostStatus.PUBLISHED)
    has_recent_post = published.filter(Post.published_at > now - RECENT_POST_WINDOW).first() is not None
    monthly_post_count = published.filter(Post.published_at >= now - MONTHLY_POST_WINDOW).count()

    reviews = db.query(Review).filter(Review.listing_id == listing.id)
    review_count = reviews.count()
    average_rating = (
        db.query(func.avg(Review.star_rating))
        .filter(Review.listing_id == listing.id, Review.star_rating.is_not(None))
        .scalar()
    )
    responded_count = reviews.filter(Review.response_status.in_(RESPONDED_STATUSES)).count()
    overdue_pending_count = reviews.filter(
        Review.response_status == ReplyStatus.PENDING,
        or_(Review.reviewed_at.is_(None), Review.reviewed_at < now - REPLY_OVERDUE_AFTER),
    ).count()

    return ListingFacts(
        business_name=listing.business_name,
        has_address=bool((listing.address_line1 or "").strip()),
        phone=listing.phone,
        website=listing.website,
        has_hours=_has_json_content(listing.regular_hours_json),
        has_holiday_hours=_has_json_content(listing.special_hours_json),
        description=listing.description,
        primary_category=listing.primary_category,
        additional_category_count=len(_load_list(listing.additional_categories_json)),
        photo_count=int(photo_count),
        has_recent_post=has_recent_post,
        monthly_post_count=monthly_post_count,
        average_rating=float(average_rating or 0.0),
        review_count=review_count,
        responded_count=responded_count,
        overdue_pending_count=overdue_pending_count,
        has_attributes=bool(_load_list(listing.attributes_json)),
        has_products=bool(listing.has_products),
    )


def run_audit(db: Session, listing_id: str, *, now: datetime | None = None) -> AuditRecord:
    listing = db.get(Listing, listing_id)
    if listing is None:
        raise ListingNotFoundError(f"Listing {listing_id} not found.")

    now = now or datetime.now(UTC)
    facts = collect_listing_facts(db, listing, now=now)
    outcome = score_listing(facts)

    record = AuditRecord(
        tenant_id=listing.tenant_id,
        listing_id=listing.id,
        overall_score=outcome.overall_score,
        max_score=outcome.max_score,
        percentage=outcome.percentage,
        letter_grade=outcome.letter_grade,
        categories_json=_dumps([category.to_dict() for category in outcome.categories]),
        recommendations_json=_dumps([asdict(item) for item in outcome.recommendations]),
        audit_data_json=_dumps({"business_name": listing.business_name, **asdict(facts)}),
        created_at=now,
    )
    db.add(record)
    db.commit()
    db.refresh(record)

    count = len(outcome.recommendations)
    logger.info(
        "audit.completed grade=%s percentage=%.1f",
        record.letter_grade,
        record.percentage,
        extra={"listing_id": listing.id, "operation": "run_audit"},
    )
    record_activity(
        db,
        tenant_id=listing.tenant_id,
        listing_id=listing.id,
        action="profile_audit_completed",
        description=(
            f"Profile audit completed: {record.letter_grade} ({round(record.percentage)}%), "
            f"{count} recommendation{'' if count == 1 else 's'}"
        ),
        metadata={
            "audit_id": record.id,
            "overall_score": record.letter_grade,
            "percentage": round(record.percentage),
            "recommendation_count": count,
        },
    )
    return record


def get_audit(db: Session, audit_id: str) -> AuditRecord:
    record = db.get(AuditRecord, audit_id)
    if record is None:
        raise AuditNotFoundError(f"Audit {audit_id} not found.")
    return record


def serialize_audit(record: AuditRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "listing_id": record.listing_id,
        "overall_score": record.overall_score,
        "max_score": record.max_score,
        "percentage": record.percentage,
        "letter_grade": record.letter_grade,
        "categories": json.loads(record.categories_json or "[]"),
        "recommendations": json.loads(record.recommendations_json or "[]"),
        "created_at": record.created_at.isoformat() if record.created_at else None,
    }


def _dumps(payload: Any) -> str:
    return json.dumps(payload, separators=(",", ":"), default=str)


def _load_list(raw: str | None) -> list[Any]:
    try:
        value = json.loads(raw or "[]")
    except ValueError:
        return []
    return value if isinstance(value, list) else []


def _has_json_content(raw: str | None) -> bool:
    if not raw:
        return False
    try:
        value = json.loads(raw)
    except ValueError:
        return False
    return bool(value)
