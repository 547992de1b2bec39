from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.orm import Session

from listing_sync.core.config import get_settings
from listing_sync.core.errors import (
    BulkPublishInputError,
    BulkPublishNotFoundError,
    ListingNotLinkedError,
    PostNotFoundError,
    PublishValidationError,
    ReviewNotFoundError,
)
from listing_sync.core.metrics import publish_items_total
from listing_sync.models.listing import Listing
from listing_sync.models.post import Post, PostStatus, PostType
from listing_sync.models.review import ReplyStatus, Review
from listing_sync.providers.google_business import GoogleBusinessClient, v4_location_name
from listing_sync.providers.google_types import (
    AlertPostPayload,
    CallToAction,
    EventPostPayload,
    EventSchedule,
    GoogleDate,
    OfferPostPayload,
    PostEvent,
    PostMedia,
    PostOffer,
    PostPayload,
    StandardPostPayload,
)
from listing_sync.services.activity_service import record_activity


logger = logging.getLogger("listing_sync.publish")


@dataclass(frozen=True)
class BulkStep:
    """One bulk item plus the pause that precedes it (zero for the first item)."""

    item_id: str
    delay_before_seconds: float


@dataclass
class BulkPublishResult:
    results: list[dict[str, Any]] = field(default_factory=list)

    @property
    def summary(self) -> dict[str, int]:
        published = sum(1 for item in self.results if item["success"])
        return {"total": len(self.results), "published": published, "failed": len(self.results) - published}

    def to_dict(self) -> dict[str, Any]:
        return {"results": self.results, "summary": self.summary}


def build_post_payload(post: Post) -> PostPayload:
    body = (post.body or "").strip()
    if not body:
        raise PublishValidationError(f"Post {post.id} has no body to publish.")

    common: dict[str, Any] = {"summary": body}
    media_urls = [url for url in json.loads(post.media_urls_json or "[]") if url]
    if media_urls:
        common["media"] = [PostMedia(source_url=url) for url in media_urls]
    if post.call_to_action_type:
        common["call_to_action"] = CallToAction(
            action_type=post.call_to_action_type.upper(),
            url=post.call_to_action_url,
        )

    if post.content_type == PostType.EVENT:
        if post.event_start_date is None:
            raise PublishValidationError(f"Event post {post.id} requires an event start date.")
        return EventPostPayload(**common, event=_post_event(post))
    if post.content_type == PostType.OFFER:
        return OfferPostPayload(
            **common,
            event=_post_event(post) if post.event_start_date is not None else None,
            offer=PostOffer(
                coupon_code=post.offer_coupon_code,
                redeem_online_url=post.offer_redeem_url,
                terms_conditions=post.offer_terms,
            ),
        )
    if post.content_type == PostType.ALERT:
        return AlertPostPayload(**common)
    # Product posts go out as standard updates.
    return StandardPostPayload(**common)


def _post_event(post: Post) -> PostEvent:
    start = post.event_start_date
    end = post.event_end_date or start
    return PostEvent(
        title=post.event_title or post.title,
        schedule=EventSchedule(start_date=GoogleDate.from_date(start), end_date=GoogleDate.from_date(end)),
    )


def publish_post(db: Session, post_id: str, client: GoogleBusinessClient) -> Post:
    post = db.get(Post, post_id)
    if post is None:
        raise PostNotFoundError(f"Post {post_id} not found.")
    listing = db.get(Listing, post.listing_id)

    try:
        if listing is None or not listing.google_location_name:
            raise ListingNotLinkedError(f"Listing {post.listing_id} has no Google location name linked.")
        payload = build_post_payload(post)
        location_name = v4_location_name(listing.google_location_name, listing.google_account_id)
        created = client.create_post(listing.id, location_name, payload)
    except Exception as exc:
        db.rollback()
        post.status = PostStatus.FAILED
        post.last_error = str(exc)
        db.commit()
        publish_items_total.labels(kind="post", outcome="failed").inc()
        logger.warning("publish.post.failed", extra={"listing_id": post.listing_id, "error": str(exc)})
        raise

    post.google_post_id = created.name
    post.status = PostStatus.PUBLISHED
    post.published_at = datetime.now(UTC)
    post.last_error = None
    db.commit()
    db.refresh(post)
    publish_items_total.labels(kind="post", outcome="published").inc()
    record_activity(
        db,
        tenant_id=post.tenant_id,
        listing_id=post.listing_id,
        action="post_published",
        description=f"Published {post.content_type.value} post to Google.",
        metadata={"post_id": post.id, "google_post_id": post.google_post_id},
    )
    return post


def publish_review_reply(db: Session, review_id: str, client: GoogleBusinessClient) -> Review:
    review = db.get(Review, review_id)
    if review is None:
        raise ReviewNotFoundError(f"Review {review_id} not found.")

    try:
        if not review.google_review_name:
            raise PublishValidationError(f"Review {review_id} has no Google review name.")
        draft = (review.draft_reply or "").strip()
        if not draft:
            raise PublishValidationError(f"Review {review_id} has no draft reply to publish.")
        result = client.reply_to_review(review.listing_id, review.google_review_name, draft)
    except Exception as exc:
        db.rollback()
        review.response_status = ReplyStatus.FAILED
        review.reply_error = str(exc)
        db.commit()
        publish_items_total.labels(kind="review_reply", outcome="failed").inc()
        logger.warning("publish.review_reply.failed", extra={"listing_id": review.listing_id, "error": str(exc)})
        raise

    now = datetime.now(UTC)
    review.review_reply = result.comment or draft
    review.reply_time = result.update_time or now
    review.response_status = ReplyStatus.PUBLISHED
    review.reply_published_at = now
    review.reply_error = None
    db.commit()
    db.refresh(review)
    publish_items_total.labels(kind="review_reply", outcome="published").inc()
    record_activity(
        db,
        tenant_id=review.tenant_id,
        listing_id=review.listing_id,
        action="review_reply_published",
        description=f"Published reply to review from {review.reviewer_name}.",
        metadata={"review_id": review.id, "star_rating": review.star_rating},
    )
    return review


def validate_bulk_ids(raw_ids: Any) -> list[str]:
    if not isinstance(raw_ids, list) or not raw_ids:
        raise BulkPublishInputError("A non-empty list of ids is required.")
    if not all(isinstance(item, str) and item.strip() for item in raw_ids):
        raise BulkPublishInputError("Every id must be a non-empty string.")
    return list(raw_ids)


def plan_bulk_steps(item_ids: Sequence[str], delay_seconds: float) -> list[BulkStep]:
    return [BulkStep(item_id=item_id, delay_before_seconds=delay_seconds if index else 0.0) for index, item_id in enumerate(item_ids)]


def run_bulk(
    steps: Iterable[BulkStep],
    publish_one: Callable[[str], Any],
    *,
    sleep_fn: Callable[[float], None] = time.sleep,
) -> BulkPublishResult:
    """Run each step in order; a failing item is recorded and the batch moves on."""
    outcome = BulkPublishResult()
    for step in steps:
        if step.delay_before_seconds > 0:
            sleep_fn(step.delay_before_seconds)
        try:
            publish_one(step.item_id)
        except Exception as exc:  # noqa: BLE001
            outcome.results.append({"id": step.item_id, "success": False, "error": str(exc) or type(exc).__name__})
            continue
        outcome.results.append({"id": step.item_id, "success": True})
    return outcome


def bulk_publish_posts(
    db: Session,
    post_ids: Any,
    client: GoogleBusinessClient,
    *,
    delay_seconds: float | None = None,
    sleep_fn: Callable[[float], None] = time.sleep,
) -> BulkPublishResult:
    item_ids = validate_bulk_ids(post_ids)
    found = {row_id for (row_id,) in db.query(Post.id).filter(Post.id.in_(set(item_ids))).all()}
    missing = [item_id for item_id in dict.fromkeys(item_ids) if item_id not in found]
    if missing:
        raise BulkPublishNotFoundError(missing, entity="Posts")

    delay = get_settings().bulk_publish_delay_seconds if delay_seconds is None else delay_seconds
    result = run_bulk(
        plan_bulk_steps(item_ids, delay),
        lambda item_id: publish_post(db, item_id, client),
        sleep_fn=sleep_fn,
    )
    _log_bulk_summary("posts", result)
    return result


def bulk_publish_review_replies(
    db: Session,
    review_ids: Any,
    client: GoogleBusinessClient,
    *,
    delay_seconds: float | None = None,
    sleep_fn: Callable[[float], None] = time.sleep,
) -> BulkPublishResult:
    item_ids = validate_bulk_ids(review_ids)
    found = {row_id for (row_id,) in db.query(Review.id).filter(Review.id.in_(set(item_ids))).all()}
    missing = [item_id for item_id in dict.fromkeys(item_ids) if item_id not in found]
    if missing:
        raise BulkPublishNotFoundError(missing, entity="Reviews")

    delay = get_settings().bulk_publish_delay_seconds if delay_seconds is None else delay_seconds
    result = run_bulk(
        plan_bulk_steps(item_ids, delay),
        lambda item_id: publish_review_reply(db, item_id, client),
        sleep_fn=sleep_fn,
    )
    _log_bulk_summary("review_replies", result)
    return result


def _log_bulk_summary(kind: str, result: BulkPublishResult) -> None:
    summary = result.summary
    logger.info(
        f"publish.{kind}.bulk_completed total=%s published=%s failed=%s",
        summary["total"],
        summary["published"],
        summary["failed"],
        extra={"operation": f"bulk_publish_{kind}"},
    )
