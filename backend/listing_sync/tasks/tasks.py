from __future__ import annotations

import logging

from celery import Task

from listing_sync.db.session import session_scope
from listing_sync.providers.errors import ProviderError
from listing_sync.providers.google_business import build_google_business_client
from listing_sync.services import audit_service, publish_service, sync_service
from listing_sync.tasks.celery_app import celery_app


logger = logging.getLogger("listing_sync.tasks")

RETRY_COUNTDOWN_SECONDS = 60
MAX_PROVIDER_RETRIES = 2


@celery_app.task(name="listings.sync_location", bind=True, max_retries=MAX_PROVIDER_RETRIES)
def listings_sync_location(self, listing_id: str) -> dict:
    with session_scope() as db:
        try:
            listing = sync_service.sync_location(db, listing_id, build_google_business_client(db))
        except ProviderError as exc:
            _retry_if_transient(self, exc, listing_id=listing_id)
            raise
        return {"listing_id": listing.id, "status": "synced"}


@celery_app.task(name="reviews.sync", bind=True, max_retries=MAX_PROVIDER_RETRIES)
def reviews_sync(self, listing_id: str) -> dict:
    with session_scope() as db:
        try:
            result = sync_service.sync_reviews(db, listing_id, build_google_business_client(db))
        except ProviderError as exc:
            _retry_if_transient(self, exc, listing_id=listing_id)
            raise
        return {"listing_id": listing_id, "synced": result.synced, "new_reviews": result.new_reviews}


@celery_app.task(name="performance.sync", bind=True, max_retries=MAX_PROVIDER_RETRIES)
def performance_sync(self, listing_id: str) -> dict:
    with session_scope() as db:
        try:
            days = sync_service.sync_performance(db, listing_id, build_google_business_client(db))
        except ProviderError as exc:
            _retry_if_transient(self, exc, listing_id=listing_id)
            raise
        return {"listing_id": listing_id, "days": days}


@celery_app.task(name="keywords.sync", bind=True, max_retries=MAX_PROVIDER_RETRIES)
def keywords_sync(self, listing_id: str) -> dict:
    with session_scope() as db:
        try:
            result = sync_service.sync_search_keywords(db, listing_id, build_google_business_client(db))
        except ProviderError as exc:
            _retry_if_transient(self, exc, listing_id=listing_id)
            raise
        return {"listing_id": listing_id, "synced": result.synced, "sync_period": result.sync_period}


@celery_app.task(name="media.sync", bind=True, max_retries=MAX_PROVIDER_RETRIES)
def media_sync(self, listing_id: str) -> dict:
    with session_scope() as db:
        try:
            synced = sync_service.sync_media(db, listing_id, build_google_business_client(db))
        except ProviderError as exc:
            _retry_if_transient(self, exc, listing_id=listing_id)
            raise
        return {"listing_id": listing_id, "synced": synced}


@celery_app.task(name="posts.publish")
def posts_publish(post_id: str) -> dict:
    # Not retried: a failed publish is written back to the post and re-triggered by hand.
    with session_scope() as db:
        post = publish_service.publish_post(db, post_id, build_google_business_client(db))
        return {"post_id": post.id, "google_post_id": post.google_post_id, "status": post.status.value}


@celery_app.task(name="audits.run")
def audits_run(listing_id: str) -> dict:
    with session_scope() as db:
        record = audit_service.run_audit(db, listing_id)
        return {"audit_id": record.id, "letter_grade": record.letter_grade, "percentage": record.percentage}


SYNC_TASKS_BY_FAMILY: dict[str, Task] = {
    "location": listings_sync_location,
    "reviews": reviews_sync,
    "performance": performance_sync,
    "keywords": keywords_sync,
    "media": media_sync,
}


def enqueue_sync(family: str, listing_id: str) -> None:
    task = SYNC_TASKS_BY_FAMILY.get(family)
    if task is None:
        raise ValueError(f"Unknown sync family: {family}")
    task.delay(listing_id)


def _retry_if_transient(task: Task, exc: ProviderError, *, listing_id: str) -> None:
    if not exc.retryable:
        return
    logger.warning(
        "tasks.provider.retry task=%s",
        task.name,
        extra={"listing_id": listing_id, "reason_code": exc.reason_code, "error": str(exc)},
    )
    raise task.retry(exc=exc, countdown=RETRY_COUNTDOWN_SECONDS)
