from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from sqlalchemy.orm import Session

from listing_sync.api.deps import get_google_client
from listing_sync.api.response import envelope
from listing_sync.db.session import get_db
from listing_sync.models.post import Post
from listing_sync.models.review import Review
from listing_sync.providers.google_business import GoogleBusinessClient
from listing_sync.services import publish_service


router = APIRouter(tags=["publish"])


def _post_out(post: Post) -> dict:
    return {
        "id": post.id,
        "listing_id": post.listing_id,
        "status": post.status.value,
        "google_post_id": post.google_post_id,
        "published_at": post.published_at.isoformat() if post.published_at else None,
    }


def _review_out(review: Review) -> dict:
    return {
        "id": review.id,
        "listing_id": review.listing_id,
        "response_status": review.response_status.value,
        "review_reply": review.review_reply,
        "reply_published_at": review.reply_published_at.isoformat() if review.reply_published_at else None,
    }


@router.post("/posts/bulk-publish")
def bulk_publish_posts(
    request: Request,
    body: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    client: GoogleBusinessClient = Depends(get_google_client),
) -> dict:
    result = publish_service.bulk_publish_posts(db, body.get("post_ids"), client)
    return envelope(request, result.to_dict())


@router.post("/posts/{post_id}/publish")
def publish_post(
    request: Request,
    post_id: str,
    db: Session = Depends(get_db),
    client: GoogleBusinessClient = Depends(get_google_client),
) -> dict:
    post = publish_service.publish_post(db, post_id, client)
    return envelope(request, {"post": _post_out(post)})


@router.post("/reviews/bulk-publish")
def bulk_publish_review_replies(
    request: Request,
    body: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    client: GoogleBusinessClient = Depends(get_google_client),
) -> dict:
    result = publish_service.bulk_publish_review_replies(db, body.get("review_ids"), client)
    return envelope(request, result.to_dict())


@router.post("/reviews/{review_id}/reply/publish")
def publish_review_reply(
    request: Request,
    review_id: str,
    db: Session = Depends(get_db),
    client: GoogleBusinessClient = Depends(get_google_client),
) -> dict:
    review = publish_service.publish_review_reply(db, review_id, client)
    return envelope(request, {"review": _review_out(review)})
