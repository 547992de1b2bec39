from __future__ import annotations

from collections.abc import Callable
from typing import Any

from fastapi import APIRouter, Body, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from listing_sync.api.deps import get_google_client, get_google_client_factory
from listing_sync.api.response import envelope
from listing_sync.db.session import get_db
from listing_sync.providers.google_business import GoogleBusinessClient
from listing_sync.services import sync_service


router = APIRouter(tags=["sync"])

SYNC_FAMILIES = ("location", "reviews", "performance", "keywords", "media")


@router.post("/listings/sync/reviews")
def bulk_sync_reviews(
    request: Request,
    body: dict[str, Any] = Body(...),
    db: Session = Depends(get_db),
    client_factory: Callable[[Session], GoogleBusinessClient] = Depends(get_google_client_factory),
) -> dict:
    listing_ids = body.get("listing_ids")
    if not isinstance(listing_ids, list) or not listing_ids or not all(isinstance(item, str) for item in listing_ids):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "listing_ids must be a non-empty list of ids.", "reason_code": "invalid_input"},
        )
    results = sync_service.sync_reviews_for_listings(db, listing_ids, client_factory)
    succeeded = sum(1 for item in results if item["success"])
    return envelope(
        request,
        {"results": results, "summary": {"total": len(results), "synced": succeeded, "failed": len(results) - succeeded}},
    )


@router.post("/listings/{listing_id}/sync/{family}")
def sync_listing_family(
    request: Request,
    listing_id: str,
    family: str,
    db: Session = Depends(get_db),
    client: GoogleBusinessClient = Depends(get_google_client),
) -> dict:
    if family not in SYNC_FAMILIES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": f"Unknown sync family '{family}'.", "reason_code": "invalid_input"},
        )

    if family == "location":
        listing = sync_service.sync_location(db, listing_id, client)
        data: dict[str, Any] = {
            "listing_id": listing.id,
            "business_name": listing.business_name,
            "location_synced_at": listing.location_synced_at.isoformat() if listing.location_synced_at else None,
        }
    elif family == "reviews":
        result = sync_service.sync_reviews(db, listing_id, client)
        data = {"listing_id": listing_id, "synced": result.synced, "new_reviews": result.new_reviews}
    elif family == "performance":
        data = {"listing_id": listing_id, "days": sync_service.sync_performance(db, listing_id, client)}
    elif family == "keywords":
        keywords = sync_service.sync_search_keywords(db, listing_id, client)
        data = {"listing_id": listing_id, "synced": keywords.synced, "sync_period": keywords.sync_period}
    else:
        data = {"listing_id": listing_id, "synced": sync_service.sync_media(db, listing_id, client)}
    return envelope(request, {"family": family, **data})
