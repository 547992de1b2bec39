from __future__ import annotations

from collections.abc import Callable
from typing import Any

from fastapi import APIRouter, Body, Depends, Request
from sqlalchemy.orm import Session

from listing_sync.api.deps import get_sync_enqueuer
from listing_sync.api.response import envelope
from listing_sync.db.session import get_db
from listing_sync.services.notification_service import handle_provider_notification


router = APIRouter(tags=["webhooks"])


@router.post("/webhooks/google")
def receive_google_notification(
    request: Request,
    payload: Any = Body(None),
    db: Session = Depends(get_db),
    enqueue: Callable[[str, str], Any] = Depends(get_sync_enqueuer),
) -> dict:
    return envelope(request, handle_provider_notification(db, payload, enqueue))
