from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel, ConfigDict, ValidationError
from pydantic.alias_generators import to_camel
from sqlalchemy.orm import Session

from listing_sync.core.errors import InvalidNotificationError
from listing_sync.models.audit import NotificationChannel
from listing_sync.models.listing import Listing
from listing_sync.services.activity_service import record_activity


logger = logging.getLogger("listing_sync.notifications")

# channel type -> (sync job family, activity action)
CHANNEL_ROUTES: dict[str, tuple[str, str]] = {
    "reviews": ("reviews", "review_notification_received"),
    "locations": ("location", "location_notification_received"),
}


class ProviderNotification(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    channel_id: str
    resource_state: str
    resource_id: str | None = None
    resource_uri: str | None = None


def parse_notification(payload: Any) -> ProviderNotification:
    if not isinstance(payload, dict):
        raise InvalidNotificationError("Missing required notification fields")
    try:
        notification = ProviderNotification.model_validate(payload)
    except ValidationError as exc:
        raise InvalidNotificationError("Missing required notification fields") from exc
    if not notification.channel_id.strip() or not notification.resource_state.strip():
        raise InvalidNotificationError("Missing required notification fields")
    return notification


def handle_provider_notification(
    db: Session,
    payload: Any,
    enqueue: Callable[[str, str], Any],
) -> dict[str, bool]:
    """Route a push notification to a sync job.

    ``enqueue(family, listing_id)`` schedules the job; the sync itself never runs inline.
    """
    notification = parse_notification(payload)
    if notification.resource_state == "sync":
        return {"acknowledged": True}

    channel = (
        db.query(NotificationChannel)
        .filter(NotificationChannel.channel_id == notification.channel_id, NotificationChannel.is_active.is_(True))
        .first()
    )
    if channel is None:
        logger.warning("notifications.channel.unknown channel_id=%s", notification.channel_id)
        return {"acknowledged": True, "matched": False}

    listing = db.get(Listing, channel.listing_id)
    tenant_id = listing.tenant_id if listing is not None else None
    route = CHANNEL_ROUTES.get(channel.channel_type)
    if route is None:
        logger.info(
            "notifications.channel.unhandled channel_type=%s",
            channel.channel_type,
            extra={"listing_id": channel.listing_id},
        )
        record_activity(
            db,
            tenant_id=tenant_id,
            listing_id=channel.listing_id,
            action="google_notification_received",
            description=f"Unhandled Google notification for channel type: {channel.channel_type}",
            metadata={
                "channel_id": notification.channel_id,
                "channel_type": channel.channel_type,
                "resource_state": notification.resource_state,
                "resource_id": notification.resource_id,
            },
        )
        return {"acknowledged": True, "matched": True}

    family, action = route
    enqueue(family, channel.listing_id)
    logger.info(
        "notifications.sync.enqueued family=%s",
        family,
        extra={"listing_id": channel.listing_id, "operation": "handle_provider_notification"},
    )
    record_activity(
        db,
        tenant_id=tenant_id,
        listing_id=channel.listing_id,
        action=action,
        description=f"Google sent a {family} update notification, sync queued",
        metadata={"channel_id": notification.channel_id, "resource_state": notification.resource_state},
    )
    return {"acknowledged": True, "matched": True}
