from __future__ import annotations

import json

import pytest

from listing_sync.core.errors import InvalidNotificationError
from listing_sync.models.audit import ActivityLog, NotificationChannel
from listing_sync.services.notification_service import handle_provider_notification, parse_notification


@pytest.fixture()
def enqueued() -> list[tuple[str, str]]:
    return []


@pytest.fixture()
def make_channel(db_session, listing):
    def _make(channel_id: str, channel_type: str, *, is_active: bool = True) -> NotificationChannel:
        channel = NotificationChannel(
            channel_id=channel_id,
            listing_id=listing.id,
            channel_type=channel_type,
            is_active=is_active,
        )
        db_session.add(channel)
        db_session.commit()
        return channel

    return _make


def _enqueue(bucket: list[tuple[str, str]]):
    return lambda family, listing_id: bucket.append((family, listing_id))


@pytest.mark.parametrize(
    "payload",
    [None, [], "text", {"channelId": "c-1"}, {"resourceState": "exists"}, {"channelId": " ", "resourceState": "exists"}],
)
def test_parse_notification_rejects_incomplete_payloads(payload) -> None:
    with pytest.raises(InvalidNotificationError) as exc_info:
        parse_notification(payload)
    assert exc_info.value.status_code == 400


def test_parse_notification_reads_camel_case_fields() -> None:
    notification = parse_notification(
        {"channelId": "c-1", "resourceState": "exists", "resourceId": "r-9", "resourceUri": "https://x", "extra": 1}
    )
    assert (notification.channel_id, notification.resource_state, notification.resource_id) == ("c-1", "exists", "r-9")


def test_sync_handshake_is_acknowledged_without_lookup(db_session, enqueued) -> None:
    result = handle_provider_notification(
        db_session,
        {"channelId": "unknown", "resourceState": "sync"},
        _enqueue(enqueued),
    )

    assert result == {"acknowledged": True}
    assert enqueued == []


def test_unknown_channel_is_acknowledged_but_unmatched(db_session, enqueued) -> None:
    result = handle_provider_notification(
        db_session,
        {"channelId": "ghost", "resourceState": "exists"},
        _enqueue(enqueued),
    )

    assert result == {"acknowledged": True, "matched": False}
    assert enqueued == []


def test_inactive_channel_is_ignored(db_session, make_channel, enqueued) -> None:
    make_channel("c-off", "reviews", is_active=False)

    result = handle_provider_notification(
        db_session,
        {"channelId": "c-off", "resourceState": "exists"},
        _enqueue(enqueued),
    )

    assert result["matched"] is False
    assert enqueued == []


@pytest.mark.parametrize(
    ("channel_type", "family", "action"),
    [
        ("reviews", "reviews", "review_notification_received"),
        ("locations", "location", "location_notification_received"),
    ],
)
def test_known_channel_enqueues_sync(db_session, listing, make_channel, enqueued, channel_type, family, action) -> None:
    make_channel("c-1", channel_type)

    result = handle_provider_notification(
        db_session,
        {"channelId": "c-1", "resourceState": "exists", "resourceId": "r-1"},
        _enqueue(enqueued),
    )

    assert result == {"acknowledged": True, "matched": True}
    assert enqueued == [(family, listing.id)]
    activity = db_session.query(ActivityLog).filter(ActivityLog.listing_id == listing.id).one()
    assert activity.action == action
    assert activity.tenant_id == listing.tenant_id


def test_unhandled_channel_type_is_logged_only(db_session, listing, make_channel, enqueued) -> None:
    make_channel("c-2", "media")

    result = handle_provider_notification(
        db_session,
        {"channelId": "c-2", "resourceState": "exists", "resourceId": "m-1"},
        _enqueue(enqueued),
    )

    assert result == {"acknowledged": True, "matched": True}
    assert enqueued == []
    activity = db_session.query(ActivityLog).filter(ActivityLog.listing_id == listing.id).one()
    assert activity.action == "google_notification_received"
    assert json.loads(activity.metadata_json)["channel_type"] == "media"
