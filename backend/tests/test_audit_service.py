from __future__ import annotations

import json
from datetime import UTC, datetime, timedelta

import pytest

from listing_sync.core.errors import AuditNotFoundError, ListingNotFoundError
from listing_sync.models.audit import ActivityLog, AuditRecord
from listing_sync.models.insights import MediaItem
from listing_sync.models.post import Post, PostStatus
from listing_sync.models.review import ReplyStatus, Review
from listing_sync.services import audit_service


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)


@pytest.fixture()
def populated_listing(db_session, make_listing):
    listing = make_listing(
        phone="+64 9 555 0100",
        website="https://harbour.example",
        address_line1="1 Quay Street",
        primary_category="Bakery",
        additional_categories_json=json.dumps(["Cafe"]),
        regular_hours_json=json.dumps({"periods": [{"openDay": "MONDAY"}]}),
        special_hours_json=json.dumps({}),
        description="Wood-fired bread since 1998.",
    )

    def _post(status: PostStatus, published_at: datetime | None) -> Post:
        return Post(
            tenant_id=listing.tenant_id,
            listing_id=listing.id,
            body="Update",
            status=status,
            published_at=published_at,
        )

    db_session.add_all(
        [
            _post(PostStatus.PUBLISHED, NOW - timedelta(days=2)),
            _post(PostStatus.PUBLISHED, NOW - timedelta(days=10)),
            _post(PostStatus.PUBLISHED, NOW - timedelta(days=40)),
            _post(PostStatus.DRAFT, None),
        ]
    )

    def _review(review_id: str, rating: int | None, status: ReplyStatus, reviewed_at: datetime) -> Review:
        return Review(
            tenant_id=listing.tenant_id,
            listing_id=listing.id,
            google_review_id=review_id,
            star_rating=rating,
            response_status=status,
            reviewed_at=reviewed_at,
        )

    db_session.add_all(
        [
            _review("r1", 5, ReplyStatus.PUBLISHED, NOW - timedelta(days=20)),
            _review("r2", 4, ReplyStatus.APPROVED, NOW - timedelta(days=6)),
            _review("r3", None, ReplyStatus.PENDING, NOW - timedelta(days=3)),
            _review("r4", 3, ReplyStatus.PENDING, NOW - timedelta(hours=2)),
        ]
    )
    db_session.add_all(
        [
            MediaItem(tenant_id=listing.tenant_id, listing_id=listing.id, google_media_name=f"media/{index}")
            for index in range(3)
        ]
    )
    db_session.commit()
    return listing


def test_collect_listing_facts_reads_local_state(db_session, populated_listing) -> None:
    facts = audit_service.collect_listing_facts(db_session, populated_listing, now=NOW)

    assert facts.has_address is True
    assert facts.has_hours is True
    assert facts.has_holiday_hours is False
    assert facts.additional_category_count == 1
    assert facts.photo_count == 3
    assert facts.has_recent_post is True
    assert facts.monthly_post_count == 2
    assert facts.review_count == 4
    assert facts.average_rating == pytest.approx(4.0)
    assert facts.responded_count == 2
    assert facts.overdue_pending_count == 1
    assert facts.has_attributes is False
    assert facts.has_products is False


def test_collect_listing_facts_for_bare_listing(db_session, make_listing) -> None:
    facts = audit_service.collect_listing_facts(db_session, make_listing(), now=NOW)

    assert facts.review_count == 0
    assert facts.average_rating == 0.0
    assert facts.has_recent_post is False
    assert facts.photo_count == 0


def test_run_audit_persists_record_and_activity(db_session, populated_listing) -> None:
    updated_before = populated_listing.updated_at

    record = audit_service.run_audit(db_session, populated_listing.id, now=NOW)

    assert record.max_score == 160
    assert record.percentage == pytest.approx(record.overall_score / 160 * 100)
    assert record.letter_grade == "D"
    categories = json.loads(record.categories_json)
    assert [item["category"] for item in categories][0] == "Business Information"
    recommendations = json.loads(record.recommendations_json)
    priorities = [item["priority"] for item in recommendations]
    assert priorities == sorted(priorities, key=["high", "medium", "low"].index)
    audit_data = json.loads(record.audit_data_json)
    assert audit_data["business_name"] == "Harbour Bakery"
    assert audit_data["photo_count"] == 3

    db_session.refresh(populated_listing)
    assert populated_listing.updated_at == updated_before

    activity = db_session.query(ActivityLog).filter(ActivityLog.action == "profile_audit_completed").one()
    metadata = json.loads(activity.metadata_json)
    assert metadata["audit_id"] == record.id
    assert metadata["overall_score"] == record.letter_grade
    assert metadata["recommendation_count"] == len(recommendations)
    assert activity.description.startswith(f"Profile audit completed: {record.letter_grade} (")


def test_rerunning_an_audit_adds_a_new_record(db_session, populated_listing) -> None:
    first = audit_service.run_audit(db_session, populated_listing.id, now=NOW)
    first_categories = first.categories_json

    second = audit_service.run_audit(db_session, populated_listing.id, now=NOW + timedelta(days=1))

    assert second.id != first.id
    assert db_session.query(AuditRecord).filter(AuditRecord.listing_id == populated_listing.id).count() == 2
    db_session.refresh(first)
    assert first.categories_json == first_categories


def test_run_audit_unknown_listing(db_session) -> None:
    with pytest.raises(ListingNotFoundError):
        audit_service.run_audit(db_session, "missing")


def test_get_audit_and_serialize(db_session, populated_listing) -> None:
    record = audit_service.run_audit(db_session, populated_listing.id, now=NOW)

    payload = audit_service.serialize_audit(audit_service.get_audit(db_session, record.id))

    assert payload["id"] == record.id
    assert payload["listing_id"] == populated_listing.id
    assert payload["letter_grade"] == record.letter_grade
    assert len(payload["categories"]) == 6
    assert payload["recommendations"][0]["priority"] == "high"
    assert payload["created_at"].startswith("2026-03-01T12:00:00")

    with pytest.raises(AuditNotFoundError):
        audit_service.get_audit(db_session, "missing")
