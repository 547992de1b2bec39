from types import SimpleNamespace

import httpx
import pytest

from listing_sync.models.review import Review
from listing_sync.providers.errors import ProviderBadRequestError, ProviderDependencyError
from listing_sync.tasks import tasks
from listing_sync.tasks.celery_app import _queue_for_task_name, celery_app


REVIEWS_PATH = "/v4/accounts/900/locations/123/reviews"


@pytest.fixture()
def worker_client(monkeypatch, google_client):
    monkeypatch.setattr(tasks, "build_google_business_client", lambda _db: google_client)
    return google_client


@pytest.mark.parametrize(
    ("task_name", "queue"),
    [
        ("reviews.sync", "sync_queue"),
        ("listings.sync_location", "sync_queue"),
        ("media.sync", "sync_queue"),
        ("posts.publish", "publish_queue"),
        ("audits.run", "audit_queue"),
        ("maintenance.vacuum", "default_queue"),
        (None, "default_queue"),
    ],
)
def test_queue_routing(task_name, queue):
    assert _queue_for_task_name(task_name) == queue


def test_celery_runs_eagerly_in_tests():
    assert celery_app.conf.task_always_eager is True
    assert {queue.name for queue in celery_app.conf.task_queues} == {
        "sync_queue",
        "publish_queue",
        "audit_queue",
        "default_queue",
    }


def test_reviews_sync_task_writes_through_worker_session(db_session, listing, google_api, worker_client):
    google_api.add("GET", REVIEWS_PATH, {"reviews": [{"reviewId": "r1", "starRating": "FIVE"}]})

    result = tasks.reviews_sync.delay(listing.id).get()

    assert result == {"listing_id": listing.id, "synced": 1, "new_reviews": 1}
    assert db_session.query(Review).filter(Review.listing_id == listing.id).count() == 1


def test_transient_provider_failure_requests_retry(db_session, listing, google_api, worker_client):
    google_api.add("GET", REVIEWS_PATH, httpx.Response(503, json={"error": {"code": 503, "status": "UNAVAILABLE"}}))

    with pytest.raises(ProviderDependencyError):
        tasks.reviews_sync.delay(listing.id)


def test_permanent_provider_failure_propagates(db_session, listing, google_api, worker_client):
    google_api.add("GET", REVIEWS_PATH, httpx.Response(400, json={"error": {"code": 400, "status": "INVALID_ARGUMENT"}}))

    with pytest.raises(ProviderBadRequestError):
        tasks.reviews_sync.delay(listing.id)
    assert len(google_api.calls("GET", REVIEWS_PATH)) == 1


def test_audit_task_returns_grade(db_session, listing):
    result = tasks.audits_run.delay(listing.id).get()

    assert result["letter_grade"] == "F"
    assert result["percentage"] == pytest.approx(15 / 160 * 100)


def test_enqueue_sync_dispatches_family_task(monkeypatch):
    dispatched: list[str] = []
    monkeypatch.setitem(tasks.SYNC_TASKS_BY_FAMILY, "media", SimpleNamespace(delay=dispatched.append))

    tasks.enqueue_sync("media", "listing-1")

    assert dispatched == ["listing-1"]
    with pytest.raises(ValueError):
        tasks.enqueue_sync("photos", "listing-1")
