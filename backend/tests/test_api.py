import httpx

from listing_sync.api.deps import get_sync_enqueuer, get_text_generator
from listing_sync.main import app
from listing_sync.models.audit import NotificationChannel
from listing_sync.models.post import Post, PostStatus
from listing_sync.services.narrative_service import GeneratedText


REVIEWS_PATH = "/v4/accounts/900/locations/123/reviews"
POSTS_PATH = "/v4/accounts/900/locations/123/localPosts"


def _error(response) -> dict:
    body = response.json()
    assert body["success"] is False
    return body["errors"][0]


def test_health_and_metrics_endpoints(client):
    assert client.get("/health").json() == {"status": "ok"}
    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "http_requests_total" in metrics.text


def test_sync_reviews_endpoint(client, listing, google_api):
    google_api.add("GET", REVIEWS_PATH, {"reviews": [{"reviewId": "r1", "starRating": "FOUR"}], "averageRating": 4.0})

    response = client.post(f"/api/v1/listings/{listing.id}/sync/reviews", headers={"X-Request-ID": "req-1"})

    assert response.status_code == 200
    body = response.json()
    assert body["data"] == {"family": "reviews", "listing_id": listing.id, "synced": 1, "new_reviews": 1}
    assert body["meta"]["request_id"] == "req-1"
    assert response.headers["X-Request-ID"] == "req-1"


def test_sync_endpoint_rejects_unknown_family(client, listing):
    response = client.post(f"/api/v1/listings/{listing.id}/sync/everything")

    assert response.status_code == 400
    error = _error(response)
    assert error["code"] == "http_400"
    assert error["details"]["reason_code"] == "invalid_input"


def test_sync_endpoint_unknown_listing(client):
    response = client.post("/api/v1/listings/missing/sync/location")

    assert response.status_code == 404
    assert _error(response)["code"] == "listing_not_found"


def test_sync_endpoint_maps_provider_failures_to_502(client, listing, google_api):
    google_api.add(
        "GET",
        REVIEWS_PATH,
        httpx.Response(429, json={"error": {"code": 429, "message": "Too many requests", "status": "RESOURCE_EXHAUSTED"}}),
    )

    response = client.post(f"/api/v1/listings/{listing.id}/sync/reviews")

    assert response.status_code == 502
    error = _error(response)
    assert error["code"] == "provider_rate_limited"
    assert error["details"]["reason_code"] == "rate_limited"
    assert error["details"]["retryable"] is True
    assert error["details"]["provider_status"] == "RESOURCE_EXHAUSTED"


def test_bulk_review_sync_reports_per_listing(client, listing, make_listing, google_api):
    unlinked = make_listing(google_location_name=None)
    google_api.add("GET", REVIEWS_PATH, {"reviews": []})

    response = client.post("/api/v1/listings/sync/reviews", json={"listing_ids": [listing.id, unlinked.id]})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["summary"] == {"total": 2, "synced": 1, "failed": 1}
    assert [item["success"] for item in data["results"]] == [True, False]


def test_bulk_review_sync_validates_input(client):
    response = client.post("/api/v1/listings/sync/reviews", json={"listing_ids": []})

    assert response.status_code == 400
    assert _error(response)["details"]["reason_code"] == "invalid_input"


def test_bulk_publish_posts_input_and_missing_ids(client, db_session, listing):
    post = Post(tenant_id=listing.tenant_id, listing_id=listing.id, body="Weekend special")
    db_session.add(post)
    db_session.commit()

    invalid = client.post("/api/v1/posts/bulk-publish", json={"post_ids": "not-a-list"})
    assert invalid.status_code == 400
    assert _error(invalid)["code"] == "invalid_input"

    missing = client.post("/api/v1/posts/bulk-publish", json={"post_ids": [post.id, "ghost"]})
    assert missing.status_code == 404
    error = _error(missing)
    assert error["code"] == "not_found"
    assert error["details"]["missing_ids"] == ["ghost"]


def test_bulk_publish_posts_returns_results_and_summary(client, db_session, listing, google_api):
    posts = [Post(tenant_id=listing.tenant_id, listing_id=listing.id, body=f"Update {index}") for index in range(2)]
    db_session.add_all(posts)
    db_session.commit()
    google_api.add("POST", POSTS_PATH, {"name": "localPosts/a"}, {"name": "localPosts/b"})

    response = client.post("/api/v1/posts/bulk-publish", json={"post_ids": [post.id for post in posts]})

    assert response.status_code == 200
    data = response.json()["data"]
    assert data["summary"] == {"total": 2, "published": 2, "failed": 0}
    assert [item["id"] for item in data["results"]] == [post.id for post in posts]


def test_publish_post_failure_returns_provider_details(client, db_session, listing, google_api):
    post = Post(tenant_id=listing.tenant_id, listing_id=listing.id, body="Weekend special")
    db_session.add(post)
    db_session.commit()
    google_api.add(
        "POST",
        POSTS_PATH,
        httpx.Response(403, json={"error": {"code": 403, "message": "Caller lacks permission", "status": "PERMISSION_DENIED"}}),
    )

    response = client.post(f"/api/v1/posts/{post.id}/publish")

    assert response.status_code == 502
    assert _error(response)["details"]["reason_code"] == "permission_denied"
    db_session.refresh(post)
    assert post.status == PostStatus.FAILED


def test_audit_endpoints(client, listing):
    created = client.post(f"/api/v1/listings/{listing.id}/audits")

    assert created.status_code == 201
    audit = created.json()["data"]["audit"]
    assert audit["listing_id"] == listing.id
    assert audit["max_score"] == 160
    assert len(audit["categories"]) == 6

    fetched = client.get(f"/api/v1/audits/{audit['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["data"]["audit"]["letter_grade"] == audit["letter_grade"]

    missing = client.get("/api/v1/audits/missing")
    assert missing.status_code == 404
    assert _error(missing)["code"] == "audit_not_found"


def test_audit_narrative_endpoint(client, listing):
    class _Generator:
        def generate(self, system_prompt, user_prompt, *, max_tokens, temperature):
            return GeneratedText(content="Solid foundations; post more often.", model="fake-model")

    app.dependency_overrides[get_text_generator] = lambda: _Generator()
    audit_id = client.post(f"/api/v1/listings/{listing.id}/audits").json()["data"]["audit"]["id"]

    response = client.post(f"/api/v1/audits/{audit_id}/narrative")

    assert response.status_code == 200
    assert response.json()["data"] == {
        "audit_id": audit_id,
        "narrative": "Solid foundations; post more often.",
        "model": "fake-model",
    }


def test_google_webhook_enqueues_sync(client, db_session, listing):
    db_session.add(NotificationChannel(channel_id="chan-1", listing_id=listing.id, channel_type="reviews"))
    db_session.commit()
    enqueued: list[tuple[str, str]] = []
    app.dependency_overrides[get_sync_enqueuer] = lambda: (lambda family, listing_id: enqueued.append((family, listing_id)))

    response = client.post("/api/v1/webhooks/google", json={"channelId": "chan-1", "resourceState": "exists"})

    assert response.status_code == 200
    assert response.json()["data"] == {"acknowledged": True, "matched": True}
    assert enqueued == [("reviews", listing.id)]


def test_google_webhook_rejects_incomplete_payload(client):
    response = client.post("/api/v1/webhooks/google", json={"resourceState": "exists"})

    assert response.status_code == 400
    error = _error(response)
    assert error["code"] == "invalid_payload"
    assert error["message"] == "Missing required notification fields"
