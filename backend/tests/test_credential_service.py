from __future__ import annotations

from datetime import UTC, datetime

import pytest
import requests

from listing_sync.core.crypto import open_secret
from listing_sync.core.errors import CredentialUnavailableError
from listing_sync.models.listing import ListingCredential
from listing_sync.services import google_oauth_service
from listing_sync.services.credential_service import CredentialResolver, store_listing_credentials
from listing_sync.services.google_oauth_service import GoogleOAuthError, refresh_google_access_token


NOW = datetime(2026, 3, 1, 12, 0, tzinfo=UTC)
NOW_TS = int(NOW.timestamp())


class _FakeTokenResponse:
    def __init__(self, status_code: int, payload) -> None:
        self.status_code = status_code
        self._payload = payload

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload


def _resolver(db_session, refresh_calls: list[str], payload: dict | Exception | None = None) -> CredentialResolver:
    def _refresh(refresh_token: str) -> dict:
        refresh_calls.append(refresh_token)
        if isinstance(payload, Exception):
            raise payload
        return payload or {"access_token": "fresh-token", "expires_in": 3600, "expires_at": NOW_TS + 3600}

    return CredentialResolver(db_session, refresh_fn=_refresh, now_fn=lambda: NOW)


def test_valid_access_token_is_returned_without_refresh(db_session, listing) -> None:
    store_listing_credentials(
        db_session,
        listing_id=listing.id,
        credentials={"access_token": "live-token", "refresh_token": "r-1", "expires_at": NOW_TS + 3600},
    )
    calls: list[str] = []

    assert _resolver(db_session, calls).get_access_token(listing.id) == "live-token"
    assert calls == []


def test_token_inside_skew_window_is_refreshed_and_persisted(db_session, listing) -> None:
    store_listing_credentials(
        db_session,
        listing_id=listing.id,
        credentials={"access_token": "stale-token", "refresh_token": "r-1", "expires_at": NOW_TS + 60},
    )
    calls: list[str] = []

    token = _resolver(db_session, calls).get_access_token(listing.id)

    assert token == "fresh-token"
    assert calls == ["r-1"]
    row = db_session.query(ListingCredential).filter(ListingCredential.listing_id == listing.id).one()
    stored = open_secret(row.encrypted_secret_blob)
    assert stored["access_token"] == "fresh-token"
    assert stored["refresh_token"] == "r-1"
    assert stored["expires_at"] == NOW_TS + 3600


def test_missing_credential_is_reported_per_listing(db_session, listing) -> None:
    with pytest.raises(CredentialUnavailableError) as exc_info:
        _resolver(db_session, []).get_access_token(listing.id)

    assert exc_info.value.reason_code == "credential_missing"
    assert exc_info.value.listing_id == listing.id
    assert exc_info.value.status_code == 409


def test_expired_token_without_refresh_token_is_unavailable(db_session, listing) -> None:
    store_listing_credentials(
        db_session,
        listing_id=listing.id,
        credentials={"access_token": "old", "expires_at": NOW_TS - 10},
    )

    with pytest.raises(CredentialUnavailableError) as exc_info:
        _resolver(db_session, []).get_access_token(listing.id)

    assert exc_info.value.reason_code == "refresh_token_missing"


def test_refresh_failure_surfaces_as_credential_error(db_session, listing) -> None:
    store_listing_credentials(
        db_session,
        listing_id=listing.id,
        credentials={"access_token": "old", "refresh_token": "r-1", "expires_at": NOW_TS - 10},
    )
    failure = GoogleOAuthError("Google OAuth token refresh failed with status 400.", reason_code="refresh_failed")

    with pytest.raises(CredentialUnavailableError) as exc_info:
        _resolver(db_session, [], payload=failure).get_access_token(listing.id)

    assert exc_info.value.reason_code == "refresh_failed"


def test_undecryptable_credential_is_invalid(db_session, listing) -> None:
    store_listing_credentials(db_session, listing_id=listing.id, credentials={"access_token": "x"})
    row = db_session.query(ListingCredential).filter(ListingCredential.listing_id == listing.id).one()
    row.encrypted_secret_blob = '{"alg":"AES-256-GCM","ciphertext_b64":"AAAA"}'
    db_session.commit()

    with pytest.raises(CredentialUnavailableError) as exc_info:
        _resolver(db_session, []).get_access_token(listing.id)

    assert exc_info.value.reason_code == "credential_invalid"


def test_refresh_google_access_token_normalizes_payload(monkeypatch) -> None:
    captured: dict = {}

    def _fake_post(url, data, timeout):
        captured.update({"url": url, "data": data, "timeout": timeout})
        return _FakeTokenResponse(200, {"access_token": "abc", "expires_in": 1800, "scope": "business.manage"})

    monkeypatch.setattr(google_oauth_service.requests, "post", _fake_post)

    payload = refresh_google_access_token("refresh-1")

    assert payload["access_token"] == "abc"
    assert payload["expires_at"] == payload["obtained_at"] + 1800
    assert payload["scope"] == "business.manage"
    assert captured["data"]["grant_type"] == "refresh_token"
    assert captured["data"]["client_id"] == "test-client-id"


def test_refresh_google_access_token_rejects_error_status(monkeypatch) -> None:
    monkeypatch.setattr(
        google_oauth_service.requests,
        "post",
        lambda url, data, timeout: _FakeTokenResponse(400, {"error": "invalid_grant"}),
    )

    with pytest.raises(GoogleOAuthError) as exc_info:
        refresh_google_access_token("refresh-1")
    assert exc_info.value.reason_code == "refresh_failed"


def test_refresh_google_access_token_wraps_transport_errors(monkeypatch) -> None:
    def _boom(url, data, timeout):
        raise requests.ConnectionError("down")

    monkeypatch.setattr(google_oauth_service.requests, "post", _boom)

    with pytest.raises(GoogleOAuthError):
        refresh_google_access_token("refresh-1")
