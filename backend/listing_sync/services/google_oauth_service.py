from __future__ import annotations

from datetime import UTC, datetime
from typing import Any

import requests  # type: ignore[import-untyped]

from listing_sync.core.config import get_settings


class GoogleOAuthError(RuntimeError):
    def __init__(self, message: str, *, reason_code: str, status_code: int = 502) -> None:
        super().__init__(message)
        self.reason_code = reason_code
        self.status_code = status_code


def refresh_google_access_token(refresh_token: str) -> dict[str, Any]:
    settings = get_settings()
    if not refresh_token.strip():
        raise GoogleOAuthError(
            "Google OAuth refresh token required.",
            reason_code="refresh_token_missing",
            status_code=409,
        )
    try:
        response = requests.post(
            settings.google_oauth_token_endpoint,
            data={
                "refresh_token": refresh_token,
                "client_id": settings.google_oauth_client_id,
                "client_secret": settings.google_oauth_client_secret,
                "grant_type": "refresh_token",
            },
            timeout=settings.google_oauth_http_timeout_seconds,
        )
    except requests.RequestException as exc:
        raise GoogleOAuthError("Google OAuth token refresh failed.", reason_code="refresh_failed") from exc
    if response.status_code >= 400:
        raise GoogleOAuthError(
            f"Google OAuth token refresh failed with status {response.status_code}.",
            reason_code="refresh_failed",
        )
    return _normalize_token_payload(response)


def _normalize_token_payload(response: requests.Response) -> dict[str, Any]:
    try:
        payload = response.json()
    except ValueError as exc:
        raise GoogleOAuthError("Google OAuth token response is invalid.", reason_code="refresh_failed") from exc
    if not isinstance(payload, dict):
        raise GoogleOAuthError("Google OAuth token response is invalid.", reason_code="refresh_failed")

    access_token = str(payload.get("access_token", "")).strip()
    if not access_token:
        raise GoogleOAuthError("Google OAuth token response missing access_token.", reason_code="refresh_failed")
    try:
        expires_in = int(payload.get("expires_in", 3600))
    except (TypeError, ValueError):
        expires_in = 3600
    obtained_at = int(datetime.now(UTC).timestamp())
    normalized: dict[str, Any] = {
        "access_token": access_token,
        "expires_in": expires_in,
        "expires_at": obtained_at + expires_in,
        "token_type": str(payload.get("token_type", "Bearer")),
        "obtained_at": obtained_at,
    }
    if payload.get("scope"):
        normalized["scope"] = str(payload["scope"])
    refresh_token = str(payload.get("refresh_token", "")).strip()
    if refresh_token:
        normalized["refresh_token"] = refresh_token
    return normalized
