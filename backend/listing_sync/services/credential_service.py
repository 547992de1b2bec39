from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any

from sqlalchemy.orm import Session

from listing_sync.core.config import get_settings
from listing_sync.core.crypto import CredentialCryptoError, open_secret, seal_secret
from listing_sync.core.errors import CredentialUnavailableError
from listing_sync.models.listing import ListingCredential
from listing_sync.services.google_oauth_service import GoogleOAuthError, refresh_google_access_token


logger = logging.getLogger("listing_sync.credentials")


class CredentialResolver:
    """Hands out live bearer tokens per listing, refreshing and persisting them when close to expiry."""

    def __init__(
        self,
        db: Session,
        *,
        refresh_fn: Callable[[str], dict[str, Any]] = refresh_google_access_token,
        now_fn: Callable[[], datetime] = lambda: datetime.now(UTC),
    ) -> None:
        self._db = db
        self._refresh_fn = refresh_fn
        self._now_fn = now_fn

    def get_access_token(self, listing_id: str) -> str:
        row = self._db.query(ListingCredential).filter(ListingCredential.listing_id == listing_id).first()
        if row is None:
            raise CredentialUnavailableError(
                f"No Google credential is linked to listing {listing_id}.",
                listing_id=listing_id,
                reason_code="credential_missing",
            )
        try:
            credentials = open_secret(row.encrypted_secret_blob)
        except CredentialCryptoError as exc:
            raise CredentialUnavailableError(str(exc), listing_id=listing_id, reason_code="credential_invalid") from exc

        access_token = str(credentials.get("access_token", "")).strip()
        expires_at = _safe_int(credentials.get("expires_at"))
        now = int(self._now_fn().timestamp())
        skew = get_settings().google_oauth_access_token_skew_seconds
        if access_token and expires_at is not None and expires_at > now + skew:
            return access_token
        return self._refresh(row, listing_id=listing_id, credentials=credentials)

    def _refresh(self, row: ListingCredential, *, listing_id: str, credentials: dict[str, Any]) -> str:
        refresh_token = str(credentials.get("refresh_token", "")).strip()
        if not refresh_token:
            raise CredentialUnavailableError(
                f"Listing {listing_id} credential has no refresh token.",
                listing_id=listing_id,
                reason_code="refresh_token_missing",
            )
        try:
            refreshed = self._refresh_fn(refresh_token)
        except GoogleOAuthError as exc:
            logger.warning(
                "credentials.refresh.failed",
                extra={"listing_id": listing_id, "reason_code": exc.reason_code, "error": str(exc)},
            )
            raise CredentialUnavailableError(str(exc), listing_id=listing_id, reason_code="refresh_failed") from exc

        merged = dict(credentials)
        merged.update(refreshed)
        merged.setdefault("refresh_token", refresh_token)
        _write_sealed(row, merged)
        self._db.commit()
        logger.info("credentials.refreshed", extra={"listing_id": listing_id})
        return str(merged["access_token"])


def store_listing_credentials(db: Session, *, listing_id: str, credentials: dict[str, Any]) -> ListingCredential:
    row = db.query(ListingCredential).filter(ListingCredential.listing_id == listing_id).first()
    if row is None:
        row = ListingCredential(listing_id=listing_id)
        db.add(row)
    _write_sealed(row, credentials)
    db.commit()
    db.refresh(row)
    return row


def _write_sealed(row: ListingCredential, credentials: dict[str, Any]) -> None:
    sealed = seal_secret(credentials)
    row.encrypted_secret_blob = sealed.blob
    row.key_reference = sealed.key_reference
    row.key_version = sealed.key_version
    row.updated_at = datetime.now(UTC)


def _safe_int(value: Any) -> int | None:
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None
