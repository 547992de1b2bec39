from __future__ import annotations


class ListingSyncError(RuntimeError):
    """Base for local (non-provider) failures; carries the HTTP status routes should answer with."""

    default_reason_code = "listing_sync_error"
    default_status_code = 400

    def __init__(self, message: str, *, reason_code: str | None = None, status_code: int | None = None) -> None:
        super().__init__(message)
        self.reason_code = reason_code or self.default_reason_code
        self.status_code = status_code or self.default_status_code


class CredentialUnavailableError(ListingSyncError):
    default_reason_code = "credential_missing"
    default_status_code = 409

    def __init__(self, message: str, *, listing_id: str, reason_code: str | None = None) -> None:
        super().__init__(message, reason_code=reason_code)
        self.listing_id = listing_id


class ListingNotFoundError(ListingSyncError):
    default_reason_code = "listing_not_found"
    default_status_code = 404


class ListingNotLinkedError(ListingSyncError):
    default_reason_code = "listing_not_linked"
    default_status_code = 409


class PostNotFoundError(ListingSyncError):
    default_reason_code = "post_not_found"
    default_status_code = 404


class ReviewNotFoundError(ListingSyncError):
    default_reason_code = "review_not_found"
    default_status_code = 404


class AuditNotFoundError(ListingSyncError):
    default_reason_code = "audit_not_found"
    default_status_code = 404


class PublishValidationError(ListingSyncError):
    default_reason_code = "publish_validation_failed"
    default_status_code = 422


class BulkPublishInputError(ListingSyncError):
    default_reason_code = "invalid_input"
    default_status_code = 400


class BulkPublishNotFoundError(ListingSyncError):
    default_reason_code = "not_found"
    default_status_code = 404

    def __init__(self, missing_ids: list[str], *, entity: str = "Posts") -> None:
        super().__init__(f"{entity} not found: {', '.join(missing_ids)}")
        self.missing_ids = list(missing_ids)


class NarrativeUnavailableError(ListingSyncError):
    default_reason_code = "narrative_unavailable"
    default_status_code = 502


class InvalidNotificationError(ListingSyncError):
    default_reason_code = "invalid_payload"
    default_status_code = 400
