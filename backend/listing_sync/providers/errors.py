from __future__ import annotations

from typing import Any

import httpx


class ProviderError(Exception):
    """A failed provider call, classified from the HTTP status and the provider's error body."""

    error_code = "provider_error"
    reason_code = "internal_error"
    retryable = False
    severity = "error"
    default_message = "Provider request failed."

    def __init__(
        self,
        message: str | None = None,
        *,
        status_code: int | None = None,
        provider_status: str | None = None,
        provider_code: int | None = None,
        provider_message: str | None = None,
        upstream_payload: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message or self.default_message)
        self.status_code = status_code
        self.provider_status = provider_status
        self.provider_code = provider_code
        self.provider_message = provider_message
        self.upstream_payload = upstream_payload

    def to_details(self) -> dict[str, Any]:
        return {
            "error_code": self.error_code,
            "reason_code": self.reason_code,
            "retryable": self.retryable,
            "status_code": self.status_code,
            "provider_status": self.provider_status,
            "provider_code": self.provider_code,
            "provider_message": self.provider_message,
        }


class ProviderTimeoutError(ProviderError):
    error_code = "provider_timeout"
    reason_code = "timeout"
    retryable = True
    default_message = "Provider request timed out."


class ProviderConnectionError(ProviderError):
    error_code = "provider_connection"
    reason_code = "connection_error"
    retryable = True
    default_message = "Provider connection failed."


class ProviderRateLimitError(ProviderError):
    error_code = "provider_rate_limited"
    reason_code = "rate_limited"
    retryable = True
    severity = "warning"
    default_message = "Provider rate-limited request."


class ProviderQuotaExceededError(ProviderError):
    error_code = "provider_quota_exhausted"
    reason_code = "quota_exhausted"
    severity = "warning"
    default_message = "Provider quota exhausted."


class ProviderAuthError(ProviderError):
    error_code = "provider_auth"
    reason_code = "auth_failed"
    severity = "critical"
    default_message = "Provider authentication failed."


class ProviderPermissionError(ProviderError):
    error_code = "provider_permission_denied"
    reason_code = "permission_denied"
    severity = "critical"
    default_message = "Provider denied access to the resource."


class ProviderNotFoundError(ProviderError):
    error_code = "provider_not_found"
    reason_code = "not_found"
    default_message = "Provider resource not found."


class ProviderConflictError(ProviderError):
    error_code = "provider_conflict"
    reason_code = "conflict"
    default_message = "Provider reported a conflicting resource state."


class ProviderBadRequestError(ProviderError):
    error_code = "provider_bad_request"
    reason_code = "bad_request"
    default_message = "Provider rejected request payload."


class ProviderResponseFormatError(ProviderError):
    error_code = "provider_response_invalid"
    reason_code = "response_invalid"
    default_message = "Provider response format is invalid."


class ProviderDependencyError(ProviderError):
    error_code = "provider_dependency_unavailable"
    reason_code = "dependency_unavailable"
    retryable = True
    default_message = "Provider dependency unavailable."


def error_from_response(response: httpx.Response, *, operation: str) -> ProviderError:
    status = response.status_code
    body = _safe_json(response)
    error = body.get("error") if body else None
    provider_status: str | None = None
    provider_code: int | None = None
    provider_message: str | None = None
    if isinstance(error, dict):
        provider_status = str(error["status"]) if error.get("status") is not None else None
        provider_code = error["code"] if isinstance(error.get("code"), int) else None
        provider_message = str(error["message"]) if error.get("message") is not None else None
    reason = _extract_reason(error)

    message = f"Google {operation} failed with status {status}"
    if provider_message:
        message = f"{message}: {provider_message}"

    if status == 401:
        error_cls: type[ProviderError] = ProviderAuthError
    elif status == 403:
        error_cls = ProviderQuotaExceededError if "quota" in reason else ProviderPermissionError
    elif status == 404:
        error_cls = ProviderNotFoundError
    elif status == 409:
        error_cls = ProviderConflictError
    elif status == 429:
        error_cls = ProviderRateLimitError
    elif status in {408, 504}:
        error_cls = ProviderTimeoutError
    elif 400 <= status < 500:
        error_cls = ProviderBadRequestError
    else:
        error_cls = ProviderDependencyError
    return error_cls(
        message,
        status_code=status,
        provider_status=provider_status,
        provider_code=provider_code,
        provider_message=provider_message,
        upstream_payload=body,
    )


def _safe_json(response: httpx.Response) -> dict[str, Any] | None:
    try:
        payload = response.json()
    except ValueError:
        return None
    if not isinstance(payload, dict):
        return None
    return payload


def _extract_reason(error: Any) -> str:
    if not isinstance(error, dict):
        return ""
    for key in ("details", "errors"):
        entries = error.get(key)
        if isinstance(entries, list):
            for entry in entries:
                if isinstance(entry, dict) and entry.get("reason"):
                    return str(entry["reason"]).lower()
    status_text = error.get("status")
    if isinstance(status_text, str):
        return status_text.lower()
    return ""
