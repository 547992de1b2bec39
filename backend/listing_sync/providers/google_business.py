from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterator, Sequence
from datetime import date
from typing import Any

import httpx
from sqlalchemy.orm import Session

from listing_sync.core.config import get_settings
from listing_sync.core.metrics import provider_request_duration_seconds, provider_requests_total
from listing_sync.providers.errors import (
    ProviderConnectionError,
    ProviderDependencyError,
    ProviderError,
    ProviderResponseFormatError,
    ProviderTimeoutError,
    error_from_response,
)
from listing_sync.providers.google_types import (
    DailyMetricsResponse,
    GoogleDate,
    GoogleLocation,
    GoogleMediaItem,
    GoogleReview,
    LocalPost,
    LocationSearchResult,
    MediaUploadPayload,
    PostPayload,
    ReviewCollection,
    ReviewPage,
    ReviewReplyResult,
    SearchKeywordCount,
    Verification,
    VerificationOption,
    parse_model,
)
from listing_sync.providers.rate_limiter import ProviderRateLimiter, get_provider_rate_limiter
from listing_sync.services.credential_service import CredentialResolver


logger = logging.getLogger("listing_sync.providers")

LOCATION_READ_MASK = (
    "name,title,storefrontAddress,phoneNumbers,categories,websiteUri,regularHours,"
    "specialHours,latlng,openInfo,metadata,profile,labels"
)

DAILY_METRICS = (
    "BUSINESS_IMPRESSIONS_DESKTOP_MAPS",
    "BUSINESS_IMPRESSIONS_DESKTOP_SEARCH",
    "BUSINESS_IMPRESSIONS_MOBILE_MAPS",
    "BUSINESS_IMPRESSIONS_MOBILE_SEARCH",
    "BUSINESS_DIRECTION_REQUESTS",
    "CALL_CLICKS",
    "WEBSITE_CLICKS",
    "BUSINESS_CONVERSATIONS",
    "BUSINESS_BOOKINGS",
    "BUSINESS_FOOD_ORDERS",
)

TokenProvider = Callable[[str], str]


def v1_location_name(location_name: str) -> str:
    """Business Information and Performance APIs address locations as ``locations/{id}``."""
    marker = location_name.find("locations/")
    return location_name[marker:] if marker > 0 else location_name


def v4_location_name(location_name: str, account_id: str | None = None) -> str:
    """The v4 API (reviews, posts, media) needs the ``accounts/{a}/locations/{l}`` form."""
    if location_name.startswith("accounts/") or not account_id:
        return location_name
    account = account_id if account_id.startswith("accounts/") else f"accounts/{account_id}"
    return f"{account}/{v1_location_name(location_name)}"


class GoogleBusinessClient:
    def __init__(
        self,
        *,
        rate_limiter: ProviderRateLimiter,
        token_provider: TokenProvider,
        timeout_seconds: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        settings = get_settings()
        self._rate_limiter = rate_limiter
        self._token_provider = token_provider
        self._timeout_seconds = float(timeout_seconds or settings.provider_http_timeout_seconds)
        self._transport = transport
        self._info_base = settings.google_business_information_base_url.rstrip("/")
        self._v4_base = settings.google_business_v4_base_url.rstrip("/")
        self._performance_base = settings.google_business_performance_base_url.rstrip("/")
        self._verifications_base = settings.google_business_verifications_base_url.rstrip("/")

    # Locations

    def get_location(self, listing_id: str, location_name: str) -> GoogleLocation:
        body = self._request(
            "GET",
            f"{self._info_base}/{v1_location_name(location_name)}",
            listing_id=listing_id,
            operation="locations.get",
            params={"readMask": LOCATION_READ_MASK},
        )
        return parse_model(GoogleLocation, body, operation="locations.get")

    def update_location(self, listing_id: str, location_name: str, fields: dict[str, Any]) -> GoogleLocation:
        if not fields:
            raise ValueError("update_location requires at least one field")
        body = self._request(
            "PATCH",
            f"{self._info_base}/{v1_location_name(location_name)}",
            listing_id=listing_id,
            operation="locations.patch",
            params={"updateMask": ",".join(fields)},
            json_body=fields,
        )
        return parse_model(GoogleLocation, body, operation="locations.patch")

    def create_location(self, listing_id: str, account_id: str, location: dict[str, Any]) -> GoogleLocation:
        account = account_id if account_id.startswith("accounts/") else f"accounts/{account_id}"
        body = self._request(
            "POST",
            f"{self._info_base}/{account}/locations",
            listing_id=listing_id,
            operation="locations.create",
            json_body=location,
        )
        return parse_model(GoogleLocation, body, operation="locations.create")

    def search_locations(self, listing_id: str, query: str) -> list[LocationSearchResult]:
        body = self._request(
            "POST",
            f"{self._info_base}/googleLocations:search",
            listing_id=listing_id,
            operation="locations.search",
            json_body={"query": query},
        )
        return [
            parse_model(LocationSearchResult, item, operation="locations.search")
            for item in _list_field(body, "googleLocations", operation="locations.search")
        ]

    # Verifications

    def fetch_verification_options(
        self, listing_id: str, location_name: str, *, language_code: str = "en"
    ) -> list[VerificationOption]:
        operation = "verifications.fetchOptions"
        body = self._request(
            "POST",
            f"{self._verifications_base}/{v1_location_name(location_name)}:fetchVerificationOptions",
            listing_id=listing_id,
            operation=operation,
            json_body={"languageCode": language_code},
        )
        return [
            parse_model(VerificationOption, item, operation=operation)
            for item in _list_field(body, "options", operation=operation)
        ]

    def request_verification(
        self,
        listing_id: str,
        location_name: str,
        method: str,
        *,
        language_code: str = "en",
        details: dict[str, Any] | None = None,
    ) -> Verification:
        """Start a verification; ``details`` carries method specific fields such as ``phoneNumber``."""
        body = self._request(
            "POST",
            f"{self._verifications_base}/{v1_location_name(location_name)}:verify",
            listing_id=listing_id,
            operation="verifications.verify",
            json_body={**(details or {}), "method": method, "languageCode": language_code},
        )
        return parse_model(Verification, body.get("verification"), operation="verifications.verify")

    def complete_verification(self, listing_id: str, verification_name: str, pin: str) -> Verification:
        if not pin:
            raise ValueError("complete_verification requires a pin")
        body = self._request(
            "POST",
            f"{self._verifications_base}/{verification_name}:complete",
            listing_id=listing_id,
            operation="verifications.complete",
            json_body={"pin": pin},
        )
        return parse_model(Verification, body.get("verification"), operation="verifications.complete")

    # Reviews

    def list_reviews_page(self, listing_id: str, location_name: str, page_token: str | None = None) -> ReviewPage:
        params = {"pageToken": page_token} if page_token else None
        body = self._request(
            "GET",
            f"{self._v4_base}/{location_name}/reviews",
            listing_id=listing_id,
            operation="reviews.list",
            params=params,
        )
        return parse_model(ReviewPage, body, operation="reviews.list")

    def iter_review_pages(self, listing_id: str, location_name: str) -> Iterator[ReviewPage]:
        page_token: str | None = None
        while True:
            page = self.list_reviews_page(listing_id, location_name, page_token)
            yield page
            page_token = page.next_page_token
            if not page_token:
                return

    def list_reviews(self, listing_id: str, location_name: str) -> ReviewCollection:
        reviews: list[GoogleReview] = []
        average_rating: float | None = None
        total_review_count: int | None = None
        for page in self.iter_review_pages(listing_id, location_name):
            reviews.extend(parse_model(GoogleReview, item, operation="reviews.list") for item in page.reviews)
            if page.average_rating is not None:
                average_rating = page.average_rating
            if page.total_review_count is not None:
                total_review_count = page.total_review_count
        return ReviewCollection(reviews=reviews, average_rating=average_rating, total_review_count=total_review_count)

    def reply_to_review(self, listing_id: str, review_name: str, comment: str) -> ReviewReplyResult:
        body = self._request(
            "PUT",
            f"{self._v4_base}/{review_name}/reply",
            listing_id=listing_id,
            operation="reviews.updateReply",
            json_body={"comment": comment},
        )
        return parse_model(ReviewReplyResult, body, operation="reviews.updateReply")

    def delete_review_reply(self, listing_id: str, review_name: str) -> None:
        self._request(
            "DELETE",
            f"{self._v4_base}/{review_name}/reply",
            listing_id=listing_id,
            operation="reviews.deleteReply",
        )

    # Posts

    def list_posts(self, listing_id: str, location_name: str) -> list[LocalPost]:
        return [
            parse_model(LocalPost, item, operation="localPosts.list")
            for item in self._paginate(
                f"{self._v4_base}/{location_name}/localPosts",
                listing_id=listing_id,
                operation="localPosts.list",
                items_key="localPosts",
            )
        ]

    def create_post(self, listing_id: str, location_name: str, payload: PostPayload) -> LocalPost:
        body = self._request(
            "POST",
            f"{self._v4_base}/{location_name}/localPosts",
            listing_id=listing_id,
            operation="localPosts.create",
            json_body=payload.to_payload(),
        )
        return parse_model(LocalPost, body, operation="localPosts.create")

    def update_post(self, listing_id: str, post_name: str, fields: dict[str, Any]) -> LocalPost:
        if not fields:
            raise ValueError("update_post requires at least one field")
        body = self._request(
            "PATCH",
            f"{self._v4_base}/{post_name}",
            listing_id=listing_id,
            operation="localPosts.patch",
            params={"updateMask": ",".join(fields)},
            json_body=fields,
        )
        return parse_model(LocalPost, body, operation="localPosts.patch")

    def delete_post(self, listing_id: str, post_name: str) -> None:
        self._request("DELETE", f"{self._v4_base}/{post_name}", listing_id=listing_id, operation="localPosts.delete")

    # Media

    def list_media(self, listing_id: str, location_name: str) -> list[GoogleMediaItem]:
        return [
            parse_model(GoogleMediaItem, item, operation="media.list")
            for item in self._paginate(
                f"{self._v4_base}/{location_name}/media",
                listing_id=listing_id,
                operation="media.list",
                items_key="mediaItems",
            )
        ]

    def create_media(self, listing_id: str, location_name: str, payload: MediaUploadPayload) -> GoogleMediaItem:
        body = self._request(
            "POST",
            f"{self._v4_base}/{location_name}/media",
            listing_id=listing_id,
            operation="media.create",
            json_body=payload.to_payload(),
        )
        return parse_model(GoogleMediaItem, body, operation="media.create")

    def delete_media(self, listing_id: str, media_name: str) -> None:
        self._request("DELETE", f"{self._v4_base}/{media_name}", listing_id=listing_id, operation="media.delete")

    # Performance

    def fetch_daily_metrics(
        self,
        listing_id: str,
        location_name: str,
        *,
        start: date,
        end: date,
        metrics: Sequence[str] = DAILY_METRICS,
    ) -> DailyMetricsResponse:
        start_date = GoogleDate.from_date(start)
        end_date = GoogleDate.from_date(end)
        params: list[tuple[str, str | int]] = [("dailyMetrics", metric) for metric in metrics]
        params.extend(
            [
                ("dailyRange.startDate.year", start_date.year),
                ("dailyRange.startDate.month", start_date.month),
                ("dailyRange.startDate.day", start_date.day),
                ("dailyRange.endDate.year", end_date.year),
                ("dailyRange.endDate.month", end_date.month),
                ("dailyRange.endDate.day", end_date.day),
            ]
        )
        body = self._request(
            "GET",
            f"{self._performance_base}/{v1_location_name(location_name)}:fetchMultiDailyMetricsTimeSeries",
            listing_id=listing_id,
            operation="performance.fetchMultiDailyMetricsTimeSeries",
            params=params,
        )
        return parse_model(DailyMetricsResponse, body, operation="performance.fetchMultiDailyMetricsTimeSeries")

    def fetch_search_keywords(
        self,
        listing_id: str,
        location_name: str,
        *,
        start: date,
        end: date,
    ) -> list[SearchKeywordCount]:
        params: list[tuple[str, str | int]] = [
            ("monthlyRange.startMonth.year", start.year),
            ("monthlyRange.startMonth.month", start.month),
            ("monthlyRange.endMonth.year", end.year),
            ("monthlyRange.endMonth.month", end.month),
        ]
        return [
            parse_model(SearchKeywordCount, item, operation="searchkeywords.impressions.monthly")
            for item in self._paginate(
                f"{self._performance_base}/{v1_location_name(location_name)}/searchkeywords/impressions/monthly",
                listing_id=listing_id,
                operation="searchkeywords.impressions.monthly",
                items_key="searchKeywordsCounts",
                params=params,
            )
        ]

    # Transport

    def _paginate(
        self,
        url: str,
        *,
        listing_id: str,
        operation: str,
        items_key: str,
        params: list[tuple[str, str | int]] | None = None,
    ) -> Iterator[dict[str, Any]]:
        page_token: str | None = None
        while True:
            page_params = list(params or [])
            if page_token:
                page_params.append(("pageToken", page_token))
            body = self._request("GET", url, listing_id=listing_id, operation=operation, params=page_params or None)
            yield from _list_field(body, items_key, operation=operation)
            next_token = body.get("nextPageToken")
            if not next_token:
                return
            page_token = str(next_token)

    def _request(
        self,
        method: str,
        url: str,
        *,
        listing_id: str,
        operation: str,
        params: dict[str, Any] | list[tuple[str, str | int]] | None = None,
        json_body: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        self._rate_limiter.wait_for_slot()
        access_token = self._token_provider(listing_id)
        started_at = time.perf_counter()
        try:
            response = self._send(method, url, access_token=access_token, params=params, json_body=json_body, operation=operation)
            if response.status_code >= 400:
                raise error_from_response(response, operation=operation)
            if response.status_code == 204 or not response.content:
                body: dict[str, Any] = {}
            else:
                try:
                    parsed = response.json()
                except ValueError as exc:
                    raise ProviderResponseFormatError(f"Google {operation} response is not valid JSON.") from exc
                if not isinstance(parsed, dict):
                    raise ProviderResponseFormatError(f"Google {operation} response must be a JSON object.")
                body = parsed
        except ProviderError as exc:
            provider_requests_total.labels(operation=operation, outcome=exc.reason_code).inc()
            logger.warning(
                "provider.request.failed",
                extra={
                    "listing_id": listing_id,
                    "operation": operation,
                    "reason_code": exc.reason_code,
                    "status_code": exc.status_code,
                    "error": str(exc),
                },
            )
            raise
        finally:
            provider_request_duration_seconds.labels(operation=operation).observe(time.perf_counter() - started_at)
        provider_requests_total.labels(operation=operation, outcome="success").inc()
        return body

    def _send(
        self,
        method: str,
        url: str,
        *,
        access_token: str,
        params: dict[str, Any] | list[tuple[str, str | int]] | None,
        json_body: dict[str, Any] | None,
        operation: str,
    ) -> httpx.Response:
        try:
            with httpx.Client(transport=self._transport, timeout=self._timeout_seconds) as client:
                return client.request(
                    method,
                    url,
                    params=params,
                    json=json_body,
                    headers={"Authorization": f"Bearer {access_token}"},
                )
        except httpx.TimeoutException as exc:
            raise ProviderTimeoutError(f"Google {operation} request timed out.") from exc
        except httpx.ConnectError as exc:
            raise ProviderConnectionError(f"Google {operation} connection failed.") from exc
        except httpx.HTTPError as exc:
            raise ProviderDependencyError(f"Google {operation} dependency call failed.") from exc


def build_google_business_client(db: Session, *, transport: httpx.BaseTransport | None = None) -> GoogleBusinessClient:
    return GoogleBusinessClient(
        rate_limiter=get_provider_rate_limiter(),
        token_provider=CredentialResolver(db).get_access_token,
        transport=transport,
    )


def _list_field(body: dict[str, Any], key: str, *, operation: str) -> list[dict[str, Any]]:
    items = body.get(key) or []
    if not isinstance(items, list) or not all(isinstance(item, dict) for item in items):
        raise ProviderResponseFormatError(f"Google {operation} field '{key}' must be a list of objects.")
    return items
