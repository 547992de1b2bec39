from __future__ import annotations

from datetime import date, datetime
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from listing_sync.providers.errors import ProviderResponseFormatError


class GoogleModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class GoogleDate(GoogleModel):
    year: int
    month: int
    day: int

    @classmethod
    def from_date(cls, value: date) -> GoogleDate:
        return cls(year=value.year, month=value.month, day=value.day)

    def to_date(self) -> date:
        return date(self.year, self.month, self.day)


class GoogleAddress(GoogleModel):
    address_lines: list[str] = Field(default_factory=list)
    locality: str | None = None
    administrative_area: str | None = None
    postal_code: str | None = None
    region_code: str | None = None


class GoogleCategory(GoogleModel):
    name: str | None = None
    display_name: str | None = None


class GoogleCategories(GoogleModel):
    primary_category: GoogleCategory | None = None
    additional_categories: list[GoogleCategory] = Field(default_factory=list)


class GoogleLatLng(GoogleModel):
    latitude: float
    longitude: float


class GooglePhoneNumbers(GoogleModel):
    primary_phone: str | None = None
    additional_phones: list[str] = Field(default_factory=list)


class GoogleLocationMetadata(GoogleModel):
    maps_uri: str | None = None
    new_review_uri: str | None = None
    place_id: str | None = None


class GoogleProfile(GoogleModel):
    description: str | None = None


class GoogleOpenInfo(GoogleModel):
    status: str | None = None


class GoogleLocation(GoogleModel):
    name: str
    title: str | None = None
    storefront_address: GoogleAddress | None = None
    phone_numbers: GooglePhoneNumbers | None = None
    categories: GoogleCategories | None = None
    website_uri: str | None = None
    regular_hours: dict[str, Any] | None = None
    special_hours: dict[str, Any] | None = None
    latlng: GoogleLatLng | None = None
    open_info: GoogleOpenInfo | None = None
    metadata: GoogleLocationMetadata | None = None
    profile: GoogleProfile | None = None
    labels: list[str] = Field(default_factory=list)


class LocationSearchResult(GoogleModel):
    name: str | None = None
    location: GoogleLocation | None = None
    request_admin_rights_uri: str | None = None


class GoogleReviewer(GoogleModel):
    display_name: str | None = None
    profile_photo_url: str | None = None
    is_anonymous: bool | None = None


class GoogleReviewReply(GoogleModel):
    comment: str | None = None
    update_time: datetime | None = None


class GoogleReview(GoogleModel):
    name: str | None = None
    review_id: str | None = None
    reviewer: GoogleReviewer | None = None
    star_rating: str | None = None
    comment: str | None = None
    create_time: datetime | None = None
    update_time: datetime | None = None
    review_reply: GoogleReviewReply | None = None


class ReviewPage(GoogleModel):
    # Items stay raw so one malformed review can be skipped by the caller.
    reviews: list[dict[str, Any]] = Field(default_factory=list)
    average_rating: float | None = None
    total_review_count: int | None = None
    next_page_token: str | None = None


class ReviewCollection(GoogleModel):
    reviews: list[GoogleReview] = Field(default_factory=list)
    average_rating: float | None = None
    total_review_count: int | None = None


class CallToAction(GoogleModel):
    action_type: str
    url: str | None = None


class PostMedia(GoogleModel):
    media_format: Literal["PHOTO", "VIDEO"] = "PHOTO"
    source_url: str


class EventSchedule(GoogleModel):
    start_date: GoogleDate
    end_date: GoogleDate


class PostEvent(GoogleModel):
    title: str | None = None
    schedule: EventSchedule


class PostOffer(GoogleModel):
    coupon_code: str | None = None
    redeem_online_url: str | None = None
    terms_conditions: str | None = None


class _PostPayloadBase(GoogleModel):
    summary: str
    call_to_action: CallToAction | None = None
    media: list[PostMedia] | None = None


class StandardPostPayload(_PostPayloadBase):
    topic_type: Literal["STANDARD"] = "STANDARD"


class AlertPostPayload(_PostPayloadBase):
    topic_type: Literal["ALERT"] = "ALERT"


class EventPostPayload(_PostPayloadBase):
    topic_type: Literal["EVENT"] = "EVENT"
    event: PostEvent


class OfferPostPayload(_PostPayloadBase):
    topic_type: Literal["OFFER"] = "OFFER"
    event: PostEvent | None = None
    offer: PostOffer


PostPayload = Annotated[
    StandardPostPayload | AlertPostPayload | EventPostPayload | OfferPostPayload,
    Field(discriminator="topic_type"),
]


class LocalPost(GoogleModel):
    name: str
    summary: str | None = None
    topic_type: str | None = None
    state: str | None = None
    search_url: str | None = None
    create_time: datetime | None = None
    update_time: datetime | None = None


class LocationAssociation(GoogleModel):
    category: str | None = None


class MediaInsights(GoogleModel):
    view_count: int | None = None


class GoogleMediaItem(GoogleModel):
    name: str
    media_format: str | None = None
    location_association: LocationAssociation | None = None
    google_url: str | None = None
    thumbnail_url: str | None = None
    create_time: datetime | None = None
    description: str | None = None
    insights: MediaInsights | None = None


class MediaUploadPayload(GoogleModel):
    media_format: Literal["PHOTO", "VIDEO"] = "PHOTO"
    source_url: str
    location_association: LocationAssociation
    description: str | None = None


class DatedValue(GoogleModel):
    date: GoogleDate
    value: int = 0


class TimeSeries(GoogleModel):
    dated_values: list[DatedValue] = Field(default_factory=list)


class DailyMetricTimeSeries(GoogleModel):
    daily_metric: str | None = None
    metric: str | None = None
    time_series: TimeSeries | None = None

    @property
    def metric_name(self) -> str | None:
        return self.daily_metric or self.metric


class MultiDailyMetricTimeSeries(GoogleModel):
    daily_metric_time_series: list[DailyMetricTimeSeries] = Field(default_factory=list)


class DailyMetricsResponse(GoogleModel):
    multi_daily_metric_time_series: list[MultiDailyMetricTimeSeries] = Field(default_factory=list)

    def iter_series(self):
        for group in self.multi_daily_metric_time_series:
            yield from group.daily_metric_time_series


class InsightCount(GoogleModel):
    value: int = 0
    threshold: int | None = None


class SearchKeywordCount(GoogleModel):
    search_keyword: str
    insight_count: InsightCount | None = None


class ReviewReplyResult(GoogleModel):
    comment: str | None = None
    update_time: datetime | None = None


def parse_model(model: type[GoogleModel], payload: Any, *, operation: str) -> Any:
    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        raise ProviderResponseFormatError(
            f"Google {operation} response did not match the expected shape: {exc.error_count()} error(s).",
            upstream_payload=payload if isinstance(payload, dict) else None,
        ) from exc


class VerificationOption(GoogleModel):
    verification_method: str
    phone_number: str | None = None
    announcement: str | None = None
    address_data: dict[str, Any] | None = None
    email_data: dict[str, Any] | None = None


class Verification(GoogleModel):
    name: str
    method: str | None = None
    state: str | None = None
    create_time: datetime | None = None
