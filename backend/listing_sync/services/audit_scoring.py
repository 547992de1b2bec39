from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Literal


Priority = Literal["high", "medium", "low"]
Level = Literal["low", "medium", "high"]

PHOTO_TARGET = 10
PHOTO_CAP = 16
PHOTO_MAX_SCORE = 15
DESCRIPTION_TARGET_CHARS = 250
MONTHLY_POST_TARGET = 4
REVIEW_COUNT_TARGET = 10
REVIEW_COUNT_CAP = 20
RESPONSE_RATE_TARGET = 0.9
RATING_TARGET = 4.0

GRADE_THRESHOLDS: tuple[tuple[float, str], ...] = (
    (97, "A+"),
    (93, "A"),
    (90, "A-"),
    (87, "B+"),
    (83, "B"),
    (80, "B-"),
    (77, "C+"),
    (73, "C"),
    (70, "C-"),
    (67, "D+"),
    (63, "D"),
    (60, "D-"),
)

_PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}


@dataclass(frozen=True)
class AuditCheck:
    name: str
    passed: bool
    score: float
    max_score: float
    details: str | None = None


@dataclass
class CategoryScore:
    category: str
    checks: list[AuditCheck] = field(default_factory=list)

    @property
    def score(self) -> float:
        return sum(check.score for check in self.checks)

    @property
    def max_score(self) -> float:
        return sum(check.max_score for check in self.checks)

    @property
    def percentage(self) -> int:
        return round(self.score / self.max_score * 100) if self.max_score > 0 else 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": self.category,
            "score": self.score,
            "max_score": self.max_score,
            "percentage": self.percentage,
            "checks": [asdict(check) for check in self.checks],
        }


@dataclass(frozen=True)
class Recommendation:
    priority: Priority
    category: str
    title: str
    description: str
    effort: Level
    impact: Level


@dataclass(frozen=True)
class ListingFacts:
    """Everything the checklist looks at, gathered from local storage before scoring."""

    business_name: str | None = None
    has_address: bool = False
    phone: str | None = None
    website: str | None = None
    has_hours: bool = False
    has_holiday_hours: bool = False
    description: str | None = None
    primary_category: str | None = None
    additional_category_count: int = 0
    photo_count: int = 0
    has_recent_post: bool = False
    monthly_post_count: int = 0
    average_rating: float = 0.0
    review_count: int = 0
    responded_count: int = 0
    overdue_pending_count: int = 0
    has_attributes: bool = False
    has_products: bool = False


@dataclass
class AuditOutcome:
    categories: list[CategoryScore]
    recommendations: list[Recommendation]

    @property
    def overall_score(self) -> float:
        return sum(category.score for category in self.categories)

    @property
    def max_score(self) -> float:
        return sum(category.max_score for category in self.categories)

    @property
    def percentage(self) -> float:
        return percentage_of(self.overall_score, self.max_score)

    @property
    def letter_grade(self) -> str:
        return letter_grade(self.percentage)


def percentage_of(score: float, max_score: float) -> float:
    if max_score <= 0:
        return 0.0
    return score / max_score * 100


def letter_grade(percentage: float) -> str:
    for threshold, grade in GRADE_THRESHOLDS:
        if percentage >= threshold:
            return grade
    return "F"


def photo_score(photo_count: int) -> int:
    return round(min(max(photo_count, 0), PHOTO_CAP) / PHOTO_CAP * PHOTO_MAX_SCORE)


def post_frequency_score(monthly_post_count: int) -> float:
    return min(max(monthly_post_count, 0), MONTHLY_POST_TARGET) * 2.5


def rating_score(average_rating: float) -> int:
    return round(min(max(average_rating, 0.0), 5.0) / 5 * 10)


def review_count_score(review_count: int) -> float:
    return min(max(review_count, 0), REVIEW_COUNT_CAP) * 0.5


def response_rate_score(response_rate: float) -> int:
    return round(min(max(response_rate, 0.0), 1.0) * 10)


def response_time_score(overdue_pending_count: int) -> int:
    return max(0, 5 - overdue_pending_count)


def sort_recommendations(recommendations: list[Recommendation]) -> list[Recommendation]:
    # sorted() is stable, so equal priorities keep their checklist order.
    return sorted(recommendations, key=lambda item: _PRIORITY_ORDER[item.priority])


def _plural(count: int, singular: str, plural: str | None = None) -> str:
    return singular if count == 1 else (plural or f"{singular}s")


def _filled(value: str | None) -> bool:
    return bool(value and value.strip())


def score_listing(facts: ListingFacts) -> AuditOutcome:
    recommendations: list[Recommendation] = []

    def recommend(priority: Priority, category: str, title: str, description: str, *, effort: Level, impact: Level) -> None:
        recommendations.append(Recommendation(priority, category, title, description, effort, impact))

    info = CategoryScore("Business Information")
    has_name = _filled(facts.business_name)
    info.checks.append(AuditCheck("Business name set", has_name, 10 if has_name else 0, 10))
    if not has_name:
        recommend(
            "high",
            info.category,
            "Add business name",
            "Your Google Business Profile needs a business name. This is essential for customers to find you.",
            effort="low",
            impact="high",
        )
    info.checks.append(AuditCheck("Address completeness", facts.has_address, 10 if facts.has_address else 0, 10))
    if not facts.has_address:
        recommend(
            "high",
            info.category,
            "Complete your address",
            "A complete and accurate address helps customers find your physical location and improves local search rankings.",
            effort="low",
            impact="high",
        )
    has_phone = _filled(facts.phone)
    info.checks.append(AuditCheck("Phone number present", has_phone, 10 if has_phone else 0, 10))
    if not has_phone:
        recommend(
            "high",
            info.category,
            "Add phone number",
            "Adding a phone number makes it easy for customers to contact you directly from Google Search and Maps.",
            effort="low",
            impact="high",
        )
    has_website = _filled(facts.website)
    info.checks.append(AuditCheck("Website URL set", has_website, 10 if has_website else 0, 10))
    if not has_website:
        recommend(
            "medium",
            info.category,
            "Add website URL",
            "Linking your website drives traffic from your Google profile to your site.",
            effort="low",
            impact="medium",
        )
    info.checks.append(AuditCheck("Business hours set", facts.has_hours, 10 if facts.has_hours else 0, 10))
    if not facts.has_hours:
        recommend(
            "high",
            info.category,
            "Set business hours",
            "Business hours help customers know when you are open and reduce wasted trips.",
            effort="low",
            impact="high",
        )
    info.checks.append(
        AuditCheck("Holiday hours set", facts.has_holiday_hours, 5 if facts.has_holiday_hours else 0, 5)
    )

    description_length = len(facts.description or "")
    long_enough = description_length >= DESCRIPTION_TARGET_CHARS
    if description_length:
        details = f"Description is {description_length} characters" + ("" if long_enough else " (aim for 250+)")
    else:
        details = "No description set"
    info.checks.append(
        AuditCheck(
            "Business description (250+ chars)",
            long_enough,
            10 if long_enough else 5 if description_length else 0,
            10,
            details,
        )
    )
    if not long_enough:
        recommend(
            "medium",
            info.category,
            "Improve business description",
            (
                f"Your description is {description_length} characters. Aim for at least 250 characters "
                "to give customers a thorough understanding of your business."
            )
            if description_length
            else "Add a detailed business description (250+ characters) to help customers understand what you offer.",
            effort="low",
            impact="medium",
        )

    categories = CategoryScore("Categories")
    has_primary = _filled(facts.primary_category)
    categories.checks.append(AuditCheck("Primary category set", has_primary, 10 if has_primary else 0, 10))
    if not has_primary:
        recommend(
            "high",
            categories.category,
            "Set primary category",
            "Your primary category is one of the biggest ranking factors for local search.",
            effort="low",
            impact="high",
        )
    extra_count = facts.additional_category_count
    categories.checks.append(
        AuditCheck(
            "Additional categories (2+)",
            extra_count >= 2,
            min(extra_count, 2) * 2.5,
            5,
            f"{extra_count} additional {_plural(extra_count, 'category', 'categories')} set",
        )
    )

    photos = CategoryScore("Photos")
    photos.checks.append(
        AuditCheck(
            "Photo count",
            facts.photo_count >= PHOTO_TARGET,
            photo_score(facts.photo_count),
            PHOTO_MAX_SCORE,
            f"{facts.photo_count} {_plural(facts.photo_count, 'photo')} uploaded",
        )
    )
    if facts.photo_count < PHOTO_TARGET:
        recommend(
            "medium",
            photos.category,
            "Upload more photos",
            f"You have {facts.photo_count} {_plural(facts.photo_count, 'photo')}. Aim for at least 10 business photos, "
            "including interior, exterior and team shots.",
            effort="medium",
            impact="medium",
        )

    posts = CategoryScore("Posts & Content")
    posts.checks.append(
        AuditCheck("Recent post (within 7 days)", facts.has_recent_post, 10 if facts.has_recent_post else 0, 10)
    )
    if not facts.has_recent_post:
        recommend(
            "high",
            posts.category,
            "Publish a post",
            "Regular Google Business Profile posts keep your listing active and engaging. Aim to post at least weekly.",
            effort="low",
            impact="high",
        )
    posts.checks.append(
        AuditCheck(
            "Post frequency (4+ per month)",
            facts.monthly_post_count >= MONTHLY_POST_TARGET,
            post_frequency_score(facts.monthly_post_count),
            10,
            f"{facts.monthly_post_count} {_plural(facts.monthly_post_count, 'post')} in the last 30 days",
        )
    )

    reviews = CategoryScore("Reviews")
    total = facts.review_count
    reviews.checks.append(
        AuditCheck(
            "Average review rating",
            facts.average_rating >= RATING_TARGET,
            rating_score(facts.average_rating),
            10,
            f"{facts.average_rating:.1f} stars from {total} {_plural(total, 'review')}" if total else "No reviews yet",
        )
    )
    reviews.checks.append(
        AuditCheck(
            "Review count",
            total >= REVIEW_COUNT_TARGET,
            review_count_score(total),
            10,
            f"{total} total {_plural(total, 'review')}",
        )
    )
    if total < REVIEW_COUNT_TARGET:
        recommend(
            "medium",
            reviews.category,
            "Encourage more reviews",
            f"You have {total} {_plural(total, 'review')}. More reviews build trust and improve your local ranking. "
            "Consider asking satisfied customers to leave a review.",
            effort="medium",
            impact="high",
        )
    response_rate = facts.responded_count / total if total else 0.0
    reviews.checks.append(
        AuditCheck(
            "Review response rate (target: 100%)",
            response_rate >= RESPONSE_RATE_TARGET,
            response_rate_score(response_rate),
            10,
            f"{round(response_rate * 100)}% response rate ({facts.responded_count}/{total})",
        )
    )
    if response_rate < RESPONSE_RATE_TARGET:
        recommend(
            "high",
            reviews.category,
            "Respond to all reviews",
            f"Your response rate is {round(response_rate * 100)}%. Responding to every review shows customers "
            "you value their feedback.",
            effort="low",
            impact="high",
        )
    overdue = facts.overdue_pending_count
    reviews.checks.append(
        AuditCheck(
            "Review response time (<24 hours)",
            overdue == 0,
            response_time_score(overdue),
            5,
            f"{overdue} {_plural(overdue, 'review')} pending for over 24 hours" if overdue else "All reviews responded to promptly",
        )
    )

    extras = CategoryScore("Extras")
    extras.checks.append(AuditCheck("Attributes completed", facts.has_attributes, 5 if facts.has_attributes else 0, 5))
    extras.checks.append(AuditCheck("Products/services listed", facts.has_products, 5 if facts.has_products else 0, 5))

    return AuditOutcome(
        categories=[info, categories, photos, posts, reviews, extras],
        recommendations=sort_recommendations(recommendations),
    )
