import pytest

from listing_sync.services.audit_scoring import (
    ListingFacts,
    Recommendation,
    letter_grade,
    percentage_of,
    photo_score,
    post_frequency_score,
    rating_score,
    response_time_score,
    review_count_score,
    score_listing,
    sort_recommendations,
)


COMPLETE_FACTS = ListingFacts(
    business_name="Harbour Bakery",
    has_address=True,
    phone="+64 9 555 0100",
    website="https://harbour.example",
    has_hours=True,
    has_holiday_hours=True,
    description="x" * 260,
    primary_category="Bakery",
    additional_category_count=3,
    photo_count=24,
    has_recent_post=True,
    monthly_post_count=6,
    average_rating=5.0,
    review_count=40,
    responded_count=40,
    overdue_pending_count=0,
    has_attributes=True,
    has_products=True,
)


@pytest.mark.parametrize(
    ("percentage", "expected"),
    [
        (100, "A+"),
        (97, "A+"),
        (93, "A"),
        (92.9, "A-"),
        (90, "A-"),
        (89.99, "B+"),
        (80, "B-"),
        (70, "C-"),
        (60, "D-"),
        (59.9, "F"),
        (0, "F"),
    ],
)
def test_letter_grade_thresholds(percentage, expected) -> None:
    assert letter_grade(percentage) == expected


def test_percentage_of_zero_max_is_zero() -> None:
    assert percentage_of(0, 0) == 0.0
    assert percentage_of(40, 160) == 25.0


def test_photo_score_is_monotonic_and_saturates() -> None:
    scores = [photo_score(count) for count in range(0, 30)]
    assert scores == sorted(scores)
    assert photo_score(0) == 0
    assert photo_score(10) == 9
    assert photo_score(16) == 15
    assert photo_score(500) == 15
    assert photo_score(-3) == 0


def test_sub_scores_are_bounded() -> None:
    assert post_frequency_score(2) == 5.0
    assert post_frequency_score(12) == 10.0
    assert rating_score(4.4) == 9
    assert rating_score(7.0) == 10
    assert review_count_score(7) == 3.5
    assert review_count_score(100) == 10.0
    assert response_time_score(2) == 3
    assert response_time_score(9) == 0


def test_complete_listing_scores_full_marks() -> None:
    outcome = score_listing(COMPLETE_FACTS)

    assert outcome.max_score == 160
    assert outcome.overall_score == 160
    assert outcome.percentage == 100
    assert outcome.letter_grade == "A+"
    assert outcome.recommendations == []
    assert [category.category for category in outcome.categories] == [
        "Business Information",
        "Categories",
        "Photos",
        "Posts & Content",
        "Reviews",
        "Extras",
    ]
    assert [category.max_score for category in outcome.categories] == [65, 15, 15, 20, 35, 10]


def test_empty_listing_orders_recommendations_by_priority() -> None:
    outcome = score_listing(ListingFacts())

    assert outcome.overall_score == 5
    assert outcome.letter_grade == "F"
    assert [item.title for item in outcome.recommendations] == [
        "Add business name",
        "Complete your address",
        "Add phone number",
        "Set business hours",
        "Set primary category",
        "Publish a post",
        "Respond to all reviews",
        "Add website URL",
        "Improve business description",
        "Upload more photos",
        "Encourage more reviews",
    ]


def test_short_description_earns_partial_credit() -> None:
    outcome = score_listing(ListingFacts(description="Wood-fired bread."))

    check = next(check for check in outcome.categories[0].checks if check.name.startswith("Business description"))
    assert check.score == 5
    assert check.passed is False
    assert check.details == "Description is 17 characters (aim for 250+)"
    recommendation = next(item for item in outcome.recommendations if item.title == "Improve business description")
    assert recommendation.description.startswith("Your description is 17 characters.")


def test_review_category_uses_response_rate_and_overdue_count() -> None:
    facts = ListingFacts(average_rating=4.6, review_count=8, responded_count=6, overdue_pending_count=2)

    reviews = score_listing(facts).categories[4]

    scores = {check.name: check.score for check in reviews.checks}
    assert scores == {
        "Average review rating": 9,
        "Review count": 4.0,
        "Review response rate (target: 100%)": 8,
        "Review response time (<24 hours)": 3,
    }
    assert reviews.checks[2].details == "75% response rate (6/8)"
    assert reviews.percentage == round(24 / 35 * 100)


def test_category_to_dict_shape() -> None:
    payload = score_listing(COMPLETE_FACTS).categories[1].to_dict()

    assert payload["category"] == "Categories"
    assert payload["score"] == 15
    assert payload["percentage"] == 100
    assert payload["checks"][1] == {
        "name": "Additional categories (2+)",
        "passed": True,
        "score": 5.0,
        "max_score": 5,
        "details": "3 additional categories set",
    }


def test_sort_recommendations_is_stable_within_priority() -> None:
    items = [
        Recommendation("low", "Extras", "c", "", "low", "low"),
        Recommendation("high", "Photos", "a", "", "low", "high"),
        Recommendation("medium", "Posts", "b", "", "low", "medium"),
        Recommendation("high", "Reviews", "d", "", "low", "high"),
    ]

    assert [item.title for item in sort_recommendations(items)] == ["a", "d", "b", "c"]
