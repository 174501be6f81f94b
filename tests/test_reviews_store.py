import pytest

from dineout.engagement import rules
from dineout.engagement.errors import (
    DuplicateReview,
    InvalidContent,
    InvalidInput,
    InvalidRating,
    NotFound,
    Unauthorized,
)
from dineout.engagement.records import RestaurantSnapshot

R = "ChIJK08gKtR_j4ARKyo5suJ6o2I"
CONTENT = "Excellent food and service"


def test_create_review_populates_fields(store):
    review = store.create_review("alice", R, 5, "  " + CONTENT + "  ", "  Amazing  ", user_name="Alice A")

    assert review.id
    assert review.user_id == "alice"
    assert review.restaurant_id == R
    assert review.rating == 5
    assert review.title == "Amazing"
    assert review.content == CONTENT
    assert review.created_at == review.updated_at
    assert review.helpful_count == 0
    assert review.is_reported is False
    assert review.user_name == "Alice A"
    assert store.get_review(review.id) == review


def test_empty_title_is_absent(store):
    review = store.create_review("alice", R, 4, CONTENT, "   ")
    assert review.title is None


def test_second_review_for_same_pair_is_duplicate(store):
    store.create_review("alice", R, 5, CONTENT)
    with pytest.raises(DuplicateReview):
        store.create_review("alice", R, 1, "Completely different text")

    # other users and other restaurants are unaffected
    store.create_review("bob", R, 3, CONTENT)
    store.create_review("alice", "other-restaurant", 3, CONTENT)


@pytest.mark.parametrize("rating", [0, 6, -1])
def test_invalid_rating_persists_nothing(store, rating):
    with pytest.raises(InvalidRating):
        store.create_review("alice", R, rating, CONTENT)
    assert store.get_user_review("alice", R) is None
    assert store.get_review_stats(R).total_ratings == 0


def test_content_length_boundary(store):
    with pytest.raises(InvalidContent):
        store.create_review("alice", R, 4, "123456789")
    with pytest.raises(InvalidContent):
        store.create_review("alice", R, 4, "   123456789    ")
    assert store.get_user_review("alice", R) is None

    review = store.create_review("alice", R, 4, "1234567890")
    assert review.content == "1234567890"


def test_duplicate_is_reported_before_validation(store):
    store.create_review("alice", R, 5, CONTENT)
    with pytest.raises(DuplicateReview):
        store.create_review("alice", R, 9, "short")


def test_update_review_changes_supplied_fields_only(store):
    review = store.create_review("alice", R, 5, CONTENT, "Title", user_name="Alice")
    updated = store.update_review("alice", review.id, rating=3)

    assert updated.rating == 3
    assert updated.content == CONTENT
    assert updated.title == "Title"
    assert updated.user_name == "Alice"
    assert updated.created_at == review.created_at
    assert updated.updated_at > review.updated_at


def test_update_review_clears_title_and_refreshes_name(store):
    review = store.create_review("alice", R, 5, CONTENT, "Title", user_name="Alice")
    updated = store.update_review("alice", review.id, title="", content="  New and improved text ", user_name="Ally")

    assert updated.title is None
    assert updated.content == "New and improved text"
    assert updated.user_name == "Ally"
    assert store.get_review(review.id) == updated


def test_update_review_can_clear_the_name(store):
    review = store.create_review("alice", R, 5, CONTENT, user_name="Alice")

    assert store.update_review("alice", review.id, rating=4).user_name == "Alice"
    cleared = store.update_review("alice", review.id, rating=3, user_name=None)
    assert cleared.user_name is None
    assert store.get_review(review.id).user_name is None


def test_update_review_errors(store):
    review = store.create_review("alice", R, 5, CONTENT)

    with pytest.raises(NotFound):
        store.update_review("alice", "missing", rating=4)
    with pytest.raises(Unauthorized):
        store.update_review("bob", review.id, rating=4)
    with pytest.raises(InvalidRating):
        store.update_review("alice", review.id, rating=0)
    with pytest.raises(InvalidRating):
        store.update_review("alice", review.id, rating=6, content="A valid replacement text")
    with pytest.raises(InvalidContent):
        store.update_review("alice", review.id, rating=2, content="too short")

    assert store.get_review(review.id) == review
    assert store.get_review_stats(R).average_rating == 5.0


def test_delete_review(store):
    review = store.create_review("alice", R, 5, CONTENT)

    with pytest.raises(NotFound):
        store.delete_review("alice", "missing")
    with pytest.raises(Unauthorized):
        store.delete_review("bob", review.id)

    store.delete_review("alice", review.id)
    assert store.get_review(review.id) is None
    assert store.get_user_review("alice", R) is None
    assert store.get_review_stats(R).total_ratings == 0
    with pytest.raises(NotFound):
        store.delete_review("alice", review.id)

    # the pair is free again
    store.create_review("alice", R, 2, CONTENT)


def test_restaurant_listing_is_newest_first_and_paginated(store):
    ids = [store.create_review(f"user{i}", R, (i % 5) + 1, CONTENT).id for i in range(7)]
    store.create_review("user0", "elsewhere", 1, CONTENT)

    page = store.get_reviews_for_restaurant(R, limit=3, offset=0)
    assert [r.id for r in page.reviews] == ids[::-1][:3]
    assert page.total == 7
    assert page.total_ratings == 7

    page2 = store.get_reviews_for_restaurant(R, limit=3, offset=3)
    assert [r.id for r in page2.reviews] == ids[::-1][3:6]
    assert page2.total == 7

    tail = store.get_reviews_for_restaurant(R, limit=3, offset=6)
    assert [r.id for r in tail.reviews] == ids[:1]

    assert store.get_reviews_for_restaurant(R, limit=3, offset=50).reviews == []
    assert store.get_reviews_for_restaurant(R, limit=0, offset=0).total == 7


def test_listing_average_is_rounded(store):
    for user, rating in [("a", 5), ("b", 4), ("c", 4), ("d", 4)]:
        store.create_review(user, R, rating, CONTENT)
    page = store.get_reviews_for_restaurant(R)
    assert page.average_rating == 4.3


def test_empty_restaurant(store):
    page = store.get_reviews_for_restaurant("nobody-reviewed-this")
    assert page.reviews == []
    assert page.total == 0
    assert page.average_rating == 0
    assert page.total_ratings == 0


def test_reported_reviews_are_hidden_from_public_listing(store):
    keep = store.create_review("alice", R, 5, CONTENT)
    hidden = store.create_review("bob", R, 1, CONTENT)
    later = store.create_review("carol", R, 3, CONTENT)
    store.report_review(hidden.id)

    page = store.get_reviews_for_restaurant(R, limit=1, offset=1)
    assert [r.id for r in page.reviews] == [keep.id]
    assert page.total == 2
    assert page.average_rating == 4.0
    assert all(not r.is_reported for r in store.get_reviews_for_restaurant(R).reviews)
    assert [r.id for r in store.get_reviews_for_restaurant(R).reviews] == [later.id, keep.id]

    # still retrievable and still blocks a second review
    assert store.get_review(hidden.id).is_reported is True
    assert store.get_user_review("bob", R).is_reported is True
    with pytest.raises(DuplicateReview):
        store.create_review("bob", R, 4, CONTENT)


def test_user_reviews_include_reported(store):
    first = store.create_review("alice", "r1", 5, CONTENT)
    second = store.create_review("alice", "r2", 4, CONTENT)
    third = store.create_review("alice", "r3", 3, CONTENT)
    store.create_review("bob", "r1", 2, CONTENT)
    store.report_review(second.id)

    assert [r.id for r in store.get_user_reviews("alice")] == [third.id, second.id, first.id]
    assert [r.id for r in store.get_user_reviews("alice", limit=1, offset=1)] == [second.id]
    assert store.get_user_reviews("nobody") == []


def test_negative_page_window(store):
    with pytest.raises(ValueError):
        store.get_reviews_for_restaurant(R, limit=-1)
    with pytest.raises(ValueError):
        store.get_user_reviews("alice", offset=-1)


def test_huge_page_window_is_rejected(store):
    store.create_review("alice", R, 5, CONTENT)

    with pytest.raises(ValueError):
        store.get_reviews_for_restaurant(R, 10, 2**63)
    with pytest.raises(ValueError):
        store.get_user_reviews("alice", limit=2**63)

    page = store.get_reviews_for_restaurant(R, 10, rules.MAX_PAGE_VALUE)
    assert page.reviews == []
    assert page.total == 1


def test_unstorable_text_is_rejected_without_writing(store):
    long_id = "r" * (rules.MAX_ID_LENGTH + 1)

    with pytest.raises(InvalidInput):
        store.create_review("alice", long_id, 5, CONTENT)
    with pytest.raises(InvalidInput):
        store.create_review("alice", R, 5, CONTENT, "t" * (rules.MAX_TITLE_LENGTH + 1))
    with pytest.raises(InvalidInput):
        store.create_review("alice", R, 5, CONTENT, user_name="n" * (rules.MAX_USER_NAME_LENGTH + 1))
    with pytest.raises(InvalidInput):
        store.create_review("alice", R, 5, "Lovely\x00 place overall")
    with pytest.raises(InvalidInput):
        store.get_reviews_for_restaurant("bad\x00id")
    with pytest.raises(InvalidInput):
        store.toggle_favorite("alice", R, RestaurantSnapshot(name="n" * (rules.MAX_RESTAURANT_NAME_LENGTH + 1)))

    assert store.get_user_reviews("alice") == []
    assert store.get_favorite_count("alice") == 0

    review = store.create_review("alice", R, 5, CONTENT)
    with pytest.raises(InvalidInput):
        store.update_review("alice", review.id, title="t" * (rules.MAX_TITLE_LENGTH + 1))
    assert store.get_review(review.id) == review


def test_mark_helpful_counts_every_call(store):
    review = store.create_review("alice", R, 5, CONTENT)
    counts = [store.mark_review_helpful(review.id) for _ in range(5)]

    assert counts == [1, 2, 3, 4, 5]
    assert store.get_review(review.id).helpful_count == 5
    with pytest.raises(NotFound):
        store.mark_review_helpful("missing")


def test_report_is_idempotent(store):
    review = store.create_review("alice", R, 5, CONTENT)
    store.report_review(review.id)
    store.report_review(review.id)

    assert store.get_review(review.id).is_reported is True
    assert store.get_review_stats(R).total_ratings == 0
    with pytest.raises(NotFound):
        store.report_review("missing")


def test_stats_distribution(store):
    for user, rating in [("a", 5), ("b", 5), ("c", 2), ("d", 4)]:
        store.create_review(user, R, rating, CONTENT)
    stats = store.get_review_stats(R)

    assert stats.total_ratings == 4
    assert stats.average_rating == 4.0
    assert stats.rating_distribution == {1: 0, 2: 1, 3: 0, 4: 1, 5: 2}


def test_stats_ignore_reported_and_track_rating_changes(store):
    a = store.create_review("a", R, 5, CONTENT)
    b = store.create_review("b", R, 1, CONTENT)
    store.report_review(b.id)
    store.update_review("b", b.id, rating=5)
    store.update_review("a", a.id, rating=2)

    stats = store.get_review_stats(R)
    assert stats.rating_distribution == {1: 0, 2: 1, 3: 0, 4: 0, 5: 0}
    assert stats.average_rating == 2.0


def test_only_reported_reviews_give_empty_stats(store):
    review = store.create_review("alice", R, 4, CONTENT)
    store.report_review(review.id)
    stats = store.get_review_stats(R)

    assert stats.total_ratings == 0
    assert stats.average_rating == 0
    assert stats.rating_distribution == {1: 0, 2: 0, 3: 0, 4: 0, 5: 0}


def test_review_lifecycle_end_to_end(store):
    review = store.create_review("userA", R, 5, CONTENT)
    stats = store.get_review_stats(R)
    assert (stats.average_rating, stats.total_ratings) == (5.0, 1)
    assert stats.rating_distribution == {5: 1, 4: 0, 3: 0, 2: 0, 1: 0}

    store.update_review("userA", review.id, rating=3)
    stats = store.get_review_stats(R)
    assert (stats.average_rating, stats.total_ratings) == (3.0, 1)

    store.report_review(review.id)
    stats = store.get_review_stats(R)
    assert (stats.average_rating, stats.total_ratings) == (0, 0)
    assert store.get_reviews_for_restaurant(R).reviews == []

    mine = store.get_user_review("userA", R)
    assert mine is not None
    assert mine.is_reported is True
    assert mine.rating == 3
