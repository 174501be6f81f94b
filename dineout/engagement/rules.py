"""Business rules shared by every engagement store.

Both backends call into this module for validation, ordering and statistics,
so a rule changed here changes identically everywhere.
"""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from dineout.engagement.errors import InvalidContent, InvalidInput, InvalidRating
from dineout.engagement.records import Favorite, RestaurantSnapshot, Review, ReviewStats

MIN_RATING = 1
MAX_RATING = 5
MIN_CONTENT_LENGTH = 10

# Column widths of the SQL schema; the memory store enforces the same limits.
MAX_ID_LENGTH = 255
MAX_TITLE_LENGTH = 255
MAX_USER_NAME_LENGTH = 120
MAX_RESTAURANT_NAME_LENGTH = 255

# Largest limit/offset accepted: fits a signed 32-bit integer on every SQL driver.
MAX_PAGE_VALUE = 2**31 - 1

RATING_MESSAGE = f"Rating must be between {MIN_RATING} and {MAX_RATING}"
CONTENT_MESSAGE = f"Review content must be at least {MIN_CONTENT_LENGTH} characters"


def utcnow() -> datetime:
    # Naive UTC: SQL DateTime columns drop tzinfo, the memory store must match.
    return datetime.now(timezone.utc).replace(tzinfo=None)


def new_id() -> str:
    return uuid.uuid4().hex


def validate_rating(rating: object) -> int:
    if isinstance(rating, bool) or not isinstance(rating, int):
        raise InvalidRating(RATING_MESSAGE)
    if rating < MIN_RATING or rating > MAX_RATING:
        raise InvalidRating(RATING_MESSAGE)
    return rating


def check_text(value: str | None, field: str, max_length: int | None = None) -> str | None:
    """Reject text that cannot be stored: NUL characters, or longer than its column."""
    if value is None:
        return None
    if "\x00" in value:
        raise InvalidInput(f"{field} must not contain NUL characters")
    if max_length is not None and len(value) > max_length:
        raise InvalidInput(f"{field} must be at most {max_length} characters")
    return value


def check_id(value: str, field: str) -> str:
    return check_text(value, field, MAX_ID_LENGTH)


def check_snapshot(snapshot: RestaurantSnapshot) -> RestaurantSnapshot:
    check_text(snapshot.name, "restaurant_name", MAX_RESTAURANT_NAME_LENGTH)
    check_text(snapshot.address, "restaurant_address")
    check_text(snapshot.photo_url, "restaurant_photo_url")
    return snapshot


def check_favorite(user_id: str, restaurant_id: str, snapshot: RestaurantSnapshot) -> None:
    check_id(user_id, "user_id")
    check_id(restaurant_id, "restaurant_id")
    check_snapshot(snapshot)


def check_user_name(user_name: str | None) -> str | None:
    return check_text(user_name, "user_name", MAX_USER_NAME_LENGTH)


def normalize_content(content: str | None) -> str:
    text = (content or "").strip()
    if len(text) < MIN_CONTENT_LENGTH:
        raise InvalidContent(CONTENT_MESSAGE)
    return check_text(text, "content")


def normalize_title(title: str | None) -> str | None:
    if title is None:
        return None
    return check_text(title.strip(), "title", MAX_TITLE_LENGTH) or None


def validate_page(limit: int, offset: int) -> None:
    if limit < 0 or offset < 0:
        raise ValueError("limit and offset must be non-negative")
    if limit > MAX_PAGE_VALUE or offset > MAX_PAGE_VALUE:
        raise ValueError(f"limit and offset must not exceed {MAX_PAGE_VALUE}")


def review_sort_key(review: Review) -> tuple[datetime, str]:
    """Listing order key; listings walk it from the largest key down.

    Equal timestamps fall back to the id, mirrored in SQL as
    ``ORDER BY created_at DESC, id DESC``.
    """
    return review.created_at, review.id


def favorite_sort_key(favorite: Favorite) -> tuple[datetime, str]:
    return favorite.created_at, favorite.id


def empty_distribution() -> dict[int, int]:
    return {star: 0 for star in range(MIN_RATING, MAX_RATING + 1)}


def average_rating(distribution: Mapping[int, int]) -> float:
    """Mean rating rounded half-up to one decimal; ``0.0`` when there are no ratings."""
    count = sum(distribution.values())
    if count == 0:
        return 0.0
    total = sum(star * n for star, n in distribution.items())
    mean = Decimal(total) / Decimal(count)
    return float(mean.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def build_stats(distribution: Mapping[int, int]) -> ReviewStats:
    dist = empty_distribution()
    dist.update({int(star): int(n) for star, n in distribution.items()})
    return ReviewStats(
        average_rating=average_rating(dist),
        total_ratings=sum(dist.values()),
        rating_distribution=dist,
    )
