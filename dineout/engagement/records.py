from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime


class Unchanged(enum.Enum):
    """Marker for an update argument the caller did not supply (``None`` is a real value)."""

    UNCHANGED = "unchanged"


UNCHANGED = Unchanged.UNCHANGED


@dataclass(frozen=True)
class Review:
    id: str
    user_id: str
    restaurant_id: str
    rating: int
    title: str | None
    content: str
    created_at: datetime
    updated_at: datetime
    helpful_count: int = 0
    is_reported: bool = False
    user_name: str | None = None


@dataclass(frozen=True)
class RestaurantSnapshot:
    """Restaurant fields copied onto a favorite so lists render without the places API."""

    name: str
    address: str | None = None
    rating: float | None = None
    price_level: int | None = None
    photo_url: str | None = None


@dataclass(frozen=True)
class Favorite:
    id: str
    user_id: str
    restaurant_id: str
    restaurant_name: str
    restaurant_address: str | None
    restaurant_rating: float | None
    restaurant_price_level: int | None
    restaurant_photo_url: str | None
    created_at: datetime


@dataclass(frozen=True)
class ReviewPage:
    reviews: list[Review]
    total: int
    average_rating: float
    total_ratings: int


@dataclass(frozen=True)
class ReviewStats:
    average_rating: float
    total_ratings: int
    rating_distribution: dict[int, int] = field(default_factory=dict)


@dataclass(frozen=True)
class ToggleResult:
    is_favorited: bool
    favorite: Favorite | None = None
