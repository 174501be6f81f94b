"""Reviews and favorites: validation, invariants, pagination and statistics."""

from dineout.engagement.errors import (
    DuplicateReview,
    EngagementError,
    InvalidContent,
    InvalidInput,
    InvalidRating,
    NotFound,
    StorageUnavailable,
    Unauthorized,
)
from dineout.engagement.records import UNCHANGED, Favorite, RestaurantSnapshot, Review, ReviewPage, ReviewStats, ToggleResult
from dineout.engagement.repository import EngagementRepository

__all__ = [
    "DuplicateReview",
    "EngagementError",
    "EngagementRepository",
    "Favorite",
    "InvalidContent",
    "InvalidInput",
    "InvalidRating",
    "NotFound",
    "RestaurantSnapshot",
    "Review",
    "ReviewPage",
    "ReviewStats",
    "StorageUnavailable",
    "ToggleResult",
    "UNCHANGED",
    "Unauthorized",
]
