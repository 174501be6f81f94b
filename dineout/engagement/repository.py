"""
Engagement repository abstraction.

Owns reviews and favorites. Implementations: memory (development, tests) and
SQL (production). Chosen once at startup via ``STORAGE_BACKEND``; callers must
not be able to tell them apart except by persistence across restarts.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from dineout.engagement.records import (
    UNCHANGED,
    Favorite,
    RestaurantSnapshot,
    Review,
    ReviewPage,
    ReviewStats,
    ToggleResult,
    Unchanged,
)


@runtime_checkable
class EngagementRepository(Protocol):
    """Capability interface implemented by every engagement store."""

    backend: str

    # Reviews

    def create_review(
        self,
        user_id: str,
        restaurant_id: str,
        rating: int,
        content: str,
        title: str | None = None,
        *,
        user_name: str | None = None,
    ) -> Review:
        """Create the single review ``user_id`` may hold for ``restaurant_id``.

        Raises InvalidInput for unusable ids, then DuplicateReview, InvalidRating or
        InvalidContent (checked in that order).
        """
        ...

    def update_review(
        self,
        user_id: str,
        review_id: str,
        *,
        rating: int | None = None,
        title: str | None = None,
        content: str | None = None,
        user_name: str | None | Unchanged = UNCHANGED,
    ) -> Review:
        """Apply the supplied fields. ``title=""`` clears the title; ``None`` leaves a field as is.

        ``user_name`` is the exception: ``None`` clears the stored name and only
        ``UNCHANGED`` keeps it.

        Raises NotFound, Unauthorized, InvalidRating, InvalidContent or InvalidInput.
        """
        ...

    def delete_review(self, user_id: str, review_id: str) -> None:
        """Hard-delete an owned review. Raises NotFound or Unauthorized."""
        ...

    def get_review(self, review_id: str) -> Review | None:
        ...

    def get_user_review(self, user_id: str, restaurant_id: str) -> Review | None:
        ...

    def get_reviews_for_restaurant(self, restaurant_id: str, limit: int = 20, offset: int = 0) -> ReviewPage:
        """Non-reported reviews, newest first; ``total`` ignores the page window.

        ``limit`` and ``offset`` must lie in ``0..MAX_PAGE_VALUE``, else ValueError.
        """
        ...

    def get_user_reviews(self, user_id: str, limit: int = 20, offset: int = 0) -> list[Review]:
        """Every review the user owns, reported ones included, newest first."""
        ...

    def mark_review_helpful(self, review_id: str) -> int:
        """Increment and return the helpful count. Raises NotFound."""
        ...

    def report_review(self, review_id: str) -> None:
        """Flag the review as reported (idempotent). Raises NotFound."""
        ...

    def get_review_stats(self, restaurant_id: str) -> ReviewStats:
        ...

    # Favorites

    def toggle_favorite(self, user_id: str, restaurant_id: str, snapshot: RestaurantSnapshot) -> ToggleResult:
        ...

    def add_favorite(self, user_id: str, restaurant_id: str, snapshot: RestaurantSnapshot) -> Favorite:
        """Favorite a restaurant; returns the existing record if it is already a favorite."""
        ...

    def is_favorited(self, user_id: str, restaurant_id: str) -> bool:
        ...

    def get_user_favorites(self, user_id: str) -> list[Favorite]:
        ...

    def get_favorite_count(self, user_id: str) -> int:
        ...

    def remove_favorite(self, user_id: str, restaurant_id: str) -> bool:
        """Delete the favorite if present. Returns whether one existed."""
        ...

    # Health

    def ping(self) -> None:
        """Raise StorageUnavailable if the backing store cannot be reached."""
        ...
