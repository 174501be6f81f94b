from __future__ import annotations

import logging
from bisect import bisect_left, insort
from collections.abc import Callable, Iterator
from dataclasses import replace
from datetime import datetime
from threading import Lock

from dineout.engagement import rules
from dineout.engagement.errors import DuplicateReview, NotFound, Unauthorized
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

logger = logging.getLogger(__name__)

_Key = tuple[datetime, str]


class _OrderedIndex:
    """Per-owner lists of (created_at, id), kept sorted oldest first."""

    def __init__(self) -> None:
        self._lists: dict[str, list[_Key]] = {}

    def add(self, owner: str, key: _Key) -> None:
        insort(self._lists.setdefault(owner, []), key)

    def discard(self, owner: str, key: _Key) -> None:
        keys = self._lists.get(owner)
        if not keys:
            return
        i = bisect_left(keys, key)
        if i < len(keys) and keys[i] == key:
            del keys[i]
        if not keys:
            del self._lists[owner]

    def newest_first(self, owner: str) -> Iterator[str]:
        for _, record_id in reversed(self._lists.get(owner, ())):
            yield record_id

    def count(self, owner: str) -> int:
        return len(self._lists.get(owner, ()))


class MemoryEngagementStore:
    """In-process engagement store. Nothing survives a restart.

    Every public method holds one coarse lock for its whole duration: the
    access pattern is read-mostly and low-contention, and holding it across
    check-then-write is what makes duplicate detection race-free.
    """

    backend = "memory"

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = rules.utcnow,
        id_factory: Callable[[], str] = rules.new_id,
    ) -> None:
        self._clock = clock
        self._new_id = id_factory
        self._lock = Lock()

        self._reviews: dict[str, Review] = {}
        self._review_by_pair: dict[tuple[str, str], str] = {}
        self._reviews_by_restaurant = _OrderedIndex()
        self._reviews_by_user = _OrderedIndex()
        # Rating histogram of the non-reported reviews of each restaurant
        self._visible_ratings: dict[str, dict[int, int]] = {}

        self._favorites: dict[str, Favorite] = {}
        self._favorite_by_pair: dict[tuple[str, str], str] = {}
        self._favorites_by_user = _OrderedIndex()

    # Index maintenance (callers hold the lock)

    def _histogram(self, restaurant_id: str) -> dict[int, int]:
        return self._visible_ratings.setdefault(restaurant_id, rules.empty_distribution())

    def _index_review(self, review: Review) -> None:
        key = rules.review_sort_key(review)
        self._reviews[review.id] = review
        self._review_by_pair[(review.user_id, review.restaurant_id)] = review.id
        self._reviews_by_restaurant.add(review.restaurant_id, key)
        self._reviews_by_user.add(review.user_id, key)
        if not review.is_reported:
            self._histogram(review.restaurant_id)[review.rating] += 1

    def _unindex_review(self, review: Review) -> None:
        key = rules.review_sort_key(review)
        del self._reviews[review.id]
        self._review_by_pair.pop((review.user_id, review.restaurant_id), None)
        self._reviews_by_restaurant.discard(review.restaurant_id, key)
        self._reviews_by_user.discard(review.user_id, key)
        if not review.is_reported:
            self._histogram(review.restaurant_id)[review.rating] -= 1

    def _owned_review(self, user_id: str, review_id: str, action: str) -> Review:
        review = self._reviews.get(review_id)
        if review is None:
            raise NotFound("Review not found")
        if review.user_id != user_id:
            raise Unauthorized(f"Unauthorized to {action} this review")
        return review

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
        rules.check_id(user_id, "user_id")
        rules.check_id(restaurant_id, "restaurant_id")
        with self._lock:
            if (user_id, restaurant_id) in self._review_by_pair:
                raise DuplicateReview("User has already reviewed this restaurant")
            rating = rules.validate_rating(rating)
            text = rules.normalize_content(content)
            clean_title = rules.normalize_title(title)
            rules.check_user_name(user_name)

            now = self._clock()
            review = Review(
                id=self._new_id(),
                user_id=user_id,
                restaurant_id=restaurant_id,
                rating=rating,
                title=clean_title,
                content=text,
                created_at=now,
                updated_at=now,
                user_name=user_name,
            )
            self._index_review(review)
            return review

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
        rules.check_text(review_id, "review_id")
        with self._lock:
            review = self._owned_review(user_id, review_id, "update")
            changes: dict[str, object] = {}
            if rating is not None:
                changes["rating"] = rules.validate_rating(rating)
            if content is not None:
                changes["content"] = rules.normalize_content(content)
            if title is not None:
                changes["title"] = rules.normalize_title(title)
            if user_name is not UNCHANGED:
                changes["user_name"] = rules.check_user_name(user_name)
            changes["updated_at"] = self._clock()

            updated = replace(review, **changes)
            if not review.is_reported and updated.rating != review.rating:
                hist = self._histogram(review.restaurant_id)
                hist[review.rating] -= 1
                hist[updated.rating] += 1
            self._reviews[review_id] = updated
            return updated

    def delete_review(self, user_id: str, review_id: str) -> None:
        rules.check_text(review_id, "review_id")
        with self._lock:
            review = self._owned_review(user_id, review_id, "delete")
            self._unindex_review(review)

    def get_review(self, review_id: str) -> Review | None:
        rules.check_text(review_id, "review_id")
        with self._lock:
            return self._reviews.get(review_id)

    def get_user_review(self, user_id: str, restaurant_id: str) -> Review | None:
        rules.check_id(user_id, "user_id")
        rules.check_id(restaurant_id, "restaurant_id")
        with self._lock:
            review_id = self._review_by_pair.get((user_id, restaurant_id))
            return self._reviews[review_id] if review_id else None

    def get_reviews_for_restaurant(self, restaurant_id: str, limit: int = 20, offset: int = 0) -> ReviewPage:
        rules.check_id(restaurant_id, "restaurant_id")
        rules.validate_page(limit, offset)
        with self._lock:
            stats = rules.build_stats(self._visible_ratings.get(restaurant_id, {}))
            page: list[Review] = []
            skipped = 0
            for review_id in self._reviews_by_restaurant.newest_first(restaurant_id):
                if len(page) >= limit:
                    break
                review = self._reviews[review_id]
                if review.is_reported:
                    continue
                if skipped < offset:
                    skipped += 1
                    continue
                page.append(review)
            return ReviewPage(
                reviews=page,
                total=stats.total_ratings,
                average_rating=stats.average_rating,
                total_ratings=stats.total_ratings,
            )

    def get_user_reviews(self, user_id: str, limit: int = 20, offset: int = 0) -> list[Review]:
        rules.check_id(user_id, "user_id")
        rules.validate_page(limit, offset)
        with self._lock:
            ids = self._reviews_by_user.newest_first(user_id)
            out: list[Review] = []
            for i, review_id in enumerate(ids):
                if len(out) >= limit:
                    break
                if i >= offset:
                    out.append(self._reviews[review_id])
            return out

    def mark_review_helpful(self, review_id: str) -> int:
        rules.check_text(review_id, "review_id")
        with self._lock:
            review = self._reviews.get(review_id)
            if review is None:
                raise NotFound("Review not found")
            updated = replace(review, helpful_count=review.helpful_count + 1)
            self._reviews[review_id] = updated
            return updated.helpful_count

    def report_review(self, review_id: str) -> None:
        rules.check_text(review_id, "review_id")
        with self._lock:
            review = self._reviews.get(review_id)
            if review is None:
                raise NotFound("Review not found")
            if review.is_reported:
                return
            self._reviews[review_id] = replace(review, is_reported=True)
            self._histogram(review.restaurant_id)[review.rating] -= 1
            logger.info("Review %s reported", review_id)

    def get_review_stats(self, restaurant_id: str) -> ReviewStats:
        rules.check_id(restaurant_id, "restaurant_id")
        with self._lock:
            return rules.build_stats(self._visible_ratings.get(restaurant_id, {}))

    # Favorites

    def _favorite_for(self, user_id: str, restaurant_id: str) -> Favorite | None:
        favorite_id = self._favorite_by_pair.get((user_id, restaurant_id))
        return self._favorites[favorite_id] if favorite_id else None

    def _insert_favorite(self, user_id: str, restaurant_id: str, snapshot: RestaurantSnapshot) -> Favorite:
        favorite = Favorite(
            id=self._new_id(),
            user_id=user_id,
            restaurant_id=restaurant_id,
            restaurant_name=snapshot.name,
            restaurant_address=snapshot.address,
            restaurant_rating=snapshot.rating,
            restaurant_price_level=snapshot.price_level,
            restaurant_photo_url=snapshot.photo_url,
            created_at=self._clock(),
        )
        self._favorites[favorite.id] = favorite
        self._favorite_by_pair[(user_id, restaurant_id)] = favorite.id
        self._favorites_by_user.add(user_id, rules.favorite_sort_key(favorite))
        return favorite

    def _delete_favorite(self, favorite: Favorite) -> None:
        del self._favorites[favorite.id]
        del self._favorite_by_pair[(favorite.user_id, favorite.restaurant_id)]
        self._favorites_by_user.discard(favorite.user_id, rules.favorite_sort_key(favorite))

    def toggle_favorite(self, user_id: str, restaurant_id: str, snapshot: RestaurantSnapshot) -> ToggleResult:
        rules.check_favorite(user_id, restaurant_id, snapshot)
        with self._lock:
            existing = self._favorite_for(user_id, restaurant_id)
            if existing is not None:
                self._delete_favorite(existing)
                return ToggleResult(is_favorited=False)
            return ToggleResult(is_favorited=True, favorite=self._insert_favorite(user_id, restaurant_id, snapshot))

    def add_favorite(self, user_id: str, restaurant_id: str, snapshot: RestaurantSnapshot) -> Favorite:
        rules.check_favorite(user_id, restaurant_id, snapshot)
        with self._lock:
            existing = self._favorite_for(user_id, restaurant_id)
            if existing is not None:
                return existing
            return self._insert_favorite(user_id, restaurant_id, snapshot)

    def is_favorited(self, user_id: str, restaurant_id: str) -> bool:
        rules.check_id(user_id, "user_id")
        rules.check_id(restaurant_id, "restaurant_id")
        with self._lock:
            return (user_id, restaurant_id) in self._favorite_by_pair

    def get_user_favorites(self, user_id: str) -> list[Favorite]:
        rules.check_id(user_id, "user_id")
        with self._lock:
            return [self._favorites[fid] for fid in self._favorites_by_user.newest_first(user_id)]

    def get_favorite_count(self, user_id: str) -> int:
        rules.check_id(user_id, "user_id")
        with self._lock:
            return self._favorites_by_user.count(user_id)

    def remove_favorite(self, user_id: str, restaurant_id: str) -> bool:
        rules.check_id(user_id, "user_id")
        rules.check_id(restaurant_id, "restaurant_id")
        with self._lock:
            existing = self._favorite_for(user_id, restaurant_id)
            if existing is None:
                return False
            self._delete_favorite(existing)
            return True

    def ping(self) -> None:
        return None
