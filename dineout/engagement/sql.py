from __future__ import annotations

import logging
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime

from sqlalchemy import Engine, delete, func, select, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from dineout.db.base import Base
from dineout.db.session import make_engine, make_session_factory
from dineout.engagement import rules
from dineout.engagement.errors import DuplicateReview, NotFound, StorageUnavailable, Unauthorized
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
from dineout.models.favorites import FavoriteRow
from dineout.models.reviews import ReviewRow

logger = logging.getLogger(__name__)

_UNAVAILABLE = (OperationalError, InterfaceError, PoolTimeoutError)

_NEWEST_REVIEWS = (ReviewRow.created_at.desc(), ReviewRow.id.desc())
_NEWEST_FAVORITES = (FavoriteRow.created_at.desc(), FavoriteRow.id.desc())

# Attempts to settle a favorite whose insert keeps colliding with concurrent writers.
_FAVORITE_RACE_ATTEMPTS = 3


def _to_review(row: ReviewRow) -> Review:
    return Review(
        id=row.id,
        user_id=row.user_id,
        restaurant_id=row.restaurant_id,
        rating=row.rating,
        title=row.title,
        content=row.content,
        created_at=row.created_at,
        updated_at=row.updated_at,
        helpful_count=row.helpful_count,
        is_reported=row.is_reported,
        user_name=row.user_name,
    )


def _to_favorite(row: FavoriteRow) -> Favorite:
    return Favorite(
        id=row.id,
        user_id=row.user_id,
        restaurant_id=row.restaurant_id,
        restaurant_name=row.restaurant_name,
        restaurant_address=row.restaurant_address,
        restaurant_rating=row.restaurant_rating,
        restaurant_price_level=row.restaurant_price_level,
        restaurant_photo_url=row.restaurant_photo_url,
        created_at=row.created_at,
    )


def _visible(restaurant_id: str):
    return ReviewRow.restaurant_id == restaurant_id, ReviewRow.is_reported.is_(False)


class SqlEngagementStore:
    """Engagement store backed by the ``reviews`` and ``favorites`` tables.

    Every public method is exactly one transaction on one pooled connection.
    The unique ``(user_id, restaurant_id)`` constraints are what actually
    enforce one review / one favorite per pair when requests race; the
    lookups done beforehand only produce the friendlier error early.
    """

    backend = "sql"

    def __init__(
        self,
        engine: Engine,
        *,
        clock: Callable[[], datetime] = rules.utcnow,
        id_factory: Callable[[], str] = rules.new_id,
    ) -> None:
        self._engine = engine
        self._sessions = make_session_factory(engine)
        self._clock = clock
        self._new_id = id_factory

    @classmethod
    def from_url(cls, database_url: str, **kwargs) -> "SqlEngagementStore":
        return cls(make_engine(database_url), **kwargs)

    @contextmanager
    def _transaction(self) -> Iterator[Session]:
        try:
            with self._sessions.begin() as db:
                yield db
        except _UNAVAILABLE as exc:
            logger.exception("Engagement storage unavailable")
            raise StorageUnavailable("Storage is temporarily unavailable, try again later") from exc

    def create_schema(self) -> None:
        try:
            Base.metadata.create_all(bind=self._engine, tables=[ReviewRow.__table__, FavoriteRow.__table__])
        except _UNAVAILABLE as exc:
            logger.exception("Could not create engagement tables")
            raise StorageUnavailable("Storage is temporarily unavailable, try again later") from exc

    def dispose(self) -> None:
        self._engine.dispose()

    def ping(self) -> None:
        with self._transaction() as db:
            db.execute(select(1))

    # Reviews

    @staticmethod
    def _pair_review(db: Session, user_id: str, restaurant_id: str) -> ReviewRow | None:
        return db.scalar(
            select(ReviewRow).where(ReviewRow.user_id == user_id, ReviewRow.restaurant_id == restaurant_id)
        )

    @staticmethod
    def _owned_review(db: Session, user_id: str, review_id: str, action: str) -> ReviewRow:
        row = db.get(ReviewRow, review_id)
        if row is None:
            raise NotFound("Review not found")
        if row.user_id != user_id:
            raise Unauthorized(f"Unauthorized to {action} this review")
        return row

    @staticmethod
    def _stats(db: Session, restaurant_id: str) -> ReviewStats:
        rows = db.execute(
            select(ReviewRow.rating, func.count()).where(*_visible(restaurant_id)).group_by(ReviewRow.rating)
        ).all()
        return rules.build_stats({rating: count for rating, count in rows})

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
        with self._transaction() as db:
            if self._pair_review(db, user_id, restaurant_id) is not None:
                raise DuplicateReview("User has already reviewed this restaurant")
            rating = rules.validate_rating(rating)
            text = rules.normalize_content(content)
            clean_title = rules.normalize_title(title)
            rules.check_user_name(user_name)

            now = self._clock()
            row = ReviewRow(
                id=self._new_id(),
                user_id=user_id,
                restaurant_id=restaurant_id,
                rating=rating,
                title=clean_title,
                content=text,
                user_name=user_name,
                helpful_count=0,
                is_reported=False,
                created_at=now,
                updated_at=now,
            )
            db.add(row)
            try:
                db.flush()
            except IntegrityError as exc:
                # Lost a race against a concurrent create for the same pair.
                raise DuplicateReview("User has already reviewed this restaurant") from exc
            return _to_review(row)

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
        with self._transaction() as db:
            row = self._owned_review(db, user_id, review_id, "update")
            new_rating = rules.validate_rating(rating) if rating is not None else None
            new_content = rules.normalize_content(content) if content is not None else None
            new_title = rules.normalize_title(title) if title is not None else None
            if user_name is not UNCHANGED:
                rules.check_user_name(user_name)

            if new_rating is not None:
                row.rating = new_rating
            if new_content is not None:
                row.content = new_content
            if title is not None:
                row.title = new_title
            if user_name is not UNCHANGED:
                row.user_name = user_name
            row.updated_at = self._clock()
            db.flush()
            return _to_review(row)

    def delete_review(self, user_id: str, review_id: str) -> None:
        rules.check_text(review_id, "review_id")
        with self._transaction() as db:
            self._owned_review(db, user_id, review_id, "delete")
            # A concurrent delete may have won; the row is gone either way.
            db.execute(delete(ReviewRow).where(ReviewRow.id == review_id))

    def get_review(self, review_id: str) -> Review | None:
        rules.check_text(review_id, "review_id")
        with self._transaction() as db:
            row = db.get(ReviewRow, review_id)
            return _to_review(row) if row else None

    def get_user_review(self, user_id: str, restaurant_id: str) -> Review | None:
        rules.check_id(user_id, "user_id")
        rules.check_id(restaurant_id, "restaurant_id")
        with self._transaction() as db:
            row = self._pair_review(db, user_id, restaurant_id)
            return _to_review(row) if row else None

    def get_reviews_for_restaurant(self, restaurant_id: str, limit: int = 20, offset: int = 0) -> ReviewPage:
        rules.check_id(restaurant_id, "restaurant_id")
        rules.validate_page(limit, offset)
        with self._transaction() as db:
            stats = self._stats(db, restaurant_id)
            rows = db.scalars(
                select(ReviewRow)
                .where(*_visible(restaurant_id))
                .order_by(*_NEWEST_REVIEWS)
                .limit(limit)
                .offset(offset)
            ).all()
            return ReviewPage(
                reviews=[_to_review(r) for r in rows],
                total=stats.total_ratings,
                average_rating=stats.average_rating,
                total_ratings=stats.total_ratings,
            )

    def get_user_reviews(self, user_id: str, limit: int = 20, offset: int = 0) -> list[Review]:
        rules.check_id(user_id, "user_id")
        rules.validate_page(limit, offset)
        with self._transaction() as db:
            rows = db.scalars(
                select(ReviewRow)
                .where(ReviewRow.user_id == user_id)
                .order_by(*_NEWEST_REVIEWS)
                .limit(limit)
                .offset(offset)
            ).all()
            return [_to_review(r) for r in rows]

    def mark_review_helpful(self, review_id: str) -> int:
        rules.check_text(review_id, "review_id")
        with self._transaction() as db:
            # Increment in SQL so concurrent marks never lose an update.
            result = db.execute(
                update(ReviewRow)
                .where(ReviewRow.id == review_id)
                .values(helpful_count=ReviewRow.helpful_count + 1)
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise NotFound("Review not found")
            return int(db.scalar(select(ReviewRow.helpful_count).where(ReviewRow.id == review_id)))

    def report_review(self, review_id: str) -> None:
        rules.check_text(review_id, "review_id")
        with self._transaction() as db:
            row = db.get(ReviewRow, review_id)
            if row is None:
                raise NotFound("Review not found")
            if row.is_reported:
                return
            row.is_reported = True
        logger.info("Review %s reported", review_id)

    def get_review_stats(self, restaurant_id: str) -> ReviewStats:
        rules.check_id(restaurant_id, "restaurant_id")
        with self._transaction() as db:
            return self._stats(db, restaurant_id)

    # Favorites

    @staticmethod
    def _pair_favorite(db: Session, user_id: str, restaurant_id: str) -> FavoriteRow | None:
        return db.scalar(
            select(FavoriteRow).where(FavoriteRow.user_id == user_id, FavoriteRow.restaurant_id == restaurant_id)
        )

    def _new_favorite(self, user_id: str, restaurant_id: str, snapshot: RestaurantSnapshot) -> FavoriteRow:
        return FavoriteRow(
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

    def _existing_or_insert(self, user_id: str, restaurant_id: str, snapshot: RestaurantSnapshot) -> Favorite:
        """Settle the create-arm after a unique-constraint conflict on insert.

        A concurrent request created the favorite first; hand back its record
        so the create-arm stays idempotent. If that row is deleted and inserted
        again while we look, the insert collides once more and we re-read.
        """
        for _ in range(_FAVORITE_RACE_ATTEMPTS):
            try:
                with self._transaction() as db:
                    row = self._pair_favorite(db, user_id, restaurant_id)
                    if row is None:
                        row = self._new_favorite(user_id, restaurant_id, snapshot)
                        db.add(row)
                        db.flush()
                    return _to_favorite(row)
            except IntegrityError:
                logger.info("Favorite for user=%s restaurant=%s changed during retry", user_id, restaurant_id)
        logger.warning("Gave up on contended favorite for user=%s restaurant=%s", user_id, restaurant_id)
        raise StorageUnavailable("Favorite is being changed concurrently, try again later")

    def toggle_favorite(self, user_id: str, restaurant_id: str, snapshot: RestaurantSnapshot) -> ToggleResult:
        rules.check_favorite(user_id, restaurant_id, snapshot)
        try:
            with self._transaction() as db:
                row = self._pair_favorite(db, user_id, restaurant_id)
                if row is not None:
                    # By id: a concurrent toggle may already have removed it.
                    db.execute(delete(FavoriteRow).where(FavoriteRow.id == row.id))
                    return ToggleResult(is_favorited=False)
                row = self._new_favorite(user_id, restaurant_id, snapshot)
                db.add(row)
                db.flush()
                return ToggleResult(is_favorited=True, favorite=_to_favorite(row))
        except IntegrityError:
            logger.info("Concurrent favorite for user=%s restaurant=%s, keeping existing", user_id, restaurant_id)
            return ToggleResult(is_favorited=True, favorite=self._existing_or_insert(user_id, restaurant_id, snapshot))

    def add_favorite(self, user_id: str, restaurant_id: str, snapshot: RestaurantSnapshot) -> Favorite:
        rules.check_favorite(user_id, restaurant_id, snapshot)
        try:
            with self._transaction() as db:
                row = self._pair_favorite(db, user_id, restaurant_id)
                if row is None:
                    row = self._new_favorite(user_id, restaurant_id, snapshot)
                    db.add(row)
                    db.flush()
                return _to_favorite(row)
        except IntegrityError:
            return self._existing_or_insert(user_id, restaurant_id, snapshot)

    def is_favorited(self, user_id: str, restaurant_id: str) -> bool:
        rules.check_id(user_id, "user_id")
        rules.check_id(restaurant_id, "restaurant_id")
        with self._transaction() as db:
            return self._pair_favorite(db, user_id, restaurant_id) is not None

    def get_user_favorites(self, user_id: str) -> list[Favorite]:
        rules.check_id(user_id, "user_id")
        with self._transaction() as db:
            rows = db.scalars(
                select(FavoriteRow).where(FavoriteRow.user_id == user_id).order_by(*_NEWEST_FAVORITES)
            ).all()
            return [_to_favorite(r) for r in rows]

    def get_favorite_count(self, user_id: str) -> int:
        rules.check_id(user_id, "user_id")
        with self._transaction() as db:
            return int(db.scalar(select(func.count()).select_from(FavoriteRow).where(FavoriteRow.user_id == user_id)) or 0)

    def remove_favorite(self, user_id: str, restaurant_id: str) -> bool:
        rules.check_id(user_id, "user_id")
        rules.check_id(restaurant_id, "restaurant_id")
        with self._transaction() as db:
            result = db.execute(
                delete(FavoriteRow).where(FavoriteRow.user_id == user_id, FavoriteRow.restaurant_id == restaurant_id)
            )
            return result.rowcount > 0
