from __future__ import annotations

from datetime import datetime

from sqlalchemy import Boolean, CheckConstraint, DateTime, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from dineout.db.base import Base


class ReviewRow(Base):
    __tablename__ = "reviews"

    # user_id / restaurant_id are opaque: users come from the identity provider,
    # restaurants from the external places API.
    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    restaurant_id: Mapped[str] = mapped_column(String(255), nullable=False)

    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    user_name: Mapped[str | None] = mapped_column(String(120), nullable=True)

    helpful_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_reported: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (
        UniqueConstraint("user_id", "restaurant_id"),
        CheckConstraint("rating >= 1 AND rating <= 5", name="rating_range"),
        CheckConstraint("helpful_count >= 0", name="helpful_count_non_negative"),
    )


Index("ix_reviews_restaurant_created_at", ReviewRow.restaurant_id, ReviewRow.created_at)
Index("ix_reviews_user_created_at", ReviewRow.user_id, ReviewRow.created_at)
