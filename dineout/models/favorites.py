from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Float, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from dineout.db.base import Base


class FavoriteRow(Base):
    __tablename__ = "favorites"

    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False)
    restaurant_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # Restaurant snapshot taken at favorite time
    restaurant_name: Mapped[str] = mapped_column(String(255), nullable=False)
    restaurant_address: Mapped[str | None] = mapped_column(Text, nullable=True)
    restaurant_rating: Mapped[float | None] = mapped_column(Float, nullable=True)
    restaurant_price_level: Mapped[int | None] = mapped_column(Integer, nullable=True)
    restaurant_photo_url: Mapped[str | None] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)

    __table_args__ = (UniqueConstraint("user_id", "restaurant_id"),)


Index("ix_favorites_user_created_at", FavoriteRow.user_id, FavoriteRow.created_at)
