from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dineout.db.base import Base
from dineout.engagement.rules import utcnow


class UserAuth(Base):
    __tablename__ = "users_auth"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    email: Mapped[str] = mapped_column(String(320), unique=True, index=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow)

    profile: Mapped["UserProfile"] = relationship(
        back_populates="user", uselist=False, cascade="all, delete-orphan", lazy="joined"
    )

    @property
    def display_name(self) -> str | None:
        return self.profile.display_name if self.profile else None


class UserProfile(Base):
    __tablename__ = "users_profile"

    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users_auth.id"), primary_key=True)
    # Snapshotted onto reviews at write time; renaming does not rewrite old reviews.
    display_name: Mapped[str | None] = mapped_column(String(120), nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    user: Mapped[UserAuth] = relationship(back_populates="profile")
