from __future__ import annotations

from pydantic import BaseModel, Field


class UserProfileUpdate(BaseModel):
    display_name: str | None = Field(default=None, max_length=120)


class UserProfileResponse(BaseModel):
    user_id: str
    display_name: str | None
