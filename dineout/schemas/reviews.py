from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from dineout.engagement.records import Review


class ReviewCreate(BaseModel):
    # Range and length rules are enforced by the store so both backends answer identically;
    # the schema only bounds payload size.
    restaurant_id: str = Field(min_length=1, max_length=255)
    rating: int
    title: str | None = Field(default=None, max_length=255)
    content: str = Field(default="", max_length=5000)


class ReviewUpdate(BaseModel):
    rating: int | None = None
    title: str | None = Field(default=None, max_length=255)
    content: str | None = Field(default=None, max_length=5000)


class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    restaurant_id: str
    rating: int
    title: str | None
    content: str
    created_at: datetime
    updated_at: datetime
    helpful_count: int
    is_reported: bool
    user_name: str | None

    @classmethod
    def from_record(cls, review: Review) -> "ReviewResponse":
        return cls.model_validate(review)


class ReviewListResponse(BaseModel):
    items: list[ReviewResponse]
    total: int
    average_rating: float
    total_ratings: int
    limit: int
    offset: int


class UserReviewListResponse(BaseModel):
    items: list[ReviewResponse]
    limit: int
    offset: int


class ReviewStatsResponse(BaseModel):
    average_rating: float
    total_ratings: int
    rating_distribution: dict[int, int]


class HelpfulResponse(BaseModel):
    helpful_count: int
