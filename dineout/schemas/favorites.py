from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from dineout.engagement.records import Favorite, RestaurantSnapshot


class FavoriteRequest(BaseModel):
    restaurant_id: str = Field(min_length=1, max_length=255)
    restaurant_name: str = Field(min_length=1, max_length=255)
    restaurant_address: str | None = Field(default=None, max_length=1000)
    restaurant_rating: float | None = Field(default=None, ge=0, le=5)
    restaurant_price_level: int | None = Field(default=None, ge=0, le=4)
    restaurant_photo_url: str | None = Field(default=None, max_length=2000)

    def snapshot(self) -> RestaurantSnapshot:
        return RestaurantSnapshot(
            name=self.restaurant_name,
            address=self.restaurant_address,
            rating=self.restaurant_rating,
            price_level=self.restaurant_price_level,
            photo_url=self.restaurant_photo_url,
        )


class FavoriteResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    user_id: str
    restaurant_id: str
    restaurant_name: str
    restaurant_address: str | None
    restaurant_rating: float | None
    restaurant_price_level: int | None
    restaurant_photo_url: str | None
    created_at: datetime

    @classmethod
    def from_record(cls, favorite: Favorite) -> "FavoriteResponse":
        return cls.model_validate(favorite)


class FavoriteListResponse(BaseModel):
    items: list[FavoriteResponse]
    count: int


class FavoriteToggleResponse(BaseModel):
    is_favorited: bool
    favorite: FavoriteResponse | None = None


class FavoriteCheckResponse(BaseModel):
    is_favorited: bool


class FavoriteCountResponse(BaseModel):
    count: int
