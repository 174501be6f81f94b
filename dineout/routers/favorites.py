from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Response, status

from dineout.core.deps import get_current_user, get_optional_user, get_store
from dineout.engagement.repository import EngagementRepository
from dineout.models.users import UserAuth
from dineout.schemas.favorites import (
    FavoriteCheckResponse,
    FavoriteCountResponse,
    FavoriteListResponse,
    FavoriteRequest,
    FavoriteResponse,
    FavoriteToggleResponse,
)

router = APIRouter(prefix="/favorites", tags=["favorites"])


@router.get("", response_model=FavoriteListResponse)
def list_favorites(
    current: UserAuth = Depends(get_current_user),
    store: EngagementRepository = Depends(get_store),
) -> FavoriteListResponse:
    favorites = store.get_user_favorites(current.id)
    return FavoriteListResponse(items=[FavoriteResponse.from_record(f) for f in favorites], count=len(favorites))


@router.get("/count", response_model=FavoriteCountResponse)
def count_favorites(
    current: UserAuth = Depends(get_current_user),
    store: EngagementRepository = Depends(get_store),
) -> FavoriteCountResponse:
    return FavoriteCountResponse(count=store.get_favorite_count(current.id))


@router.get("/check/{restaurant_id}", response_model=FavoriteCheckResponse)
def check_favorite(
    restaurant_id: str,
    current: UserAuth | None = Depends(get_optional_user),
    store: EngagementRepository = Depends(get_store),
) -> FavoriteCheckResponse:
    if current is None:
        return FavoriteCheckResponse(is_favorited=False)
    return FavoriteCheckResponse(is_favorited=store.is_favorited(current.id, restaurant_id))


@router.post("", response_model=FavoriteResponse, status_code=201)
def add_favorite(
    payload: FavoriteRequest,
    current: UserAuth = Depends(get_current_user),
    store: EngagementRepository = Depends(get_store),
) -> FavoriteResponse:
    favorite = store.add_favorite(current.id, payload.restaurant_id, payload.snapshot())
    return FavoriteResponse.from_record(favorite)


@router.post("/toggle", response_model=FavoriteToggleResponse)
def toggle_favorite(
    payload: FavoriteRequest,
    current: UserAuth = Depends(get_current_user),
    store: EngagementRepository = Depends(get_store),
) -> FavoriteToggleResponse:
    result = store.toggle_favorite(current.id, payload.restaurant_id, payload.snapshot())
    return FavoriteToggleResponse(
        is_favorited=result.is_favorited,
        favorite=FavoriteResponse.from_record(result.favorite) if result.favorite else None,
    )


@router.delete("/{restaurant_id}", status_code=204)
def remove_favorite(
    restaurant_id: str,
    current: UserAuth = Depends(get_current_user),
    store: EngagementRepository = Depends(get_store),
) -> Response:
    if not store.remove_favorite(current.id, restaurant_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Favorite not found")
    return Response(status_code=status.HTTP_204_NO_CONTENT)
