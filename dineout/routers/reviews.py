from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from dineout.core.deps import get_current_user, get_store
from dineout.core.rate_limit import signal_rate_limit
from dineout.engagement.repository import EngagementRepository
from dineout.engagement.rules import MAX_PAGE_VALUE
from dineout.models.users import UserAuth
from dineout.schemas.reviews import (
    HelpfulResponse,
    ReviewCreate,
    ReviewListResponse,
    ReviewResponse,
    ReviewStatsResponse,
    ReviewUpdate,
    UserReviewListResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reviews", tags=["reviews"])


@router.get("/restaurant/{restaurant_id}", response_model=ReviewListResponse)
def list_restaurant_reviews(
    restaurant_id: str,
    store: EngagementRepository = Depends(get_store),
    limit: int = Query(default=10, ge=1, le=100),
    offset: int = Query(default=0, ge=0, le=MAX_PAGE_VALUE),
) -> ReviewListResponse:
    page = store.get_reviews_for_restaurant(restaurant_id, limit=limit, offset=offset)
    return ReviewListResponse(
        items=[ReviewResponse.from_record(r) for r in page.reviews],
        total=page.total,
        average_rating=page.average_rating,
        total_ratings=page.total_ratings,
        limit=limit,
        offset=offset,
    )


@router.get("/restaurant/{restaurant_id}/stats", response_model=ReviewStatsResponse)
def restaurant_review_stats(
    restaurant_id: str,
    store: EngagementRepository = Depends(get_store),
) -> ReviewStatsResponse:
    stats = store.get_review_stats(restaurant_id)
    return ReviewStatsResponse(
        average_rating=stats.average_rating,
        total_ratings=stats.total_ratings,
        rating_distribution=stats.rating_distribution,
    )


@router.get("/restaurant/{restaurant_id}/user", response_model=ReviewResponse)
def my_review_for_restaurant(
    restaurant_id: str,
    current: UserAuth = Depends(get_current_user),
    store: EngagementRepository = Depends(get_store),
) -> ReviewResponse:
    review = store.get_user_review(current.id, restaurant_id)
    if review is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")
    return ReviewResponse.from_record(review)


@router.get("/user", response_model=UserReviewListResponse)
def my_reviews(
    current: UserAuth = Depends(get_current_user),
    store: EngagementRepository = Depends(get_store),
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0, le=MAX_PAGE_VALUE),
) -> UserReviewListResponse:
    reviews = store.get_user_reviews(current.id, limit=limit, offset=offset)
    return UserReviewListResponse(
        items=[ReviewResponse.from_record(r) for r in reviews],
        limit=limit,
        offset=offset,
    )


@router.get("/{review_id}", response_model=ReviewResponse)
def get_review(review_id: str, store: EngagementRepository = Depends(get_store)) -> ReviewResponse:
    review = store.get_review(review_id)
    if review is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Review not found")
    return ReviewResponse.from_record(review)


@router.post("", response_model=ReviewResponse, status_code=201)
def create_review(
    payload: ReviewCreate,
    current: UserAuth = Depends(get_current_user),
    store: EngagementRepository = Depends(get_store),
) -> ReviewResponse:
    review = store.create_review(
        current.id,
        payload.restaurant_id,
        payload.rating,
        payload.content,
        payload.title,
        user_name=current.display_name,
    )
    logger.info("Review %s created by user=%s for restaurant=%s", review.id, current.id, payload.restaurant_id)
    return ReviewResponse.from_record(review)


@router.put("/{review_id}", response_model=ReviewResponse)
def update_review(
    review_id: str,
    payload: ReviewUpdate,
    current: UserAuth = Depends(get_current_user),
    store: EngagementRepository = Depends(get_store),
) -> ReviewResponse:
    review = store.update_review(
        current.id,
        review_id,
        rating=payload.rating,
        title=payload.title,
        content=payload.content,
        user_name=current.display_name,
    )
    return ReviewResponse.from_record(review)


@router.delete("/{review_id}", status_code=204)
def delete_review(
    review_id: str,
    current: UserAuth = Depends(get_current_user),
    store: EngagementRepository = Depends(get_store),
) -> Response:
    store.delete_review(current.id, review_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Open signals: anyone may call these, so they are throttled per client instead of authenticated.


@router.post("/{review_id}/helpful", response_model=HelpfulResponse, dependencies=[signal_rate_limit("helpful")])
def mark_helpful(review_id: str, store: EngagementRepository = Depends(get_store)) -> HelpfulResponse:
    return HelpfulResponse(helpful_count=store.mark_review_helpful(review_id))


@router.post("/{review_id}/report", status_code=204, dependencies=[signal_rate_limit("report")])
def report_review(review_id: str, store: EngagementRepository = Depends(get_store)) -> Response:
    store.report_review(review_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
