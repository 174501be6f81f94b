from __future__ import annotations

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from dineout.core.deps import get_current_user
from dineout.db.session import get_db
from dineout.models.users import UserAuth, UserProfile
from dineout.schemas.auth import UserMeResponse
from dineout.schemas.users import UserProfileResponse, UserProfileUpdate

router = APIRouter(tags=["users"])


@router.get("/me", response_model=UserMeResponse)
def me(current: UserAuth = Depends(get_current_user)) -> UserMeResponse:
    return UserMeResponse(
        id=current.id,
        email=current.email,
        display_name=current.display_name,
        is_active=current.is_active,
    )


@router.put("/me/profile", response_model=UserProfileResponse)
def update_profile(
    payload: UserProfileUpdate,
    current: UserAuth = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> UserProfileResponse:
    # Existing reviews keep the name they were written under until their next update.
    profile = db.get(UserProfile, current.id)
    if not profile:
        profile = UserProfile(user_id=current.id)

    profile.display_name = (payload.display_name or "").strip() or None

    db.add(profile)
    db.commit()
    db.refresh(profile)

    return UserProfileResponse(user_id=current.id, display_name=profile.display_name)
