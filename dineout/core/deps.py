from __future__ import annotations

import logging

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from dineout.core.security import subject_from_token
from dineout.db.session import get_db
from dineout.engagement.repository import EngagementRepository
from dineout.models.users import UserAuth

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)


def get_store(request: Request) -> EngagementRepository:
    return request.app.state.engagement_store


def _resolve_user(token: str | None, db: Session) -> UserAuth | None:
    if not token:
        return None
    user_id = subject_from_token(token)
    if not user_id:
        return None
    user = db.get(UserAuth, user_id)
    if not user or not user.is_active:
        return None
    return user


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> UserAuth:
    user = _resolve_user(token, db)
    if user is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    return user


def get_optional_user(
    token: str | None = Depends(optional_oauth2_scheme),
    db: Session = Depends(get_db),
) -> UserAuth | None:
    """Like get_current_user, but anonymous callers get ``None`` instead of a 401."""
    return _resolve_user(token, db)
