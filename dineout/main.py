from __future__ import annotations

import logging
import time

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from dineout.core.config import Settings, settings as default_settings
from dineout.core.logging_config import configure_logging
from dineout.db.base import Base
from dineout.db.session import engine
from dineout.engagement.errors import (
    DuplicateReview,
    EngagementError,
    InvalidContent,
    InvalidInput,
    InvalidRating,
    NotFound,
    StorageUnavailable,
    Unauthorized,
)
from dineout.engagement.factory import build_engagement_store
from dineout.engagement.repository import EngagementRepository
from dineout.models.users import UserAuth, UserProfile
from dineout.routers import auth, favorites, reviews, users

logger = logging.getLogger(__name__)

ERROR_STATUS: dict[type[EngagementError], int] = {
    InvalidRating: status.HTTP_400_BAD_REQUEST,
    InvalidContent: status.HTTP_400_BAD_REQUEST,
    InvalidInput: status.HTTP_400_BAD_REQUEST,
    DuplicateReview: status.HTTP_409_CONFLICT,
    Unauthorized: status.HTTP_403_FORBIDDEN,
    NotFound: status.HTTP_404_NOT_FOUND,
    StorageUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_for(exc: EngagementError) -> int:
    for cls in type(exc).__mro__:
        if cls in ERROR_STATUS:
            return ERROR_STATUS[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def create_app(settings: Settings | None = None, *, store: EngagementRepository | None = None) -> FastAPI:
    settings = settings or default_settings
    configure_logging(log_dir=settings.log_dir, level=settings.log_level)

    app = FastAPI(title="Dineout", version="0.1.0")
    app.state.settings = settings
    app.state.engagement_store = store if store is not None else build_engagement_store(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    def on_startup() -> None:
        Base.metadata.create_all(bind=engine, tables=[UserAuth.__table__, UserProfile.__table__])
        create_schema = getattr(app.state.engagement_store, "create_schema", None)
        if create_schema is not None:
            try:
                create_schema()
            except StorageUnavailable:
                # Keep serving; persistence-backed requests answer 503 until storage is back.
                logger.error("Engagement storage unreachable at startup")
        logger.info("DB ready (engagement backend: %s)", app.state.engagement_store.backend)

    @app.exception_handler(EngagementError)
    async def engagement_error_handler(request: Request, exc: EngagementError) -> JSONResponse:
        code = status_for(exc)
        if code >= 500:
            logger.error("%s %s -> %s: %s", request.method, request.url.path, code, exc.message)
        return JSONResponse(status_code=code, content=exc.to_dict())

    @app.middleware("http")
    async def log_requests(request: Request, call_next):
        start = time.time()
        try:
            response = await call_next(request)
        except Exception:
            logger.exception("Unhandled error")
            return JSONResponse(status_code=500, content={"detail": "Internal server error"})
        duration_ms = int((time.time() - start) * 1000)
        logger.info("%s %s -> %s (%sms)", request.method, request.url.path, response.status_code, duration_ms)
        return response

    @app.get("/health", tags=["system"])
    def health() -> JSONResponse:
        current: EngagementRepository = app.state.engagement_store
        try:
            current.ping()
        except StorageUnavailable:
            return JSONResponse(
                status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                content={"status": "degraded", "storage": current.backend},
            )
        return JSONResponse(content={"status": "ok", "storage": current.backend})

    app.include_router(auth.router)
    app.include_router(users.router)
    app.include_router(reviews.router)
    app.include_router(favorites.router)

    return app


app = create_app()
