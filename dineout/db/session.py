from __future__ import annotations

from collections.abc import Generator

from sqlalchemy import Engine, create_engine
from sqlalchemy.orm import Session, sessionmaker

from dineout.core.config import settings


def make_engine(database_url: str) -> Engine:
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Requests are served from a thread pool; wait on writer locks instead of failing fast.
        connect_args = {"check_same_thread": False, "timeout": 30}
    return create_engine(database_url, echo=False, future=True, pool_pre_ping=True, connect_args=connect_args)


def make_session_factory(bind: Engine) -> sessionmaker[Session]:
    return sessionmaker(bind=bind, autoflush=False, autocommit=False, expire_on_commit=False, future=True)


engine = make_engine(settings.database_url)
SessionLocal = make_session_factory(engine)


def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
