import os
import tempfile
from datetime import datetime, timedelta
from pathlib import Path

_tmpdir = Path(tempfile.mkdtemp(prefix="dineout_test_"))
_db_path = _tmpdir / "test.db"

os.environ.setdefault("ENV", "test")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{_db_path.as_posix()}")
os.environ.setdefault("APP_SECRET_KEY", "test-secret-key")
os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("LOG_DIR", (_tmpdir / "logs").as_posix())

import pytest
from fastapi.testclient import TestClient

from dineout.core.config import Settings
from dineout.core.rate_limit import limiter
from dineout.db.base import Base
from dineout.db.session import engine
from dineout.engagement.memory import MemoryEngagementStore
from dineout.engagement.sql import SqlEngagementStore
from dineout.main import create_app
from dineout.models.users import UserAuth, UserProfile

BACKENDS = ["memory", "sql"]
_IDENTITY_TABLES = [UserAuth.__table__, UserProfile.__table__]


class TickingClock:
    """Deterministic clock: every call is one second after the previous one."""

    def __init__(self, start: datetime = datetime(2024, 9, 1, 12, 0, 0)) -> None:
        self._now = start

    def __call__(self) -> datetime:
        self._now += timedelta(seconds=1)
        return self._now


@pytest.fixture()
def make_store(tmp_path):
    """Factory for fresh stores, each with its own ticking clock and SQLite file."""
    created = []

    def _make(backend: str, **kwargs):
        kwargs.setdefault("clock", TickingClock())
        if backend == "memory":
            s = MemoryEngagementStore(**kwargs)
        else:
            path = tmp_path / f"engagement-{len(created)}.db"
            s = SqlEngagementStore.from_url(f"sqlite:///{path.as_posix()}", **kwargs)
            s.create_schema()
        created.append(s)
        return s

    yield _make
    for s in created:
        if isinstance(s, SqlEngagementStore):
            s.dispose()


@pytest.fixture(params=BACKENDS)
def store(request, make_store):
    return make_store(request.param)


@pytest.fixture()
def clean_db():
    limiter.reset()

    Base.metadata.drop_all(bind=engine, tables=_IDENTITY_TABLES)
    Base.metadata.create_all(bind=engine, tables=_IDENTITY_TABLES)
    yield
    Base.metadata.drop_all(bind=engine, tables=_IDENTITY_TABLES)


@pytest.fixture()
def client(clean_db, store):
    app = create_app(Settings(storage_backend=store.backend), store=store)
    with TestClient(app) as c:
        yield c

