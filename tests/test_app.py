import pytest
from fastapi.testclient import TestClient

from dineout.core.config import Settings
from dineout.engagement.errors import NotFound, StorageUnavailable
from dineout.engagement.factory import build_engagement_store
from dineout.engagement.memory import MemoryEngagementStore
from dineout.engagement.repository import EngagementRepository
from dineout.engagement.sql import SqlEngagementStore
from dineout.main import create_app, status_for


def test_factory_selects_backend(tmp_path):
    memory = build_engagement_store(Settings(storage_backend="memory"))
    assert isinstance(memory, MemoryEngagementStore)

    sql = build_engagement_store(
        Settings(storage_backend=" SQL ", database_url=f"sqlite:///{(tmp_path / 'f.db').as_posix()}")
    )
    try:
        assert isinstance(sql, SqlEngagementStore)
    finally:
        sql.dispose()

    with pytest.raises(ValueError):
        build_engagement_store(Settings(storage_backend="redis"))


def test_both_stores_satisfy_the_protocol(make_store):
    assert isinstance(make_store("memory"), EngagementRepository)
    assert isinstance(make_store("sql"), EngagementRepository)


def test_error_status_mapping():
    assert status_for(NotFound("x")) == 404
    assert status_for(StorageUnavailable("x")) == 503


def test_health_reports_backend(client, store):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "storage": store.backend}


def test_unreachable_storage_answers_503(clean_db, tmp_path):
    broken = SqlEngagementStore.from_url(f"sqlite:///{(tmp_path / 'missing' / 'x.db').as_posix()}")
    app = create_app(Settings(storage_backend="sql"), store=broken)
    try:
        with TestClient(app) as c:
            assert c.get("/health").status_code == 503

            r = c.get("/reviews/restaurant/r1")
            assert r.status_code == 503
            assert r.json()["kind"] == "storage_unavailable"

            r = c.get("/reviews/restaurant/r1/stats")
            assert r.status_code == 503
    finally:
        broken.dispose()
