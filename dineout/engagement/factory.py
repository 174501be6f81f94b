from __future__ import annotations

import logging

from dineout.core.config import Settings
from dineout.engagement.memory import MemoryEngagementStore
from dineout.engagement.repository import EngagementRepository
from dineout.engagement.sql import SqlEngagementStore

logger = logging.getLogger(__name__)

BACKENDS = ("memory", "sql")


def build_engagement_store(settings: Settings) -> EngagementRepository:
    """Bind the engagement repository to the backend named by ``settings.storage_backend``."""
    backend = (settings.storage_backend or "").lower().strip()
    if backend == "memory":
        store: EngagementRepository = MemoryEngagementStore()
    elif backend == "sql":
        store = SqlEngagementStore.from_url(settings.database_url)
    else:
        raise ValueError(f"Unknown storage backend: {settings.storage_backend!r} (expected one of {BACKENDS})")

    logger.info("Engagement store: %s", store.backend)
    return store
