"""
Shared fixtures.

Environment is pinned before any app module is imported: settings are read
once at import time.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("LOG_TO_FILE", "false")
os.environ.setdefault("ENABLE_LLM_INSIGHTS", "false")
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client-id")
os.environ.setdefault("GOOGLE_CLIENT_SECRET", "test-client-secret")

from datetime import datetime  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from app.connectors.search_console import MetricRow  # noqa: E402
from app.models.base import Base, build_engine, init_db  # noqa: E402


@pytest.fixture
def db():
    """Fresh in-memory database per test"""
    engine = build_engine("sqlite://")
    init_db(bind=engine)
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


class FakeClock:
    """Settable utcnow replacement"""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta):
        self.now = self.now + delta


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 3, 15, 9, 0, 0))


def make_row(key, impressions, clicks, ctr, position, *more_keys) -> MetricRow:
    return MetricRow(
        dimension_keys=(key,) + tuple(more_keys),
        clicks=clicks,
        impressions=impressions,
        ctr=ctr,
        position=position,
    )
