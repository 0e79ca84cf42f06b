"""
Pytest fixtures for testing
"""
from datetime import datetime
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from subtracker.application.reminders import NotificationScheduler
from subtracker.domain.subscription import Subscription
from subtracker.infrastructure.db.session import Base
from subtracker.infrastructure.db import models  # noqa: F401


@pytest.fixture
def db_engine():
    """Create in-memory SQLite engine for tests (shared across threads)."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine) -> Session:
    """Create database session for tests"""
    SessionLocal = sessionmaker(bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


class RecordingScheduler(NotificationScheduler):
    """NotificationScheduler that only records calls."""

    def __init__(self):
        self.scheduled: list[tuple[str, datetime, dict]] = []
        self.cancelled: list[str] = []

    def schedule_reminder(self, subscription_id, fire_date, payload):
        self.scheduled.append((subscription_id, fire_date, payload))

    def cancel(self, subscription_id):
        self.cancelled.append(subscription_id)


@pytest.fixture
def notifier():
    return RecordingScheduler()


@pytest.fixture
def make_sub():
    """Factory for Subscription value objects with sensible defaults."""
    counter = {"n": 0}

    def _make(
        reference_date: datetime,
        amount="10",
        cycle="monthly",
        end_date: datetime | None = None,
        name: str | None = None,
        currency: str = "USD",
        category: str = "other",
    ) -> Subscription:
        counter["n"] += 1
        return Subscription(
            id=f"sub-{counter['n']}",
            name=name or f"Subscription {counter['n']}",
            amount=Decimal(str(amount)),
            currency=currency,
            reference_date=reference_date,
            cycle=cycle,
            category=category,
            end_date=end_date,
        )

    return _make
