"""
FastAPI dependencies (DB session, clock, collaborators)
"""
from datetime import datetime
from functools import lru_cache

from subtracker.application.scheduler import ApschedulerNotificationScheduler
from subtracker.application.search_index import InMemorySearchIndex
from subtracker.config import get_settings
from subtracker.infrastructure.db.session import get_db as _get_db


# Re-export get_db для удобства
get_db = _get_db


def get_clock() -> datetime:
    """
    Current time for the request.

    Every projection receives ``now`` from here; tests override this
    dependency to pin the clock.
    """
    return get_settings().local_now()


@lru_cache
def _notification_scheduler() -> ApschedulerNotificationScheduler:
    return ApschedulerNotificationScheduler()


def get_notifier() -> ApschedulerNotificationScheduler | None:
    if not get_settings().SCHEDULER_ENABLED:
        return None
    return _notification_scheduler()


@lru_cache
def get_search_index() -> InMemorySearchIndex:
    return InMemorySearchIndex()
