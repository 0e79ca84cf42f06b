"""
Background scheduler — delivers renewal reminders inside the API process.

Each reminder is a one-shot APScheduler job (DateTrigger) whose id is the
reminder identifier ("<subscription_id>-reminder" / "-renewal"), so
rescheduling replaces the previous job.
"""
import logging
from datetime import datetime
from typing import Any, Callable

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.date import DateTrigger

from subtracker.application.reminders import NotificationScheduler, reminder_identifiers
from subtracker.config import get_settings

logger = logging.getLogger(__name__)


def log_delivery(subscription_id: str, payload: dict[str, Any]) -> None:
    """Default delivery: write the notification to the log."""
    logger.info("Reminder for subscription_id=%s: %s. %s",
                subscription_id, payload.get("title"), payload.get("body"))


class ApschedulerNotificationScheduler(NotificationScheduler):
    """NotificationScheduler backed by an APScheduler BackgroundScheduler."""

    def __init__(
        self,
        scheduler: BackgroundScheduler | None = None,
        deliver: Callable[[str, dict[str, Any]], None] = log_delivery,
        timezone: str | None = None,
    ):
        # fire dates are naive wall-clock times in TIMEZONE, not in the host zone
        self.timezone = timezone or get_settings().TIMEZONE
        self.scheduler = scheduler or BackgroundScheduler(daemon=True, timezone=self.timezone)
        self.deliver = deliver

    def schedule_reminder(self, subscription_id: str, fire_date: datetime, payload: dict[str, Any]) -> None:
        job_id = payload.get("identifier") or f"{subscription_id}-{fire_date.isoformat()}"
        self.scheduler.add_job(
            self.deliver,
            DateTrigger(run_date=fire_date, timezone=self.timezone),
            args=[subscription_id, payload],
            id=job_id,
            replace_existing=True,
        )

    def cancel(self, subscription_id: str) -> None:
        for job_id in reminder_identifiers(subscription_id):
            try:
                self.scheduler.remove_job(job_id)
            except JobLookupError:
                pass

    def pending_ids(self) -> list[str]:
        return sorted(job.id for job in self.scheduler.get_jobs())

    def start(self) -> None:
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Reminder scheduler started")

    def shutdown(self) -> None:
        """Gracefully stop the scheduler."""
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Reminder scheduler stopped")
