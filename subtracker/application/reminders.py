"""
Renewal reminders — plans local notifications from the resolved next charge.

For each active subscription:
  - "<id>-reminder" fires reminder_days before the next charge
  - "<id>-renewal" fires at the next charge
Only fire times after ``now`` are scheduled. The scheduler is an optional
OS-facing service: its failures are logged and skipped.
"""
import abc
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Iterable

from subtracker.domain import billing
from subtracker.domain.subscription import Subscription, is_active
from subtracker.utils.money import format_money

logger = logging.getLogger(__name__)

KIND_REMINDER = "reminder"
KIND_RENEWAL = "renewal"


@dataclass(frozen=True)
class ReminderRequest:
    identifier: str
    subscription_id: str
    kind: str
    fire_at: datetime
    payload: dict[str, Any]


class NotificationScheduler(abc.ABC):
    """Collaborator that delivers local notifications."""

    @abc.abstractmethod
    def schedule_reminder(self, subscription_id: str, fire_date: datetime, payload: dict[str, Any]) -> None:
        ...

    @abc.abstractmethod
    def cancel(self, subscription_id: str) -> None:
        ...


def reminder_identifiers(subscription_id: str) -> tuple[str, str]:
    return f"{subscription_id}-{KIND_REMINDER}", f"{subscription_id}-{KIND_RENEWAL}"


def plan_reminders(subscription: Subscription, now: datetime, reminder_days: int) -> list[ReminderRequest]:
    """Reminder requests for the next charge of one subscription."""
    if not is_active(subscription, now):
        return []
    nxt = billing.resolve_next_charge(subscription, now)
    if nxt.terminated:
        return []

    reminder_id, renewal_id = reminder_identifiers(subscription.id)
    title = f"Продление «{subscription.name}»"
    amount_text = format_money(subscription.amount, subscription.currency)
    out: list[ReminderRequest] = []

    if reminder_days > 0:
        fire_at = nxt.date - timedelta(days=reminder_days)
        if fire_at > now:
            out.append(ReminderRequest(
                identifier=reminder_id,
                subscription_id=subscription.id,
                kind=KIND_REMINDER,
                fire_at=fire_at,
                payload={
                    "title": title,
                    "body": f"Продление через {reminder_days} дн. Сумма: {amount_text}",
                    "url": f"/subscriptions/{subscription.id}",
                },
            ))

    if nxt.date > now:
        out.append(ReminderRequest(
            identifier=renewal_id,
            subscription_id=subscription.id,
            kind=KIND_RENEWAL,
            fire_at=nxt.date,
            payload={
                "title": title,
                "body": f"Продление сегодня. Сумма: {amount_text}",
                "url": f"/subscriptions/{subscription.id}",
            },
        ))
    return out


def reschedule(
    scheduler: NotificationScheduler,
    subscription: Subscription,
    now: datetime,
    reminder_days: int,
) -> int:
    """Cancel and re-plan reminders for one subscription. Returns requests scheduled."""
    planned = plan_reminders(subscription, now, reminder_days)
    _apply(scheduler, subscription.id, planned)
    return len(planned)


def _apply(scheduler: NotificationScheduler, subscription_id: str, planned: list[ReminderRequest]) -> None:
    scheduler.cancel(subscription_id)
    for req in planned:
        payload = dict(req.payload, identifier=req.identifier, kind=req.kind)
        scheduler.schedule_reminder(subscription_id, req.fire_at, payload)


def sync_reminders(
    scheduler: NotificationScheduler,
    subscriptions: Iterable[Subscription],
    now: datetime,
    reminder_days: int,
) -> int:
    """
    Reschedule reminders for the whole list.

    Returns total number of scheduled notifications.
    """
    total = 0
    for sub in subscriptions:
        planned = plan_reminders(sub, now, reminder_days)
        try:
            _apply(scheduler, sub.id, planned)
        except Exception:
            logger.exception("Reminder scheduling failed for subscription_id=%s", sub.id)
            continue
        total += len(planned)
    return total


def cancel_reminders(scheduler: NotificationScheduler, subscription_id: str) -> None:
    try:
        scheduler.cancel(subscription_id)
    except Exception:
        logger.exception("Reminder cancel failed for subscription_id=%s", subscription_id)
