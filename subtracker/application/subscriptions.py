"""
Subscription use cases — CRUD подписок через SubscriptionStore.

Every change saves the full list and then resyncs the optional
collaborators (reminders, search index) from that list.
"""
import dataclasses
import logging
from datetime import datetime

from sqlalchemy.orm import Session

from subtracker.application.reminders import NotificationScheduler, cancel_reminders, sync_reminders
from subtracker.application.search_index import SearchIndex, remove_from_index, sync_search_index
from subtracker.config import get_settings
from subtracker.domain.subscription import Subscription, SubscriptionValidationError
from subtracker.infrastructure.store import SubscriptionStore
from subtracker.utils.validation import parse_amount

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = {"name", "amount", "currency", "reference_date", "end_date", "cycle", "category"}


class SubscriptionNotFoundError(SubscriptionValidationError):
    pass


class _SubscriptionUseCase:
    def __init__(
        self,
        db: Session,
        notifier: NotificationScheduler | None = None,
        search_index: SearchIndex | None = None,
    ):
        self.db = db
        self.store = SubscriptionStore(db)
        self.notifier = notifier
        self.search_index = search_index

    def _sync(self, subscriptions: list[Subscription], now: datetime) -> None:
        settings = get_settings()
        if self.notifier is not None:
            sync_reminders(self.notifier, subscriptions, now, settings.REMINDER_DAYS)
        if self.search_index is not None:
            sync_search_index(self.search_index, subscriptions, now, settings.SEARCH_ITEM_TTL_DAYS)

    def _find(self, subscriptions: list[Subscription], sub_id: str) -> int:
        for i, sub in enumerate(subscriptions):
            if sub.id == sub_id:
                return i
        raise SubscriptionNotFoundError("Подписка не найдена")


class CreateSubscriptionUseCase(_SubscriptionUseCase):
    def execute(
        self,
        now: datetime,
        name: str,
        amount,
        currency: str,
        reference_date: datetime,
        cycle: str,
        category: str,
        end_date: datetime | None = None,
    ) -> str:
        sub = Subscription.create(
            name=name,
            amount=amount,
            currency=currency,
            reference_date=reference_date,
            cycle=cycle,
            category=category,
            end_date=end_date,
        )
        subscriptions = self.store.load()
        subscriptions.append(sub)
        self.store.save(subscriptions)
        logger.info("Created subscription %s (%s)", sub.id, sub.cycle)

        self._sync(subscriptions, now)
        return sub.id


class UpdateSubscriptionUseCase(_SubscriptionUseCase):
    def execute(self, sub_id: str, now: datetime, **changes) -> Subscription:
        unknown = set(changes) - _EDITABLE_FIELDS
        if unknown:
            raise SubscriptionValidationError(f"Неизвестные поля: {', '.join(sorted(unknown))}")

        subscriptions = self.store.load()
        idx = self._find(subscriptions, sub_id)

        # Пустой ввод не пропускаем, как и при создании
        if "name" in changes:
            changes["name"] = (changes["name"] or "").strip()
        if "currency" in changes:
            changes["currency"] = (changes["currency"] or "").strip().upper()
        if "amount" in changes:
            try:
                changes["amount"] = parse_amount(changes["amount"])
            except ValueError as e:
                raise SubscriptionValidationError(str(e)) from e

        updated = dataclasses.replace(subscriptions[idx], **changes)
        subscriptions[idx] = updated
        self.store.save(subscriptions)

        self._sync(subscriptions, now)
        return updated


class DeleteSubscriptionUseCase(_SubscriptionUseCase):
    def execute(self, sub_id: str, now: datetime) -> None:
        subscriptions = self.store.load()
        idx = self._find(subscriptions, sub_id)
        del subscriptions[idx]
        self.store.save(subscriptions)
        logger.info("Deleted subscription %s", sub_id)

        if self.notifier is not None:
            cancel_reminders(self.notifier, sub_id)
        if self.search_index is not None:
            remove_from_index(self.search_index, sub_id)
        self._sync(subscriptions, now)
