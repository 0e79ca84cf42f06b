"""
Device search indexing — builds searchable items from subscriptions.

Each item carries a description derived from the amount and the resolved
next charge, plus keywords from name, category and cycle. Items expire
after ttl_days so that stale entries disappear if the app is not opened.
"""
import abc
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable

from subtracker.domain import billing
from subtracker.domain.subscription import (
    CATEGORY_MUSIC, CATEGORY_PRODUCTIVITY, CATEGORY_STORAGE, CATEGORY_UTILITIES,
    CATEGORY_VIDEO, CYCLE_MONTHLY, Subscription,
)
from subtracker.utils.money import format_money

logger = logging.getLogger(__name__)

DEFAULT_TTL_DAYS = 30

CATEGORY_TITLES = {
    "video": "Видео",
    "music": "Музыка",
    "productivity": "Продуктивность",
    "storage": "Хранилище",
    "utilities": "Сервисы",
    "other": "Другое",
}

_CATEGORY_KEYWORDS = {
    CATEGORY_VIDEO: ["video", "film", "streaming", "кино", "сериалы"],
    CATEGORY_MUSIC: ["music", "podcast", "музыка"],
    CATEGORY_PRODUCTIVITY: ["productivity", "work", "работа"],
    CATEGORY_STORAGE: ["storage", "cloud", "облако"],
    CATEGORY_UTILITIES: ["utility", "сервис"],
}


@dataclass(frozen=True)
class SearchItem:
    id: str
    title: str
    description: str
    keywords: list[str] = field(default_factory=list)
    expires_at: datetime | None = None


def cycle_title(cycle: str) -> str:
    return "ежемесячно" if cycle == CYCLE_MONTHLY else "ежегодно"


def build_description(subscription: Subscription, now: datetime) -> str:
    amount = format_money(subscription.amount, subscription.currency)
    category = CATEGORY_TITLES.get(subscription.category, subscription.category)
    text = f"{amount} {cycle_title(subscription.cycle)} • {category}"
    nxt = billing.resolve_next_charge(subscription, now)
    if nxt.terminated:
        # no renewal left to advertise
        return text
    return f"{text} • Продление: {nxt.date.strftime('%d.%m.%Y')}"


def build_keywords(subscription: Subscription) -> list[str]:
    keywords = [
        subscription.name,
        CATEGORY_TITLES.get(subscription.category, subscription.category),
        cycle_title(subscription.cycle),
        "подписка",
        "subscription",
        subscription.currency,
    ]
    keywords.extend(subscription.name.split())
    keywords.extend(_CATEGORY_KEYWORDS.get(subscription.category, []))
    return keywords


def build_search_item(subscription: Subscription, now: datetime, ttl_days: int = DEFAULT_TTL_DAYS) -> SearchItem:
    return SearchItem(
        id=subscription.id,
        title=subscription.name,
        description=build_description(subscription, now),
        keywords=build_keywords(subscription),
        expires_at=now + timedelta(days=ttl_days),
    )


class SearchIndex(abc.ABC):
    """Collaborator that owns the device search index."""

    @abc.abstractmethod
    def index(self, items: list[SearchItem]) -> None:
        ...

    @abc.abstractmethod
    def remove(self, item_id: str) -> None:
        ...

    @abc.abstractmethod
    def remove_all(self) -> None:
        ...


class InMemorySearchIndex(SearchIndex):
    def __init__(self):
        self.items: dict[str, SearchItem] = {}

    def index(self, items: list[SearchItem]) -> None:
        for item in items:
            self.items[item.id] = item

    def remove(self, item_id: str) -> None:
        self.items.pop(item_id, None)

    def remove_all(self) -> None:
        self.items.clear()

    def search(self, query: str, now: datetime) -> list[SearchItem]:
        """Case-insensitive substring match over title and keywords."""
        needle = query.strip().lower()
        if not needle:
            return []
        found = []
        for item in self.items.values():
            if item.expires_at is not None and item.expires_at < now:
                continue
            haystack = [item.title.lower()] + [k.lower() for k in item.keywords]
            if any(needle in text for text in haystack):
                found.append(item)
        return sorted(found, key=lambda item: item.title.lower())


def sync_search_index(
    index: SearchIndex,
    subscriptions: Iterable[Subscription],
    now: datetime,
    ttl_days: int = DEFAULT_TTL_DAYS,
) -> int:
    """Clear and re-index everything. Returns number of indexed items."""
    items = [build_search_item(s, now, ttl_days) for s in subscriptions]
    try:
        index.remove_all()
        if items:
            index.index(items)
        return len(items)
    except Exception:
        logger.exception("Search index sync failed")
        return 0


def remove_from_index(index: SearchIndex, subscription_id: str) -> None:
    try:
        index.remove(subscription_id)
    except Exception:
        logger.exception("Search index remove failed for subscription_id=%s", subscription_id)
