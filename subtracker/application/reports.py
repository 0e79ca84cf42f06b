"""
Summary reports over the subscription list.

Everything is converted into one target currency first and then handed to
the billing projector, so totals across currencies are meaningful.

Report blocks:
  - monthly / yearly totals
  - 30- and 90-day upcoming totals
  - monthly savings from canceled subscriptions
  - top subscriptions by monthly cost
  - category breakdown
  - 12-month projected calendar
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable

from subtracker.application.currency import CurrencyConverter
from subtracker.domain import billing
from subtracker.domain.subscription import Subscription, is_active, monthly_cost

_ZERO = Decimal("0")


@dataclass(frozen=True)
class CategoryTotal:
    category: str
    total: Decimal
    count: int


@dataclass
class SummaryReport:
    currency: str
    monthly_total: Decimal
    yearly_total: Decimal
    next_30_days_total: Decimal
    next_90_days_total: Decimal
    canceled_savings_monthly: Decimal
    active_count: int
    average_monthly_cost: Decimal
    top_subscriptions: list[Subscription] = field(default_factory=list)
    categories: list[CategoryTotal] = field(default_factory=list)
    breakdown: list[billing.MonthlyCost] = field(default_factory=list)


def upcoming_total(subscriptions: Iterable[Subscription], now: datetime, days: int) -> Decimal:
    """Full charge amounts of active subscriptions due within ``days``."""
    horizon = now + timedelta(days=days)
    total = _ZERO
    for sub in subscriptions:
        if not is_active(sub, now):
            continue
        nxt = billing.resolve_next_charge(sub, now)
        if nxt.terminated or nxt.date > horizon:
            continue
        total += sub.amount
    return total


def canceled_savings_monthly(subscriptions: Iterable[Subscription], now: datetime) -> Decimal:
    return sum((monthly_cost(s) for s in subscriptions if not is_active(s, now)), _ZERO)


def active_count(subscriptions: Iterable[Subscription], now: datetime) -> int:
    return sum(1 for s in subscriptions if is_active(s, now))


def average_monthly_cost(subscriptions: list[Subscription], now: datetime) -> Decimal:
    count = active_count(subscriptions, now)
    if count == 0:
        return _ZERO
    return billing.monthly_total(subscriptions, now) / count


def top_subscriptions(subscriptions: Iterable[Subscription], now: datetime, limit: int = 5) -> list[Subscription]:
    active = [s for s in subscriptions if is_active(s, now)]
    return sorted(active, key=monthly_cost, reverse=True)[:limit]


def category_breakdown(subscriptions: Iterable[Subscription], now: datetime) -> list[CategoryTotal]:
    totals: dict[str, Decimal] = {}
    counts: dict[str, int] = {}
    for sub in subscriptions:
        if not is_active(sub, now):
            continue
        totals[sub.category] = totals.get(sub.category, _ZERO) + monthly_cost(sub)
        counts[sub.category] = counts.get(sub.category, 0) + 1
    rows = [CategoryTotal(category=c, total=t, count=counts[c]) for c, t in totals.items()]
    return sorted(rows, key=lambda row: row.total, reverse=True)


def build_summary(
    subscriptions: Iterable[Subscription],
    now: datetime,
    currency: str,
    converter: CurrencyConverter | None = None,
    horizon_months: int = billing.DEFAULT_HORIZON_MONTHS,
) -> SummaryReport:
    """Build the full summary in ``currency``."""
    converter = converter or CurrencyConverter()
    subs = converter.convert_all(subscriptions, currency)

    return SummaryReport(
        currency=currency,
        monthly_total=billing.monthly_total(subs, now),
        yearly_total=billing.yearly_total(subs, now),
        next_30_days_total=upcoming_total(subs, now, 30),
        next_90_days_total=upcoming_total(subs, now, 90),
        canceled_savings_monthly=canceled_savings_monthly(subs, now),
        active_count=active_count(subs, now),
        average_monthly_cost=average_monthly_cost(subs, now),
        top_subscriptions=top_subscriptions(subs, now),
        categories=category_breakdown(subs, now),
        breakdown=billing.monthly_breakdown(subs, now, horizon_months),
    )
