"""
Deterministic recurring-billing projector.

Stateless pure functions over Subscription snapshots and an explicit ``now``.
Nothing here reads the system clock or mutates its inputs.

Charge series: the k-th charge is ``reference_date + k * cycle_months``
months, clipped to the last day of the target month (Jan 31 -> Feb 28 ->
Mar 31). Stepping is anchored on reference_date, so short months do not
shift later charges.

Day comparisons use start-of-day: a charge due today at any hour is due,
not overdue.
"""
import calendar
from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable

from subtracker.domain.subscription import (
    Subscription, SubscriptionValidationError, is_active, monthly_cost,
)

HISTORY_LIMIT = 120  # 10 years of monthly charges
DEFAULT_HORIZON_MONTHS = 12
DEFAULT_UPCOMING_DAYS = 14

_ZERO = Decimal("0")


@dataclass(frozen=True)
class NextCharge:
    """
    Resolved next charge.

    terminated=True: the series ended (end_date) before today; ``date`` is
    the final charge and lies in the past.
    """
    date: datetime
    terminated: bool = False


@dataclass(frozen=True)
class MonthlyCost:
    month_start: datetime
    total: Decimal

    @property
    def key(self) -> tuple[int, int]:
        return self.month_start.year, self.month_start.month


@dataclass(frozen=True)
class PaymentRecord:
    date: datetime
    amount: Decimal
    currency: str


# --- Calendar helpers ---

def start_of_day(moment: datetime) -> datetime:
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def last_day_of_month(year: int, month: int) -> int:
    return calendar.monthrange(year, month)[1]


def add_months(moment: datetime, n: int) -> datetime:
    month = moment.month - 1 + n
    year = moment.year + month // 12
    month = month % 12 + 1
    day = min(moment.day, last_day_of_month(year, month))
    return moment.replace(year=year, month=month, day=day)


def _months_between(start: datetime, end: datetime) -> int:
    return (end.year - start.year) * 12 + (end.month - start.month)


def charge_at(subscription: Subscription, index: int) -> datetime:
    """Date of the index-th charge (0 = reference_date)."""
    return add_months(subscription.reference_date, index * subscription.cycle_months)


def _check_series(subscription: Subscription) -> None:
    if subscription.end_date is not None and subscription.end_date < subscription.reference_date:
        raise SubscriptionValidationError(
            f"end_date before reference_date for subscription {subscription.id}"
        )


def _first_index_on_or_after(subscription: Subscription, day: datetime) -> int:
    """Smallest k whose charge falls on ``day`` or later (calendar-day compare)."""
    if start_of_day(subscription.reference_date) >= day:
        return 0
    step = subscription.cycle_months
    # starts one cycle before the target month, at most two steps remain
    k = max(0, _months_between(subscription.reference_date, day) // step - 1)
    while start_of_day(charge_at(subscription, k)) < day:
        k += 1
    return k


def _last_index_until(subscription: Subscription, limit: datetime) -> int:
    """Largest k whose charge is <= limit. Requires reference_date <= limit."""
    step = subscription.cycle_months
    k = _months_between(subscription.reference_date, limit) // step + 1
    while k > 0 and charge_at(subscription, k) > limit:
        k -= 1
    return k


# --- Next charge ---

def resolve_next_charge(subscription: Subscription, now: datetime) -> NextCharge:
    """
    Resolve the next charge on or after today.

    Returns reference_date unchanged while it is still pending. When the
    series has ended before today, returns the last charge <= end_date with
    terminated=True.

    Raises:
        SubscriptionValidationError: end_date before reference_date
    """
    _check_series(subscription)
    today = start_of_day(now)
    k = _first_index_on_or_after(subscription, today)
    candidate = charge_at(subscription, k)
    end = subscription.end_date
    if end is None or candidate <= end:
        return NextCharge(date=candidate)
    return NextCharge(date=charge_at(subscription, _last_index_until(subscription, end)), terminated=True)


def next_charge_date(subscription: Subscription, now: datetime) -> datetime:
    return resolve_next_charge(subscription, now).date


def days_until_charge(subscription: Subscription, now: datetime) -> int:
    """Calendar days from today to the next charge (negative once terminated)."""
    return (start_of_day(next_charge_date(subscription, now)) - start_of_day(now)).days


# --- Horizon calendar ---

def monthly_breakdown(
    subscriptions: Iterable[Subscription],
    now: datetime,
    horizon_months: int = DEFAULT_HORIZON_MONTHS,
) -> list[MonthlyCost]:
    """
    Project charges into ``horizon_months`` calendar-month buckets starting
    with the month of ``now``.

    Every bucket is present (zero when empty), in chronological order. Each
    charge adds the full amount to the bucket of its month; inactive and
    terminated subscriptions contribute nothing.
    """
    if horizon_months < 1:
        raise ValueError("horizon_months must be >= 1")

    horizon_start = start_of_day(now).replace(day=1)
    horizon_end = add_months(horizon_start, horizon_months)
    today = start_of_day(now)
    buckets: dict[tuple[int, int], Decimal] = {}

    for sub in subscriptions:
        if not is_active(sub, now):
            continue
        if resolve_next_charge(sub, now).terminated:
            continue
        k = max(
            _first_index_on_or_after(sub, today),
            _first_index_on_or_after(sub, horizon_start),
        )
        while True:
            charge = charge_at(sub, k)
            if charge >= horizon_end:
                break
            if sub.end_date is not None and charge > sub.end_date:
                break
            key = (charge.year, charge.month)
            buckets[key] = buckets.get(key, _ZERO) + sub.amount
            k += 1

    out: list[MonthlyCost] = []
    for offset in range(horizon_months):
        month_start = add_months(horizon_start, offset)
        out.append(MonthlyCost(
            month_start=month_start,
            total=buckets.get((month_start.year, month_start.month), _ZERO),
        ))
    return out


# --- History ---

def payment_history(subscription: Subscription, now: datetime) -> list[PaymentRecord]:
    """
    Reconstruct past charges up to today (and end_date), newest first.

    Capped at HISTORY_LIMIT records counted from reference_date.
    """
    _check_series(subscription)
    today = start_of_day(now)
    if start_of_day(subscription.reference_date) > today:
        return []

    records: list[PaymentRecord] = []
    k = 0
    while len(records) < HISTORY_LIMIT:
        charge = charge_at(subscription, k)
        if start_of_day(charge) > today:
            break
        if subscription.end_date is not None and charge > subscription.end_date:
            break
        records.append(PaymentRecord(
            date=charge,
            amount=subscription.amount,
            currency=subscription.currency,
        ))
        k += 1

    records.reverse()
    return records


def total_spent(subscription: Subscription, now: datetime) -> Decimal:
    return subscription.amount * len(payment_history(subscription, now))


# --- Totals ---

def monthly_total(subscriptions: Iterable[Subscription], now: datetime) -> Decimal:
    return sum((monthly_cost(s) for s in subscriptions if is_active(s, now)), _ZERO)


def yearly_total(subscriptions: Iterable[Subscription], now: datetime) -> Decimal:
    return monthly_total(subscriptions, now) * 12


def upcoming(
    subscriptions: Iterable[Subscription],
    now: datetime,
    window_days: int = DEFAULT_UPCOMING_DAYS,
) -> list[Subscription]:
    """
    Active subscriptions charging between today and ``now + window_days``
    (inclusive), ascending by charge date. Equal dates keep input order.
    """
    if window_days < 0:
        raise ValueError("window_days must be >= 0")

    window_start = start_of_day(now)
    window_end = now + timedelta(days=window_days)
    due: list[tuple[datetime, Subscription]] = []
    for sub in subscriptions:
        if not is_active(sub, now):
            continue
        nxt = resolve_next_charge(sub, now)
        if nxt.terminated:
            continue
        if window_start <= nxt.date <= window_end:
            due.append((nxt.date, sub))

    due.sort(key=lambda pair: pair[0])
    return [sub for _, sub in due]
