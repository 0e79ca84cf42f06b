"""Tests for the billing projector — next charge, horizon calendar, history, totals."""
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from subtracker.domain import billing
from subtracker.domain.billing import (
    HISTORY_LIMIT, add_months, days_until_charge, monthly_breakdown, monthly_total,
    next_charge_date, payment_history, resolve_next_charge, start_of_day, total_spent,
    upcoming, yearly_total,
)
from subtracker.domain.subscription import SubscriptionValidationError

NOW = datetime(2025, 1, 10, 15, 30)


# ======================================================================
# Calendar helpers
# ======================================================================

class TestAddMonths:
    def test_simple(self):
        assert add_months(datetime(2025, 1, 15, 9, 0), 1) == datetime(2025, 2, 15, 9, 0)

    def test_clips_to_month_end(self):
        assert add_months(datetime(2025, 1, 31), 1) == datetime(2025, 2, 28)

    def test_leap_february(self):
        assert add_months(datetime(2024, 1, 31), 1) == datetime(2024, 2, 29)

    def test_crosses_year(self):
        assert add_months(datetime(2024, 11, 30), 3) == datetime(2025, 2, 28)

    def test_start_of_day(self):
        assert start_of_day(NOW) == datetime(2025, 1, 10)


# ======================================================================
# Next charge
# ======================================================================

class TestNextChargeDate:
    def test_pending_reference_returned_unchanged(self, make_sub):
        ref = datetime(2025, 2, 1, 10, 0)
        assert next_charge_date(make_sub(ref), NOW) == ref

    def test_due_today_earlier_hour_is_not_overdue(self, make_sub):
        ref = datetime(2025, 1, 10, 8, 0)
        assert next_charge_date(make_sub(ref), NOW) == ref

    def test_yearly_advances_to_next_year(self, make_sub):
        sub = make_sub(datetime(2024, 3, 15), amount="120", cycle="yearly")
        assert next_charge_date(sub, NOW) == datetime(2025, 3, 15)

    def test_monthly_advances_past_today(self, make_sub):
        sub = make_sub(datetime(2024, 10, 5, 9, 0))
        assert next_charge_date(sub, NOW) == datetime(2025, 2, 5, 9, 0)

    def test_anchored_stepping_keeps_month_end(self, make_sub):
        sub = make_sub(datetime(2024, 1, 31))
        assert next_charge_date(sub, datetime(2024, 3, 5)) == datetime(2024, 3, 31)

    def test_leap_day_yearly(self, make_sub):
        sub = make_sub(datetime(2020, 2, 29), cycle="yearly")
        assert next_charge_date(sub, datetime(2021, 1, 1)) == datetime(2021, 2, 28)
        assert next_charge_date(sub, datetime(2024, 1, 1)) == datetime(2024, 2, 29)

    def test_far_past_reference(self, make_sub):
        sub = make_sub(datetime(1990, 1, 15))
        assert next_charge_date(sub, NOW) == datetime(2025, 1, 15)

    def test_not_terminated_when_next_charge_equals_end(self, make_sub):
        sub = make_sub(datetime(2024, 12, 20), end_date=datetime(2025, 1, 20))
        result = resolve_next_charge(sub, NOW)
        assert result.date == datetime(2025, 1, 20)
        assert result.terminated is False

    def test_terminated_series_returns_last_charge(self, make_sub):
        sub = make_sub(datetime(2024, 1, 1), end_date=datetime(2024, 6, 15))
        result = resolve_next_charge(sub, NOW)
        assert result.date == datetime(2024, 6, 1)
        assert result.terminated is True

    def test_terminated_while_end_date_still_ahead(self, make_sub):
        # next cycle (Feb 1) falls after end_date, last real charge was Jan 1
        sub = make_sub(datetime(2024, 11, 1), end_date=datetime(2025, 1, 20))
        result = resolve_next_charge(sub, NOW)
        assert result.date == datetime(2025, 1, 1)
        assert result.terminated is True

    def test_malformed_end_date_fails_fast(self, make_sub):
        sub = make_sub(datetime(2024, 6, 1))
        object.__setattr__(sub, "end_date", datetime(2024, 1, 1))
        with pytest.raises(SubscriptionValidationError):
            resolve_next_charge(sub, NOW)
        with pytest.raises(SubscriptionValidationError):
            payment_history(sub, NOW)

    def test_never_before_today_unless_terminated(self, make_sub):
        subs = [
            make_sub(datetime(2023, 5, 31)),
            make_sub(datetime(2019, 2, 28), cycle="yearly"),
            make_sub(datetime(2024, 12, 31, 23, 59)),
            make_sub(datetime(2024, 1, 1), end_date=datetime(2024, 3, 1)),
        ]
        for offset in range(0, 400, 13):
            now = NOW + timedelta(days=offset)
            for sub in subs:
                result = resolve_next_charge(sub, now)
                if result.terminated:
                    assert start_of_day(result.date) < start_of_day(now)
                    assert result.date <= sub.end_date
                else:
                    assert start_of_day(result.date) >= start_of_day(now)

    def test_days_until_charge(self, make_sub):
        assert days_until_charge(make_sub(datetime(2025, 1, 20, 9, 0)), NOW) == 10
        assert days_until_charge(make_sub(datetime(2025, 1, 10, 9, 0)), NOW) == 0


# ======================================================================
# Horizon calendar
# ======================================================================

class TestMonthlyBreakdown:
    def test_zero_subscriptions_gives_zero_buckets(self):
        result = monthly_breakdown([], NOW)

        assert len(result) == 12
        assert [m.month_start for m in result] == [datetime(2025, m, 1) for m in range(1, 13)]
        assert all(m.total == 0 for m in result)

    def test_monthly_subscription_fills_every_bucket(self, make_sub):
        sub = make_sub(datetime(2024, 5, 10), amount="20")
        result = monthly_breakdown([sub], NOW)

        assert [m.total for m in result] == [Decimal("20")] * 12

    def test_yearly_contributes_full_amount_once(self, make_sub):
        sub = make_sub(datetime(2024, 3, 15), amount="120", cycle="yearly")
        totals = {m.key: m.total for m in monthly_breakdown([sub], NOW)}

        assert totals[(2025, 3)] == Decimal("120")
        assert sum(totals.values()) == Decimal("120")

    def test_charge_earlier_this_month_is_not_projected(self, make_sub):
        sub = make_sub(datetime(2024, 12, 5), amount="10")
        result = monthly_breakdown([sub], NOW)

        assert result[0].total == 0
        assert [m.total for m in result[1:]] == [Decimal("10")] * 11

    def test_same_bucket_sums(self, make_sub):
        a = make_sub(datetime(2025, 2, 3), amount="5", end_date=datetime(2025, 2, 3))
        b = make_sub(datetime(2025, 2, 27), amount="7.50", end_date=datetime(2025, 2, 27))
        totals = {m.key: m.total for m in monthly_breakdown([a, b], NOW)}

        assert totals[(2025, 2)] == Decimal("12.50")

    def test_end_date_truncates_series(self, make_sub):
        sub = make_sub(datetime(2025, 1, 15), amount="10", end_date=datetime(2025, 4, 15))
        result = monthly_breakdown([sub], NOW)

        assert [m.total for m in result[:4]] == [Decimal("10")] * 4
        assert all(m.total == 0 for m in result[4:])

    def test_inactive_subscription_excluded(self, make_sub):
        sub = make_sub(datetime(2024, 1, 5), amount="10", end_date=datetime(2024, 12, 31))
        assert all(m.total == 0 for m in monthly_breakdown([sub], NOW))

    def test_single_shot_future_charge(self, make_sub):
        ref = datetime(2025, 3, 1)
        sub = make_sub(ref, amount="49", end_date=ref)
        totals = [m.total for m in monthly_breakdown([sub], NOW)]

        assert totals.count(Decimal("49")) == 1
        assert totals[2] == Decimal("49")

    def test_single_shot_in_past_contributes_nothing(self, make_sub):
        ref = datetime(2024, 6, 1)
        sub = make_sub(ref, amount="49", end_date=ref)

        assert all(m.total == 0 for m in monthly_breakdown([sub], NOW))
        assert len(payment_history(sub, NOW)) == 1

    def test_custom_horizon_crosses_year(self, make_sub):
        now = datetime(2025, 11, 20)
        result = monthly_breakdown([], now, horizon_months=3)

        assert [m.key for m in result] == [(2025, 11), (2025, 12), (2026, 1)]

    def test_invalid_horizon(self):
        with pytest.raises(ValueError):
            monthly_breakdown([], NOW, horizon_months=0)

    def test_idempotent(self, make_sub):
        subs = [
            make_sub(datetime(2024, 5, 10), amount="20"),
            make_sub(datetime(2023, 8, 1), amount="99", cycle="yearly"),
            make_sub(datetime(2024, 1, 20), amount="5", end_date=datetime(2025, 1, 15)),
        ]
        snapshot = list(subs)

        assert monthly_breakdown(subs, NOW) == monthly_breakdown(subs, NOW)
        assert upcoming(subs, NOW, 30) == upcoming(subs, NOW, 30)
        for sub in subs:
            assert resolve_next_charge(sub, NOW) == resolve_next_charge(sub, NOW)
            assert payment_history(sub, NOW) == payment_history(sub, NOW)
        assert subs == snapshot


# ======================================================================
# History
# ======================================================================

class TestPaymentHistory:
    def test_reference_95_days_ago(self, make_sub):
        sub = make_sub(NOW - timedelta(days=95), amount="10")
        history = payment_history(sub, NOW)

        expected = []
        d = sub.reference_date
        while start_of_day(d) <= start_of_day(NOW):
            expected.append(d)
            d = add_months(sub.reference_date, len(expected))

        assert len(history) == 4
        assert [p.date for p in history] == list(reversed(expected))

    def test_newest_first(self, make_sub):
        sub = make_sub(datetime(2024, 10, 1))
        dates = [p.date for p in payment_history(sub, NOW)]

        assert dates == [datetime(2025, 1, 1), datetime(2024, 12, 1), datetime(2024, 11, 1), datetime(2024, 10, 1)]

    def test_future_reference_has_no_history(self, make_sub):
        assert payment_history(make_sub(datetime(2025, 2, 1)), NOW) == []

    def test_includes_today(self, make_sub):
        sub = make_sub(datetime(2024, 12, 10, 23, 0))
        assert payment_history(sub, NOW)[0].date == datetime(2025, 1, 10, 23, 0)

    def test_stops_at_end_date(self, make_sub):
        sub = make_sub(datetime(2024, 1, 1), end_date=datetime(2024, 6, 15))
        history = payment_history(sub, NOW)

        assert len(history) == 6
        assert history[0].date == datetime(2024, 6, 1)

    def test_end_equal_reference_gives_one_record(self, make_sub):
        ref = datetime(2024, 9, 9)
        assert len(payment_history(make_sub(ref, end_date=ref), NOW)) == 1

    def test_yearly(self, make_sub):
        sub = make_sub(datetime(2022, 3, 15), amount="120", cycle="yearly")
        history = payment_history(sub, NOW)

        assert [p.date.year for p in history] == [2024, 2023, 2022]
        assert all(p.amount == Decimal("120") and p.currency == "USD" for p in history)

    def test_capped(self, make_sub):
        sub = make_sub(datetime(1900, 1, 1))
        history = payment_history(sub, NOW)

        assert len(history) == HISTORY_LIMIT
        assert history[-1].date == datetime(1900, 1, 1)
        assert history[0].date == datetime(1909, 12, 1)

    def test_total_spent(self, make_sub):
        sub = make_sub(NOW - timedelta(days=95), amount="10")
        assert total_spent(sub, NOW) == Decimal("40")


# ======================================================================
# Totals and upcoming window
# ======================================================================

class TestTotals:
    def test_zero_subscriptions(self):
        assert monthly_total([], NOW) == 0
        assert yearly_total([], NOW) == 0
        assert upcoming([], NOW) == []

    def test_monthly_and_yearly_totals(self, make_sub):
        subs = [
            make_sub(datetime(2024, 1, 1), amount="10"),
            make_sub(datetime(2024, 1, 1), amount="120", cycle="yearly"),
        ]
        assert monthly_total(subs, NOW) == Decimal("20")
        assert yearly_total(subs, NOW) == Decimal("240")

    def test_inactive_excluded(self, make_sub):
        subs = [
            make_sub(datetime(2024, 1, 1), amount="10"),
            make_sub(datetime(2024, 1, 1), amount="30", end_date=datetime(2024, 12, 1)),
        ]
        assert monthly_total(subs, NOW) == Decimal("10")
        assert yearly_total(subs, NOW) == Decimal("120")


class TestUpcoming:
    def test_only_inside_window(self, make_sub):
        far = make_sub(NOW + timedelta(days=20))
        near = make_sub(NOW + timedelta(days=10))

        assert upcoming([far, near], NOW, window_days=14) == [near]

    def test_sorted_ascending(self, make_sub):
        later = make_sub(datetime(2025, 1, 17))
        sooner = make_sub(datetime(2025, 1, 13))

        assert upcoming([later, sooner], NOW) == [sooner, later]

    def test_ties_keep_input_order(self, make_sub):
        first = make_sub(datetime(2025, 1, 15))
        second = make_sub(datetime(2024, 12, 15))

        assert upcoming([first, second], NOW) == [first, second]
        assert upcoming([second, first], NOW) == [second, first]

    def test_due_today_included(self, make_sub):
        sub = make_sub(datetime(2025, 1, 10, 8, 0))
        assert upcoming([sub], NOW) == [sub]

    def test_upper_bound_inclusive(self, make_sub):
        sub = make_sub(NOW + timedelta(days=14))
        assert upcoming([sub], NOW) == [sub]

    def test_inactive_and_terminated_excluded(self, make_sub):
        ended = make_sub(datetime(2024, 1, 12), end_date=datetime(2024, 12, 20))
        series_over = make_sub(datetime(2024, 11, 1), end_date=datetime(2025, 1, 20))

        assert upcoming([ended, series_over], NOW, window_days=60) == []

    def test_negative_window(self):
        with pytest.raises(ValueError):
            upcoming([], NOW, window_days=-1)

    def test_module_defaults(self):
        assert billing.DEFAULT_UPCOMING_DAYS == 14
        assert billing.DEFAULT_HORIZON_MONTHS == 12
