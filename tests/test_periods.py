from datetime import date, datetime, timedelta, timezone

import pytest

from periods import BudgetPeriod, END_OF_DAY, is_in_period, resolve_period


def test_monthly_period_covers_calendar_month() -> None:
    rng = resolve_period(datetime(2025, 2, 14, 9, 30), "monthly")
    assert rng.granularity == BudgetPeriod.monthly
    assert rng.start == datetime(2025, 2, 1, 0, 0)
    assert rng.end == datetime(2025, 2, 28, 23, 59, 59, 999000)


def test_monthly_period_leap_february_and_december() -> None:
    feb = resolve_period(datetime(2024, 2, 29, 23, 0), BudgetPeriod.monthly)
    assert feb.end.date() == date(2024, 2, 29)

    dec = resolve_period(datetime(2025, 12, 31, 23, 59), BudgetPeriod.monthly)
    assert dec.start == datetime(2025, 12, 1)
    assert dec.end == datetime(2025, 12, 31, 23, 59, 59, 999000)


@pytest.mark.parametrize(
    "month,first,last",
    [
        (1, date(2025, 1, 1), date(2025, 3, 31)),
        (3, date(2025, 1, 1), date(2025, 3, 31)),
        (4, date(2025, 4, 1), date(2025, 6, 30)),
        (8, date(2025, 7, 1), date(2025, 9, 30)),
        (12, date(2025, 10, 1), date(2025, 12, 31)),
    ],
)
def test_quarterly_period_boundaries(month: int, first: date, last: date) -> None:
    rng = resolve_period(datetime(2025, month, 10), "quarterly")
    assert rng.start.date() == first
    assert rng.end.date() == last
    assert rng.end.time() == END_OF_DAY


def test_yearly_period() -> None:
    rng = resolve_period(datetime(2025, 7, 4, 12), "yearly")
    assert rng.start == datetime(2025, 1, 1)
    assert rng.end == datetime(2025, 12, 31, 23, 59, 59, 999000)


@pytest.mark.parametrize("granularity", ["monthly", "quarterly", "yearly"])
def test_reference_instant_always_inside_its_period(granularity: str) -> None:
    moment = datetime(2024, 1, 1, 0, 0)
    while moment.year < 2026:
        rng = resolve_period(moment, granularity)
        assert rng.start <= moment <= rng.end
        moment += timedelta(days=9, hours=7)


@pytest.mark.parametrize(
    "granularity,months", [("monthly", 1), ("quarterly", 3), ("yearly", 12)]
)
def test_period_spans_whole_calendar_units(granularity: str, months: int) -> None:
    rng = resolve_period(datetime(2025, 5, 20), granularity)
    after_end = rng.end + timedelta(milliseconds=1)
    assert after_end.day == 1 and after_end.time() == datetime.min.time()
    span = (after_end.year - rng.start.year) * 12 + after_end.month - rng.start.month
    assert span == months


def test_unknown_granularity_falls_back_to_monthly() -> None:
    rng = resolve_period(datetime(2025, 5, 20), "fortnightly")
    assert rng.granularity == BudgetPeriod.monthly
    assert rng.start == datetime(2025, 5, 1)


def test_is_in_period_is_inclusive() -> None:
    rng = resolve_period(datetime(2025, 5, 20), "monthly")
    assert is_in_period(rng.start, rng)
    assert is_in_period(rng.end, rng)
    assert not is_in_period(rng.start - timedelta(microseconds=1), rng)
    assert not is_in_period(rng.end + timedelta(milliseconds=1), rng)
    assert not is_in_period(None, rng)


def test_is_in_period_accepts_plain_dates() -> None:
    rng = resolve_period(datetime(2025, 5, 20), "monthly")
    assert rng.contains(date(2025, 5, 31))
    assert not rng.contains(date(2025, 6, 1))


def test_aware_timestamps_use_configured_zone() -> None:
    # default zone is Europe/Berlin (UTC+2 in summer)
    rng = resolve_period(datetime(2025, 6, 10), "monthly")
    late_may_utc = datetime(2025, 5, 31, 22, 30, tzinfo=timezone.utc)
    assert rng.contains(late_may_utc)


def test_budget_period_coerce() -> None:
    assert BudgetPeriod.coerce(None) == BudgetPeriod.monthly
    assert BudgetPeriod.coerce("") == BudgetPeriod.monthly
    assert BudgetPeriod.coerce("Quarterly") == BudgetPeriod.quarterly
    assert BudgetPeriod.coerce(" yearly ") == BudgetPeriod.yearly
    assert BudgetPeriod.coerce("weekly") == BudgetPeriod.monthly
    assert BudgetPeriod.coerce(BudgetPeriod.yearly) is BudgetPeriod.yearly
    assert [p.months for p in BudgetPeriod] == [1, 3, 12]
