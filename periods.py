from dataclasses import dataclass
from datetime import date, datetime, time
from enum import Enum
from typing import Optional, Union
from zoneinfo import ZoneInfo

from config import get_settings


class BudgetPeriod(str, Enum):
    monthly = "monthly"
    quarterly = "quarterly"
    yearly = "yearly"

    @property
    def months(self) -> int:
        return _MONTHS[self]

    @classmethod
    def coerce(cls, value: Union["BudgetPeriod", str, None]) -> "BudgetPeriod":
        """Read a stored or user supplied period, falling back to monthly.

        Budget records carry no period of their own, so anything missing or
        unrecognised is taken to be expressed in monthly terms.
        """
        if isinstance(value, cls):
            return value
        if not value:
            return cls.monthly
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            return cls.monthly


_MONTHS = {
    BudgetPeriod.monthly: 1,
    BudgetPeriod.quarterly: 3,
    BudgetPeriod.yearly: 12,
}

# last representable instant of a day at millisecond resolution
END_OF_DAY = time(23, 59, 59, 999000)


@dataclass(frozen=True)
class PeriodRange:
    granularity: BudgetPeriod
    start: datetime
    end: datetime

    def contains(self, timestamp: Union[date, datetime, None]) -> bool:
        return is_in_period(timestamp, self)


def local_now() -> datetime:
    tz = ZoneInfo(get_settings().timezone)
    return datetime.now(tz).replace(tzinfo=None)


def _month_end(year: int, month: int) -> date:
    if month == 12:
        return date(year + 1, 1, 1) - date.resolution
    return date(year, month + 1, 1) - date.resolution


def resolve_period(
    now: Optional[datetime] = None,
    granularity: Union[BudgetPeriod, str, None] = BudgetPeriod.monthly,
) -> PeriodRange:
    now = _as_local_naive(now) if now is not None else local_now()
    period = BudgetPeriod.coerce(granularity)

    if period == BudgetPeriod.yearly:
        start = date(now.year, 1, 1)
        end = date(now.year, 12, 31)
    elif period == BudgetPeriod.quarterly:
        first_month = ((now.month - 1) // 3) * 3 + 1
        start = date(now.year, first_month, 1)
        end = _month_end(now.year, first_month + 2)
    else:
        start = now.date().replace(day=1)
        end = _month_end(now.year, now.month)

    return PeriodRange(
        granularity=period,
        start=datetime.combine(start, time.min),
        end=datetime.combine(end, END_OF_DAY),
    )


def is_in_period(
    timestamp: Union[date, datetime, None], period_range: PeriodRange
) -> bool:
    if timestamp is None:
        return False
    moment = _as_local_naive(timestamp)
    return period_range.start <= moment <= period_range.end


def _as_local_naive(value: Union[date, datetime]) -> datetime:
    if not isinstance(value, datetime):
        return datetime.combine(value, time.min)
    if value.tzinfo is not None:
        tz = ZoneInfo(get_settings().timezone)
        return value.astimezone(tz).replace(tzinfo=None)
    return value
