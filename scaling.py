from typing import Union

from periods import BudgetPeriod


Granularity = Union[BudgetPeriod, str, None]


def period_factor(granularity: Granularity) -> int:
    return BudgetPeriod.coerce(granularity).months


def scale_amount(
    amount: float, from_granularity: Granularity, to_granularity: Granularity
) -> float:
    # linear and unrounded; fractional cents are fine for display totals
    return amount * (period_factor(to_granularity) / period_factor(from_granularity))
