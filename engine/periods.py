import calendar
import math
from dataclasses import dataclass
from decimal import Decimal
from typing import Callable, Iterable

from engine.domain import INCOME, SAVINGS, Transaction
from engine.rollup import classify_or_uncategorized
from engine.tree import CategoryTree

WEEKLY_IN_MONTH = "weekly-in-month"
MONTHLY_IN_YEAR = "monthly-in-year"
GRANULARITIES = (WEEKLY_IN_MONTH, MONTHLY_IN_YEAR)


@dataclass(frozen=True)
class PeriodBucket:
    key: str
    inc: Decimal = Decimal(0)
    exp: Decimal = Decimal(0)
    sav: Decimal = Decimal(0)

    def add(self, category_type: str, amount: Decimal) -> 'PeriodBucket':
        if category_type == INCOME:
            return PeriodBucket(self.key, self.inc + amount, self.exp, self.sav)
        if category_type == SAVINGS:
            return PeriodBucket(self.key, self.inc, self.exp, self.sav + amount)
        return PeriodBucket(self.key, self.inc, self.exp + amount, self.sav)


def week_of_month(day: int) -> int:
    # days 29-31 spill into a fifth week
    return math.ceil(day / 7)


def period_key(t: Transaction, granularity: str) -> tuple[int, str]:
    if granularity == WEEKLY_IN_MONTH:
        week = week_of_month(t.date.day)
        return week, f"Week {week}"
    if granularity == MONTHLY_IN_YEAR:
        return t.date.month, calendar.month_abbr[t.date.month]
    raise ValueError(f"Unknown granularity {granularity!r}, expected one of {GRANULARITIES}")


def bucket(
    transactions: Iterable[Transaction],
    granularity: str,
    tree: CategoryTree,
    calendar_order: bool = False,
) -> list[PeriodBucket]:
    """Group transactions into income/expense/savings series.

    Buckets appear in the order their first transaction is seen; pass
    calendar_order=True to sort them by week or month number instead.
    Periods without transactions are left out.
    """
    if granularity not in GRANULARITIES:
        raise ValueError(f"Unknown granularity {granularity!r}, expected one of {GRANULARITIES}")

    buckets: dict[str, PeriodBucket] = {}
    index: dict[str, int] = {}
    for t in transactions:
        n, key = period_key(t, granularity)
        kind = classify_or_uncategorized(t, tree).type
        buckets[key] = buckets.get(key, PeriodBucket(key)).add(kind, t.amount)
        index[key] = n

    out = list(buckets.values())
    if calendar_order:
        out.sort(key=lambda b: index[b.key])
    return out


def in_month(year: int, month: int) -> Callable[[Transaction], bool]:
    def _filter(t: Transaction) -> bool:
        return t.date.year == year and t.date.month == month

    return _filter


def in_year(year: int) -> Callable[[Transaction], bool]:
    def _filter(t: Transaction) -> bool:
        return t.date.year == year

    return _filter
