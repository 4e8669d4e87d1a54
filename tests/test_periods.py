from datetime import date
from decimal import Decimal

import pytest

from engine.domain import Category, Transaction
from engine.periods import (
    MONTHLY_IN_YEAR,
    WEEKLY_IN_MONTH,
    PeriodBucket,
    bucket,
    in_month,
    in_year,
    week_of_month,
)
from engine.tree import CategoryTree


def make_tree():
    return CategoryTree.build((
        Category("inc", "Income", "income"),
        Category("food", "Food", "expense"),
        Category("save", "Savings", "savings"),
        Category("groceries", "Groceries", "expense", "food"),
    ))


def test_week_of_month_boundaries():
    assert [week_of_month(d) for d in (1, 7, 8, 14, 15, 28, 29, 31)] == [1, 1, 2, 2, 3, 4, 5, 5]


def test_weekly_keys_for_days_1_10_31():
    trans = (
        Transaction("t1", 10, "2025-01-01", "food"),
        Transaction("t2", 20, "2025-01-10", "food"),
        Transaction("t3", 30, "2025-01-31", "food"),
    )
    keys = [b.key for b in bucket(trans, WEEKLY_IN_MONTH, make_tree())]

    assert keys == ["Week 1", "Week 2", "Week 5"]


def test_bucket_splits_income_expense_savings():
    trans = (
        Transaction("t1", "1000", "2025-03-02", "inc"),
        Transaction("t2", "40.50", "2025-03-03", "groceries"),
        Transaction("t3", "100", "2025-03-04", "save"),
        Transaction("t4", "9.50", "2025-03-05", "missing"),
    )
    [week] = bucket(trans, WEEKLY_IN_MONTH, make_tree())

    assert week == PeriodBucket("Week 1", Decimal("1000"), Decimal("50.00"), Decimal("100"))


def test_buckets_follow_first_seen_order():
    trans = (
        Transaction("t1", 1, "2025-03-20", "food"),
        Transaction("t2", 1, "2025-01-05", "food"),
        Transaction("t3", 1, "2025-03-02", "food"),
    )

    assert [b.key for b in bucket(trans, MONTHLY_IN_YEAR, make_tree())] == ["Mar", "Jan"]
    assert [b.key for b in bucket(trans, WEEKLY_IN_MONTH, make_tree())] == ["Week 3", "Week 1"]


def test_calendar_order_sorts_by_period():
    trans = (
        Transaction("t1", 1, "2025-03-20", "food"),
        Transaction("t2", 1, "2025-01-05", "food"),
    )
    out = bucket(trans, MONTHLY_IN_YEAR, make_tree(), calendar_order=True)

    assert [b.key for b in out] == ["Jan", "Mar"]


def test_empty_periods_are_absent():
    trans = (Transaction("t1", 5, "2025-05-30", "food"),)

    assert bucket(trans, WEEKLY_IN_MONTH, make_tree()) == [PeriodBucket("Week 5", exp=Decimal(5))]
    assert bucket((), WEEKLY_IN_MONTH, make_tree()) == []


def test_unknown_granularity_raises():
    with pytest.raises(ValueError):
        bucket((), "daily", make_tree())


def test_month_and_year_filters():
    trans = (
        Transaction("t1", 1, date(2025, 1, 31), "food"),
        Transaction("t2", 1, date(2025, 2, 1), "food"),
        Transaction("t3", 1, date(2024, 1, 15), "food"),
    )

    assert [t.id for t in filter(in_month(2025, 1), trans)] == ["t1"]
    assert [t.id for t in filter(in_year(2025), trans)] == ["t1", "t2"]
