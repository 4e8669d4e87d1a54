from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Mapping, Optional

import pandas as pd

from engine.config import get_settings
from engine.domain import (
    EXPENSE,
    MONTHLY,
    Budget,
    Category,
    DuplicateBudgetKey,
    InvalidAmount,
)
from engine.functional import parse_amount
from engine.log import get_logger
from engine.tree import CategoryTree

log = get_logger(__name__)

ZERO = Decimal(0)
HUNDRED = Decimal(100)


@dataclass(frozen=True)
class Reconciliation:
    category_id: str
    name: str
    type: str
    budget: Decimal
    actual: Decimal
    percent: Decimal
    over_limit: bool

    @property
    def variance(self) -> Decimal:
        return self.budget - self.actual

    @property
    def unbudgeted(self) -> bool:
        return self.budget == 0 and self.actual > 0


def usage_percent(budget: Decimal, actual: Decimal, category_type: str = EXPENSE) -> Decimal:
    if budget > 0:
        return min(actual / budget * HUNDRED, HUNDRED)
    if actual > 0 and category_type == EXPENSE:
        # nothing to measure against: spend with no budget reads as fully used
        return HUNDRED
    return ZERO


def is_over_limit(budget: Decimal, actual: Decimal, category_type: str = EXPENSE) -> bool:
    """Only spending can overrun; income and savings rows are never flagged."""
    if category_type != EXPENSE:
        return False
    if budget > 0:
        return actual > budget
    return actual > 0


def _collapse(budgets: Iterable[Budget]) -> tuple[list[Budget], list[DuplicateBudgetKey]]:
    kept: dict[tuple[str, int, int], Budget] = {}
    anomalies: list[DuplicateBudgetKey] = []
    for b in budgets:
        prev = kept.get(b.key)
        if prev is not None:
            anomalies.append(DuplicateBudgetKey(
                category_id=b.category_id,
                year=b.year,
                month=b.month,
                kept_id=b.id,
                dropped_id=prev.id,
            ))
        kept[b.key] = b
    return list(kept.values()), anomalies


def dedupe_budgets(budgets: Iterable[Budget]) -> tuple[list[Budget], list[DuplicateBudgetKey]]:
    """Collapse rows sharing (category, year, month); the last one loaded wins."""
    kept, anomalies = _collapse(budgets)
    for a in anomalies:
        log.warning(a.kind, detail=a.message)
    return kept, anomalies


def month_budgets(budgets: Iterable[Budget], year: int, month: int) -> dict[str, Decimal]:
    # collisions are reported by dedupe_budgets, not here
    deduped, _ = _collapse(b for b in budgets if b.year == year and b.month == month)
    return {b.category_id: b.amount for b in deduped}


def reconcile(
    budgets: Iterable[Budget],
    actuals: Mapping[str, Decimal],
    categories: Iterable[Category],
    year: int,
    month: int,
    tree: Optional[CategoryTree] = None,
) -> dict[str, Reconciliation]:
    """Join one month's budgets against per-category actuals.

    actuals is keyed by exact category id (Rollup.totals_by_category); budgets
    on a root are not topped up with spend booked on its subcategories.
    Categories with a budget come first in budget order, then categories that
    only have spend, in actuals order.

    Each row carries the type of its root category, which decides the
    over-limit policy. Pass the tree already built for the snapshot to avoid
    building it again.
    """
    categories = tuple(categories)
    if tree is None:
        tree = CategoryTree.build(categories)
    targets = month_budgets(budgets, year, month)
    by_id = {c.id: c for c in categories}
    label = get_settings().uncategorized_label

    result: dict[str, Reconciliation] = {}
    for cid in list(targets) + [k for k in actuals if k not in targets]:
        budget = targets.get(cid, ZERO)
        actual = actuals.get(cid, ZERO)
        cat = by_id.get(cid)
        kind = tree.root_of(cid).type if cid in tree else EXPENSE
        result[cid] = Reconciliation(
            category_id=cid,
            name=cat.name if cat else label,
            type=kind,
            budget=budget,
            actual=actual,
            percent=usage_percent(budget, actual, kind),
            over_limit=is_over_limit(budget, actual, kind),
        )
    return result


def over_limit(result: Mapping[str, Reconciliation]) -> list[Reconciliation]:
    return [r for r in result.values() if r.over_limit]


class BudgetEditor:
    """Tracks edits to one month's budget values so a save sends only deltas."""

    def __init__(self, budgets: Iterable[Budget], year: int, month: int):
        self.year = year
        self.month = month
        self._loaded = month_budgets(budgets, year, month)
        self._current = dict(self._loaded)

    def value(self, category_id: str) -> Decimal:
        return self._current.get(category_id, ZERO)

    def set(self, category_id: str, value) -> None:
        parsed = parse_amount(value)
        if parsed.is_left():
            raise InvalidAmount(value, parsed.get_error())
        self._current[category_id] = parsed.get_or_else(ZERO)

    def dirty(self) -> dict[str, Decimal]:
        return {
            cid: v
            for cid, v in self._current.items()
            if v != self._loaded.get(cid, ZERO)
        }

    def mark_saved(self, category_ids: Optional[Iterable[str]] = None) -> None:
        ids = list(self.dirty()) if category_ids is None else list(category_ids)
        for cid in ids:
            if cid in self._current:
                self._loaded[cid] = self._current[cid]


@dataclass(frozen=True)
class BudgetWrite:
    op: str  # "insert" or "update"
    category_id: str
    year: int
    month: int
    amount: Decimal
    budget_id: Optional[str] = None
    period: str = MONTHLY


def plan_budget_writes(
    changes: Mapping[str, Decimal],
    existing: Iterable[Budget],
    year: int,
    month: int,
) -> list[BudgetWrite]:
    """Decide insert vs update per changed value by looking up the stored row first."""
    rows = {b.category_id: b for b in dedupe_budgets(
        b for b in existing if b.year == year and b.month == month
    )[0]}
    writes = []
    for cid, amount in changes.items():
        row = rows.get(cid)
        if row is None:
            writes.append(BudgetWrite("insert", cid, year, month, amount))
        else:
            writes.append(BudgetWrite("update", cid, year, month, amount, budget_id=row.id))
    log.debug("budget_writes_planned", year=year, month=month, count=len(writes))
    return writes


def reconciliation_frame(result: Mapping[str, Reconciliation]) -> pd.DataFrame:
    columns = ["category_id", "category", "type", "budget", "actual", "variance", "percent", "over_limit"]
    rows = [
        {
            "category_id": r.category_id,
            "category": r.name,
            "type": r.type,
            "budget": float(r.budget),
            "actual": float(r.actual),
            "variance": float(r.variance),
            "percent": float(r.percent),
            "over_limit": r.over_limit,
        }
        for r in result.values()
    ]
    return pd.DataFrame(rows, columns=columns)
