from collections import defaultdict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Iterable, Iterator, Optional

from engine.domain import (
    CATEGORY_TYPES,
    EXPENSE,
    INCOME,
    SAVINGS,
    UNCATEGORIZED_ID,
    Anomaly,
    OrphanedReference,
    Transaction,
)
from engine.tree import CategoryTree
from engine.log import get_logger

log = get_logger(__name__)

ZERO = Decimal(0)


@dataclass(frozen=True)
class Classification:
    type: str
    root_id: str
    category_id: str


def classify(t: Transaction, tree: CategoryTree) -> Optional[Classification]:
    """Resolve a transaction's bucket through the tree, or None if its category is gone."""
    if t.category_id is None or t.category_id not in tree:
        return None
    root = tree.root_of(t.category_id)
    return Classification(type=root.type, root_id=root.id, category_id=t.category_id)


UNCATEGORIZED = Classification(type=EXPENSE, root_id=UNCATEGORIZED_ID, category_id=UNCATEGORIZED_ID)


def classify_or_uncategorized(t: Transaction, tree: CategoryTree) -> Classification:
    return classify(t, tree) or UNCATEGORIZED


def _zero_by_type() -> dict[str, Decimal]:
    return {k: ZERO for k in CATEGORY_TYPES}


def _add(a: dict, b: dict) -> dict:
    out = dict(a)
    for k, v in b.items():
        out[k] = out.get(k, ZERO) + v
    return out


@dataclass(frozen=True)
class Rollup:
    totals_by_type: dict[str, Decimal] = field(default_factory=_zero_by_type)
    totals_by_root_category: dict[str, Decimal] = field(default_factory=dict)
    totals_by_category: dict[str, Decimal] = field(default_factory=dict)
    anomalies: tuple[Anomaly, ...] = ()

    @property
    def income(self) -> Decimal:
        return self.totals_by_type[INCOME]

    @property
    def expense(self) -> Decimal:
        return self.totals_by_type[EXPENSE]

    @property
    def savings(self) -> Decimal:
        return self.totals_by_type[SAVINGS]

    @property
    def balance(self) -> Decimal:
        # savings leave the spendable balance without counting as spend
        return self.income - self.expense - self.savings

    @property
    def total(self) -> Decimal:
        return sum(self.totals_by_type.values(), ZERO)

    def merge(self, other: 'Rollup') -> 'Rollup':
        return Rollup(
            totals_by_type=_add(self.totals_by_type, other.totals_by_type),
            totals_by_root_category=_add(self.totals_by_root_category, other.totals_by_root_category),
            totals_by_category=_add(self.totals_by_category, other.totals_by_category),
            anomalies=self.anomalies + other.anomalies,
        )


def aggregate(transactions: Iterable[Transaction], tree: CategoryTree) -> Rollup:
    by_type = _zero_by_type()
    by_root: dict[str, Decimal] = defaultdict(Decimal)
    by_category: dict[str, Decimal] = defaultdict(Decimal)
    anomalies: list[Anomaly] = []

    for t in transactions:
        bucket = classify(t, tree)
        if bucket is None:
            anomalies.append(OrphanedReference(source_id=t.id, missing_id=str(t.category_id)))
            bucket = UNCATEGORIZED
        by_type[bucket.type] += t.amount
        by_root[bucket.root_id] += t.amount
        by_category[bucket.category_id] += t.amount

    if anomalies:
        log.warning("uncategorized_transactions", count=len(anomalies))
    return Rollup(
        totals_by_type=by_type,
        totals_by_root_category=dict(by_root),
        totals_by_category=dict(by_category),
        anomalies=tuple(anomalies),
    )


def category_name(category_id: str, tree: CategoryTree, uncategorized_label: str) -> str:
    if category_id == UNCATEGORIZED_ID:
        return uncategorized_label
    return tree.find(category_id).map(lambda c: c.name).get_or_else(category_id)


def top_root_categories(
    rollup: Rollup,
    tree: CategoryTree,
    category_type: str,
    k: int,
    uncategorized_label: str = "Uncategorized",
) -> Iterator[tuple[str, Decimal]]:
    """Yield (name, total) for the k largest root categories of one type.

    The synthetic uncategorized bucket counts as an expense root.
    """
    def root_type(root_id: str) -> str:
        if root_id == UNCATEGORIZED_ID:
            return EXPENSE
        return tree.find(root_id).map(lambda c: c.type).get_or_else(EXPENSE)

    ordered = sorted(
        (
            (category_name(rid, tree, uncategorized_label), total)
            for rid, total in rollup.totals_by_root_category.items()
            if root_type(rid) == category_type
        ),
        key=lambda item: item[1],
        reverse=True,
    )
    for name, total in ordered[: max(0, k)]:
        yield name, total
