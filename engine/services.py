import time
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Iterable, Optional

from engine.budgets import Reconciliation, dedupe_budgets, reconcile
from engine.config import EngineSettings, get_settings
from engine.domain import Anomaly, Budget, Category, Transaction
from engine.drilldown import Slice, project
from engine.functional import pipe
from engine.log import get_logger
from engine.periods import MONTHLY_IN_YEAR, WEEKLY_IN_MONTH, PeriodBucket, bucket, in_month, in_year
from engine.rollup import Rollup, aggregate, classify_or_uncategorized
from engine.tree import CategoryTree

log = get_logger(__name__)

MONTH_VIEW = "month"
YEAR_VIEW = "year"


@dataclass(frozen=True)
class Snapshot:
    """Everything one user owns, as fetched by the storage layer."""
    categories: tuple[Category, ...] = ()
    transactions: tuple[Transaction, ...] = ()
    budgets: tuple[Budget, ...] = ()

    @classmethod
    def of(
        cls,
        categories: Iterable[Category] = (),
        transactions: Iterable[Transaction] = (),
        budgets: Iterable[Budget] = (),
    ) -> 'Snapshot':
        return cls(tuple(categories), tuple(transactions), tuple(budgets))

    def without_transaction(self, transaction_id: str) -> 'Snapshot':
        return Snapshot(
            self.categories,
            tuple(t for t in self.transactions if t.id != transaction_id),
            self.budgets,
        )


@dataclass(frozen=True)
class DashboardReport:
    year: int
    month: int
    view: str
    tree: CategoryTree
    rollup: Rollup
    buckets: list[PeriodBucket]
    budgets: dict[str, Reconciliation]
    drilldowns: dict[str, list[Slice]]
    anomalies: tuple[Anomaly, ...] = field(default=())


class DashboardService:
    """Facade running the full recompute pipeline over one snapshot.

    The tree is built once per call and shared by every derived view. The
    service never fetches data; callers pass the snapshot in.
    """

    def __init__(self, settings: Optional[EngineSettings] = None):
        self.settings = settings or get_settings()

    def build_report(self, snapshot: Snapshot, year: int, month: int, view: str = MONTH_VIEW) -> DashboardReport:
        if view not in (MONTH_VIEW, YEAR_VIEW):
            raise ValueError(f"Unknown view {view!r}")
        started = time.perf_counter()

        tree = CategoryTree.build(snapshot.categories, max_depth=self.settings.max_tree_depth)

        month_tx = pipe(snapshot.transactions, lambda ts: filter(in_month(year, month), ts), tuple)
        if view == MONTH_VIEW:
            period_tx, granularity = month_tx, WEEKLY_IN_MONTH
        else:
            period_tx = pipe(snapshot.transactions, lambda ts: filter(in_year(year), ts), tuple)
            granularity = MONTHLY_IN_YEAR

        rollup = aggregate(period_tx, tree)
        month_rollup = rollup if view == MONTH_VIEW else aggregate(month_tx, tree)

        _, duplicates = dedupe_budgets(snapshot.budgets)
        budgets = reconcile(
            snapshot.budgets,
            month_rollup.totals_by_category,
            snapshot.categories,
            year,
            month,
            tree=tree,
        )

        drilldowns = {}
        for root in tree.roots:
            slices = project(root.id, period_tx, tree)
            if slices:
                drilldowns[root.id] = slices

        anomalies = tree.anomalies + rollup.anomalies + tuple(duplicates)
        log.debug(
            "dashboard_recomputed",
            view=view,
            year=year,
            month=month,
            transactions=len(period_tx),
            anomalies=len(anomalies),
            elapsed_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return DashboardReport(
            year=year,
            month=month,
            view=view,
            tree=tree,
            rollup=rollup,
            buckets=bucket(period_tx, granularity, tree),
            budgets=budgets,
            drilldowns=drilldowns,
            anomalies=anomalies,
        )


@dataclass(frozen=True)
class HistoryRow:
    id: str
    date: date
    amount: Decimal
    category: str
    type: str
    note: str


def recent_transactions(
    snapshot: Snapshot,
    tree: CategoryTree,
    limit: int = 50,
    uncategorized_label: str = "Uncategorized",
) -> list[HistoryRow]:
    """Newest transactions first, labelled with their category name.

    A transaction whose category is missing is shown under the uncategorized
    label and counted as an expense.
    """
    newest = sorted(snapshot.transactions, key=lambda t: t.date, reverse=True)[: max(0, limit)]
    rows = []
    for t in newest:
        c = classify_or_uncategorized(t, tree)
        rows.append(HistoryRow(
            id=t.id,
            date=t.date,
            amount=t.amount,
            category=tree.find(t.category_id).map(lambda cat: cat.name).get_or_else(uncategorized_label),
            type=c.type,
            note=t.note,
        ))
    return rows
