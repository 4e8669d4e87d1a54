from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import ClassVar, Optional, Union

from engine.functional import parse_amount

INCOME = "income"
EXPENSE = "expense"
SAVINGS = "savings"
CATEGORY_TYPES = (INCOME, EXPENSE, SAVINGS)

UNCATEGORIZED_ID = "__uncategorized__"
MONTHLY = "monthly"


class EngineError(Exception):
    pass


class InvalidAmount(EngineError, ValueError):
    def __init__(self, value, reason: str):
        super().__init__(f"Invalid amount {value!r}: {reason}")
        self.value = value
        self.reason = reason


def _amount(value) -> Decimal:
    result = parse_amount(value)
    if result.is_left():
        raise InvalidAmount(value, result.get_error())
    return result.get_or_else(Decimal(0))


def _as_date(value: Union[date, datetime, str]) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value)).date()


@dataclass(frozen=True)
class Category:
    id: str
    name: str
    type: str
    parent_id: Optional[str] = None

    def __post_init__(self):
        if self.type not in CATEGORY_TYPES:
            raise ValueError(f"Unknown category type {self.type!r} for {self.id}")

    @property
    def is_root(self) -> bool:
        return self.parent_id is None


@dataclass(frozen=True)
class Transaction:
    id: str
    amount: Decimal
    date: date
    category_id: Optional[str]
    note: str = ""

    def __post_init__(self):
        object.__setattr__(self, "amount", _amount(self.amount))
        object.__setattr__(self, "date", _as_date(self.date))


@dataclass(frozen=True)
class Budget:
    id: str
    category_id: str
    year: int
    month: int
    amount: Decimal
    period: str = MONTHLY

    def __post_init__(self):
        if not 1 <= int(self.month) <= 12:
            raise ValueError(f"Budget month must be 1-12, got {self.month}")
        object.__setattr__(self, "year", int(self.year))
        object.__setattr__(self, "month", int(self.month))
        object.__setattr__(self, "amount", _amount(self.amount))

    @property
    def key(self) -> tuple[str, int, int]:
        return self.category_id, self.year, self.month


# Structural anomalies: recorded on results, never raised.

class Anomaly:
    kind: ClassVar[str] = "anomaly"

    @property
    def message(self) -> str:
        return self.kind


@dataclass(frozen=True)
class OrphanedReference(Anomaly):
    source_id: str
    missing_id: str
    kind: ClassVar[str] = "orphaned_reference"

    @property
    def message(self) -> str:
        return f"{self.source_id} refers to missing category {self.missing_id}"


@dataclass(frozen=True)
class CycleDetected(Anomaly):
    category_ids: tuple[str, ...]
    kind: ClassVar[str] = "cycle_detected"

    @property
    def message(self) -> str:
        return "parent chain loops through " + " -> ".join(self.category_ids)


@dataclass(frozen=True)
class DuplicateBudgetKey(Anomaly):
    category_id: str
    year: int
    month: int
    kept_id: str
    dropped_id: str
    kind: ClassVar[str] = "duplicate_budget_key"

    @property
    def message(self) -> str:
        return (
            f"budgets {self.dropped_id} and {self.kept_id} share "
            f"{self.category_id} {self.year}-{self.month:02d}; keeping {self.kept_id}"
        )
