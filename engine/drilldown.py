from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from engine.domain import Transaction
from engine.tree import CategoryTree


@dataclass(frozen=True)
class Slice:
    name: str
    value: Decimal


def has_drilldown(root_category_id: str, tree: CategoryTree) -> bool:
    return root_category_id in tree and bool(tree.children_of(root_category_id))


def project(root_category_id: str, transactions: Iterable[Transaction], tree: CategoryTree) -> list[Slice]:
    """Subcategory distribution inside one root, in first-seen order.

    An empty list means there is nothing to drill into.
    """
    if not has_drilldown(root_category_id, tree):
        return []

    totals: dict[str, Decimal] = {}
    for t in transactions:
        if t.category_id is None or t.category_id not in tree:
            continue
        parent = tree.parent_of(t.category_id)
        if parent is None or parent.id != root_category_id:
            continue
        name = tree.node(t.category_id).category.name
        totals[name] = totals.get(name, Decimal(0)) + t.amount
    return [Slice(name, value) for name, value in totals.items()]
