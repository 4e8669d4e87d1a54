import json
from uuid import uuid4

from engine.domain import EXPENSE, INCOME, Budget, Category, Transaction
from engine.services import Snapshot

DEFAULT_TAXONOMY = (
    ("Income", INCOME, ("Salary", "Freelance", "Investments")),
    ("Housing", EXPENSE, ("Rent", "Utilities", "Maintenance")),
    ("Food", EXPENSE, ("Groceries", "Restaurants", "Delivery")),
    ("Transport", EXPENSE, ("Fuel", "Public Transport", "Car Maintenance")),
    ("Leisure", EXPENSE, ("Subscriptions", "Cinema", "Going Out")),
    ("Health", EXPENSE, ("Pharmacy", "Appointments", "Insurance")),
)


def load_snapshot(path: str) -> Snapshot:
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)

    return Snapshot(
        categories=tuple(Category(**c) for c in data.get("categories", [])),
        transactions=tuple(Transaction(**t) for t in data.get("transactions", [])),
        budgets=tuple(Budget(**b) for b in data.get("budgets", [])),
    )


def default_taxonomy(new_id=lambda: str(uuid4())) -> tuple[Category, ...]:
    """Starter categories for a user who has none: six roots with three subs each."""
    out = []
    for name, kind, subs in DEFAULT_TAXONOMY:
        root = Category(id=new_id(), name=name, type=kind)
        out.append(root)
        out.extend(Category(id=new_id(), name=sub, type=kind, parent_id=root.id) for sub in subs)
    return tuple(out)
