from datetime import datetime
from typing import Callable, Dict, List, NamedTuple

from engine.budgets import Reconciliation
from engine.log import get_logger

__all__ = ['DATA_CHANGED', 'BUDGET_ALERT', 'Event', 'EventBus', 'budget_alert_handler']

log = get_logger(__name__)

DATA_CHANGED = "DATA_CHANGED"
BUDGET_ALERT = "BUDGET_ALERT"


class Event(NamedTuple):
    name: str
    ts: str
    payload: dict


class EventBus:
    """In-process pub/sub for change signals coming from the realtime layer."""

    def __init__(self):
        self._subscribers: Dict[str, List[Callable[[Event], object]]] = {}

    def subscribe(self, name: str, handler: Callable[[Event], object]) -> None:
        self._subscribers.setdefault(name, []).append(handler)

    def unsubscribe(self, name: str, handler: Callable[[Event], object]) -> None:
        handlers = self._subscribers.get(name, [])
        if handler in handlers:
            handlers.remove(handler)

    def publish(self, name: str, payload: dict | None = None) -> List[object]:
        handlers = list(self._subscribers.get(name, []))
        if not handlers:
            return []
        event = Event(name=name, ts=datetime.now().isoformat(), payload=dict(payload or {}))
        log.debug("event_published", event_name=name, handlers=len(handlers))
        return [handler(event) for handler in handlers]


def budget_alert_handler(event: Event) -> dict:
    """Turn a reconciliation row carried in the payload into an alert message."""
    row: Reconciliation | None = event.payload.get("reconciliation")
    if row is None or not row.over_limit:
        return {}
    if row.unbudgeted:
        text = f"Spending in {row.name} has no budget set: {row.actual}"
    else:
        text = f"Budget exceeded for {row.name}: {row.actual} / {row.budget}"
    return {"alert": text, "category_id": row.category_id}
