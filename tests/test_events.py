from decimal import Decimal

from engine.budgets import Reconciliation
from engine.events import BUDGET_ALERT, DATA_CHANGED, Event, EventBus, budget_alert_handler


def make_row(budget, actual, over):
    return Reconciliation("food", "Food", "expense", Decimal(budget), Decimal(actual), Decimal(0), over)


def test_publish_reaches_every_subscriber():
    bus = EventBus()
    seen = []

    bus.subscribe(DATA_CHANGED, lambda e: seen.append(("a", e.payload["id"])))
    bus.subscribe(DATA_CHANGED, lambda e: seen.append(("b", e.payload["id"])))
    results = bus.publish(DATA_CHANGED, {"id": "t1"})

    assert len(results) == 2
    assert seen == [("a", "t1"), ("b", "t1")]


def test_publish_without_subscribers_is_noop():
    assert EventBus().publish(BUDGET_ALERT, {}) == []


def test_unsubscribe_stops_delivery():
    bus = EventBus()
    calls = []

    def handler(event: Event):
        calls.append(event.name)

    bus.subscribe(DATA_CHANGED, handler)
    bus.publish(DATA_CHANGED)
    bus.unsubscribe(DATA_CHANGED, handler)
    bus.publish(DATA_CHANGED)

    assert calls == [DATA_CHANGED]


def test_publish_copies_payload():
    bus = EventBus()
    payload = {"amount": 1}
    bus.subscribe(DATA_CHANGED, lambda e: e.payload.update(amount=2))
    bus.publish(DATA_CHANGED, payload)

    assert payload == {"amount": 1}


def test_budget_alert_handler_messages():
    over = budget_alert_handler(Event(BUDGET_ALERT, "", {"reconciliation": make_row(100, 150, True)}))
    unbudgeted = budget_alert_handler(Event(BUDGET_ALERT, "", {"reconciliation": make_row(0, 20, True)}))
    fine = budget_alert_handler(Event(BUDGET_ALERT, "", {"reconciliation": make_row(100, 20, False)}))

    assert "Budget exceeded for Food" in over["alert"]
    assert "no budget set" in unbudgeted["alert"]
    assert fine == {}
