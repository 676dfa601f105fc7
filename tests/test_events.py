import sys
import os

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
from storefront.events import (
    CONFIRMATION_DISMISSED,
    NOTICE,
    ORDER_CONFIRMED,
    EventBus,
    create_event,
    create_payment_event_bus,
    initial_view_state,
)


def test_bus_is_immutable():
    bus = EventBus()
    bus2 = bus.subscribe(NOTICE, lambda e, s: {**s, "hit": True})
    assert bus.subscribers == ()
    assert len(bus2.subscribers) == 1


def test_handlers_chain_in_subscription_order():
    bus = EventBus()
    bus = bus.subscribe("X", lambda e, s: {**s, "n": s["n"] + 1})
    bus = bus.subscribe("X", lambda e, s: {**s, "n": s["n"] * 10})
    assert bus.publish(create_event("X", {}), {"n": 1}) == {"n": 20}
    assert bus.publish(create_event("Y", {}), {"n": 1}) == {"n": 1}


def test_confirmation_lifecycle():
    bus = create_payment_event_bus()
    state = initial_view_state()

    state = bus.publish(create_event(ORDER_CONFIRMED, {"order_id": 700}), state)
    assert state["confirmation"] == "paid"
    assert state["confirmations_shown"] == 1

    state = bus.publish(create_event(CONFIRMATION_DISMISSED, {}), state)
    assert state["confirmation"] is None
    assert state["order_id"] is None
    assert state["confirmations_shown"] == 1
