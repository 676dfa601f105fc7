from dataclasses import dataclass
from datetime import datetime
from functools import reduce
from typing import Callable, Tuple
import uuid


@dataclass(frozen=True)
class Event:
    id: str
    ts: str
    name: str
    payload: dict


ORDER_CREATED = "ORDER_CREATED"
STATE_CHANGED = "STATE_CHANGED"
NOTICE = "NOTICE"
ORDER_CONFIRMED = "ORDER_CONFIRMED"
CASH_ORDER_PLACED = "CASH_ORDER_PLACED"
CONFIRMATION_DISMISSED = "CONFIRMATION_DISMISSED"
PROGRESS = "PROGRESS"


@dataclass(frozen=True)
class EventBus:
    """
    Иммутабельная шина событий оплаты.
    Подписчики - чистые функции (Event, view_state) -> view_state.
    """

    subscribers: Tuple[Tuple[str, Callable], ...] = ()

    def subscribe(self, event_name: str, handler: Callable[[Event, dict], dict]) -> "EventBus":
        return EventBus(subscribers=self.subscribers + ((event_name, handler),))

    def publish(self, event: Event, state: dict) -> dict:
        matching = tuple(handler for name, handler in self.subscribers if name == event.name)
        return reduce(lambda current, handler: handler(event, current), matching, state)


def create_event(name: str, payload: dict) -> Event:
    return Event(id=str(uuid.uuid4()), ts=datetime.now().isoformat(), name=name, payload=payload)


# ============ Обработчики (состояние витрины) ============


def handle_state_changed(event: Event, state: dict) -> dict:
    return {**state, "payment_state": event.payload["state"], "last_event": event.name}


def handle_notice(event: Event, state: dict) -> dict:
    """Уведомления кратковременные: храним только последнее"""
    notice = {"level": event.payload.get("level", "info"), "message": event.payload["message"]}
    return {**state, "notice": notice, "last_event": event.name}


def handle_order_created(event: Event, state: dict) -> dict:
    return {**state, "order_id": event.payload["order_id"], "last_event": event.name}


def handle_order_confirmed(event: Event, state: dict) -> dict:
    """Оплачено онлайн: показываем экран подтверждения"""
    return {
        **state,
        "order_id": event.payload["order_id"],
        "confirmation": "paid",
        "confirmations_shown": state.get("confirmations_shown", 0) + 1,
        "last_event": event.name,
    }


def handle_cash_order_placed(event: Event, state: dict) -> dict:
    """Наличные курьеру: отдельное, менее срочное уведомление"""
    return {
        **state,
        "order_id": event.payload["order_id"],
        "confirmation": "cash",
        "notice": {"level": "info", "message": "Pague ao entregador na entrega."},
        "last_event": event.name,
    }


def handle_confirmation_dismissed(event: Event, state: dict) -> dict:
    return {**state, "order_id": None, "confirmation": None, "notice": None, "last_event": event.name}


def handle_progress(event: Event, state: dict) -> dict:
    return {**state, "progress": event.payload["value"], "overlay": event.payload.get("overlay", True)}


def create_payment_event_bus() -> EventBus:
    bus = EventBus()
    bus = bus.subscribe(STATE_CHANGED, handle_state_changed)
    bus = bus.subscribe(NOTICE, handle_notice)
    bus = bus.subscribe(ORDER_CREATED, handle_order_created)
    bus = bus.subscribe(ORDER_CONFIRMED, handle_order_confirmed)
    bus = bus.subscribe(CASH_ORDER_PLACED, handle_cash_order_placed)
    bus = bus.subscribe(CONFIRMATION_DISMISSED, handle_confirmation_dismissed)
    bus = bus.subscribe(PROGRESS, handle_progress)
    return bus


def initial_view_state() -> dict:
    return {
        "payment_state": "idle",
        "order_id": None,
        "confirmation": None,
        "confirmations_shown": 0,
        "notice": None,
        "progress": 0,
        "overlay": False,
        "last_event": None,
    }
