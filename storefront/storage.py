"""Долговременное клиентское хранилище: корзина, магазин, ожидающий заказ, ACK."""

from __future__ import annotations

import json
import logging
import sqlite3
from pathlib import Path
from typing import Dict, Optional, Protocol

from .cart import cart_from_dict, cart_to_dict
from .domain import Cart, PendingOrderHandle

logger = logging.getLogger(__name__)

CART_KEY = "cart"
STORE_KEY = "store"
PENDING_ORDER_KEY = "pending_order"
LAST_ORDER_KEY = "last_order_id"


class KeyValueStore(Protocol):
    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class MemoryStore:
    """Хранилище в памяти (тесты, одноразовые сессии)"""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set(self, key: str, value: str) -> None:
        self.data[key] = value

    def delete(self, key: str) -> None:
        self.data.pop(key, None)


class SqliteStore:
    """Ключ-значение поверх SQLite; переживает перезагрузку страницы/процесса"""

    def __init__(self, db_path: str):
        self.db_path = db_path
        self.bootstrap_schema()

    def _connect(self) -> sqlite3.Connection:
        db_file = Path(self.db_path)
        db_file.parent.mkdir(parents=True, exist_ok=True)
        return sqlite3.connect(db_file)

    def bootstrap_schema(self) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )

    def get(self, key: str) -> Optional[str]:
        with self._connect() as conn:
            row = conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO kv(key, value) VALUES(?, ?) "
                "ON CONFLICT(key) DO UPDATE SET value=excluded.value",
                (key, value),
            )

    def delete(self, key: str) -> None:
        with self._connect() as conn:
            conn.execute("DELETE FROM kv WHERE key = ?", (key,))


class NamespacedStore:
    """Ключи одного клиента (браузера) внутри общего хранилища: '{namespace}:{key}'"""

    def __init__(self, store: KeyValueStore, namespace: str):
        self.store = store
        self.namespace = namespace

    def _key(self, key: str) -> str:
        return f"{self.namespace}:{key}"

    def get(self, key: str) -> Optional[str]:
        return self.store.get(self._key(key))

    def set(self, key: str, value: str) -> None:
        self.store.set(self._key(key), value)

    def delete(self, key: str) -> None:
        self.store.delete(self._key(key))


def _load_json(raw: Optional[str]) -> Optional[dict]:
    if not raw:
        return None
    try:
        data = json.loads(raw)
    except ValueError:
        logger.warning("Повреждённая запись в хранилище проигнорирована: %r", raw[:80])
        return None
    return data if isinstance(data, dict) else None


class StorefrontState:
    """
    Типизированный доступ к ключам хранилища.
    Каждый ключ - отдельная пара методов чтения/записи.
    namespace отделяет состояние одного клиента от других в общем хранилище.
    """

    def __init__(self, store: KeyValueStore, namespace: Optional[str] = None):
        self.kv: KeyValueStore = NamespacedStore(store, namespace) if namespace else store

    # ---- корзина ----
    def load_cart(self) -> Cart:
        data = _load_json(self.kv.get(CART_KEY))
        if data is None:
            return Cart(store=self.load_store())
        try:
            return cart_from_dict(data)
        except (KeyError, TypeError, ValueError):
            logger.warning("Не удалось восстановить корзину, начинаем с пустой")
            return Cart(store=self.load_store())

    def save_cart(self, cart: Cart) -> None:
        self.kv.set(CART_KEY, json.dumps(cart_to_dict(cart)))

    # ---- выбранный магазин ----
    def load_store(self) -> Optional[str]:
        return self.kv.get(STORE_KEY) or None

    def save_store(self, store: Optional[str]) -> None:
        if store:
            self.kv.set(STORE_KEY, store)

    # ---- ожидающий оплаты заказ (не больше одного) ----
    def load_pending(self) -> Optional[PendingOrderHandle]:
        data = _load_json(self.kv.get(PENDING_ORDER_KEY))
        if not data or "order_id" not in data:
            return None
        return PendingOrderHandle(order_id=int(data["order_id"]), signature=str(data.get("signature", "")))

    def save_pending(self, handle: PendingOrderHandle) -> None:
        self.kv.set(
            PENDING_ORDER_KEY,
            json.dumps({"order_id": handle.order_id, "signature": handle.signature}),
        )

    def clear_pending(self) -> None:
        self.kv.delete(PENDING_ORDER_KEY)

    # ---- последний заказ (для deep-link без orderId) ----
    def load_last_order_id(self) -> Optional[int]:
        raw = self.kv.get(LAST_ORDER_KEY)
        try:
            return int(raw) if raw else None
        except ValueError:
            return None

    def save_last_order_id(self, order_id: int) -> None:
        self.kv.set(LAST_ORDER_KEY, str(order_id))

    def clear_last_order_id(self) -> None:
        self.kv.delete(LAST_ORDER_KEY)
