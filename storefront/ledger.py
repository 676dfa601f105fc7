import json
import time
from typing import Callable, Optional

from .domain import AckRecord
from .storage import KeyValueStore

ACK_TTL_SECONDS = 24 * 60 * 60


def ack_key(order_id: int) -> str:
    return f"order_ack_{order_id}"


class AckLedger:
    """
    Заказы, подтверждение которых пользователь уже видел.
    Срок жизни проверяется при чтении, фоновой очистки нет.
    Влияет только на показ экрана подтверждения, не на статус оплаты.
    """

    def __init__(
        self,
        store: KeyValueStore,
        ttl_seconds: float = ACK_TTL_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        self.store = store
        self.ttl_seconds = ttl_seconds
        self.clock = clock

    def mark_seen(self, order_id: int) -> AckRecord:
        record = AckRecord(order_id=order_id, seen_at=self.clock())
        self.store.set(ack_key(order_id), json.dumps({"seenAt": record.seen_at}))
        return record

    def record(self, order_id: int) -> Optional[AckRecord]:
        raw = self.store.get(ack_key(order_id))
        if not raw:
            return None
        try:
            seen_at = float(json.loads(raw).get("seenAt"))
        except (ValueError, TypeError, AttributeError):
            return None
        return AckRecord(order_id=order_id, seen_at=seen_at)

    def is_seen(self, order_id: int) -> bool:
        rec = self.record(order_id)
        return rec is not None and self.clock() - rec.seen_at < self.ttl_seconds
