import asyncio
import logging
from typing import Callable, Mapping, Optional

from storefront.api import BackendClient
from storefront.domain import OrderStatus
from storefront.errors import NetworkError
from storefront.ledger import AckLedger
from storefront.service import CartStore
from storefront.storage import StorefrontState

logger = logging.getLogger(__name__)


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


def order_id_from_query(query: Mapping[str, str]) -> Optional[int]:
    raw = (query.get("orderId") or "").strip()
    return int(raw) if raw.isdigit() else None


def returned_after_idle(last_activity: Optional[float], now: float, idle_seconds: float) -> bool:
    """Перезапуск страницы после паузы не короче idle_seconds считается возвратом на вкладку"""
    return last_activity is not None and now - last_activity >= idle_seconds


class PaymentReconciler:
    """
    Сходится к статусу оплаты без push-канала.

    Три сигнала - возврат с провайдера (URL), периодический опрос и возврат
    фокуса на вкладку - вызывают одну и ту же attempt_confirm. Проверка
    "уже подтверждён / уже видел" и подтверждение выполняются без await
    между ними, поэтому гонка двух сигналов не показывает экран дважды.
    """

    def __init__(
        self,
        api: BackendClient,
        state: StorefrontState,
        ledger: AckLedger,
        cart_store: CartStore,
        on_confirmed: Optional[Callable[[int], None]] = None,
        poll_interval: float = 5.0,
        max_attempts: int = 120,
    ):
        self.api = api
        self.state = state
        self.ledger = ledger
        self.cart_store = cart_store
        self.on_confirmed = on_confirmed
        self.poll_interval = poll_interval
        self.max_attempts = max_attempts

        self.tracking: Optional[int] = None
        self.attempts = 0
        self.confirmed: set = set()
        self._poll_task: Optional[asyncio.Task] = None

    def _already_done(self, order_id: int) -> bool:
        return order_id in self.confirmed or self.ledger.is_seen(order_id)

    async def fetch_status(self, order_id: int) -> OrderStatus:
        """Статус заказа; если не оплачен - ещё статус провайдера (сходится быстрее)"""
        status = await self.api.order_status(order_id)
        if status is OrderStatus.PAID:
            return status
        try:
            provider = await self.api.provider_status(order_id)
        except NetworkError:
            return status
        return OrderStatus.PAID if provider is OrderStatus.PAID else status

    async def attempt_confirm(self, order_id: int, trigger: str = "poll") -> bool:
        """Общая идемпотентная процедура подтверждения. True - подтвердили сейчас"""
        if self._already_done(order_id):
            return False

        try:
            status = await self.fetch_status(order_id)
        except NetworkError as e:
            logger.warning("Проверка оплаты #%s (%s) не удалась: %s", order_id, trigger, e.message)
            return False

        if status is not OrderStatus.PAID:
            logger.debug("Заказ #%s ещё не оплачен (%s, %s)", order_id, status.value, trigger)
            return False

        # другой сигнал мог подтвердить заказ, пока мы ждали ответ
        if self._already_done(order_id):
            return False

        self.confirmed.add(order_id)
        self.cart_store.clear()
        self.ledger.mark_seen(order_id)
        handle = self.state.load_pending()
        if handle is not None and handle.order_id == order_id:
            self.state.clear_pending()
        self.state.save_last_order_id(order_id)
        if self.tracking == order_id:
            self.stop()

        logger.info("Заказ #%s оплачен (сигнал: %s)", order_id, trigger)
        if self.on_confirmed is not None:
            self.on_confirmed(order_id)
        return True

    # ============ Сигнал 1: возврат с провайдера ============

    async def on_return(self, query: Mapping[str, str]) -> bool:
        """
        ?orderId=...&paid=1 после редиректа. paid - только подсказка,
        решает статус бэкенда. Без orderId - последний сохранённый заказ.
        """
        order_id = order_id_from_query(query)
        if order_id is None:
            order_id = self.state.load_last_order_id()
        if order_id is None:
            return False
        if query.get("paid") == "1":
            logger.debug("Возврат с подсказкой paid=1 для #%s, проверяем бэкенд", order_id)
        return await self.attempt_confirm(order_id, trigger="return")

    # ============ Сигнал 2: опрос ============

    def track(self, order_id: int) -> None:
        self.tracking = order_id
        self.attempts = 0

    @property
    def exhausted(self) -> bool:
        return self.attempts >= self.max_attempts

    async def poll_once(self) -> bool:
        """Одна попытка из бюджета опроса"""
        if self.tracking is None or self.exhausted:
            return False
        self.attempts += 1
        confirmed = await self.attempt_confirm(self.tracking, trigger="poll")
        if not confirmed and self.exhausted:
            logger.info("Опрос заказа #%s остановлен: исчерпано %d попыток", self.tracking, self.attempts)
        return confirmed

    async def _poll_loop(self) -> None:
        while self.tracking is not None and not self.exhausted:
            await asyncio.sleep(self.poll_interval)
            if self.tracking is None:
                break
            await self.poll_once()

    def start_polling(self) -> Optional[asyncio.Task]:
        if self._poll_task is not None and not self._poll_task.done():
            return self._poll_task
        if self.tracking is None:
            return None
        self._poll_task = asyncio.create_task(self._poll_loop())
        return self._poll_task

    # ============ Сигнал 3: возврат фокуса ============

    async def on_refocus(self) -> bool:
        if self.tracking is None:
            return False
        return await self.attempt_confirm(self.tracking, trigger="refocus")

    def stop(self) -> None:
        """Остановка опроса; результат уже отправленного запроса просто игнорируется"""
        self.tracking = None
        task, self._poll_task = self._poll_task, None
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()
