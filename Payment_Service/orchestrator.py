import asyncio
import logging
import random
from enum import Enum
from typing import Callable, Mapping, Optional

from storefront.api import BackendClient
from storefront.delivery import DeliveryFeeCalculator, effective_fee
from storefront.domain import CustomerInfo, PaymentMethod
from storefront.errors import AlreadyPaidConflict, InvalidTransition, StorefrontError
from storefront.events import (
    CASH_ORDER_PLACED,
    CONFIRMATION_DISMISSED,
    NOTICE,
    ORDER_CONFIRMED,
    ORDER_CREATED,
    PROGRESS,
    STATE_CHANGED,
    EventBus,
    create_event,
    create_payment_event_bus,
    initial_view_state,
)
from storefront.service import CartStore, OrderSubmissionService
from storefront.validation import validate_checkout

from .reconcile import PaymentReconciler

logger = logging.getLogger(__name__)


class PaymentState(str, Enum):
    IDLE = "idle"
    VALIDATING = "validating"
    SUBMITTING = "submitting"
    REDIRECTING = "redirecting"
    AWAITING_CASH = "awaiting_cash"
    RECONCILING = "reconciling"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    FAILED = "failed"


S = PaymentState
TERMINAL = frozenset({S.CONFIRMED, S.CANCELLED, S.FAILED})

# из терминальных состояний можно начать новую попытку или вернуться к сверке
_RESTART = {S.IDLE, S.VALIDATING, S.RECONCILING}
TRANSITIONS = {
    S.IDLE: {S.VALIDATING, S.RECONCILING, S.CANCELLED, S.FAILED},
    S.VALIDATING: {S.SUBMITTING, S.CANCELLED, S.FAILED},
    S.SUBMITTING: {S.REDIRECTING, S.AWAITING_CASH, S.RECONCILING, S.CANCELLED, S.FAILED},
    S.REDIRECTING: {S.RECONCILING, S.CANCELLED, S.FAILED},
    S.AWAITING_CASH: {S.CONFIRMED, S.CANCELLED, S.FAILED},
    S.RECONCILING: {S.VALIDATING, S.CONFIRMED, S.CANCELLED, S.FAILED},
    S.CONFIRMED: _RESTART,
    S.CANCELLED: _RESTART,
    S.FAILED: _RESTART,
}

PROGRESS_CAP = 92


class PaymentOrchestrator:
    """
    Ведёт оплату по одному из двух путей: онлайн (редирект к провайдеру,
    затем сверка) или наличными курьеру (сразу подтверждён).

    Флаг busy защищает от повторного входа в рамках одного жеста.
    Индикатор прогресса - косметический таймер, к реальному прогрессу
    отношения не имеет.
    """

    def __init__(
        self,
        api: BackendClient,
        cart_store: CartStore,
        delivery: DeliveryFeeCalculator,
        submission: OrderSubmissionService,
        reconciler: PaymentReconciler,
        navigate: Callable[[str], None],
        minimum_fee: int = 0,
        bus: Optional[EventBus] = None,
        auto_poll: bool = True,
        progress_interval: float = 0.3,
    ):
        self.api = api
        self.cart_store = cart_store
        self.delivery = delivery
        self.submission = submission
        self.reconciler = reconciler
        self.reconciler.on_confirmed = self._on_confirmed
        self.navigate = navigate
        self.minimum_fee = minimum_fee
        self.bus = bus or create_payment_event_bus()
        self.auto_poll = auto_poll
        self.progress_interval = progress_interval

        self.state = S.IDLE
        self.busy = False
        self.order_id: Optional[int] = None
        self.progress = 0.0
        self.view = initial_view_state()
        self._progress_task: Optional[asyncio.Task] = None

    # ============ Вспомогательные ============

    def _publish(self, name: str, payload: dict) -> None:
        self.view = self.bus.publish(create_event(name, payload), self.view)

    def _notify(self, error: StorefrontError) -> None:
        self._publish(NOTICE, {"level": error.level, "message": error.message})

    def _transition(self, target: PaymentState) -> None:
        if target not in TRANSITIONS[self.state]:
            raise InvalidTransition(self.state.value, target.value)
        logger.debug("Оплата: %s -> %s", self.state.value, target.value)
        self.state = target
        if target in TERMINAL:
            self._stop_progress()
        self._publish(STATE_CHANGED, {"state": target.value})

    def current_fee(self) -> Optional[int]:
        """Эффективная доставка с минимальным порогом; None - котировки ещё нет"""
        if self.delivery.quote is None:
            return None
        return effective_fee(self.delivery.fee, self.minimum_fee)

    def total(self) -> int:
        return self.cart_store.subtotal() + (self.current_fee() or 0)

    # ============ Прогресс (косметика) ============

    async def _tick_progress(self) -> None:
        while True:
            await asyncio.sleep(self.progress_interval)
            self.progress = min(self.progress + random.random() * 10 + 5, PROGRESS_CAP)
            self._publish(PROGRESS, {"value": self.progress})

    def _start_progress(self) -> None:
        self.progress = 0.0
        self._publish(PROGRESS, {"value": 0.0})
        self._progress_task = asyncio.create_task(self._tick_progress())

    def _stop_progress(self) -> None:
        task, self._progress_task = self._progress_task, None
        if task is None:
            return
        task.cancel()
        self.progress = 100.0
        self._publish(PROGRESS, {"value": 100.0, "overlay": False})

    # ============ Оплата ============

    async def pay(self, customer: CustomerInfo, method: PaymentMethod) -> PaymentState:
        if self.busy:
            logger.debug("Оплата уже выполняется, повторный вызов проигнорирован")
            return self.state

        self.busy = True
        self._start_progress()
        try:
            return await self._pay(customer, PaymentMethod(method))
        finally:
            self.busy = False
            self._stop_progress()

    async def _pay(self, customer: CustomerInfo, method: PaymentMethod) -> PaymentState:
        self.reconciler.stop()
        self._transition(S.VALIDATING)
        cart = self.cart_store.cart
        fee = self.current_fee()

        checked = validate_checkout(cart, cart.store, customer, fee)
        if checked.is_left:
            self._notify(checked.error)
            self._transition(S.FAILED)
            return self.state

        self._transition(S.SUBMITTING)
        result = await self.submission.submit(cart, fee, cart.store, customer, method)

        if self.state is not S.SUBMITTING:
            # отменено или подтверждено другим сигналом, пока ждали бэкенд
            if result.is_right and result.value != self.order_id:
                await self.submission.cancel_if_unpaid(result.value)
            return self.state

        if result.is_left:
            return await self._submission_failed(result.error)

        order_id = result.value
        self.order_id = order_id
        self._publish(ORDER_CREATED, {"order_id": order_id})

        if method is PaymentMethod.CASH:
            self._transition(S.AWAITING_CASH)
            self.cart_store.clear()
            self.submission.state.clear_pending()
            self.submission.state.clear_last_order_id()
            self.reconciler.ledger.mark_seen(order_id)
            self._publish(CASH_ORDER_PLACED, {"order_id": order_id})
            self._transition(S.CONFIRMED)
            logger.info("Заказ #%s: оплата наличными при доставке", order_id)
            return self.state

        self._transition(S.REDIRECTING)
        self.navigate(self.api.payment_redirect_url(order_id))
        self._transition(S.RECONCILING)
        self.reconciler.track(order_id)
        if self.auto_poll:
            self.reconciler.start_polling()
        return self.state

    async def _submission_failed(self, error: StorefrontError) -> PaymentState:
        self._notify(error)
        if isinstance(error, AlreadyPaidConflict):
            # прежний заказ уже оплачен: показываем его подтверждение, не отменяем
            return await self._confirm_paid(error.order_id, trigger="already-paid")
        self._transition(S.FAILED)
        return self.state

    async def _confirm_paid(self, order_id: int, trigger: str) -> PaymentState:
        self.order_id = order_id
        if self.state is not S.RECONCILING:
            self._transition(S.RECONCILING)
        self.reconciler.track(order_id)
        confirmed = await self.reconciler.attempt_confirm(order_id, trigger=trigger)
        if not confirmed and self.state is S.RECONCILING and self.reconciler.ledger.is_seen(order_id):
            # подтверждение этого заказа уже показывали: закрываем цикл без экрана
            self.reconciler.stop()
            pending = self.submission.pending
            if pending is not None and pending.order_id == order_id:
                self.submission.state.clear_pending()
            self._transition(S.CONFIRMED)
        return self.state

    def _on_confirmed(self, order_id: int) -> None:
        self.order_id = order_id
        if self.state is not S.RECONCILING:
            self._transition(S.RECONCILING)
        self._transition(S.CONFIRMED)
        self._publish(ORDER_CONFIRMED, {"order_id": order_id})

    # ============ Отмена, возврат на страницу, закрытие подтверждения ============

    async def cancel(self) -> PaymentState:
        """Пользователь закрыл оплату: неоплаченный заказ отменяется"""
        if self.state in TERMINAL:
            return self.state

        self.reconciler.stop()
        pending = self.submission.pending
        order_id = self.order_id or (pending.order_id if pending else None)

        if order_id is not None:
            result = await self.submission.cancel_if_unpaid(order_id)
            if isinstance(result.error, AlreadyPaidConflict):
                self._notify(result.error)
                return await self._confirm_paid(order_id, trigger="cancel")
            if result.is_left:
                self._notify(result.error)

        self.submission.state.clear_pending()
        self.order_id = None
        if self.state not in TERMINAL:
            self._transition(S.CANCELLED)
        return self.state

    async def resume(self, query: Mapping[str, str]) -> PaymentState:
        """Загрузка страницы: возврат с провайдера или незавершённый заказ"""
        if self.busy:
            return self.state

        if await self.reconciler.on_return(query):
            return self.state

        pending = self.submission.pending
        if pending is not None and self.state is not S.RECONCILING:
            self.order_id = pending.order_id
            self._transition(S.RECONCILING)
            self.reconciler.track(pending.order_id)
            if self.auto_poll:
                self.reconciler.start_polling()
        return self.state

    async def on_refocus(self) -> PaymentState:
        if self.state is S.RECONCILING:
            await self.reconciler.on_refocus()
        return self.state

    def dismiss_confirmation(self) -> PaymentState:
        """'Voltar para Loja': подтверждение видели, корзина пуста, новый цикл"""
        if self.state not in TERMINAL:
            return self.state
        if self.order_id is not None and self.state is S.CONFIRMED:
            self.reconciler.ledger.mark_seen(self.order_id)
        self.submission.state.clear_last_order_id()
        self.cart_store.clear()
        self.order_id = None
        self._publish(CONFIRMATION_DISMISSED, {})
        self._transition(S.IDLE)
        return self.state

    def teardown(self) -> None:
        self.reconciler.stop()
        self._stop_progress()
