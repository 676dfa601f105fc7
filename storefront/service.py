import logging
from typing import Optional

from .api import BackendClient, build_order_payload
from .cart import (
    add_to_cart,
    clear_cart,
    quantity_in_cart,
    remove_from_cart,
    subtotal,
    update_quantity,
)
from .domain import Cart, CustomerInfo, OrderStatus, PaymentMethod, PendingOrderHandle, Product
from .errors import AlreadyPaidConflict, NetworkError, StaleOrderConflict, StockExhausted, StorefrontError
from .ftypes import Either
from .signature import signature_of
from .storage import StorefrontState
from .validation import validate_checkout

logger = logging.getLogger(__name__)


class CartStore:
    """Фасад корзины: чистые операции из cart.py + запись в хранилище"""

    def __init__(self, state: StorefrontState):
        self.state = state
        self.cart = state.load_cart()

    def _commit(self, cart: Cart) -> Cart:
        self.cart = cart
        self.state.save_cart(cart)
        return cart

    @property
    def store(self) -> Optional[str]:
        return self.cart.store

    def add(self, product: Product, quantity: int = 1) -> Either[StockExhausted, Cart]:
        """Left(StockExhausted) - предупреждение, корзина не меняется"""
        return add_to_cart(self.cart, product, quantity).map(self._commit)

    def update_quantity(self, product_id: int, delta: int) -> Cart:
        return self._commit(update_quantity(self.cart, product_id, delta))

    def remove(self, product_id: int) -> Cart:
        return self._commit(remove_from_cart(self.cart, product_id))

    def clear(self) -> Cart:
        return self._commit(clear_cart(self.cart))

    def switch_store(self, store: str) -> Cart:
        """Смена магазина очищает корзину (другой склад и цены)"""
        self.state.save_store(store)
        if store == self.cart.store:
            return self.cart
        return self._commit(Cart(store=store, lines=()))

    def subtotal(self) -> int:
        return subtotal(self.cart)

    def quantity_of(self, product_id: int) -> int:
        return quantity_in_cart(self.cart, product_id)


class OrderSubmissionService:
    """
    Создаёт заказ на бэкенде ровно один раз на каждую уникальную подпись.

    Повторное нажатие "оплатить" без изменений корзины возвращает тот же id.
    Изменившаяся подпись -> старый неоплаченный заказ отменяется, создаётся новый.
    Хэндл ожидающего заказа пишется только после успешного создания.
    """

    def __init__(self, api: BackendClient, state: StorefrontState):
        self.api = api
        self.state = state

    @property
    def pending(self) -> Optional[PendingOrderHandle]:
        return self.state.load_pending()

    async def cancel_if_unpaid(self, order_id: int) -> Either[StorefrontError, int]:
        """
        Перепроверяет статус перед отменой: оплаченный заказ не отменяется
        (Left(AlreadyPaidConflict)). Right(order_id) - заказ отменён, хэндл снят.
        """
        try:
            status = await self.api.order_status(order_id)
            if status is OrderStatus.PAID:
                logger.info("Заказ #%s уже оплачен, отмена пропущена", order_id)
                return Either.left(AlreadyPaidConflict(order_id))
            if status is not OrderStatus.CANCELLED:
                await self.api.cancel_order(order_id)
        except NetworkError as e:
            return Either.left(e)

        logger.info("Заказ #%s отменён", order_id)
        handle = self.state.load_pending()
        if handle is not None and handle.order_id == order_id:
            self.state.clear_pending()
        return Either.right(order_id)

    async def submit(
        self,
        cart: Cart,
        fee: Optional[int],
        store: Optional[str],
        customer: CustomerInfo,
        payment_method: PaymentMethod,
    ) -> Either[StorefrontError, int]:
        checked = validate_checkout(cart, store, customer, fee)
        if checked.is_left:
            return checked

        signature = signature_of(cart, fee, store, payment_method)
        handle = self.state.load_pending()

        if handle is not None and handle.signature != signature:
            logger.info("%s", StaleOrderConflict(handle.order_id).message)
            cancelled = await self.cancel_if_unpaid(handle.order_id)
            if cancelled.is_left:
                return cancelled
            handle = None

        if handle is not None:
            logger.info("Повторная отправка: используем заказ #%s", handle.order_id)
            self.state.save_last_order_id(handle.order_id)
            return Either.right(handle.order_id)

        payload = build_order_payload(cart, fee, store, checked.value, payment_method)
        try:
            order_id = await self.api.create_order(payload)
        except NetworkError as e:
            return Either.left(e)

        self.state.save_pending(PendingOrderHandle(order_id=order_id, signature=signature))
        self.state.save_last_order_id(order_id)
        logger.info(
            "Создан заказ #%s (%s, %d центов)", order_id, payment_method.value, subtotal(cart) + fee
        )
        return Either.right(order_id)
