"""HTTP-клиент бэкенда заказов/оплаты/каталога (httpx, async)."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import urlencode

import httpx

from .cart import from_cents, product_from_dict, subtotal, to_cents
from .domain import Cart, CustomerInfo, OrderStatus, OrderSummary, PaymentMethod, Product, StoreStatus, normalize_status
from .errors import NetworkError
from .ftypes import Maybe

logger = logging.getLogger(__name__)


def build_order_payload(
    cart: Cart,
    fee: int,
    store: str,
    customer: CustomerInfo,
    payment_method: PaymentMethod,
) -> Dict[str, Any]:
    """Тело POST /orders; суммы переводятся из центов в reais"""
    return {
        "customerName": customer.name,
        "address": customer.address,
        "street": customer.street,
        "number": customer.number,
        "complement": customer.complement,
        "deliveryType": customer.delivery_type,
        "store": store,
        "items": [
            {
                "productId": ln.product.id,
                "name": ln.product.name,
                "price": from_cents(ln.product.price),
                "quantity": ln.quantity,
                "imageUrl": ln.product.image_url,
            }
            for ln in cart.lines
        ],
        "total": from_cents(subtotal(cart) + fee),
        "deliveryFee": from_cents(fee),
        "phoneNumber": customer.phone,
        "paymentMethod": PaymentMethod(payment_method).value,
    }


def _status_field(data: Any) -> OrderStatus:
    if not isinstance(data, dict):
        return OrderStatus.UNKNOWN
    return normalize_status(data.get("status", data.get("Status")))


class BackendClient:
    """
    Тонкая обёртка над REST-контрактом бэкенда.
    Любая сетевая ошибка, HTTP-ошибка или битый JSON -> NetworkError.
    """

    def __init__(
        self,
        base_url: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url, timeout=self.timeout, transport=self.transport
            ) as client:
                response = await client.request(method, path, **kwargs)
                response.raise_for_status()
                if not response.content:
                    return None
                return response.json()
        except httpx.HTTPStatusError as e:
            logger.warning("%s %s -> HTTP %s", method, path, e.response.status_code)
            raise NetworkError("Falha na comunicação com o servidor.", e.response.status_code) from e
        except httpx.HTTPError as e:
            logger.warning("%s %s -> %s", method, path, e)
            raise NetworkError("Falha na comunicação com o servidor.") from e
        except ValueError as e:
            logger.warning("%s %s -> некорректный JSON", method, path)
            raise NetworkError("Resposta inválida do servidor.") from e

    # ============ Каталог и настройки ============

    async def list_products(self, store: str, page: int = 1, page_size: int = 200) -> Tuple[Product, ...]:
        data = await self._request(
            "GET", "/products/list", params={"store": store, "page": page, "pageSize": page_size}
        )
        if not isinstance(data, list):
            return ()
        return tuple(product_from_dict(p, price_in_cents=False) for p in data)

    async def get_settings(self) -> Tuple[float, int]:
        """(deliveryRate в reais/км, minDelivery в центах)"""
        data = await self._request("GET", "/settings") or {}
        return float(data.get("deliveryRate") or 0), to_cents(data.get("minDelivery") or 0)

    async def store_status(self, store: Optional[str] = None) -> StoreStatus:
        path = f"/status/isOpen/{store}" if store else "/status/isOpen"
        try:
            data = await self._request("GET", path) or {}
        except NetworkError:
            # без ответа считаем магазин открытым, как витрина
            return StoreStatus(is_open=True)
        return StoreStatus(
            is_open=bool(data.get("isOpen", True)),
            message=data.get("message"),
            next_opening=data.get("nextOpening"),
        )

    # ============ Заказы ============

    async def create_order(self, payload: Dict[str, Any]) -> int:
        data = await self._request("POST", "/orders", json=payload)
        order_id = data.get("id") if isinstance(data, dict) else None
        if not isinstance(order_id, int) or isinstance(order_id, bool):
            raise NetworkError("Pedido criado, mas ID inválido retornado.")
        return order_id

    async def cancel_order(self, order_id: int) -> None:
        await self._request("PATCH", f"/orders/{order_id}/cancel")

    async def order_status(self, order_id: int) -> OrderStatus:
        return _status_field(await self._request("GET", f"/orders/{order_id}"))

    async def provider_status(self, order_id: int) -> OrderStatus:
        return _status_field(await self._request("GET", f"/payments/provider/status/{order_id}"))

    async def list_orders(self) -> List[dict]:
        data = await self._request("GET", "/orders")
        return data if isinstance(data, list) else []

    async def find_order(self, order_id: int) -> Maybe[OrderSummary]:
        """Поиск заказа по номеру (страница "Meus Pedidos")"""
        found = next((o for o in await self.list_orders() if o.get("id") == order_id), None)
        if found is None:
            return Maybe.nothing()
        return Maybe.some(
            OrderSummary(
                id=int(found["id"]),
                store=str(found.get("store") or ""),
                status=_status_field(found),
                total=to_cents(found.get("total") or 0),
                phone=str(found.get("phoneNumber") or ""),
                name=found.get("name") or found.get("customerName") or "Cliente",
            )
        )

    # ============ Оплата ============

    def payment_redirect_url(self, order_id: int) -> str:
        """Точка входа полностраничного редиректа к провайдеру"""
        return f"{self.base_url}/payments/provider/go?{urlencode({'orderId': order_id})}"
