import sys
import os

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
import httpx
import pytest

from storefront.api import BackendClient, build_order_payload
from storefront.domain import OrderStatus, PaymentMethod, normalize_status
from storefront.errors import NetworkError
from conftest import BASE_URL, make_cart, make_customer


def test_normalize_status_aliases():
    assert normalize_status("pago") is OrderStatus.PAID
    assert normalize_status(" APPROVED ") is OrderStatus.PAID
    assert normalize_status("cancelado") is OrderStatus.CANCELLED
    assert normalize_status("pendente") is OrderStatus.PENDING
    assert normalize_status(None) is OrderStatus.UNKNOWN
    assert normalize_status("refunded") is OrderStatus.UNKNOWN


def test_build_order_payload_in_reais():
    payload = build_order_payload(make_cart(), 700, "efapi", make_customer(), PaymentMethod.CASH)
    assert payload["total"] == 14.98
    assert payload["deliveryFee"] == 7.0
    assert payload["items"][0]["price"] == 3.99
    assert payload["paymentMethod"] == "cash"
    assert payload["address"] == "Efapi"


@pytest.mark.asyncio
async def test_create_and_status(api, backend):
    order_id = await api.create_order({"store": "efapi"})
    assert order_id == 501
    assert await api.order_status(order_id) is OrderStatus.PENDING

    await api.cancel_order(order_id)
    assert await api.order_status(order_id) is OrderStatus.CANCELLED
    assert backend.calls("PATCH") == [("PATCH", "/orders/501/cancel")]


@pytest.mark.asyncio
async def test_http_error_becomes_network_error(api, backend):
    backend.failing.add(("POST", "/orders"))
    with pytest.raises(NetworkError) as info:
        await api.create_order({})
    assert info.value.status_code == 500


@pytest.mark.asyncio
async def test_missing_id_is_network_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json={"ok": True}))
    client = BackendClient(BASE_URL, transport=transport)
    with pytest.raises(NetworkError):
        await client.create_order({})


@pytest.mark.asyncio
async def test_settings_and_catalog(api, backend):
    backend.products = [{"id": 3, "name": "Açaí 500ml", "price": 18.9, "stock": 4}]
    rate, minimum = await api.get_settings()
    assert rate == 1.5
    assert minimum == 700

    products = await api.list_products("efapi")
    assert products[0].price == 1890
    assert products[0].stock == 4


@pytest.mark.asyncio
async def test_store_status(api, backend):
    status = await api.store_status("efapi")
    assert not status.is_open
    assert status.next_opening == "14:00"

    backend.failing.add(("GET", "/status/isOpen"))
    assert (await api.store_status()).is_open


@pytest.mark.asyncio
async def test_find_order(api, backend):
    await api.create_order({"store": "passo", "total": 12.5, "phoneNumber": "5549991234567"})
    found = await api.find_order(501)
    assert found.is_some()
    assert found.value.store == "passo"
    assert found.value.total == 1250
    assert (await api.find_order(999)).is_none()


def test_payment_redirect_url(api):
    assert api.payment_redirect_url(42) == f"{BASE_URL}/payments/provider/go?orderId=42"
