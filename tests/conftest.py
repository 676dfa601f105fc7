import sys
import os

sys.path.append(os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))
import json
import re
import pytest
import httpx

from storefront.api import BackendClient
from storefront.domain import Cart, CartLine, CustomerInfo, Product
from storefront.ledger import AckLedger
from storefront.service import CartStore, OrderSubmissionService
from storefront.storage import MemoryStore, StorefrontState

BASE_URL = "http://backend.test/api"


class FakeBackend:
    """Бэкенд в памяти поверх httpx.MockTransport; записывает все запросы"""

    def __init__(self, first_id=501):
        self.next_id = first_id
        self.orders = {}  # id -> статус заказа на бэкенде
        self.provider = {}  # id -> статус у платёжного провайдера
        self.payloads = {}
        self.requests = []
        self.failing = set()  # (method, path) -> HTTP 500
        self.settings = {"deliveryRate": 1.5, "minDelivery": 7.0}
        self.products = []

    def calls(self, method=None):
        return [(m, p) for m, p in self.requests if method is None or m == method]

    def handle(self, request: httpx.Request) -> httpx.Response:
        method = request.method
        path = request.url.path[len("/api"):]
        self.requests.append((method, path))

        if (method, path) in self.failing:
            return httpx.Response(500, json={"error": "boom"})

        if method == "POST" and path == "/orders":
            order_id = self.next_id
            self.next_id += 1
            self.orders[order_id] = "pendente"
            self.payloads[order_id] = json.loads(request.content)
            return httpx.Response(201, json={"id": order_id})

        m = re.fullmatch(r"/orders/(\d+)/cancel", path)
        if method == "PATCH" and m:
            self.orders[int(m.group(1))] = "cancelado"
            return httpx.Response(204)

        m = re.fullmatch(r"/orders/(\d+)", path)
        if method == "GET" and m:
            order_id = int(m.group(1))
            if order_id not in self.orders:
                return httpx.Response(404, json={"error": "not found"})
            return httpx.Response(200, json={"id": order_id, "status": self.orders[order_id]})

        m = re.fullmatch(r"/payments/provider/status/(\d+)", path)
        if method == "GET" and m:
            return httpx.Response(200, json={"status": self.provider.get(int(m.group(1)), "pending")})

        if method == "GET" and path == "/orders":
            body = [
                {
                    "id": oid,
                    "status": status,
                    "store": (self.payloads.get(oid) or {}).get("store", "efapi"),
                    "total": (self.payloads.get(oid) or {}).get("total", 0),
                    "phoneNumber": (self.payloads.get(oid) or {}).get("phoneNumber", ""),
                    "customerName": (self.payloads.get(oid) or {}).get("customerName"),
                }
                for oid, status in self.orders.items()
            ]
            return httpx.Response(200, json=body)

        if method == "GET" and path == "/settings":
            return httpx.Response(200, json=self.settings)

        if method == "GET" and path == "/products/list":
            return httpx.Response(200, json=self.products)

        if method == "GET" and path.startswith("/status/isOpen"):
            return httpx.Response(200, json={"isOpen": False, "message": "Fechado", "nextOpening": "14:00"})

        return httpx.Response(404)


def make_product(pid=1, price=399, stock=10, name=None):
    return Product(id=pid, name=name or f"Picolé {pid}", price=price, stock=stock)


def make_cart(store="efapi", lines=((1, 399, 2),)):
    return Cart(store=store, lines=tuple(CartLine(make_product(pid, price), qty) for pid, price, qty in lines))


def make_customer(**overrides):
    data = dict(
        name="Ana Souza",
        neighborhood="Efapi",
        street="Rua Guaporé",
        number="120",
        phone="(49) 99123-4567",
    )
    data.update(overrides)
    return CustomerInfo(**data)


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def api(backend):
    return BackendClient(BASE_URL, transport=httpx.MockTransport(backend.handle))


@pytest.fixture
def kv():
    return MemoryStore()


@pytest.fixture
def state(kv):
    return StorefrontState(kv)


@pytest.fixture
def clock():
    class Clock:
        now = 1_700_000_000.0

        def __call__(self):
            return self.now

    return Clock()


@pytest.fixture
def ledger(kv, clock):
    return AckLedger(kv, clock=clock)


@pytest.fixture
def cart_store(state):
    return CartStore(state)


@pytest.fixture
def submission(api, state):
    return OrderSubmissionService(api, state)
