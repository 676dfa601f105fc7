from dataclasses import dataclass
from enum import Enum
from typing import Optional, Tuple


@dataclass(frozen=True)
class Product:
    id: int
    name: str
    price: int  # центы
    stock: int
    description: str = ""
    image_url: str = ""
    category_name: str = ""
    subcategory_name: Optional[str] = None


@dataclass(frozen=True)
class CartLine:
    product: Product
    quantity: int


@dataclass(frozen=True)
class Cart:
    store: Optional[str] = None
    lines: Tuple[CartLine, ...] = ()


@dataclass(frozen=True)
class Store:
    name: str
    lat: float
    lng: float


@dataclass(frozen=True)
class Position:
    lat: float
    lng: float


@dataclass(frozen=True)
class DeliveryQuote:
    fee: int  # центы, без минимального порога


@dataclass(frozen=True)
class CustomerInfo:
    name: str
    neighborhood: str
    street: str
    number: str
    phone: str
    complement: str = ""
    custom_neighborhood: str = ""
    delivery_type: str = "entregar"

    @property
    def address(self) -> str:
        """Район для заказа: свободный ввод, если выбран 'Outro'"""
        if self.neighborhood == OTHER_NEIGHBORHOOD:
            return self.custom_neighborhood.strip()
        return self.neighborhood.strip()


OTHER_NEIGHBORHOOD = "Outro"


@dataclass(frozen=True)
class PendingOrderHandle:
    order_id: int
    signature: str


@dataclass(frozen=True)
class AckRecord:
    order_id: int
    seen_at: float  # epoch, секунды


@dataclass(frozen=True)
class StoreStatus:
    is_open: bool
    message: Optional[str] = None
    next_opening: Optional[str] = None


class PaymentMethod(str, Enum):
    ONLINE = "online"
    CASH = "cash"


class OrderStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    CANCELLED = "cancelled"
    UNKNOWN = "unknown"


_STATUS_ALIASES = {
    "pago": OrderStatus.PAID,
    "paid": OrderStatus.PAID,
    "approved": OrderStatus.PAID,
    "pendente": OrderStatus.PENDING,
    "pending": OrderStatus.PENDING,
    "cancelado": OrderStatus.CANCELLED,
    "cancelled": OrderStatus.CANCELLED,
    "canceled": OrderStatus.CANCELLED,
}


def normalize_status(raw: Optional[str]) -> OrderStatus:
    """
    Единственная точка перевода строк бэкенда/провайдера в OrderStatus.
    Всё неизвестное -> UNKNOWN (не считается оплаченным).
    """
    return _STATUS_ALIASES.get(str(raw or "").strip().lower(), OrderStatus.UNKNOWN)


@dataclass(frozen=True)
class OrderSummary:
    id: int
    store: str
    status: OrderStatus
    total: int  # центы
    phone: str
    name: str = "Cliente"
