from decimal import Decimal, ROUND_HALF_UP
from functools import reduce
from typing import Optional, Union

from .domain import Cart, CartLine, Product
from .errors import StockExhausted
from .ftypes import Either


# ============ Деньги (центы) ============


def to_cents(amount: Union[int, float, str, Decimal, None]) -> int:
    """3.99 -> 399, округление half-up (как toFixed(2) на витрине)"""
    if amount is None:
        return 0
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> float:
    """Обратно в денежное значение для JSON бэкенда"""
    return float(Decimal(cents) / 100)


def format_price(cents: int, symbol: str = "R$") -> str:
    return f"{symbol} {cents / 100:.2f}"


# ============ Cart operations (чистые функции) ============


def quantity_in_cart(cart: Cart, product_id: int) -> int:
    return next((ln.quantity for ln in cart.lines if ln.product.id == product_id), 0)


def add_to_cart(cart: Cart, product: Product, qty: int) -> Either[StockExhausted, Cart]:
    """
    Добавляет не больше остатка на складе.
    Left(StockExhausted) если остаток уже весь в корзине (корзина не меняется).
    """
    if qty <= 0:
        return Either.right(cart)

    remaining = product.stock - quantity_in_cart(cart, product.id)
    if remaining <= 0:
        return Either.left(StockExhausted(product.id))

    to_add = min(qty, remaining)

    if any(ln.product.id == product.id for ln in cart.lines):
        lines = tuple(
            CartLine(ln.product, ln.quantity + to_add) if ln.product.id == product.id else ln
            for ln in cart.lines
        )
    else:
        lines = cart.lines + (CartLine(product, to_add),)

    return Either.right(Cart(store=cart.store, lines=lines))


def update_quantity(cart: Cart, product_id: int, delta: int) -> Cart:
    """Сдвигает количество с ограничением [0, stock]; ноль удаляет строку"""

    def clamp(line: CartLine) -> Optional[CartLine]:
        if line.product.id != product_id:
            return line
        nxt = max(0, min(line.quantity + delta, line.product.stock))
        return CartLine(line.product, nxt) if nxt > 0 else None

    lines = tuple(filter(None, map(clamp, cart.lines)))
    return Cart(store=cart.store, lines=lines)


def remove_from_cart(cart: Cart, product_id: int) -> Cart:
    lines = tuple(filter(lambda ln: ln.product.id != product_id, cart.lines))
    return Cart(store=cart.store, lines=lines)


def clear_cart(cart: Cart) -> Cart:
    return Cart(store=cart.store, lines=())


def subtotal(cart: Cart) -> int:
    """Сумма price * quantity через reduce (центы)"""
    return reduce(lambda acc, ln: acc + ln.product.price * ln.quantity, cart.lines, 0)


# ============ Сериализация для хранилища ============


def product_to_dict(p: Product) -> dict:
    return {
        "id": p.id,
        "name": p.name,
        "description": p.description,
        "price": p.price,
        "imageUrl": p.image_url,
        "categoryName": p.category_name,
        "subcategoryName": p.subcategory_name,
        "stock": p.stock,
    }


def product_from_dict(d: dict, price_in_cents: bool = True) -> Product:
    """Товар из JSON; каталог бэкенда отдаёт цену в reais (price_in_cents=False)"""
    price = d.get("price", 0)
    return Product(
        id=int(d["id"]),
        name=str(d.get("name", "")),
        description=str(d.get("description") or ""),
        price=int(price) if price_in_cents else to_cents(price),
        image_url=str(d.get("imageUrl") or ""),
        category_name=str(d.get("categoryName") or ""),
        subcategory_name=d.get("subcategoryName"),
        stock=int(d.get("stock", 0)),
    )


def cart_to_dict(cart: Cart) -> dict:
    return {
        "store": cart.store,
        "lines": [{"product": product_to_dict(ln.product), "quantity": ln.quantity} for ln in cart.lines],
    }


def cart_from_dict(d: dict) -> Cart:
    lines = tuple(
        CartLine(product_from_dict(item["product"]), int(item["quantity"]))
        for item in d.get("lines", [])
        if int(item.get("quantity", 0)) > 0
    )
    return Cart(store=d.get("store"), lines=lines)
