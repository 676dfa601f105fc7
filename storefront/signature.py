import base64
import json
from typing import Optional

from .domain import Cart, PaymentMethod


def signature_of(cart: Cart, fee: int, store: Optional[str], payment_method: PaymentMethod) -> str:
    """
    Отпечаток "того заказа, который пользователь собирается оформить".
    Только для сравнения на равенство, обратно не разбирается.

    Порядок добавления товаров не влияет (сортировка по id),
    суммы уже в целых центах - шум float не попадает в отпечаток.
    """
    payload = {
        "store": store or "",
        "method": PaymentMethod(payment_method).value,
        "fee": int(fee),
        "items": sorted(
            ({"id": ln.product.id, "q": ln.quantity, "p": ln.product.price} for ln in cart.lines),
            key=lambda i: i["id"],
        ),
    }
    raw = json.dumps(payload, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    return base64.urlsafe_b64encode(raw.encode("utf-8")).decode("ascii")
