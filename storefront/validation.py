import re
from typing import Callable, Optional, Tuple

from .domain import OTHER_NEIGHBORHOOD, Cart, CustomerInfo
from .errors import ValidationError
from .ftypes import Either

PHONE_COUNTRY_PREFIX = "55"
PHONE_DIGITS = 13  # 55 + DDD + 9 цифр


def normalize_phone(raw: str) -> str:
    """Оставляет только цифры, добавляет код страны, обрезает до 13 цифр"""
    digits = re.sub(r"\D", "", raw or "")
    if not digits:
        return ""
    if not digits.startswith(PHONE_COUNTRY_PREFIX):
        digits = PHONE_COUNTRY_PREFIX + digits
    return digits[:PHONE_DIGITS]


# ============ Проверки (замыкания) ============

Check = Callable[[None], Either[ValidationError, None]]


def require(ok: bool, field: str, message: str) -> Check:
    return lambda _: Either.right(None) if ok else Either.left(ValidationError(field, message))


def validate_checkout(
    cart: Cart,
    store: Optional[str],
    customer: CustomerInfo,
    fee: Optional[int],
) -> Either[ValidationError, CustomerInfo]:
    """
    Проверяет поля оформления по порядку и останавливается на первой ошибке:
    интерфейс показывает одно предупреждение за раз.
    Right(customer) с нормализованным телефоном при успехе.
    """
    phone = normalize_phone(customer.phone)

    checks: Tuple[Check, ...] = (
        require(bool(cart.lines), "cart", "Seu carrinho está vazio!"),
        require(bool(store), "store", "Selecione a unidade para continuar."),
        require(bool(customer.name.strip()), "name", "Informe seu nome completo."),
        require(bool(customer.neighborhood.strip()), "neighborhood", "Escolha seu bairro."),
        require(
            customer.neighborhood != OTHER_NEIGHBORHOOD or bool(customer.custom_neighborhood.strip()),
            "custom_neighborhood",
            "Digite seu bairro no campo 'Outro'.",
        ),
        require(bool(customer.street.strip()), "street", "Informe a rua."),
        require(bool(customer.number.strip()), "number", "Informe o número."),
        require(len(phone) == PHONE_DIGITS, "phone", "Informe seu WhatsApp com DDD (ex: 49991234567)."),
        require(fee is not None, "delivery_fee", "Ative sua localização para calcular a taxa de entrega."),
    )

    result: Either[ValidationError, None] = Either.right(None)
    for check in checks:
        result = result.bind(check)

    return result.map(
        lambda _: CustomerInfo(
            name=customer.name.strip(),
            neighborhood=customer.neighborhood.strip(),
            custom_neighborhood=customer.custom_neighborhood.strip(),
            street=customer.street.strip(),
            number=customer.number.strip(),
            complement=customer.complement.strip(),
            phone=phone,
            delivery_type=customer.delivery_type,
        )
    )
