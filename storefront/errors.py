"""Таксономия ошибок движка заказов и оплаты"""

from typing import Optional


class StorefrontError(Exception):
    """Базовая ошибка: message - текст для пользовательского уведомления"""

    level = "error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(StorefrontError):
    """Не заполнено / неверно поле оформления. Сообщается по одному полю"""

    level = "warning"

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field


class StockExhausted(StorefrontError):
    level = "warning"

    def __init__(self, product_id: int, message: str = "Estoque máximo já está no seu carrinho."):
        super().__init__(message)
        self.product_id = product_id


class NetworkError(StorefrontError):
    """Сбой запроса к бэкенду (создание, отмена, статус)"""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class StaleOrderConflict(StorefrontError):
    """Неоплаченный заказ больше не совпадает с корзиной - отменяется и пересоздаётся"""

    level = "info"

    def __init__(self, order_id: int):
        super().__init__(f"Pedido #{order_id} substituído por um novo.")
        self.order_id = order_id


class AlreadyPaidConflict(StorefrontError):
    """Предыдущий заказ уже оплачен - автоматическая отмена запрещена"""

    level = "info"

    def __init__(self, order_id: int):
        super().__init__(f"O pedido #{order_id} já foi pago.")
        self.order_id = order_id


class PositionUnavailable(StorefrontError):
    level = "warning"

    def __init__(self, message: str = "Geolocalização indisponível"):
        super().__init__(message)


class PermissionDenied(StorefrontError):
    level = "warning"

    def __init__(self, message: str = "Ative sua localização para calcular a taxa de entrega."):
        super().__init__(message)


class UnknownStore(StorefrontError):
    level = "warning"

    def __init__(self, store: str):
        super().__init__(f"Unidade desconhecida: {store}")
        self.store = store


class InvalidTransition(StorefrontError):
    """Недопустимый переход конечного автомата оплаты (ошибка программы)"""

    def __init__(self, current: str, target: str):
        super().__init__(f"{current} -> {target}")
        self.current = current
        self.target = target
