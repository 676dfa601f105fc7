import json
import logging
import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Awaitable, Callable, Mapping, Optional, Tuple

from .domain import DeliveryQuote, Position, Store
from .errors import PermissionDenied, PositionUnavailable, UnknownStore
from .ftypes import Either, Maybe

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0


def load_stores(path: str) -> Tuple[Store, ...]:
    """Загружает координаты магазинов из JSON"""
    with open(path, "r", encoding="utf-8") as f:
        data = json.load(f)
    return tuple(map(lambda s: Store(name=s["name"], lat=float(s["lat"]), lng=float(s["lng"])), data.get("stores", [])))


# ============ Расстояние и тариф (чистые функции) ============


def haversine_km(a: Position, b: Position) -> float:
    """Расстояние по большому кругу между двумя точками, км"""
    d_lat = math.radians(b.lat - a.lat)
    d_lng = math.radians(b.lng - a.lng)
    h = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(a.lat)) * math.cos(math.radians(b.lat)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def fee_for_distance(distance_km: float, rate: float) -> int:
    """distance * rate, округлено до 2 знаков -> центы"""
    amount = Decimal(str(distance_km)) * Decimal(str(rate)) * 100
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def effective_fee(computed_fee: int, minimum_fee: int) -> int:
    """Порог минимальной доставки применяется в момент использования"""
    return max(computed_fee, minimum_fee)


def nearest_store(position: Position, stores: Tuple[Store, ...]) -> Maybe[Store]:
    if not stores:
        return Maybe.nothing()
    return Maybe.some(min(stores, key=lambda s: haversine_km(position, Position(s.lat, s.lng))))


# ============ Калькулятор с геолокацией ============


Locator = Callable[[], Awaitable[Position]]


class DeliveryFeeCalculator:
    """
    Держит текущую котировку доставки.

    Геолокация - единственный медленный шаг. Каждый запуск получает номер
    поколения; ответ устаревшего поколения (пользователь сменил магазин)
    отбрасывается и не перезаписывает более новую котировку.
    """

    def __init__(self, locate: Locator, stores: Mapping[str, Store]):
        self.locate = locate
        self.stores = dict(stores)
        self.quote: Optional[DeliveryQuote] = None
        self._generation = 0

    @property
    def fee(self) -> int:
        return self.quote.fee if self.quote else 0

    def invalidate(self) -> None:
        """Смена магазина: текущий запрос геолокации становится устаревшим"""
        self._generation += 1
        self.quote = None

    async def recalculate(self, rate: float, store: Optional[str]) -> Either[Exception, int]:
        self._generation += 1
        generation = self._generation

        if rate <= 0 or not store:
            self.quote = DeliveryQuote(fee=0)
            return Either.right(0)

        target = self.stores.get(store)
        if target is None:
            return Either.left(UnknownStore(store))

        try:
            pos = await self.locate()
        except (PositionUnavailable, PermissionDenied) as e:
            logger.warning("Геолокация недоступна: %s", e.message)
            return Either.left(e)

        if generation != self._generation:
            logger.debug("Устаревший ответ геолокации для %s отброшен", store)
            return Either.right(self.fee)

        distance = haversine_km(pos, Position(target.lat, target.lng))
        self.quote = DeliveryQuote(fee=fee_for_distance(distance, rate))
        logger.info("Доставка до %s: %.2f км, %d центов", store, distance, self.quote.fee)
        return Either.right(self.quote.fee)
