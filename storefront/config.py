from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ROOT_DIR = Path(__file__).resolve().parents[1]
load_dotenv(dotenv_path=ROOT_DIR / ".env")


def _get_env(*keys: str, default: str | None = None) -> str | None:
    for k in keys:
        v = os.getenv(k)
        if v is not None and str(v).strip() != "":
            return v.strip()
    return default


def _get_int(*keys: str, default: int) -> int:
    v = _get_env(*keys)
    return default if v is None else int(v)


def _get_float(*keys: str, default: float) -> float:
    v = _get_env(*keys)
    return default if v is None else float(v)


@dataclass(frozen=True)
class Settings:
    api_url: str
    db_path: str
    stores_path: str
    poll_interval: float  # секунды между опросами статуса
    poll_max_attempts: int
    ack_ttl_hours: float
    request_timeout: float
    currency_symbol: str
    log_level: str
    log_format: str

    @property
    def ack_ttl_seconds(self) -> float:
        return self.ack_ttl_hours * 3600


settings = Settings(
    api_url=(_get_env("STOREFRONT_API_URL", "API_URL", default="http://localhost:8080/api") or "").rstrip("/"),
    db_path=_get_env("STOREFRONT_DB_PATH", "DB_PATH", default=str(ROOT_DIR / "data" / "storefront.db")) or "",
    stores_path=_get_env("STORES_PATH", default=str(ROOT_DIR / "data" / "stores.json")) or "",
    poll_interval=_get_float("POLL_INTERVAL_SECONDS", default=5.0),
    poll_max_attempts=_get_int("POLL_MAX_ATTEMPTS", default=120),  # 10 минут при 5 с
    ack_ttl_hours=_get_float("ACK_TTL_HOURS", default=24.0),
    request_timeout=_get_float("REQUEST_TIMEOUT_SECONDS", default=10.0),
    currency_symbol=_get_env("CURRENCY_SYMBOL", default="R$") or "R$",
    log_level=_get_env("LOG_LEVEL", default="INFO") or "INFO",
    log_format=_get_env(
        "LOG_FORMAT", default="%(asctime)s | %(levelname)s | %(name)s | %(message)s"
    )
    or "",
)

if settings.poll_interval <= 0:
    raise RuntimeError("POLL_INTERVAL_SECONDS must be > 0")
if settings.poll_max_attempts <= 0:
    raise RuntimeError("POLL_MAX_ATTEMPTS must be > 0")
