import logging
import sys
from typing import Optional

from storefront.config import settings


def setup_logging(level: Optional[str] = None, format_string: Optional[str] = None) -> None:
    log_level = level or settings.log_level
    log_format = format_string or settings.log_format

    numeric_level = getattr(logging, log_level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    stream_handler = logging.StreamHandler(sys.stdout)
    stream_handler.setFormatter(logging.Formatter(log_format))
    root_logger.addHandler(stream_handler)

    # запросы опроса статуса идут каждые несколько секунд
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

    logging.getLogger(__name__).info("Логирование настроено на уровень %s", log_level)
