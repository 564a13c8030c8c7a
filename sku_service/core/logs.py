import logging
import logging.config

from sku_service.core.telemetry import current_trace_id


class CorrelationIdFilter(logging.Filter):
    """Добавляет trace id текущего спана в каждую запись лога"""

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = current_trace_id() or "-"
        return True


def logging_config(level: str = "INFO") -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "correlation_id": {"()": CorrelationIdFilter},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
                "filters": ["correlation_id"],
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            app: {
                "handlers": ["console"],
                "level": level,
                "propagate": False,
            } for app in ("sku_service", "uvicorn", "alembic")
        },
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - [%(correlation_id)s] %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            }
        },
    }


def configure_logging(level: str = "INFO") -> None:
    """Настройка логирования приложения"""
    logging.config.dictConfig(logging_config(level.upper()))
