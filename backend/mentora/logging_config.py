import logging
import os
from logging.config import dictConfig
from typing import Optional

DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"
TELEMETRY_LOG_FORMAT = "%(asctime)s TELEMETRY %(message)s"


def _flag(name: str) -> bool:
    return os.getenv(name, "0").strip().lower() in ("1", "true", "yes")


def configure_logging(level: Optional[str] = None) -> None:
    """Set up process logging for an application embedding the engine.

    ``level`` overrides ``MENTORA_LOG_LEVEL``. Telemetry lines get their own
    handler and can be muted with ``MENTORA_TELEMETRY_LOG=0``.
    """
    root_level = (level or os.getenv("MENTORA_LOG_LEVEL", "INFO")).upper()
    telemetry_level = "INFO" if os.getenv("MENTORA_TELEMETRY_LOG", "1") != "0" else "WARNING"

    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {"format": DEFAULT_LOG_FORMAT},
                "telemetry": {"format": TELEMETRY_LOG_FORMAT},
            },
            "handlers": {
                "default": {"class": "logging.StreamHandler", "formatter": "default"},
                "telemetry": {"class": "logging.StreamHandler", "formatter": "telemetry"},
            },
            "loggers": {
                "mentora.telemetry": {
                    "handlers": ["telemetry"],
                    "level": telemetry_level,
                    "propagate": False,
                },
            },
            "root": {"handlers": ["default"], "level": root_level},
        }
    )

    if _flag("MENTORA_DEBUG_SQL"):
        logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO)
    if _flag("MENTORA_DEBUG_HTTP"):
        logging.getLogger("httpx").setLevel(logging.DEBUG)
