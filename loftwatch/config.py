"""Logging configuration for Loftwatch."""

import logging
import sys
from logging.handlers import RotatingFileHandler
from typing import List, Optional

from pythonjsonlogger import jsonlogger

from loftwatch.core.settings import Settings, settings as default_settings

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"
LOG_FILE_MAX_BYTES = 10 * 1024 * 1024
LOG_FILE_BACKUPS = 5

QUIET_LOGGERS = ("uvicorn.access", "httpx", "httpcore")

# Handlers installed by the last setup_logging call, replaced on the next one.
_installed_handlers: List[logging.Handler] = []


def _build_handlers(settings: Settings, level: int) -> List[logging.Handler]:
    formatter = jsonlogger.JsonFormatter(
        LOG_FORMAT,
        rename_fields={"asctime": "@timestamp", "levelname": "severity"},
    )

    settings.log_dir.mkdir(parents=True, exist_ok=True)
    handlers: List[logging.Handler] = [
        logging.StreamHandler(sys.stdout),
        RotatingFileHandler(
            settings.log_dir / "loftwatch.log",
            maxBytes=LOG_FILE_MAX_BYTES,
            backupCount=LOG_FILE_BACKUPS,
        ),
    ]
    for handler in handlers:
        handler.setFormatter(formatter)
        handler.setLevel(level)
    return handlers


def setup_logging(settings: Optional[Settings] = None) -> None:
    """Send JSON logs to stdout and a rotating file under ``log_dir``.

    Calling it again swaps out the handlers from the previous call instead of
    stacking a second set on the root logger.
    """
    settings = settings or default_settings
    level = getattr(logging, settings.log_level)

    root_logger = logging.getLogger()
    for handler in _installed_handlers:
        root_logger.removeHandler(handler)
        handler.close()
    _installed_handlers.clear()

    _installed_handlers.extend(_build_handlers(settings, level))
    for handler in _installed_handlers:
        root_logger.addHandler(handler)
    root_logger.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger(__name__).info(
        "Logging configured",
        extra={
            "log_level": settings.log_level,
            "app_name": settings.app_name,
            "app_version": settings.app_version,
            "environment": settings.environment,
        },
    )
