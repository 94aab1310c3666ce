"""
Logging Configuration
====================

structlog on top of the standard library. Development and test runs get a
console renderer; production gets JSON lines on stdout plus a rotating file
of errors below ``<storage_path>/logs``.
"""

import logging
import logging.config
import sys
from pathlib import Path
from typing import Dict, Any, List, TYPE_CHECKING
import structlog
from structlog.types import Processor

from .settings import get_settings

if TYPE_CHECKING:
    from .settings import Settings

# Third-party loggers that are noisy below WARNING
QUIET_LOGGERS = ("aiohttp", "playwright", "PIL")


def log_directory(settings: "Settings") -> Path:
    return Path(settings.storage_path) / "logs"


def build_processors(settings: "Settings") -> List[Processor]:
    """structlog processor chain for the configured environment."""
    processors: List[Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if settings.environment == "production":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=settings.environment != "testing"))
    return processors


def setup_logging() -> None:
    """Setup application logging configuration."""
    settings = get_settings()

    structlog.configure(
        processors=build_processors(settings),
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.config.dictConfig(get_logging_config(settings))


def get_logging_config(settings: "Settings") -> Dict[str, Any]:
    """
    Standard library ``dictConfig`` for the given settings.

    The error file handler is only attached in production; tests and local
    runs log to the console alone.
    """
    production = settings.environment == "production"

    handlers: Dict[str, Any] = {
        "console": {
            "class": "logging.StreamHandler",
            "level": settings.log_level,
            "formatter": "json" if production else "plain",
            "stream": sys.stdout,
        },
    }
    if production:
        handlers["error_file"] = {
            "class": "logging.handlers.RotatingFileHandler",
            "level": "ERROR",
            "formatter": "json",
            "filename": str(log_directory(settings) / "screenshot-api-errors.log"),
            "maxBytes": 10 * 1024 * 1024,
            "backupCount": 5,
            "delay": True,
        }

    loggers: Dict[str, Any] = {
        "": {"level": settings.log_level, "handlers": list(handlers), "propagate": False},
        "uvicorn": {"level": "INFO", "handlers": ["console"], "propagate": False},
        "uvicorn.access": {
            "level": "INFO" if settings.debug else "WARNING",
            "handlers": ["console"],
            "propagate": False,
        },
    }
    for name in QUIET_LOGGERS:
        loggers[name] = {"level": "WARNING", "handlers": ["console"], "propagate": False}

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            # structlog renders the message; the stdlib formatter passes it through
            "plain": {"format": "%(message)s"},
            "json": {
                "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                "format": "%(asctime)s %(name)s %(levelname)s %(message)s",
            },
        },
        "handlers": handlers,
        "loggers": loggers,
    }


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def ensure_log_directories() -> None:
    """Create the log directory used by file handlers."""
    log_directory(get_settings()).mkdir(parents=True, exist_ok=True)


# Initialize logging on import
ensure_log_directories()
setup_logging()
