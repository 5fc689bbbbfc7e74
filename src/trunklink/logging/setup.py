"""
Structlog configuration over the standard library `logging` module.

Events are rendered as one JSON object per line in production and as
aligned console output when `log_format` is `text`.
"""

import logging
import sys
from typing import Optional

import structlog
from structlog.types import EventDict, Processor, WrappedLogger

from trunklink.config import Settings, get_settings

# kept at WARNING unless the service itself runs at DEBUG
NOISY_LOGGERS = ("httpx", "httpcore", "urllib3", "google.auth", "uvicorn.access")


class ServiceContext:
    """Stamps service identity onto every event without overriding bound values."""

    def __init__(self, service: str, environment: str):
        self.service = service
        self.environment = environment

    def __call__(
        self, logger: WrappedLogger, method_name: str, event_dict: EventDict
    ) -> EventDict:
        event_dict.setdefault("service", self.service)
        event_dict.setdefault("environment", self.environment)
        return event_dict


def build_processors(settings: Settings) -> list[Processor]:
    """Processor chain ending in the renderer selected by `log_format`."""
    renderer: Processor
    if settings.log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    return [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        ServiceContext(settings.service_name, settings.environment),
        renderer,
    ]


def setup_logging(settings: Optional[Settings] = None) -> structlog.stdlib.BoundLogger:
    """
    Configure stdlib logging and structlog for the process.

    Args:
        settings: Optional settings object (process settings if not provided)

    Returns:
        Logger bound to the service name
    """
    settings = settings or get_settings()

    level = logging.getLevelName(settings.log_level.upper())
    if not isinstance(level, int):
        level = logging.INFO

    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level, force=True)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    structlog.configure(
        processors=build_processors(settings),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    logger = structlog.get_logger(settings.service_name)
    logger.debug("Logging configured", level=logging.getLevelName(level), format=settings.log_format)
    return logger
