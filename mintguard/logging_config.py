"""
Structured logging setup shared by the API and the maintenance scripts.
"""

import logging
import sys

import structlog

from mintguard import config


def configure_logging(console: bool = False, level: str = config.LOG_LEVEL) -> None:
    """Configure structlog on top of the stdlib logging module.

    The API emits JSON lines; scripts pass ``console=True`` for the
    human-readable renderer.
    """
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)

    renderer = structlog.dev.ConsoleRenderer() if console else structlog.processors.JSONRenderer()

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="ISO"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
