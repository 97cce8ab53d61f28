"""
Logging setup driven by settings.log_level and settings.log_format.

Modules log through ``logging.getLogger(__name__)``; this only configures
the root logger once at process start (API server or scripts). Records are
rendered by structlog's ProcessorFormatter: JSON lines for log shippers,
or the structlog console renderer for local runs.
"""

import logging
import sys

import structlog

from squadgrowth.config import settings

# Applied to every stdlib record before rendering
SHARED_PROCESSORS = [
    structlog.stdlib.add_logger_name,
    structlog.stdlib.add_log_level,
    structlog.stdlib.ExtraAdder(),
    structlog.processors.TimeStamper(fmt="iso", utc=True),
    structlog.processors.StackInfoRenderer(),
]


def build_formatter(log_format: str) -> structlog.stdlib.ProcessorFormatter:
    """Formatter for the root handler ('json' or 'console')."""
    if log_format == "json":
        renderers = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        renderers = [structlog.dev.ConsoleRenderer(colors=sys.stdout.isatty())]

    return structlog.stdlib.ProcessorFormatter(
        foreign_pre_chain=SHARED_PROCESSORS,
        processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta, *renderers],
    )


def setup_logging(level: str | None = None, log_format: str | None = None) -> None:
    """
    Configure the root logger.

    Args:
        level: Override for settings.log_level
        log_format: Override for settings.log_format ('json' or 'console')
    """
    level = (level or settings.log_level).upper()
    log_format = (log_format or settings.log_format).lower()

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(build_formatter(log_format))

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove existing handlers
    for existing in root_logger.handlers[:]:
        root_logger.removeHandler(existing)
    root_logger.addHandler(handler)

    # Suppress noisy libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
