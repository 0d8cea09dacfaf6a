"""
Structured logging for vaultrag.

Modules log through `get_logger(__name__)` with snake_case event names and
key/value context, e.g. `logger.info("batch_persisted", batch=3, chunks=32)`.
Logs go to stderr so CLI output on stdout stays machine-readable.
"""
import logging
import sys
from typing import Optional

import structlog

from vaultrag.config import Settings, settings as default_settings

SHARED_PROCESSORS = [
    structlog.contextvars.merge_contextvars,
    structlog.stdlib.add_logger_name,
    structlog.processors.add_log_level,
    structlog.processors.TimeStamper(fmt="iso"),
    structlog.processors.StackInfoRenderer(),
    structlog.processors.format_exc_info,
]


def select_renderer(config: Settings):
    """JSON lines in production, readable console output everywhere else."""
    if config.APP_ENV == "production":
        return structlog.processors.JSONRenderer()
    return structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())


def setup_logging(config: Optional[Settings] = None, level: Optional[str] = None):
    """
    Configure structlog on top of stdlib logging.

    `level` overrides `LOG_LEVEL` from the settings.
    """
    config = config or default_settings
    log_level = (level or config.LOG_LEVEL).upper()

    logging.basicConfig(format="%(message)s", stream=sys.stderr)
    logging.getLogger().setLevel(log_level)

    structlog.configure(
        processors=SHARED_PROCESSORS + [select_renderer(config)],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def get_logger(name: str):
    return structlog.get_logger(name)
