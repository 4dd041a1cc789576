"""Structlog configuration for treetop.

Diagnostics go to stderr so stdout stays reserved for reports. Recoverable
conditions such as processes exiting mid-cycle are logged at debug level
and are silent by default.
"""

import logging
import sys

import structlog

_LEVELS = {0: logging.WARNING, 1: logging.INFO}


def level_for(verbosity: int) -> int:
    """Map a -v count to a stdlib logging level."""
    return _LEVELS.get(verbosity, logging.DEBUG)


def configure(verbosity: int = 0) -> None:
    """
    Configure structlog to render key/value lines through stdlib logging.

    Args:
        verbosity: 0 for warnings only, 1 for info, 2 or more for debug.
    """
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            processor=structlog.dev.ConsoleRenderer(colors=False),
            foreign_pre_chain=[
                structlog.processors.add_log_level,
                structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False),
            ],
        )
    )

    root = logging.getLogger()
    root.handlers.clear()
    root.addHandler(handler)
    root.setLevel(level_for(verbosity))

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.processors.TimeStamper(fmt="%H:%M:%S", utc=False),
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )
