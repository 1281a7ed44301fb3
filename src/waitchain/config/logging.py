"""structlog configuration for the ``waitchain`` logger tree.

Only the ``waitchain`` logger is touched: the host application's root logger
and handlers are left alone.  Output goes to stderr, either as console lines
or as JSON lines (``[logging] json_output = true``).
"""

from __future__ import annotations

import logging
import sys

import structlog

from waitchain.config.models import LoggingConfig

LOGGER_NAME = "waitchain"


class _WaitchainHandler(logging.StreamHandler):  # type: ignore[type-arg]
    """Marker type so reconfiguring replaces only the handler installed here."""


def configure_logging(config: LoggingConfig) -> None:
    """Route ``waitchain`` log records through structlog renderers.

    Calling it again replaces the previous handler instead of stacking one.
    """
    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    renderer: structlog.types.Processor
    if config.json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty())

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    handler = _WaitchainHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=shared_processors,
            processors=[
                structlog.stdlib.ProcessorFormatter.remove_processors_meta,
                renderer,
            ],
        )
    )

    logger = logging.getLogger(LOGGER_NAME)
    for existing in [h for h in logger.handlers if isinstance(h, _WaitchainHandler)]:
        logger.removeHandler(existing)
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if config.verbose else logging.WARNING)
    logger.propagate = config.propagate
