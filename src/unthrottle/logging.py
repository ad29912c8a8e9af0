"""
Structured logging for vzdump-unthrottle using structlog.

vzdump copies everything a hook writes into the backup task log. Log records
always go to stderr, leaving stdout to the one-line result of each command,
and colors are only used when stderr is a terminal.
"""

import logging
import sys
import time
from contextlib import contextmanager
from typing import Iterator, Optional

import structlog

from unthrottle.errors import InvalidLogLevelError

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


def parse_level(level: str) -> int:
    """Numeric level for a ``--log-level`` or ``$UNTHROTTLE_LOG_LEVEL`` value."""
    name = level.strip().upper()
    if name not in LOG_LEVELS:
        raise InvalidLogLevelError(level, LOG_LEVELS)
    return getattr(logging, name)


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """
    Send structlog events and stdlib records to stderr.

    Args:
        level: One of DEBUG, INFO, WARNING, ERROR (any case)
        json_output: One JSON object per line instead of console rendering
    """
    numeric_level = parse_level(level)

    pre_chain = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
    ]

    if json_output:
        render = [
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ]
    else:
        render = [
            structlog.dev.ConsoleRenderer(
                colors=sys.stderr.isatty(),
                exception_formatter=structlog.dev.plain_traceback,
            )
        ]

    structlog.configure(
        processors=pre_chain + [structlog.stdlib.ProcessorFormatter.wrap_for_formatter],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(
        structlog.stdlib.ProcessorFormatter(
            foreign_pre_chain=pre_chain,
            processors=[structlog.stdlib.ProcessorFormatter.remove_processors_meta] + render,
        )
    )
    logging.basicConfig(level=numeric_level, handlers=[handler], force=True)


@contextmanager
def hook_context(
    phase: str, mode: Optional[str] = None, vmid: Optional[str] = None
) -> Iterator[None]:
    """Tag every event logged inside the block with the vzdump phase and VM."""
    values = {"phase": phase, "mode": mode, "vmid": vmid}
    with structlog.contextvars.bound_contextvars(
        **{key: value for key, value in values.items() if value is not None}
    ):
        yield


def _elapsed_ms(started: float) -> float:
    return round((time.monotonic() - started) * 1000, 2)


@contextmanager
def log_operation(logger: structlog.stdlib.BoundLogger, operation: str, **context):
    """
    Log ``<operation>.started``, then ``.completed`` or ``.failed``.

    Yields the logger bound to *operation* and *context* so the block can add
    its own events. Exceptions are logged with their type and re-raised.

    Usage:
        with log_operation(log, "throttle.remove", vmid="100") as op_log:
            op_log.info("throttle.remove.nothing_to_do")
    """
    op_log = logger.bind(operation=operation, **context)
    started = time.monotonic()
    op_log.debug(f"{operation}.started")

    try:
        yield op_log
    except Exception as e:
        op_log.error(
            f"{operation}.failed",
            error=str(e),
            error_type=type(e).__name__,
            duration_ms=_elapsed_ms(started),
        )
        raise
    op_log.info(f"{operation}.completed", duration_ms=_elapsed_ms(started))
