"""Logging configuration for wats.

Configures structlog with human-readable output by default, JSON output
when test logs are shipped to a collector. While a Suite is active, every
event carries the `test` and `team` it belongs to.
"""

import logging
import sys
from pathlib import Path

import structlog

# Libraries that log every request or subprocess at INFO
_CHATTY_LOGGERS = ("httpx", "httpcore", "asyncio")


def configure_logging(
    level: str = "warning",
    log_file: str | Path | None = None,
    json_output: bool = False,
) -> None:
    """Configure logging for the harness.

    Called from pytest_configure and from the CLI group.

    Args:
        level: Log level (debug, info, warning, error, critical)
        log_file: Optional path to log file, instead of stderr
        json_output: If True, output JSON format

    Usage:
        pytest plugin: configure_logging(config.log_level)
        CI collection: configure_logging(level, log_file=path, json_output=True)
    """
    log_level = getattr(logging, level.upper(), logging.WARNING)

    if log_file:
        handler: logging.Handler = logging.FileHandler(str(log_file))
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(log_level)

    logging.basicConfig(level=log_level, handlers=[handler], format="%(message)s", force=True)

    # Readiness polling would otherwise print one line per attempt
    for name in _CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structlog logger instance (typically `get_logger(__name__)`)."""
    return structlog.get_logger(name)


def bind_test_context(test: str, team: str) -> None:
    """Tag every log line emitted from here on with the running test and its team.

    Fly, Web and Suite events all carry these keys until
    clear_test_context() is called, so interleaved output from parallel
    workers can be told apart.
    """
    structlog.contextvars.bind_contextvars(test=test, team=team)


def clear_test_context() -> None:
    structlog.contextvars.unbind_contextvars("test", "team")
