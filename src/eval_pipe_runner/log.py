from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

_LOG_FORMATS = {"console", "json"}


def _stderr_logger(*args: Any) -> Any:
    """Create a print logger bound to the current `sys.stderr`.

    Example:
        ```python
        _stderr_logger().msg("hello")
        ```
    """
    return structlog.PrintLogger(sys.stderr)


def configure_logging(level: str = "WARNING", fmt: str = "console") -> None:
    """Route structlog events to stderr at the requested level.

    stdout is reserved for the single JSON response.

    Example:
        ```python
        configure_logging("DEBUG", "json")
        ```
    """
    if fmt not in _LOG_FORMATS:
        raise ValueError("log_format must be 'console' or 'json'")
    numeric = logging.getLevelName(level.upper())
    if not isinstance(numeric, int):
        raise ValueError(f"Unknown log level: {level}")

    renderer: Any
    if fmt == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric),
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )


def get_logger(name: str) -> Any:
    """Return a structlog logger bound to a module name.

    Example:
        ```python
        logger = get_logger(__name__)
        logger.info("sandbox resolved", backend="local")
        ```
    """
    return structlog.get_logger(name)
