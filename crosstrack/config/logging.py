"""Logging configuration and utilities using Loguru.

Public API:
----------
setup_loguru_logger(verbose: bool = False) -> None
    Configure Loguru sinks for the application

get_logger(name: str) -> Logger
    Get a context-aware logger for your module
    Usage: logger = get_logger(__name__)

@resilient_operation(operation_name: str)
    Log and re-raise failures at external API boundaries
    Usage: @resilient_operation("musicbrainz_search")

Quick Start:
-----------
    ```python
    from crosstrack.config import get_logger

    logger = get_logger(__name__).bind(service="spotify")
    logger.info("Searching", artist=artist, title=title)
    ```
"""

from collections.abc import Awaitable, Callable
import functools
from pathlib import Path
import sys
from typing import Any, ParamSpec, TypeVar

from loguru import logger

from .settings import settings

P = ParamSpec("P")
R = TypeVar("R")


def setup_loguru_logger(verbose: bool = False) -> None:
    """Configure Loguru logger for the application.

    Args:
        verbose: Enable debug level console output with detailed tracebacks

    Note:
        - Removes the default handler and installs console and file handlers
        - File output is JSON serialized and rotated at 10 MB
    """
    logger.remove()

    log_file_path = Path(settings.logging.log_file)
    log_file_path.parent.mkdir(parents=True, exist_ok=True)

    logger.configure(extra={"service": "crosstrack", "module": "root"})

    console_level = "DEBUG" if verbose else settings.logging.console_level
    logger.add(
        sink=sys.stderr,
        level=console_level,
        format=(
            "<green>{time:HH:mm:ss}</green> | "
            "<level>{level: <8}</level> | "
            "<cyan>{extra[service]}</cyan>:<cyan>{function}</cyan> - "
            "<level>{message}</level>"
        ),
        colorize=True,
        backtrace=verbose,
        diagnose=verbose,
    )

    logger.add(
        sink=str(log_file_path),
        level=settings.logging.file_level,
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | {extra[service]} | {extra[module]} | {name}:{function}:{line} | {message}",
        rotation="10 MB",
        retention="1 week",
        compression="zip",
        backtrace=True,
        diagnose=True,
        enqueue=not settings.logging.real_time_debug,
        catch=True,
        serialize=True,
    )


def get_logger(name: str) -> Any:  # Use Any for Loguru logger type
    """Get a pre-configured logger instance for the given module.

    Args:
        name: Module name (typically __name__)

    Returns:
        Loguru logger bound with module and service context
    """
    return logger.bind(
        module=name,
        service="crosstrack",
    )


def resilient_operation(
    operation_name: str | None = None,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Decorator for service boundary operations with standardized error logging.

    The wrapped coroutine's exceptions are logged with the operation name and
    re-raised unchanged, so callers keep full control over recovery.

    Example:
        >>> @resilient_operation("itunes_search")
        >>> async def search(term):
        >>>     return await client.request("GET", "/search", params={"term": term})
    """

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        op_name = operation_name or func.__name__

        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            try:
                return await func(*args, **kwargs)
            except Exception as e:
                logger.opt(exception=e).warning(f"Error in {op_name}: {e!s}")
                raise

        return wrapper

    return decorator
