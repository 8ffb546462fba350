"""
Copyright (C) 2026 Garudex Labs.  All Rights Reserved.
ReserveProof, a product of Garudex Labs

Retry logic for snapshot and proof file persistence.

Filesystem writes can fail transiently (a busy network mount or a file
briefly locked by a backup tool). Such failures are retried
with exponential backoff. Errors that another attempt cannot fix, such as
a missing directory or a permission problem, are raised immediately.
"""

import functools
import os
import time
from typing import Any, Callable, Optional, Tuple, Type, TypeVar

from reserveproof.logging_config import get_logger

logger = get_logger(__name__)

T = TypeVar('T')

# OSError subclasses that retrying will not fix
PERMANENT_OS_ERRORS: Tuple[Type[Exception], ...] = (
    PermissionError,
    FileNotFoundError,
    IsADirectoryError,
    NotADirectoryError,
)


def _target_of(args: Tuple[Any, ...], kwargs: dict) -> Optional[str]:
    """First path-like argument of a call, for log messages."""
    if "path" in kwargs:
        return str(kwargs["path"])
    for arg in args:
        if isinstance(arg, (str, os.PathLike)):
            return os.fspath(arg)
    return None


def retry_on_transient_failure(
    max_retries: int = 3,
    base_delay: float = 0.1,
    backoff_factor: float = 2.0,
    transient_exceptions: Tuple[Type[Exception], ...] = (OSError,),
    permanent_exceptions: Tuple[Type[Exception], ...] = PERMANENT_OS_ERRORS,
    operation: Optional[str] = None,
) -> Callable[[Callable[..., T]], Callable[..., T]]:
    """
    Decorator to retry a file operation on transient failures.

    Args:
        max_retries: Maximum number of retry attempts after the first call
        base_delay: Delay in seconds before the first retry
        backoff_factor: Multiplier applied to the delay after each retry
        transient_exceptions: Exception types worth retrying
        permanent_exceptions: Subclasses of those that are raised at once
        operation: Name used in log messages (defaults to the function name)

    Returns:
        Decorated function that retries on transient failures

    Example:
        @retry_on_transient_failure(max_retries=3, operation="snapshot write")
        def write_snapshot(path, payload):
            with open(path, 'w') as f:
                f.write(payload)
    """
    def decorator(func: Callable[..., T]) -> Callable[..., T]:
        name = operation or func.__name__

        @functools.wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> T:
            target = _target_of(args, kwargs)
            where = f" of {target}" if target else ""

            attempt = 0
            while True:
                try:
                    return func(*args, **kwargs)
                except permanent_exceptions as e:
                    logger.error(f"Failed {name}{where}: {e} (not retried)")
                    raise
                except transient_exceptions as e:
                    if attempt >= max_retries:
                        logger.error(
                            f"Failed {name}{where} after {max_retries + 1} attempts: {e}",
                            exc_info=True,
                        )
                        raise

                    delay = base_delay * (backoff_factor ** attempt)
                    logger.warning(
                        f"Transient failure in {name}{where} "
                        f"(attempt {attempt + 1}/{max_retries + 1}): {e}. "
                        f"Retrying in {delay:.2f}s..."
                    )
                    time.sleep(delay)
                    attempt += 1

        return wrapper
    return decorator
