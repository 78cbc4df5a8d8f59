"""
Resilience utilities for error handling and fault tolerance.

This module provides:
- retry_with_backoff decorator for transient transport errors
- handle_partial_failure for batch operations (inline comments, labels)
"""

import asyncio
import time
import logging
from typing import Callable, Any, TypeVar, ParamSpec
from functools import wraps

logger = logging.getLogger(__name__)

# Type variables for generic decorator
P = ParamSpec('P')
T = TypeVar('T')


def backoff_delay(
    attempt: int,
    base_delay: float = 1.0,
    max_delay: float = 10.0,
    exponential_base: float = 2.0
) -> float:
    """
    Delay in seconds to wait after the given zero-based failed attempt.

    Args:
        attempt: Zero-based index of the attempt that just failed
        base_delay: Delay after the first failure
        max_delay: Upper bound for any single delay
        exponential_base: Growth factor between attempts

    Returns:
        Delay in seconds
    """
    return min(base_delay * (exponential_base ** attempt), max_delay)


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 10.0,
    exponential_base: float = 2.0,
    exceptions: tuple = (Exception,)
):
    """
    Decorator for retrying functions with exponential backoff.

    ``max_retries`` is the total number of attempts. Only exceptions listed
    in ``exceptions`` are retried; anything else propagates immediately.
    The last caught exception is re-raised once attempts are exhausted.

    Args:
        max_retries: Maximum number of attempts (default: 3)
        base_delay: Initial delay in seconds between attempts (default: 1.0)
        max_delay: Maximum delay in seconds between attempts (default: 10.0)
        exponential_base: Base for exponential backoff calculation (default: 2.0)
        exceptions: Tuple of exception types to catch and retry

    Returns:
        Decorated function with retry logic

    Example:
        @retry_with_backoff(max_retries=3, exceptions=(TransportError,))
        async def call_model():
            return await client.send(request)
    """
    attempts = max(1, max_retries)

    def decorator(func: Callable[P, T]) -> Callable[P, T]:
        name = getattr(func, "__name__", "call")

        @wraps(func)
        async def async_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            for attempt in range(attempts):
                try:
                    result = await func(*args, **kwargs)

                    if attempt > 0:
                        logger.info(
                            f"{name} succeeded on attempt {attempt + 1}/{attempts}"
                        )

                    return result

                except exceptions as e:
                    if attempt == attempts - 1:
                        logger.error(
                            f"{name} failed after {attempts} attempts: {e}"
                        )
                        raise

                    delay = backoff_delay(attempt, base_delay, max_delay, exponential_base)

                    logger.warning(
                        f"{name} failed on attempt {attempt + 1}/{attempts}: {e}. "
                        f"Retrying in {delay:.1f}s..."
                    )

                    await asyncio.sleep(delay)

        @wraps(func)
        def sync_wrapper(*args: P.args, **kwargs: P.kwargs) -> T:
            for attempt in range(attempts):
                try:
                    result = func(*args, **kwargs)

                    if attempt > 0:
                        logger.info(
                            f"{name} succeeded on attempt {attempt + 1}/{attempts}"
                        )

                    return result

                except exceptions as e:
                    if attempt == attempts - 1:
                        logger.error(
                            f"{name} failed after {attempts} attempts: {e}"
                        )
                        raise

                    delay = backoff_delay(attempt, base_delay, max_delay, exponential_base)

                    logger.warning(
                        f"{name} failed on attempt {attempt + 1}/{attempts}: {e}. "
                        f"Retrying in {delay:.1f}s..."
                    )

                    time.sleep(delay)

        # Return appropriate wrapper based on whether function is async
        if asyncio.iscoroutinefunction(func):
            return async_wrapper
        else:
            return sync_wrapper

    return decorator


def handle_partial_failure(
    operation_name: str,
    total_items: int,
    successful_items: int,
    errors: list,
    context: dict
) -> None:
    """
    Log the outcome of a batch operation where items fail independently.

    Args:
        operation_name: Name of the operation
        total_items: Total number of items processed
        successful_items: Number of successful items
        errors: List of error messages
        context: Additional context information
    """
    failed_items = total_items - successful_items

    if failed_items > 0:
        logger.warning(
            f"Partial failure in {operation_name}: "
            f"{successful_items}/{total_items} succeeded, {failed_items} failed",
            extra={
                "operation": operation_name,
                "total_items": total_items,
                "successful_items": successful_items,
                "failed_items": failed_items,
                "errors": errors[:10],  # Limit to first 10 errors
                "operation_context": context
            }
        )
    else:
        logger.info(
            f"{operation_name} completed successfully: {successful_items}/{total_items}",
            extra={
                "operation": operation_name,
                "total_items": total_items,
                "operation_context": context
            }
        )
