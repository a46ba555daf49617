"""
Retry decorator for idempotent collaborator reads.

Writes to the billing ledger are never wrapped: a retried charge is a
duplicate charge.
"""

import asyncio
import functools
import random
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Tuple, Type

from shared.logging import get_logger


@dataclass(frozen=True)
class RetryConfig:
    """Configuration for retry behavior.

    ``backoff_strategy`` is one of ``exponential``, ``linear`` or ``fixed``.
    """
    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 60.0
    exponential_base: float = 2.0
    jitter: bool = True
    backoff_strategy: str = "exponential"


class RetryError(Exception):
    """All attempts failed; ``last_exception`` is what the final attempt raised."""

    def __init__(self, message: str, last_exception: Exception, attempts: int):
        super().__init__(message)
        self.last_exception = last_exception
        self.attempts = attempts


def _calculate_delay(attempt: int, config: RetryConfig) -> float:
    """Seconds to wait after failed attempt number ``attempt`` (1-based)."""
    if config.backoff_strategy == "exponential":
        delay = config.base_delay * (config.exponential_base ** (attempt - 1))
    elif config.backoff_strategy == "linear":
        delay = config.base_delay * attempt
    else:
        delay = config.base_delay

    delay = min(delay, config.max_delay)
    if config.jitter:
        spread = delay * 0.1
        delay += random.uniform(-spread, spread)
    return max(0.0, delay)


def retry_on_exception(
    exceptions: Tuple[Type[BaseException], ...] = (Exception,),
    config: Optional[RetryConfig] = None,
) -> Callable:
    """Retry an async function when it raises one of ``exceptions``.

    Other exceptions are raised straight through on the first attempt. Once
    ``max_attempts`` is used up, ``RetryError`` is raised from the last error.
    """
    config = config or RetryConfig()

    def decorator(func: Callable[..., Awaitable[Any]]) -> Callable[..., Awaitable[Any]]:
        logger = get_logger(f"retry.{func.__name__}")

        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            last_error: Optional[BaseException] = None

            for attempt in range(1, config.max_attempts + 1):
                try:
                    result = await func(*args, **kwargs)
                except exceptions as e:
                    last_error = e
                    if attempt == config.max_attempts:
                        break
                    delay = _calculate_delay(attempt, config)
                    logger.warning(
                        "Attempt failed, retrying",
                        function=func.__name__,
                        attempt=attempt,
                        delay=delay,
                        error=str(e)
                    )
                    await asyncio.sleep(delay)
                    continue

                if attempt > 1:
                    logger.info("Retry succeeded", function=func.__name__, attempt=attempt)
                return result

            logger.error(
                "All retry attempts exhausted",
                function=func.__name__,
                max_attempts=config.max_attempts,
                error=str(last_error)
            )
            raise RetryError(
                f"{func.__name__} failed after {config.max_attempts} attempts",
                last_exception=last_error,
                attempts=config.max_attempts
            ) from last_error

        return wrapper

    return decorator
