"""
Retry utilities with exponential or linear backoff.

Used around external model calls. A cancellation is never retried.
"""

import asyncio
import random
from dataclasses import dataclass
from typing import Any, Callable, Optional, Tuple, Type, TypeVar

from .cancellation import CancellationToken, is_cancellation_error, run_cancellable
from .exceptions import StageCancelledError
from .logging_config import get_logger

logger = get_logger("core.retry")

T = TypeVar("T")


@dataclass
class RetryConfig:
    """Configuration for retry behavior."""
    max_retries: int = 3
    base_delay: float = 1.0  # Base delay in seconds
    max_delay: float = 60.0  # Maximum delay in seconds
    backoff: str = "exponential"  # exponential | linear
    exponential_base: float = 2.0
    jitter: bool = True
    jitter_range: Tuple[float, float] = (0.5, 1.5)
    retryable_exceptions: Tuple[Type[Exception], ...] = (
        Exception,  # Default: retry all exceptions
    )
    # Finer filter applied after retryable_exceptions; None retries all of them
    retry_if: Optional[Callable[[Exception], bool]] = None


DEFAULT_RETRY_CONFIG = RetryConfig()


def calculate_delay(attempt: int, config: RetryConfig) -> float:
    """
    Calculate delay before next retry attempt.

    Args:
        attempt: Current attempt number (0-indexed)
        config: Retry configuration

    Returns:
        Delay in seconds before next attempt
    """
    if config.backoff == "linear":
        delay = config.base_delay * (attempt + 1)
    else:
        delay = config.base_delay * (config.exponential_base ** attempt)

    delay = min(delay, config.max_delay)

    if config.jitter:
        delay *= random.uniform(*config.jitter_range)

    return delay


async def retry_async_call(
    func: Callable[..., Any],
    *args: Any,
    config: Optional[RetryConfig] = None,
    token: Optional[CancellationToken] = None,
    on_retry: Optional[Callable[[Exception, int], None]] = None,
    **kwargs: Any
) -> Any:
    """
    Retry an async function call with backoff.

    Each attempt and each wait between attempts is raced against ``token``.

    Example:
        result = await retry_async_call(
            client.complete,
            prompt,
            config=RetryConfig(max_retries=2, backoff="linear"),
        )
    """
    config = config or DEFAULT_RETRY_CONFIG
    last_exception: Optional[Exception] = None

    for attempt in range(config.max_retries + 1):
        try:
            return await run_cancellable(func(*args, **kwargs), token)
        except StageCancelledError:
            raise
        except config.retryable_exceptions as e:
            if is_cancellation_error(e, token):
                raise
            if config.retry_if is not None and not config.retry_if(e):
                raise
            last_exception = e

            if attempt < config.max_retries:
                delay = calculate_delay(attempt, config)
                logger.warning(
                    f"Attempt {attempt + 1}/{config.max_retries + 1} failed: {e}. "
                    f"Retrying in {delay:.2f}s..."
                )

                if on_retry:
                    on_retry(e, attempt)

                await run_cancellable(asyncio.sleep(delay), token)
            else:
                logger.error(
                    f"All {config.max_retries + 1} attempts failed. "
                    f"Last error: {e}"
                )

    if last_exception:
        raise last_exception

    raise RuntimeError("Retry logic failed unexpectedly")


# Model calls made while generating stages
LLM_RETRY_CONFIG = RetryConfig(
    max_retries=3,
    base_delay=2.0,
    max_delay=30.0,
    exponential_base=2.0,
    jitter=True
)
