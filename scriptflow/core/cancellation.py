"""
Cooperative cancellation for long-running model calls.

A ``CancellationToken`` is shared between a run and whoever may cancel it.
External calls are raced against the token with ``run_cancellable`` so a
cancelled run abandons the in-flight request at the call boundary.
"""

import asyncio
from typing import Awaitable, Optional, TypeVar

from .constants import CANCELLATION_PATTERNS
from .exceptions import StageCancelledError
from .logging_config import get_logger

logger = get_logger("core.cancellation")

T = TypeVar("T")


class CancellationToken:
    """Cancellation signal observable from coroutines."""

    def __init__(self):
        self._event = asyncio.Event()
        self.reason: Optional[str] = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()
            logger.debug(f"Cancellation requested: {reason}")

    def raise_if_cancelled(self, stage_name: str = "") -> None:
        if self.cancelled:
            raise StageCancelledError(stage_name, self.reason or "cancelled")

    async def wait(self) -> None:
        await self._event.wait()


async def run_cancellable(
    awaitable: Awaitable[T],
    token: Optional[CancellationToken],
    stage_name: str = ""
) -> T:
    """
    Await ``awaitable`` unless ``token`` fires first.

    On cancellation the underlying task is cancelled and awaited, then
    ``StageCancelledError`` is raised. Without a token this is a plain await.
    """
    if token is None:
        return await awaitable

    if token.cancelled:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        token.raise_if_cancelled(stage_name)

    task = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(token.wait())
    try:
        await asyncio.wait({task, waiter}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        waiter.cancel()

    if task.done():
        return task.result()

    task.cancel()
    await asyncio.gather(task, return_exceptions=True)
    raise StageCancelledError(stage_name, token.reason or "cancelled")


def is_cancellation_error(error: BaseException, token: Optional[CancellationToken] = None) -> bool:
    """Classify an error as a cancellation by token state, type or message."""
    if token is not None and token.cancelled:
        return True
    if isinstance(error, (StageCancelledError, asyncio.CancelledError)):
        return True
    message = str(error).lower()
    return any(pattern in message for pattern in CANCELLATION_PATTERNS)
