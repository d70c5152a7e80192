"""
Explicit cancellation for in-flight AI requests.

A CancellationToken is handed to every AI call. run_with_timeout races the
call against the token and a wall-clock budget: whichever finishes first
wins, and the losers are cancelled.
"""

import asyncio
from typing import Awaitable, Optional, TypeVar

import structlog

from deep_mirror.core.exceptions import AIRequestCancelledError, AITimeoutError

log = structlog.get_logger(__name__)

T = TypeVar("T")


class CancellationToken:
    """One-shot cancellation signal shared between the caller and the call."""

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

    async def wait(self) -> None:
        await self._event.wait()


async def run_with_timeout(
    awaitable: Awaitable[T],
    timeout: float,
    token: Optional[CancellationToken] = None,
    label: str = "ai_request",
) -> T:
    """
    Await a call under a timeout and an optional cancellation token.

    Args:
        awaitable: The call to run
        timeout: Wall-clock budget in seconds
        token: Cancellation token; cancelling it aborts the call
        label: Name used in log events

    Returns:
        The call's result

    Raises:
        AITimeoutError: The budget elapsed first (the call is cancelled)
        AIRequestCancelledError: The token fired first (the call is cancelled)
        Exception: Whatever the call itself raised
    """
    if token is not None and token.cancelled:
        if asyncio.iscoroutine(awaitable):
            awaitable.close()
        raise AIRequestCancelledError(f"{label} cancelled before start")

    task = asyncio.ensure_future(awaitable)
    waiter = asyncio.ensure_future(token.wait()) if token is not None else None
    pending = {task} if waiter is None else {task, waiter}

    try:
        done, _ = await asyncio.wait(
            pending, timeout=timeout, return_when=asyncio.FIRST_COMPLETED
        )
    except asyncio.CancelledError:
        task.cancel()
        raise
    finally:
        if waiter is not None:
            waiter.cancel()

    if task in done:
        return task.result()

    task.cancel()
    await asyncio.gather(task, return_exceptions=True)

    if waiter is not None and waiter in done:
        log.info("ai_request_cancelled", label=label, reason=token.reason)
        raise AIRequestCancelledError(f"{label} cancelled: {token.reason}")

    log.warning("ai_request_timeout", label=label, timeout_seconds=timeout)
    raise AITimeoutError(f"AI request timed out after {timeout:g} seconds")
