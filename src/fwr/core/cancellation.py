"""Cancellation token shared by every external call of one invocation."""

import asyncio
from typing import Optional

from fwr.core.exceptions import OperationCancelledError


class CancellationToken:
    """One-shot cancellation signal.

    Created at the entry point and passed explicitly to each external call.
    Once cancelled it stays cancelled. The token is not tied to an event
    loop, so one context can be reused across several asyncio.run calls.

    Usage:
        token = CancellationToken()
        loop.add_signal_handler(signal.SIGINT, token.cancel)
        result = await executor.run("--list-ports", token)
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._waiters: list["asyncio.Future[None]"] = []
        self.reason: Optional[str] = None

    def cancel(self, reason: str = "Operation cancelled") -> None:
        """Signal cancellation. Subsequent calls are ignored."""
        if self._cancelled:
            return
        self._cancelled = True
        self.reason = reason
        for waiter in self._waiters:
            if not waiter.done() and not waiter.get_loop().is_closed():
                waiter.set_result(None)

    @property
    def cancelled(self) -> bool:
        """Check if cancellation has been requested."""
        return self._cancelled

    def raise_if_cancelled(self) -> None:
        """Raise OperationCancelledError if cancellation has been requested."""
        if self._cancelled:
            raise OperationCancelledError(self.reason or "Operation cancelled")

    async def wait(self) -> None:
        """Block until cancellation is requested."""
        if self._cancelled:
            return

        # Waiters live on the loop that awaits them and are dropped afterwards
        waiter: "asyncio.Future[None]" = asyncio.get_running_loop().create_future()
        self._waiters.append(waiter)
        try:
            await waiter
        finally:
            self._waiters.remove(waiter)
