"""Single-owner cancellation token for a turn's call chain."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

from talkloop.core.errors import TurnCancelledError

logger = logging.getLogger("talkloop.controller")


class CancellationToken:
    """Cancellation signal shared by every await of one turn.

    Cancelling is idempotent. Awaitables wrapped with :meth:`guard` are
    aborted as soon as the token is cancelled, and any result that arrives
    after cancellation is discarded.
    """

    def __init__(self) -> None:
        self._cancelled = False
        self._reason: str | None = None
        self._callbacks: list[Callable[[], object]] = []
        self._pending: set[asyncio.Future[object]] = set()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def reason(self) -> str | None:
        return self._reason

    def cancel(self, reason: str = "explicit") -> None:
        if self._cancelled:
            return
        self._cancelled = True
        self._reason = reason
        for fut in list(self._pending):
            fut.cancel()
        self._pending.clear()
        callbacks, self._callbacks = self._callbacks, []
        for cb in callbacks:
            try:
                cb()
            except Exception:
                logger.exception("Error in cancellation callback")

    def add_callback(self, callback: Callable[[], object]) -> None:
        """Run *callback* on cancellation (immediately if already cancelled)."""
        if self._cancelled:
            callback()
            return
        self._callbacks.append(callback)

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise TurnCancelledError(self._reason or "cancelled")

    async def guard[T](self, awaitable: Awaitable[T]) -> T:
        """Await *awaitable* unless the token is cancelled first.

        Raises:
            TurnCancelledError: The token was cancelled before or while
                waiting; a late result is dropped.
        """
        if self._cancelled:
            # Close un-awaited coroutines so they don't warn.
            close = getattr(awaitable, "close", None)
            if close is not None:
                with contextlib.suppress(Exception):
                    close()
            raise TurnCancelledError(self._reason or "cancelled")

        fut: asyncio.Future[T] = asyncio.ensure_future(awaitable)
        self._pending.add(fut)  # type: ignore[arg-type]
        try:
            result = await fut
        except asyncio.CancelledError:
            if self._cancelled:
                raise TurnCancelledError(self._reason or "cancelled") from None
            raise
        finally:
            self._pending.discard(fut)  # type: ignore[arg-type]
            if not fut.done():
                fut.cancel()

        self.raise_if_cancelled()
        return result
