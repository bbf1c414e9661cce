"""Tests for CancellationToken."""

from __future__ import annotations

import asyncio

import pytest

from talkloop.core.cancellation import CancellationToken
from talkloop.core.errors import TurnCancelledError


class TestCancellationToken:
    def test_cancel_is_idempotent(self) -> None:
        token = CancellationToken()
        token.cancel("user")
        token.cancel("other")
        assert token.cancelled
        assert token.reason == "user"

    def test_callbacks_run_once(self) -> None:
        token = CancellationToken()
        calls: list[str] = []
        token.add_callback(lambda: calls.append("a"))
        token.cancel()
        token.cancel()
        assert calls == ["a"]

    def test_callback_after_cancel_runs_immediately(self) -> None:
        token = CancellationToken()
        token.cancel()
        calls: list[str] = []
        token.add_callback(lambda: calls.append("late"))
        assert calls == ["late"]

    def test_failing_callback_does_not_block_others(self) -> None:
        token = CancellationToken()
        calls: list[str] = []

        def _boom() -> None:
            raise RuntimeError("boom")

        token.add_callback(_boom)
        token.add_callback(lambda: calls.append("ok"))
        token.cancel()
        assert calls == ["ok"]

    def test_raise_if_cancelled(self) -> None:
        token = CancellationToken()
        token.raise_if_cancelled()
        token.cancel("stop")
        with pytest.raises(TurnCancelledError, match="stop"):
            token.raise_if_cancelled()


class TestGuard:
    async def test_returns_result(self) -> None:
        async def _work() -> int:
            return 7

        assert await CancellationToken().guard(_work()) == 7

    async def test_cancel_aborts_pending_await(self) -> None:
        token = CancellationToken()
        started = asyncio.Event()
        finished = False

        async def _slow() -> None:
            nonlocal finished
            started.set()
            await asyncio.sleep(10)
            finished = True

        task = asyncio.create_task(token.guard(_slow()))
        await started.wait()
        token.cancel("user")

        with pytest.raises(TurnCancelledError):
            await task
        assert not finished

    async def test_already_cancelled_never_starts(self) -> None:
        token = CancellationToken()
        token.cancel()
        ran = False

        async def _work() -> None:
            nonlocal ran
            ran = True

        with pytest.raises(TurnCancelledError):
            await token.guard(_work())
        assert not ran

    async def test_late_result_dropped(self) -> None:
        token = CancellationToken()

        async def _work() -> str:
            token.cancel("superseded")
            return "late"

        with pytest.raises(TurnCancelledError):
            await token.guard(_work())

    async def test_outer_cancellation_propagates(self) -> None:
        token = CancellationToken()
        task = asyncio.create_task(token.guard(asyncio.sleep(10)))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        assert not token.cancelled

    async def test_service_errors_pass_through(self) -> None:
        async def _fail() -> None:
            raise ValueError("bad payload")

        with pytest.raises(ValueError, match="bad payload"):
            await CancellationToken().guard(_fail())
