"""
Tests for cooperative cancellation

Tests for scriptflow/core/cancellation.py
"""

import asyncio

import pytest

from scriptflow.core.cancellation import CancellationToken, is_cancellation_error, run_cancellable
from scriptflow.core.exceptions import StageCancelledError


class TestCancellationToken:
    """Tests for CancellationToken."""

    def test_initial_state(self):
        token = CancellationToken()

        assert not token.cancelled
        assert token.reason is None
        token.raise_if_cancelled("structure")

    def test_first_reason_wins(self):
        token = CancellationToken()
        token.cancel("user")
        token.cancel("superseded")

        assert token.cancelled
        assert token.reason == "user"

    def test_raise_if_cancelled(self):
        token = CancellationToken()
        token.cancel("user")

        with pytest.raises(StageCancelledError) as exc_info:
            token.raise_if_cancelled("visuals")
        assert exc_info.value.stage_name == "visuals"
        assert exc_info.value.reason == "user"


class TestRunCancellable:
    """Tests for run_cancellable."""

    @pytest.mark.asyncio
    async def test_without_token(self):
        async def work():
            return 42

        assert await run_cancellable(work(), None) == 42

    @pytest.mark.asyncio
    async def test_completes_before_cancel(self):
        async def work():
            return "done"

        assert await run_cancellable(work(), CancellationToken()) == "done"

    @pytest.mark.asyncio
    async def test_cancel_aborts_inflight_call(self):
        token = CancellationToken()
        finished = []

        async def slow():
            await asyncio.sleep(10)
            finished.append(True)

        asyncio.get_running_loop().call_later(0.01, token.cancel, "user")

        with pytest.raises(StageCancelledError) as exc_info:
            await run_cancellable(slow(), token, "shots")

        assert exc_info.value.stage_name == "shots"
        assert finished == []

    @pytest.mark.asyncio
    async def test_already_cancelled(self):
        token = CancellationToken()
        token.cancel()

        async def work():
            return 1

        with pytest.raises(StageCancelledError):
            await run_cancellable(work(), token)

    @pytest.mark.asyncio
    async def test_errors_propagate(self):
        async def broken():
            raise ValueError("bad")

        with pytest.raises(ValueError):
            await run_cancellable(broken(), CancellationToken())


class TestIsCancellationError:
    """Tests for is_cancellation_error."""

    @pytest.mark.parametrize("message", ["Request aborted", "user canceled", "已取消"])
    def test_message_patterns(self, message):
        assert is_cancellation_error(RuntimeError(message))

    def test_plain_error(self):
        assert not is_cancellation_error(RuntimeError("HTTP 500"))

    def test_cancelled_token_wins(self):
        token = CancellationToken()
        token.cancel()

        assert is_cancellation_error(RuntimeError("HTTP 500"), token)

    def test_asyncio_cancelled(self):
        assert is_cancellation_error(asyncio.CancelledError())
