"""Tests for ReconnectSupervisor."""

from __future__ import annotations

import asyncio
from unittest.mock import AsyncMock

from obs_taso.errors import ObsConnectionError
from obs_taso.reconnect import DEFAULT_RECONNECT_INTERVAL, ReconnectSupervisor

from .conftest import wait_until


class TestReconnectSupervisor:
    """Tests for the fixed-interval retry loop."""

    def test_default_interval(self):
        assert DEFAULT_RECONNECT_INTERVAL == 5.0
        assert ReconnectSupervisor(AsyncMock()).interval == 5.0

    async def test_retries_until_success(self):
        connect = AsyncMock(
            side_effect=[ObsConnectionError("down"), ObsConnectionError("down"), True]
        )
        supervisor = ReconnectSupervisor(connect, interval=0.01)

        assert supervisor.start()
        await wait_until(lambda: not supervisor.running)

        assert connect.await_count == 3
        assert supervisor.attempts == 3

    async def test_start_is_idempotent(self):
        connect = AsyncMock(side_effect=ObsConnectionError("down"))
        supervisor = ReconnectSupervisor(connect, interval=0.01)

        assert supervisor.start()
        assert not supervisor.start()
        await supervisor.cancel()

    async def test_cancel_stops_retries(self):
        connect = AsyncMock(side_effect=ObsConnectionError("down"))
        supervisor = ReconnectSupervisor(connect, interval=0.01)

        supervisor.start()
        await wait_until(lambda: connect.await_count >= 2)
        await supervisor.cancel()
        calls = connect.await_count

        await asyncio.sleep(0.05)
        assert not supervisor.running
        assert connect.await_count == calls

    async def test_waits_one_interval_before_first_attempt(self):
        connect = AsyncMock()
        supervisor = ReconnectSupervisor(connect, interval=10)

        supervisor.start()
        await asyncio.sleep(0.01)
        connect.assert_not_awaited()
        await supervisor.cancel()

    async def test_cancel_when_idle(self):
        await ReconnectSupervisor(AsyncMock()).cancel()

    async def test_attempt_that_drops_again_is_retried(self):
        connect = AsyncMock(side_effect=[False, False, True])
        supervisor = ReconnectSupervisor(connect, interval=0.01)

        supervisor.start()
        await wait_until(lambda: not supervisor.running)

        assert connect.await_count == 3
        assert supervisor.attempts == 3
