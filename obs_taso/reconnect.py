"""Fixed-interval reconnection for the OBS session."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

from .errors import ObsTasoError

_LOGGER = logging.getLogger(__name__)

DEFAULT_RECONNECT_INTERVAL = 5.0


class ReconnectSupervisor:
    """Retry a connect coroutine on a fixed interval until it succeeds.

    The coroutine reports success by returning True. Returning False means the
    connection came up and went away again before the attempt finished, which
    counts as a failed attempt.

    There is no backoff and no attempt limit: the peer is a broadcast tool on
    the local machine or network.
    """

    def __init__(
        self,
        connect: Callable[[], Awaitable[bool]],
        *,
        interval: float = DEFAULT_RECONNECT_INTERVAL,
        name: str = "obs",
    ) -> None:
        self._connect = connect
        self._interval = interval
        self._name = name
        self._task: asyncio.Task[None] | None = None
        self._attempts = 0

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def attempts(self) -> int:
        """Attempts made since the supervisor was last started."""
        return self._attempts

    def start(self) -> bool:
        """Schedule retries unless already scheduled.

        Returns:
            True if a new retry loop was started.
        """
        if self.running:
            return False
        self._attempts = 0
        _LOGGER.info("[%s] Reconnecting every %.1fs", self._name, self._interval)
        self._task = asyncio.create_task(self._run())
        return True

    async def cancel(self) -> None:
        """Stop retrying. Safe to call from outside the retry loop only."""
        task = self._task
        self._task = None
        if task is None or task.done():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    async def _run(self) -> None:
        try:
            while True:
                await asyncio.sleep(self._interval)
                self._attempts += 1
                try:
                    connected = await self._connect()
                except ObsTasoError as err:
                    _LOGGER.info(
                        "[%s] Reconnection attempt %d failed: %s",
                        self._name,
                        self._attempts,
                        err,
                    )
                    continue
                if not connected:
                    _LOGGER.info(
                        "[%s] Reconnection attempt %d dropped before it settled",
                        self._name,
                        self._attempts,
                    )
                    continue
                _LOGGER.info(
                    "[%s] Reconnected after %d attempt(s)", self._name, self._attempts
                )
                return
        except asyncio.CancelledError:
            _LOGGER.debug("[%s] Reconnect cancelled", self._name)
            raise
