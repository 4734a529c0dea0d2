"""Correlation of outstanding requests with their responses."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .errors import ConnectionLost, DuplicateRequestId, RequestRejected

_LOGGER = logging.getLogger(__name__)


class RequestCorrelator:
    """Track outstanding requests by id and settle them as responses arrive.

    Each registered id maps to a future. A response resolves the future with
    its ``responseData`` or fails it with ``RequestRejected``; losing the
    connection fails every outstanding future at once.
    """

    def __init__(self) -> None:
        self._pending: dict[str, asyncio.Future[dict[str, Any]]] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, request_id: object) -> bool:
        return request_id in self._pending

    @property
    def pending_ids(self) -> tuple[str, ...]:
        return tuple(self._pending)

    def register(self, request_id: str) -> asyncio.Future[dict[str, Any]]:
        """Register an outstanding request and return the future it settles.

        Raises:
            DuplicateRequestId: If ``request_id`` is already outstanding.
        """
        if request_id in self._pending:
            raise DuplicateRequestId(f"Request id {request_id!r} is already outstanding")
        future: asyncio.Future[dict[str, Any]] = (
            asyncio.get_running_loop().create_future()
        )
        self._pending[request_id] = future
        return future

    def discard(self, request_id: str) -> None:
        """Forget an outstanding request without settling it."""
        future = self._pending.pop(request_id, None)
        if future is not None and not future.done():
            future.cancel()

    def resolve(self, payload: dict[str, Any]) -> bool:
        """Settle the request a RequestResponse payload answers.

        Returns:
            True if the payload matched an outstanding request. Late or
            unknown responses are dropped and return False.
        """
        request_id = payload.get("requestId")
        future = self._pending.pop(request_id, None) if isinstance(request_id, str) else None
        if future is None:
            _LOGGER.debug("Dropping response for unknown request id %r", request_id)
            return False
        if future.done():
            return False

        status = payload.get("requestStatus")
        if not isinstance(status, dict):
            status = {}
        if status.get("result") is True:
            data = payload.get("responseData")
            future.set_result(data if isinstance(data, dict) else {})
            return True

        # A malformed status still settles the caller, as a rejection with code 0.
        code = status.get("code")
        if isinstance(code, bool) or not isinstance(code, int):
            code = 0
        comment = status.get("comment")
        request_type = payload.get("requestType")
        future.set_exception(
            RequestRejected(
                code,
                comment if isinstance(comment, str) else "",
                request_type=request_type if isinstance(request_type, str) else None,
            )
        )
        return True

    def fail_all(self, reason: str) -> int:
        """Fail every outstanding request with ConnectionLost and clear the mapping.

        Returns:
            Number of requests failed.
        """
        pending = self._pending
        self._pending = {}
        failed = 0
        for request_id, future in pending.items():
            if future.done():
                continue
            future.set_exception(ConnectionLost(f"{reason} (request {request_id})"))
            failed += 1
        if failed:
            _LOGGER.debug("Failed %d outstanding request(s): %s", failed, reason)
        return failed
