"""Sequence-keyed table of in-flight requests."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from .const import DEFAULT_TIMEOUT
from .exceptions import BridgeTimeoutError, ProtocolError, TransportError
from .protocol import FRAME_ERROR, DecodedFrame

_LOGGER = logging.getLogger(__name__)


@dataclass
class PendingRequest:
    sequence: int
    future: asyncio.Future
    timeout_handle: asyncio.TimerHandle | None = None
    metadata: dict = field(default_factory=dict)

    @property
    def context(self) -> str:
        datapoint_id = self.metadata.get("datapoint_id")
        if datapoint_id:
            return f"{self.metadata.get('operation', 'request')} {datapoint_id}"
        return f"sequence {self.sequence}"

    def settle(self, result=None, error: Exception | None = None) -> bool:
        """Resolve or reject once; later calls are ignored."""
        if self.timeout_handle is not None:
            self.timeout_handle.cancel()
            self.timeout_handle = None
        if self.future.done():
            return False
        if error is not None:
            self.future.set_exception(error)
        else:
            self.future.set_result(result)
        return True


class RequestCorrelator:
    """Matches responses to requests by sequence number.

    Each request settles exactly once: with the response payload, or with
    a timeout, write failure, error response or connection drop.
    """

    def __init__(self, send: Callable[[bytes, str], Awaitable[None]]):
        self._send = send
        self._pending: dict[int, PendingRequest] = {}

    def __len__(self) -> int:
        return len(self._pending)

    def __contains__(self, sequence: int) -> bool:
        return sequence in self._pending

    async def send_request(
        self,
        buffer: bytes,
        sequence: int,
        timeout: float = DEFAULT_TIMEOUT,
        metadata: dict | None = None,
    ) -> bytes:
        """Send ``buffer`` and wait for the response carrying ``sequence``."""
        loop = asyncio.get_running_loop()
        request = PendingRequest(sequence, loop.create_future(), metadata=dict(metadata or {}))

        stale = self._pending.get(sequence)
        if stale is not None:
            # More than 255 requests in flight; the sequence wrapped around
            _LOGGER.warning("Sequence %d reused while still pending (%s)", sequence, stale.context)
            stale.settle(error=TransportError(f"Sequence {sequence} reused before a response arrived"))

        self._pending[sequence] = request
        request.timeout_handle = loop.call_later(timeout, self._expire, request)

        try:
            try:
                await self._send(buffer, request.context)
            except TransportError as err:
                _LOGGER.debug("Failed to send %s to bridge: %s", request.context, err)
                request.settle(error=err)
            return await request.future
        finally:
            self._discard(request)
            if request.timeout_handle is not None:
                request.timeout_handle.cancel()
            request.future.cancel()

    def resolve(self, frame: DecodedFrame) -> bool:
        """Settle the request matching ``frame``; False if nothing was waiting for it."""
        if frame.sequence is None:
            return False
        request = self._pending.pop(frame.sequence, None)
        if request is None:
            return False

        if frame.type == FRAME_ERROR:
            code = frame.payload[0] if frame.payload else None
            _LOGGER.debug("Bridge responded with error for %s (code %s)", request.context, code)
            request.settle(error=ProtocolError(f"Bridge returned an error for {request.context}", code))
        else:
            _LOGGER.debug("Received response for %s", request.context)
            request.settle(frame.payload)
        return True

    def reject_all(self, error: Exception) -> int:
        """Fail every pending request with ``error`` and clear the table."""
        pending, self._pending = self._pending, {}
        count = 0
        for request in pending.values():
            if request.settle(error=error):
                _LOGGER.debug("Rejecting pending %s due to connection issue: %s", request.context, error)
                count += 1
        return count

    def _expire(self, request: PendingRequest) -> None:
        request.timeout_handle = None
        self._discard(request)
        if request.settle(error=BridgeTimeoutError(f"Request timed out ({request.context})")):
            _LOGGER.debug("Timeout waiting for response to %s", request.context)

    def _discard(self, request: PendingRequest) -> None:
        if self._pending.get(request.sequence) is request:
            del self._pending[request.sequence]
