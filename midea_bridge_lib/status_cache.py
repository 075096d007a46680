"""Versioned cache of the latest status values, plus waiters for fresh ones."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Mapping
from dataclasses import dataclass

from .const import DEFAULT_TIMEOUT
from .exceptions import BridgeTimeoutError, MideaBridgeError

_LOGGER = logging.getLogger(__name__)

# Waiter key for "any datapoint changed"
ANY = None


@dataclass(frozen=True)
class StatusValue:
    datapoint_id: str
    value: object
    version: int


class StatusWaiter:
    __slots__ = ("datapoint_id", "min_version", "future", "timeout_handle")

    def __init__(self, datapoint_id: str | None, min_version: int, future: asyncio.Future):
        self.datapoint_id = datapoint_id
        self.min_version = min_version
        self.future = future
        self.timeout_handle: asyncio.TimerHandle | None = None


class StatusWait:
    """Handle for a pending wait: await it, or cancel() it."""

    def __init__(self, future: asyncio.Future, cache: StatusCache | None = None, waiter: StatusWaiter | None = None):
        self.future = future
        self._cache = cache
        self._waiter = waiter

    def cancel(self, error: Exception | None = None) -> None:
        """Reject the wait outside the normal path (the send that should trigger it failed)."""
        if self._cache is None or self._waiter is None:
            return
        if self._cache.settle(self._waiter, error=error or MideaBridgeError("Status wait cancelled")):
            # Mark retrieved: the caller is already propagating its own error
            self.future.exception()

    def __await__(self):
        return self.future.__await__()


class StatusCache:
    """Latest value per datapoint, stamped with a global snapshot version.

    The version increases once per accepted snapshot, not once per field.
    Waiters resolve when a version above their baseline is recorded for
    their datapoint, or for any datapoint when registered under ANY.
    """

    def __init__(self):
        self.version = 0
        self._values: dict[str, StatusValue] = {}
        self._waiters: dict[str | None, set[StatusWaiter]] = {}

    def __contains__(self, datapoint_id: str) -> bool:
        return datapoint_id in self._values

    def __len__(self) -> int:
        return len(self._values)

    def get(self, datapoint_id: str) -> StatusValue | None:
        return self._values.get(datapoint_id)

    def snapshot(self) -> dict:
        return {key: entry.value for key, entry in self._values.items()}

    def waiter_count(self, datapoint_id: str | None = ANY, all_keys: bool = False) -> int:
        if all_keys:
            return sum(len(waiters) for waiters in self._waiters.values())
        return len(self._waiters.get(datapoint_id, ()))

    def record(self, values: Mapping[str, object]) -> int | None:
        """Store a snapshot; returns its version, or None if it held no values."""
        entries = {key: value for key, value in values.items() if value is not None}
        if not entries:
            return None

        self.version += 1
        version = self.version
        for datapoint_id, value in entries.items():
            self._values[datapoint_id] = StatusValue(datapoint_id, value, version)
            self._notify(datapoint_id, value, version)
        self._notify(ANY, self.snapshot(), version)
        return version

    def wait_for(
        self,
        datapoint_id: str | None,
        timeout: float = DEFAULT_TIMEOUT,
        min_version: int | None = None,
        require_fresh: bool = True,
    ) -> StatusWait:
        """Register a waiter for a version newer than the baseline.

        The baseline is ``min_version`` when given, else the cached version
        of the datapoint, else the current global version. With
        ``require_fresh=False`` a cached value resolves immediately.
        """
        loop = asyncio.get_running_loop()
        future = loop.create_future()
        existing = self._values.get(datapoint_id) if datapoint_id is not ANY else None

        if not require_fresh:
            if datapoint_id is ANY and self._values:
                future.set_result(self.snapshot())
                return StatusWait(future)
            if existing is not None:
                future.set_result(existing.value)
                return StatusWait(future)

        if min_version is not None:
            baseline = min_version
        elif existing is not None:
            baseline = existing.version
        else:
            baseline = self.version

        # A snapshot may already have landed between the baseline and now
        if datapoint_id is ANY and self.version > baseline and self._values:
            future.set_result(self.snapshot())
            return StatusWait(future)
        if existing is not None and existing.version > baseline:
            future.set_result(existing.value)
            return StatusWait(future)

        waiter = StatusWaiter(datapoint_id, baseline, future)
        waiter.timeout_handle = loop.call_later(timeout, self._expire, waiter)
        self._waiters.setdefault(datapoint_id, set()).add(waiter)
        return StatusWait(future, self, waiter)

    def settle(self, waiter: StatusWaiter, result=None, error: Exception | None = None) -> bool:
        """Resolve or reject a waiter once and drop it from the registry."""
        self._remove(waiter)
        if waiter.timeout_handle is not None:
            waiter.timeout_handle.cancel()
            waiter.timeout_handle = None
        if waiter.future.done():
            return False
        if error is not None:
            waiter.future.set_exception(error)
        else:
            waiter.future.set_result(result)
        return True

    def reject_all(self, error: Exception) -> int:
        """Fail every registered waiter with ``error``."""
        waiters = [waiter for group in self._waiters.values() for waiter in group]
        count = 0
        for waiter in waiters:
            if self.settle(waiter, error=error):
                count += 1
        self._waiters.clear()
        if count:
            _LOGGER.debug("Rejected %d status waiter(s): %s", count, error)
        return count

    def _notify(self, datapoint_id: str | None, value, version: int) -> None:
        for waiter in list(self._waiters.get(datapoint_id, ())):
            if version > waiter.min_version:
                self.settle(waiter, result=value)

    def _expire(self, waiter: StatusWaiter) -> None:
        waiter.timeout_handle = None
        label = waiter.datapoint_id or "any datapoint"
        self.settle(waiter, error=BridgeTimeoutError(f"Status update timeout ({label})"))

    def _remove(self, waiter: StatusWaiter) -> None:
        waiters = self._waiters.get(waiter.datapoint_id)
        if not waiters:
            return
        waiters.discard(waiter)
        if not waiters:
            del self._waiters[waiter.datapoint_id]
