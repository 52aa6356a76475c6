from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from .envelope import Response
from .errors import PeerRejected, PeerUnavailable, RequestTimeout, SwitcherError

_LOGGER = logging.getLogger("url_switcher.pending")


@dataclass(slots=True)
class PendingRequest:
    id: int
    action: str
    connection_id: int
    created_at: float
    deadline: float
    future: asyncio.Future
    timer: asyncio.TimerHandle | None = None


class PendingTable:
    """Locally-assigned request id -> waiting future plus deadline.

    Every entry leaves the table exactly once: matching response, deadline expiry (per-request
    timer or `sweep`), or failure of the connection it was sent on. Futures are only touched
    on that exit, so a late duplicate can never resolve a caller twice.
    """

    def __init__(self, *, max_per_connection: int = 64, clock: Callable[[], float] = time.monotonic) -> None:
        self._entries: dict[int, PendingRequest] = {}
        self._next_id = 1
        self._max_per_connection = max(1, int(max_per_connection))
        self._clock = clock

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, req_id: object) -> bool:
        return req_id in self._entries

    def get(self, req_id: int) -> PendingRequest | None:
        return self._entries.get(req_id)

    def count_for(self, connection_id: int) -> int:
        return sum(1 for rec in self._entries.values() if rec.connection_id == connection_id)

    def _allocate_id(self) -> int:
        req_id = self._next_id
        self._next_id += 1
        return req_id

    def register(self, *, action: str, connection_id: int, timeout: float) -> PendingRequest:
        """Allocate the next id and start tracking it. Must run inside the event loop."""
        if self.count_for(connection_id) >= self._max_per_connection:
            raise PeerUnavailable(
                f"too many outstanding requests on connection {connection_id} (limit {self._max_per_connection})"
            )
        loop = asyncio.get_running_loop()
        now = self._clock()
        rec = PendingRequest(
            id=self._allocate_id(),
            action=action,
            connection_id=int(connection_id),
            created_at=now,
            deadline=now + max(0.0, float(timeout)),
            future=loop.create_future(),
        )
        rec.timer = loop.call_later(max(0.0, float(timeout)), self._expire, rec.id)
        self._entries[rec.id] = rec
        return rec

    def _pop(self, req_id: int) -> PendingRequest | None:
        rec = self._entries.pop(req_id, None)
        if rec is not None and rec.timer is not None:
            rec.timer.cancel()
            rec.timer = None
        return rec

    def discard(self, req_id: int) -> None:
        self._pop(req_id)

    def resolve(self, response: Response) -> bool:
        """Settle the entry for `response.id`; False when no entry is pending."""
        rec = self._pop(response.id)
        if rec is None:
            return False
        if rec.future.done():
            return True
        if response.error is not None:
            rec.future.set_exception(PeerRejected(response.error))
        else:
            rec.future.set_result(response.result)
        return True

    def fail(self, req_id: int, exc: SwitcherError) -> bool:
        rec = self._pop(req_id)
        if rec is None:
            return False
        if not rec.future.done():
            rec.future.set_exception(exc)
        return True

    def fail_connection(self, connection_id: int, exc: SwitcherError) -> int:
        ids = [rid for rid, rec in self._entries.items() if rec.connection_id == connection_id]
        for rid in ids:
            self.fail(rid, exc)
        return len(ids)

    def fail_all(self, exc: SwitcherError) -> int:
        ids = list(self._entries)
        for rid in ids:
            self.fail(rid, exc)
        return len(ids)

    def _expire(self, req_id: int) -> None:
        rec = self._entries.get(req_id)
        if rec is None:
            return
        self.fail(req_id, RequestTimeout(f"Request timeout: id={req_id} action={rec.action}"))

    def sweep(self, now: float | None = None) -> int:
        """Evict every entry whose deadline has passed, failing it with `RequestTimeout`."""
        now = self._clock() if now is None else now
        expired = [rid for rid, rec in self._entries.items() if rec.deadline <= now]
        for rid in expired:
            self._expire(rid)
        if expired:
            _LOGGER.warning("Cleaned up %d stale pending request(s)", len(expired))
        return len(expired)


__all__ = ["PendingRequest", "PendingTable"]
