from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed, WebSocketException

from .endpoint import ConnectionState, Endpoint
from .envelope import Ping, dumps_envelope
from .errors import PeerUnavailable

_LOGGER = logging.getLogger("url_switcher.dialer")


class DialerEndpoint(Endpoint):
    """WebSocket client that keeps dialing a fixed address.

    - A failed attempt or a closed session schedules exactly one reconnect after a fixed delay;
      a reconnect that is already scheduled (or an attempt already in flight) is never doubled.
    - While connected, an uncorrelated `ping` goes out every `keepalive_interval` seconds so
      idle-connection reapers leave the socket alone. It stops as soon as the session ends.
    """

    def __init__(
        self,
        url: str,
        *,
        reconnect_delay: float = 5.0,
        keepalive_interval: float = 25.0,
        open_timeout: float = 5.0,
        max_size: int = 2_000_000,
    ) -> None:
        super().__init__()
        self.url = url
        self.reconnect_delay = max(0.0, float(reconnect_delay))
        self.keepalive_interval = max(0.01, float(keepalive_interval))
        self._open_timeout = float(open_timeout)
        self._max_size = int(max_size)

        self._ws: Any | None = None
        self._task: asyncio.Task | None = None
        self._keepalive_task: asyncio.Task | None = None
        self._reconnect_timer: asyncio.TimerHandle | None = None
        self._closing = False
        self.attempts = 0

    @property
    def reconnect_pending(self) -> bool:
        return self._reconnect_timer is not None

    @property
    def keepalive_running(self) -> bool:
        return self._keepalive_task is not None and not self._keepalive_task.done()

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    async def connect(self) -> None:
        """Start dialing in the background; returns without waiting for the handshake."""
        self._closing = False
        self._start_attempt()

    def _start_attempt(self) -> None:
        if self._task is not None and not self._task.done():
            return
        if self.is_connected():
            return
        self._cancel_reconnect()
        self._task = asyncio.get_running_loop().create_task(self._session(), name="url-switcher-dialer")

    async def _session(self) -> None:
        self.attempts += 1
        self._set_state(ConnectionState.CONNECTING)
        _LOGGER.info("Connecting to %s", self.url)
        try:
            ws = await websockets.connect(
                self.url,
                open_timeout=self._open_timeout,
                ping_interval=None,
                max_size=self._max_size,
            )
        except (OSError, asyncio.TimeoutError, WebSocketException) as exc:
            _LOGGER.warning("connect to %s failed: %s", self.url, exc)
            self._set_state(ConnectionState.DISCONNECTED)
            self._schedule_reconnect()
            return

        self._ws = ws
        conn_id = self._opened()
        _LOGGER.info("Connected to %s (connection %d)", self.url, conn_id)
        self.start_keepalive()
        reason = ""
        try:
            async for raw in ws:
                self._received(conn_id, raw)
        except ConnectionClosed as exc:
            reason = str(exc)
        finally:
            self.stop_keepalive()
            self._ws = None
            self._set_state(ConnectionState.DISCONNECTED)
            _LOGGER.warning("Disconnected from %s (connection %d)", self.url, conn_id)
            self._closed(conn_id, reason)
            self._schedule_reconnect()

    def _schedule_reconnect(self) -> None:
        if self._closing or self._reconnect_timer is not None:
            return
        _LOGGER.info("Will reconnect in %.1f seconds...", self.reconnect_delay)
        loop = asyncio.get_running_loop()
        self._reconnect_timer = loop.call_later(self.reconnect_delay, self._reconnect)

    def _reconnect(self) -> None:
        self._reconnect_timer = None
        if not self._closing:
            self._start_attempt()

    def _cancel_reconnect(self) -> None:
        timer, self._reconnect_timer = self._reconnect_timer, None
        if timer is not None:
            timer.cancel()

    # ─────────────────────────────────────────────────────────────────────────
    # Keepalive
    # ─────────────────────────────────────────────────────────────────────────

    def start_keepalive(self) -> None:
        if self.keepalive_running:
            return
        self._keepalive_task = asyncio.get_running_loop().create_task(
            self._keepalive_loop(), name="url-switcher-keepalive"
        )

    def stop_keepalive(self) -> None:
        task, self._keepalive_task = self._keepalive_task, None
        if task is not None and not task.done():
            task.cancel()

    async def _keepalive_loop(self) -> None:
        ping = dumps_envelope(Ping())
        while True:
            await asyncio.sleep(self.keepalive_interval)
            ws = self._ws
            if ws is None:
                return
            try:
                await ws.send(ping)
            except ConnectionClosed:
                return
            _LOGGER.debug("Keep-alive ping sent")

    # ─────────────────────────────────────────────────────────────────────────
    # I/O
    # ─────────────────────────────────────────────────────────────────────────

    async def send(self, data: str) -> None:
        ws = self._ws
        if ws is None or not self.is_connected():
            raise PeerUnavailable(f"not connected to {self.url}")
        try:
            await ws.send(data)
        except ConnectionClosed as exc:
            raise PeerUnavailable(f"connection to {self.url} closed: {exc}") from exc

    async def close(self) -> None:
        self._closing = True
        self._cancel_reconnect()
        self.stop_keepalive()
        ws = self._ws
        if ws is not None:
            with contextlib.suppress(Exception):
                await ws.close()
        task, self._task = self._task, None
        if task is not None and not task.done():
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await task
        self._set_state(ConnectionState.DISCONNECTED)


__all__ = ["DialerEndpoint"]
