from __future__ import annotations

import contextlib
import logging
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed

from .endpoint import ConnectionState, Endpoint
from .errors import PeerUnavailable, TransportFailure

_LOGGER = logging.getLogger("url_switcher.listener")


class ListenerEndpoint(Endpoint):
    """WebSocket server on a fixed port holding at most one authoritative peer.

    A newly accepted peer replaces the current one: the old socket is closed before any
    message from the new peer is delivered. Bind failure raises `TransportFailure`; there is
    no fallback port.
    """

    def __init__(self, *, host: str = "127.0.0.1", port: int = 9334, max_size: int = 2_000_000) -> None:
        super().__init__()
        self.host = host
        self.port = int(port)
        self._max_size = int(max_size)
        # NOTE: typed as Any to avoid coupling to a websockets connection class across versions.
        self._server: Any | None = None
        self._ws: Any | None = None

    @property
    def listening(self) -> bool:
        return self._server is not None

    @property
    def handover_pending(self) -> bool:
        return self._state is ConnectionState.CONNECTING

    async def connect(self) -> None:
        if self._server is not None:
            _LOGGER.debug("listener already started")
            return
        try:
            self._server = await websockets.serve(
                self._handler,
                self.host,
                self.port,
                max_size=self._max_size,
                ping_interval=None,
            )
        except OSError as exc:
            raise TransportFailure(f"bind failed on {self.host}:{self.port}: {exc}") from exc
        _LOGGER.info("listening on %s:%d", self.host, self.port)

    async def _handler(self, ws: Any) -> None:
        previous = self._ws
        self._ws = ws
        if previous is not None:
            # Sends fail fast until the replacement is fully attached.
            self._set_state(ConnectionState.CONNECTING)
            _LOGGER.info("Closing previous peer connection")
            with contextlib.suppress(Exception):
                await previous.close()

        # The replacement may itself have been replaced while we waited on the close.
        if self._ws is not ws:
            with contextlib.suppress(Exception):
                await ws.close()
            return

        conn_id = self._opened()
        _LOGGER.info("peer connected from %s (connection %d)", getattr(ws, "remote_address", None), conn_id)
        reason = ""
        try:
            async for raw in ws:
                self._received(conn_id, raw)
        except ConnectionClosed as exc:
            reason = str(exc)
        finally:
            if self._ws is ws:
                self._ws = None
                self._set_state(ConnectionState.DISCONNECTED)
            code = getattr(ws, "close_code", None)
            _LOGGER.warning("peer disconnected (connection %d, code: %s)", conn_id, code)
            self._closed(conn_id, reason or f"code {code}")

    async def send(self, data: str) -> None:
        ws = self._ws
        if ws is None or not self.is_connected():
            raise PeerUnavailable("no peer connected")
        try:
            await ws.send(data)
        except ConnectionClosed as exc:
            raise PeerUnavailable(f"peer connection closed: {exc}") from exc

    async def close(self) -> None:
        server, self._server = self._server, None
        ws, self._ws = self._ws, None
        self._set_state(ConnectionState.DISCONNECTED)
        if ws is not None:
            with contextlib.suppress(Exception):
                await ws.close()
        if server is not None:
            server.close()
            with contextlib.suppress(Exception):
                await server.wait_closed()


__all__ = ["ListenerEndpoint"]
