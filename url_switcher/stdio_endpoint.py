"""Length-prefixed stream endpoint over a pair of pipes (Chrome Native Messaging).

The browser launches the native host with the extension on the other end of stdin/stdout.
The connection is established as soon as the endpoint starts and ends at EOF on the reader.
Never write anything else to the writer: a stray byte corrupts the framing.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import sys
import threading
from typing import BinaryIO

from .endpoint import ConnectionState, Endpoint
from .errors import PeerUnavailable, ProtocolAnomaly
from .framing import DEFAULT_MAX_FRAME_BYTES, FrameDecoder, encode_frame

_LOGGER = logging.getLogger("url_switcher.stdio")


class StdioEndpoint(Endpoint):
    def __init__(
        self,
        reader: BinaryIO | None = None,
        writer: BinaryIO | None = None,
        *,
        max_frame_bytes: int = DEFAULT_MAX_FRAME_BYTES,
        chunk_size: int = 65536,
    ) -> None:
        super().__init__()
        self._reader = reader if reader is not None else sys.stdin.buffer
        self._writer = writer if writer is not None else sys.stdout.buffer
        self._decoder = FrameDecoder(max_frame_bytes=max_frame_bytes)
        self._chunk_size = int(chunk_size)
        self._write_lock = asyncio.Lock()
        self._thread: threading.Thread | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._eof = asyncio.Event()

    async def connect(self) -> None:
        if self._thread is not None:
            return
        self._loop = asyncio.get_running_loop()
        conn_id = self._opened()
        # A blocking read on stdin cannot be cancelled, so it lives on a daemon thread
        # instead of the default executor (which would hold up interpreter shutdown).
        t = threading.Thread(target=self._read_thread, args=(conn_id,), name="url-switcher-stdin", daemon=True)
        self._thread = t
        t.start()

    def _read_thread(self, conn_id: int) -> None:
        fd = self._reader.fileno()
        while True:
            try:
                chunk = os.read(fd, self._chunk_size)
            except OSError as exc:
                _LOGGER.warning("stdin read failed: %s", exc)
                chunk = b""
            loop = self._loop
            if loop is None or loop.is_closed():
                return
            try:
                loop.call_soon_threadsafe(self._on_chunk, conn_id, chunk)
            except RuntimeError:
                return
            if not chunk:
                return

    def _on_chunk(self, conn_id: int, chunk: bytes) -> None:
        if not chunk:
            if self._state is not ConnectionState.DISCONNECTED:
                self._set_state(ConnectionState.DISCONNECTED)
                _LOGGER.warning("stdin closed (connection %d)", conn_id)
                self._closed(conn_id, "eof")
            self._eof.set()
            return
        try:
            frames = self._decoder.feed(chunk)
        except ProtocolAnomaly as exc:
            _LOGGER.warning("dropping unreadable input: %s", exc)
            return
        for frame in frames:
            self._received(conn_id, frame)

    async def wait_eof(self) -> None:
        await self._eof.wait()

    def _write(self, frame: bytes) -> None:
        self._writer.write(frame)
        self._writer.flush()

    async def send(self, data: str) -> None:
        if not self.is_connected():
            raise PeerUnavailable("browser pipe is closed")
        frame = encode_frame(data)
        async with self._write_lock:
            try:
                await asyncio.to_thread(self._write, frame)
            except (OSError, ValueError) as exc:
                raise PeerUnavailable(f"browser pipe write failed: {exc}") from exc

    async def close(self) -> None:
        if self._state is not ConnectionState.DISCONNECTED:
            self._set_state(ConnectionState.DISCONNECTED)
            self._closed(self._connection_id, "closed")
        self._eof.set()
        with contextlib.suppress(Exception):
            self._writer.flush()


__all__ = ["StdioEndpoint"]
