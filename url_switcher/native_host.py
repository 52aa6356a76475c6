"""Chrome Native Messaging host for the URL switcher.

Chrome launches this process when the extension calls `connectNative()`. It relays between
two peers, each owned by its own broker:

- controller <-> native host: websocket listener on the rendezvous port
- native host <-> extension: Chrome Native Messaging (stdin/stdout framing)

Every controller request is re-sent to the extension under an id from the host's own
sequence and answered to the controller under the controller's original id, so the two id
spaces never meet on either wire.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, BinaryIO

from .broker import Broker
from .config import SwitcherConfig
from .endpoint import ConnectionState
from .envelope import Request
from .listener import ListenerEndpoint
from .stdio_endpoint import StdioEndpoint

_LOGGER = logging.getLogger("url_switcher.native_host")


class NativeHostRelay:
    def __init__(
        self,
        config: SwitcherConfig | None = None,
        *,
        reader: BinaryIO | None = None,
        writer: BinaryIO | None = None,
    ) -> None:
        self.config = config or SwitcherConfig.from_env()
        self._stdio = StdioEndpoint(reader, writer, max_frame_bytes=self.config.max_frame_bytes)
        # Forwarded requests carry no deadline of their own beyond the stale window.
        self.browser = Broker.from_config(
            self._stdio,
            self.config,
            request_timeout=self.config.stale_after,
            name="browser",
        )
        self.controller = Broker.from_config(
            ListenerEndpoint(host=self.config.host, port=self.config.port, max_size=self.config.max_frame_bytes),
            self.config,
            handler=self._forward,
            name="controller",
        )

    async def _forward(self, request: Request) -> Any:
        _LOGGER.info("Processing action: %s (controller id %d)", request.action, request.id)
        return await self.browser.send_payload(request.payload)

    async def start(self) -> None:
        # Bind first: a taken port must fail before the stdin reader is running.
        await self.controller.start()
        try:
            await self.browser.start()
        except BaseException:
            await self.controller.close()
            raise

    async def close(self) -> None:
        await self.controller.close()
        await self.browser.close()

    async def wait_eof(self) -> None:
        await self._stdio.wait_eof()

    async def run(self, stop: asyncio.Event | None = None) -> int:
        """Relay until the browser closes stdin (or `stop` is set)."""
        await self.start()
        _LOGGER.info("Native host started")
        waiters = [asyncio.ensure_future(self.wait_eof())]
        if stop is not None:
            waiters.append(asyncio.ensure_future(stop.wait()))
        try:
            await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
            if self._stdio.state is not ConnectionState.CONNECTED:
                _LOGGER.info("stdin closed, shutting down")
        finally:
            for task in waiters:
                task.cancel()
            await self.close()
        return 0


__all__ = ["NativeHostRelay"]
