"""Connection to the controller host application (Stream Deck).

The host launches the plugin with `-port -pluginUUID -registerEvent -info`; the plugin dials
`ws://127.0.0.1:<port>`, registers, then receives button events as JSON messages and answers
with display commands addressed by button context.
"""

from __future__ import annotations

import contextlib
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

import websockets
from websockets.exceptions import ConnectionClosed

_LOGGER = logging.getLogger("url_switcher.streamdeck")

EventHandler = Callable[[dict[str, Any]], Awaitable[None]]


@dataclass(frozen=True, slots=True)
class StreamDeckArgs:
    port: int | None = None
    plugin_uuid: str | None = None
    register_event: str | None = None
    info: dict[str, Any] = field(default_factory=dict)

    @property
    def complete(self) -> bool:
        return bool(self.port and self.plugin_uuid and self.register_event)

    def missing(self) -> list[str]:
        out: list[str] = []
        if not self.port:
            out.append("port")
        if not self.plugin_uuid:
            out.append("pluginUUID")
        if not self.register_event:
            out.append("registerEvent")
        return out

    @staticmethod
    def parse_info(raw: str | None) -> dict[str, Any]:
        if not raw:
            return {}
        try:
            data = json.loads(raw)
        except ValueError:
            _LOGGER.warning("ignoring unparsable -info payload")
            return {}
        return data if isinstance(data, dict) else {}


class StreamDeckConnection:
    """`ButtonHost` implementation over the host's websocket."""

    def __init__(self, args: StreamDeckArgs, *, host: str = "127.0.0.1", open_timeout: float = 5.0) -> None:
        self.args = args
        self.url = f"ws://{host}:{int(args.port or 0)}"
        self._open_timeout = float(open_timeout)
        self._ws: Any | None = None

    @property
    def connected(self) -> bool:
        return self._ws is not None

    async def run(self, on_event: EventHandler) -> None:
        """Register with the host and feed its events to `on_event` until the socket closes."""
        _LOGGER.info("Connecting to Stream Deck on %s", self.url)
        async with websockets.connect(self.url, open_timeout=self._open_timeout, ping_interval=None) as ws:
            self._ws = ws
            try:
                await self._send({"event": self.args.register_event, "uuid": self.args.plugin_uuid})
                _LOGGER.info("Connected to Stream Deck")
                async for raw in ws:
                    try:
                        message = json.loads(raw)
                    except ValueError:
                        _LOGGER.warning("dropping unparsable Stream Deck message")
                        continue
                    if not isinstance(message, dict):
                        continue
                    try:
                        await on_event(message)
                    except Exception:
                        _LOGGER.exception("Stream Deck event %r failed", message.get("event"))
            except ConnectionClosed:
                pass
            finally:
                self._ws = None
                _LOGGER.info("Stream Deck connection closed")

    async def close(self) -> None:
        ws, self._ws = self._ws, None
        if ws is not None:
            with contextlib.suppress(Exception):
                await ws.close()

    async def _send(self, message: dict[str, Any]) -> None:
        ws = self._ws
        if ws is None:
            _LOGGER.debug("Stream Deck not connected; dropping %s", message.get("event"))
            return
        try:
            await ws.send(json.dumps(message, ensure_ascii=False))
        except ConnectionClosed:
            _LOGGER.warning("Stream Deck connection closed while sending %s", message.get("event"))

    # ─────────────────────────────────────────────────────────────────────────
    # Display commands
    # ─────────────────────────────────────────────────────────────────────────

    async def set_title(self, context: str, title: str) -> None:
        await self._send({"event": "setTitle", "context": context, "payload": {"title": title}})

    async def set_state(self, context: str, state: int) -> None:
        await self._send({"event": "setState", "context": context, "payload": {"state": int(state)}})

    async def show_ok(self, context: str) -> None:
        await self._send({"event": "showOk", "context": context})

    async def show_alert(self, context: str) -> None:
        await self._send({"event": "showAlert", "context": context})

    async def send_to_property_inspector(self, context: str, payload: dict[str, Any]) -> None:
        await self._send({"event": "sendToPropertyInspector", "context": context, "payload": payload})


class NullButtonHost:
    """Display sink used when the plugin runs without a controller host (manual testing)."""

    async def set_title(self, context: str, title: str) -> None:
        _LOGGER.debug("setTitle %s %r", context, title)

    async def set_state(self, context: str, state: int) -> None:
        _LOGGER.debug("setState %s %d", context, state)

    async def show_ok(self, context: str) -> None:
        _LOGGER.debug("showOk %s", context)

    async def show_alert(self, context: str) -> None:
        _LOGGER.debug("showAlert %s", context)

    async def send_to_property_inspector(self, context: str, payload: dict[str, Any]) -> None:
        _LOGGER.debug("sendToPropertyInspector %s %s", context, payload)


__all__ = ["EventHandler", "NullButtonHost", "StreamDeckArgs", "StreamDeckConnection"]
