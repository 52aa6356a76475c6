"""Controller-side plugin: button lifecycle events in, broker requests and display calls out."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any, Protocol

from .broker import Broker
from .display import button_title
from .envelope import ACTION_SWITCH_TO_URL
from .errors import SwitcherError

_LOGGER = logging.getLogger("url_switcher.plugin")


class ButtonHost(Protocol):
    async def set_title(self, context: str, title: str) -> None: ...

    async def set_state(self, context: str, state: int) -> None: ...

    async def show_ok(self, context: str) -> None: ...

    async def show_alert(self, context: str) -> None: ...

    async def send_to_property_inspector(self, context: str, payload: dict[str, Any]) -> None: ...


class ControllerPlugin:
    """Maps controller button events onto the broker and keeps button titles in sync with liveness.

    Each button is identified by the controller's opaque `context` string; a press is sent
    under a broker-allocated request id and its outcome is routed back to the originating
    context when the request settles.
    """

    def __init__(self, broker: Broker, host: ButtonHost) -> None:
        self.broker = broker
        self.host = host
        self.settings: dict[str, dict[str, Any]] = {}
        self.visible: set[str] = set()
        self.global_settings: dict[str, Any] = {}
        self._tasks: set[asyncio.Task] = set()
        self._unsubscribe: Callable[[], None] | None = broker.liveness.on_change(self._on_liveness)

    def close(self) -> None:
        unsubscribe, self._unsubscribe = self._unsubscribe, None
        if unsubscribe is not None:
            unsubscribe()
        for task in list(self._tasks):
            task.cancel()

    def is_connected(self) -> bool:
        return self.broker.is_connected()

    # ─────────────────────────────────────────────────────────────────────────
    # Display
    # ─────────────────────────────────────────────────────────────────────────

    def _on_liveness(self, connected: bool) -> None:
        _LOGGER.info("Browser connection changed: %s", connected)
        for context in sorted(self.visible):
            self._spawn(self.refresh(context, connected))

    async def refresh(self, context: str, connected: bool | None = None) -> None:
        if connected is None:
            connected = self.is_connected()
        await self.host.set_title(context, button_title(self.settings.get(context), connected))
        await self.host.set_state(context, 0)

    # ─────────────────────────────────────────────────────────────────────────
    # Button lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    async def on_appear(self, context: str, settings: dict[str, Any] | None) -> None:
        self.settings[context] = dict(settings or {})
        self.visible.add(context)
        _LOGGER.info("Action appeared: %s...", context[:8])
        await self.refresh(context)

    async def on_disappear(self, context: str) -> None:
        self.settings.pop(context, None)
        self.visible.discard(context)

    async def on_settings_changed(self, context: str, settings: dict[str, Any] | None) -> None:
        self.settings[context] = dict(settings or {})
        await self.refresh(context)

    async def on_press(self, context: str) -> bool:
        """Switch the browser to the button's URL; True when the browser reported success."""
        url = (self.settings.get(context) or {}).get("url")
        if not isinstance(url, str) or not url.strip():
            _LOGGER.warning("No URL configured for this button")
            await self.host.show_alert(context)
            return False

        _LOGGER.info("Button pressed - switching to: %s", url)
        try:
            result = await self.broker.send(ACTION_SWITCH_TO_URL, {"url": url})
        except SwitcherError as exc:
            _LOGGER.error("Failed to switch URL: %s", exc)
            await self.host.show_alert(context)
            return False

        if isinstance(result, dict) and result.get("success"):
            _LOGGER.info("Switched to URL: %s (%s)", url, result.get("action"))
            await self.host.show_ok(context)
            return True
        error = result.get("error") if isinstance(result, dict) else None
        _LOGGER.error("Failed to switch: %s", error or "Unknown error")
        await self.host.show_alert(context)
        return False

    async def on_property_inspector_connected(self, context: str) -> None:
        connected = self.is_connected()
        _LOGGER.info("Property inspector connected, browser status: %s", connected)
        await self.host.send_to_property_inspector(context, {"extensionConnected": connected})

    async def on_send_to_plugin(self, context: str, payload: dict[str, Any] | None) -> None:
        if (payload or {}).get("action") == "checkConnection":
            await self.host.send_to_property_inspector(context, {"extensionConnected": self.is_connected()})

    # ─────────────────────────────────────────────────────────────────────────
    # Event dispatch
    # ─────────────────────────────────────────────────────────────────────────

    async def handle_event(self, message: dict[str, Any]) -> None:
        event = message.get("event")
        context = str(message.get("context") or "")
        payload = message.get("payload")
        if not isinstance(payload, dict):
            payload = {}

        if event == "keyDown":
            # Presses wait on the browser; never hold up the host's event stream for them.
            self._spawn(self.on_press(context))
        elif event == "willAppear":
            await self.on_appear(context, payload.get("settings"))
        elif event == "willDisappear":
            await self.on_disappear(context)
        elif event == "didReceiveSettings":
            await self.on_settings_changed(context, payload.get("settings"))
        elif event == "didReceiveGlobalSettings":
            settings = payload.get("settings")
            self.global_settings = dict(settings) if isinstance(settings, dict) else {}
        elif event == "propertyInspectorDidConnect":
            await self.on_property_inspector_connected(context)
        elif event == "sendToPlugin":
            await self.on_send_to_plugin(context, payload)
        else:
            _LOGGER.debug("ignoring controller event %r", event)

    def _spawn(self, coro: Any) -> None:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            _LOGGER.error("plugin task failed", exc_info=exc)

    async def wait_idle(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


__all__ = ["ButtonHost", "ControllerPlugin"]
