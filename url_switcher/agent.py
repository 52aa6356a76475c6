"""Browser-side agent: answers controller requests against a Tab Directory.

The directory primitives are blocking (HTTP to the DevTools endpoint, or a test double), so
every call runs on a worker thread and the broker's control loop never stalls on them.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from .envelope import ActivateTab, GetTabs, Request, SwitchToURL
from .errors import ProtocolAnomaly, TabDirectoryError
from .liveness import LivenessNotifier
from .tabs import TabDirectory
from .url_match import find_best_match

_LOGGER = logging.getLogger("url_switcher.agent")


class BrowserAgent:
    def __init__(self, directory: TabDirectory, *, liveness: LivenessNotifier | None = None) -> None:
        self.directory = directory
        self._liveness = liveness

    def status(self) -> dict[str, Any]:
        connected = self._liveness.is_connected() if self._liveness is not None else False
        return {"pluginConnected": bool(connected)}

    async def handle(self, request: Request) -> Any:
        payload = request.payload
        _LOGGER.info("Handling %s (id=%s)", request.action, request.id)
        if isinstance(payload, GetTabs):
            return await self.get_tabs()
        if isinstance(payload, SwitchToURL):
            return await self.switch_to_url(payload.url)
        if isinstance(payload, ActivateTab):
            return await self.activate_tab(payload.tab_id, payload.window_id)
        raise ProtocolAnomaly(f"Unknown action: {request.action}", envelope_id=request.id)

    async def get_tabs(self) -> list[dict[str, Any]]:
        tabs = await asyncio.to_thread(self.directory.list_tabs)
        return [tab.to_dict() for tab in tabs]

    async def switch_to_url(self, url: str) -> dict[str, Any]:
        """Focus the first tab equivalent to `url`, or open a new one when none matches."""
        tabs = await asyncio.to_thread(self.directory.list_tabs)
        match = find_best_match(tabs, url)
        if match is not None:
            _LOGGER.info("Found matching tab %s for %s", match.id, url)
            result = await self.activate_tab(match.id, match.window_id)
            return {**result, "action": "activated", "tab": match.to_dict()}
        _LOGGER.info("No matching tab for %s, opening new tab", url)
        result = await self.open_url(url)
        return {**result, "action": "opened"}

    async def activate_tab(self, tab_id: int | str, window_id: int | str | None = None) -> dict[str, Any]:
        try:
            await asyncio.to_thread(self.directory.activate, tab_id, window_id)
        except TabDirectoryError as exc:
            _LOGGER.error("Failed to activate tab %s: %s", tab_id, exc)
            return {"success": False, "error": str(exc)}
        return {"success": True}

    async def open_url(self, url: str) -> dict[str, Any]:
        try:
            tab_id = await asyncio.to_thread(self.directory.open_new, url)
        except TabDirectoryError as exc:
            _LOGGER.error("Failed to open %s: %s", url, exc)
            return {"success": False, "error": str(exc)}
        return {"success": True, "tabId": tab_id}


__all__ = ["BrowserAgent"]
