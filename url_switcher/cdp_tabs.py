"""Tab directory backed by the Chrome DevTools HTTP endpoints.

Requires a Chromium-based browser started with `--remote-debugging-port=<port>`.
CDP targets carry no window id; activation focuses the target's window implicitly.
"""

from __future__ import annotations

import json
import logging
import urllib.parse
from typing import Any
from urllib.error import URLError
from urllib.request import Request, urlopen

from .errors import TabDirectoryError
from .tabs import TabDescriptor

_LOGGER = logging.getLogger("url_switcher.cdp_tabs")
_USER_AGENT = "url-switcher/1.0"


def _ensure_scheme(url: str) -> str:
    parsed = urllib.parse.urlsplit(url)
    if parsed.scheme:
        return url
    return f"https://{url}"


class CdpTabDirectory:
    def __init__(self, *, host: str = "127.0.0.1", port: int = 9222, timeout: float = 2.0) -> None:
        self.host = host
        self.port = int(port)
        self.timeout = float(timeout)

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"

    def _call(self, path: str, *, method: str = "GET") -> bytes:
        req = Request(f"{self.base_url}{path}", headers={"User-Agent": _USER_AGENT}, method=method)
        try:
            with urlopen(req, timeout=self.timeout) as resp:
                return resp.read()
        except (TimeoutError, URLError) as exc:
            raise TabDirectoryError(f"CDP not reachable on port {self.port}: {exc}") from exc

    def list_tabs(self) -> list[TabDescriptor]:
        try:
            targets: Any = json.loads(self._call("/json/list").decode("utf-8"))
        except ValueError as exc:
            raise TabDirectoryError(f"CDP /json/list returned invalid JSON: {exc}") from exc
        if not isinstance(targets, list):
            return []
        tabs: list[TabDescriptor] = []
        for target in targets:
            if not isinstance(target, dict) or target.get("type") != "page":
                continue
            tabs.append(
                TabDescriptor(
                    id=str(target.get("id") or ""),
                    url=str(target.get("url") or ""),
                    title=str(target.get("title") or ""),
                    fav_icon_url=str(target.get("faviconUrl") or ""),
                )
            )
        return tabs

    def activate(self, tab_id: int | str, window_id: int | str | None = None) -> None:
        _ = window_id
        tid = urllib.parse.quote(str(tab_id), safe="")
        self._call(f"/json/activate/{tid}")
        _LOGGER.debug("activated target %s", tab_id)

    def open_new(self, url: str) -> str:
        query = urllib.parse.quote(_ensure_scheme(url), safe=":/?&=%#@+,;~")
        # Chrome 111+ rejects GET on /json/new.
        raw = self._call(f"/json/new?{query}", method="PUT")
        try:
            target = json.loads(raw.decode("utf-8"))
        except ValueError as exc:
            raise TabDirectoryError(f"CDP /json/new returned invalid JSON: {exc}") from exc
        tab_id = target.get("id") if isinstance(target, dict) else None
        if not tab_id:
            raise TabDirectoryError("CDP did not report the new tab id")
        return str(tab_id)


__all__ = ["CdpTabDirectory"]
