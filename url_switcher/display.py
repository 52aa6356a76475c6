from __future__ import annotations

import re
from typing import Any

DISCONNECTED_TITLE = "⚠️\nNo Browser"
_SNIPPET_MAX = 12
_SNIPPET_KEEP = 10

_SCHEME_RE = re.compile(r"^https?://")
_WWW_RE = re.compile(r"^www\.")


def url_snippet(url: str) -> str:
    """Short button label for a URL: host part only, truncated with an ellipsis."""
    host = _WWW_RE.sub("", _SCHEME_RE.sub("", url or "")).split("/")[0]
    if len(host) > _SNIPPET_MAX:
        return host[:_SNIPPET_KEEP] + "…"
    return host


def button_title(settings: dict[str, Any] | None, connected: bool) -> str:
    if not connected:
        return DISCONNECTED_TITLE
    settings = settings or {}
    title = settings.get("title")
    if isinstance(title, str) and title:
        return title
    url = settings.get("url")
    if isinstance(url, str) and url:
        return url_snippet(url)
    return ""


__all__ = ["DISCONNECTED_TITLE", "button_title", "url_snippet"]
