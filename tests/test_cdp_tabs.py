from __future__ import annotations

import json
from urllib.error import URLError

import pytest


def test_list_tabs_keeps_page_targets_only(monkeypatch: pytest.MonkeyPatch) -> None:
    from url_switcher.cdp_tabs import CdpTabDirectory

    targets = [
        {"id": "A", "type": "page", "url": "https://github.com/", "title": "GitHub", "faviconUrl": "f.ico"},
        {"id": "B", "type": "service_worker", "url": "chrome-extension://x/sw.js"},
        {"id": "C", "type": "page", "url": "https://example.org/"},
    ]
    calls: list[tuple[str, str]] = []

    def _call(self, path: str, *, method: str = "GET") -> bytes:
        calls.append((method, path))
        return json.dumps(targets).encode()

    monkeypatch.setattr(CdpTabDirectory, "_call", _call)
    tabs = CdpTabDirectory(port=9333).list_tabs()
    assert [t.id for t in tabs] == ["A", "C"]
    assert tabs[0].title == "GitHub"
    assert tabs[0].fav_icon_url == "f.ico"
    assert calls == [("GET", "/json/list")]


def test_open_new_adds_scheme_and_uses_put(monkeypatch: pytest.MonkeyPatch) -> None:
    from url_switcher.cdp_tabs import CdpTabDirectory

    calls: list[tuple[str, str]] = []

    def _call(self, path: str, *, method: str = "GET") -> bytes:
        calls.append((method, path))
        return b'{"id": "NEW", "type": "page"}'

    monkeypatch.setattr(CdpTabDirectory, "_call", _call)
    directory = CdpTabDirectory()
    assert directory.open_new("github.com/foo") == "NEW"
    assert calls == [("PUT", "/json/new?https://github.com/foo")]

    directory.activate("NEW", None)
    assert calls[-1] == ("GET", "/json/activate/NEW")


def test_unreachable_endpoint_is_tab_directory_error(monkeypatch: pytest.MonkeyPatch) -> None:
    import url_switcher.cdp_tabs as cdp_tabs
    from url_switcher.errors import TabDirectoryError

    def _boom(*_a, **_k):
        raise URLError("connection refused")

    monkeypatch.setattr(cdp_tabs, "urlopen", _boom)
    with pytest.raises(TabDirectoryError):
        cdp_tabs.CdpTabDirectory().activate("A")
