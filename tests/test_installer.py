from __future__ import annotations

import json
import os
from pathlib import Path


def test_install_writes_manifest_for_each_linux_browser(tmp_path: Path) -> None:
    from url_switcher.installer import HOST_NAME, install_native_host

    home = tmp_path / "home"
    ext_id = "a" * 32
    report = install_native_host(
        [ext_id.upper()],
        python_exe="/usr/bin/python3",
        platform="linux",
        home=home,
        wrapper_dir=tmp_path / "bin",
    )
    assert report.ok, report.errors
    assert len(report.wrote) == 4

    manifest_path = home / ".config" / "google-chrome" / "NativeMessagingHosts" / f"{HOST_NAME}.json"
    manifest = json.loads(manifest_path.read_text(encoding="utf-8"))
    assert manifest["name"] == "com.streamdeck.urlswitcher"
    assert manifest["type"] == "stdio"
    assert manifest["allowed_origins"] == [f"chrome-extension://{ext_id}/"]
    assert manifest["path"] == report.wrapper_path

    wrapper = Path(report.wrapper_path or "")
    body = wrapper.read_text(encoding="utf-8")
    assert '"/usr/bin/python3" -m url_switcher native-host' in body
    if os.name != "nt":
        assert wrapper.stat().st_mode & 0o111


def test_install_limited_to_selected_browser(tmp_path: Path) -> None:
    from url_switcher.installer import install_native_host

    report = install_native_host(
        ["b" * 32],
        browsers=["edge"],
        platform="darwin",
        home=tmp_path,
        wrapper_dir=tmp_path / "bin",
    )
    assert report.ok
    assert [entry.split(":", 1)[0] for entry in report.wrote] == ["edge"]
    assert (tmp_path / "Library" / "Application Support" / "Microsoft Edge" / "NativeMessagingHosts").is_dir()


def test_install_rejects_invalid_extension_ids(tmp_path: Path) -> None:
    from url_switcher.installer import install_native_host, normalize_extension_id

    assert normalize_extension_id("  " + "p" * 32 + " ") == "p" * 32
    assert normalize_extension_id("z" * 32) is None
    assert normalize_extension_id("a" * 31) is None

    report = install_native_host(["not-an-id"], platform="linux", home=tmp_path, wrapper_dir=tmp_path / "bin")
    assert report.ok is False
    assert any("invalid extension id" in e for e in report.errors)
    assert not (tmp_path / "bin").exists()


def test_unsupported_platform_reports_error(tmp_path: Path) -> None:
    from url_switcher.installer import install_native_host

    report = install_native_host(["a" * 32], platform="sunos5", home=tmp_path, wrapper_dir=tmp_path / "bin")
    assert report.ok is False
    assert report.errors


def test_write_manifest_permissions(tmp_path: Path) -> None:
    if os.name == "nt":
        return

    from url_switcher.installer import _write_manifest

    manifest_path = tmp_path / "host.json"
    _write_manifest(manifest_path, {"name": "test", "type": "stdio"})
    mode = manifest_path.stat().st_mode & 0o777
    assert mode == 0o644


def test_manifest_dirs_follow_browser_table(tmp_path: Path) -> None:
    from url_switcher.installer import BROWSERS, _manifest_dirs, _registry_key, _wanted_browsers

    assert BROWSERS == ("chrome", "chromium", "brave", "edge")
    assert _wanted_browsers(None) == list(BROWSERS)
    assert _wanted_browsers([" Brave ", "firefox"]) == ["brave"]

    (brave,) = _manifest_dirs("linux", tmp_path, ["brave"])
    assert brave.path == tmp_path / ".config" / "BraveSoftware" / "Brave-Browser" / "NativeMessagingHosts"
    (chrome,) = _manifest_dirs("darwin", tmp_path, ["chrome"])
    assert chrome.path == tmp_path / "Library" / "Application Support" / "Google" / "Chrome" / "NativeMessagingHosts"
    assert _manifest_dirs("win32", tmp_path, ["chrome"]) == []

    assert _registry_key("edge") == r"Software\Microsoft\Edge\NativeMessagingHosts\com.streamdeck.urlswitcher"
