from __future__ import annotations

import contextlib
import json
import logging
import os
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path

HOST_NAME = "com.streamdeck.urlswitcher"
HOST_DESCRIPTION = "StreamDeck URL Switcher Native Host"
_LOGGER = logging.getLogger("url_switcher.installer")
_EXT_ID_RE = re.compile(r"^[a-p]{32}$")


@dataclass(frozen=True, slots=True)
class InstallTarget:
    label: str
    path: Path


@dataclass(slots=True)
class InstallReport:
    ok: bool = False
    wrote: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    manifest_path: str | None = None
    wrapper_path: str | None = None


def normalize_extension_id(raw: str) -> str | None:
    candidate = str(raw or "").strip().lower()
    if _EXT_ID_RE.match(candidate):
        return candidate
    return None


def _default_wrapper_dir(platform: str, home: Path) -> Path:
    if platform == "win32":
        local = os.environ.get("LOCALAPPDATA")
        base = Path(local) if local else (home / "AppData" / "Local")
        return base / "StreamDeckURLSwitcher"
    return home / ".local" / "share" / "streamdeck-url-switcher"


def _write_wrapper(path: Path, *, python_exe: str, platform: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    py = str(python_exe)
    if platform == "win32":
        content = "\n".join(["@echo off", f'"{py}" -m url_switcher native-host', ""])
    else:
        content = "\n".join(["#!/usr/bin/env bash", "set -euo pipefail", f'exec "{py}" -m url_switcher native-host', ""])
    path.write_text(content, encoding="utf-8")
    if platform != "win32":
        path.chmod(0o755)


# label -> (dir under ~/.config, dir under ~/Library/Application Support, HKCU key)
_BROWSERS: dict[str, tuple[str, str, str]] = {
    "chrome": ("google-chrome", "Google/Chrome", r"Software\Google\Chrome"),
    "chromium": ("chromium", "Chromium", r"Software\Chromium"),
    "brave": ("BraveSoftware/Brave-Browser", "BraveSoftware/Brave-Browser", r"Software\BraveSoftware\Brave-Browser"),
    "edge": ("microsoft-edge", "Microsoft Edge", r"Software\Microsoft\Edge"),
}
BROWSERS = tuple(_BROWSERS)


def _wanted_browsers(browsers: list[str] | None) -> list[str]:
    if not browsers:
        return list(_BROWSERS)
    wanted = {b.strip().lower() for b in browsers}
    return [label for label in _BROWSERS if label in wanted]


def _manifest_dirs(platform: str, home: Path, labels: list[str]) -> list[InstallTarget]:
    if platform == "darwin":
        base, column = home / "Library" / "Application Support", 1
    elif platform.startswith("linux"):
        base, column = home / ".config", 0
    else:
        return []
    return [
        InstallTarget(label, base.joinpath(*_BROWSERS[label][column].split("/")) / "NativeMessagingHosts")
        for label in labels
    ]


def _registry_key(label: str) -> str:
    return f"{_BROWSERS[label][2]}\\NativeMessagingHosts\\{HOST_NAME}"


def _write_manifest(path: Path, manifest: dict[str, object]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(manifest, indent=2) + "\n", encoding="utf-8")
    if os.name != "nt":
        # Chrome refuses group/world-writable host manifests.
        with contextlib.suppress(Exception):
            path.chmod(0o644)


def build_host_manifest(wrapper: Path, extension_ids: list[str]) -> dict[str, object]:
    return {
        "name": HOST_NAME,
        "description": HOST_DESCRIPTION,
        "path": str(wrapper),
        "type": "stdio",
        "allowed_origins": [f"chrome-extension://{ext_id}/" for ext_id in extension_ids],
    }


def install_native_host(
    extension_ids: list[str],
    *,
    browsers: list[str] | None = None,
    python_exe: str | None = None,
    platform: str | None = None,
    home: Path | None = None,
    wrapper_dir: Path | None = None,
) -> InstallReport:
    report = InstallReport()
    platform = platform or sys.platform
    home = home or Path.home()
    python_exe = python_exe or sys.executable

    ids: list[str] = []
    for raw in extension_ids:
        norm = normalize_extension_id(raw)
        if norm is None:
            report.errors.append(f"invalid extension id: {raw!r}")
        elif norm not in ids:
            ids.append(norm)
    if not ids:
        report.errors.append("no valid extension id given")
        return report

    wrapper_dir = wrapper_dir or _default_wrapper_dir(platform, home)
    wrapper = wrapper_dir / ("url-switcher-native-host.cmd" if platform == "win32" else "url-switcher-native-host")
    try:
        _write_wrapper(wrapper, python_exe=python_exe, platform=platform)
    except OSError as exc:
        report.errors.append(f"cannot write wrapper {wrapper}: {exc}")
        return report
    report.wrapper_path = str(wrapper)

    host_manifest = build_host_manifest(wrapper, ids)
    labels = _wanted_browsers(browsers)

    if platform == "win32":
        manifest_file = wrapper_dir / f"{HOST_NAME}.json"
        try:
            _write_manifest(manifest_file, host_manifest)
            import winreg  # type: ignore[import-not-found]
        except (OSError, ImportError) as exc:
            report.errors.append(f"cannot register {manifest_file}: {exc}")
            return report
        report.manifest_path = str(manifest_file)

        for label in labels:
            key = _registry_key(label)
            try:
                with winreg.CreateKey(winreg.HKEY_CURRENT_USER, key) as handle:
                    winreg.SetValueEx(handle, "", 0, winreg.REG_SZ, str(manifest_file))
            except OSError as exc:
                report.errors.append(f"{label}: registry write failed: {exc}")
            else:
                report.wrote.append(f"{label}:HKCU\\{key}")
        report.ok = bool(report.wrote)
        return report

    targets = _manifest_dirs(platform, home, labels)
    if not targets:
        report.errors.append(f"no install targets for platform {platform} (browsers={browsers})")
        return report

    for target in targets:
        out_path = target.path / f"{HOST_NAME}.json"
        try:
            _write_manifest(out_path, host_manifest)
        except OSError as exc:
            report.errors.append(f"{target.label}: failed to install: {exc}")
        else:
            report.wrote.append(f"{target.label}:{out_path}")

    report.ok = bool(report.wrote)
    if report.ok:
        _LOGGER.info("native_host_install_ok targets=%s", report.wrote)
    else:
        _LOGGER.warning("native_host_install_failed errors=%s", report.errors)
    return report


__all__ = [
    "BROWSERS",
    "HOST_NAME",
    "InstallReport",
    "InstallTarget",
    "build_host_manifest",
    "install_native_host",
    "normalize_extension_id",
]
