from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_PORT = 9334
DEFAULT_CDP_PORT = 9222


def _float_env(name: str, *, default: float, lo: float, hi: float) -> float:
    try:
        val = float(os.environ.get(name) or default)
    except Exception:
        val = default
    return max(lo, min(val, hi))


def _int_env(name: str, *, default: int, lo: int, hi: int) -> int:
    try:
        val = int(os.environ.get(name) or default)
    except Exception:
        val = default
    return max(lo, min(val, hi))


def _str_env(name: str, *, default: str) -> str:
    raw = (os.environ.get(name) or "").strip()
    return raw or default


@dataclass
class SwitcherConfig:
    host: str = "127.0.0.1"
    port: int = DEFAULT_PORT
    connect_host: str = "localhost"
    request_timeout: float = 10.0
    sweep_interval: float = 30.0
    stale_after: float = 30.0
    reconnect_delay: float = 5.0
    keepalive_interval: float = 25.0
    max_pending: int = 64
    max_frame_bytes: int = 1_000_000
    cdp_port: int = DEFAULT_CDP_PORT
    log_file: str | None = None
    log_level: str = "INFO"

    @property
    def ws_url(self) -> str:
        return f"ws://{self.connect_host}:{int(self.port)}"

    @staticmethod
    def normalize_log_level(raw: str | None) -> str:
        level = (raw or "").strip().upper()
        if level in {"WARN", "WARNING"}:
            return "WARNING"
        if level in {"DEBUG", "INFO", "ERROR", "CRITICAL"}:
            return level
        return "INFO"

    @classmethod
    def from_env(cls) -> SwitcherConfig:
        log_file = (os.environ.get("URL_SWITCHER_LOG_FILE") or "").strip() or None
        return cls(
            host=_str_env("URL_SWITCHER_HOST", default="127.0.0.1"),
            port=_int_env("URL_SWITCHER_PORT", default=DEFAULT_PORT, lo=1, hi=65535),
            connect_host=_str_env("URL_SWITCHER_CONNECT_HOST", default="localhost"),
            request_timeout=_float_env("URL_SWITCHER_REQUEST_TIMEOUT", default=10.0, lo=0.1, hi=300.0),
            sweep_interval=_float_env("URL_SWITCHER_SWEEP_INTERVAL", default=30.0, lo=0.05, hi=600.0),
            stale_after=_float_env("URL_SWITCHER_STALE_AFTER", default=30.0, lo=0.1, hi=600.0),
            reconnect_delay=_float_env("URL_SWITCHER_RECONNECT_DELAY", default=5.0, lo=0.01, hi=300.0),
            keepalive_interval=_float_env("URL_SWITCHER_KEEPALIVE_INTERVAL", default=25.0, lo=0.01, hi=600.0),
            max_pending=_int_env("URL_SWITCHER_MAX_PENDING", default=64, lo=1, hi=10_000),
            max_frame_bytes=_int_env("URL_SWITCHER_MAX_FRAME_BYTES", default=1_000_000, lo=1024, hi=64_000_000),
            cdp_port=_int_env("URL_SWITCHER_CDP_PORT", default=DEFAULT_CDP_PORT, lo=1, hi=65535),
            log_file=log_file,
            log_level=cls.normalize_log_level(os.environ.get("URL_SWITCHER_LOG_LEVEL")),
        )


__all__ = ["DEFAULT_CDP_PORT", "DEFAULT_PORT", "SwitcherConfig"]
