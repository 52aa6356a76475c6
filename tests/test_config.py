from __future__ import annotations

import pytest


def test_defaults_without_env(monkeypatch: pytest.MonkeyPatch) -> None:
    import os

    for key in list(os.environ):
        if key.startswith("URL_SWITCHER_"):
            monkeypatch.delenv(key, raising=False)

    from url_switcher.config import SwitcherConfig

    cfg = SwitcherConfig.from_env()
    assert cfg.port == 9334
    assert cfg.request_timeout == 10.0
    assert cfg.sweep_interval == 30.0
    assert cfg.reconnect_delay == 5.0
    assert cfg.keepalive_interval == 25.0
    assert cfg.max_pending == 64
    assert cfg.log_file is None
    assert cfg.ws_url == "ws://localhost:9334"


def test_env_overrides_are_clamped(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("URL_SWITCHER_PORT", "70000")
    monkeypatch.setenv("URL_SWITCHER_REQUEST_TIMEOUT", "0")
    monkeypatch.setenv("URL_SWITCHER_MAX_PENDING", "abc")
    monkeypatch.setenv("URL_SWITCHER_CONNECT_HOST", "  ")
    monkeypatch.setenv("URL_SWITCHER_LOG_LEVEL", "warn")
    monkeypatch.setenv("URL_SWITCHER_LOG_FILE", "/tmp/plugin.log")

    from url_switcher.config import SwitcherConfig

    cfg = SwitcherConfig.from_env()
    assert cfg.port == 65535
    assert cfg.request_timeout == 0.1
    assert cfg.max_pending == 64
    assert cfg.connect_host == "localhost"
    assert cfg.log_level == "WARNING"
    assert cfg.log_file == "/tmp/plugin.log"


def test_configure_logging_never_touches_stdout(capsys: pytest.CaptureFixture[str], tmp_path) -> None:
    import logging

    from url_switcher.config import SwitcherConfig
    from url_switcher.log import configure_logging

    log_file = tmp_path / "switcher.log"
    root = logging.getLogger()
    saved = (list(root.handlers), root.level)
    try:
        configure_logging(SwitcherConfig(log_file=str(log_file), log_level="DEBUG"))
        logging.getLogger("url_switcher.test").info("hello from test")
        for handler in logging.getLogger().handlers:
            handler.flush()
        out = capsys.readouterr()
        assert out.out == ""
        assert "hello from test" in log_file.read_text(encoding="utf-8")
        assert logging.getLogger("websockets").level == logging.WARNING
    finally:
        for handler in list(root.handlers):
            root.removeHandler(handler)
            if handler not in saved[0]:
                handler.close()
        for handler in saved[0]:
            root.addHandler(handler)
        root.setLevel(saved[1])
