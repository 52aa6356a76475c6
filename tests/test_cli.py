from __future__ import annotations

import asyncio
import socket

import pytest


def _free_port() -> int:
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        return int(s.getsockname()[1])


def test_plugin_exits_with_status_2_when_port_is_taken() -> None:
    from url_switcher.config import SwitcherConfig
    from url_switcher.main import EXIT_BIND_FAILED, run_plugin
    from url_switcher.streamdeck import StreamDeckArgs

    port = _free_port()
    blocker = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    blocker.bind(("127.0.0.1", port))
    blocker.listen(1)
    try:
        code = asyncio.run(run_plugin(SwitcherConfig(host="127.0.0.1", port=port), StreamDeckArgs()))
    finally:
        blocker.close()
    assert code == EXIT_BIND_FAILED == 2


def test_plugin_parser_accepts_host_style_arguments() -> None:
    from url_switcher.main import _plugin_parser

    ns, unknown = _plugin_parser().parse_known_args(
        ["-port", "28196", "-pluginUUID", "U", "-registerEvent", "registerPlugin", "-info", "{}", "-extra", "x"]
    )
    assert ns.port == 28196
    assert ns.plugin_uuid == "U"
    assert ns.register_event == "registerPlugin"
    assert ns.info == "{}"
    assert ns.dial is False
    assert unknown == ["-extra", "x"]


def test_umbrella_command_rejects_unknown_subcommand(capsys: pytest.CaptureFixture[str]) -> None:
    from url_switcher.main import main

    with pytest.raises(SystemExit) as excinfo:
        main(["frobnicate"])
    assert excinfo.value.code == 2
    assert "unknown command" in capsys.readouterr().err


def test_install_command_requires_extension_id() -> None:
    from url_switcher.main import install_main

    with pytest.raises(SystemExit) as excinfo:
        install_main([])
    assert excinfo.value.code == 2
