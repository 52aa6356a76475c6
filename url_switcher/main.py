"""Process entry points: controller plugin, browser agent, native host relay, installer."""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import signal
import sys
from collections.abc import Sequence

from .agent import BrowserAgent
from .broker import Broker
from .cdp_tabs import CdpTabDirectory
from .config import SwitcherConfig
from .dialer import DialerEndpoint
from .errors import TransportFailure
from .installer import BROWSERS, install_native_host
from .listener import ListenerEndpoint
from .log import configure_logging, install_loop_exception_handler
from .native_host import NativeHostRelay
from .plugin import ControllerPlugin
from .streamdeck import NullButtonHost, StreamDeckArgs, StreamDeckConnection

_LOGGER = logging.getLogger("url_switcher.main")

EXIT_BIND_FAILED = 2


def _install_stop_signals(stop: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        with contextlib.suppress(NotImplementedError, RuntimeError, ValueError):
            loop.add_signal_handler(sig, stop.set)


def _run(coro) -> int:
    try:
        return int(asyncio.run(coro) or 0)
    except KeyboardInterrupt:
        return 0


# ─────────────────────────────────────────────────────────────────────────────
# Controller plugin
# ─────────────────────────────────────────────────────────────────────────────


def _plugin_parser() -> argparse.ArgumentParser:
    # The controller host passes single-dash long options.
    p = argparse.ArgumentParser(prog="url-switcher-plugin", allow_abbrev=False)
    p.add_argument("-port", type=int, default=None)
    p.add_argument("-pluginUUID", dest="plugin_uuid", default=None)
    p.add_argument("-registerEvent", dest="register_event", default=None)
    p.add_argument("-info", default=None)
    p.add_argument(
        "--dial",
        action="store_true",
        help="connect out to a native host relay instead of listening for the browser",
    )
    return p


async def run_plugin(config: SwitcherConfig, args: StreamDeckArgs, *, dial: bool = False) -> int:
    install_loop_exception_handler()
    if dial:
        endpoint = DialerEndpoint(
            config.ws_url,
            reconnect_delay=config.reconnect_delay,
            keepalive_interval=config.keepalive_interval,
            max_size=config.max_frame_bytes,
        )
    else:
        endpoint = ListenerEndpoint(host=config.host, port=config.port, max_size=config.max_frame_bytes)
    broker = Broker.from_config(endpoint, config, name="browser")

    host = StreamDeckConnection(args) if args.complete else NullButtonHost()
    plugin = ControllerPlugin(broker, host)
    if not args.complete:
        _LOGGER.error("Missing required Stream Deck connection arguments: %s", ", ".join(args.missing()))

    try:
        await broker.start()
    except TransportFailure as exc:
        _LOGGER.error("Failed to start: %s", exc)
        plugin.close()
        return EXIT_BIND_FAILED

    stop = asyncio.Event()
    _install_stop_signals(stop)
    waiters = [asyncio.ensure_future(stop.wait())]
    if isinstance(host, StreamDeckConnection):
        waiters.append(asyncio.ensure_future(host.run(plugin.handle_event)))
    try:
        done, _pending = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            if not task.cancelled() and task.exception() is not None:
                _LOGGER.error("Stream Deck connection failed", exc_info=task.exception())
    finally:
        for task in waiters:
            task.cancel()
        plugin.close()
        if isinstance(host, StreamDeckConnection):
            await host.close()
        await broker.close()
    return 0


def plugin_main(argv: Sequence[str] | None = None) -> None:
    ns, unknown = _plugin_parser().parse_known_args(argv)
    config = SwitcherConfig.from_env()
    configure_logging(config)
    if unknown:
        _LOGGER.debug("ignoring unknown arguments: %s", unknown)
    args = StreamDeckArgs(
        port=ns.port,
        plugin_uuid=ns.plugin_uuid,
        register_event=ns.register_event,
        info=StreamDeckArgs.parse_info(ns.info),
    )
    _LOGGER.info(
        "Connection params - port: %s, uuid: %s, event: %s, info: %s",
        args.port,
        args.plugin_uuid,
        args.register_event,
        bool(args.info),
    )
    raise SystemExit(_run(run_plugin(config, args, dial=ns.dial)))


# ─────────────────────────────────────────────────────────────────────────────
# Browser agent
# ─────────────────────────────────────────────────────────────────────────────


async def run_agent(config: SwitcherConfig) -> int:
    install_loop_exception_handler()
    endpoint = DialerEndpoint(
        config.ws_url,
        reconnect_delay=config.reconnect_delay,
        keepalive_interval=config.keepalive_interval,
        max_size=config.max_frame_bytes,
    )
    broker = Broker.from_config(endpoint, config, name="controller")
    agent = BrowserAgent(CdpTabDirectory(port=config.cdp_port), liveness=broker.liveness)
    broker.set_handler(agent.handle)

    stop = asyncio.Event()
    _install_stop_signals(stop)
    await broker.start()
    _LOGGER.info("Agent started, controller at %s, DevTools on port %d", config.ws_url, config.cdp_port)
    try:
        await stop.wait()
    finally:
        await broker.close()
    return 0


def agent_main(argv: Sequence[str] | None = None) -> None:
    p = argparse.ArgumentParser(prog="url-switcher-agent", description="Browser-side URL switcher agent.")
    p.add_argument("--cdp-port", type=int, default=None, help="Chromium remote debugging port")
    ns = p.parse_args(argv)
    config = SwitcherConfig.from_env()
    if ns.cdp_port:
        config.cdp_port = int(ns.cdp_port)
    configure_logging(config)
    raise SystemExit(_run(run_agent(config)))


# ─────────────────────────────────────────────────────────────────────────────
# Native host relay
# ─────────────────────────────────────────────────────────────────────────────


async def run_native_host(config: SwitcherConfig) -> int:
    install_loop_exception_handler()
    relay = NativeHostRelay(config)
    stop = asyncio.Event()
    _install_stop_signals(stop)
    try:
        await relay.run(stop)
    except TransportFailure as exc:
        _LOGGER.error("Failed to start: %s", exc)
        return EXIT_BIND_FAILED
    _LOGGER.info("Native host stopped")
    return 0


def native_host_main(argv: Sequence[str] | None = None) -> None:
    argparse.ArgumentParser(
        prog="url-switcher-native-host",
        description="Chrome Native Messaging host relaying to the controller plugin.",
    ).parse_known_args(argv)
    config = SwitcherConfig.from_env()
    configure_logging(config)
    raise SystemExit(_run(run_native_host(config)))


# ─────────────────────────────────────────────────────────────────────────────
# Installer
# ─────────────────────────────────────────────────────────────────────────────


def install_main(argv: Sequence[str] | None = None) -> None:
    p = argparse.ArgumentParser(prog="url-switcher-install", description="Register the native messaging host.")
    p.add_argument("--extension-id", action="append", required=True, help="extension id (repeatable)")
    p.add_argument(
        "--browser",
        action="append",
        default=None,
        choices=list(BROWSERS),
        help="limit to one browser (repeatable; default: all)",
    )
    ns = p.parse_args(argv)
    configure_logging(SwitcherConfig.from_env())
    report = install_native_host(ns.extension_id, browsers=ns.browser)
    print(
        json.dumps(
            {
                "ok": report.ok,
                "wrote": report.wrote,
                "errors": report.errors,
                "manifest": report.manifest_path,
                "wrapper": report.wrapper_path,
            },
            indent=2,
        )
    )
    raise SystemExit(0 if report.ok else 1)


# ─────────────────────────────────────────────────────────────────────────────
# Umbrella command
# ─────────────────────────────────────────────────────────────────────────────

_COMMANDS = {
    "plugin": plugin_main,
    "agent": agent_main,
    "native-host": native_host_main,
    "install": install_main,
}


def main(argv: Sequence[str] | None = None) -> None:
    argv = list(sys.argv[1:] if argv is None else argv)
    if not argv:
        print(f"usage: url-switcher {{{','.join(_COMMANDS)}}} [args...]", file=sys.stderr)
        raise SystemExit(2)
    command, rest = argv[0], argv[1:]
    if command in {"-h", "--help"}:
        print(f"usage: url-switcher {{{','.join(_COMMANDS)}}} [args...]")
        raise SystemExit(0)
    entry = _COMMANDS.get(command)
    if entry is None:
        print(f"url-switcher: unknown command {command!r} (choose from {', '.join(_COMMANDS)})", file=sys.stderr)
        raise SystemExit(2)
    entry(rest)


__all__ = ["agent_main", "install_main", "main", "native_host_main", "plugin_main", "run_agent", "run_plugin"]
