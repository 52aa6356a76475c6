"""Request/response broker over one connection endpoint.

The broker owns its endpoint's event channel, its Pending-Request Table and its Liveness
Notifier. All of them are mutated only from the broker's control loop or from `send()`
running on the same event loop, so no locking is needed.

Two id spaces coexist on one connection: ids the broker allocated for its own requests
(answered by response envelopes) and ids the peer allocated for requests it sends us
(request envelopes, answered under the peer's id). Responses only ever touch the
pending table; peer requests only ever reach the request handler.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from collections.abc import Awaitable, Callable
from typing import Any

from .config import SwitcherConfig
from .endpoint import Connected, Disconnected, Endpoint, EndpointEvent, MessageReceived
from .envelope import (
    ACTION_PING,
    Envelope,
    Payload,
    Ping,
    Pong,
    Request,
    Response,
    build_payload,
    decode_envelope,
    dumps_envelope,
)
from .errors import PeerUnavailable, ProtocolAnomaly, SwitcherError
from .liveness import LivenessNotifier
from .pending import PendingTable

RequestHandler = Callable[[Request], Awaitable[Any]]


class Broker:
    def __init__(
        self,
        endpoint: Endpoint,
        *,
        request_timeout: float = 10.0,
        sweep_interval: float = 30.0,
        max_pending: int = 64,
        handler: RequestHandler | None = None,
        name: str = "broker",
    ) -> None:
        self.endpoint = endpoint
        self.request_timeout = float(request_timeout)
        self.sweep_interval = float(sweep_interval)
        self.pending = PendingTable(max_per_connection=max_pending)
        self.liveness = LivenessNotifier()
        self.name = name
        self._handler = handler
        self._logger = logging.getLogger(f"url_switcher.broker.{name}")
        self._loop_task: asyncio.Task | None = None
        self._sweep_task: asyncio.Task | None = None
        self._inflight: set[asyncio.Task] = set()

    @classmethod
    def from_config(
        cls,
        endpoint: Endpoint,
        config: SwitcherConfig,
        *,
        handler: RequestHandler | None = None,
        request_timeout: float | None = None,
        name: str = "broker",
    ) -> Broker:
        return cls(
            endpoint,
            request_timeout=config.request_timeout if request_timeout is None else request_timeout,
            sweep_interval=config.sweep_interval,
            max_pending=config.max_pending,
            handler=handler,
            name=name,
        )

    def set_handler(self, handler: RequestHandler | None) -> None:
        self._handler = handler

    def is_connected(self) -> bool:
        return self.endpoint.is_connected()

    # ─────────────────────────────────────────────────────────────────────────
    # Lifecycle
    # ─────────────────────────────────────────────────────────────────────────

    async def start(self) -> None:
        if self._loop_task is not None:
            return
        loop = asyncio.get_running_loop()
        self._loop_task = loop.create_task(self._run(), name=f"url-switcher-{self.name}-loop")
        self._sweep_task = loop.create_task(self._sweep_loop(), name=f"url-switcher-{self.name}-sweep")
        try:
            await self.endpoint.connect()
        except BaseException:
            await self._stop_tasks()
            raise

    async def close(self) -> None:
        await self.endpoint.close()
        failed = self.pending.fail_all(PeerUnavailable(f"{self.name} closed"))
        if failed:
            self._logger.warning("failed %d pending request(s) on close", failed)
        self.liveness.observe(False)
        await self._stop_tasks()

    async def _stop_tasks(self) -> None:
        tasks = [t for t in (self._loop_task, self._sweep_task, *self._inflight) if t is not None]
        self._loop_task = None
        self._sweep_task = None
        for task in tasks:
            task.cancel()
        for task in tasks:
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await task

    # ─────────────────────────────────────────────────────────────────────────
    # Outbound requests
    # ─────────────────────────────────────────────────────────────────────────

    async def send(self, action: str, payload: dict[str, Any] | None = None, *, timeout: float | None = None) -> Any:
        """Send `action` to the peer and wait for its result.

        Raises `PeerUnavailable` at once when no peer is connected (nothing is queued),
        `RequestTimeout` when the deadline passes, `PeerRejected` when the peer answers with
        an error. `ping` is fire-and-forget and returns None without a pending entry.
        """
        if action == ACTION_PING:
            await self._send_envelope(Ping())
            return None
        if not self.endpoint.is_connected():
            raise PeerUnavailable("peer not connected")
        return await self.send_payload(build_payload(action, payload or {}), timeout=timeout)

    async def send_payload(self, payload: Payload, *, timeout: float | None = None) -> Any:
        if not self.endpoint.is_connected():
            raise PeerUnavailable("peer not connected")
        rec = self.pending.register(
            action=payload.action,
            connection_id=self.endpoint.connection_id,
            timeout=self.request_timeout if timeout is None else timeout,
        )
        request = Request(id=rec.id, payload=payload)
        self._logger.debug("→ %s", dumps_envelope(request))
        try:
            await self.endpoint.send(dumps_envelope(request))
        except SwitcherError:
            self.pending.discard(rec.id)
            raise
        try:
            return await rec.future
        finally:
            self.pending.discard(rec.id)
            if rec.future.done() and not rec.future.cancelled():
                self._logger.debug("request %d (%s) settled in %.0fms", rec.id, rec.action, self._elapsed_ms(rec))

    @staticmethod
    def _elapsed_ms(rec: Any) -> float:
        return max(0.0, (time.monotonic() - rec.created_at) * 1000.0)

    async def _send_envelope(self, env: Envelope) -> None:
        await self.endpoint.send(dumps_envelope(env))

    # ─────────────────────────────────────────────────────────────────────────
    # Control loop
    # ─────────────────────────────────────────────────────────────────────────

    async def _run(self) -> None:
        while True:
            event = await self.endpoint.events.get()
            try:
                self._dispatch(event)
            except Exception:
                self._logger.exception("event dispatch failed: %r", event)

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self.sweep_interval)
            self.pending.sweep()

    def _dispatch(self, event: EndpointEvent) -> None:
        if isinstance(event, Connected):
            if self.endpoint.is_connected():
                self.liveness.observe(True)
            return
        if isinstance(event, Disconnected):
            failed = self.pending.fail_connection(
                event.connection_id, PeerUnavailable(f"peer disconnected ({event.reason or 'closed'})")
            )
            if failed:
                self._logger.warning("failed %d pending request(s) on connection %d", failed, event.connection_id)
            # A peer closed to make room for its replacement is not a loss of liveness.
            if not self.endpoint.is_connected() and not self.endpoint.handover_pending:
                self.liveness.observe(False)
            return
        if isinstance(event, MessageReceived):
            self._on_message(event)

    def _on_message(self, event: MessageReceived) -> None:
        try:
            env = decode_envelope(event.data)
        except ProtocolAnomaly as exc:
            self._logger.warning("dropping malformed envelope: %s", exc)
            if exc.envelope_id is not None:
                self._spawn(self._reply(event.connection_id, Response(id=exc.envelope_id, error=str(exc))))
            return

        if isinstance(env, Ping):
            self._logger.debug("Received keep-alive ping")
            self._spawn(self._reply(event.connection_id, Pong()))
            return
        if isinstance(env, Pong):
            self._logger.debug("Received pong")
            return
        if isinstance(env, Response):
            self._logger.debug("← %s", event.data)
            if not self.pending.resolve(env):
                self._logger.warning("Received response for unknown request ID: %s", env.id)
            elif env.error is not None:
                self._logger.error("Request %d failed: %s", env.id, env.error)
            return
        if isinstance(env, Request):
            self._spawn(self._serve(event.connection_id, env))

    async def _serve(self, connection_id: int, request: Request) -> None:
        handler = self._handler
        if handler is None:
            await self._reply(connection_id, Response(id=request.id, error=f"Unsupported action: {request.action}"))
            return
        try:
            result = await handler(request)
        except SwitcherError as exc:
            response = Response(id=request.id, error=str(exc))
        except Exception as exc:  # noqa: BLE001
            self._logger.exception("handler failed for %s", request.action)
            response = Response(id=request.id, error=str(exc) or type(exc).__name__)
        else:
            response = Response(id=request.id, result=result)
        await self._reply(connection_id, response)

    async def _reply(self, connection_id: int, env: Envelope) -> None:
        if connection_id != self.endpoint.connection_id:
            self._logger.warning("Cannot reply - connection %d is gone", connection_id)
            return
        try:
            await self._send_envelope(env)
        except PeerUnavailable as exc:
            self._logger.warning("Cannot reply - %s", exc)

    def _spawn(self, coro: Awaitable[None]) -> None:
        task = asyncio.ensure_future(coro)
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)


__all__ = ["Broker", "RequestHandler"]
