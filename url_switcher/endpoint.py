"""Connection endpoint state machine and the typed event channel it feeds.

Endpoints never call back into their owner. Every transition and inbound message becomes
an event on `Endpoint.events`, which the owning broker drains from its single control loop:

    Disconnected -> Connecting -> Connected -> Disconnected

Each established connection gets a fresh `connection_id`, so work attributed to a connection
that has since been replaced can be told apart from work on the live one.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass
from typing import Union


class ConnectionState(str, enum.Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"


@dataclass(frozen=True, slots=True)
class Connected:
    connection_id: int


@dataclass(frozen=True, slots=True)
class Disconnected:
    connection_id: int
    reason: str = ""


@dataclass(frozen=True, slots=True)
class MessageReceived:
    connection_id: int
    data: str


EndpointEvent = Union[Connected, Disconnected, MessageReceived]


class Endpoint:
    """Base for the listener, dialer and stdio variants."""

    def __init__(self) -> None:
        self.events: asyncio.Queue[EndpointEvent] = asyncio.Queue()
        self._state = ConnectionState.DISCONNECTED
        self._connection_id = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connection_id(self) -> int:
        """Id of the live connection (or of the last one, once it is gone)."""
        return self._connection_id

    def is_connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def handover_pending(self) -> bool:
        """True while a new peer is taking over from the current one."""
        return False

    def _set_state(self, state: ConnectionState) -> None:
        self._state = state

    def _opened(self) -> int:
        self._connection_id += 1
        self._state = ConnectionState.CONNECTED
        self.events.put_nowait(Connected(self._connection_id))
        return self._connection_id

    def _closed(self, connection_id: int, reason: str = "") -> None:
        self.events.put_nowait(Disconnected(connection_id, reason))

    def _received(self, connection_id: int, data: str | bytes) -> None:
        if isinstance(data, (bytes, bytearray)):
            data = bytes(data).decode("utf-8", errors="replace")
        self.events.put_nowait(MessageReceived(connection_id, data))

    async def connect(self) -> None:
        raise NotImplementedError

    async def send(self, data: str) -> None:
        raise NotImplementedError

    async def close(self) -> None:
        raise NotImplementedError


__all__ = [
    "Connected",
    "ConnectionState",
    "Disconnected",
    "Endpoint",
    "EndpointEvent",
    "MessageReceived",
]
