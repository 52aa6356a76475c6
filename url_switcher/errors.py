"""Error kinds surfaced by the broker, endpoints and agent."""

from __future__ import annotations


class SwitcherError(Exception):
    pass


class PeerUnavailable(SwitcherError):
    """No peer connected at send time, or the connection went away mid-request."""


class RequestTimeout(SwitcherError):
    """The request deadline elapsed with no response."""


class PeerRejected(SwitcherError):
    """The peer answered with an explicit error field."""


class ProtocolAnomaly(SwitcherError):
    """Malformed envelope or a response id with no pending entry.

    `envelope_id` is set only for request-shaped envelopes, which can still be answered
    with an error response.
    """

    def __init__(self, message: str, *, envelope_id: int | None = None) -> None:
        super().__init__(message)
        self.envelope_id = envelope_id


class TransportFailure(SwitcherError):
    """Bind, connect or socket error."""


class TabDirectoryError(SwitcherError):
    """The browser refused to list, activate or open a tab."""


__all__ = [
    "PeerRejected",
    "PeerUnavailable",
    "ProtocolAnomaly",
    "RequestTimeout",
    "SwitcherError",
    "TabDirectoryError",
    "TransportFailure",
]
