"""Wire envelopes exchanged between the controller plugin and the browser agent.

Wire shape is a flat JSON object:

- request:   {"id": 7, "action": "switchToURL", "url": "github.com"}
- response:  {"id": 7, "result": {...}}  or  {"id": 7, "error": "..."}
- keepalive: {"action": "ping"} / {"action": "pong"} (no id, never correlated)

Decoding is strict: an unknown action tag, a missing required field or a response carrying
both/neither of `result` and `error` raises `ProtocolAnomaly` instead of yielding a
half-populated envelope.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Union

from .errors import ProtocolAnomaly
from .url_match import normalize_url

ACTION_GET_TABS = "getTabs"
ACTION_SWITCH_TO_URL = "switchToURL"
ACTION_ACTIVATE_TAB = "activateTab"
ACTION_PING = "ping"
ACTION_PONG = "pong"


@dataclass(frozen=True, slots=True)
class GetTabs:
    action = ACTION_GET_TABS

    def to_fields(self) -> dict[str, Any]:
        return {}


@dataclass(frozen=True, slots=True)
class SwitchToURL:
    url: str
    action = ACTION_SWITCH_TO_URL

    def to_fields(self) -> dict[str, Any]:
        return {"url": self.url}


@dataclass(frozen=True, slots=True)
class ActivateTab:
    tab_id: int | str
    window_id: int | str | None = None
    action = ACTION_ACTIVATE_TAB

    def to_fields(self) -> dict[str, Any]:
        out: dict[str, Any] = {"tabId": self.tab_id}
        if self.window_id is not None:
            out["windowId"] = self.window_id
        return out


Payload = Union[GetTabs, SwitchToURL, ActivateTab]


@dataclass(frozen=True, slots=True)
class Request:
    id: int
    payload: Payload

    @property
    def action(self) -> str:
        return self.payload.action


@dataclass(frozen=True, slots=True)
class Response:
    id: int
    result: Any = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True, slots=True)
class Ping:
    pass


@dataclass(frozen=True, slots=True)
class Pong:
    pass


Envelope = Union[Request, Response, Ping, Pong]


def _coerce_id(raw: Any) -> int | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str) and raw.strip().isdigit():
        return int(raw.strip())
    return None


def _tab_ref(raw: Any) -> int | str | None:
    if isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, str) and raw.strip():
        return raw.strip()
    return None


def build_payload(action: str, fields: dict[str, Any], *, envelope_id: int | None = None) -> Payload:
    """Select the payload variant for `action`, validating its required fields."""
    if action == ACTION_GET_TABS:
        return GetTabs()
    if action == ACTION_SWITCH_TO_URL:
        url = fields.get("url")
        # An empty target would prefix-match the first open tab.
        if not isinstance(url, str) or not normalize_url(url):
            raise ProtocolAnomaly("switchToURL requires a non-empty url", envelope_id=envelope_id)
        return SwitchToURL(url=url.strip())
    if action == ACTION_ACTIVATE_TAB:
        tab_id = _tab_ref(fields.get("tabId"))
        if tab_id is None:
            raise ProtocolAnomaly("activateTab requires tabId", envelope_id=envelope_id)
        return ActivateTab(tab_id=tab_id, window_id=_tab_ref(fields.get("windowId")))
    raise ProtocolAnomaly(f"Unknown action: {action}", envelope_id=envelope_id)


def _error_text(raw: Any) -> str:
    if isinstance(raw, dict) and isinstance(raw.get("message"), str):
        return raw["message"]
    if isinstance(raw, str):
        return raw
    return json.dumps(raw, ensure_ascii=False)


def decode_envelope(raw: str | bytes | dict[str, Any]) -> Envelope:
    if isinstance(raw, (str, bytes)):
        try:
            obj = json.loads(raw)
        except (ValueError, UnicodeDecodeError) as exc:
            raise ProtocolAnomaly(f"envelope is not valid JSON: {exc}") from exc
    else:
        obj = raw
    if not isinstance(obj, dict):
        raise ProtocolAnomaly("envelope must be a JSON object")

    env_id = _coerce_id(obj.get("id"))
    action = obj.get("action")

    if action is not None:
        if not isinstance(action, str) or not action:
            raise ProtocolAnomaly("envelope action must be a non-empty string", envelope_id=env_id)
        if action == ACTION_PING:
            return Ping()
        if action == ACTION_PONG:
            return Pong()
        if env_id is None:
            raise ProtocolAnomaly(f"request {action!r} is missing an integer id")
        return Request(id=env_id, payload=build_payload(action, obj, envelope_id=env_id))

    if env_id is None:
        raise ProtocolAnomaly("response is missing an integer id")

    has_error = obj.get("error") is not None
    # Older agents answered getTabs with a bare `tabs` field.
    has_result = "result" in obj or "tabs" in obj
    if has_error and has_result:
        raise ProtocolAnomaly(f"response {env_id} carries both result and error")
    if has_error:
        return Response(id=env_id, error=_error_text(obj["error"]))
    if has_result:
        return Response(id=env_id, result=obj["result"] if "result" in obj else obj["tabs"])
    raise ProtocolAnomaly(f"response {env_id} carries neither result nor error")


def encode_envelope(env: Envelope) -> dict[str, Any]:
    if isinstance(env, Request):
        return {"id": env.id, "action": env.action, **env.payload.to_fields()}
    if isinstance(env, Response):
        if env.error is not None:
            return {"id": env.id, "error": env.error}
        return {"id": env.id, "result": env.result}
    if isinstance(env, Ping):
        return {"action": ACTION_PING}
    if isinstance(env, Pong):
        return {"action": ACTION_PONG}
    raise TypeError(f"not an envelope: {type(env).__name__}")


def dumps_envelope(env: Envelope) -> str:
    return json.dumps(encode_envelope(env), ensure_ascii=False, separators=(",", ":"))


__all__ = [
    "ACTION_ACTIVATE_TAB",
    "ACTION_GET_TABS",
    "ACTION_PING",
    "ACTION_PONG",
    "ACTION_SWITCH_TO_URL",
    "ActivateTab",
    "Envelope",
    "GetTabs",
    "Payload",
    "Ping",
    "Pong",
    "Request",
    "Response",
    "SwitchToURL",
    "build_payload",
    "decode_envelope",
    "dumps_envelope",
    "encode_envelope",
]
