"""Length-prefixed JSON framing (Chrome Native Messaging profile).

Each frame is a 4-byte little-endian unsigned length followed by that many bytes of UTF-8
JSON. Streams deliver arbitrary chunks, so `FrameDecoder` accumulates partial frames and
yields every complete frame available after each `feed()`.
"""

from __future__ import annotations

import json
import struct
from typing import Any

from .errors import ProtocolAnomaly

HEADER_SIZE = 4
DEFAULT_MAX_FRAME_BYTES = 1_000_000

_HEADER = struct.Struct("<I")


def encode_frame(body: str | bytes) -> bytes:
    raw = body.encode("utf-8") if isinstance(body, str) else bytes(body)
    return _HEADER.pack(len(raw)) + raw


def encode_json_frame(msg: dict[str, Any]) -> bytes:
    return encode_frame(json.dumps(msg, ensure_ascii=False, separators=(",", ":")))


class FrameDecoder:
    def __init__(self, *, max_frame_bytes: int = DEFAULT_MAX_FRAME_BYTES) -> None:
        self._buf = bytearray()
        self._max = int(max_frame_bytes)

    @property
    def buffered(self) -> int:
        return len(self._buf)

    def feed(self, chunk: bytes) -> list[str]:
        """Append `chunk` and return the decoded text of every complete frame.

        An oversized length header cannot be resynchronised, so it raises `ProtocolAnomaly`
        and the buffer is dropped.
        """
        if chunk:
            self._buf.extend(chunk)
        frames: list[str] = []
        while len(self._buf) >= HEADER_SIZE:
            (length,) = _HEADER.unpack_from(self._buf, 0)
            if length > self._max:
                self._buf.clear()
                raise ProtocolAnomaly(f"frame length {length} exceeds limit {self._max}")
            end = HEADER_SIZE + length
            if len(self._buf) < end:
                break
            raw = bytes(self._buf[HEADER_SIZE:end])
            del self._buf[:end]
            try:
                frames.append(raw.decode("utf-8"))
            except UnicodeDecodeError:
                # One bad body does not poison the frames after it.
                frames.append("")
        return frames


__all__ = ["DEFAULT_MAX_FRAME_BYTES", "HEADER_SIZE", "FrameDecoder", "encode_frame", "encode_json_frame"]
