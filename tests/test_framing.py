from __future__ import annotations

import struct

import pytest


def test_encode_frame_uses_utf8_byte_length() -> None:
    from url_switcher.framing import encode_frame

    frame = encode_frame('{"t":"é"}')
    (length,) = struct.unpack("<I", frame[:4])
    assert length == len('{"t":"é"}'.encode())
    assert frame[4:].decode("utf-8") == '{"t":"é"}'


def test_decoder_accumulates_partial_frames() -> None:
    from url_switcher.framing import FrameDecoder, encode_json_frame

    frame = encode_json_frame({"id": 1, "action": "getTabs"})
    dec = FrameDecoder()
    assert dec.feed(frame[:2]) == []
    assert dec.feed(frame[2:7]) == []
    assert dec.buffered == 7
    out = dec.feed(frame[7:])
    assert out == ['{"id":1,"action":"getTabs"}']
    assert dec.buffered == 0


def test_decoder_yields_multiple_frames_from_one_chunk() -> None:
    from url_switcher.framing import FrameDecoder, encode_json_frame

    a = encode_json_frame({"id": 1, "result": []})
    b = encode_json_frame({"action": "ping"})
    c = encode_json_frame({"id": 2, "error": "x"})
    dec = FrameDecoder()
    out = dec.feed(a + b + c[:3])
    assert out == ['{"id":1,"result":[]}', '{"action":"ping"}']
    assert dec.feed(c[3:]) == ['{"id":2,"error":"x"}']


def test_decoder_rejects_oversized_frame_and_resets() -> None:
    from url_switcher.errors import ProtocolAnomaly
    from url_switcher.framing import FrameDecoder, encode_frame

    dec = FrameDecoder(max_frame_bytes=16)
    with pytest.raises(ProtocolAnomaly):
        dec.feed(struct.pack("<I", 1000) + b"{}")
    assert dec.buffered == 0
    assert dec.feed(encode_frame("{}")) == ["{}"]


def test_decoder_keeps_going_after_bad_utf8_body() -> None:
    from url_switcher.framing import FrameDecoder, encode_frame

    dec = FrameDecoder()
    out = dec.feed(encode_frame(b"\xff\xfe") + encode_frame("{}"))
    assert out == ["", "{}"]
