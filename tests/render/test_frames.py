"""Tests for the chat-stream frame decoder."""

import json

from storyteller.models import DoneFrame, ErrorFrame, TextFrame
from storyteller.render import FrameDecoder, decode_stream, encode_frame, parse_line


async def _chunks(parts, reads=None):
    for part in parts:
        if reads is not None:
            reads.append(part)
        yield part.encode("utf-8") if isinstance(part, str) else part


async def _collect(parts, cancel=None, reads=None):
    return [f async for f in decode_stream(_chunks(parts, reads), cancel)]


# ── parse_line ─────────────────────────────────────────────


def test_parse_text_line():
    assert parse_line('data: {"text":"Hello "}') == [TextFrame(delta="Hello ")]


def test_parse_error_line():
    assert parse_line('data: {"error":"rate limited"}') == [ErrorFrame(message="rate limited")]


def test_parse_done_with_full_text():
    frames = parse_line('data: {"done":true,"fullText":"Hello world"}')
    assert frames == [DoneFrame(full_text="Hello world")]


def test_parse_done_without_full_text():
    assert parse_line('data: {"done":true}') == [DoneFrame(full_text=None)]


def test_parse_text_and_done_in_one_payload():
    frames = parse_line('data: {"text":"end","done":true}')
    assert [f.kind for f in frames] == ["text", "done"]


def test_malformed_json_skipped():
    assert parse_line('data: {"text": "unterminated') == []


def test_non_data_lines_ignored():
    assert parse_line("") == []
    assert parse_line("event: message") == []
    assert parse_line(": keep-alive") == []


def test_carriage_return_tolerated():
    assert parse_line('data: {"text":"a"}\r') == [TextFrame(delta="a")]


# ── FrameDecoder ───────────────────────────────────────────


def test_partial_line_buffered_across_reads():
    decoder = FrameDecoder()
    assert decoder.feed(b'data: {"te') == []
    assert decoder.feed(b'xt":"Hel') == []
    assert decoder.feed(b'lo"}\ndata: {"text":" there"}\n') == [
        TextFrame(delta="Hello"),
        TextFrame(delta=" there"),
    ]


def test_multibyte_character_split_across_reads():
    payload = 'data: {"text":"밤이 깊었다"}\n'.encode("utf-8")
    split = payload.index("깊".encode("utf-8")) + 1  # inside the 3-byte sequence
    decoder = FrameDecoder()
    frames = decoder.feed(payload[:split]) + decoder.feed(payload[split:])
    assert frames == [TextFrame(delta="밤이 깊었다")]


def test_bad_frame_does_not_abort_stream():
    decoder = FrameDecoder()
    frames = decoder.feed(
        'data: {"text":"a"}\n'
        "data: not json\n"
        'data: {"text":"b"}\n'
    )
    assert frames == [TextFrame(delta="a"), TextFrame(delta="b")]


def test_nothing_consumed_after_error():
    decoder = FrameDecoder()
    frames = decoder.feed(
        'data: {"text":"a"}\n'
        'data: {"error":"boom"}\n'
        'data: {"text":"ignored"}\n'
    )
    assert frames == [TextFrame(delta="a"), ErrorFrame(message="boom")]
    assert decoder.finished
    assert decoder.feed('data: {"text":"later"}\n') == []
    assert decoder.flush() == []


def test_flush_decodes_final_unterminated_line():
    decoder = FrameDecoder()
    assert decoder.feed('data: {"done":true,"fullText":"x"}') == []
    assert decoder.flush() == [DoneFrame(full_text="x")]


# ── decode_stream ──────────────────────────────────────────


async def test_decode_stream_hello_world():
    frames = await _collect([
        'data: {"text":"Hello "}\n',
        'data: {"text":"world"}\n',
        'data: {"done":true,"fullText":"Hello world"}\n',
    ])
    assert frames == [
        TextFrame(delta="Hello "),
        TextFrame(delta="world"),
        DoneFrame(full_text="Hello world"),
    ]


async def test_decode_stream_stops_reading_after_done():
    reads: list = []
    frames = await _collect(
        ['data: {"done":true}\n', 'data: {"text":"never read"}\n'],
        reads=reads,
    )
    assert frames == [DoneFrame()]
    assert len(reads) == 1


async def test_decode_stream_honours_cancel():
    class Token:
        def __init__(self):
            self.flag = False

        def is_set(self):
            return self.flag

    token = Token()
    frames = []
    async for frame in decode_stream(
        _chunks(['data: {"text":"a"}\n', 'data: {"text":"b"}\n', 'data: {"done":true}\n']),
        token,
    ):
        frames.append(frame)
        token.flag = True
    assert frames == [TextFrame(delta="a")]


# ── encode_frame ───────────────────────────────────────────


def test_encode_frame_wire_format():
    line = encode_frame(DoneFrame(full_text="미라"))
    assert line.startswith("data: ")
    assert line.endswith("\n")
    assert json.loads(line[len("data: "):]) == {"done": True, "fullText": "미라"}
    assert "미라" in line  # not \u-escaped
