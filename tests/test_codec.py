"""Tests for SSE framing of the chat event feed."""

import json

import pytest

from agent_gateway.exceptions import DecodeError
from agent_gateway.streaming.codec import SSEDecoder, decode, encode
from agent_gateway.streaming.events import (
    ChunkEvent,
    CompleteEvent,
    ConnectedEvent,
    ErrorEvent,
    ParseErrorEvent,
    utc_timestamp,
)


class TestEncode:
    """Frames are ``data: <compact json>`` plus a blank line."""

    def test_connected_frame_bytes(self):
        frame = encode(ConnectedEvent(sessionId="session-1-abc"))
        assert frame == 'data: {"type":"connected","sessionId":"session-1-abc"}\n\n'

    def test_error_frame_bytes(self):
        assert encode(ErrorEvent(error="boom")) == 'data: {"type":"error","error":"boom"}\n\n'

    def test_chunk_frame_is_single_line_even_with_newlines(self):
        frame = encode(ChunkEvent(content="line one\nline two", timestamp="2024-01-01T00:00:00.000Z"))
        body = frame[len("data: "):-2]
        assert "\n" not in body
        assert json.loads(body)["content"] == "line one\nline two"

    def test_encoding_is_deterministic(self):
        event = CompleteEvent(content="done", sessionId="s", timestamp="2024-01-01T00:00:00.000Z")
        assert encode(event) == encode(event)

    def test_timestamp_format(self):
        stamp = utc_timestamp()
        assert stamp.endswith("Z")
        assert len(stamp.split(".")[-1]) == 4  # three digits of milliseconds plus Z


class TestDecode:
    """Single-frame parsing."""

    def test_decode_inverts_encode(self):
        event = ChunkEvent(content="héllo ✓", timestamp="2024-01-01T00:00:00.000Z")
        assert decode(encode(event)) == event

    def test_multi_line_data_is_joined(self):
        event = decode('data: {"type":"error",\ndata: "error":"x"}\n\n')
        assert event == ErrorEvent(error="x")

    def test_other_fields_and_comments_are_ignored(self):
        event = decode(': keep-alive\nevent: message\nid: 3\ndata: {"type":"error","error":"x"}')
        assert isinstance(event, ErrorEvent)

    @pytest.mark.parametrize(
        "frame",
        [
            ": just a comment",
            "data: not json",
            "data: [1, 2]",
            'data: {"type":"mystery"}',
            'data: {"type":"chunk"}',
        ],
    )
    def test_malformed_frames_raise(self, frame):
        with pytest.raises(DecodeError):
            decode(frame)

    @pytest.mark.parametrize(
        "payload, expected",
        [
            ('{"type":"mystery"}', "Unknown event type: 'mystery'"),
            ('{"content":"no type"}', "Unknown event type: None"),
            ('{"type":"complete","content":"x"}', "Invalid complete event: 1 validation error(s)"),
        ],
    )
    def test_event_type_selects_the_model(self, payload, expected):
        with pytest.raises(DecodeError) as exc_info:
            decode(f"data: {payload}")
        assert exc_info.value.message == expected

    def test_each_type_decodes_to_its_class(self):
        assert isinstance(decode('data: {"type":"connected","sessionId":"s"}'), ConnectedEvent)
        assert isinstance(decode('data: {"type":"chunk","content":"a"}'), ChunkEvent)
        assert isinstance(decode('data: {"type":"complete","content":"a","sessionId":"s"}'), CompleteEvent)


class TestSSEDecoder:
    """Incremental decoding across arbitrary read boundaries."""

    def _feed_all(self, decoder, parts):
        events = []
        for part in parts:
            events.extend(decoder.feed(part))
        events.extend(decoder.flush())
        return events

    def test_frame_split_across_reads(self):
        wire = encode(ErrorEvent(error="split"))
        decoder = SSEDecoder()

        assert decoder.feed(wire[:10]) == []
        assert decoder.feed(wire[10:]) == [ErrorEvent(error="split")]

    def test_byte_by_byte_feed_of_many_frames(self):
        events = [
            ConnectedEvent(sessionId="s"),
            ChunkEvent(content="Hi ☃", timestamp="2024-01-01T00:00:00.000Z"),
            CompleteEvent(content="Hi ☃", sessionId="s", timestamp="2024-01-01T00:00:00.000Z"),
        ]
        wire = "".join(encode(e) for e in events).encode("utf-8")

        decoded = self._feed_all(SSEDecoder(), [wire[i:i + 1] for i in range(len(wire))])

        assert decoded == events

    def test_crlf_line_endings(self):
        wire = 'data: {"type":"error","error":"a"}\r\n\r\ndata: {"type":"error","error":"b"}\r\n\r\n'
        decoder = SSEDecoder()
        decoded = self._feed_all(decoder, [wire[:37], wire[37:38], wire[38:]])
        assert decoded == [ErrorEvent(error="a"), ErrorEvent(error="b")]

    def test_malformed_frame_does_not_stop_the_feed(self):
        wire = 'data: {broken\n\ndata: {"type":"error","error":"after"}\n\n'
        decoded = self._feed_all(SSEDecoder(), [wire])

        assert isinstance(decoded[0], ParseErrorEvent)
        assert decoded[0].raw == "data: {broken"
        assert decoded[1] == ErrorEvent(error="after")

    def test_comment_frames_are_skipped(self):
        wire = ': ping\n\ndata: {"type":"error","error":"x"}\n\n'
        assert self._feed_all(SSEDecoder(), [wire]) == [ErrorEvent(error="x")]

    def test_flush_decodes_unterminated_last_frame(self):
        decoder = SSEDecoder()
        assert decoder.feed('data: {"type":"error","error":"tail"}') == []
        assert decoder.flush() == [ErrorEvent(error="tail")]
        assert decoder.flush() == []
