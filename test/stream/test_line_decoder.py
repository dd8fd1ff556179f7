"""Unit tests for the NDJSON line decoder."""

from ralph_loop.stream.decoder import LineDecoder

STREAM = (
    '{"type":"ping"}\n'
    '{"type":"stream_event","event":{"type":"content_block_delta","index":0,'
    '"delta":{"type":"text_delta","text":"café → ok"}}}\n'
    '{"type":"result","subtype":"success"}\n'
).encode("utf-8")


def _decode_in_chunks(data: bytes, size: int):
    decoder = LineDecoder()
    lines = []
    for start in range(0, len(data), size):
        lines.extend(decoder.feed(data[start : start + size]))
    lines.extend(decoder.close())
    return lines


class TestLineDecoder:
    """Tests for splitting byte chunks into lines."""

    def test_single_chunk(self):
        decoder = LineDecoder()
        assert list(decoder.feed(b'{"a":1}\n{"b":2}\n')) == ['{"a":1}', '{"b":2}']
        assert list(decoder.close()) == []

    def test_partial_line_is_buffered(self):
        decoder = LineDecoder()
        assert list(decoder.feed(b'{"a":')) == []
        assert list(decoder.feed(b"1}\n")) == ['{"a":1}']

    def test_chunk_boundaries_do_not_change_lines(self):
        """Every chunk size, including splits inside multi-byte characters, gives the same lines."""
        expected = _decode_in_chunks(STREAM, len(STREAM))
        assert len(expected) == 3
        for size in range(1, 40):
            assert _decode_in_chunks(STREAM, size) == expected

    def test_crlf_is_stripped(self):
        decoder = LineDecoder()
        assert list(decoder.feed(b"one\r\ntwo\r\n")) == ["one", "two"]

    def test_empty_lines_are_yielded(self):
        decoder = LineDecoder()
        assert list(decoder.feed(b"a\n\nb\n")) == ["a", "", "b"]

    def test_close_flushes_trailing_line(self):
        decoder = LineDecoder()
        assert list(decoder.feed(b'{"type":"ping"}')) == []
        assert list(decoder.close()) == ['{"type":"ping"}']
        assert list(decoder.close()) == []

    def test_close_drops_whitespace_remainder(self):
        decoder = LineDecoder()
        list(decoder.feed(b"line\n  \t"))
        assert list(decoder.close()) == []

    def test_invalid_utf8_is_replaced(self):
        decoder = LineDecoder()
        assert list(decoder.feed(b"bad \xff byte\n")) == ["bad � byte"]

    def test_long_line_across_many_chunks(self):
        payload = '{"type":"stream_event","event":{"type":"content_block_delta","partial_json":"' + "x" * 200000 + '"}}'
        data = (payload + "\n" + '{"type":"ping"}\n').encode("utf-8")
        decoder = LineDecoder()
        lines = []
        for start in range(0, len(data), 1000):
            lines.extend(decoder.feed(data[start : start + 1000]))
        assert lines == [payload, '{"type":"ping"}']
        assert list(decoder.close()) == []

    def test_lines_completed_by_a_later_chunk(self):
        decoder = LineDecoder()
        assert list(decoder.feed(b"aaaa")) == []
        assert list(decoder.feed(b"bb")) == []
        assert list(decoder.feed(b"\ncc\ndd")) == ["aaaabb", "cc"]
        assert list(decoder.close()) == ["dd"]
