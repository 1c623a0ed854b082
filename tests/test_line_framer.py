"""Tests for newline framing of the host output stream."""

import json

from line_framer import LineFramer


class TestLineFramer:
    def test_line_split_across_chunks(self):
        framer = LineFramer()

        first = framer.feed(b'{"a":1}\n{"b":2')
        second = framer.feed(b"}\n")

        assert [json.loads(line) for line in first] == [{"a": 1}]
        assert [json.loads(line) for line in second] == [{"b": 2}]
        assert framer.pending == ""

    def test_partial_line_stays_buffered(self):
        framer = LineFramer()

        assert framer.feed(b'{"a":') == []
        assert framer.pending == '{"a":'

    def test_crlf_and_blank_lines(self):
        framer = LineFramer()

        assert framer.feed('{"a":1}\r\n\n   \n{"b":2}\n') == ['{"a":1}', '{"b":2}']

    def test_multibyte_character_split_across_chunks(self):
        framer = LineFramer()
        encoded = '{"name":"Café ✓"}\n'.encode("utf-8")
        split = encoded.index("✓".encode("utf-8")) + 1

        assert framer.feed(encoded[:split]) == []
        lines = framer.feed(encoded[split:])

        assert json.loads(lines[0]) == {"name": "Café ✓"}

    def test_reset_drops_partial_line(self):
        framer = LineFramer()
        framer.feed(b'{"a"')
        framer.reset()

        assert framer.pending == ""
        assert framer.feed(b'{"b":2}\n') == ['{"b":2}']
