"""Tests for the byte cursor."""

import numpy as np
import pytest

from paxfile.cursor import Cursor, LineType, Skip, parse_int
from paxfile.errors import BufferTooShortError, MalformedNumberError


class TestClassifyLine:
    @pytest.mark.parametrize("text, kind, dim", [
        (b"# hi\n", LineType.COMMENT, -1),
        (b"## [float] x = 1\n", LineType.METADATA, -1),
        (b"BYTES_PER_VALUE : 4\n", LineType.BYTES_PER_VALUE, -1),
        (b"bytes_per_value : 4\n", LineType.BYTES_PER_VALUE, -1),
        (b"Values_Per_Element : 1\n", LineType.VALUES_PER_ELEMENT, -1),
        (b"ELEMENTS_IN_SEQUENTIAL_DIMENSION : 3\n", LineType.DIMENSION, 0),
        (b"  ELEMENTS_IN_STRIDED_DIMENSION : 3\n", LineType.DIMENSION, 1),
        (b"DATA_LENGTH : 4\n", LineType.DATA_LENGTH, -1),
        (b"PAX101 : v1.00 : PAX_UCHAR\n", LineType.TAG, -1),
        (b"SOMETHING_ELSE : 1\n", LineType.UNKNOWN, -1),
        (b"  1 2 3\n", LineType.UNKNOWN, -1),
    ])
    def test_kinds(self, text, kind, dim):
        line = Cursor(text).classify_line()
        assert line.kind is kind
        assert line.dimension == dim

    def test_skips_blank_lines(self):
        cur = Cursor(b"\n \r\n# x\n")
        assert cur.classify_line().kind is LineType.COMMENT
        assert cur.pos == 4

    def test_does_not_consume_tag(self):
        cur = Cursor(b"DATA_LENGTH : 4\n")
        cur.classify_line()
        assert cur.pos == 0

    def test_empty_is_unknown(self):
        assert Cursor(b"").classify_line().kind is LineType.UNKNOWN


class TestSkipping:
    def test_skip_whitespace_stops_at_newline(self):
        cur = Cursor(b" \t\r\nx")
        cur.skip_whitespace()
        assert cur.peek() == ord("\n")
        cur.skip_whitespace(include_newline=True)
        assert cur.peek() == ord("x")

    def test_skip_delimiter(self):
        cur = Cursor(b"  =  x")
        cur.skip_delimiter()
        assert cur.peek() == ord("x")

    def test_skip_delimiter_without_delimiter(self):
        cur = Cursor(b"  x")
        cur.skip_delimiter()
        assert cur.peek() == ord("x")

    def test_skip_to_next_line(self):
        cur = Cursor(b"abc\ndef")
        cur.skip_to_next_line()
        assert cur.pos == 4
        cur.skip_to_next_line()
        assert cur.at_end()

    def test_skip_to_delimiter_stays_on_line(self):
        cur = Cursor(b"name\n= 1\n")
        assert not cur.skip_to_delimiter()
        assert cur.pos == 0

    def test_skip_to_delimiter_unterminated(self):
        with pytest.raises(BufferTooShortError):
            Cursor(b"name").skip_to_delimiter()


class TestReadInt:
    def test_decimal(self):
        cur = Cursor(b"  42 rest")
        assert cur.read_int(32) == 42
        assert cur.pos == 4

    def test_hex(self):
        assert Cursor(b"0x1F").read_int(32) == 31

    def test_negative_signed(self):
        assert Cursor(b"-128").read_int(8, signed=True) == -128

    def test_signed_overflow(self):
        with pytest.raises(MalformedNumberError):
            Cursor(b"128").read_int(8, signed=True)

    def test_negative_unsigned(self):
        with pytest.raises(MalformedNumberError):
            Cursor(b"-1").read_int(32, signed=False)

    def test_uint64_max(self):
        assert Cursor(b"18446744073709551615").read_int(64, signed=False) == 2**64 - 1

    @pytest.mark.parametrize("token", [b"12abc", b"abc", b"1_000", b"1.5"])
    def test_garbage(self, token):
        with pytest.raises(MalformedNumberError) as info:
            Cursor(token).read_int(32)
        assert info.value.offset == 0

    def test_structural_skip_policy(self):
        cur = Cursor(b"BYTES_PER_VALUE : 4 trailing\nnext")
        assert cur.read_token() == "BYTES_PER_VALUE"
        assert cur.read_int(32, False, Skip.DELIMITER | Skip.LINEFEED) == 4
        assert cur.data[cur.pos:] == b"next"

    def test_span_lines(self):
        cur = Cursor(b"1\n  2")
        assert cur.read_int(span_lines=True) == 1
        assert cur.read_int(span_lines=True) == 2

    def test_no_span_stops_at_newline(self):
        cur = Cursor(b"1\n2")
        cur.read_int()
        with pytest.raises(MalformedNumberError):
            cur.read_int()

    def test_end_of_buffer(self):
        with pytest.raises(BufferTooShortError):
            Cursor(b"   ").read_int()

    def test_parse_int_helper(self):
        assert parse_int("65535", 16, signed=False) == 65535


class TestReadFloating:
    def test_double_exact(self):
        assert Cursor(b"3.14159265358979").read_double() == 3.14159265358979

    def test_hex_float(self):
        assert Cursor(b"0x1.8p1").read_double() == 3.0

    def test_hex_integer_text_as_double(self):
        assert Cursor(b"0xFB29C8B3").read_double() == float(0xFB29C8B3)

    def test_float_is_single_precision(self):
        value = Cursor(b"3.1416").read_float()
        assert isinstance(value, np.float32)
        assert value == np.float32(3.1416)

    def test_float_overflow(self):
        with pytest.raises(MalformedNumberError):
            Cursor(b"1e39").read_float()

    def test_malformed_double(self):
        with pytest.raises(MalformedNumberError) as info:
            Cursor(b"  pi").read_double()
        assert info.value.token == "pi"
        assert info.value.offset == 2


class TestReadText:
    def test_read_line(self):
        cur = Cursor(b"hello world\nnext")
        assert cur.read_line() == "hello world"
        assert cur.data[cur.pos:] == b"next"

    def test_read_line_unterminated(self):
        with pytest.raises(BufferTooShortError):
            Cursor(b"no newline").read_line()

    def test_token_stops_at_bracket(self):
        cur = Cursor(b"float] name")
        assert cur.read_token() == "float"
        assert cur.peek() == ord("]")
