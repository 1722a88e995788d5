"""Byte cursor and line classifier for PAX headers.

The header is ASCII text, so the cursor works directly on ``bytes`` and
only decodes the small tokens it hands back.  All reads advance
``pos``; the caller picks how much trailing text to consume through the
:class:`Skip` flags.

Structural tags (matched case-insensitively at the start of a line)::

    PAX<id> : v<version> : <name>
    BYTES_PER_VALUE : n
    VALUES_PER_ELEMENT : n
    ELEMENTS_IN_SEQUENTIAL_DIMENSION : n
    ELEMENTS_IN_STRIDED_DIMENSION : n
    DATA_LENGTH : n
"""

from __future__ import annotations

import warnings
from enum import Enum, IntFlag
from typing import NamedTuple

import numpy as np

from paxfile.errors import BufferTooShortError, MalformedNumberError

TEXT_ENCODING = "latin-1"

PAX_TAG = b"PAX"
BPV_TAG = b"BYTES_PER_VALUE"
VPE_TAG = b"VALUES_PER_ELEMENT"
SEQUENTIAL_TAG = b"ELEMENTS_IN_SEQUENTIAL_DIMENSION"
STRIDED_TAG = b"ELEMENTS_IN_STRIDED_DIMENSION"
DATA_LENGTH_TAG = b"DATA_LENGTH"
DIMENSION_TAGS = (SEQUENTIAL_TAG, STRIDED_TAG)

WHITESPACE = b" \t\r"
DELIMITERS = b":="
_TOKEN_END = frozenset(b" \t\r\n:=[]")


class Skip(IntFlag):
    """What a typed read consumes around its token.

    DELIMITER skips whitespace and one ``:``/``=`` before the token;
    LINEFEED moves to the start of the next line after it.
    """

    NOTHING = 0
    DELIMITER = 1
    LINEFEED = 2


class LineType(Enum):
    COMMENT = "comment"
    METADATA = "metadata"
    TAG = "tag"
    BYTES_PER_VALUE = "bytes_per_value"
    VALUES_PER_ELEMENT = "values_per_element"
    DIMENSION = "dimension"
    DATA_LENGTH = "data_length"
    UNKNOWN = "unknown"


class HeaderLine(NamedTuple):
    kind: LineType
    dimension: int = -1


_STRUCTURAL = (
    (BPV_TAG, HeaderLine(LineType.BYTES_PER_VALUE)),
    (VPE_TAG, HeaderLine(LineType.VALUES_PER_ELEMENT)),
    (SEQUENTIAL_TAG, HeaderLine(LineType.DIMENSION, 0)),
    (STRIDED_TAG, HeaderLine(LineType.DIMENSION, 1)),
    (DATA_LENGTH_TAG, HeaderLine(LineType.DATA_LENGTH)),
    (PAX_TAG, HeaderLine(LineType.TAG)),
)


def int_bounds(width: int, signed: bool) -> tuple[int, int]:
    """Inclusive value range of a *width*-bit integer."""
    if signed:
        return -(1 << (width - 1)), (1 << (width - 1)) - 1
    return 0, (1 << width) - 1


def parse_int(token: str, width: int = 64, signed: bool = True, offset: int = -1) -> int:
    """Convert *token* to an int that fits *width* bits.

    Decimal text is tried first; ``0x``/``0o``/``0b`` prefixes are also
    accepted.
    """
    if not token or "_" in token:
        raise MalformedNumberError(f"Expected an integer at offset {offset}, got {token!r}",
                                   token, offset)
    try:
        value = int(token, 10)
    except ValueError:
        try:
            value = int(token, 0)
        except ValueError as exc:
            raise MalformedNumberError(f"Malformed integer {token!r} at offset {offset}",
                                       token, offset, exc) from exc
    lo, hi = int_bounds(width, signed)
    if not lo <= value <= hi:
        kind = "int" if signed else "uint"
        raise MalformedNumberError(f"{token!r} at offset {offset} does not fit {kind}{width}",
                                   token, offset)
    return value


def parse_double(token: str, offset: int = -1) -> float:
    """Convert *token* to a float, accepting C hex-float notation."""
    if not token or "_" in token:
        raise MalformedNumberError(f"Expected a number at offset {offset}, got {token!r}",
                                   token, offset)
    try:
        return float(token)
    except ValueError:
        pass
    try:
        return float.fromhex(token)
    except (ValueError, OverflowError) as exc:
        raise MalformedNumberError(f"Malformed number {token!r} at offset {offset}",
                                   token, offset, exc) from exc


def parse_float(token: str, offset: int = -1) -> np.float32:
    """Convert *token* to a single-precision float.

    Finite text that overflows float32 is rejected rather than turned
    into infinity.
    """
    value = parse_double(token, offset)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", RuntimeWarning)
        single = np.float32(value)
    if np.isinf(single) and not np.isinf(value):
        raise MalformedNumberError(f"{token!r} at offset {offset} overflows float32",
                                   token, offset)
    return single


class Cursor:
    """Position-tracking reader over an immutable byte buffer.

    Parameters
    ----------
    data : bytes-like
        Buffer to read.  Non-``bytes`` inputs are copied once.
    pos : int
        Starting offset.
    end : int, optional
        Exclusive end offset; defaults to ``len(data)``.
    """

    def __init__(self, data: bytes, pos: int = 0, end: int | None = None):
        self.data = data if isinstance(data, bytes) else bytes(data)
        self.pos = pos
        self.end = len(self.data) if end is None else min(end, len(self.data))

    def __repr__(self) -> str:
        return f"Cursor(pos={self.pos}, end={self.end})"

    def at_end(self) -> bool:
        return self.pos >= self.end

    def peek(self) -> int | None:
        """Return the byte at the current position without consuming it."""
        if self.pos >= self.end:
            return None
        return self.data[self.pos]

    def skip_whitespace(self, include_newline: bool = False) -> None:
        ws = WHITESPACE + b"\n" if include_newline else WHITESPACE
        data, end = self.data, self.end
        pos = self.pos
        while pos < end and data[pos] in ws:
            pos += 1
        self.pos = pos

    def skip_to_next_line(self) -> None:
        """Move past the next LF, or to the end if there is none."""
        eol = self.data.find(b"\n", self.pos, self.end)
        self.pos = self.end if eol < 0 else eol + 1

    def skip_delimiter(self) -> None:
        """Consume whitespace, one ``:`` or ``=`` if present, then whitespace."""
        self.skip_whitespace()
        if self.peek() is not None and self.data[self.pos] in DELIMITERS:
            self.pos += 1
        self.skip_whitespace()

    def skip_past(self, char: bytes) -> bool:
        """Move just past the next *char* on the current line.

        Returns False and leaves the cursor unmoved if the line has none.
        """
        eol = self.data.find(b"\n", self.pos, self.end)
        stop = self.end if eol < 0 else eol
        found = self.data.find(char, self.pos, stop)
        if found < 0:
            return False
        self.pos = found + 1
        return True

    def skip_to_delimiter(self) -> bool:
        """Move just past the next ``:`` or ``=`` on the current line.

        Returns False if the line has no delimiter.  Raises
        :class:`BufferTooShortError` if the buffer ends before the line does.
        """
        eol = self.data.find(b"\n", self.pos, self.end)
        if eol < 0:
            raise BufferTooShortError("Buffer ended while looking for a delimiter")
        data = self.data
        for pos in range(self.pos, eol):
            if data[pos] in DELIMITERS:
                self.pos = pos + 1
                return True
        return False

    def startswith(self, tag: bytes) -> bool:
        """Case-insensitive check for *tag* at the current position."""
        return self.data[self.pos:self.pos + len(tag)].upper() == tag.upper()

    def classify_line(self) -> HeaderLine:
        """Identify the kind of line starting at the current position.

        Leading whitespace, including blank lines, is consumed so that the
        cursor rests on the first significant byte; the tag itself is
        left for the caller to read.
        """
        self.skip_whitespace(include_newline=True)
        first = self.peek()
        if first is None:
            return HeaderLine(LineType.UNKNOWN)
        if first == ord("#"):
            if self.pos + 1 < self.end and self.data[self.pos + 1] == ord("#"):
                return HeaderLine(LineType.METADATA)
            return HeaderLine(LineType.COMMENT)
        for tag, line in _STRUCTURAL:
            if self.startswith(tag):
                return line
        return HeaderLine(LineType.UNKNOWN)

    def read_token(self, include_newline: bool = False) -> str:
        """Read the next run of bytes up to whitespace, a delimiter or a bracket."""
        self.skip_whitespace(include_newline)
        if self.at_end():
            raise BufferTooShortError(f"Buffer ended at offset {self.pos} while reading a token")
        data, end = self.data, self.end
        start = pos = self.pos
        while pos < end and data[pos] not in _TOKEN_END:
            pos += 1
        self.pos = pos
        return data[start:pos].decode(TEXT_ENCODING)

    def read_line(self) -> str:
        """Return the rest of the current line without its LF, and move past it."""
        eol = self.data.find(b"\n", self.pos, self.end)
        if eol < 0:
            raise BufferTooShortError(f"Buffer ended at offset {self.end} before end of line")
        text = self.data[self.pos:eol].decode(TEXT_ENCODING)
        self.pos = eol + 1
        return text

    def _number_token(self, skip: Skip, span_lines: bool) -> tuple[str, int]:
        if skip & Skip.DELIMITER:
            self.skip_delimiter()
        self.skip_whitespace(span_lines)
        offset = self.pos
        return self.read_token(span_lines), offset

    def _finish(self, skip: Skip) -> None:
        if skip & Skip.LINEFEED:
            self.skip_to_next_line()

    def read_int(self, width: int = 64, signed: bool = True,
                 skip: Skip = Skip.NOTHING, span_lines: bool = False) -> int:
        """Read an integer of the given bit *width*.

        Raises
        ------
        MalformedNumberError
            If the token is not an integer or does not fit *width* bits.
        BufferTooShortError
            If the buffer ends before a token starts.
        """
        token, offset = self._number_token(skip, span_lines)
        value = parse_int(token, width, signed, offset)
        self._finish(skip)
        return value

    def read_double(self, skip: Skip = Skip.NOTHING, span_lines: bool = False) -> float:
        token, offset = self._number_token(skip, span_lines)
        value = parse_double(token, offset)
        self._finish(skip)
        return value

    def read_float(self, skip: Skip = Skip.NOTHING, span_lines: bool = False) -> np.float32:
        token, offset = self._number_token(skip, span_lines)
        value = parse_float(token, offset)
        self._finish(skip)
        return value
