"""PAX header parser.

A PAX header is line-oriented ASCII ending at the ``DATA_LENGTH`` line::

    PAX109 : v1.00 : PAX_FLOAT
    # free-form comment
    BYTES_PER_VALUE : 4
    VALUES_PER_ELEMENT : 1
    ## [float]    pi = 3.1416
    ELEMENTS_IN_SEQUENTIAL_DIMENSION : 2
    ELEMENTS_IN_STRIDED_DIMENSION : 2
    ## [int32]    grid [ first = 2 second = 2 ] =
      1 2
      3 4
    DATA_LENGTH : 16
    <16 bytes of payload>

Comments and metadata are stored under the bucket of the most recent
structural tag.  Lines the parser does not recognise are skipped so that
newer writers can add line types without breaking older readers.
"""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np

from paxfile.config import PaxConfig, default_config
from paxfile.context import ParseContext
from paxfile.cursor import (
    PAX_TAG,
    Cursor,
    LineType,
    Skip,
)
from paxfile.errors import (
    BufferTooShortError,
    IncompleteHeaderError,
    InvalidTagError,
    MalformedNumberError,
    PaxError,
    StructureError,
    UnknownMetadataTypeError,
)
from paxfile.metadata import (
    ARRAY_INDEX_TAGS,
    Location,
    MetadataStore,
    MetadataValue,
    MetaType,
    comment_name,
)
from paxfile.types import PaxType, descriptor_for

_LOCATION_AFTER = {
    LineType.BYTES_PER_VALUE: Location.AFTER_BPV,
    LineType.VALUES_PER_ELEMENT: Location.AFTER_VPE,
}
_DIMENSION_LOCATIONS = (Location.AFTER_SEQUENTIAL, Location.AFTER_STRIDED)


@dataclass
class RasterHeader:
    """Structural fields of a PAX header."""

    type_id: int = PaxType.INVALID
    version: float = 0.0
    bytes_per_value: int = 0
    values_per_element: int = 0
    sequential_count: int = 0
    strided_count: int = 0
    data_length: int = 0

    @classmethod
    def for_type(cls, type_id: int, sequential_count: int = 0, strided_count: int = 0,
                 version: float = 1.0) -> RasterHeader:
        """Build a consistent header for a registered type and dimensions."""
        desc = descriptor_for(type_id)
        if sequential_count < 0 or strided_count < 0:
            raise ValueError("Raster dimensions must be non-negative")
        if sequential_count == 0 or strided_count == 0:
            sequential_count = strided_count = 0
        return cls(
            type_id=PaxType(desc.id),
            version=float(version),
            bytes_per_value=desc.bytes_per_value,
            values_per_element=desc.values_per_element,
            sequential_count=sequential_count,
            strided_count=strided_count,
            data_length=desc.element_size * sequential_count * strided_count,
        )

    @property
    def type_name(self) -> str:
        return descriptor_for(self.type_id).name

    @property
    def element_size(self) -> int:
        return self.bytes_per_value * self.values_per_element

    @property
    def element_count(self) -> int:
        return self.sequential_count * self.strided_count

    def expected_length(self) -> int:
        """Payload length implied by the element layout and dimensions."""
        return self.element_size * self.element_count

    def to_dict(self) -> dict:
        return {
            "type_id": int(self.type_id),
            "type_name": self.type_name,
            "version": self.version,
            "bytes_per_value": self.bytes_per_value,
            "values_per_element": self.values_per_element,
            "sequential_count": self.sequential_count,
            "strided_count": self.strided_count,
            "data_length": self.data_length,
        }


@dataclass
class ParsedHeader:
    """Result of :func:`parse_header`."""

    header: RasterHeader
    metadata: MetadataStore
    header_length: int
    warnings: list[str] = field(default_factory=list)


@dataclass
class PreviewResult:
    """Result of :func:`preview_header`.

    When ``complete`` is False the buffer ended inside the header and
    ``offset`` says how far parsing got; read more bytes and try again.
    """

    complete: bool
    header: RasterHeader | None = None
    offset: int = 0


# ----------------------------------------------------------------------
# Tag line
# ----------------------------------------------------------------------

def _read_tag_line(cursor: Cursor, context: ParseContext,
                   require_eol: bool = True) -> tuple[int, float]:
    if require_eol and cursor.data.find(b"\n", cursor.pos, cursor.end) < 0:
        raise IncompleteHeaderError("Buffer ended inside the PAX tag line", cursor.pos)
    if not cursor.startswith(PAX_TAG):
        raise InvalidTagError("Not a PAX file: first line does not start with 'PAX'")
    cursor.pos += len(PAX_TAG)
    try:
        type_id = cursor.read_int(32, signed=True)
    except (MalformedNumberError, BufferTooShortError) as exc:
        raise InvalidTagError(f"Invalid PAX type on tag line: {exc}", exc) from exc
    desc = descriptor_for(type_id)

    version = 0.0
    cursor.skip_delimiter()
    if cursor.peek() in (ord("v"), ord("V")):
        cursor.pos += 1
        try:
            version = cursor.read_double()
        except (MalformedNumberError, BufferTooShortError) as exc:
            raise InvalidTagError(f"Invalid version on tag line: {exc}", exc) from exc
        cursor.skip_delimiter()

    eol = cursor.data.find(b"\n", cursor.pos, cursor.end)
    stop = cursor.end if eol < 0 else eol
    name = cursor.data[cursor.pos:stop].decode("latin-1").strip()
    if name and name.upper() != desc.name.upper():
        context.warn(f"Tag line names {name!r} but type {type_id} is {desc.name}")
    cursor.pos = cursor.end if eol < 0 else eol + 1

    context.log(2, f"Tag line: type {desc.name}, version {version}")
    return type_id, version


def preview_type(data: bytes) -> PaxType:
    """Return the raster type declared on the tag line, reading nothing else.

    Raises
    ------
    InvalidTagError
        If the buffer does not start with a valid ``PAX<id>`` tag.
    """
    head = bytes(data[:256])
    eol = head.find(b"\n")
    cursor = Cursor(head if eol < 0 else head[:eol + 1])
    type_id, _ = _read_tag_line(cursor, ParseContext(), require_eol=False)
    return PaxType(type_id)


# ----------------------------------------------------------------------
# Comment and metadata lines
# ----------------------------------------------------------------------

def _clip_text(text: str, config: PaxConfig) -> tuple[str, bool]:
    text = text[:config.max_string_length - 1]
    if text.endswith("\r"):
        text = text[:-1]
    if text.startswith(" "):
        return text[1:], True
    return text, False


def _read_comment(cursor: Cursor, store: MetadataStore, location: Location,
                  config: PaxConfig) -> MetadataValue:
    cursor.pos += 1
    text, stripped = _clip_text(cursor.read_line(), config)
    loc, index = store.allocate(location)
    return MetadataValue(comment_name(loc, index), MetaType.COMMENT, text,
                         location=loc, index=index, stripped=stripped)


def _read_values(cursor: Cursor, meta_type: MetaType, count: int, span_lines: bool) -> list:
    if meta_type is MetaType.FLOAT:
        return [cursor.read_float(span_lines=span_lines) for _ in range(count)]
    if meta_type is MetaType.DOUBLE:
        return [cursor.read_double(span_lines=span_lines) for _ in range(count)]
    width = meta_type.dtype.itemsize * 8
    signed = meta_type.dtype.kind == "i"
    return [cursor.read_int(width, signed, span_lines=span_lines) for _ in range(count)]


def _read_metadata(cursor: Cursor, store: MetadataStore, location: Location,
                   context: ParseContext, config: PaxConfig) -> MetadataValue | None:
    """Parse one ``## [type] name [dims] = values`` entry.

    Returns None, after skipping the line, when the type tag is not
    recognised.
    """
    start = cursor.pos
    cursor.pos += 2
    cursor.skip_whitespace()
    tag = ""
    if cursor.peek() == ord("["):
        cursor.pos += 1
        tag = cursor.read_token()
        cursor.skip_whitespace()
        if cursor.peek() == ord("]"):
            cursor.pos += 1
    meta_type = MetaType.from_tag(tag)
    if meta_type is None:
        warning = UnknownMetadataTypeError(
            f"Unknown metadata type [{tag}] at offset {start}; line skipped")
        context.warn(str(warning))
        cursor.skip_to_next_line()
        return None

    name = cursor.read_token()
    if not name:
        context.warn(f"Metadata line at offset {start} has no name; line skipped")
        cursor.skip_to_next_line()
        return None

    cursor.skip_whitespace()
    dims: list[int] = []
    if cursor.peek() == ord("["):
        cursor.pos += 1
        for index_tag in ARRAY_INDEX_TAGS:
            cursor.skip_whitespace()
            if not cursor.startswith(index_tag.encode("ascii")):
                break
            cursor.pos += len(index_tag)
            dims.append(cursor.read_int(32, signed=False, skip=Skip.DELIMITER))
        if not cursor.skip_past(b"]"):
            raise StructureError(f"Unterminated dimension list for {name!r} at offset {start}")

    if not cursor.skip_to_delimiter():
        raise StructureError(f"Metadata {name!r} at offset {start} has no '=' or ':'")

    count = 1
    for d in dims:
        count *= d

    if meta_type is MetaType.STRING:
        if count != 1:
            raise StructureError(f"String metadata {name!r} cannot be an array")
        text, stripped = _clip_text(cursor.read_line(), config)
        loc, index = store.allocate(location)
        return MetadataValue(name, meta_type, text, location=loc, index=index,
                             stripped=stripped)

    if count == 1:
        value = _read_values(cursor, meta_type, 1, span_lines=False)[0]
        dims = []
    else:
        value = np.array(_read_values(cursor, meta_type, count, span_lines=True),
                         dtype=meta_type.dtype)
    cursor.skip_to_next_line()

    loc, index = store.allocate(location)
    context.log(3, f"Metadata {name} [{meta_type.tag}] dims={tuple(dims)} at {loc.name}:{index}")
    return MetadataValue(name, meta_type, value, tuple(dims), loc, index)


# ----------------------------------------------------------------------
# Header state machine
# ----------------------------------------------------------------------

def _require_line(cursor: Cursor, what: str) -> None:
    if cursor.data.find(b"\n", cursor.pos, cursor.end) < 0:
        raise IncompleteHeaderError(f"Buffer ended inside the {what} line", cursor.pos)


def _read_structural(cursor: Cursor, what: str) -> int:
    _require_line(cursor, what)
    cursor.read_token()
    return cursor.read_int(64, signed=False, skip=Skip.DELIMITER | Skip.LINEFEED)


def parse_header(data: bytes, context: ParseContext | None = None,
                 config: PaxConfig | None = None, fast: bool = False,
                 offset: int = 0) -> ParsedHeader:
    """Parse and validate a PAX header at the start of *data*.

    Parameters
    ----------
    data : bytes-like
        Buffer beginning with the tag line.  Bytes after the header are
        ignored.
    context : ParseContext, optional
        Receives warnings and the last error; a fresh one is used if None.
    config : PaxConfig, optional
        Codec settings; the packaged defaults if None.
    fast : bool
        Skip comment and metadata extraction, as a header preview does.
    offset : int
        Where the header starts in *data*, for concatenated streams.

    Returns
    -------
    ParsedHeader
        Header fields, metadata and the header length in bytes.

    Raises
    ------
    InvalidTagError
        If the first line is not a valid tag line.
    StructureError
        If a required tag is missing or repeated, or the sizes disagree
        with the declared type.
    MalformedNumberError
        If a numeric field cannot be parsed.
    IncompleteHeaderError
        If the buffer ends before ``DATA_LENGTH``.
    """
    config = config or default_config()
    context = context or ParseContext(verbosity=config.verbosity)
    try:
        return _parse_header(Cursor(data, pos=offset), context, config, fast)
    except PaxError as exc:
        context.fail(exc)
        raise


def _parse_header(cursor: Cursor, context: ParseContext, config: PaxConfig,
                  fast: bool) -> ParsedHeader:
    first_warning = len(context.warnings)
    start = cursor.pos
    if cursor.at_end():
        raise IncompleteHeaderError("Empty buffer", 0)

    type_id, version = _read_tag_line(cursor, context)
    header = RasterHeader(type_id=PaxType(type_id), version=version)
    store = MetadataStore()
    location = Location.AFTER_TAG
    seen = {"BYTES_PER_VALUE": 0, "VALUES_PER_ELEMENT": 0,
            "ELEMENTS_IN_SEQUENTIAL_DIMENSION": 0, "ELEMENTS_IN_STRIDED_DIMENSION": 0,
            "DATA_LENGTH": 0}

    while True:
        line_start = cursor.pos
        line = cursor.classify_line()
        if cursor.at_end():
            raise IncompleteHeaderError("Buffer ended before DATA_LENGTH", cursor.pos)
        try:
            kind = line.kind
            if kind is LineType.BYTES_PER_VALUE:
                header.bytes_per_value = _read_structural(cursor, "BYTES_PER_VALUE")
                seen["BYTES_PER_VALUE"] += 1
                location = _LOCATION_AFTER[kind]
            elif kind is LineType.VALUES_PER_ELEMENT:
                header.values_per_element = _read_structural(cursor, "VALUES_PER_ELEMENT")
                seen["VALUES_PER_ELEMENT"] += 1
                location = _LOCATION_AFTER[kind]
            elif kind is LineType.DIMENSION:
                if line.dimension == 0:
                    header.sequential_count = _read_structural(cursor, "sequential dimension")
                    seen["ELEMENTS_IN_SEQUENTIAL_DIMENSION"] += 1
                else:
                    header.strided_count = _read_structural(cursor, "strided dimension")
                    seen["ELEMENTS_IN_STRIDED_DIMENSION"] += 1
                location = _DIMENSION_LOCATIONS[line.dimension]
            elif kind is LineType.DATA_LENGTH:
                header.data_length = _read_structural(cursor, "DATA_LENGTH")
                seen["DATA_LENGTH"] += 1
                break
            elif kind is LineType.COMMENT and not fast:
                store.insert_or_replace(_read_comment(cursor, store, location, config))
            elif kind is LineType.METADATA and not fast:
                value = _read_metadata(cursor, store, location, context, config)
                if value is not None:
                    store.insert_or_replace(value)
            elif kind is LineType.TAG:
                context.warn(f"Repeated PAX tag line at offset {line_start}; line skipped")
                _require_line(cursor, "tag")
                cursor.skip_to_next_line()
            else:
                context.log(2, f"Skipping {kind.value} line at offset {line_start}")
                _require_line(cursor, kind.value)
                cursor.skip_to_next_line()
        except IncompleteHeaderError:
            raise
        except BufferTooShortError as exc:
            raise IncompleteHeaderError(str(exc), line_start, exc) from exc

    for tag, count in seen.items():
        if count != 1:
            problem = "missing" if count == 0 else f"repeated {count} times"
            raise StructureError(f"Required header tag {tag} is {problem}")

    desc = descriptor_for(header.type_id)
    if header.bytes_per_value != desc.bytes_per_value:
        raise StructureError(f"BYTES_PER_VALUE is {header.bytes_per_value} but "
                             f"{desc.name} needs {desc.bytes_per_value}")
    if header.values_per_element != desc.values_per_element:
        raise StructureError(f"VALUES_PER_ELEMENT is {header.values_per_element} but "
                             f"{desc.name} needs {desc.values_per_element}")
    if header.data_length != header.expected_length():
        raise StructureError(f"DATA_LENGTH is {header.data_length} but the type and "
                             f"dimensions give {header.expected_length()}")

    store.current_location = Location.END
    store.resync_counters()
    context.log(1, f"Read {desc.name} header: {header.sequential_count} x "
                   f"{header.strided_count}, {len(store)} metadata entries, "
                   f"{cursor.pos - start} header bytes")
    return ParsedHeader(header, store, cursor.pos - start, context.warnings[first_warning:])


def preview_header(data: bytes, context: ParseContext | None = None,
                   config: PaxConfig | None = None) -> PreviewResult:
    """Parse as much of a partial buffer as possible, skipping metadata.

    The buffer is cut back to its last LF first, so a chunk that ends
    mid-line is never misread.  Structural errors still raise.
    """
    eol = bytes(data).rfind(b"\n")
    if eol < 0:
        return PreviewResult(False, None, 0)
    try:
        parsed = parse_header(data[:eol + 1], context, config, fast=True)
    except IncompleteHeaderError as exc:
        return PreviewResult(False, None, exc.offset)
    return PreviewResult(True, parsed.header, parsed.header_length)
