"""Typed metadata values and the per-raster metadata store.

Every entry remembers which structural bucket of the header it was
declared under (``location``) and its position within that bucket
(``index``), so a file can be written back with comments and metadata in
their original places.

Store semantics are append-or-replace: adding a name that already exists
drops the old entry and keeps the new one with the new entry's
location and index.  There is no positional insertion.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum, IntEnum
from typing import Any, Iterator, Sequence

import numpy as np

from paxfile.cursor import TEXT_ENCODING, int_bounds
from paxfile.errors import IndexOutOfBoundsError, MetadataNotFoundError, TypeMismatchError

MAX_ARRAY_DIMS = 4
ARRAY_INDEX_TAGS = ("first", "second", "third", "fourth")
COMMENT_NAME_DELIM = ";"


class MetaType(Enum):
    """Metadata value types, each with its header tag and numpy dtype."""

    INVALID = ("invalid", None)
    COMMENT = ("comment", None)
    STRING = ("string", None)
    FLOAT = ("float", "float32")
    DOUBLE = ("double", "float64")
    INT64 = ("int64", "int64")
    UINT64 = ("uint64", "uint64")
    INT32 = ("int32", "int32")
    UINT32 = ("uint32", "uint32")
    INT16 = ("int16", "int16")
    UINT16 = ("uint16", "uint16")
    INT8 = ("int8", "int8")
    UINT8 = ("uint8", "uint8")

    def __init__(self, tag: str, dtype: str | None):
        self.tag = tag
        self.dtype = np.dtype(dtype) if dtype else None

    @property
    def is_numeric(self) -> bool:
        return self.dtype is not None

    @property
    def is_integer(self) -> bool:
        return self.dtype is not None and self.dtype.kind in "iu"

    @classmethod
    def from_tag(cls, tag: str) -> MetaType | None:
        """Match a header type tag (case-insensitive) to a parseable type."""
        return _TAG_LOOKUP.get(tag.lower())

    @classmethod
    def from_dtype(cls, dtype: np.dtype) -> MetaType:
        dtype = np.dtype(dtype)
        for member in cls:
            if member.dtype is not None and member.dtype == dtype:
                return member
        raise TypeMismatchError(f"No metadata type for dtype {dtype}")


# Types that may appear in a ``## [type]`` tag, in header tag order.
PARSEABLE_TYPES = (
    MetaType.STRING, MetaType.FLOAT, MetaType.DOUBLE,
    MetaType.INT64, MetaType.UINT64, MetaType.INT32, MetaType.UINT32,
    MetaType.INT16, MetaType.UINT16, MetaType.INT8, MetaType.UINT8,
)
_TAG_LOOKUP = {t.tag: t for t in PARSEABLE_TYPES}


class Location(IntEnum):
    """Header bucket a metadata entry is written under."""

    AFTER_TAG = 0
    AFTER_BPV = 1
    AFTER_VPE = 2
    AFTER_SEQUENTIAL = 3
    AFTER_STRIDED = 4
    END = 4


LOCATION_COUNT = 5


def comment_name(location: int, index: int) -> str:
    """Generated store key for a comment at (*location*, *index*)."""
    return f"{COMMENT_NAME_DELIM}{int(location)}{COMMENT_NAME_DELIM}{index}"


@dataclass(eq=False)
class MetadataValue:
    """One named metadata entry, scalar or array.

    Array values are held as a flat numpy array in storage order, with
    the first index varying fastest; ``dims`` gives the shape.
    """

    name: str
    meta_type: MetaType
    value: Any
    dims: tuple[int, ...] = ()
    location: Location = Location.END
    index: int = 0
    stripped: bool = False

    @property
    def is_array(self) -> bool:
        return bool(self.dims)

    @property
    def count(self) -> int:
        return math.prod(self.dims) if self.dims else 1

    @property
    def is_comment(self) -> bool:
        return self.meta_type is MetaType.COMMENT

    def flat_index(self, indices: int | Sequence[int]) -> int:
        """Convert per-dimension *indices* to a position in the flat array.

        A single int is taken as an already-flat index.
        """
        if isinstance(indices, (int, np.integer)):
            flat = int(indices)
            if not 0 <= flat < self.count:
                raise IndexOutOfBoundsError(
                    f"Index {flat} out of bounds for {self.name!r} with {self.count} values")
            return flat
        indices = tuple(indices)
        if not self.dims:
            if any(indices):
                raise IndexOutOfBoundsError(f"{self.name!r} is a scalar, got indices {indices}")
            return 0
        if len(indices) != len(self.dims):
            raise IndexOutOfBoundsError(
                f"{self.name!r} has {len(self.dims)} dimensions, got {len(indices)} indices")
        flat = 0
        stride = 1
        for i, d in zip(indices, self.dims):
            if not 0 <= i < d:
                raise IndexOutOfBoundsError(
                    f"Index {tuple(indices)} out of bounds for {self.name!r} with dims {self.dims}")
            flat += i * stride
            stride *= d
        return flat

    def value_at(self, indices: int | Sequence[int] | None = None) -> Any:
        """Return the scalar value, the whole array, or one array element."""
        if indices is None:
            return self.value.copy() if self.is_array else self.value
        flat = self.flat_index(indices)
        if not self.is_array:
            return self.value
        return _scalar(self.meta_type, self.value[flat])


def _scalar(meta_type: MetaType, raw: Any) -> Any:
    if meta_type is MetaType.FLOAT:
        return np.float32(raw)
    if meta_type is MetaType.DOUBLE:
        return float(raw)
    return int(raw)


def infer_meta_type(value: Any) -> MetaType:
    """Pick a metadata type for a Python or numpy value.

    ``str`` maps to STRING, Python ``float`` to DOUBLE, Python ``int`` to
    INT64 (UINT64 when it only fits unsigned).  numpy scalars and arrays
    map through their dtype.
    """
    if isinstance(value, str):
        return MetaType.STRING
    if isinstance(value, (bool, np.bool_)):
        raise TypeMismatchError("Boolean metadata is not supported")
    if isinstance(value, (np.ndarray, np.generic)):
        return MetaType.from_dtype(value.dtype)
    if isinstance(value, float):
        return MetaType.DOUBLE
    if isinstance(value, int):
        return MetaType.INT64 if value <= int_bounds(64, True)[1] else MetaType.UINT64
    if isinstance(value, (list, tuple)):
        if not value:
            raise TypeMismatchError("Cannot infer a metadata type from an empty sequence")
        flat = np.asarray(value)
        if flat.dtype.kind == "f":
            return MetaType.DOUBLE
        if flat.dtype.kind in "iu":
            return MetaType.from_dtype(flat.dtype) if flat.dtype.kind == "u" else MetaType.INT64
        raise TypeMismatchError(f"Cannot infer a metadata type from {flat.dtype} values")
    raise TypeMismatchError(f"Unsupported metadata value type: {type(value).__name__}")


def check_text(text: str, max_length: int, stripped: bool = False) -> str:
    """Validate comment or string text and truncate it to the on-disk limit.

    The limit covers everything written after the ``#`` or delimiter,
    so a *stripped* value gives up one character to its separator space.
    """
    if not isinstance(text, str):
        raise TypeMismatchError(f"Expected text, got {type(text).__name__}")
    if "\n" in text or "\r" in text:
        raise ValueError("Metadata text must fit on one line")
    try:
        text.encode(TEXT_ENCODING)
    except UnicodeEncodeError as exc:
        raise ValueError(f"Metadata text must be {TEXT_ENCODING} encodable") from exc
    return text[:max_length - 1 - int(stripped)]


def coerce_numeric(meta_type: MetaType, value: Any,
                   dims: Sequence[int] | None = None) -> tuple[Any, tuple[int, ...]]:
    """Convert *value* to the storage form of a numeric *meta_type*.

    Returns the stored value and its dims.  A value whose element count
    is 1 is stored as a scalar with empty dims, which is how the header
    parser reads it back.

    Raises
    ------
    TypeMismatchError
        For non-numeric values or floats stored under an integer type.
    ValueError
        For out-of-range integers, mismatched *dims* or too many dims.
    """
    raw = np.asarray(value)
    if raw.dtype.kind not in "iuf":
        raise TypeMismatchError(f"{meta_type.tag} metadata needs numeric values, got {raw.dtype}")
    if meta_type.is_integer and raw.size:
        if raw.dtype.kind == "f":
            raise TypeMismatchError(f"Cannot store floating-point values as {meta_type.tag}")
        lo, hi = int_bounds(meta_type.dtype.itemsize * 8, meta_type.dtype.kind == "i")
        if int(raw.min()) < lo or int(raw.max()) > hi:
            raise ValueError(f"Value out of range for {meta_type.tag}")

    if dims is None:
        dims = raw.shape
        flat = raw.ravel(order="F")
    else:
        dims = tuple(int(d) for d in dims)
        flat = raw.ravel()
        if math.prod(dims) != flat.size:
            raise ValueError(f"dims {dims} do not match {flat.size} values")
    dims = tuple(int(d) for d in dims)
    if len(dims) > MAX_ARRAY_DIMS:
        raise ValueError(f"Metadata arrays support at most {MAX_ARRAY_DIMS} dimensions")

    if flat.size == 1:
        return _scalar(meta_type, flat[0]), ()
    return flat.astype(meta_type.dtype, copy=True), dims


class MetadataStore:
    """Name-keyed metadata with per-bucket sequence counters.

    ``current_location`` is the bucket new entries go to when the caller
    does not name one; it follows the most recent explicit choice and
    starts at :attr:`Location.END`.
    """

    def __init__(self) -> None:
        self._entries: dict[str, MetadataValue] = {}
        self._counts = [0] * LOCATION_COUNT
        self.current_location = Location.END

    def __contains__(self, name: object) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[MetadataValue]:
        return iter(list(self._entries.values()))

    def names(self) -> list[str]:
        return list(self._entries)

    def allocate(self, location: int | None = None) -> tuple[Location, int]:
        """Reserve the next sequence index in *location* (or the current bucket)."""
        loc = self.current_location if location is None else Location(location)
        index = self._counts[loc]
        self._counts[loc] += 1
        self.current_location = loc
        return loc, index

    def insert_or_replace(self, value: MetadataValue) -> None:
        """Add *value*, dropping any entry of the same name.

        A replaced entry leaves a hole in its bucket; the bucket is then
        renumbered from 0 so indices and comment names match what a
        reader of the exported header reconstructs.
        """
        old = self._entries.pop(value.name, None)
        self._entries[value.name] = value
        if old is not None:
            self._compact(old.location)

    def _compact(self, location: Location) -> None:
        bucket = sorted((v for v in self._entries.values() if v.location == location),
                        key=lambda v: v.index)
        for index, entry in enumerate(bucket):
            entry.index = index
            if entry.is_comment:
                entry.name = comment_name(location, index)
        self._entries = {v.name: v for v in self._entries.values()}
        self._counts[location] = len(bucket)

    def lookup(self, name: str) -> MetadataValue:
        try:
            return self._entries[name]
        except KeyError:
            raise MetadataNotFoundError(f"No metadata named {name!r}") from None

    def get(self, name: str, default: MetadataValue | None = None) -> MetadataValue | None:
        return self._entries.get(name, default)

    def comments(self) -> list[MetadataValue]:
        return [v for v in self._entries.values() if v.is_comment]

    def grouped_by_location(self) -> list[list[MetadataValue]]:
        """Entries split into the five header buckets, each ordered by index."""
        groups: list[list[MetadataValue]] = [[] for _ in range(LOCATION_COUNT)]
        for value in self._entries.values():
            groups[value.location].append(value)
        for group in groups:
            group.sort(key=lambda v: v.index)
        return groups

    def resync_counters(self) -> None:
        """Continue each bucket's counter after the highest index present."""
        self._counts = [0] * LOCATION_COUNT
        for value in self._entries.values():
            self._counts[value.location] = max(self._counts[value.location], value.index + 1)
