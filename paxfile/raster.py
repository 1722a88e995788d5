"""Raster container.

A :class:`RasterFile` owns a header, a metadata store and a payload of
exactly ``data_length`` bytes.  Elements are laid out with the
sequential dimension varying fastest::

    index = x + y * sequential_count

``element_at(x, y)`` addresses by (sequential, strided); ``element_rc(row,
col)`` is the same call with the coordinates swapped.

Example::

    raster = new_raster(PaxType.FLOAT, 2, 2, np.array([1, 2, 3, 4], dtype=np.float32))
    raster.add_metadata("pi", np.float32(3.1416))
    blob = raster.export_bytes()
    copy = RasterFile.from_bytes(blob)
    copy.element_at(1, 0)            # 2.0
    copy.get_metadata("pi", "float")  # 3.1416
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable, Sequence

import numpy as np

from paxfile.config import PaxConfig, default_config
from paxfile.context import ParseContext
from paxfile.cursor import TEXT_ENCODING, int_bounds
from paxfile.errors import (
    BufferTooShortError,
    IndexOutOfBoundsError,
    StructureError,
    TypeMismatchError,
)
from paxfile.header import RasterHeader, parse_header, preview_type
from paxfile.metadata import (
    MetadataStore,
    MetadataValue,
    MetaType,
    check_text,
    coerce_numeric,
    comment_name,
    infer_meta_type,
)
from paxfile.types import PaxType, TypeDescriptor, descriptor_for
from paxfile.writer import write_raster

_NAME_FORBIDDEN = frozenset(" \t\r\n:=[]#")


@dataclass
class ImportResult:
    """Outcome of :meth:`RasterFile.import_bytes`."""

    consumed: int
    header_length: int
    warnings: list[str] = field(default_factory=list)


def _as_meta_type(meta_type: MetaType | str) -> MetaType:
    if isinstance(meta_type, MetaType):
        return meta_type
    if isinstance(meta_type, str):
        if meta_type.lower() == MetaType.COMMENT.tag:
            return MetaType.COMMENT
        found = MetaType.from_tag(meta_type)
        if found is not None:
            return found
    raise ValueError(f"Unknown metadata type: {meta_type!r}")


def _check_name(name: str) -> None:
    if not isinstance(name, str) or not name:
        raise ValueError("Metadata name must be a non-empty string")
    if name.startswith(";") or any(c in _NAME_FORBIDDEN for c in name):
        raise ValueError(f"Invalid metadata name {name!r}")
    try:
        name.encode(TEXT_ENCODING)
    except UnicodeEncodeError as exc:
        raise ValueError(f"Metadata name must be {TEXT_ENCODING} encodable") from exc


def _value_dtype(desc: TypeDescriptor) -> np.dtype | None:
    if desc.value_code is None:
        return None
    return np.dtype(desc.value_code)


def _element_dtype(desc: TypeDescriptor) -> np.dtype:
    """numpy dtype of one element of a single-value or complex type."""
    if desc.is_complex:
        return np.dtype(np.complex64 if desc.bytes_per_value == 4 else np.complex128)
    value = _value_dtype(desc)
    if value is None:
        return np.dtype(f"V{desc.element_size}")
    return value


class RasterFile:
    """A PAX raster: header, metadata and binary payload.

    Parameters
    ----------
    type_id : int
        Registered raster type.  ``PaxType.INVALID`` creates an empty
        raster meant to be filled by :meth:`import_bytes`.
    sequential_count, strided_count : int
        Dimensions.  If either is 0 both become 0.
    data : bytes-like or numpy.ndarray, optional
        Initial payload, copied in.  Must be exactly ``data_length`` bytes.
    version : float, optional
        Format version for the tag line; defaults to the configured one.
    config : PaxConfig, optional
    """

    def __init__(self, type_id: int = PaxType.INVALID, sequential_count: int = 0,
                 strided_count: int = 0, data: Any = None, version: float | None = None,
                 config: PaxConfig | None = None):
        self.config = config or default_config()
        self.metadata = MetadataStore()
        if type_id == PaxType.INVALID:
            if data is not None:
                raise ValueError("Cannot attach data to a raster without a type")
            self.header = RasterHeader()
            self._payload = bytearray()
            return
        if version is None:
            version = self.config.format_version
        self.header = RasterHeader.for_type(type_id, sequential_count, strided_count, version)
        self._payload = bytearray(self.header.data_length)
        if data is not None:
            self.set_data(data)

    def __repr__(self) -> str:
        name = self.type_name if self.type_id != PaxType.INVALID else "PAX_INVALID"
        return (f"RasterFile({name}, {self.sequential_count} x {self.strided_count}, "
                f"{len(self.metadata)} metadata)")

    # ------------------------------------------------------------------
    # Header projections
    # ------------------------------------------------------------------

    @property
    def type_id(self) -> PaxType:
        return PaxType(self.header.type_id)

    @property
    def descriptor(self) -> TypeDescriptor:
        return descriptor_for(self.header.type_id)

    @property
    def type_name(self) -> str:
        return self.header.type_name

    @property
    def version(self) -> float:
        return self.header.version

    @property
    def sequential_count(self) -> int:
        return self.header.sequential_count

    @property
    def strided_count(self) -> int:
        return self.header.strided_count

    @property
    def bytes_per_value(self) -> int:
        return self.header.bytes_per_value

    @property
    def values_per_element(self) -> int:
        return self.header.values_per_element

    @property
    def data_length(self) -> int:
        return self.header.data_length

    @property
    def payload(self) -> bytes:
        """A copy of the raw payload bytes."""
        return bytes(self._payload)

    def set_data(self, data: Any) -> None:
        """Replace the whole payload with *data* (bytes-like or numpy array)."""
        if isinstance(data, np.ndarray):
            raw = np.ascontiguousarray(data).tobytes()
        else:
            raw = bytes(data)
        if len(raw) < self.data_length:
            raise BufferTooShortError(f"Initial data is {len(raw)} bytes, "
                                      f"raster needs {self.data_length}")
        if len(raw) > self.data_length:
            raise ValueError(f"Initial data is {len(raw)} bytes, raster needs {self.data_length}")
        self._payload[:] = raw

    # ------------------------------------------------------------------
    # Element access
    # ------------------------------------------------------------------

    def _offset(self, x: int, y: int) -> int:
        desc = self.descriptor
        if not desc.has_payload:
            raise TypeMismatchError(f"{desc.name} rasters have no elements")
        if not (0 <= x < self.sequential_count and 0 <= y < self.strided_count):
            raise IndexOutOfBoundsError(
                f"Element ({x}, {y}) outside {self.sequential_count} x {self.strided_count} raster")
        return (x + y * self.sequential_count) * desc.element_size

    def element_at(self, x: int, y: int = 0, dtype: Any = None) -> Any:
        """Return the element at sequential index *x*, strided index *y*.

        Parameters
        ----------
        x, y : int
            Coordinates; ``x`` varies fastest in the payload.
        dtype : numpy dtype-like, optional
            Reinterpret the element's bytes as this type.  Its size must
            equal the element size.

        Returns
        -------
        scalar or tuple
            A numpy scalar when the element holds one value (a complex
            scalar for the complex float types), a tuple when it holds
            several, raw ``bytes`` when no numpy type fits.

        Raises
        ------
        IndexOutOfBoundsError
            If ``(x, y)`` is outside the raster.
        TypeMismatchError
            If *dtype* does not match the element size.
        """
        desc = self.descriptor
        offset = self._offset(x, y)
        raw = bytes(self._payload[offset:offset + desc.element_size])
        if dtype is not None:
            requested = np.dtype(dtype)
            if requested.itemsize != desc.element_size:
                raise TypeMismatchError(f"{requested} is {requested.itemsize} bytes but "
                                        f"{desc.name} elements are {desc.element_size}")
            return np.frombuffer(raw, dtype=requested, count=1)[0]
        if desc.value_code is None:
            return raw
        if desc.is_complex:
            return complex(np.frombuffer(raw, dtype=_element_dtype(desc), count=1)[0])
        values = np.frombuffer(raw, dtype=_value_dtype(desc))
        if desc.values_per_element == 1:
            return values[0]
        return tuple(values)

    def element_rc(self, row: int, col: int = 0, dtype: Any = None) -> Any:
        """Row/column access: ``element_rc(row, col) == element_at(col, row)``."""
        return self.element_at(col, row, dtype)

    def set_element(self, x: int, y: int, value: Any) -> None:
        """Store *value* at (*x*, *y*).

        *value* may be raw bytes of the element size, a number for
        single-value elements, a complex number for complex float types,
        or a sequence of ``values_per_element`` numbers.
        """
        desc = self.descriptor
        offset = self._offset(x, y)
        if isinstance(value, (bytes, bytearray, memoryview)):
            raw = bytes(value)
            if len(raw) != desc.element_size:
                raise TypeMismatchError(f"Expected {desc.element_size} bytes, got {len(raw)}")
        elif desc.value_code is None:
            raise TypeMismatchError(f"{desc.name} elements can only be set from raw bytes")
        elif desc.is_complex and np.iscomplexobj(value):
            raw = np.asarray(value, dtype=_element_dtype(desc)).reshape(1).tobytes()
        else:
            vdtype = _value_dtype(desc)
            values = np.asarray(value)
            if values.size != desc.values_per_element:
                raise ValueError(f"{desc.name} elements hold {desc.values_per_element} "
                                 f"values, got {values.size}")
            if vdtype.kind in "iu":
                if values.dtype.kind not in "iu":
                    raise TypeMismatchError(f"{desc.name} elements need integer values")
                lo, hi = int_bounds(vdtype.itemsize * 8, vdtype.kind == "i")
                if int(values.min()) < lo or int(values.max()) > hi:
                    raise ValueError(f"Value out of range for {desc.name}")
            raw = values.astype(vdtype).reshape(-1).tobytes()
        self._payload[offset:offset + desc.element_size] = raw

    def set_element_rc(self, row: int, col: int, value: Any) -> None:
        self.set_element(col, row, value)

    def to_numpy(self) -> np.ndarray:
        """Copy the payload into an array of shape ``(strided, sequential)``.

        Multi-value elements add a trailing axis of length
        ``values_per_element``; the complex float types give complex
        arrays instead.
        """
        desc = self.descriptor
        if not desc.has_payload:
            raise TypeMismatchError(f"{desc.name} rasters have no elements")
        shape = (self.strided_count, self.sequential_count)
        if desc.is_complex or desc.values_per_element == 1:
            dtype = _element_dtype(desc)
        else:
            dtype = _value_dtype(desc)
            shape += (desc.values_per_element,)
        return np.frombuffer(bytes(self._payload), dtype=dtype).reshape(shape).copy()

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------

    def add_metadata(self, name: str, value: Any, meta_type: MetaType | str | None = None,
                     location: int | None = None, dims: Sequence[int] | None = None,
                     stripped: bool = True) -> MetadataValue:
        """Add or replace a metadata entry.

        Parameters
        ----------
        name : str
            Unique key.  An existing entry with this name is replaced,
            including its type; the new entry takes a fresh bucket index.
        value : str, number, sequence or numpy array
            Scalars, or numeric arrays of up to four dimensions.  An
            ndarray's shape becomes the array dims, with its first axis
            varying fastest in the header.
        meta_type : MetaType or str, optional
            Declared type (``"float"``, ``MetaType.UINT16``, ...).
            Inferred from *value* when omitted.
        location : int, optional
            Header bucket (:class:`~paxfile.metadata.Location`).  Defaults
            to the bucket used by the previous add, initially END.
        dims : sequence of int, optional
            Array shape for a flat *value* given in storage order.

        Returns
        -------
        MetadataValue
            The stored entry.
        """
        _check_name(name)
        mtype = infer_meta_type(value) if meta_type is None else _as_meta_type(meta_type)
        if mtype is MetaType.COMMENT:
            return self.add_comment(value, location, stripped)
        if mtype is MetaType.STRING:
            if dims:
                raise ValueError("String metadata cannot be an array")
            stripped = stripped or (isinstance(value, str) and value.startswith(" "))
            stored = check_text(value, self.config.max_string_length, stripped)
            stored_dims: tuple[int, ...] = ()
        elif mtype.is_numeric:
            stored, stored_dims = coerce_numeric(mtype, value, dims)
            stripped = False
        else:
            raise TypeMismatchError(f"Cannot store metadata of type {mtype.tag}")

        loc, index = self.metadata.allocate(location)
        entry = MetadataValue(name, mtype, stored, stored_dims, loc, index, stripped)
        self.metadata.insert_or_replace(entry)
        return entry

    def add_comment(self, text: str, location: int | None = None,
                    stripped: bool = True) -> MetadataValue:
        """Append a comment line; its name is generated from bucket and index."""
        stripped = stripped or (isinstance(text, str) and text.startswith((" ", "#")))
        text = check_text(text, self.config.max_string_length, stripped)
        loc, index = self.metadata.allocate(location)
        entry = MetadataValue(comment_name(loc, index), MetaType.COMMENT, text,
                              location=loc, index=index, stripped=stripped)
        self.metadata.insert_or_replace(entry)
        return entry

    def get_metadata(self, name: str, meta_type: MetaType | str | None = None,
                     indices: int | Sequence[int] | None = None) -> Any:
        """Return a metadata value, optionally checking its declared type.

        Raises
        ------
        MetadataNotFoundError
            If *name* is not present.
        TypeMismatchError
            If *meta_type* is given and differs from the stored type.
        IndexOutOfBoundsError
            If *indices* fall outside the array dims.
        """
        entry = self.metadata.lookup(name)
        if meta_type is not None:
            wanted = _as_meta_type(meta_type)
            if entry.meta_type is not wanted:
                raise TypeMismatchError(f"Metadata {name!r} is {entry.meta_type.tag}, "
                                        f"not {wanted.tag}")
        return entry.value_at(indices)

    def metadata_type(self, name: str) -> MetaType:
        return self.metadata.lookup(name).meta_type

    def comments(self) -> list[str]:
        """Comment texts in header order."""
        ordered = sorted(self.metadata.comments(), key=lambda v: (v.location, v.index))
        return [v.value for v in ordered]

    # ------------------------------------------------------------------
    # Serialisation
    # ------------------------------------------------------------------

    def import_bytes(self, data: bytes, context: ParseContext | None = None,
                     offset: int = 0) -> ImportResult:
        """Replace this raster with the one encoded at *offset* in *data*.

        Nothing changes if parsing fails.

        Returns
        -------
        ImportResult
            ``consumed`` is header plus payload length, so concatenated
            rasters can be read one after another.
        """
        context = context or ParseContext(verbosity=self.config.verbosity)
        parsed = parse_header(data, context, self.config, offset=offset)
        start = offset + parsed.header_length
        end = start + parsed.header.data_length
        if len(data) < end:
            raise context.fail(BufferTooShortError(
                f"Payload needs {parsed.header.data_length} bytes after the header, "
                f"only {max(len(data) - start, 0)} available"))

        self.header = parsed.header
        self.metadata = parsed.metadata
        self._payload = bytearray(memoryview(data)[start:end])
        context.log(1, f"Imported {self.type_name}: {parsed.header_length} header bytes, "
                       f"{self.data_length} data bytes")
        return ImportResult(end - offset, parsed.header_length, parsed.warnings)

    def export_bytes(self, context: ParseContext | None = None) -> bytes:
        """Serialise header, metadata and payload into one buffer."""
        if self.header.type_id == PaxType.INVALID:
            raise StructureError("Cannot export a raster without a type")
        return write_raster(self.header, self.metadata, self._payload, self.config, context)

    @staticmethod
    def preview_type(data: bytes) -> PaxType:
        """Raster type named on the tag line of *data*."""
        return preview_type(data)

    @classmethod
    def from_bytes(cls, data: bytes, config: PaxConfig | None = None,
                   context: ParseContext | None = None) -> RasterFile:
        raster = cls(config=config)
        raster.import_bytes(data, context)
        return raster


def new_raster(type_id: int, sequential_count: int, strided_count: int,
               data: Any = None, **kwargs) -> RasterFile:
    """Create a raster of the given type and dimensions, optionally with data."""
    return RasterFile(type_id, sequential_count, strided_count, data, **kwargs)


def read_rasters(data: bytes, config: PaxConfig | None = None,
                 context: ParseContext | None = None) -> list[RasterFile]:
    """Split a buffer of back-to-back PAX rasters into :class:`RasterFile` objects.

    Trailing whitespace after the last raster is ignored.
    """
    data = bytes(data)
    rasters: list[RasterFile] = []
    offset = 0
    while True:
        while offset < len(data) and data[offset] in b" \t\r\n":
            offset += 1
        if offset >= len(data):
            break
        raster = RasterFile(config=config)
        offset += raster.import_bytes(data, context, offset=offset).consumed
        rasters.append(raster)
    return rasters


def write_rasters(rasters: Iterable[RasterFile],
                  context: ParseContext | None = None) -> bytes:
    """Concatenate the exported bytes of several rasters."""
    return b"".join(r.export_bytes(context) for r in rasters)
