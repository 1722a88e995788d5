"""Raster type registry.

Each PAX raster declares a numeric type id on its tag line.  The id fixes
the element layout: how many bytes one value occupies (BPV) and how many
values make up one element (VPE).  The table below is the only place
these numbers live; parser, writer and container all consult it.

``value_code`` is the :mod:`struct` / numpy character code for a single
value, or ``None`` where Python has no matching scalar (quadruple
precision and the zero-footprint ids).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

from paxfile.errors import UnknownTypeError


class PaxType(IntEnum):
    INVALID = -1
    SF_MAG_UCHAR = 0
    SF_MAG_PHASE_USHORT = 1
    SF_COMPLEX_USHORT = 2
    SF_COMPLEX_UINT = 3
    SF_COMPLEX_ULONG = 4
    SF_MAG_CHAR = 5
    SF_MAG_PHASE_SHORT = 6
    SF_COMPLEX_SHORT = 7
    SF_COMPLEX_INT = 8
    SF_COMPLEX_LONG = 9
    SF_COMPLEX_SINGLE = 10
    SF_COMPLEX_DOUBLE = 11
    SF_MAG_PHASE_UCHAR = 12
    SF_MAG_PHASE_CHAR = 13
    SF_RGB_UCHAR = 14
    SF_HSV_UCHAR = 15
    SF_UNDEFINED_PIXEL_TYPE = 16
    CUSTOM = 99
    CHAR = 100
    UCHAR = 101
    SHORT = 102
    USHORT = 103
    INT = 104
    UINT = 105
    LONG = 106
    ULONG = 107
    HALF = 108
    FLOAT = 109
    DOUBLE = 110
    QUADRUPLE = 111
    META_ONLY = 199
    FLOAT3 = 200
    PBM_ASCII = 1001
    PGM_ASCII = 1002
    PPM_ASCII = 1003
    PBM_BINARY = 1004
    PGM_BINARY = 1005
    PPM_BINARY = 1006


@dataclass(frozen=True)
class TypeDescriptor:
    """Element layout of one raster type."""

    id: int
    bytes_per_value: int
    values_per_element: int
    name: str
    value_code: str | None = None
    is_complex: bool = False

    @property
    def element_size(self) -> int:
        """Bytes occupied by one element."""
        return self.bytes_per_value * self.values_per_element

    @property
    def has_payload(self) -> bool:
        """False for the zero-footprint ids (metadata-only rasters)."""
        return self.element_size > 0


def _t(ptype: PaxType, bpv: int, vpe: int, code: str | None = None,
       is_complex: bool = False) -> TypeDescriptor:
    return TypeDescriptor(int(ptype), bpv, vpe, f"PAX_{ptype.name}", code, is_complex)


_TYPE_TABLE: tuple[TypeDescriptor, ...] = (
    _t(PaxType.INVALID, 0, 0),
    _t(PaxType.SF_MAG_UCHAR, 1, 1, "B"),
    _t(PaxType.SF_MAG_PHASE_USHORT, 2, 2, "H"),
    _t(PaxType.SF_COMPLEX_USHORT, 2, 2, "H"),
    _t(PaxType.SF_COMPLEX_UINT, 4, 2, "I"),
    _t(PaxType.SF_COMPLEX_ULONG, 8, 2, "Q"),
    _t(PaxType.SF_MAG_CHAR, 1, 1, "b"),
    _t(PaxType.SF_MAG_PHASE_SHORT, 2, 2, "h"),
    _t(PaxType.SF_COMPLEX_SHORT, 2, 2, "h"),
    _t(PaxType.SF_COMPLEX_INT, 4, 2, "i"),
    _t(PaxType.SF_COMPLEX_LONG, 8, 2, "q"),
    _t(PaxType.SF_COMPLEX_SINGLE, 4, 2, "f", is_complex=True),
    _t(PaxType.SF_COMPLEX_DOUBLE, 8, 2, "d", is_complex=True),
    _t(PaxType.SF_MAG_PHASE_UCHAR, 1, 2, "B"),
    _t(PaxType.SF_MAG_PHASE_CHAR, 1, 2, "b"),
    _t(PaxType.SF_RGB_UCHAR, 1, 3, "B"),
    _t(PaxType.SF_HSV_UCHAR, 1, 3, "B"),
    _t(PaxType.SF_UNDEFINED_PIXEL_TYPE, 0, 0),
    _t(PaxType.CUSTOM, 0, 0),
    _t(PaxType.CHAR, 1, 1, "b"),
    _t(PaxType.UCHAR, 1, 1, "B"),
    _t(PaxType.SHORT, 2, 1, "h"),
    _t(PaxType.USHORT, 2, 1, "H"),
    _t(PaxType.INT, 4, 1, "i"),
    _t(PaxType.UINT, 4, 1, "I"),
    _t(PaxType.LONG, 8, 1, "q"),
    _t(PaxType.ULONG, 8, 1, "Q"),
    _t(PaxType.HALF, 2, 1, "e"),
    _t(PaxType.FLOAT, 4, 1, "f"),
    _t(PaxType.DOUBLE, 8, 1, "d"),
    _t(PaxType.QUADRUPLE, 16, 1),
    _t(PaxType.META_ONLY, 0, 0),
    _t(PaxType.FLOAT3, 4, 3, "f"),
    _t(PaxType.PBM_ASCII, 1, 1, "B"),
    _t(PaxType.PGM_ASCII, 1, 1, "B"),
    _t(PaxType.PPM_ASCII, 1, 3, "B"),
    _t(PaxType.PBM_BINARY, 1, 1, "B"),
    _t(PaxType.PGM_BINARY, 1, 1, "B"),
    _t(PaxType.PPM_BINARY, 1, 3, "B"),
)

_BY_ID: dict[int, TypeDescriptor] = {d.id: d for d in _TYPE_TABLE}


def is_pax_type(type_id: int) -> bool:
    """Return True if *type_id* is a registered type other than INVALID."""
    return type_id != PaxType.INVALID and type_id in _BY_ID


def descriptor_for(type_id: int) -> TypeDescriptor:
    """Look up the descriptor for *type_id*.

    Parameters
    ----------
    type_id : int
        Raster type identifier as written after ``PAX`` on the tag line.

    Returns
    -------
    TypeDescriptor

    Raises
    ------
    UnknownTypeError
        If the id is not registered or is the INVALID sentinel.
    """
    if not is_pax_type(type_id):
        raise UnknownTypeError(f"Unknown PAX type id: {type_id}")
    return _BY_ID[type_id]


def bytes_per_value(type_id: int) -> int:
    return descriptor_for(type_id).bytes_per_value


def values_per_element(type_id: int) -> int:
    return descriptor_for(type_id).values_per_element


def name_of(type_id: int) -> str:
    return descriptor_for(type_id).name


def all_descriptors() -> tuple[TypeDescriptor, ...]:
    """Return every registered descriptor except INVALID."""
    return tuple(d for d in _TYPE_TABLE if d.id != PaxType.INVALID)
