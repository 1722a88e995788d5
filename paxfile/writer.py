"""PAX writer: the inverse of :mod:`paxfile.header`.

Output order is fixed: tag line, then each structural line preceded by
the metadata bucket that belongs before it, then ``DATA_LENGTH`` and
the raw payload.  Numbers are written with the shortest text that reads
back to the identical float32/float64 value.
"""

from __future__ import annotations

import numpy as np

from paxfile.config import PaxConfig, default_config
from paxfile.context import ParseContext
from paxfile.cursor import (
    BPV_TAG,
    DATA_LENGTH_TAG,
    PAX_TAG,
    SEQUENTIAL_TAG,
    STRIDED_TAG,
    TEXT_ENCODING,
    VPE_TAG,
)
from paxfile.errors import StructureError
from paxfile.header import RasterHeader
from paxfile.metadata import (
    ARRAY_INDEX_TAGS,
    Location,
    MetadataStore,
    MetadataValue,
    MetaType,
)
from paxfile.types import descriptor_for

TYPE_TAG_WIDTH = 11


def format_number(meta_type: MetaType, value) -> str:
    """Render one metadata value so that parsing it gives the same value back."""
    if meta_type is MetaType.FLOAT:
        return str(np.float32(value))
    if meta_type is MetaType.DOUBLE:
        return repr(float(value))
    return str(int(value))


def _row_length(dims: tuple[int, ...], config: PaxConfig) -> int:
    """Number of array values written per line for multi-dimensional arrays."""
    row = 1
    subrow = 1
    for d in dims:
        if row >= config.max_values_per_row:
            break
        row *= d
        if subrow * d < config.max_subrow_values:
            subrow *= d
    if row > config.max_values_per_row:
        row = subrow if subrow > 1 else config.max_values_per_row
    return max(row, 1)


def format_metadata(value: MetadataValue, config: PaxConfig | None = None) -> str:
    """Render one comment or metadata entry as header text, including the final LF.

    Examples
    --------
    >>> format_metadata(MetadataValue("pi", MetaType.DOUBLE, 3.5))
    '## [double]   pi = 3.5\\n'
    """
    config = config or default_config()
    mtype = value.meta_type
    if mtype is MetaType.COMMENT:
        return ("# " if value.stripped else "#") + value.value + "\n"
    if mtype is MetaType.STRING:
        delim = " = " if value.stripped else " ="
        return f"## [{mtype.tag}]   {value.name}{delim}{value.value}\n"
    if not mtype.is_numeric:
        return ""

    parts = ["## ", f"[{mtype.tag}]      "[:TYPE_TAG_WIDTH], value.name]
    if value.is_array:
        clauses = " ".join(f"{tag} = {d}" for tag, d in zip(ARRAY_INDEX_TAGS, value.dims))
        parts.append(f" [ {clauses} ]")
    parts.append(" =")

    if not value.is_array:
        parts.append(" " + format_number(mtype, value.value))
    else:
        row = _row_length(value.dims, config)
        wrap = len(value.dims) > 1
        for i, v in enumerate(value.value):
            if wrap and i % row == 0:
                parts.append("\n ")
            parts.append(" " + format_number(mtype, v))
    parts.append("\n")
    return "".join(parts)


def format_version(version: float) -> str:
    """Tag-line version text: two decimals, or the exact repr if those would round it."""
    text = f"{version:.2f}"
    return text if float(text) == version else repr(float(version))


def _structural(tag: bytes, value: int) -> str:
    return f"{tag.decode('ascii')} : {value}\n"


def write_raster(header: RasterHeader, metadata: MetadataStore, payload: bytes,
                 config: PaxConfig | None = None,
                 context: ParseContext | None = None) -> bytes:
    """Serialise a header, its metadata and the payload into PAX bytes.

    Parameters
    ----------
    header : RasterHeader
        Structural fields.  BPV, VPE and the data length are recomputed
        from the type registry and dimensions.
    metadata : MetadataStore
        Entries are written bucket by bucket in sequence-index order.
    payload : bytes-like
        Exactly ``data_length`` bytes of raster data.

    Returns
    -------
    bytes
        Header text followed by the payload.
    """
    config = config or default_config()
    context = context or ParseContext(verbosity=config.verbosity)
    desc = descriptor_for(header.type_id)
    data_length = desc.element_size * header.sequential_count * header.strided_count
    if len(payload) != data_length:
        raise StructureError(f"Payload is {len(payload)} bytes but {desc.name} "
                             f"{header.sequential_count} x {header.strided_count} "
                             f"needs {data_length}")

    groups = metadata.grouped_by_location()
    version = format_version(header.version)
    out = [f"{PAX_TAG.decode('ascii')}{desc.id} : v{version} : {desc.name}\n"]
    sections = (
        (Location.AFTER_TAG, BPV_TAG, desc.bytes_per_value),
        (Location.AFTER_BPV, VPE_TAG, desc.values_per_element),
        (Location.AFTER_VPE, SEQUENTIAL_TAG, header.sequential_count),
        (Location.AFTER_SEQUENTIAL, STRIDED_TAG, header.strided_count),
        (Location.AFTER_STRIDED, DATA_LENGTH_TAG, data_length),
    )
    for location, tag, number in sections:
        context.log(3, f"Writing {len(groups[location])} metadata lines at {location.name}")
        out.extend(format_metadata(v, config) for v in groups[location])
        out.append(_structural(tag, number))

    text = "".join(out).encode(TEXT_ENCODING)
    context.log(1, f"Wrote {len(text)} header bytes and {data_length} data bytes "
                   f"for a total of {len(text) + data_length} bytes")
    return text + bytes(payload)
