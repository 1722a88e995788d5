"""Export 8-bit greyscale PGM images from PAX rasters.

Only UCHAR, CHAR and FLOAT rasters convert.  CHAR bytes are taken as
unsigned; FLOAT values are clamped to 0..255 and truncated.  Binary
output is ``P5``; ASCII output is ``P2`` with one text line per raster
row.  This is a one-way export.
"""

from __future__ import annotations

from pathlib import Path

import numpy as np

from paxfile.errors import TypeMismatchError
from paxfile.io import write_file
from paxfile.raster import RasterFile
from paxfile.types import PaxType

PGM_TYPES = (PaxType.UCHAR, PaxType.CHAR, PaxType.FLOAT)


def to_grey_bytes(raster: RasterFile) -> np.ndarray:
    """Return the raster as a ``(strided, sequential)`` uint8 array."""
    if raster.type_id not in PGM_TYPES:
        raise TypeMismatchError(f"Cannot convert {raster.type_name} to PGM; "
                                f"only UCHAR, CHAR and FLOAT are supported")
    if raster.type_id == PaxType.FLOAT:
        values = np.nan_to_num(raster.to_numpy(), nan=0.0)
        return np.clip(values, 0, 255).astype(np.uint8)
    return raster.to_numpy().view(np.uint8)


def to_pgm(raster: RasterFile, binary: bool = True) -> bytes:
    """Render *raster* as a PGM image.

    Parameters
    ----------
    raster : RasterFile
        A UCHAR, CHAR or FLOAT raster.
    binary : bool
        ``P5`` binary output when True, ``P2`` ASCII otherwise.

    Returns
    -------
    bytes
        Complete PGM file contents.
    """
    grey = to_grey_bytes(raster)
    tag = "P5" if binary else "P2"
    header = f"{tag}\n{raster.sequential_count} {raster.strided_count}\n255\n".encode("ascii")
    if binary:
        return header + grey.tobytes()
    rows = [" ".join(f"{v:3d}" for v in row) + "\n" for row in grey.tolist()]
    return header + "".join(rows).encode("ascii")


def write_pgm(path: str | Path, raster: RasterFile, binary: bool = True) -> int:
    """Write *raster* to *path* as a PGM image and return the bytes written."""
    return write_file(path, to_pgm(raster, binary))
