"""Reading and writing PAX files on disk.

The codec itself works on in-memory buffers; these helpers move bytes
between files and those buffers.  ``OSError`` is re-raised as
:class:`~paxfile.errors.PaxIOError` with the original attached.
"""

from __future__ import annotations

import logging
from pathlib import Path

from paxfile.config import PaxConfig, default_config
from paxfile.context import ParseContext
from paxfile.errors import BufferTooShortError, IncompleteHeaderError, PaxIOError
from paxfile.header import RasterHeader, preview_header, preview_type
from paxfile.raster import RasterFile, read_rasters
from paxfile.types import PaxType

logger = logging.getLogger(__name__)


def read_file(path: str | Path) -> bytes:
    """Return the whole contents of *path*."""
    try:
        with open(Path(path), "rb") as fh:
            return fh.read()
    except OSError as exc:
        raise PaxIOError(f"Cannot read {path}: {exc.strerror or exc}", exc) from exc


def write_file(path: str | Path, data: bytes, make_dirs: bool = False) -> int:
    """Write *data* to *path*, replacing any existing file.

    Parameters
    ----------
    path : str or Path
        Destination file.
    data : bytes-like
        Contents to write.
    make_dirs : bool
        Create missing parent directories first.

    Returns
    -------
    int
        Number of bytes written.
    """
    path = Path(path)
    try:
        if make_dirs:
            path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as fh:
            written = fh.write(data)
    except OSError as exc:
        raise PaxIOError(f"Cannot write {path}: {exc.strerror or exc}", exc) from exc
    logger.info(f"Wrote {written} bytes to {path}")
    return written


def read_file_chunk(path: str | Path, index: int = 0, chunk_length: int | None = None) -> bytes:
    """Read chunk number *index* of *path*.

    Chunks past the end of the file come back empty; the last chunk may
    be short.
    """
    chunk_length = chunk_length or default_config().chunk_length
    try:
        with open(Path(path), "rb") as fh:
            fh.seek(index * chunk_length)
            return fh.read(chunk_length)
    except OSError as exc:
        raise PaxIOError(f"Cannot read {path}: {exc.strerror or exc}", exc) from exc


def read_file_type(path: str | Path) -> PaxType:
    """Raster type of the PAX file at *path*, from its first chunk."""
    return preview_type(read_file_chunk(path, 0))


def preview_file(path: str | Path, config: PaxConfig | None = None,
                 context: ParseContext | None = None) -> RasterHeader:
    """Read just enough of *path* to parse its header, skipping metadata.

    The file is read in ``chunk_length`` pieces; each new piece is
    appended and the header parse retried until ``DATA_LENGTH`` is seen.

    Raises
    ------
    IncompleteHeaderError
        If the file ends before the header does.
    """
    config = config or default_config()
    buf = bytearray()
    try:
        with open(Path(path), "rb") as fh:
            while True:
                chunk = fh.read(config.chunk_length)
                buf += chunk
                result = preview_header(buf, context, config)
                if result.complete:
                    logger.debug(f"Previewed {path} after {len(buf)} bytes")
                    return result.header
                if len(chunk) < config.chunk_length:
                    raise IncompleteHeaderError(f"{path} ended before DATA_LENGTH",
                                                result.offset)
    except OSError as exc:
        raise PaxIOError(f"Cannot read {path}: {exc.strerror or exc}", exc) from exc


def read_raster(path: str | Path, config: PaxConfig | None = None,
                context: ParseContext | None = None) -> RasterFile:
    """Load the PAX raster stored at *path*."""
    config = config or default_config()
    data = read_file(path)
    if len(data) < config.min_file_length:
        raise BufferTooShortError(f"{path} is {len(data)} bytes, too short for a PAX header")
    return RasterFile.from_bytes(data, config, context)


def read_raster_stream(path: str | Path, config: PaxConfig | None = None,
                       context: ParseContext | None = None) -> list[RasterFile]:
    """Load every raster from a file of concatenated PAX rasters."""
    return read_rasters(read_file(path), config, context)


def write_raster_file(path: str | Path, raster: RasterFile, make_dirs: bool = False) -> int:
    """Export *raster* and write it to *path*."""
    return write_file(path, raster.export_bytes(), make_dirs)
