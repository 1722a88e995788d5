"""paxfile - read and write PAX self-describing raster files."""

__version__ = "0.1.0"

from paxfile.config import PaxConfig, load_config
from paxfile.context import ParseContext
from paxfile.errors import (
    BufferTooShortError,
    IncompleteHeaderError,
    IndexOutOfBoundsError,
    InvalidTagError,
    MalformedNumberError,
    MetadataNotFoundError,
    PaxError,
    PaxIOError,
    StructureError,
    TypeMismatchError,
    UnknownMetadataTypeError,
    UnknownTypeError,
)
from paxfile.header import RasterHeader, parse_header, preview_header, preview_type
from paxfile.metadata import Location, MetadataStore, MetadataValue, MetaType
from paxfile.raster import ImportResult, RasterFile, new_raster, read_rasters, write_rasters
from paxfile.types import PaxType, TypeDescriptor, descriptor_for
from paxfile.io import preview_file, read_raster, write_raster_file

__all__ = [
    "PaxConfig",
    "load_config",
    "ParseContext",
    "PaxError",
    "InvalidTagError",
    "UnknownTypeError",
    "StructureError",
    "MalformedNumberError",
    "UnknownMetadataTypeError",
    "IndexOutOfBoundsError",
    "BufferTooShortError",
    "IncompleteHeaderError",
    "TypeMismatchError",
    "MetadataNotFoundError",
    "PaxIOError",
    "RasterHeader",
    "parse_header",
    "preview_header",
    "preview_type",
    "Location",
    "MetadataStore",
    "MetadataValue",
    "MetaType",
    "ImportResult",
    "RasterFile",
    "new_raster",
    "read_rasters",
    "write_rasters",
    "PaxType",
    "TypeDescriptor",
    "descriptor_for",
    "preview_file",
    "read_raster",
    "write_raster_file",
]
