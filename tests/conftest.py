"""Shared test fixtures for paxfile."""

import struct

import numpy as np
import pytest

from paxfile import PaxType, new_raster

SCENARIO_VALUES = [158.98166, 171.61903, 160.06989, 148.83504]


def make_pax(*lines, payload=b""):
    """Join header lines with LF and append the payload."""
    return "".join(line + "\n" for line in lines).encode("latin-1") + payload


@pytest.fixture
def tmp_dir(tmp_path):
    """Provide a temporary directory Path."""
    return tmp_path


@pytest.fixture
def float_payload():
    return struct.pack("=4f", *SCENARIO_VALUES)


@pytest.fixture
def float_header_lines():
    """Header of a 2x2 FLOAT raster with metadata in several buckets."""
    return [
        "PAX109 : v1.00 : PAX_FLOAT",
        "# made by hand",
        "BYTES_PER_VALUE : 4",
        "VALUES_PER_ELEMENT : 1",
        "## [float]    pi = 3.1416",
        "ELEMENTS_IN_SEQUENTIAL_DIMENSION : 2",
        "ELEMENTS_IN_STRIDED_DIMENSION : 2",
        "## [int32]    grid [ first = 2 second = 3 ] =",
        "  1 2",
        "  3 4",
        "  5 6",
        "## [string]   label = hello world",
        "DATA_LENGTH : 16",
    ]


@pytest.fixture
def float_pax_bytes(float_header_lines, float_payload):
    """A complete hand-written PAX file (header + 16 byte payload)."""
    return make_pax(*float_header_lines, payload=float_payload)


@pytest.fixture
def float_pax_file(tmp_dir, float_pax_bytes):
    p = tmp_dir / "sample.pax"
    p.write_bytes(float_pax_bytes)
    return p


@pytest.fixture
def float_raster():
    """The 2x2 FLOAT raster from the round-trip scenario, without metadata."""
    return new_raster(PaxType.FLOAT, 2, 2, np.array(SCENARIO_VALUES, dtype=np.float32))


@pytest.fixture
def uchar_raster():
    """A 3x2 UCHAR raster holding 1..6."""
    return new_raster(PaxType.UCHAR, 3, 2, bytes([1, 2, 3, 4, 5, 6]))
