"""Tests for PGM export."""

import numpy as np
import pytest

from paxfile.errors import TypeMismatchError
from paxfile.pgm import to_grey_bytes, to_pgm, write_pgm
from paxfile.raster import new_raster
from paxfile.types import PaxType


class TestToPgm:
    def test_binary(self, uchar_raster):
        assert to_pgm(uchar_raster) == b"P5\n3 2\n255\n" + bytes([1, 2, 3, 4, 5, 6])

    def test_ascii(self, uchar_raster):
        assert to_pgm(uchar_raster, binary=False) == (
            b"P2\n3 2\n255\n"
            b"  1   2   3\n"
            b"  4   5   6\n"
        )

    def test_float_clamped(self):
        raster = new_raster(PaxType.FLOAT, 4, 1,
                            np.array([-5.0, 0.5, 254.9, 300.0], dtype=np.float32))
        assert to_grey_bytes(raster).tolist() == [[0, 0, 254, 255]]

    def test_char_as_unsigned(self):
        raster = new_raster(PaxType.CHAR, 2, 1, np.array([-1, 5], dtype=np.int8))
        assert to_pgm(raster).endswith(bytes([255, 5]))

    def test_unsupported_type(self):
        raster = new_raster(PaxType.DOUBLE, 1, 1, np.zeros(1))
        with pytest.raises(TypeMismatchError):
            to_pgm(raster)

    def test_write(self, tmp_dir, uchar_raster):
        p = tmp_dir / "img.pgm"
        assert write_pgm(p, uchar_raster) == 11 + 6
        assert p.read_bytes().startswith(b"P5\n")
