"""Tests for paxfile.config."""

import pytest

from paxfile.config import PaxConfig, default_config, load_config


class TestPaxConfig:
    def test_defaults(self):
        cfg = PaxConfig()
        assert cfg.max_string_length == 256
        assert cfg.chunk_length == 16384

    def test_too_short_strings(self):
        with pytest.raises(ValueError):
            PaxConfig(max_string_length=1)

    def test_non_positive_chunk(self):
        with pytest.raises(ValueError):
            PaxConfig(chunk_length=0)


class TestLoadConfig:
    def test_packaged_defaults(self):
        cfg = load_config()
        assert cfg == PaxConfig()

    def test_default_config_cached(self):
        assert default_config() is default_config()

    def test_custom_config(self, tmp_path):
        p = tmp_path / "pax.yaml"
        p.write_text("chunk_length: 64\nformat_version: 2.0\n")
        cfg = load_config(p)
        assert cfg.chunk_length == 64
        assert cfg.format_version == 2.0
        assert cfg.min_file_length == 128

    def test_empty_file(self, tmp_path):
        p = tmp_path / "empty.yaml"
        p.write_text("")
        assert load_config(p) == PaxConfig()

    def test_unknown_key(self, tmp_path):
        p = tmp_path / "bad.yaml"
        p.write_text("chunk_size: 64\n")
        with pytest.raises(ValueError, match="chunk_size"):
            load_config(p)

    def test_config_drives_truncation(self):
        from paxfile import PaxType, new_raster

        raster = new_raster(PaxType.UCHAR, 1, 1, config=PaxConfig(max_string_length=8))
        raster.add_metadata("s", "abcdefghij")
        raster.add_metadata("t", "abcdefghij", stripped=False)
        assert raster.get_metadata("s") == "abcdef"
        assert raster.get_metadata("t") == "abcdefg"
