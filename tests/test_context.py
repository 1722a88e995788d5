"""Tests for the per-call parse context."""

import logging

from paxfile.context import ParseContext
from paxfile.errors import StructureError
from paxfile.raster import RasterFile


class TestParseContext:
    def test_warn_collects_and_logs(self, caplog):
        ctx = ParseContext()
        with caplog.at_level(logging.WARNING, logger="paxfile"):
            ctx.warn("careful")
        assert ctx.warnings == ["careful"]
        assert "careful" in caplog.text

    def test_log_respects_verbosity(self, caplog):
        with caplog.at_level(logging.DEBUG, logger="paxfile"):
            ParseContext(verbosity=0).log(1, "hidden")
            ParseContext(verbosity=1).log(1, "summary")
            ParseContext(verbosity=1).log(2, "trace hidden")
            ParseContext(verbosity=2).log(2, "trace")
        assert "hidden" not in caplog.text
        assert "summary" in caplog.text
        assert "trace" in caplog.text
        assert "trace hidden" not in caplog.text

    def test_fail_records_last_error(self):
        ctx = ParseContext()
        err = StructureError("bad")
        assert ctx.fail(err) is err
        assert ctx.last_error is err

    def test_contexts_are_independent(self, float_header_lines, float_payload):
        from conftest import make_pax

        lines = list(float_header_lines)
        lines.insert(2, "## [complex] z = 1")
        first, second = ParseContext(), ParseContext()
        RasterFile.from_bytes(make_pax(*lines, payload=float_payload), context=first)
        RasterFile.from_bytes(make_pax(*float_header_lines, payload=float_payload),
                              context=second)
        assert len(first.warnings) == 1
        assert second.warnings == []

    def test_import_summary_logged(self, caplog, float_pax_bytes):
        with caplog.at_level(logging.INFO, logger="paxfile"):
            RasterFile.from_bytes(float_pax_bytes, context=ParseContext(verbosity=1))
        assert "Imported PAX_FLOAT" in caplog.text
