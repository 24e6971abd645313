"""Tests for archive extraction."""

from __future__ import annotations

import io
import zipfile

import pytest

from conftest import zip_archive
from cotwatch.data.ingestion.extraction import ExtractionError, extract


class TestExtract:
    def test_finds_f_year_file(self):
        assert extract(zip_archive("a,b\n1,2\n")) == "a,b\n1,2\n"

    def test_alternate_name_case_insensitive(self):
        archive = zip_archive("x\n", name="2024/fut_disagg.TXT")
        assert extract(archive) == "x\n"

    def test_first_match_wins(self):
        buf = io.BytesIO()
        with zipfile.ZipFile(buf, "w") as zf:
            zf.writestr("readme.txt", "ignore me")
            zf.writestr("f_year.txt", "first")
            zf.writestr("FUT_DISAGG.txt", "second")
        assert extract(buf.getvalue()) == "first"

    def test_no_matching_entry(self):
        with pytest.raises(ExtractionError, match="No report file"):
            extract(zip_archive("x", name="other.csv"))

    def test_not_a_zip(self):
        with pytest.raises(ExtractionError, match="not a readable zip"):
            extract(b"<html>maintenance</html>")
