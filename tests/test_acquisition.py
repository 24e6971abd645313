"""Tests for HTTP report acquisition.

All HTTP traffic goes through ``httpx.MockTransport``; no real CFTC
downloads are made.
"""

from __future__ import annotations

from datetime import datetime, timezone

import httpx
import pytest

from cotwatch.data.ingestion.acquisition import (
    AcquisitionError,
    HttpReportSource,
    validate_year,
)
from cotwatch.data.ingestion.base import IngestionError


def _source(handler) -> HttpReportSource:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return HttpReportSource("https://example.test/history/", timeout=5.0, client=client)


class TestUrl:
    def test_url_pattern(self):
        source = HttpReportSource("https://example.test/history/")
        assert source.url_for(2024) == "https://example.test/history/fut_disagg_txt_2024.zip"


class TestYearValidation:
    def test_first_year_ok(self):
        validate_year(2017)

    def test_before_first_year(self):
        with pytest.raises(ValueError):
            validate_year(2016)

    def test_combined_history_years_rejected(self):
        with pytest.raises(ValueError, match="between 2017"):
            validate_year(2007)

    def test_future_year(self):
        with pytest.raises(ValueError):
            validate_year(datetime.now(timezone.utc).year + 1)

    def test_fetch_validates_before_request(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, content=b"zip")

        with pytest.raises(ValueError):
            _source(handler).fetch(1999)
        assert calls == []


class TestFetch:
    def test_success_returns_body(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            return httpx.Response(200, content=b"PK\x03\x04data")

        body = _source(handler).fetch(2024)
        assert body == b"PK\x03\x04data"
        assert seen["url"] == "https://example.test/history/fut_disagg_txt_2024.zip"

    def test_http_error_status(self):
        source = _source(lambda request: httpx.Response(404))
        with pytest.raises(AcquisitionError) as excinfo:
            source.fetch(2024)
        assert excinfo.value.url.endswith("fut_disagg_txt_2024.zip")
        assert "404" in excinfo.value.reason

    def test_empty_body(self):
        source = _source(lambda request: httpx.Response(200, content=b""))
        with pytest.raises(AcquisitionError, match="empty"):
            source.fetch(2024)

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(AcquisitionError, match="ConnectError"):
            _source(handler).fetch(2024)

    def test_is_an_ingestion_error(self):
        source = _source(lambda request: httpx.Response(500))
        with pytest.raises(IngestionError):
            source.fetch(2024)
