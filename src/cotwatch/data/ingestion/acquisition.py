"""Report acquisition: download the yearly compressed COT archive.

The CFTC publishes one zip archive per year of Disaggregated Futures-Only
reports under a fixed URL pattern. Acquisition never retries; a failed fetch
surfaces as a single ``AcquisitionError`` and the caller decides whether to
re-run the whole ingestion.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol

import httpx
import structlog

from cotwatch.config.settings import (
    CFTC_HISTORY_URL,
    FIRST_REPORT_YEAR,
    REPORT_URL_TEMPLATE,
)
from cotwatch.data.ingestion.base import IngestionError

logger = structlog.get_logger()


class AcquisitionError(IngestionError):
    """The archive could not be fetched (transport, HTTP status, empty body)."""

    def __init__(self, url: str, reason: str) -> None:
        super().__init__(f"Failed to fetch {url}: {reason}")
        self.url = url
        self.reason = reason


class ReportSource(Protocol):
    """Anything that can produce the raw archive for a report year."""

    def url_for(self, year: int) -> str:
        ...

    def fetch(self, year: int) -> bytes:
        ...


def validate_year(year: int) -> None:
    """Raise ``ValueError`` unless ``year`` lies in [FIRST_REPORT_YEAR, current year]."""
    current = datetime.now(timezone.utc).year
    if not FIRST_REPORT_YEAR <= year <= current:
        raise ValueError(
            f"Report year must be between {FIRST_REPORT_YEAR} and {current}, got {year}"
        )


class HttpReportSource:
    """Fetch yearly archives over HTTP with ``httpx``.

    Parameters
    ----------
    base_url : str
        Directory holding the ``fut_disagg_txt_{year}.zip`` archives.
    timeout : float | None
        Request timeout in seconds; None waits indefinitely.
    client : httpx.Client, optional
        Pre-configured client (e.g. with a mock transport). When omitted a
        short-lived client is opened per fetch.
    """

    def __init__(
        self,
        base_url: str = CFTC_HISTORY_URL,
        timeout: float | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._client = client

    def url_for(self, year: int) -> str:
        return REPORT_URL_TEMPLATE.format(base_url=self.base_url, year=year)

    def fetch(self, year: int) -> bytes:
        """Download the archive for ``year``.

        Parameters
        ----------
        year : int
            Report year, ``FIRST_REPORT_YEAR`` or later and not in the future.

        Returns
        -------
        bytes
            The raw zip archive.

        Raises
        ------
        ValueError
            If ``year`` is out of range.
        AcquisitionError
            On transport failure, a non-success status, or an empty body.
        """
        validate_year(year)
        url = self.url_for(year)
        log = logger.bind(url=url, year=year)
        log.info("fetching_report")

        try:
            if self._client is not None:
                response = self._client.get(url, timeout=self.timeout)
            else:
                with httpx.Client(timeout=self.timeout, follow_redirects=True) as client:
                    response = client.get(url)
        except httpx.HTTPError as e:
            log.error("report_fetch_failed", error=str(e))
            raise AcquisitionError(url, f"{type(e).__name__}: {e}") from e

        if not response.is_success:
            log.error("report_fetch_failed", status_code=response.status_code)
            raise AcquisitionError(url, f"HTTP {response.status_code}")

        content = response.content
        if not content:
            log.error("report_fetch_failed", error="empty body")
            raise AcquisitionError(url, "empty response body")

        log.info("report_fetched", size_bytes=len(content))
        return content
