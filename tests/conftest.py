"""Shared test fixtures for the cotwatch test suite."""

from __future__ import annotations

import csv
import io
import zipfile
from datetime import date, timedelta
from pathlib import Path

import pytest
import structlog

from cotwatch.config.instruments import default_registry
from cotwatch.data.store.positioning_store import PositioningRecord, PositioningStore

REPORT_HEADER = [
    "Market_and_Exchange_Names",
    "As_of_Date_In_Form_YYMMDD",
    "Report_Date_as_YYYY-MM-DD",
    "CFTC_Contract_Market_Code",
    "Open_Interest_All",
    "Prod_Merc_Positions_Long_All",
    "Prod_Merc_Positions_Short_All",
    "Swap_Positions_Long_All",
    "Swap__Positions_Short_All",
    "M_Money_Positions_Long_All",
    "M_Money_Positions_Short_All",
    "Other_Rept_Positions_Long_All",
    "Other_Rept_Positions_Short_All",
]


def report_row(
    market: str,
    report_date: str,
    code: str = "",
    commercial_long: int = 100_000,
    commercial_short: int = 80_000,
    **overrides,
) -> dict:
    """One report row in the CFTC column layout."""
    row = {
        "Market_and_Exchange_Names": market,
        "As_of_Date_In_Form_YYMMDD": report_date.replace("-", "")[2:],
        "Report_Date_as_YYYY-MM-DD": report_date,
        "CFTC_Contract_Market_Code": code,
        "Open_Interest_All": "500,000",
        "Prod_Merc_Positions_Long_All": str(commercial_long),
        "Prod_Merc_Positions_Short_All": str(commercial_short),
        "Swap_Positions_Long_All": "20000",
        "Swap__Positions_Short_All": "25000",
        "M_Money_Positions_Long_All": "60000",
        "M_Money_Positions_Short_All": "40000",
        "Other_Rept_Positions_Long_All": "15000",
        "Other_Rept_Positions_Short_All": "12000",
    }
    row.update(overrides)
    return row


def report_text(rows: list[dict], header: list[str] | None = None) -> str:
    """Serialize rows as comma-separated report text with a header line."""
    buf = io.StringIO()
    writer = csv.DictWriter(buf, fieldnames=header or REPORT_HEADER, extrasaction="ignore")
    writer.writeheader()
    writer.writerows(rows)
    return buf.getvalue()


def zip_archive(text: str, name: str = "f_year.txt") -> bytes:
    """Wrap report text in an in-memory zip archive."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w", zipfile.ZIP_DEFLATED) as zf:
        zf.writestr(name, text)
    return buf.getvalue()


class FakeReportSource:
    """In-memory report source: returns a fixed archive per year."""

    def __init__(self, archives: dict[int, bytes] | None = None, error: Exception | None = None):
        self.archives = archives or {}
        self.error = error
        self.calls: list[int] = []

    def url_for(self, year: int) -> str:
        return f"memory://fut_disagg_txt_{year}.zip"

    def fetch(self, year: int) -> bytes:
        self.calls.append(year)
        if self.error is not None:
            raise self.error
        return self.archives[year]


def make_record(
    code: str,
    report_date: date,
    commercial_net: int | None,
    name: str | None = None,
    **overrides,
) -> PositioningRecord:
    """PositioningRecord with a given commercial net and sensible defaults."""
    values = dict(
        report_date=report_date,
        instrument_code=code,
        instrument_name=name or code,
        open_interest=500_000,
        commercial_long=max(commercial_net or 0, 0) + 50_000,
        commercial_short=max(-(commercial_net or 0), 0) + 50_000,
        commercial_net=commercial_net,
    )
    values.update(overrides)
    return PositioningRecord(**values)


def weekly_dates(start: date, count: int) -> list[date]:
    """``count`` consecutive weekly report dates starting at ``start``."""
    return [start + timedelta(weeks=i) for i in range(count)]


@pytest.fixture(autouse=True)
def _reset_structlog():
    """Undo logging configuration done by CLI invocations."""
    yield
    structlog.reset_defaults()


@pytest.fixture
def tmp_db_path(tmp_path: Path) -> Path:
    """Provide a temporary SQLite database path for store tests."""
    return tmp_path / "positioning.db"


@pytest.fixture
def store(tmp_db_path):
    """PositioningStore backed by a temp SQLite database."""
    s = PositioningStore(tmp_db_path)
    yield s
    s.close()


@pytest.fixture
def registry():
    """The default instrument registry."""
    return default_registry()


@pytest.fixture
def seed_history(store):
    """Write a weekly commercial-net series for one instrument, oldest first."""

    def _seed(code: str, nets: list[int | None], start: date = date(2024, 1, 2), name=None):
        records = [
            make_record(code, d, net, name=name)
            for d, net in zip(weekly_dates(start, len(nets)), nets)
        ]
        for rec in records:
            store.upsert(rec)
        return records

    return _seed
