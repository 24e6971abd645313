"""Runtime settings and source constants.

Settings are a frozen dataclass with defaults; the CLI overrides fields from
its options (which also read ``COTWATCH_*`` environment variables).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

CFTC_HISTORY_URL = "https://www.cftc.gov/files/dea/history"

# Yearly Disaggregated Futures-Only archive.
REPORT_URL_TEMPLATE = "{base_url}/fut_disagg_txt_{year}.zip"

# Per-year archives start with 2017. The 2006-2016 reports ship only as the
# combined fut_disagg_txt_hist_2006_2016.zip, which is not read here.
FIRST_REPORT_YEAR = 2017

DEFAULT_DATA_DIR: Path = Path.home() / ".cotwatch"


@dataclass(frozen=True)
class Settings:
    """Runtime configuration for ingestion and queries.

    Attributes
    ----------
    base_url : str
        Base URL of the CFTC history archive directory.
    timeout : float | None
        HTTP timeout in seconds handed to the report source. None disables it.
    max_workers : int
        Upper bound on concurrent store writes during ingestion.
    db_path : Path
        SQLite database holding the positioning time series.
    """

    base_url: str = CFTC_HISTORY_URL
    timeout: float | None = 60.0
    max_workers: int = 4
    db_path: Path = field(default_factory=lambda: DEFAULT_DATA_DIR / "positioning.db")
