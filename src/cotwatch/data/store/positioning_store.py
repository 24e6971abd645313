"""Per-instrument positioning time series keyed by (report_date, instrument_code).

Every weekly COT observation for an instrument is one row. Writes are
idempotent upserts: re-ingesting a report replaces the stored row for the
same key in full (last write wins, no field merging), so re-running an
ingestion year is always safe.

Schema:
    positioning(
        report_date TEXT NOT NULL,          -- ISO 8601 date (report Tuesday)
        instrument_code TEXT NOT NULL,
        instrument_name TEXT NOT NULL,
        source_id TEXT,
        open_interest INTEGER,
        commercial_long INTEGER, commercial_short INTEGER, commercial_net INTEGER,
        swap_long INTEGER, swap_short INTEGER, swap_net INTEGER,
        managed_money_long INTEGER, managed_money_short INTEGER, managed_money_net INTEGER,
        other_reportable_long INTEGER, other_reportable_short INTEGER,
        other_reportable_net INTEGER,
        net_position_percentile REAL,
        position_change INTEGER,
        sentiment TEXT,
        updated_at TEXT NOT NULL,           -- ISO 8601 UTC
        PRIMARY KEY (report_date, instrument_code)
    )
    INDEX idx_positioning_instrument ON positioning (instrument_code, report_date)
"""

from __future__ import annotations

import sqlite3
import threading
from dataclasses import dataclass, fields
from datetime import date, datetime, timezone
from pathlib import Path

import structlog

logger = structlog.get_logger()


@dataclass(frozen=True)
class PositioningRecord:
    """One weekly positioning observation for one instrument.

    Long/short counts default to 0 when the report omits them. A ``*_net``
    value is None when the report header carried no long/short pair for that
    classification. The last three fields are written by the ingestion
    pipeline's annotate step and may be None on freshly mapped records.
    """

    report_date: date
    instrument_code: str
    instrument_name: str
    source_id: str = ""
    open_interest: int = 0
    commercial_long: int = 0
    commercial_short: int = 0
    swap_long: int = 0
    swap_short: int = 0
    managed_money_long: int = 0
    managed_money_short: int = 0
    other_reportable_long: int = 0
    other_reportable_short: int = 0
    commercial_net: int | None = None
    swap_net: int | None = None
    managed_money_net: int | None = None
    other_reportable_net: int | None = None
    net_position_percentile: float | None = None
    position_change: int | None = None
    sentiment: str | None = None

    @property
    def key(self) -> tuple[date, str]:
        return (self.report_date, self.instrument_code)


_COLUMNS: tuple[str, ...] = tuple(f.name for f in fields(PositioningRecord))


class PositioningStore:
    """SQLite-backed positioning time series.

    A single connection is shared between threads; every statement runs
    under a lock, so an upsert is atomic per key and readers never observe a
    partially written row.

    Parameters
    ----------
    db_path : str | Path
        Path to the SQLite database file. Created if it doesn't exist.
        ``":memory:"`` gives a throwaway in-memory store.
    """

    def __init__(self, db_path: str | Path) -> None:
        self.db_path = db_path if db_path == ":memory:" else Path(db_path)
        if isinstance(self.db_path, Path):
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self.conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA journal_mode=WAL")
        self._lock = threading.Lock()
        self._create_tables()

    def _create_tables(self) -> None:
        """Create the positioning table and indexes if they don't exist."""
        self.conn.execute("""
            CREATE TABLE IF NOT EXISTS positioning (
                report_date TEXT NOT NULL,
                instrument_code TEXT NOT NULL,
                instrument_name TEXT NOT NULL,
                source_id TEXT,
                open_interest INTEGER,
                commercial_long INTEGER,
                commercial_short INTEGER,
                swap_long INTEGER,
                swap_short INTEGER,
                managed_money_long INTEGER,
                managed_money_short INTEGER,
                other_reportable_long INTEGER,
                other_reportable_short INTEGER,
                commercial_net INTEGER,
                swap_net INTEGER,
                managed_money_net INTEGER,
                other_reportable_net INTEGER,
                net_position_percentile REAL,
                position_change INTEGER,
                sentiment TEXT,
                updated_at TEXT NOT NULL,
                PRIMARY KEY (report_date, instrument_code)
            )
        """)
        self.conn.execute("""
            CREATE INDEX IF NOT EXISTS idx_positioning_instrument
            ON positioning (instrument_code, report_date)
        """)
        self.conn.commit()

    def upsert(self, record: PositioningRecord) -> None:
        """Insert or fully replace the row for ``record.key``.

        Parameters
        ----------
        record : PositioningRecord
            The observation to store. Every column of an existing row with the
            same (report_date, instrument_code) is overwritten.
        """
        values = [getattr(record, name) for name in _COLUMNS]
        values[0] = record.report_date.isoformat()
        values.append(datetime.now(timezone.utc).isoformat())
        placeholders = ", ".join("?" for _ in values)
        with self._lock:
            self.conn.execute(
                f"INSERT OR REPLACE INTO positioning ({', '.join(_COLUMNS)}, updated_at) "
                f"VALUES ({placeholders})",
                values,
            )
            self.conn.commit()
        logger.debug(
            "positioning_upserted",
            instrument_code=record.instrument_code,
            report_date=record.report_date.isoformat(),
        )

    def latest(
        self,
        instrument_code: str,
        limit: int = 52,
        as_of: date | None = None,
    ) -> list[PositioningRecord]:
        """Most recent records for one instrument, newest first.

        Parameters
        ----------
        instrument_code : str
            Instrument to scan.
        limit : int
            Maximum number of records returned.
        as_of : date, optional
            If given, only records dated on or before this date are considered.

        Returns
        -------
        list[PositioningRecord]
            At most ``limit`` records in descending report_date order. Empty if
            the instrument has no data yet.
        """
        if limit <= 0:
            return []
        query = "SELECT * FROM positioning WHERE instrument_code = ?"
        params: list = [instrument_code]
        if as_of is not None:
            query += " AND report_date <= ?"
            params.append(as_of.isoformat())
        query += " ORDER BY report_date DESC LIMIT ?"
        params.append(limit)
        with self._lock:
            rows = self.conn.execute(query, params).fetchall()
        return [_row_to_record(row) for row in rows]

    def first(self, instrument_code: str) -> PositioningRecord | None:
        """First record of the descending scan (the most recent), or None."""
        records = self.latest(instrument_code, limit=1)
        return records[0] if records else None

    def records_since(self, since: date) -> list[PositioningRecord]:
        """All records dated on or after ``since``, newest first."""
        with self._lock:
            rows = self.conn.execute(
                """
                SELECT * FROM positioning
                WHERE report_date >= ?
                ORDER BY report_date DESC, instrument_code
                """,
                (since.isoformat(),),
            ).fetchall()
        return [_row_to_record(row) for row in rows]

    def count(self, instrument_code: str | None = None) -> int:
        """Number of stored records, optionally for one instrument."""
        with self._lock:
            if instrument_code is None:
                row = self.conn.execute("SELECT COUNT(*) FROM positioning").fetchone()
            else:
                row = self.conn.execute(
                    "SELECT COUNT(*) FROM positioning WHERE instrument_code = ?",
                    (instrument_code,),
                ).fetchone()
        return int(row[0])

    def instrument_codes(self) -> list[str]:
        """Distinct instrument codes with at least one record, sorted."""
        with self._lock:
            rows = self.conn.execute(
                "SELECT DISTINCT instrument_code FROM positioning ORDER BY instrument_code"
            ).fetchall()
        return [row[0] for row in rows]

    def close(self) -> None:
        """Close the database connection."""
        self.conn.close()
        logger.debug("positioning_store_closed", db_path=str(self.db_path))


def _row_to_record(row: sqlite3.Row) -> PositioningRecord:
    values = {name: row[name] for name in _COLUMNS}
    values["report_date"] = date.fromisoformat(values["report_date"])
    return PositioningRecord(**values)
