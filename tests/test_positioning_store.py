"""Tests for the SQLite positioning store."""

from __future__ import annotations

import sqlite3
from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace
from datetime import date

from conftest import make_record, weekly_dates
from cotwatch.data.store.positioning_store import PositioningStore


class TestUpsert:
    def test_round_trip(self, store):
        rec = make_record(
            "GC", date(2024, 1, 2), 12_345, name="Gold",
            source_id="088691", swap_net=None, sentiment="bullish",
            net_position_percentile=80.0, position_change=-10,
        )
        store.upsert(rec)
        assert store.latest("GC") == [rec]

    def test_same_key_replaces_row(self, store):
        rec = make_record("GC", date(2024, 1, 2), 100)
        store.upsert(rec)
        store.upsert(replace(rec, commercial_net=200, sentiment="bearish"))

        assert store.count() == 1
        stored = store.first("GC")
        assert stored.commercial_net == 200
        assert stored.sentiment == "bearish"

    def test_full_overwrite_no_field_merge(self, store):
        rec = make_record("GC", date(2024, 1, 2), 100, sentiment="bullish")
        store.upsert(rec)
        store.upsert(replace(rec, sentiment=None))
        assert store.first("GC").sentiment is None

    def test_primary_key_enforced(self, store):
        for net in (1, 2, 3):
            store.upsert(make_record("GC", date(2024, 1, 2), net))
            store.upsert(make_record("SI", date(2024, 1, 2), net))
        assert store.count() == 2
        rows = store.conn.execute(
            "SELECT report_date, instrument_code, COUNT(*) FROM positioning "
            "GROUP BY report_date, instrument_code HAVING COUNT(*) > 1"
        ).fetchall()
        assert rows == []

    def test_concurrent_upserts(self, store):
        records = [
            make_record(code, d, i)
            for i, (code, d) in enumerate(
                (c, d) for c in ("GC", "SI", "CL") for d in weekly_dates(date(2024, 1, 2), 20)
            )
        ]
        with ThreadPoolExecutor(max_workers=4) as pool:
            list(pool.map(store.upsert, records))
        assert store.count() == 60
        assert store.count("SI") == 20


class TestQueries:
    def test_latest_descending_and_limited(self, store, seed_history):
        seed_history("GC", [1, 2, 3, 4, 5])
        latest = store.latest("GC", limit=3)
        assert [r.commercial_net for r in latest] == [5, 4, 3]
        assert latest[0].report_date > latest[1].report_date

    def test_latest_as_of(self, store, seed_history):
        records = seed_history("GC", [1, 2, 3, 4, 5])
        latest = store.latest("GC", as_of=records[2].report_date)
        assert [r.commercial_net for r in latest] == [3, 2, 1]

    def test_latest_non_positive_limit(self, store, seed_history):
        seed_history("GC", [1])
        assert store.latest("GC", limit=0) == []

    def test_empty_results(self, store):
        assert store.latest("GC") == []
        assert store.first("GC") is None
        assert store.records_since(date(2000, 1, 1)) == []
        assert store.count() == 0
        assert store.instrument_codes() == []

    def test_first_is_most_recent(self, store, seed_history):
        seed_history("GC", [10, 20, 30])
        assert store.first("GC").commercial_net == 30

    def test_records_since(self, store, seed_history):
        seed_history("GC", [1, 2, 3], start=date(2024, 1, 2))
        seed_history("SI", [7], start=date(2024, 1, 16))
        recent = store.records_since(date(2024, 1, 9))
        assert [(r.instrument_code, r.report_date) for r in recent] == [
            ("GC", date(2024, 1, 16)),
            ("SI", date(2024, 1, 16)),
            ("GC", date(2024, 1, 9)),
        ]

    def test_instrument_codes(self, store, seed_history):
        seed_history("SI", [1])
        seed_history("GC", [1, 2])
        assert store.instrument_codes() == ["GC", "SI"]


class TestPersistence:
    def test_reopen_keeps_data(self, tmp_db_path):
        s = PositioningStore(tmp_db_path)
        s.upsert(make_record("GC", date(2024, 1, 2), 5))
        s.close()

        s2 = PositioningStore(tmp_db_path)
        assert s2.count("GC") == 1
        s2.close()

    def test_wal_mode(self, store):
        mode = store.conn.execute("PRAGMA journal_mode").fetchone()[0]
        assert mode.lower() == "wal"

    def test_in_memory(self):
        s = PositioningStore(":memory:")
        s.upsert(make_record("GC", date(2024, 1, 2), 5))
        assert s.count() == 1
        s.close()

    def test_creates_parent_directory(self, tmp_path):
        s = PositioningStore(tmp_path / "nested" / "dir" / "p.db")
        assert (tmp_path / "nested" / "dir").is_dir()
        assert isinstance(s.conn, sqlite3.Connection)
        s.close()
