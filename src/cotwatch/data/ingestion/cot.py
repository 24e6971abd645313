"""CFTC Commitments of Traders (COT) ingestion pipeline.

Fetches one year of Disaggregated Futures-Only reports, maps every row that
belongs to a registry instrument, and upserts the records into the
positioning store.

TIMING SEMANTICS:
    report_date = Tuesday (the date the positions were collected)

Re-ingesting a year is always safe: the store is keyed by
(report_date, instrument_code) and every write is a full-row replace, so the
CFTC's revisions of recent weeks simply overwrite the earlier figures.

After the batch is written, each record is annotated with the engine's
percentile, weekly change and sentiment as of its own report date. The
annotation only reads commercial net positions, which it never changes, so
the annotated values are reproducible from the store contents.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import replace

import structlog

from cotwatch.config.instruments import InstrumentRegistry
from cotwatch.data.ingestion.acquisition import ReportSource
from cotwatch.data.ingestion.base import IngestPipeline
from cotwatch.data.ingestion.extraction import extract
from cotwatch.data.ingestion.mapper import MappingResult, map_rows
from cotwatch.data.store.positioning_store import PositioningRecord, PositioningStore
from cotwatch.signals.positioning.percentile import (
    DEFAULT_LOOKBACK_WEEKS,
    PercentileSignalEngine,
)

logger = structlog.get_logger()


class COTIngestPipeline(IngestPipeline):
    """Ingest a year of CFTC COT Disaggregated Futures-Only reports.

    Parameters
    ----------
    source : ReportSource
        Provides the yearly archive (``HttpReportSource`` in production).
    store : PositioningStore
        Destination time series.
    registry : InstrumentRegistry
        Instruments to keep.
    max_workers : int
        Upper bound on concurrent upserts.
    lookback_weeks : int
        Lookback used when annotating records with percentile and sentiment.
    """

    def __init__(
        self,
        source: ReportSource,
        store: PositioningStore,
        registry: InstrumentRegistry,
        max_workers: int = 4,
        lookback_weeks: int = DEFAULT_LOOKBACK_WEEKS,
    ) -> None:
        if max_workers < 1:
            raise ValueError(f"max_workers must be >= 1, got {max_workers}")
        self.source = source
        self.store = store
        self.registry = registry
        self.max_workers = max_workers
        self.lookback_weeks = lookback_weeks
        self.engine = PercentileSignalEngine(store)

    def source_url(self, year: int) -> str:
        return self.source.url_for(year)

    def acquire(self, year: int) -> bytes:
        return self.source.fetch(year)

    def extract(self, archive: bytes) -> str:
        return extract(archive)

    def map(self, text: str) -> MappingResult:
        return map_rows(text, self.registry)

    def _write_all(self, records: list[PositioningRecord]) -> int:
        if not records:
            return 0
        with ThreadPoolExecutor(max_workers=self.max_workers) as pool:
            # list() re-raises the first failed upsert.
            list(pool.map(self.store.upsert, records))
        return len(records)

    def persist(self, mapping: MappingResult) -> int:
        """Upsert every mapped record; returns the number written."""
        if not mapping.records:
            logger.warning("no_cot_to_persist")
            return 0
        written = self._write_all(mapping.records)
        logger.info("cot_persisted", records=written, instruments=len(mapping.matched))
        return written

    def _annotated(self, record: PositioningRecord) -> PositioningRecord:
        result = self.engine.analyze(
            record.instrument_code,
            lookback_weeks=self.lookback_weeks,
            as_of=record.report_date,
        )
        if result is None:
            return record
        return replace(
            record,
            net_position_percentile=result.historical_percentile,
            position_change=result.weekly_change,
            sentiment=result.sentiment.value,
        )

    def annotate(self, mapping: MappingResult) -> None:
        """Re-upsert each record with its percentile, weekly change and sentiment."""
        annotated = [self._annotated(r) for r in mapping.records]
        self._write_all(annotated)
        logger.info("cot_annotated", records=len(annotated))
