"""Abstract base class for report ingestion pipelines.

An ingestion run is an explicit, ordered list of named steps, each of which
may fail:

    acquire(year)      -> raw archive bytes
    extract(archive)   -> report text
    map(text)          -> MappingResult (records + per-row counters)
    persist(mapping)   -> number of records written
    annotate(mapping)  -> None

The concrete ``run()`` method executes the steps in order with structured
logging. Structural failures (any ``IngestionError``) abort the whole run and
propagate to the caller unchanged, so a scheduler can retry the run as a
unit. Row-level problems never raise; they are accumulated in the
``IngestionReport``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

import structlog

if TYPE_CHECKING:
    from cotwatch.data.ingestion.mapper import MappingResult, RowMappingWarning

logger = structlog.get_logger()


class IngestionError(Exception):
    """Structural failure that aborts an ingestion run."""


@dataclass
class IngestionReport:
    """Outcome of one ingestion run.

    Attributes
    ----------
    year : int
        Report year that was ingested.
    source_url : str
        Where the archive was fetched from.
    records_written : int
        Records upserted into the store.
    rows_blank, rows_unmatched, rows_failed, rows_duplicate : int
        Per-reason skip counters.
    matched : dict[str, int]
        Instrument code -> number of mapped records.
    warnings : list[RowMappingWarning]
        One entry per failed or duplicate row.
    """

    year: int
    source_url: str = ""
    records_written: int = 0
    rows_blank: int = 0
    rows_unmatched: int = 0
    rows_failed: int = 0
    rows_duplicate: int = 0
    matched: dict[str, int] = field(default_factory=dict)
    warnings: list[RowMappingWarning] = field(default_factory=list)

    @property
    def rows_skipped(self) -> int:
        return self.rows_blank + self.rows_unmatched + self.rows_failed + self.rows_duplicate


@dataclass(frozen=True)
class PipelineStep:
    """A named step; ``action`` receives the previous step's output."""

    name: str
    action: Callable[[Any], Any]


class IngestPipeline(ABC):
    """Abstract base for report ingestion pipelines.

    Subclasses implement the five step methods. ``run`` chains them: each
    step's return value is the next step's input, except that ``persist``
    and ``annotate`` both receive the mapping result.
    """

    @abstractmethod
    def source_url(self, year: int) -> str:
        """Location the archive for ``year`` is fetched from."""
        ...

    @abstractmethod
    def acquire(self, year: int) -> bytes:
        """Fetch the raw compressed archive for ``year``."""
        ...

    @abstractmethod
    def extract(self, archive: bytes) -> str:
        """Locate and decompress the report inside ``archive``."""
        ...

    @abstractmethod
    def map(self, text: str) -> MappingResult:
        """Parse report text into normalized records."""
        ...

    @abstractmethod
    def persist(self, mapping: MappingResult) -> int:
        """Write mapped records to storage; return the number written."""
        ...

    @abstractmethod
    def annotate(self, mapping: MappingResult) -> None:
        """Post-write enrichment of the stored records."""
        ...

    def steps(self) -> list[PipelineStep]:
        """The ordered steps of one run."""
        state: dict[str, Any] = {}

        def keep_mapping(mapping):
            state["mapping"] = mapping
            return mapping

        return [
            PipelineStep("acquire", self.acquire),
            PipelineStep("extract", self.extract),
            PipelineStep("map", lambda text: keep_mapping(self.map(text))),
            PipelineStep("persist", self.persist),
            PipelineStep("annotate", lambda _written: self.annotate(state["mapping"])),
        ]

    def run(self, year: int) -> IngestionReport:
        """Execute every step in order for one report year.

        Parameters
        ----------
        year : int
            Report year to ingest.

        Returns
        -------
        IngestionReport
            Counts of written and skipped rows.

        Raises
        ------
        IngestionError
            If a structural step fails (acquisition, extraction, format).
        """
        log = logger.bind(pipeline=self.__class__.__name__, year=year)
        report = IngestionReport(year=year, source_url=self.source_url(year))
        log.info("ingestion_started", source_url=report.source_url)

        value: Any = year
        for step in self.steps():
            log.debug("step_started", step=step.name)
            try:
                value = step.action(value)
            except IngestionError as e:
                log.error("ingestion_failed", step=step.name, error=str(e))
                raise
            log.debug("step_complete", step=step.name)

            if step.name == "map":
                report.rows_blank = value.rows_blank
                report.rows_unmatched = value.rows_unmatched
                report.rows_failed = value.rows_failed
                report.rows_duplicate = value.rows_duplicate
                report.matched = dict(value.matched)
                report.warnings = list(value.warnings)
            elif step.name == "persist":
                report.records_written = value

        log.info(
            "ingestion_complete",
            records_written=report.records_written,
            rows_skipped=report.rows_skipped,
        )
        return report
