"""Record mapper: turn report text into normalized ``PositioningRecord``s.

Column lookup is driven by the header row through the ``ColumnSpec`` schema
in ``cotwatch.config.report_schema``; no positional indexing. Rows are
matched to instruments by the registry's first-hit substring rule.

Only structural problems (untokenizable text, missing market-name or date
column) raise. Everything row-level is counted in the ``MappingResult``:

- ``rows_blank``      -- empty market name, skipped silently
- ``rows_unmatched``  -- no registry instrument matches the market name
- ``rows_failed``     -- the row had too many fields or raised while being parsed (warned)
- ``rows_duplicate``  -- another row produced the same (date, instrument) key
"""

from __future__ import annotations

from dataclasses import dataclass, field
from io import StringIO

import pandas as pd
import structlog

from cotwatch.config.instruments import Instrument, InstrumentRegistry
from cotwatch.config.report_schema import (
    CLASSIFICATIONS,
    DISAGGREGATED_COLUMNS,
    ColumnKind,
    ColumnSpec,
    parse_integer,
    parse_report_date,
)
from cotwatch.data.ingestion.base import IngestionError
from cotwatch.data.store.positioning_store import PositioningRecord

logger = structlog.get_logger()


class ReportFormatError(IngestionError):
    """The report text cannot be tokenized or lacks required columns."""


@dataclass(frozen=True)
class RowMappingWarning:
    """A single row that was dropped while mapping."""

    row: int
    market_name: str
    reason: str

    def __str__(self) -> str:
        return f"row {self.row} ({self.market_name}): {self.reason}"


@dataclass
class MappingResult:
    """Mapped records plus per-reason skip counters."""

    records: list[PositioningRecord] = field(default_factory=list)
    rows_blank: int = 0
    rows_unmatched: int = 0
    rows_failed: int = 0
    rows_duplicate: int = 0
    matched: dict[str, int] = field(default_factory=dict)
    warnings: list[RowMappingWarning] = field(default_factory=list)

    @property
    def rows_skipped(self) -> int:
        return self.rows_blank + self.rows_unmatched + self.rows_failed + self.rows_duplicate


@dataclass
class _Candidate:
    record: PositioningRecord
    contract_code: str
    row: int
    market_name: str


def _resolve_columns(
    header: list[str], schema: tuple[ColumnSpec, ...]
) -> dict[str, str | None]:
    """Map each schema field to the actual header it is read from, or None."""
    by_folded = {str(h).strip().casefold(): h for h in header}
    resolved: dict[str, str | None] = {}
    for spec in schema:
        resolved[spec.field] = next(
            (by_folded[h.casefold()] for h in spec.headers if h.casefold() in by_folded),
            None,
        )
    return resolved


# Fills every column of a line the tokenizer could not split to the header width.
_MALFORMED = "\x00malformed-line"


def _read_frame(text: str) -> tuple[pd.DataFrame, list[list[str]]]:
    """Tokenize ``text``; lines with too many fields come back as marker rows.

    The raw fields of each such line are returned in file order so the caller
    can warn about it at its original row position.
    """
    bad_lines: list[list[str]] = []
    try:
        width = len(pd.read_csv(StringIO(text), nrows=0).columns)

        def flag_bad_line(fields: list[str]) -> list[str]:
            bad_lines.append(list(fields))
            return [_MALFORMED] * width

        frame = pd.read_csv(
            StringIO(text),
            dtype=str,
            keep_default_na=False,
            skipinitialspace=True,
            engine="python",
            on_bad_lines=flag_bad_line,
        )
    except (pd.errors.EmptyDataError, pd.errors.ParserError) as e:
        raise ReportFormatError(f"Report text cannot be tokenized: {e}") from e
    # pandas reads surplus leading fields on the first data line as an index.
    if not isinstance(frame.index, pd.RangeIndex):
        raise ReportFormatError("First data row has more fields than the header")
    return frame, bad_lines


def _parse_cell(spec: ColumnSpec, raw):
    if spec.kind is ColumnKind.DATE:
        return parse_report_date(raw)
    if spec.kind is ColumnKind.INTEGER:
        return parse_integer(raw, default=spec.default)
    return str(raw).strip() if raw is not None else spec.default


def _build_record(
    row: dict,
    instrument: Instrument,
    schema: tuple[ColumnSpec, ...],
    columns: dict[str, str | None],
) -> tuple[PositioningRecord, str]:
    values: dict = {}
    for spec in schema:
        column = columns[spec.field]
        if column is None:
            if spec.default is None:
                raise ValueError(f"missing required column for {spec.field}")
            values[spec.field] = spec.default
            continue
        values[spec.field] = _parse_cell(spec, row.get(column))

    nets: dict[str, int | None] = {}
    for classification in CLASSIFICATIONS:
        long_field = f"{classification}_long"
        short_field = f"{classification}_short"
        if columns.get(long_field) and columns.get(short_field):
            nets[f"{classification}_net"] = values[long_field] - values[short_field]
        else:
            nets[f"{classification}_net"] = None

    positions = {
        k: v for k, v in values.items()
        if k not in ("market_name", "report_date", "contract_code")
    }
    record = PositioningRecord(
        report_date=values["report_date"],
        instrument_code=instrument.code,
        instrument_name=instrument.display_name,
        source_id=instrument.source_id,
        **positions,
        **nets,
    )
    return record, values.get("contract_code", "")


def map_rows(
    text: str,
    registry: InstrumentRegistry,
    schema: tuple[ColumnSpec, ...] = DISAGGREGATED_COLUMNS,
) -> MappingResult:
    """Parse report text into one record per (report date, instrument).

    Parameters
    ----------
    text : str
        Comma-separated report text with a header row.
    registry : InstrumentRegistry
        Instruments to keep; rows matching none are skipped.
    schema : tuple[ColumnSpec, ...]
        Column contract. Must contain ``market_name`` and ``report_date``.

    Returns
    -------
    MappingResult
        Records in file order with duplicates resolved, plus counters.

    Raises
    ------
    ReportFormatError
        If the text cannot be tokenized or lacks the name/date columns.
    """
    frame, bad_lines = _read_frame(text)
    header = list(frame.columns)
    columns = _resolve_columns(header, schema)
    missing = [f for f in ("market_name", "report_date") if columns.get(f) is None]
    if missing:
        raise ReportFormatError(f"Report header is missing required columns: {missing}")

    result = MappingResult()
    kept: dict[tuple, _Candidate] = {}
    name_column = columns["market_name"]
    name_position = header.index(name_column)
    pending_bad_lines = iter(bad_lines)

    for index, row in enumerate(frame.to_dict("records"), start=1):
        if row.get(name_column) == _MALFORMED:
            fields = next(pending_bad_lines)
            market_name = fields[name_position].strip() if name_position < len(fields) else ""
            reason = f"expected {len(header)} fields, saw {len(fields)}"
            logger.warning(
                "row_mapping_failed", row=index, market_name=market_name, error=reason
            )
            result.rows_failed += 1
            result.warnings.append(RowMappingWarning(index, market_name, reason))
            continue

        market_name = str(row.get(name_column, "")).strip()
        if not market_name:
            result.rows_blank += 1
            continue

        instrument = registry.match(market_name)
        if instrument is None:
            result.rows_unmatched += 1
            continue

        try:
            record, contract_code = _build_record(row, instrument, schema, columns)
        except Exception as e:
            logger.warning(
                "row_mapping_failed", row=index, market_name=market_name, error=str(e)
            )
            result.rows_failed += 1
            result.warnings.append(RowMappingWarning(index, market_name, str(e)))
            continue

        candidate = _Candidate(record, contract_code, index, market_name)
        existing = kept.get(record.key)
        if existing is None:
            kept[record.key] = candidate
            continue

        # Prefer the row published under the instrument's own contract code.
        if (
            candidate.contract_code == instrument.source_id
            and existing.contract_code != instrument.source_id
        ):
            kept[record.key] = candidate
            loser, winner = existing, candidate
        else:
            loser, winner = candidate, existing
        result.rows_duplicate += 1
        reason = (
            f"duplicate of row {winner.row} for {instrument.code} "
            f"on {record.report_date.isoformat()}"
        )
        logger.warning(
            "row_mapping_duplicate",
            row=loser.row,
            market_name=loser.market_name,
            kept_row=winner.row,
        )
        result.warnings.append(RowMappingWarning(loser.row, loser.market_name, reason))

    for candidate in kept.values():
        result.records.append(candidate.record)
        code = candidate.record.instrument_code
        result.matched[code] = result.matched.get(code, 0) + 1

    logger.info(
        "rows_mapped",
        records=len(result.records),
        rows_blank=result.rows_blank,
        rows_unmatched=result.rows_unmatched,
        rows_failed=result.rows_failed,
        rows_duplicate=result.rows_duplicate,
    )
    return result
