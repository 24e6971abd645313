"""cotwatch CLI -- operator surface for COT positioning ingestion and signals.

Commands:
    ingest       -- Download, map and store one year of COT reports
    analyze      -- Percentile analysis of one instrument
    summary      -- Cross-market sentiment tally and top movers
    signals      -- Actionable buy/sell signals above a confidence floor
    history      -- Stored positioning records for one instrument
    instruments  -- List the tracked instruments
    report       -- Plain-text market report over 1, 4 or 12 weeks
"""

from __future__ import annotations

import json
import logging
import sys
from dataclasses import asdict
from datetime import date
from pathlib import Path
from typing import NoReturn, Optional

import structlog
import typer
from rich.console import Console
from rich.panel import Panel

from cotwatch.cli.formatters import (
    format_analysis_panel,
    format_history_table,
    format_ingestion_report,
    format_instruments_table,
    format_signals_table,
    format_summary,
)
from cotwatch.config.instruments import default_registry
from cotwatch.config.settings import CFTC_HISTORY_URL, Settings
from cotwatch.data.store.positioning_store import PositioningStore

app = typer.Typer(
    name="cotwatch",
    help="CFTC Commitments-of-Traders positioning signals",
    rich_markup_mode="rich",
)
console = Console()

DB_PATH_OPTION = typer.Option(
    None,
    "--db-path",
    envvar="COTWATCH_DB_PATH",
    help="SQLite database holding the positioning time series",
)
JSON_OPTION = typer.Option(False, "--json", help="Emit JSON instead of tables")


@app.callback()
def main(
    log_level: str = typer.Option(
        "warning", "--log-level", help="Log level (debug, info, warning, error)"
    ),
) -> None:
    """Configure structured logging for every command."""
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        console.print(f"[red]Unknown log level: {log_level}[/red]")
        raise typer.Exit(2)
    structlog.configure(
        wrapper_class=structlog.make_filtering_bound_logger(level),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def _open_store(db_path: Optional[Path]) -> PositioningStore:
    return PositioningStore(db_path or Settings().db_path)


def _emit_json(payload) -> None:
    typer.echo(json.dumps(payload, indent=2, default=str))


def _fail(message: str, title: str) -> NoReturn:
    console.print(Panel(f"[red]{message}[/red]", title=title, border_style="red"))
    raise typer.Exit(1)


def _require_instrument(code: str) -> str:
    registry = default_registry()
    code = code.upper()
    if code not in registry:
        _fail(
            f"Unknown instrument code: {code}\n"
            f"Known codes: {', '.join(registry.codes)}",
            "Unknown Instrument",
        )
    return code


# ---------------------------------------------------------------------------
# ingest
# ---------------------------------------------------------------------------


@app.command()
def ingest(
    year: int = typer.Argument(help="Report year to ingest (2017 or later)"),
    db_path: Optional[Path] = DB_PATH_OPTION,
    base_url: str = typer.Option(
        CFTC_HISTORY_URL,
        "--base-url",
        envvar="COTWATCH_BASE_URL",
        help="Directory holding the yearly report archives",
    ),
    timeout: float = typer.Option(60.0, help="HTTP timeout in seconds (0 disables)"),
    workers: int = typer.Option(4, help="Concurrent store writers"),
    as_json: bool = JSON_OPTION,
) -> None:
    """Download, map and store one year of COT reports."""
    from cotwatch.data.ingestion.acquisition import HttpReportSource
    from cotwatch.data.ingestion.base import IngestionError
    from cotwatch.data.ingestion.cot import COTIngestPipeline

    settings = Settings(
        base_url=base_url,
        timeout=timeout or None,
        max_workers=workers,
        db_path=db_path or Settings().db_path,
    )
    store = PositioningStore(settings.db_path)
    try:
        pipeline = COTIngestPipeline(
            source=HttpReportSource(settings.base_url, timeout=settings.timeout),
            store=store,
            registry=default_registry(),
            max_workers=settings.max_workers,
        )
        report = pipeline.run(year)
    except IngestionError as exc:
        _fail(f"Ingestion failed: {exc}", "COT Ingestion")
    except ValueError as exc:
        _fail(str(exc), "COT Ingestion")
    finally:
        store.close()

    if as_json:
        _emit_json(asdict(report) | {"rows_skipped": report.rows_skipped})
    else:
        console.print(format_ingestion_report(report))


# ---------------------------------------------------------------------------
# analyze
# ---------------------------------------------------------------------------


@app.command()
def analyze(
    code: str = typer.Argument(help="Instrument code, e.g. EURUSD"),
    lookback: int = typer.Option(52, help="Weeks of history, including the latest"),
    as_of: Optional[str] = typer.Option(
        None, "--as-of", help="Ignore records after this date (YYYY-MM-DD)"
    ),
    db_path: Optional[Path] = DB_PATH_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Percentile analysis of one instrument's latest positioning."""
    from cotwatch.signals.positioning import PercentileSignalEngine

    code = _require_instrument(code)
    store = _open_store(db_path)
    try:
        cutoff = date.fromisoformat(as_of) if as_of else None
        result = PercentileSignalEngine(store).analyze(
            code, lookback_weeks=lookback, as_of=cutoff
        )
    except ValueError as exc:
        _fail(str(exc), "Analyze")
    finally:
        store.close()

    if result is None:
        console.print(
            Panel(
                f"[yellow]Insufficient data for {code}.[/yellow]\n"
                "Run 'cotwatch ingest <year>' first.",
                title="Analyze",
                border_style="yellow",
            )
        )
        return

    if as_json:
        _emit_json(asdict(result))
    else:
        console.print(format_analysis_panel(result))


# ---------------------------------------------------------------------------
# summary / signals
# ---------------------------------------------------------------------------


def _aggregator(store: PositioningStore):
    from cotwatch.signals.positioning import PercentileSignalEngine, SummaryAggregator

    return SummaryAggregator(store, PercentileSignalEngine(store), default_registry())


@app.command()
def summary(
    window_days: int = typer.Option(14, help="Only records from the last N days"),
    source: str = typer.Option(
        "live", help="Sentiment source: live (recompute) or stored (ingestion labels)"
    ),
    db_path: Optional[Path] = DB_PATH_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Cross-market sentiment tally and top movers."""
    store = _open_store(db_path)
    try:
        result = _aggregator(store).summarize(
            window_days=window_days, sentiment_source=source
        )
    except ValueError as exc:
        _fail(str(exc), "Summary")
    finally:
        store.close()

    if as_json:
        _emit_json(asdict(result))
    else:
        console.print(format_summary(result))


@app.command()
def signals(
    lookback: int = typer.Option(52, help="Weeks of history, including the latest"),
    min_confidence: float = typer.Option(60.0, help="Confidence floor (exclusive)"),
    db_path: Optional[Path] = DB_PATH_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Actionable buy/sell signals, highest confidence first."""
    store = _open_store(db_path)
    try:
        found = _aggregator(store).trading_signals(
            lookback_weeks=lookback, min_confidence=min_confidence
        )
    except ValueError as exc:
        _fail(str(exc), "Signals")
    finally:
        store.close()

    if as_json:
        _emit_json([asdict(s) for s in found])
        return
    if not found:
        console.print(
            Panel(
                "[dim]No actionable signals above the confidence floor.[/dim]",
                title="Signals",
                border_style="dim",
            )
        )
        return
    console.print(format_signals_table(found))


# ---------------------------------------------------------------------------
# history / instruments
# ---------------------------------------------------------------------------


@app.command()
def history(
    code: str = typer.Argument(help="Instrument code, e.g. GC"),
    limit: int = typer.Option(52, help="Maximum number of records"),
    db_path: Optional[Path] = DB_PATH_OPTION,
    as_json: bool = JSON_OPTION,
) -> None:
    """Stored positioning records for one instrument, newest first."""
    code = _require_instrument(code)
    store = _open_store(db_path)
    try:
        records = store.latest(code, limit=limit)
    finally:
        store.close()

    if as_json:
        _emit_json([asdict(r) for r in records])
        return
    if not records:
        console.print(
            Panel(
                f"[yellow]No stored records for {code}.[/yellow]",
                title="History",
                border_style="yellow",
            )
        )
        return
    console.print(format_history_table(records))


@app.command()
def instruments(
    category: Optional[str] = typer.Option(
        None, help="Filter by category (currency, commodity, grain, index)"
    ),
    as_json: bool = JSON_OPTION,
) -> None:
    """List the tracked instruments."""
    registry = default_registry()
    try:
        selected = registry.by_category(category) if category else list(registry)
    except ValueError:
        _fail(f"Unknown category: {category}", "Instruments")

    if as_json:
        _emit_json([asdict(i) for i in selected])
    else:
        console.print(format_instruments_table(selected))


# ---------------------------------------------------------------------------
# report
# ---------------------------------------------------------------------------


@app.command()
def report(
    timeframe: str = typer.Option("4w", help="1w, 4w or 12w"),
    output: Optional[Path] = typer.Option(None, help="Write the report to this file"),
    db_path: Optional[Path] = DB_PATH_OPTION,
) -> None:
    """Plain-text market report: summary, movers and per-instrument narratives."""
    from cotwatch.signals.positioning.report import render_market_report, window_days_for

    store = _open_store(db_path)
    try:
        window = window_days_for(timeframe)
        aggregator = _aggregator(store)
        market = aggregator.summarize(window_days=window)
        analyses = [
            r
            for r in (aggregator.engine.analyze(inst.code) for inst in aggregator.registry)
            if r is not None
        ]
        text = render_market_report(market, analyses, timeframe)
    except ValueError as exc:
        _fail(str(exc), "Report")
    finally:
        store.close()

    if output is not None:
        output.write_text(text)
        console.print(f"[green]Report written to {output}[/green]")
    else:
        typer.echo(text)
