"""Rich output formatters for the cotwatch CLI.

Every formatter takes a result object (IngestionReport, AnalysisResult,
MarketSummary, ...) and returns a Rich renderable; printing happens in
``cotwatch.cli.app``.
"""

from __future__ import annotations

from rich.console import Group
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

_SIGNAL_STYLES = {"buy": "green", "sell": "red", "hold": "yellow"}
_SENTIMENT_STYLES = {"bullish": "green", "bearish": "red", "neutral": "yellow"}


def _styled(value: str, styles: dict[str, str]) -> str:
    color = styles.get(value, "white")
    return f"[{color}]{value.upper()}[/{color}]"


def _fmt_int(value: int | None) -> str:
    return f"{value:,}" if value is not None else "-"


def format_ingestion_report(report) -> Panel:
    """Render an IngestionReport as a Rich Panel.

    Parameters
    ----------
    report : IngestionReport
        Outcome of ``COTIngestPipeline.run()``.
    """
    lines = [
        f"[bold]Year {report.year}[/bold]  [dim]{report.source_url}[/dim]",
        "",
        f"  Records written:  [green]{report.records_written:,}[/green]",
        f"  Rows skipped:     {report.rows_skipped:,}",
        f"    blank:          {report.rows_blank:,}",
        f"    unmatched:      {report.rows_unmatched:,}",
        f"    failed:         {report.rows_failed:,}",
        f"    duplicate:      {report.rows_duplicate:,}",
    ]
    if report.matched:
        lines.append("")
        lines.append("[bold]Matched instruments[/bold]")
        for code, count in sorted(report.matched.items()):
            lines.append(f"  {code:<8} {count:>5}")
    if report.warnings:
        lines.append("")
        lines.append(f"[yellow]{len(report.warnings)} row warning(s)[/yellow]")
        for warning in report.warnings[:10]:
            lines.append(f"  [dim]{warning}[/dim]")
    border = "yellow" if report.warnings else "green"
    return Panel("\n".join(lines), title="COT Ingestion", border_style=border)


def format_analysis_panel(result) -> Panel:
    """Render an AnalysisResult as a Rich Panel.

    Parameters
    ----------
    result : AnalysisResult
        Output of ``PercentileSignalEngine.analyze()``.
    """
    pos = result.current_positioning
    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Field", style="bold")
    table.add_column("Value", justify="right")
    table.add_row("Report date", result.report_date.isoformat())
    table.add_row("Signal", _styled(result.signal.value, _SIGNAL_STYLES))
    table.add_row("Sentiment", _styled(result.sentiment.value, _SENTIMENT_STYLES))
    table.add_row("Confidence", f"{result.confidence:.1f}%")
    table.add_row("Percentile", f"{result.historical_percentile:.1f}")
    table.add_row("Weekly change", f"{result.weekly_change:+,}")
    table.add_row("History size", str(result.history_size))
    table.add_row("Open interest", _fmt_int(pos.open_interest))
    table.add_row("Commercial net", _fmt_int(pos.commercial_net))
    table.add_row("Swap net", _fmt_int(pos.swap_net))
    table.add_row("Managed money net", _fmt_int(pos.managed_money_net))
    table.add_row("Other reportable net", _fmt_int(pos.other_reportable_net))

    border = _SIGNAL_STYLES.get(result.signal.value, "blue")
    return Panel(
        Group(table, Text(""), Text(result.analysis)),
        title=f"{result.instrument_code} - {result.instrument_name}",
        border_style=border,
    )


def format_summary(summary) -> Group:
    """Render a MarketSummary as counts plus the two mover tables."""
    counts = Table(title="Market Summary", show_lines=True)
    counts.add_column("Metric", style="bold")
    counts.add_column("Value", justify="right")
    counts.add_row("Instruments", str(summary.total_instruments))
    counts.add_row("Bullish", f"[green]{summary.bullish_signals}[/green]")
    counts.add_row("Bearish", f"[red]{summary.bearish_signals}[/red]")
    counts.add_row("Neutral", f"[yellow]{summary.neutral_signals}[/yellow]")
    counts.add_row("Window", f"{summary.window_days} days ({summary.sentiment_source})")

    def movers_table(title: str, movers: list, color: str) -> Table:
        table = Table(title=title)
        table.add_column("Code", style="bold")
        table.add_column("Instrument")
        table.add_column("Change", justify="right", style=color)
        for mover in movers:
            table.add_row(mover.instrument_code, mover.instrument_name, f"{mover.change:,}")
        return table

    return Group(
        counts,
        movers_table("Top Bullish Movers", summary.top_movers_bullish, "green"),
        movers_table("Top Bearish Movers", summary.top_movers_bearish, "red"),
    )


def format_signals_table(signals: list) -> Table:
    """Render screener output as a Rich Table.

    Parameters
    ----------
    signals : list[TradingSignal]
        Output of ``SummaryAggregator.trading_signals()``.
    """
    table = Table(title="Trading Signals", show_lines=True)
    table.add_column("Code", style="bold")
    table.add_column("Instrument")
    table.add_column("Signal", justify="center")
    table.add_column("Confidence", justify="right")
    table.add_column("Percentile", justify="right")
    table.add_column("Weekly Chg", justify="right")

    for sig in signals:
        table.add_row(
            sig.instrument_code,
            sig.instrument_name,
            _styled(sig.signal.value, _SIGNAL_STYLES),
            f"{sig.confidence:.1f}%",
            f"{sig.percentile:.1f}",
            f"{sig.weekly_change:+,}",
        )
    return table


def format_history_table(records: list) -> Table:
    """Render stored positioning records (newest first) as a Rich Table."""
    title = f"{records[0].instrument_code} Positioning History" if records else "History"
    table = Table(title=title)
    table.add_column("Report Date", style="cyan")
    table.add_column("Open Int", justify="right")
    table.add_column("Comm Net", justify="right")
    table.add_column("Swap Net", justify="right")
    table.add_column("MM Net", justify="right")
    table.add_column("Other Net", justify="right")
    table.add_column("Pctl", justify="right")
    table.add_column("Sentiment", justify="center")

    for rec in records:
        pctl = (
            f"{rec.net_position_percentile:.1f}"
            if rec.net_position_percentile is not None
            else "-"
        )
        sentiment = _styled(rec.sentiment, _SENTIMENT_STYLES) if rec.sentiment else "-"
        table.add_row(
            rec.report_date.isoformat(),
            _fmt_int(rec.open_interest),
            _fmt_int(rec.commercial_net),
            _fmt_int(rec.swap_net),
            _fmt_int(rec.managed_money_net),
            _fmt_int(rec.other_reportable_net),
            pctl,
            sentiment,
        )
    return table


def format_instruments_table(instruments: list) -> Table:
    """Render registry instruments as a Rich Table."""
    table = Table(title="Tracked Instruments")
    table.add_column("Code", style="bold")
    table.add_column("Name")
    table.add_column("Category", style="magenta")
    table.add_column("CFTC Code", style="dim")
    for inst in instruments:
        table.add_row(inst.code, inst.display_name, inst.category.value, inst.source_id)
    return table
