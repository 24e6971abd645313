"""Plain-text market report: summary counts, movers and per-instrument narratives."""

from __future__ import annotations

from datetime import datetime

from cotwatch.signals.positioning.percentile import AnalysisResult
from cotwatch.signals.positioning.summary import MarketSummary, Mover

# timeframe -> (label, summary window in days)
TIMEFRAMES: dict[str, tuple[str, int]] = {
    "1w": ("1 Week", 7),
    "4w": ("4 Weeks", 28),
    "12w": ("12 Weeks", 84),
}

_RULE = "=" * 72


def window_days_for(timeframe: str) -> int:
    """Summary window in days for a timeframe key such as ``"4w"``."""
    try:
        return TIMEFRAMES[timeframe][1]
    except KeyError:
        raise ValueError(
            f"Unknown timeframe {timeframe!r}; expected one of {sorted(TIMEFRAMES)}"
        ) from None


def _mover_lines(movers: list[Mover], sign: str) -> list[str]:
    if not movers:
        return ["  (none)"]
    return [
        f"  {m.instrument_code:<8} {m.instrument_name:<24} {sign}{m.change:,}"
        for m in movers
    ]


def render_market_report(
    summary: MarketSummary,
    analyses: list[AnalysisResult],
    timeframe: str,
    generated_at: datetime | None = None,
) -> str:
    """Render the market report as plain text.

    Parameters
    ----------
    summary : MarketSummary
        Summary computed over the timeframe's window.
    analyses : list[AnalysisResult]
        Per-instrument results, rendered in the given order.
    timeframe : str
        One of ``TIMEFRAMES`` ("1w", "4w", "12w").
    generated_at : datetime, optional
        Timestamp printed in the header; defaults to ``summary.last_updated``.

    Returns
    -------
    str
        The report; identical inputs give identical text.
    """
    if timeframe not in TIMEFRAMES:
        raise ValueError(
            f"Unknown timeframe {timeframe!r}; expected one of {sorted(TIMEFRAMES)}"
        )
    label = TIMEFRAMES[timeframe][0]
    stamp = generated_at or summary.last_updated
    stamp_text = stamp.strftime("%Y-%m-%d %H:%M UTC") if stamp else "n/a"

    lines = [
        _RULE,
        f"COT POSITIONING REPORT ({label})",
        f"Generated: {stamp_text}",
        _RULE,
        "",
        "MARKET SUMMARY",
        f"  Instruments reporting: {summary.total_instruments}",
        f"  Bullish: {summary.bullish_signals}",
        f"  Bearish: {summary.bearish_signals}",
        f"  Neutral: {summary.neutral_signals}",
        "",
        "TOP BULLISH MOVERS",
        *_mover_lines(summary.top_movers_bullish, "+"),
        "",
        "TOP BEARISH MOVERS",
        *_mover_lines(summary.top_movers_bearish, "-"),
        "",
        "INSTRUMENT ANALYSIS",
    ]
    if not analyses:
        lines.append("  (no data)")
    for result in analyses:
        lines.extend([
            "",
            f"{result.instrument_code} - {result.instrument_name} "
            f"(report date {result.report_date.isoformat()})",
            f"  Signal: {result.signal.value.upper()}  "
            f"Confidence: {result.confidence:.1f}%  "
            f"Percentile: {result.historical_percentile:.1f}",
            f"  {result.analysis}",
        ])
    lines.append("")
    return "\n".join(lines)
