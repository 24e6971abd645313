"""Percentile-based positioning signals: engine, narrative, summary and report."""

from cotwatch.signals.positioning.narrative import generate_narrative
from cotwatch.signals.positioning.percentile import (
    AnalysisResult,
    CurrentPositioning,
    PercentileSignalEngine,
    Sentiment,
    Signal,
    classify_percentile,
    historical_percentile,
)
from cotwatch.signals.positioning.report import TIMEFRAMES, render_market_report
from cotwatch.signals.positioning.summary import (
    MarketSummary,
    Mover,
    SummaryAggregator,
    TradingSignal,
)

__all__ = [
    "AnalysisResult",
    "CurrentPositioning",
    "MarketSummary",
    "Mover",
    "PercentileSignalEngine",
    "Sentiment",
    "Signal",
    "SummaryAggregator",
    "TIMEFRAMES",
    "TradingSignal",
    "classify_percentile",
    "generate_narrative",
    "historical_percentile",
    "render_market_report",
]
