"""Cross-market summary and trading-signal screener.

Both fan out over the instrument registry and read the store; neither
writes anything.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import structlog

from cotwatch.config.instruments import InstrumentRegistry
from cotwatch.data.store.positioning_store import PositioningRecord, PositioningStore
from cotwatch.signals.positioning.percentile import (
    DEFAULT_LOOKBACK_WEEKS,
    PercentileSignalEngine,
    Sentiment,
    Signal,
)

logger = structlog.get_logger()

DEFAULT_WINDOW_DAYS = 14
TOP_MOVERS = 5
DEFAULT_MIN_CONFIDENCE = 60.0
SENTIMENT_SOURCES = ("live", "stored")


@dataclass
class Mover:
    instrument_code: str
    instrument_name: str
    change: int


@dataclass
class MarketSummary:
    """Sentiment tally over the latest record of each instrument in a window.

    ``top_movers_bearish`` reports the magnitude of each negative change.
    """

    total_instruments: int
    bullish_signals: int
    bearish_signals: int
    neutral_signals: int
    top_movers_bullish: list[Mover] = field(default_factory=list)
    top_movers_bearish: list[Mover] = field(default_factory=list)
    last_updated: datetime | None = None
    window_days: int = DEFAULT_WINDOW_DAYS
    sentiment_source: str = "live"


@dataclass
class TradingSignal:
    """An actionable (non-hold) signal from the screener."""

    instrument_code: str
    instrument_name: str
    signal: Signal
    confidence: float
    sentiment: Sentiment
    percentile: float
    weekly_change: int
    reasoning: str


class SummaryAggregator:
    """Aggregate per-instrument results across the registry.

    Parameters
    ----------
    store : PositioningStore
        Positioning time series.
    engine : PercentileSignalEngine
        Used for live sentiment and the screener.
    registry : InstrumentRegistry
        Instruments to aggregate over; records of other codes are ignored.
    """

    def __init__(
        self,
        store: PositioningStore,
        engine: PercentileSignalEngine,
        registry: InstrumentRegistry,
    ) -> None:
        self.store = store
        self.engine = engine
        self.registry = registry

    def _sentiment_and_change(
        self, record: PositioningRecord, sentiment_source: str
    ) -> tuple[Sentiment, int]:
        if sentiment_source == "stored":
            try:
                sentiment = Sentiment(record.sentiment) if record.sentiment else Sentiment.NEUTRAL
            except ValueError:
                logger.warning(
                    "unknown_stored_sentiment",
                    instrument_code=record.instrument_code,
                    sentiment=record.sentiment,
                )
                sentiment = Sentiment.NEUTRAL
            return sentiment, record.position_change or 0

        result = self.engine.analyze(record.instrument_code, as_of=record.report_date)
        if result is None:
            return Sentiment.NEUTRAL, 0
        return result.sentiment, result.weekly_change

    def summarize(
        self,
        window_days: int = DEFAULT_WINDOW_DAYS,
        sentiment_source: str = "live",
        now: datetime | None = None,
    ) -> MarketSummary:
        """Tally sentiment over the most recent record of each instrument.

        Parameters
        ----------
        window_days : int
            Only records dated within this many days of ``now`` count.
        sentiment_source : str
            "live" recomputes sentiment through the engine as of each record's
            date; "stored" trusts the labels written at ingestion time.
        now : datetime, optional
            Reference time (UTC). Defaults to the current time.

        Returns
        -------
        MarketSummary
            Zero counts and empty mover lists when the window holds no data.
        """
        if window_days < 0:
            raise ValueError(f"window_days must be >= 0, got {window_days}")
        if sentiment_source not in SENTIMENT_SOURCES:
            raise ValueError(
                f"sentiment_source must be one of {SENTIMENT_SOURCES}, got {sentiment_source!r}"
            )
        now = now or datetime.now(timezone.utc)
        since = (now - timedelta(days=window_days)).date()

        latest_by_code: dict[str, PositioningRecord] = {}
        for record in self.store.records_since(since):
            if record.instrument_code not in self.registry:
                continue
            latest_by_code.setdefault(record.instrument_code, record)

        counts = {s: 0 for s in Sentiment}
        movers: list[Mover] = []
        for instrument in self.registry:
            record = latest_by_code.get(instrument.code)
            if record is None:
                continue
            sentiment, change = self._sentiment_and_change(record, sentiment_source)
            counts[sentiment] += 1
            movers.append(Mover(record.instrument_code, record.instrument_name, change))

        movers.sort(key=lambda m: abs(m.change), reverse=True)
        bullish = [m for m in movers if m.change > 0][:TOP_MOVERS]
        bearish = [
            Mover(m.instrument_code, m.instrument_name, abs(m.change))
            for m in movers
            if m.change < 0
        ][:TOP_MOVERS]

        summary = MarketSummary(
            total_instruments=len(latest_by_code),
            bullish_signals=counts[Sentiment.BULLISH],
            bearish_signals=counts[Sentiment.BEARISH],
            neutral_signals=counts[Sentiment.NEUTRAL],
            top_movers_bullish=bullish,
            top_movers_bearish=bearish,
            last_updated=now,
            window_days=window_days,
            sentiment_source=sentiment_source,
        )
        logger.info(
            "summary_computed",
            total_instruments=summary.total_instruments,
            bullish=summary.bullish_signals,
            bearish=summary.bearish_signals,
            neutral=summary.neutral_signals,
            sentiment_source=sentiment_source,
        )
        return summary

    def trading_signals(
        self,
        lookback_weeks: int = DEFAULT_LOOKBACK_WEEKS,
        min_confidence: float = DEFAULT_MIN_CONFIDENCE,
    ) -> list[TradingSignal]:
        """Actionable signals above ``min_confidence``, highest confidence first."""
        signals: list[TradingSignal] = []
        for instrument in self.registry:
            result = self.engine.analyze(instrument.code, lookback_weeks=lookback_weeks)
            if result is None or result.signal is Signal.HOLD:
                continue
            if result.confidence <= min_confidence:
                continue
            signals.append(
                TradingSignal(
                    instrument_code=result.instrument_code,
                    instrument_name=result.instrument_name,
                    signal=result.signal,
                    confidence=result.confidence,
                    sentiment=result.sentiment,
                    percentile=result.historical_percentile,
                    weekly_change=result.weekly_change,
                    reasoning=result.analysis,
                )
            )
        signals.sort(key=lambda s: s.confidence, reverse=True)
        return signals
