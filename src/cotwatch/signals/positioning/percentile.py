"""Percentile-signal engine: rank current commercial positioning against history.

For one instrument the engine reads the most recent ``lookback_weeks``
records, ranks the latest commercial net position against the older ones
(strict percentile: share of history strictly below the current value) and
maps the rank to a sentiment, a discrete signal and a confidence score:

    percentile > 75   -> bullish / buy  / min(90, 60 + (percentile - 75))
    percentile < 25   -> bearish / sell / min(90, 60 + (25 - percentile))
    otherwise         -> neutral / hold / 50 - |percentile - 50|

With a single stored record there is nothing to rank against; the result is
neutral/hold with zero confidence. Results are computed fresh on every call
and never cached.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from enum import Enum

import numpy as np
import structlog
from scipy.stats import percentileofscore

from cotwatch.data.store.positioning_store import PositioningRecord, PositioningStore
from cotwatch.signals.positioning.narrative import generate_narrative

logger = structlog.get_logger()


# ---------------------------------------------------------------------------
# Thresholds (module-level constants)
# ---------------------------------------------------------------------------

BULLISH_PERCENTILE = 75.0       # percentile > this = bullish
BEARISH_PERCENTILE = 25.0       # percentile < this = bearish
BASE_SIGNAL_CONFIDENCE = 60.0   # confidence at the threshold itself
MAX_SIGNAL_CONFIDENCE = 90.0    # cap for buy/sell confidence
NEUTRAL_PEAK_CONFIDENCE = 50.0  # hold confidence at the 50th percentile

DEFAULT_LOOKBACK_WEEKS = 52


class Sentiment(str, Enum):
    BULLISH = "bullish"
    BEARISH = "bearish"
    NEUTRAL = "neutral"


class Signal(str, Enum):
    BUY = "buy"
    SELL = "sell"
    HOLD = "hold"


@dataclass
class CurrentPositioning:
    """Net figures of the latest record, per trader classification."""

    commercial_net: int | None
    swap_net: int | None
    managed_money_net: int | None
    other_reportable_net: int | None
    open_interest: int

    @classmethod
    def from_record(cls, record: PositioningRecord) -> CurrentPositioning:
        return cls(
            commercial_net=record.commercial_net,
            swap_net=record.swap_net,
            managed_money_net=record.managed_money_net,
            other_reportable_net=record.other_reportable_net,
            open_interest=record.open_interest,
        )


@dataclass
class AnalysisResult:
    """Derived view of one instrument's positioning.

    Attributes
    ----------
    instrument_code, instrument_name : str
        Instrument identity, taken from the latest record.
    report_date : date
        Report date of the latest record.
    current_positioning : CurrentPositioning
        Latest net figures.
    historical_percentile : float
        Rank of the current commercial net within its history, 0-100.
    weekly_change : int
        Commercial net change versus the previous record; 0 if none.
    sentiment : Sentiment
    signal : Signal
    confidence : float
        0-100.
    analysis : str
        Narrative summary.
    history_size : int
        Number of historical records the percentile was ranked against.
    """

    instrument_code: str
    instrument_name: str
    report_date: date
    current_positioning: CurrentPositioning
    historical_percentile: float
    weekly_change: int
    sentiment: Sentiment
    signal: Signal
    confidence: float
    analysis: str
    history_size: int


def historical_percentile(current: float, history) -> float:
    """Percentage of ``history`` strictly below ``current``; 0 for empty history."""
    values = np.asarray(history, dtype=float)
    if values.size == 0:
        return 0.0
    return float(percentileofscore(values, current, kind="strict"))


def classify_percentile(percentile: float) -> tuple[Sentiment, Signal, float]:
    """Map a percentile rank to (sentiment, signal, confidence).

    Parameters
    ----------
    percentile : float
        Rank in [0, 100].

    Returns
    -------
    tuple[Sentiment, Signal, float]
        Confidence is capped at ``MAX_SIGNAL_CONFIDENCE`` for buy/sell and
        peaks at ``NEUTRAL_PEAK_CONFIDENCE`` for hold.
    """
    if percentile > BULLISH_PERCENTILE:
        confidence = min(
            MAX_SIGNAL_CONFIDENCE,
            BASE_SIGNAL_CONFIDENCE + (percentile - BULLISH_PERCENTILE),
        )
        return Sentiment.BULLISH, Signal.BUY, confidence
    if percentile < BEARISH_PERCENTILE:
        confidence = min(
            MAX_SIGNAL_CONFIDENCE,
            BASE_SIGNAL_CONFIDENCE + (BEARISH_PERCENTILE - percentile),
        )
        return Sentiment.BEARISH, Signal.SELL, confidence
    return (
        Sentiment.NEUTRAL,
        Signal.HOLD,
        NEUTRAL_PEAK_CONFIDENCE - abs(percentile - 50.0),
    )


class PercentileSignalEngine:
    """Compute ``AnalysisResult``s from the positioning store (read-only).

    Parameters
    ----------
    store : PositioningStore
        Source of per-instrument time series.
    """

    def __init__(self, store: PositioningStore) -> None:
        self.store = store

    def analyze(
        self,
        instrument_code: str,
        lookback_weeks: int = DEFAULT_LOOKBACK_WEEKS,
        as_of: date | None = None,
    ) -> AnalysisResult | None:
        """Analyse one instrument's latest positioning.

        Parameters
        ----------
        instrument_code : str
            Registry code, e.g. "EURUSD".
        lookback_weeks : int
            Records considered, including the latest. Must be >= 1.
        as_of : date, optional
            Ignore records dated after this date.

        Returns
        -------
        AnalysisResult | None
            None when the instrument has no stored records.
        """
        if lookback_weeks < 1:
            raise ValueError(f"lookback_weeks must be >= 1, got {lookback_weeks}")

        records = self.store.latest(instrument_code, limit=lookback_weeks, as_of=as_of)
        if not records:
            logger.debug("no_positioning_data", instrument_code=instrument_code)
            return None

        latest = records[0]
        history = [r.commercial_net or 0 for r in records[1:]]
        current = latest.commercial_net or 0

        percentile = historical_percentile(current, history)
        weekly_change = 0
        if len(records) >= 2:
            weekly_change = current - (records[1].commercial_net or 0)

        if history:
            sentiment, signal, confidence = classify_percentile(percentile)
        else:
            sentiment, signal, confidence = Sentiment.NEUTRAL, Signal.HOLD, 0.0

        analysis = generate_narrative(
            instrument_name=latest.instrument_name,
            commercial_net=current,
            percentile=percentile,
            weekly_change=weekly_change,
            sentiment=sentiment.value,
        )

        logger.debug(
            "positioning_analyzed",
            instrument_code=instrument_code,
            percentile=percentile,
            signal=signal.value,
            history_size=len(history),
        )
        return AnalysisResult(
            instrument_code=latest.instrument_code,
            instrument_name=latest.instrument_name,
            report_date=latest.report_date,
            current_positioning=CurrentPositioning.from_record(latest),
            historical_percentile=percentile,
            weekly_change=weekly_change,
            sentiment=sentiment,
            signal=signal,
            confidence=float(confidence),
            analysis=analysis,
            history_size=len(history),
        )
