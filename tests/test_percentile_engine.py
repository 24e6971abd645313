"""Tests for the percentile-signal engine."""

from __future__ import annotations

from datetime import date

import numpy as np
import pytest

from conftest import make_record
from cotwatch.signals.positioning.percentile import (
    MAX_SIGNAL_CONFIDENCE,
    PercentileSignalEngine,
    Sentiment,
    Signal,
    classify_percentile,
    historical_percentile,
)


@pytest.fixture
def engine(store):
    return PercentileSignalEngine(store)


class TestHistoricalPercentile:
    def test_strictly_below(self):
        assert historical_percentile(10_000, [5000, 10_000, 15_000, 8000, 12_000]) == 40.0

    def test_empty_history(self):
        assert historical_percentile(123, []) == 0.0

    def test_bounds(self):
        rng = np.random.default_rng(7)
        for _ in range(50):
            history = rng.integers(-1000, 1000, size=rng.integers(1, 60))
            p = historical_percentile(int(rng.integers(-1500, 1500)), history)
            assert 0.0 <= p <= 100.0


class TestClassification:
    @pytest.mark.parametrize(
        "percentile,signal",
        [(75.01, Signal.BUY), (100, Signal.BUY), (75, Signal.HOLD), (25, Signal.HOLD),
         (24.99, Signal.SELL), (0, Signal.SELL), (50, Signal.HOLD)],
    )
    def test_thresholds(self, percentile, signal):
        assert classify_percentile(percentile)[1] is signal

    def test_sentiment_follows_signal(self):
        assert classify_percentile(90)[0] is Sentiment.BULLISH
        assert classify_percentile(10)[0] is Sentiment.BEARISH
        assert classify_percentile(50)[0] is Sentiment.NEUTRAL

    def test_confidence_formulas(self):
        assert classify_percentile(90)[2] == pytest.approx(75.0)
        assert classify_percentile(10)[2] == pytest.approx(75.0)
        assert classify_percentile(50)[2] == pytest.approx(50.0)
        assert classify_percentile(40)[2] == pytest.approx(40.0)

    def test_confidence_monotonic_and_capped(self):
        bullish = [classify_percentile(p)[2] for p in np.linspace(75.5, 100, 50)]
        assert all(a <= b for a, b in zip(bullish, bullish[1:]))
        assert max(bullish) <= MAX_SIGNAL_CONFIDENCE
        assert classify_percentile(100)[2] == pytest.approx(85.0)

        bearish = [classify_percentile(p)[2] for p in np.linspace(24.5, 0, 50)]
        assert all(a <= b for a, b in zip(bearish, bearish[1:]))
        assert max(bearish) <= MAX_SIGNAL_CONFIDENCE


class TestAnalyze:
    def test_scenario_neutral_at_40th_percentile(self, engine, seed_history):
        seed_history("EURUSD", [5000, 10_000, 15_000, 8000, 12_000, 10_000], name="Euro FX")
        result = engine.analyze("EURUSD")

        assert result.historical_percentile == pytest.approx(40.0)
        assert result.sentiment is Sentiment.NEUTRAL
        assert result.signal is Signal.HOLD
        assert result.confidence == pytest.approx(40.0)
        assert result.weekly_change == -2000
        assert result.history_size == 5
        assert result.instrument_name == "Euro FX"

    def test_scenario_buy_at_90th_percentile(self, engine, seed_history):
        history = [100] * 45 + [1000] * 5
        seed_history("GC", history + [500])
        result = engine.analyze("GC")

        assert result.historical_percentile == pytest.approx(90.0)
        assert result.signal is Signal.BUY
        assert result.sentiment is Sentiment.BULLISH
        assert result.confidence == pytest.approx(75.0)

    def test_sell_below_all_history(self, engine, seed_history):
        seed_history("CL", [100, 200, 300, -50])
        result = engine.analyze("CL")
        assert result.historical_percentile == 0.0
        assert result.signal is Signal.SELL
        assert result.confidence == pytest.approx(85.0)

    def test_single_record_is_hold(self, engine, seed_history):
        seed_history("SI", [-25_000])
        result = engine.analyze("SI")

        assert result.historical_percentile == 0.0
        assert result.weekly_change == 0
        assert result.signal is Signal.HOLD
        assert result.sentiment is Sentiment.NEUTRAL
        assert result.history_size == 0

    def test_no_records_returns_none(self, engine):
        assert engine.analyze("GC") is None

    def test_non_positive_lookback_rejected(self, engine):
        with pytest.raises(ValueError):
            engine.analyze("GC", lookback_weeks=0)

    def test_lookback_limits_history(self, engine, seed_history):
        seed_history("GC", [900, 800, 700, 10, 20, 30])
        result = engine.analyze("GC", lookback_weeks=3)
        assert result.history_size == 2
        assert result.historical_percentile == pytest.approx(100.0)

    def test_as_of_ignores_later_records(self, engine, seed_history):
        records = seed_history("GC", [1, 2, 3, 4, 5])
        result = engine.analyze("GC", as_of=records[2].report_date)
        assert result.report_date == records[2].report_date
        assert result.current_positioning.commercial_net == 3
        assert result.weekly_change == 1

    def test_missing_net_treated_as_zero(self, engine, seed_history):
        seed_history("GC", [-10, -20, None])
        result = engine.analyze("GC")
        assert result.historical_percentile == pytest.approx(100.0)
        assert result.weekly_change == 20
        assert result.current_positioning.commercial_net is None

    def test_result_is_not_cached(self, engine, store, seed_history):
        seed_history("GC", [10, 20])
        first = engine.analyze("GC")
        store.upsert(make_record("GC", date(2024, 1, 16), 5))
        second = engine.analyze("GC")
        assert first.report_date != second.report_date
        assert second.signal is Signal.SELL

    def test_narrative_attached(self, engine, seed_history):
        seed_history("GC", [100, 200], name="Gold")
        result = engine.analyze("GC")
        assert result.analysis.startswith("Commercial traders are currently net long in Gold.")
