"""Deterministic narrative text for a positioning analysis."""

from __future__ import annotations

_CLOSING = {
    "bullish": "This suggests potential upward pressure on prices.",
    "bearish": "This suggests potential downward pressure on prices.",
    "neutral": "Current positioning suggests neutral market sentiment.",
}


def _intensity(percentile: float) -> str:
    if percentile > 75:
        return "strongly"
    if percentile > 60:
        return "moderately"
    return "slightly"


def generate_narrative(
    instrument_name: str,
    commercial_net: int,
    percentile: float,
    weekly_change: int,
    sentiment: str,
) -> str:
    """Build the plain-English summary of an instrument's positioning.

    Parameters
    ----------
    instrument_name : str
        Display name, e.g. "Euro FX".
    commercial_net : int
        Current commercial net position; > 0 reads as net long.
    percentile : float
        Historical percentile rank, 0-100.
    weekly_change : int
        Signed change versus the previous report; omitted from the text when 0.
    sentiment : str
        "bullish", "bearish" or "neutral".

    Returns
    -------
    str
        The narrative, identical for identical inputs.
    """
    direction = "long" if commercial_net > 0 else "short"
    parts = [
        f"Commercial traders are currently net {direction} in {instrument_name}. ",
        f"This positioning is at the {percentile:.1f}th percentile of the past year, ",
        f"indicating {_intensity(percentile)} {sentiment} positioning. ",
    ]
    if weekly_change != 0:
        movement = "increased" if weekly_change > 0 else "decreased"
        parts.append(
            f"Net positioning has {movement} by {abs(weekly_change):,} contracts this week. "
        )
    parts.append(_CLOSING.get(sentiment, _CLOSING["neutral"]))
    return "".join(parts)
