"""Signal evaluation — pure functions, no I/O.

Combines RSI, MACD and Bollinger Bands into a single BUY / SELL / HOLD
decision with confidence and price levels.

Decision table:

* **BUY**  — RSI oversold **and** MACD bullish.
* **SELL** — RSI overbought **and** MACD bearish.
* anything else — **HOLD** (confidence 0).

The Bollinger band only raises confidence; it never creates a signal on
its own.
"""

import math

from papertrader.strategy import indicators
from papertrader.strategy.models import (
    BUY,
    HOLD,
    SELL,
    BollingerBands,
    IndicatorSnapshot,
    NEUTRAL_SNAPSHOT_RSI,
    SmartEntry,
    TradeSignal,
)


MIN_HISTORY = 30

RSI_OVERBOUGHT = 70.0
RSI_OVERSOLD = 30.0

BASE_CONFIDENCE = 0.85
BAND_CONFIDENCE = 0.95
CONFIRMATION_BONUS = 0.1

# Fixed reward:risk multiple for BUY / SELL take-profit placement.
REWARD_MULTIPLE = 2.0


def _neutral_snapshot(current_price: float) -> IndicatorSnapshot:
    return IndicatorSnapshot(
        rsi=NEUTRAL_SNAPSHOT_RSI,
        macd=0.0,
        macd_signal=0.0,
        histogram=0.0,
        bollinger=BollingerBands(
            upper=current_price * 1.02,
            middle=current_price,
            lower=current_price * 0.98,
        ),
        band_position="middle",
    )


def classify_rsi(rsi_value: float) -> str:
    """``"overbought"`` above 70, ``"oversold"`` below 30, else ``"neutral"``."""
    if rsi_value > RSI_OVERBOUGHT:
        return "overbought"
    if rsi_value < RSI_OVERSOLD:
        return "oversold"
    return "neutral"


def classify_macd(line: float, signal: float, histogram: float) -> str:
    """``"bullish"`` / ``"bearish"`` when histogram and crossover agree."""
    if histogram > 0 and line > signal:
        return "bullish"
    if histogram < 0 and line < signal:
        return "bearish"
    return "neutral"


def collapse_band_position(band_position: str) -> str:
    """Reduce the five-way band position to the three states signals use."""
    if band_position == "above_upper":
        return "upper_band"
    if band_position == "below_lower":
        return "lower_band"
    return "middle"


def _risk_reward(signal: str, entry: float, stop: float, take: float) -> float:
    try:
        if signal == SELL:
            ratio = (entry - take) / (stop - entry)
        else:
            ratio = (take - entry) / (entry - stop)
    except ZeroDivisionError:
        return 1.0
    if not math.isfinite(ratio):
        return 1.0
    return ratio


def generate_signal(
    symbol: str,
    price_history: list[float],
    current_price: float,
) -> TradeSignal:
    """Evaluate *price_history* and return a fresh ``TradeSignal``.

    With fewer than 30 prices the result is an "insufficient data" HOLD:
    confidence 0, RSI 50, neutral indicators and a ±2 % bracket around
    *current_price*.

    Price levels:

    * BUY  — stop 1 % under the lower band, take-profit at 2 × the risk.
    * SELL — stop 1 % over the upper band, take-profit at 2 × the risk.
    * HOLD — ±2 % around *current_price*.

    If the band-anchored stop lands on the wrong side of the entry (price
    already beyond the band) the stop falls back to 1 % from the entry so
    ``stop < entry < take`` (BUY) and ``take < entry < stop`` (SELL) hold.

    Never raises.
    """
    if len(price_history) < MIN_HISTORY:
        return TradeSignal(
            symbol=symbol,
            signal=HOLD,
            confidence=0.0,
            entry_price=current_price,
            stop_loss=current_price * 0.98,
            take_profit=current_price * 1.02,
            risk_reward=1.0,
            indicators=_neutral_snapshot(current_price),
        )

    rsi_value = indicators.rsi(price_history)
    macd_result = indicators.macd(price_history)
    bands = indicators.bollinger_bands(price_history)
    band_position = indicators.classify_band_position(current_price, bands)

    rsi_signal = classify_rsi(rsi_value)
    macd_signal = classify_macd(
        macd_result.macd, macd_result.signal, macd_result.histogram,
    )
    bollinger_signal = collapse_band_position(band_position)

    signal = HOLD
    confidence = 0.0

    if rsi_signal == "oversold" and macd_signal == "bullish":
        signal = BUY
        confidence = BASE_CONFIDENCE
        if bollinger_signal == "lower_band":
            confidence = BAND_CONFIDENCE
            # Band and MACD both reconfirm the long side.
            confidence = min(1.0, confidence + CONFIRMATION_BONUS)
    elif rsi_signal == "overbought" and macd_signal == "bearish":
        signal = SELL
        confidence = BASE_CONFIDENCE
        if bollinger_signal == "upper_band":
            confidence = BAND_CONFIDENCE
            confidence = min(1.0, confidence + CONFIRMATION_BONUS)

    entry = current_price
    if signal == BUY:
        stop = bands.lower * 0.99
        if stop >= entry:
            stop = entry * 0.99
        take = entry + (entry - stop) * REWARD_MULTIPLE
    elif signal == SELL:
        stop = bands.upper * 1.01
        if stop <= entry:
            stop = entry * 1.01
        take = entry - (stop - entry) * REWARD_MULTIPLE
    else:
        stop = entry * 0.98
        take = entry * 1.02

    return TradeSignal(
        symbol=symbol,
        signal=signal,
        confidence=confidence,
        entry_price=entry,
        stop_loss=stop,
        take_profit=take,
        risk_reward=_risk_reward(signal, entry, stop, take),
        indicators=IndicatorSnapshot(
            rsi=rsi_value,
            macd=macd_result.macd,
            macd_signal=macd_result.signal,
            histogram=macd_result.histogram,
            bollinger=bands,
            band_position=band_position,
        ),
        rsi_signal=rsi_signal,
        macd_signal=macd_signal,
        bollinger_signal=bollinger_signal,
    )


# ── Smart entry ──────────────────────────────────────────────────────────


def analyze_entry(
    symbol: str,
    price_history: list[float],
    current_price: float,
) -> SmartEntry:
    """Score an entry at *current_price* and explain the score.

    Starts at 50 and adjusts for RSI zone, MACD sign, band position and
    the up-move share of the last 10 changes.  The result is clamped to
    20–95: never fully certain, never fully dismissive.
    """
    rsi_value = indicators.rsi(price_history)
    macd_result = indicators.macd(price_history)
    bands = indicators.bollinger_bands(price_history)
    band_position = indicators.classify_band_position(current_price, bands)
    trend = indicators.trend_strength(price_history)

    reasons: list[str] = []
    confidence = 50.0
    recommended = current_price

    if rsi_value < RSI_OVERSOLD:
        reasons.append("RSI oversold - strong buy signal")
        confidence += 15
        recommended = current_price * 0.998
    elif rsi_value < 40:
        reasons.append("RSI approaching oversold")
        confidence += 8
    elif rsi_value > RSI_OVERBOUGHT:
        reasons.append("RSI overbought - wait for pullback")
        confidence -= 10

    if macd_result.macd > 0:
        reasons.append("MACD above zero")
        confidence += 10
    elif macd_result.macd < 0 and macd_result.histogram < 0:
        reasons.append("MACD bearish - caution")
        confidence -= 5

    if band_position == "below_lower":
        reasons.append("Price below lower Bollinger band - potential reversal")
        confidence += 12
        recommended = bands.lower
    elif band_position == "near_lower":
        reasons.append("Price near lower Bollinger band")
        confidence += 8

    if trend > 60:
        reasons.append("Strong uptrend detected")
        confidence += 10
    elif trend < 40:
        reasons.append("Weak or downtrend - reduced position size recommended")
        confidence -= 5

    if not reasons:
        reasons.append("No indicator edge - neutral conditions")

    confidence = min(95.0, max(20.0, confidence))
    if confidence > 70:
        expected = 1.5
    elif confidence > 50:
        expected = 1.0
    else:
        expected = 0.5

    return SmartEntry(
        symbol=symbol,
        recommended_entry=recommended,
        confidence=confidence,
        reasons=reasons,
        expected_profit_pct=expected,
        # Measured against a fixed 1 % stop.
        risk_reward=expected / 1.0,
        trend_strength=trend,
        indicators=IndicatorSnapshot(
            rsi=rsi_value,
            macd=macd_result.macd,
            macd_signal=macd_result.signal,
            histogram=macd_result.histogram,
            bollinger=bands,
            band_position=band_position,
        ),
    )
