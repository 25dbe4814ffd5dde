"""Technical indicators — RSI, EMA, MACD, Bollinger Bands. Pure functions, no I/O.

Unlike a strict indicator library these never raise on short input: each
one degrades to a neutral value so callers don't have to branch on
"not enough history".
"""

import math

from papertrader.strategy.models import BollingerBands, MACDResult


# ── RSI ──────────────────────────────────────────────────────────────────


def rsi(prices: list[float], period: int = 14) -> float:
    """Relative Strength Index over the last *period* deltas.

    Simple-average variant (no Wilder smoothing):
        1. delta = price[i] - price[i-1] for the last *period* deltas
        2. gains = Σ positive deltas, losses = Σ |negative deltas|
        3. RS = (gains / period) / (losses / period)
        4. RSI = 100 - 100 / (1 + RS)

    Returns 50 with fewer than ``period + 1`` prices, and 100 when there
    were no losing deltas.
    """
    if len(prices) < period + 1:
        return 50.0

    gains = 0.0
    losses = 0.0
    for i in range(len(prices) - period, len(prices)):
        change = prices[i] - prices[i - 1]
        if change > 0:
            gains += change
        else:
            losses += abs(change)

    avg_gain = gains / period
    avg_loss = losses / period
    if avg_loss == 0:
        return 100.0
    return 100.0 - 100.0 / (1.0 + avg_gain / avg_loss)


# ── EMA ──────────────────────────────────────────────────────────────────


def ema_series(prices: list[float], period: int) -> list[float]:
    """EMA value at every prefix of *prices*.

    ``ema_series(p, n)[i] == ema(p[: i + 1], n)`` for every *i*: prefixes
    shorter than *period* yield their last price, the prefix of exactly
    *period* values yields the SMA seed, and later values follow
    ``EMA = price × k + EMA_prev × (1 - k)`` with ``k = 2 / (period + 1)``.
    """
    k = 2.0 / (period + 1)
    out: list[float] = []
    running = 0.0
    value = 0.0
    for i, price in enumerate(prices):
        if i < period:
            running += price
            value = running / period if i == period - 1 else price
        else:
            value = price * k + value * (1 - k)
        out.append(value)
    return out


def ema(prices: list[float], period: int) -> float:
    """Exponential Moving Average of *prices*, seeded with an SMA.

    Returns the last price when fewer than *period* prices are given,
    and 0.0 for an empty series.
    """
    if not prices:
        return 0.0
    if len(prices) < period:
        return prices[-1]

    k = 2.0 / (period + 1)
    value = sum(prices[:period]) / period
    for price in prices[period:]:
        value = price * k + value * (1 - k)
    return value


# ── MACD ─────────────────────────────────────────────────────────────────


def macd(
    prices: list[float],
    fast: int = 12,
    slow: int = 26,
    signal_period: int = 9,
) -> MACDResult:
    """Moving Average Convergence Divergence.

    ``macd = EMA(fast) - EMA(slow)`` on the full series.  The signal line
    is the *signal_period* EMA of the MACD line taken at every historical
    index.  The MACD-line history is built in one pass from the prefix
    EMA series instead of recomputing both EMAs per index; the values are
    identical.
    """
    if not prices:
        return MACDResult(macd=0.0, signal=0.0, histogram=0.0)

    fast_series = ema_series(prices, fast)
    slow_series = ema_series(prices, slow)
    macd_line = [f - s for f, s in zip(fast_series, slow_series)]

    line = macd_line[-1]
    signal = ema(macd_line, signal_period)
    return MACDResult(macd=line, signal=signal, histogram=line - signal)


# ── Bollinger Bands ──────────────────────────────────────────────────────


def bollinger_bands(
    prices: list[float],
    period: int = 20,
    k: float = 2.0,
) -> BollingerBands:
    """Bollinger Bands over the last *period* prices.

    Middle = SMA, σ = population standard deviation of the same window,
    upper / lower = middle ± *k* × σ.

    With fewer than *period* prices the band is a fixed ±2 % around the
    last price.
    """
    if not prices:
        return BollingerBands(upper=0.0, middle=0.0, lower=0.0)
    if len(prices) < period:
        last = prices[-1]
        return BollingerBands(upper=last * 1.02, middle=last, lower=last * 0.98)

    window = prices[-period:]
    sma = sum(window) / period
    variance = sum((p - sma) ** 2 for p in window) / period
    sigma = math.sqrt(variance)
    return BollingerBands(
        upper=sma + k * sigma,
        middle=sma,
        lower=sma - k * sigma,
    )


def classify_band_position(current_price: float, bands: BollingerBands) -> str:
    """Where *current_price* sits relative to *bands*.

    ``near_lower`` / ``near_upper`` cover the 30 % of the middle-to-band
    span closest to each band.
    """
    if current_price < bands.lower:
        return "below_lower"
    if current_price < bands.lower + (bands.middle - bands.lower) * 0.3:
        return "near_lower"
    if current_price > bands.upper:
        return "above_upper"
    if current_price > bands.upper - (bands.upper - bands.middle) * 0.3:
        return "near_upper"
    return "middle"


# ── Trend ────────────────────────────────────────────────────────────────


def trend_strength(prices: list[float], lookback: int = 10) -> float:
    """Share of up-moves among the last *lookback* price changes (0–100).

    Flat moves are ignored.  Returns 50 when there is too little data or
    no directional move at all.
    """
    if len(prices) < lookback:
        return 50.0

    recent = prices[-lookback:]
    up_moves = 0
    down_moves = 0
    for prev, cur in zip(recent, recent[1:]):
        if cur > prev:
            up_moves += 1
        elif cur < prev:
            down_moves += 1

    total = up_moves + down_moves
    if total == 0:
        return 50.0
    return up_moves / total * 100.0
