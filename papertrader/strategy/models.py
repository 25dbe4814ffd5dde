"""Strategy data models — typed representations for indicator and signal outputs."""

from dataclasses import asdict, dataclass, field


BUY = "BUY"
SELL = "SELL"
HOLD = "HOLD"

BAND_POSITIONS = ("below_lower", "near_lower", "middle", "near_upper", "above_upper")


@dataclass(frozen=True)
class BollingerBands:
    """Upper / middle / lower band values at the latest price."""

    upper: float
    middle: float
    lower: float


@dataclass(frozen=True)
class MACDResult:
    """MACD line, its signal line, and their difference."""

    macd: float
    signal: float
    histogram: float


@dataclass(frozen=True)
class IndicatorSnapshot:
    """All indicator readings that fed a single signal."""

    rsi: float
    macd: float
    macd_signal: float
    histogram: float
    bollinger: BollingerBands
    band_position: str  # one of BAND_POSITIONS


NEUTRAL_SNAPSHOT_RSI = 50.0


@dataclass(frozen=True)
class TradeSignal:
    """A categorical trade decision with price levels.

    Produced fresh on every ``generate_signal`` call; never mutated.
    """

    symbol: str
    signal: str  # "BUY", "SELL" or "HOLD"
    confidence: float
    entry_price: float
    stop_loss: float
    take_profit: float
    risk_reward: float
    indicators: IndicatorSnapshot
    rsi_signal: str = "neutral"  # "overbought", "oversold", "neutral"
    macd_signal: str = "neutral"  # "bullish", "bearish", "neutral"
    bollinger_signal: str = "middle"  # "upper_band", "lower_band", "middle"

    @property
    def rsi(self) -> float:
        return self.indicators.rsi

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class SmartEntry:
    """Entry recommendation with human-readable reasons."""

    symbol: str
    recommended_entry: float
    confidence: float  # percentage, 20–95
    reasons: list[str] = field(default_factory=list)
    expected_profit_pct: float = 0.0
    risk_reward: float = 0.0
    trend_strength: float = 50.0
    indicators: IndicatorSnapshot | None = None

    def to_dict(self) -> dict:
        return asdict(self)
