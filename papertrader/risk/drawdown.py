"""Equity curve extremes — pure math, no I/O.

Tracks the highest and lowest equity seen and the worst peak-to-trough
decline.  Complements ``RiskState.current_drawdown``, which is measured
against starting equity only.
"""


class DrawdownTracker:
    """Peak / trough tracking over a sequence of equity readings.

    Args:
        initial_equity: Starting account equity.
    """

    def __init__(self, initial_equity: float) -> None:
        if initial_equity <= 0:
            raise ValueError(
                f"initial_equity must be positive, got {initial_equity}"
            )
        self._peak_equity: float = initial_equity
        self._min_equity: float = initial_equity
        self._current_equity: float = initial_equity
        self._max_drawdown_pct: float = 0.0

    # ── Mutation ─────────────────────────────────────────────────────────

    def update(self, equity: float) -> None:
        """Record the latest equity and widen the extremes if needed."""
        self._current_equity = equity
        if equity > self._peak_equity:
            self._peak_equity = equity
        if equity < self._min_equity:
            self._min_equity = equity
        if self.drawdown_pct > self._max_drawdown_pct:
            self._max_drawdown_pct = self.drawdown_pct

    # ── Queries ──────────────────────────────────────────────────────────

    @property
    def peak_equity(self) -> float:
        """Highest equity recorded."""
        return self._peak_equity

    @property
    def min_equity(self) -> float:
        """Lowest equity recorded."""
        return self._min_equity

    @property
    def current_equity(self) -> float:
        return self._current_equity

    @property
    def drawdown_pct(self) -> float:
        """Current decline from the peak, as a percentage of the peak."""
        if self._peak_equity == 0:
            return 0.0
        return (
            (self._peak_equity - self._current_equity) / self._peak_equity
        ) * 100.0

    @property
    def max_drawdown_pct(self) -> float:
        """Worst peak-to-trough decline seen so far."""
        return self._max_drawdown_pct

    @classmethod
    def from_dict(cls, data: dict) -> "DrawdownTracker":
        tracker = cls(data["peak_equity"])
        tracker._min_equity = data["min_equity"]
        tracker._current_equity = data["current_equity"]
        tracker._max_drawdown_pct = data["max_drawdown_pct"]
        return tracker

    def to_dict(self) -> dict:
        return {
            "peak_equity": self._peak_equity,
            "min_equity": self._min_equity,
            "current_equity": self._current_equity,
            "drawdown_pct": self.drawdown_pct,
            "max_drawdown_pct": self._max_drawdown_pct,
        }
