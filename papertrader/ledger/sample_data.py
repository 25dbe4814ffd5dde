"""Demo data — sample trades and synthetic price series.

Kept apart from the ledger so the state machine itself stays free of
randomness.
"""

from typing import Optional, Protocol

import numpy as np

from papertrader.ledger.models import ClosedTrade, Position


# (pair, stake, open_rate, exit_rate, close?)
SAMPLE_TRADES: list[tuple[str, float, float, float, bool]] = [
    ("BTC-USD", 25.0, 45000.0, 46000.0, True),
    ("ETH-USD", 20.0, 2500.0, 2450.0, True),
    ("ADA-USD", 15.0, 0.80, 0.82, False),
    ("XRP-USD", 18.0, 0.60, 0.65, True),
    ("SOL-USD", 22.0, 150.0, 155.0, False),
]


class TradeBook(Protocol):
    """Anything that opens, marks and closes trades: a ledger or a desk."""

    def open_trade(self, pair: str, stake_amount: float, open_rate: float) -> Position: ...

    def update_trade_price(self, trade_id: int, current_rate: float) -> Position: ...

    def close_trade(self, trade_id: int, close_rate: float) -> ClosedTrade: ...


def generate_sample_trades(book: TradeBook) -> TradeBook:
    """Populate *book* with a fixed mix of winners, a loser and open trades.

    Three trades are closed (two wins, one loss); two stay open and are
    marked to a higher price.  Pass the desk rather than its ledger so the
    closes also reach drawdown tracking and trade history.
    """
    for pair, stake, open_rate, exit_rate, close in SAMPLE_TRADES:
        position = book.open_trade(pair, stake, open_rate)
        if close:
            book.close_trade(position.trade_id, exit_rate)
        else:
            book.update_trade_price(position.trade_id, exit_rate)
    return book


def synthetic_prices(
    n: int,
    start_price: float = 100.0,
    drift: float = 0.0,
    volatility: float = 0.01,
    seed: Optional[int] = None,
) -> list[float]:
    """Geometric random walk of *n* prices starting at *start_price*.

    Each step multiplies the price by ``exp(drift + volatility × z)``
    with ``z ~ N(0, 1)``, so prices stay strictly positive.
    """
    if n <= 0:
        return []
    rng = np.random.default_rng(seed)
    steps = drift + volatility * rng.standard_normal(n - 1)
    log_path = np.concatenate(([0.0], np.cumsum(steps)))
    return (start_price * np.exp(log_path)).tolist()
