"""PaperTrader — auto-trading engine (orchestration loop).

Connects the price feed, signal generator, risk manager and paper desk
into a single polling loop.  Each cycle reads everything external first
(prices, bot status), then marks open positions to market, auto-closes
those past the profit / loss thresholds and opens new positions on BUY
signals while the risk limits allow.
"""

import asyncio
import logging
import time
from datetime import datetime, timezone
from typing import Optional, Protocol, runtime_checkable

import numpy as np

from papertrader.broker.freqtrade_client import FreqtradeClient
from papertrader.config import Config
from papertrader.desk import PaperDesk
from papertrader.errors import PaperTraderError
from papertrader.health import PsutilMetricsProvider
from papertrader.ledger.sample_data import synthetic_prices
from papertrader.risk.position_sizer import calculate_stake
from papertrader.strategy.models import BUY
from papertrader.strategy.signals import generate_signal

logger = logging.getLogger("papertrader.engine")


# ── Price feeds ──────────────────────────────────────────────────────────


@runtime_checkable
class PriceFeed(Protocol):
    """Source of price histories, oldest first."""

    async def fetch_history(self, symbol: str) -> list[float]:
        ...


class StaticPriceFeed:
    """In-memory price feed for tests and demos.

    Args:
        histories: Initial ``{symbol: prices}`` mapping.
    """

    def __init__(self, histories: Optional[dict[str, list[float]]] = None) -> None:
        self._histories: dict[str, list[float]] = {
            symbol: list(prices) for symbol, prices in (histories or {}).items()
        }

    def set_history(self, symbol: str, prices: list[float]) -> None:
        self._histories[symbol] = list(prices)

    def push_price(self, symbol: str, price: float) -> None:
        """Append the newest price for *symbol*."""
        self._histories.setdefault(symbol, []).append(price)

    async def fetch_history(self, symbol: str) -> list[float]:
        return list(self._histories.get(symbol, []))


DEFAULT_START_PRICES = {"BTC-USD": 45000.0, "ETH-USD": 2500.0, "SOL-USD": 150.0}


class SyntheticPriceFeed:
    """Random-walk prices for demo runs; each fetch advances one step.

    Args:
        start_prices: ``{symbol: price}`` seeds; unknown symbols start at 100.
        window: Number of prices kept per symbol.
        volatility: Per-step log-return standard deviation.
        seed: Seed for reproducible walks.
    """

    def __init__(
        self,
        start_prices: Optional[dict[str, float]] = None,
        window: int = 100,
        volatility: float = 0.005,
        seed: Optional[int] = None,
    ) -> None:
        self._start_prices = {**DEFAULT_START_PRICES, **(start_prices or {})}
        self._window = window
        self._volatility = volatility
        self._rng = np.random.default_rng(seed)
        self._histories: dict[str, list[float]] = {}

    async def fetch_history(self, symbol: str) -> list[float]:
        history = self._histories.get(symbol)
        if history is None:
            history = synthetic_prices(
                self._window,
                start_price=self._start_prices.get(symbol, 100.0),
                volatility=self._volatility,
                seed=int(self._rng.integers(0, 2**32)),
            )
        else:
            step = self._volatility * self._rng.standard_normal()
            history.append(history[-1] * float(np.exp(step)))
            del history[: max(0, len(history) - self._window)]
        self._histories[symbol] = history
        return list(history)


# ── Engine ───────────────────────────────────────────────────────────────


class PaperTradingEngine:
    """Runs evaluate → close / open cycles against one ``PaperDesk``.

    Args:
        config: Application configuration (pairs, thresholds, interval).
        desk: The paper desk whose ledger and session are traded.
        price_feed: Any ``PriceFeed``.
        status_client: Optional ``FreqtradeClient`` (or compatible mock)
            pinged each cycle for the health view.
    """

    def __init__(
        self,
        config: Config,
        desk: PaperDesk,
        price_feed: PriceFeed,
        status_client: Optional[FreqtradeClient] = None,
    ) -> None:
        self._config = config
        self._desk = desk
        self._feed = price_feed
        self._status_client = status_client
        self._running: bool = False
        self._cycle_count: int = 0

    @property
    def running(self) -> bool:
        return self._running

    @property
    def cycle_count(self) -> int:
        return self._cycle_count

    def stop(self) -> None:
        """Signal the engine to stop after the current cycle."""
        self._running = False

    # ── Polling loop ─────────────────────────────────────────────────────

    async def run(
        self,
        poll_interval: Optional[float] = None,
        max_cycles: int = 0,
    ) -> list[dict]:
        """Run the trading loop until stopped.

        A failing cycle is logged, recorded as an ``error`` alert and the
        loop carries on.

        Args:
            poll_interval: Seconds between cycles.  Defaults to
                ``config.poll_interval_seconds``.
            max_cycles: Stop after this many cycles (0 = unlimited).

        Returns:
            List of per-cycle result dicts.
        """
        if poll_interval is None:
            poll_interval = self._config.poll_interval_seconds
        results: list[dict] = []
        cycle = 0
        self._running = True
        logger.info(
            "Engine started: pairs=%s interval=%.1fs",
            ",".join(self._config.trade_pairs), poll_interval,
        )

        while self._running:
            cycle += 1
            self._cycle_count += 1
            try:
                result = await self.run_once()
                results.append(result)
                self._record_cycle(failed=False)
                logger.debug("Cycle %d: %s", cycle, result.get("action", "unknown"))
            except Exception as exc:
                logger.error("Cycle %d error: %s", cycle, exc)
                results.append({"action": "error", "reason": str(exc)})
                self._record_cycle(failed=True)
                self._desk.alerts.add("error", f"Engine cycle failed: {exc}")

            if max_cycles > 0 and cycle >= max_cycles:
                break

            # Interruptible sleep; checks _running at least once a second.
            remaining = poll_interval
            while remaining > 0 and self._running:
                step = min(1.0, remaining)
                await asyncio.sleep(step)
                remaining -= step

        self._running = False
        logger.info("Engine stopped after %d cycles", cycle)
        return results

    # ── Single cycle ─────────────────────────────────────────────────────

    async def run_once(self, utc_now: Optional[datetime] = None) -> dict:
        """Execute one trading cycle.

        Returns a dict describing the outcome:

        - ``{"action": "skipped", "reason": "auto_trading_disabled"}``
        - ``{"action": "cycle", "closed": [...], "opened": [...], "signals": {...}}``

        Args:
            utc_now: Current UTC datetime.  Defaults to ``datetime.now(UTC)``.
        """
        session = self._desk.session
        if session is None or not session.auto_trading_enabled:
            return {"action": "skipped", "reason": "auto_trading_disabled"}
        if utc_now is None:
            utc_now = datetime.now(timezone.utc)

        # 1 ── Read everything external before touching the ledger
        histories = await self._fetch_histories()
        if self._status_client is not None:
            self._desk.upstream_connected = await self._status_client.is_healthy()

        # 2 ── Mark to market and auto-close
        closed_ids = self._mark_and_close(histories, utc_now)

        # 3 ── Open new positions on BUY signals
        signals: dict[str, dict] = {}
        opened_ids: list[int] = []
        for pair in self._config.trade_pairs:
            history = histories.get(pair) or []
            if not history:
                continue
            signal = generate_signal(pair, history, history[-1])
            signals[pair] = signal.to_dict()
            if signal.signal != BUY:
                continue
            trade_id = self._try_open(pair, history[-1])
            if trade_id is not None:
                opened_ids.append(trade_id)

        return {
            "action": "cycle",
            "closed": closed_ids,
            "opened": opened_ids,
            "signals": signals,
            "evaluated_at": utc_now.isoformat(),
        }

    async def _fetch_histories(self) -> dict[str, list[float]]:
        pairs = list(self._config.trade_pairs)
        for position in self._desk.ledger.open_positions:
            if position.pair not in pairs:
                pairs.append(position.pair)

        started = time.perf_counter()
        histories = {pair: await self._feed.fetch_history(pair) for pair in pairs}
        provider = self._desk.metrics_provider
        if isinstance(provider, PsutilMetricsProvider):
            provider.record_latency((time.perf_counter() - started) * 1000.0)
        return histories

    def _mark_and_close(
        self,
        histories: dict[str, list[float]],
        utc_now: datetime,
    ) -> list[int]:
        closed_ids: list[int] = []
        for position in self._desk.ledger.open_positions:
            history = histories.get(position.pair)
            if not history:
                continue
            rate = history[-1]
            try:
                self._desk.update_trade_price(position.trade_id, rate)
                change_pct = position.profit_ratio * 100.0
                if (
                    change_pct >= self._config.auto_close_profit_pct
                    or change_pct <= self._config.auto_close_loss_pct
                ):
                    closed = self._desk.close_trade(position.trade_id, rate, utc_now)
                    closed_ids.append(closed.trade_id)
                    logger.info(
                        "Auto-closed trade %d %s at %.2f%%",
                        closed.trade_id, closed.pair, change_pct,
                    )
            except PaperTraderError as exc:
                logger.warning("Trade %d skipped: %s", position.trade_id, exc)
        return closed_ids

    def _try_open(self, pair: str, rate: float) -> Optional[int]:
        if any(p.pair == pair for p in self._desk.ledger.open_positions):
            return None
        if not self._desk.risk.can_open_trade(len(self._desk.ledger.open_positions)):
            logger.info("Risk limits block new %s position", pair)
            return None

        state = self._desk.risk_state()
        try:
            stake = calculate_stake(
                self._desk.session.equity,
                state.risk_per_trade,
                max_position_size=state.max_position_size,
            )
            position = self._desk.open_trade(pair, stake, rate)
        except (PaperTraderError, ValueError) as exc:
            logger.warning("Could not open %s: %s", pair, exc)
            return None
        return position.trade_id

    def _record_cycle(self, failed: bool) -> None:
        provider = self._desk.metrics_provider
        if isinstance(provider, PsutilMetricsProvider):
            provider.record_cycle(failed=failed)
