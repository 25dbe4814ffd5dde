"""Freqtrade REST API async client.

Read-only status collaborator: the paper desk never places orders through
it.  Only ``ping`` raises; every other query degrades to an empty or
zeroed default and logs a warning, so a dashboard keeps rendering while
the bot is down.
"""

import asyncio
import logging
from typing import Optional

import httpx

from papertrader.analytics import calculate_stats
from papertrader.broker.models import (
    BotStatus,
    BotTrade,
    DailyStat,
    PerformanceSummary,
    TradeHistory,
)
from papertrader.config import Config
from papertrader.errors import UpstreamError

logger = logging.getLogger("papertrader.freqtrade")

# Retry settings
_MAX_RETRIES = 3
_RETRY_BASE_DELAY = 1.0  # seconds; doubles each attempt
_RETRYABLE_STATUS_CODES = {502, 503, 504, 429}

_DEFAULT_STARTING_BALANCE = 1000.0

# Transport failures plus anything a malformed payload can raise while parsing
_READ_ERRORS = (httpx.HTTPError, ValueError, KeyError, TypeError, AttributeError)


class FreqtradeClient:
    """Async client wrapping the Freqtrade bot REST API.

    Args:
        config: Supplies the base URL, timeout and optional Basic Auth
            credentials.
        max_retries: Attempts per request for transient failures.
    """

    def __init__(self, config: Config, max_retries: int = _MAX_RETRIES) -> None:
        self._base_url = config.freqtrade_url.rstrip("/")
        self._timeout = config.request_timeout_seconds
        self._max_retries = max(1, max_retries)
        self._headers = {"Content-Type": "application/json"}
        self._auth: Optional[httpx.BasicAuth] = None
        if config.has_basic_auth:
            self._auth = httpx.BasicAuth(
                config.freqtrade_username, config.freqtrade_password,
            )

    # ── Retry helper ─────────────────────────────────────────────────────

    async def _request_with_retry(
        self,
        method: str,
        path: str,
        attempts: Optional[int] = None,
        **kwargs,
    ) -> httpx.Response:
        """Execute an HTTP request with exponential-backoff retry.

        Retries on transient server errors (502, 503, 504) and rate-limits
        (429).  Non-retryable errors are raised immediately.  ``attempts``
        overrides the client-wide retry count for one call.
        """
        url = f"{self._base_url}{path}"
        max_attempts = attempts or self._max_retries
        last_exc: Optional[Exception] = None

        for attempt in range(max_attempts):
            try:
                async with httpx.AsyncClient() as client:
                    resp = await getattr(client, method)(
                        url,
                        headers=self._headers,
                        auth=self._auth,
                        timeout=self._timeout,
                        **kwargs,
                    )

                if resp.status_code in _RETRYABLE_STATUS_CODES:
                    last_exc = httpx.HTTPStatusError(
                        f"Server error '{resp.status_code}'",
                        request=resp.request,
                        response=resp,
                    )
                    if attempt + 1 < max_attempts:
                        delay = _RETRY_BASE_DELAY * (2 ** attempt)
                        logger.warning(
                            "Freqtrade %s %s returned %d, retry %d/%d in %.1fs",
                            method.upper(), path, resp.status_code,
                            attempt + 1, max_attempts, delay,
                        )
                        await asyncio.sleep(delay)
                    continue

                resp.raise_for_status()
                return resp

            except httpx.TransportError as exc:
                last_exc = exc
                if attempt + 1 < max_attempts:
                    delay = _RETRY_BASE_DELAY * (2 ** attempt)
                    logger.warning(
                        "Freqtrade %s %s transport error (%s), retry %d/%d in %.1fs",
                        method.upper(), path, exc,
                        attempt + 1, max_attempts, delay,
                    )
                    await asyncio.sleep(delay)

        raise last_exc  # type: ignore[misc]

    async def _get_json(self, path: str, attempts: Optional[int] = None, **kwargs):
        resp = await self._request_with_retry("get", path, attempts=attempts, **kwargs)
        return resp.json()

    async def _get_object(self, path: str, **kwargs) -> dict:
        """GET ``path`` and return the JSON body, or ``{}`` if it is not an object."""
        data = await self._get_json(path, **kwargs)
        if not isinstance(data, dict):
            logger.warning("Freqtrade %s returned %s, expected an object", path, type(data).__name__)
            return {}
        return data

    # ── Status ───────────────────────────────────────────────────────────

    async def ping(self) -> BotStatus:
        """Query bot state and version.

        Single attempt: the engine calls this every cycle, so a dead bot
        must cost at most one request timeout.

        Raises:
            UpstreamError: If the bot cannot be reached or answers with an
                unreadable payload.
        """
        try:
            data = await self._get_json("/api/v1/ping", attempts=1)
            if not isinstance(data, dict):
                raise TypeError(f"unexpected ping payload: {type(data).__name__}")
            return BotStatus(
                state=str(data.get("status") or "running"),
                version=str(data.get("version") or "unknown"),
            )
        except _READ_ERRORS as exc:
            logger.error("Failed to get bot status: %s", exc)
            raise UpstreamError("Failed to connect to Freqtrade bot") from exc

    async def is_healthy(self) -> bool:
        try:
            await self.ping()
        except UpstreamError:
            return False
        return True

    # ── Trades ───────────────────────────────────────────────────────────

    async def list_trades(self) -> list[BotTrade]:
        """Trades currently reported by the bot; ``[]`` on failure."""
        try:
            data = await self._get_object("/api/v1/trades")
            return [BotTrade.from_api(t) for t in data.get("trades") or []]
        except _READ_ERRORS as exc:
            logger.warning("Failed to get open trades: %s", exc)
            return []

    async def get_trade(self, trade_id: int) -> Optional[BotTrade]:
        """A single trade by id; ``None`` when missing or on failure."""
        try:
            data = await self._get_object(f"/api/v1/trades/{trade_id}")
            raw = data.get("trade")
            return BotTrade.from_api(raw) if raw else None
        except _READ_ERRORS as exc:
            logger.warning("Failed to get trade %d: %s", trade_id, exc)
            return None

    async def get_trade_history(self, limit: int = 50, offset: int = 0) -> TradeHistory:
        """One page of trade history; an empty page on failure."""
        try:
            data = await self._get_object(
                "/api/v1/trades", params={"limit": limit, "offset": offset},
            )
            return TradeHistory(
                trades=[BotTrade.from_api(t) for t in data.get("trades") or []],
                total=int(data.get("total_trades") or 0),
            )
        except _READ_ERRORS as exc:
            logger.warning("Failed to get trade history: %s", exc)
            return TradeHistory(trades=[], total=0)

    # ── Statistics ───────────────────────────────────────────────────────

    async def get_performance(
        self,
        starting_balance: float = _DEFAULT_STARTING_BALANCE,
    ) -> PerformanceSummary:
        """Aggregate the bot's trades into a ``PerformanceSummary``.

        Win rate is measured over closed trades only; a trade wins when
        its ``profit_ratio`` is positive.  Freqtrade's own per-pair
        performance list carries no ``trades`` key and yields a zeroed
        summary.
        """
        try:
            data = await self._get_object("/api/v1/performance")
            trades = [BotTrade.from_api(t) for t in data.get("trades") or []]
        except _READ_ERRORS as exc:
            logger.warning("Failed to get performance: %s", exc)
            return PerformanceSummary()

        closed = [t for t in trades if not t.is_open]
        total_profit = sum(t.profit_abs for t in closed)
        wins = sum(1 for t in closed if t.profit_ratio > 0)
        stats = calculate_stats(closed)

        return PerformanceSummary(
            total_profit=total_profit,
            total_profit_percent=(
                total_profit / starting_balance * 100.0 if starting_balance > 0 else 0.0
            ),
            win_rate=wins / len(closed) * 100.0 if closed else 0.0,
            max_drawdown=stats["max_drawdown"],
            sharpe_ratio=stats["sharpe_ratio"],
            total_trades=len(trades),
            open_trades=len(trades) - len(closed),
            closed_trades=len(closed),
        )

    async def get_daily_stats(self) -> list[DailyStat]:
        try:
            data = await self._get_object("/api/v1/daily")
            return [
                DailyStat(
                    date=str(row.get("date", "")),
                    profit=float(row.get("profit") or row.get("abs_profit") or 0.0),
                    profit_percent=float(row.get("profit_percent") or 0.0),
                    trades=int(row.get("trades") or row.get("trade_count") or 0),
                )
                for row in data.get("data") or []
            ]
        except _READ_ERRORS as exc:
            logger.warning("Failed to get daily stats: %s", exc)
            return []

    # ── Configuration ────────────────────────────────────────────────────

    async def get_strategy(self) -> dict:
        try:
            return await self._get_object("/api/v1/strategy")
        except _READ_ERRORS as exc:
            logger.warning("Failed to get strategy: %s", exc)
            return {}

    async def get_bot_config(self) -> dict:
        try:
            return await self._get_object("/api/v1/config")
        except _READ_ERRORS as exc:
            logger.warning("Failed to get config: %s", exc)
            return {}
