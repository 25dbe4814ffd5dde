"""Internal API routers — /session, /trades, /risk, /alerts, /signals, /backtest endpoints.

No business logic, no DB access. Delegates to the paper desk and the
bot-status client.
"""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel, Field

from papertrader.backtest.engine import DEFAULT_STRATEGY, BacktestEngine
from papertrader.errors import InvalidStateError, NotFoundError, PaperTraderError
from papertrader.ledger.sample_data import synthetic_prices
from papertrader.strategy.signals import analyze_entry, generate_signal

logger = logging.getLogger("papertrader.api")
router = APIRouter()

# ── Shared state (set during app startup) ────────────────────────────────

_desk = None           # Set via configure_routers()
_status_client = None  # Set via configure_routers()
_snapshot_repo = None  # Set via configure_routers()
_backtest_repo = None  # Set via configure_routers()


def configure_routers(desk, status_client=None, snapshot_repo=None, backtest_repo=None) -> None:
    """Inject dependencies from the application startup.

    Args:
        desk: A ``PaperDesk`` instance.
        status_client: Optional ``FreqtradeClient`` for upstream status.
        snapshot_repo: Optional ``SnapshotRepo`` for /snapshot endpoints.
        backtest_repo: Optional ``BacktestRepo``; backtest runs are stored
            there and listed by /backtest/history.
    """
    global _desk, _status_client, _snapshot_repo, _backtest_repo  # noqa: PLW0603
    _desk = desk
    _status_client = status_client
    _snapshot_repo = snapshot_repo
    _backtest_repo = backtest_repo


def _require_desk():
    if _desk is None:
        raise HTTPException(status_code=503, detail="Desk not configured")
    return _desk


def _raise_http(exc: PaperTraderError):
    if isinstance(exc, NotFoundError):
        raise HTTPException(status_code=404, detail=str(exc)) from exc
    if isinstance(exc, InvalidStateError):
        raise HTTPException(status_code=409, detail=str(exc)) from exc
    raise HTTPException(status_code=400, detail=str(exc)) from exc


# ── Request bodies ───────────────────────────────────────────────────────


class InitSessionRequest(BaseModel):
    starting_equity: float = Field(default=800.0, gt=0)


class ResetSessionRequest(BaseModel):
    starting_equity: Optional[float] = Field(default=None, gt=0)


class RecordTradeRequest(BaseModel):
    profit: float
    is_win: bool


class OpenTradeRequest(BaseModel):
    pair: str = Field(..., min_length=1)
    stake_amount: float
    open_rate: float


class PriceRequest(BaseModel):
    rate: float


class SignalRequest(BaseModel):
    symbol: str = Field(..., min_length=1)
    prices: list[float]
    current_price: Optional[float] = None


class BacktestRequest(BaseModel):
    symbol: str = Field(default="BTC-USD", min_length=1)
    strategy: str = DEFAULT_STRATEGY
    prices: Optional[list[float]] = None
    periods: int = Field(default=500, ge=2, le=10_000)
    seed: Optional[int] = None
    initial_equity: float = Field(default=800.0, gt=0)
    position_size_pct: float = Field(default=5.0, gt=0, le=100)
    take_profit_pct: float = Field(default=2.0, gt=0)
    stop_loss_pct: float = Field(default=1.0, gt=0)

    def price_series(self) -> list[float]:
        """Supplied prices, or a seeded random walk when none are given."""
        if self.prices is not None:
            return self.prices
        return synthetic_prices(self.periods, seed=self.seed)

    def engine(self) -> BacktestEngine:
        return BacktestEngine(
            take_profit_pct=self.take_profit_pct,
            stop_loss_pct=self.stop_loss_pct,
            position_size_pct=self.position_size_pct,
        )


# ── Session ──────────────────────────────────────────────────────────────


@router.get("/session")
async def get_session():
    """Return the current session (``null`` before initialisation)."""
    desk = _require_desk()
    return {"session": desk.session.to_dict() if desk.session else None}


@router.post("/session/init")
async def init_session(body: InitSessionRequest):
    desk = _require_desk()
    return {"session": desk.initialize(body.starting_equity).to_dict()}


@router.post("/session/start")
async def start_session():
    desk = _require_desk()
    return {"session": desk.start_trading().to_dict()}


@router.post("/session/stop")
async def stop_session():
    desk = _require_desk()
    session = desk.stop_trading()
    return {"session": session.to_dict() if session else None}


@router.post("/session/reset")
async def reset_session(body: ResetSessionRequest):
    desk = _require_desk()
    return {"session": desk.reset_session(body.starting_equity).to_dict()}


@router.get("/summary")
async def get_summary():
    return _require_desk().summary()


# ── Trades ───────────────────────────────────────────────────────────────


@router.post("/trades/record")
async def record_trade(body: RecordTradeRequest):
    """Record an externally settled trade into the session."""
    desk = _require_desk()
    session = desk.record_trade(body.profit, body.is_win)
    return {"session": session.to_dict() if session else None}


@router.post("/trades")
async def open_trade(body: OpenTradeRequest):
    desk = _require_desk()
    try:
        position = desk.open_trade(body.pair, body.stake_amount, body.open_rate)
    except PaperTraderError as exc:
        _raise_http(exc)
    return {"trade": position.to_dict()}


@router.post("/trades/{trade_id}/price")
async def update_trade_price(trade_id: int, body: PriceRequest):
    desk = _require_desk()
    try:
        position = desk.update_trade_price(trade_id, body.rate)
    except PaperTraderError as exc:
        _raise_http(exc)
    return {"trade": position.to_dict()}


@router.post("/trades/{trade_id}/close")
async def close_trade(trade_id: int, body: PriceRequest):
    desk = _require_desk()
    try:
        closed = desk.close_trade(trade_id, body.rate)
    except PaperTraderError as exc:
        _raise_http(exc)
    return {"trade": closed.to_dict()}


@router.post("/trades/{trade_id}/cancel")
async def cancel_trade(trade_id: int):
    desk = _require_desk()
    try:
        cancelled = desk.cancel_trade(trade_id)
    except PaperTraderError as exc:
        _raise_http(exc)
    return {"trade": cancelled.to_dict()}


@router.get("/positions")
async def get_positions():
    """Open paper positions with unrealized PnL."""
    desk = _require_desk()
    return {"positions": [p.to_dict() for p in desk.ledger.open_positions]}


@router.get("/trades/closed")
async def get_closed_trades(
    limit: int = Query(default=50, ge=1, le=500),
):
    """Closed paper trades, newest first."""
    desk = _require_desk()
    trades = desk.ledger.closed_trades[-limit:]
    trades.reverse()
    return {"trades": [t.to_dict() for t in trades], "total": len(desk.ledger.closed_trades)}


@router.get("/performance")
async def get_performance():
    return _require_desk().performance()


# ── Risk & targets ───────────────────────────────────────────────────────


@router.get("/risk")
async def get_risk():
    return _require_desk().risk_state().to_dict()


@router.get("/target/weekly")
async def get_weekly_target():
    return _require_desk().weekly_target().to_dict()


# ── Alerts & health ──────────────────────────────────────────────────────


@router.get("/alerts")
async def get_alerts(unresolved: bool = Query(default=False)):
    desk = _require_desk()
    alerts = desk.alerts.unresolved() if unresolved else desk.alerts.all()
    return {"alerts": [a.to_dict() for a in alerts]}


@router.post("/alerts/{alert_id}/resolve")
async def resolve_alert(alert_id: str):
    desk = _require_desk()
    if not desk.alerts.resolve(alert_id):
        raise HTTPException(status_code=404, detail=f"Unknown alert: {alert_id}")
    return {"status": "resolved", "id": alert_id}


@router.get("/health/bot")
async def get_bot_health():
    return _require_desk().health().to_dict()


@router.get("/upstream/status")
async def get_upstream_status():
    """Ping the external bot; never raises."""
    if _status_client is None:
        return {"connected": False, "status": None}
    desk = _require_desk()
    try:
        status = await _status_client.ping()
    except PaperTraderError as exc:
        desk.upstream_connected = False
        return {"connected": False, "status": None, "error": str(exc)}
    desk.upstream_connected = True
    return {"connected": True, "status": {"state": status.state, "version": status.version}}


# ── Signals ──────────────────────────────────────────────────────────────


@router.post("/signals/analyze")
async def analyze_signal(body: SignalRequest):
    """Generate a signal and a smart-entry read for the given prices."""
    if not body.prices:
        raise HTTPException(status_code=400, detail="prices must not be empty")
    current = body.current_price if body.current_price is not None else body.prices[-1]
    signal = generate_signal(body.symbol, body.prices, current)
    entry = analyze_entry(body.symbol, body.prices, current)
    return {"signal": signal.to_dict(), "entry": entry.to_dict()}


# ── Snapshots ────────────────────────────────────────────────────────────


@router.post("/snapshot")
async def save_snapshot():
    desk = _require_desk()
    if _snapshot_repo is None:
        raise HTTPException(status_code=503, detail="Snapshot store not configured")
    row_id = _snapshot_repo.save(desk.snapshot())
    logger.info("Saved desk snapshot %d", row_id)
    return {"status": "saved", "id": row_id}


@router.post("/snapshot/restore")
async def restore_snapshot():
    desk = _require_desk()
    if _snapshot_repo is None:
        raise HTTPException(status_code=503, detail="Snapshot store not configured")
    data = _snapshot_repo.load_latest()
    if data is None:
        raise HTTPException(status_code=404, detail="No snapshot stored")
    try:
        desk.restore(data)
    except (ValueError, KeyError, TypeError) as exc:
        raise HTTPException(status_code=422, detail=f"Invalid snapshot: {exc}") from exc
    return {"status": "restored"}


# ── Backtesting ──────────────────────────────────────────────────────────


@router.post("/backtest")
async def run_backtest(body: BacktestRequest):
    """Replay prices through a strategy on a scratch desk.

    The live desk is untouched.  The run is stored when a backtest store
    is configured; ``id`` is then its row id, otherwise ``null``.
    """
    try:
        result = body.engine().run(
            body.price_series(), body.symbol, body.strategy, body.initial_equity,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    run_id = _backtest_repo.insert_run(result) if _backtest_repo is not None else None
    return {"id": run_id, "result": result}


@router.post("/backtest/compare")
async def compare_backtests(body: BacktestRequest):
    """Run every strategy on the same prices, best net PnL first."""
    try:
        results = body.engine().compare(
            body.price_series(), body.symbol, body.initial_equity,
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    return {
        "results": [
            {key: value for key, value in r.items() if key not in ("trades", "equity_curve")}
            for r in results
        ],
    }


def _require_backtest_repo():
    if _backtest_repo is None:
        raise HTTPException(status_code=503, detail="Backtest store not configured")
    return _backtest_repo


@router.get("/backtest/history")
async def get_backtest_history(
    limit: int = Query(default=10, ge=1, le=100),
    strategy: Optional[str] = Query(default=None),
):
    return {"runs": _require_backtest_repo().get_runs(limit=limit, strategy=strategy)}


@router.get("/backtest/stats")
async def get_backtest_stats():
    return _require_backtest_repo().get_stats()


@router.get("/backtest/{run_id}")
async def get_backtest_run(run_id: int):
    run = _require_backtest_repo().get_run(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail=f"Unknown backtest run: {run_id}")
    return run
