"""PaperTrader — application entry point.

Boots the FastAPI internal server and provides the CLI entry point that
runs the paper-trading engine alongside it.
"""

import logging

from fastapi import FastAPI

from papertrader.api.routers import router

app = FastAPI(title="PaperTrader Internal API", version="0.1.0")
app.include_router(router)

logger = logging.getLogger("papertrader")


@app.get("/health")
async def health():
    """Liveness check."""
    return {"status": "ok"}


# ── CLI ──────────────────────────────────────────────────────────────────


def _run_cli() -> None:
    """Parse CLI arguments, wire the desk and run engine + API."""
    import argparse
    import asyncio
    import signal

    from papertrader.api.routers import configure_routers
    from papertrader.backtest.engine import BacktestEngine
    from papertrader.broker.freqtrade_client import FreqtradeClient
    from papertrader.config import load_config
    from papertrader.desk import PaperDesk
    from papertrader.engine import PaperTradingEngine, SyntheticPriceFeed
    from papertrader.health import PsutilMetricsProvider
    from papertrader.ledger.sample_data import generate_sample_trades, synthetic_prices
    from papertrader.repos.backtest_repo import BacktestRepo
    from papertrader.repos.db import init_db
    from papertrader.repos.snapshot_repo import SnapshotRepo
    from papertrader.repos.trade_repo import TradeRepo

    parser = argparse.ArgumentParser(description="PaperTrader crypto paper-trading simulator")
    parser.add_argument(
        "--demo",
        action="store_true",
        help="Seed the ledger with sample trades before starting",
    )
    parser.add_argument(
        "--restore",
        action="store_true",
        help="Resume from the latest stored desk snapshot",
    )
    parser.add_argument(
        "--engine-only",
        action="store_true",
        help="Run the trading engine without the API server",
    )
    parser.add_argument(
        "--backtest",
        action="store_true",
        help="Backtest every strategy on synthetic prices, store the runs and exit",
    )
    parser.add_argument("--seed", type=int, default=None, help="Synthetic price seed")
    args = parser.parse_args()

    config = load_config()
    logging.basicConfig(
        level=getattr(logging, config.log_level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    init_db(config.db_path)
    backtest_repo = BacktestRepo(config.db_path)

    if args.backtest:
        results = BacktestEngine(
            take_profit_pct=config.auto_close_profit_pct,
            stop_loss_pct=-config.auto_close_loss_pct,
        ).compare(synthetic_prices(500, seed=args.seed), initial_equity=config.starting_equity)
        for result in results:
            run_id = backtest_repo.insert_run(result)
            logger.info(
                "Backtest run %d %s: %d trades, win rate %.1f%%, net %.2f",
                run_id, result["strategy"], result["stats"]["total_trades"],
                result["stats"]["win_rate"], result["stats"]["net_pnl"],
            )
        return

    desk = PaperDesk(
        metrics_provider=PsutilMetricsProvider(),
        trade_repo=TradeRepo(config.db_path),
    )
    snapshot_repo = SnapshotRepo(config.db_path)

    restored = False
    if args.restore:
        data = snapshot_repo.load_latest()
        if data is None:
            logger.warning("No stored snapshot; starting a fresh session.")
        else:
            desk.restore(data)
            restored = True
    if not restored:
        desk.initialize(config.starting_equity)
        if args.demo:
            generate_sample_trades(desk)
    desk.start_trading()

    status_client = FreqtradeClient(config)
    engine = PaperTradingEngine(
        config,
        desk,
        SyntheticPriceFeed(seed=args.seed),
        status_client=status_client,
    )
    configure_routers(
        desk,
        status_client=status_client,
        snapshot_repo=snapshot_repo,
        backtest_repo=backtest_repo,
    )

    def handle_shutdown(signum, frame):
        logger.info("Shutdown signal received, stopping gracefully.")
        engine.stop()

    signal.signal(signal.SIGINT, handle_shutdown)

    try:
        if args.engine_only:
            asyncio.run(engine.run())
        else:
            asyncio.run(_run_with_api(engine, config.api_port))
    finally:
        row_id = snapshot_repo.save(desk.snapshot())
        logger.info("Saved desk snapshot %d", row_id)


async def _run_with_api(engine, port: int = 8000) -> None:
    """Start the API server and the trading engine concurrently."""
    import asyncio
    import uvicorn

    uvi_config = uvicorn.Config(
        app,
        host="0.0.0.0",
        port=port,
        log_level="info",
    )
    server = uvicorn.Server(uvi_config)

    async def _run_server():
        await server.serve()
        # uvicorn owns SIGINT while serving; take the engine down with it.
        engine.stop()

    logger.info("API available at http://localhost:%d", port)
    results = await asyncio.gather(
        _run_server(),
        engine.run(),
        return_exceptions=True,
    )
    logger.info("PaperTrader stopped after %d engine cycles.", engine.cycle_count)
    for result in results:
        if isinstance(result, Exception):
            logger.error("Task failed: %s", result)


if __name__ == "__main__":
    _run_cli()
