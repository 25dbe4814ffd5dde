"""PaperTrader — application configuration.

Loads .env variables into a typed config object.
Validates numeric variables on startup.
"""

import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv


@dataclass(frozen=True)
class Config:
    """Typed configuration loaded from environment variables."""

    freqtrade_url: str
    freqtrade_username: Optional[str]
    freqtrade_password: Optional[str]
    starting_equity: float
    trade_pairs: tuple[str, ...]
    poll_interval_seconds: float
    request_timeout_seconds: float
    auto_close_profit_pct: float
    auto_close_loss_pct: float
    db_path: str
    log_level: str
    api_port: int

    @property
    def has_basic_auth(self) -> bool:
        """``True`` when both Basic Auth credentials are configured."""
        return bool(self.freqtrade_username and self.freqtrade_password)


def _env_number(name: str, default: str, cast=float):
    raw = os.environ.get(name, default)
    try:
        return cast(raw)
    except ValueError:
        raise ValueError(
            f"Invalid value for environment variable {name}: {raw!r}"
        ) from None


def load_config(env_path: str | None = None) -> Config:
    """Load configuration from environment variables.

    Raises ``ValueError`` naming the offending variable when a numeric
    variable cannot be parsed.
    """
    load_dotenv(dotenv_path=env_path)

    pairs = tuple(
        p.strip()
        for p in os.environ.get("TRADE_PAIRS", "BTC-USD,ETH-USD").split(",")
        if p.strip()
    )

    return Config(
        freqtrade_url=os.environ.get("FREQTRADE_URL", "http://localhost:8080"),
        freqtrade_username=os.environ.get("FREQTRADE_USERNAME") or None,
        freqtrade_password=os.environ.get("FREQTRADE_PASSWORD") or None,
        starting_equity=_env_number("STARTING_EQUITY", "800"),
        trade_pairs=pairs,
        poll_interval_seconds=_env_number("POLL_INTERVAL_SECONDS", "3"),
        request_timeout_seconds=_env_number("REQUEST_TIMEOUT_SECONDS", "10"),
        auto_close_profit_pct=_env_number("AUTO_CLOSE_PROFIT_PCT", "2.0"),
        auto_close_loss_pct=_env_number("AUTO_CLOSE_LOSS_PCT", "-1.0"),
        db_path=os.environ.get("DB_PATH", "data/papertrader.db"),
        log_level=os.environ.get("LOG_LEVEL", "INFO"),
        api_port=_env_number("API_PORT", "8000", cast=int),
    )
