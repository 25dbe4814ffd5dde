"""Tests for papertrader.config — environment variable loading and validation."""

from urllib.parse import urlparse

import pytest

from papertrader.config import load_config


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch):
    """Ensure PaperTrader env vars are cleared between tests."""
    for var in [
        "FREQTRADE_URL",
        "FREQTRADE_USERNAME",
        "FREQTRADE_PASSWORD",
        "STARTING_EQUITY",
        "TRADE_PAIRS",
        "POLL_INTERVAL_SECONDS",
        "REQUEST_TIMEOUT_SECONDS",
        "AUTO_CLOSE_PROFIT_PCT",
        "AUTO_CLOSE_LOSS_PCT",
        "DB_PATH",
        "LOG_LEVEL",
        "API_PORT",
    ]:
        monkeypatch.delenv(var, raising=False)


class TestLoadConfig:
    def test_defaults(self, tmp_path):
        # Non-existent env_path so load_dotenv doesn't pick up a real .env
        cfg = load_config(env_path=str(tmp_path / "missing.env"))
        assert cfg.freqtrade_url == "http://localhost:8080"
        assert cfg.freqtrade_username is None
        assert cfg.has_basic_auth is False
        assert cfg.starting_equity == 800.0
        assert cfg.trade_pairs == ("BTC-USD", "ETH-USD")
        assert cfg.poll_interval_seconds == 3.0
        assert cfg.request_timeout_seconds == 10.0
        assert cfg.auto_close_profit_pct == 2.0
        assert cfg.auto_close_loss_pct == -1.0
        assert cfg.db_path == "data/papertrader.db"
        assert cfg.log_level == "INFO"
        assert cfg.api_port == 8000

    def test_default_api_port_clear_of_bot_port(self, tmp_path):
        cfg = load_config(env_path=str(tmp_path / "missing.env"))
        assert cfg.api_port != urlparse(cfg.freqtrade_url).port

    def test_overrides(self, monkeypatch, tmp_path):
        monkeypatch.setenv("STARTING_EQUITY", "1500")
        monkeypatch.setenv("TRADE_PAIRS", " SOL-USD , ,ADA-USD")
        monkeypatch.setenv("FREQTRADE_USERNAME", "bot")
        monkeypatch.setenv("FREQTRADE_PASSWORD", "secret")
        cfg = load_config(env_path=str(tmp_path / "missing.env"))
        assert cfg.starting_equity == 1500.0
        assert cfg.trade_pairs == ("SOL-USD", "ADA-USD")
        assert cfg.has_basic_auth is True

    def test_reads_dotenv_file(self, tmp_path):
        env_file = tmp_path / ".env"
        env_file.write_text("API_PORT=9090\nLOG_LEVEL=DEBUG\n", encoding="utf-8")
        cfg = load_config(env_path=str(env_file))
        assert cfg.api_port == 9090
        assert cfg.log_level == "DEBUG"

    def test_invalid_number_names_variable(self, monkeypatch, tmp_path):
        monkeypatch.setenv("POLL_INTERVAL_SECONDS", "fast")
        with pytest.raises(ValueError, match="POLL_INTERVAL_SECONDS"):
            load_config(env_path=str(tmp_path / "missing.env"))

    def test_config_is_frozen(self, tmp_path):
        cfg = load_config(env_path=str(tmp_path / "missing.env"))
        with pytest.raises(AttributeError):
            cfg.starting_equity = 1.0  # type: ignore[misc]
