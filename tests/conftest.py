"""
Shared fixtures for the strategy logic tests.

Every test runs in a temp working directory with file logging off, so no
.env file or log directory leaks in from the developer's checkout.
"""

import pytest

from src.config.config import reset_config
from src.strategy_logic.indicators import IndicatorOutput, IndicatorSelection, SelectedIndicator
from src.strategy_logic.resolve import used_outputs
from src.utils.logger import setup_logger


@pytest.fixture(autouse=True)
def isolated_env(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("LOG_TO_FILE", "false")
    for key in ("MAX_GROUPS_PER_CONTAINER", "MAX_CONDITIONS_PER_GROUP", "DEFAULT_EXCHANGE", "DEFAULT_SYMBOL"):
        monkeypatch.delenv(key, raising=False)
    reset_config()
    setup_logger(log_dir=None, log_level="DEBUG")
    used_outputs.cache_clear()
    yield
    reset_config()


@pytest.fixture
def rsi():
    return SelectedIndicator(
        id="rsi",
        code="RSI",
        timeframe="1h",
        input_channel="Close",
        params=(14,),
        outputs=(IndicatorOutput("Value", "RSI"),),
    )


@pytest.fixture
def macd():
    return SelectedIndicator(
        id="macd",
        code="MACD",
        timeframe="4h",
        input_channel="Close",
        params=(12, 26, 9),
        outputs=(
            IndicatorOutput("Value", "MACD"),
            IndicatorOutput("Signal", "Signal"),
            IndicatorOutput("Histogram", "Hist"),
        ),
    )


@pytest.fixture
def ema():
    return SelectedIndicator(
        id="ema",
        code="EMA",
        timeframe="1h",
        input_channel="Close",
        params=(50,),
    )


@pytest.fixture
def selection(rsi, macd, ema):
    return IndicatorSelection((rsi, macd, ema))
