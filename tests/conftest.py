import pytest

ENV_KEYS = (
    "INITIAL_CAPITAL", "COMMISSION_PER_TRADE", "COMMISSION_PCT", "SLIPPAGE_PCT",
    "ALLOW_SHORTING", "RISK_FREE_RATE", "CSV_DIR", "EXCHANGE", "CODES", "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Config env overrides from the calling shell must not leak into tests."""
    for key in ENV_KEYS:
        monkeypatch.delenv(key, raising=False)
