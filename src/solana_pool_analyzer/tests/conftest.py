from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import pytest

from solana_pool_analyzer.config import settings
from solana_pool_analyzer.monitoring.metrics import METRICS
from solana_pool_analyzer.schemas import PoolRecord, SourceKind
from solana_pool_analyzer.utils.constants import JUP_MINT, SOL_MINT

_ENV_VARS = (
    settings.CONFIG_FILE_ENV_VAR,
    settings.PROFILE_ENV_VAR,
    settings.LEGACY_RPC_ENV_VAR,
    "PIPELINE__REQUEST_TIMEOUT_SECONDS",
    "PIPELINE__DETERMINISTIC_TIEBREAK",
    "PRICING__NATIVE_PRICE_USD",
    "RPC__PRIMARY_URL",
    "RPC__REQUEST_TIMEOUT",
    "MONITORING__LOG_LEVEL",
)


@pytest.fixture
def isolated_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> Path:
    """Run with no config file, no .env and none of our variables set."""

    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv(settings.CONFIG_FILE_ENV_VAR, str(tmp_path / "missing.toml"))
    settings.get_app_config.cache_clear()
    yield tmp_path
    settings.get_app_config.cache_clear()


@pytest.fixture
def app_config(isolated_env: Path) -> settings.AppConfig:
    return settings.AppConfig()


@pytest.fixture(autouse=True)
def reset_metrics():
    METRICS.reset()
    yield
    METRICS.reset()


def make_record(
    source: SourceKind = SourceKind.RAYDIUM,
    pool_id: str = "pool",
    liquidity_usd: float = 1_000_000.0,
    volume_24h_usd: Optional[float] = 100_000.0,
    fee_percentage: float = 0.25,
    price_usd: float = 1.0,
    **overrides: Any,
) -> PoolRecord:
    values = dict(
        source=source,
        display_name=f"{pool_id}-name",
        pool_id=pool_id,
        price_usd=price_usd,
        liquidity_usd=liquidity_usd,
        fee_percentage=fee_percentage,
        volume_24h_usd=volume_24h_usd,
        token_addresses=(JUP_MINT, SOL_MINT),
    )
    values.update(overrides)
    return PoolRecord(**values)


@pytest.fixture
def pool_factory():
    return make_record
