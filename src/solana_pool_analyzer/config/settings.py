"""Configuration management for the pool analyzer."""

from __future__ import annotations

import math
import os
import tomllib
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, cast

from pydantic import AnyHttpUrl, BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..schemas import SourceKind
from ..utils.constants import (
    DEFAULT_NATIVE_PRICE_USD,
    SOL_MINT,
    WHIRLPOOL_PROGRAM_ID,
    WHIRLPOOL_TICK_SPACINGS,
    WHIRLPOOLS_CONFIG_MAINNET,
)

DEFAULT_CONFIG_FILE = Path("config/app.toml")
CONFIG_FILE_ENV_VAR = "APP_CONFIG_FILE"
PROFILE_ENV_VAR = "ANALYZER_PROFILE"
LEGACY_RPC_ENV_VAR = "RPC_URL"
DEFAULT_PROFILE = "default"
WEIGHT_SUM_TOLERANCE = 1e-6


def _resolve_config_path() -> Path:
    env_value = os.getenv(CONFIG_FILE_ENV_VAR)
    if env_value:
        candidate = Path(env_value)
        if not candidate.is_absolute():
            candidate = Path.cwd() / candidate
        return candidate
    return Path.cwd() / DEFAULT_CONFIG_FILE


def _deep_merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    result: Dict[str, Any] = {**base}
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(cast(Dict[str, Any], result[key]), value)
        else:
            result[key] = value
    return result


def _requested_profile(base_section: Dict[str, Any]) -> str:
    requested = os.getenv(PROFILE_ENV_VAR)
    if not requested:
        profile_section = base_section.get("profile")
        if isinstance(profile_section, dict):
            requested = cast(Optional[str], profile_section.get("active"))
        elif isinstance(profile_section, str):
            requested = profile_section
    return (requested or DEFAULT_PROFILE).strip().lower()


def _select_profile(data: Dict[str, Any]) -> Tuple[Dict[str, Any], str]:
    if not data:
        return {}, _requested_profile({})
    base_section = cast(Dict[str, Any], data.get(DEFAULT_PROFILE, {}))
    requested = _requested_profile(base_section)
    if requested != DEFAULT_PROFILE and isinstance(data.get(requested), dict):
        return _deep_merge(base_section, cast(Dict[str, Any], data[requested])), requested
    if base_section:
        return base_section, requested
    return data, requested


def _load_toml_config() -> Tuple[Dict[str, Any], Optional[Path]]:
    path = _resolve_config_path()
    if not path.exists():
        return {}, None
    with path.open("rb") as handle:
        payload = tomllib.load(handle)
    if not isinstance(payload, dict):
        return {}, path
    merged, requested = _select_profile(payload)
    merged = {k: v for k, v in merged.items()}
    profile_section = merged.get("profile")
    profile_section = dict(profile_section) if isinstance(profile_section, dict) else {}
    profile_section["active"] = requested
    profile_section.setdefault("config_file", str(path))
    merged["profile"] = profile_section
    return merged, path


class ProfileConfig(BaseModel):
    """Which named configuration profile is active."""

    active: str = Field(default=DEFAULT_PROFILE)
    config_file: Optional[Path] = None


class PricingConfig(BaseModel):
    """Native asset used as the USD pricing reference."""

    native_mint: str = Field(default=SOL_MINT)
    native_price_usd: float = Field(default=DEFAULT_NATIVE_PRICE_USD, gt=0.0)


class PipelineConfig(BaseModel):
    """Fan-out behaviour of a single analysis run."""

    request_timeout_seconds: float = Field(default=20.0, gt=0.0, le=300.0)
    deterministic_tiebreak: bool = False

    def bounded_timeout(self, transport_timeout: float) -> float:
        """Cap a blocking call's own timeout at the per-source timeout."""

        return min(transport_timeout, self.request_timeout_seconds)


class RPCConfig(BaseModel):
    """RPC configuration for the on-chain source."""

    primary_url: AnyHttpUrl = Field(default="https://api.mainnet-beta.solana.com")
    request_timeout: float = Field(default=12.0, ge=1.0, le=60.0)
    commitment: str = Field(default="confirmed")


class DataSourceConfig(BaseModel):
    """Endpoints and paging defaults for every provider."""

    enabled_sources: List[SourceKind] = Field(
        default_factory=lambda: [
            SourceKind.RAYDIUM,
            SourceKind.ORCA_WHIRLPOOL,
            SourceKind.METEORA,
            SourceKind.METEORA_DLMM,
        ]
    )
    http_timeout: float = Field(default=10.0, ge=1.0, le=45.0)
    user_agent: str = Field(default="solana-pool-analyzer/1.0")
    raydium_base_url: AnyHttpUrl = Field(default="https://api-v3.raydium.io")
    raydium_pool_endpoint: str = Field(default="/pools/info/mint")
    raydium_page: int = Field(default=1, ge=1)
    raydium_page_size: int = Field(default=10, ge=1, le=1_000)
    meteora_base_url: AnyHttpUrl = Field(default="https://amm-v2.meteora.ag")
    meteora_pool_endpoint: str = Field(default="/pools/search")
    meteora_page: int = Field(default=0, ge=0)
    meteora_page_size: int = Field(default=10, ge=1, le=1_000)
    dlmm_base_url: AnyHttpUrl = Field(default="https://dlmm-api.meteora.ag")
    dlmm_pool_endpoint: str = Field(default="/pair/all_by_groups")
    dlmm_page: int = Field(default=0, ge=0)
    dlmm_page_limit: int = Field(default=10, ge=1, le=1_000)
    orca_api_base_url: AnyHttpUrl = Field(default="https://api.orca.so")
    orca_api_pool_endpoint: str = Field(default="/v2/solana/pools")
    orca_api_page_limit: int = Field(default=50, ge=1, le=1_000)
    whirlpool_program_id: str = Field(default=WHIRLPOOL_PROGRAM_ID)
    whirlpools_config_address: str = Field(default=WHIRLPOOLS_CONFIG_MAINNET)
    whirlpool_tick_spacings: List[int] = Field(
        default_factory=lambda: list(WHIRLPOOL_TICK_SPACINGS)
    )
    whirlpool_liquidity_scale: float = Field(default=1e-9, gt=0.0)

    @field_validator("enabled_sources", mode="after")
    @classmethod
    def _unique_sources(cls, value: List[SourceKind]) -> List[SourceKind]:
        return list(dict.fromkeys(value))

    @field_validator("whirlpool_tick_spacings", mode="after")
    @classmethod
    def _valid_tick_spacings(cls, value: List[int]) -> List[int]:
        for spacing in value:
            if not 0 < spacing < 2**16:
                raise ValueError(f"tick spacing {spacing} does not fit in a u16")
        return list(dict.fromkeys(value))


class ScoringConfig(BaseModel):
    """Weights and normalization ceilings of the health score."""

    liquidity_weight: float = Field(default=0.45, ge=0.0, le=1.0)
    volume_weight: float = Field(default=0.45, ge=0.0, le=1.0)
    fee_weight: float = Field(default=0.1, ge=0.0, le=1.0)
    liquidity_ceiling_usd: float = Field(default=10_000_000.0, gt=1.0)
    volume_ceiling_usd: Optional[float] = Field(default=None, gt=1.0)
    fee_ceiling_pct: float = Field(default=5.0, gt=0.0)
    reweight_missing_volume_sources: List[SourceKind] = Field(
        default_factory=lambda: [SourceKind.ORCA_WHIRLPOOL]
    )

    @model_validator(mode="after")
    def _weights_sum_to_one(self) -> "ScoringConfig":
        total = self.liquidity_weight + self.volume_weight + self.fee_weight
        if not math.isclose(total, 1.0, abs_tol=WEIGHT_SUM_TOLERANCE):
            raise ValueError(f"scoring weights must sum to 1.0 (got {total:.6f})")
        return self

    @property
    def effective_volume_ceiling_usd(self) -> float:
        return self.volume_ceiling_usd or self.liquidity_ceiling_usd


class MonitoringConfig(BaseModel):
    """Logging configuration."""

    log_level: str = Field(default="INFO")

    @field_validator("log_level", mode="after")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()


class AppConfig(BaseSettings):
    """Aggregated application configuration."""

    profile: ProfileConfig = Field(default_factory=ProfileConfig)
    pricing: PricingConfig = Field(default_factory=PricingConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    rpc: RPCConfig = Field(default_factory=RPCConfig)
    data_sources: DataSourceConfig = Field(default_factory=DataSourceConfig)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        def file_settings(_: Optional[BaseSettings] = None) -> Dict[str, Any]:
            payload, _ = _load_toml_config()
            return payload

        # Runtime environment variables win over static config file values.
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            file_settings,
            file_secret_settings,
        )

    @model_validator(mode="after")
    def _apply_legacy_rpc_url(self) -> "AppConfig":
        legacy_url = os.getenv(LEGACY_RPC_ENV_VAR)
        if legacy_url and legacy_url.strip():
            self.rpc.primary_url = legacy_url.strip()
        return self


@lru_cache(maxsize=1)
def get_app_config() -> AppConfig:
    """Create a cached application configuration object."""

    return AppConfig()


__all__ = [
    "AppConfig",
    "DataSourceConfig",
    "MonitoringConfig",
    "PipelineConfig",
    "PricingConfig",
    "ProfileConfig",
    "RPCConfig",
    "ScoringConfig",
    "get_app_config",
]
