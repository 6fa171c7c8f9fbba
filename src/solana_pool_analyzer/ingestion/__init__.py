"""Pool data sources and their normalizers."""

from __future__ import annotations

from typing import List, Optional

import requests

from ..config.settings import AppConfig, get_app_config
from ..schemas import SourceKind
from .base import HttpSourceAdapter, SourceAdapter
from .dlmm_api import DlmmClient
from .meteora_api import MeteoraClient
from .normalizers import PoolNormalizer, build_normalizers
from .orca_api import OrcaApiClient
from .raydium_api import RaydiumClient
from .whirlpool_onchain import WhirlpoolOnChainClient

_HTTP_ADAPTERS = {
    SourceKind.RAYDIUM: RaydiumClient,
    SourceKind.METEORA: MeteoraClient,
    SourceKind.METEORA_DLMM: DlmmClient,
    SourceKind.ORCA_API: OrcaApiClient,
}


def build_source_adapters(
    app_config: Optional[AppConfig] = None,
    session: Optional[requests.Session] = None,
) -> List[SourceAdapter]:
    """Instantiate an adapter for every enabled source, in configured order."""

    config = app_config or get_app_config()
    session = session or requests.Session()
    adapters: List[SourceAdapter] = []
    for kind in config.data_sources.enabled_sources:
        if kind is SourceKind.ORCA_WHIRLPOOL:
            adapters.append(WhirlpoolOnChainClient(app_config=config))
        else:
            adapters.append(_HTTP_ADAPTERS[kind](session=session, app_config=config))
    return adapters


__all__ = [
    "DlmmClient",
    "HttpSourceAdapter",
    "MeteoraClient",
    "OrcaApiClient",
    "PoolNormalizer",
    "RaydiumClient",
    "SourceAdapter",
    "WhirlpoolOnChainClient",
    "build_normalizers",
    "build_source_adapters",
]
