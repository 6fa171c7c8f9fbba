from __future__ import annotations

import asyncio
from typing import Any, Dict, List, Optional

import pytest
import requests

from solana_pool_analyzer.config.settings import AppConfig
from solana_pool_analyzer.errors import SchemaError, TransportError, UpstreamError
from solana_pool_analyzer.ingestion import build_source_adapters
from solana_pool_analyzer.ingestion.base import sorted_pair
from solana_pool_analyzer.ingestion.dlmm_api import DlmmClient
from solana_pool_analyzer.ingestion.meteora_api import MeteoraClient
from solana_pool_analyzer.ingestion.orca_api import OrcaApiClient
from solana_pool_analyzer.ingestion.raydium_api import RaydiumClient
from solana_pool_analyzer.ingestion.whirlpool_onchain import WhirlpoolOnChainClient
from solana_pool_analyzer.schemas import PaginationHints, SourceKind
from solana_pool_analyzer.utils.constants import JUP_MINT, SOL_MINT


class _FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, invalid_json: bool = False) -> None:
        self.status_code = status_code
        self._payload = payload
        self._invalid_json = invalid_json

    def json(self) -> Any:
        if self._invalid_json:
            raise ValueError("Expecting value: line 1 column 1 (char 0)")
        return self._payload


class _FakeSession:
    def __init__(self, response: Optional[_FakeResponse] = None, error: Optional[Exception] = None) -> None:
        self._response = response
        self._error = error
        self.calls: List[Dict[str, Any]] = []

    def get(self, url: str, **kwargs: Any) -> _FakeResponse:
        self.calls.append({"url": url, **kwargs})
        if self._error is not None:
            raise self._error
        assert self._response is not None
        return self._response


def _fetch(adapter, hints: Optional[PaginationHints] = None):
    return asyncio.run(adapter.fetch(JUP_MINT, SOL_MINT, hints))


def test_sorted_pair_is_order_independent() -> None:
    assert sorted_pair(SOL_MINT, JUP_MINT) == sorted_pair(JUP_MINT, SOL_MINT) == f"{JUP_MINT}-{SOL_MINT}"


def test_raydium_request_and_envelope(app_config: AppConfig) -> None:
    pools = [{"id": "p1"}, {"id": "p2"}]
    session = _FakeSession(_FakeResponse(payload={"id": "req", "success": True, "data": {"count": 2, "data": pools}}))
    adapter = RaydiumClient(session=session, app_config=app_config)

    result = _fetch(adapter)

    assert result == pools
    call = session.calls[0]
    assert call["url"] == "https://api-v3.raydium.io/pools/info/mint"
    assert call["params"]["mint1"] == JUP_MINT
    assert call["params"]["mint2"] == SOL_MINT
    assert call["params"]["poolType"] == "all"
    assert call["params"]["page"] == 1
    assert call["params"]["pageSize"] == 10
    assert call["timeout"] == app_config.data_sources.http_timeout


def test_pagination_hints_override_defaults(app_config: AppConfig) -> None:
    session = _FakeSession(_FakeResponse(payload={"success": True, "data": {"data": []}}))
    adapter = RaydiumClient(session=session, app_config=app_config)

    _fetch(adapter, PaginationHints(page=3, page_size=25))

    assert session.calls[0]["params"]["page"] == 3
    assert session.calls[0]["params"]["pageSize"] == 25


def test_raydium_success_false_is_upstream_error(app_config: AppConfig) -> None:
    session = _FakeSession(_FakeResponse(payload={"success": False, "msg": "bad mint", "data": {}}))

    with pytest.raises(UpstreamError) as excinfo:
        _fetch(RaydiumClient(session=session, app_config=app_config))

    assert excinfo.value.source is SourceKind.RAYDIUM


def test_non_2xx_is_upstream_error(app_config: AppConfig) -> None:
    session = _FakeSession(_FakeResponse(status_code=503))

    with pytest.raises(UpstreamError) as excinfo:
        _fetch(MeteoraClient(session=session, app_config=app_config))

    assert excinfo.value.status_code == 503


def test_connection_failure_is_transport_error(app_config: AppConfig) -> None:
    session = _FakeSession(error=requests.ConnectionError("connection refused"))

    with pytest.raises(TransportError):
        _fetch(MeteoraClient(session=session, app_config=app_config))


def test_invalid_json_is_schema_error(app_config: AppConfig) -> None:
    session = _FakeSession(_FakeResponse(invalid_json=True))

    with pytest.raises(SchemaError):
        _fetch(OrcaApiClient(session=session, app_config=app_config))


def test_missing_list_is_schema_error(app_config: AppConfig) -> None:
    session = _FakeSession(_FakeResponse(payload={"data": {"unexpected": True}}))

    with pytest.raises(SchemaError):
        _fetch(MeteoraClient(session=session, app_config=app_config))


def test_meteora_queries_sorted_pair(app_config: AppConfig) -> None:
    session = _FakeSession(_FakeResponse(payload={"data": [{"pool_address": "m1"}], "page": 0}))
    adapter = MeteoraClient(session=session, app_config=app_config)

    result = asyncio.run(adapter.fetch(SOL_MINT, JUP_MINT))

    assert result == [{"pool_address": "m1"}]
    params = session.calls[0]["params"]
    assert params["include_pool_token_pairs"] == f"{JUP_MINT}-{SOL_MINT}"
    assert params["page"] == 0
    assert params["size"] == 10


def test_dlmm_flattens_groups(app_config: AppConfig) -> None:
    payload = {
        "groups": [
            {"name": "JUP-SOL", "pairs": [{"address": "d1"}, {"address": "d2"}]},
            {"name": "other", "pairs": [{"address": "d3"}]},
        ],
        "total": 2,
    }
    session = _FakeSession(_FakeResponse(payload=payload))

    result = _fetch(DlmmClient(session=session, app_config=app_config))

    assert [pair["address"] for pair in result] == ["d1", "d2", "d3"]
    assert session.calls[0]["url"] == "https://dlmm-api.meteora.ag/pair/all_by_groups"
    assert session.calls[0]["params"]["limit"] == 10


def test_dlmm_404_means_no_pools(app_config: AppConfig) -> None:
    session = _FakeSession(_FakeResponse(status_code=404))

    assert _fetch(DlmmClient(session=session, app_config=app_config)) == []


def test_orca_api_request(app_config: AppConfig) -> None:
    session = _FakeSession(_FakeResponse(payload={"data": [], "meta": {"cursor": {}}}))

    assert _fetch(OrcaApiClient(session=session, app_config=app_config)) == []
    params = session.calls[0]["params"]
    assert params["tokensBothOf"] == f"{JUP_MINT},{SOL_MINT}"
    assert params["limit"] == 50


def test_build_source_adapters_follows_enabled_sources(app_config: AppConfig) -> None:
    config = app_config.model_copy(
        update={
            "data_sources": app_config.data_sources.model_copy(
                update={"enabled_sources": [SourceKind.METEORA_DLMM, SourceKind.RAYDIUM, SourceKind.ORCA_API]}
            )
        }
    )

    adapters = build_source_adapters(config, session=_FakeSession())

    assert [adapter.source for adapter in adapters] == [
        SourceKind.METEORA_DLMM,
        SourceKind.RAYDIUM,
        SourceKind.ORCA_API,
    ]
    assert isinstance(adapters[0], DlmmClient)


def test_whirlpool_adapter_is_built_when_enabled(app_config: AppConfig) -> None:
    adapters = build_source_adapters(app_config, session=_FakeSession())

    assert any(isinstance(adapter, WhirlpoolOnChainClient) for adapter in adapters)


def test_http_timeout_is_capped_by_pipeline_timeout(app_config: AppConfig) -> None:
    config = app_config.model_copy(
        update={"pipeline": app_config.pipeline.model_copy(update={"request_timeout_seconds": 2.0})}
    )
    session = _FakeSession(_FakeResponse(payload={"data": []}))

    _fetch(MeteoraClient(session=session, app_config=config))

    assert app_config.data_sources.http_timeout == 10.0
    assert session.calls[0]["timeout"] == 2.0
