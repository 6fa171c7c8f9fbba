from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Optional, Sequence

import pytest

from solana_pool_analyzer.config.settings import AppConfig
from solana_pool_analyzer.errors import NoPoolsFoundError, SourceTimeoutError, UpstreamError
from solana_pool_analyzer.monitoring.metrics import METRICS
from solana_pool_analyzer.pipeline import PoolAnalyzer, SourceOrchestrator
from solana_pool_analyzer.pipeline import analyzer as analyzer_module
from solana_pool_analyzer.schemas import PaginationHints, PoolRecord, SourceKind
from solana_pool_analyzer.utils.constants import JUP_MINT, SOL_MINT


class _FakeAdapter:
    def __init__(
        self,
        source: SourceKind,
        entries: Sequence[object] = (),
        *,
        delay: float = 0.0,
        error: Optional[Exception] = None,
    ) -> None:
        self.source = source
        self._entries = list(entries)
        self._delay = delay
        self._error = error
        self.calls: List[tuple] = []

    @property
    def default_hints(self) -> PaginationHints:
        return PaginationHints(page=0, page_size=10)

    async def fetch(self, token_a: str, token_b: str, hints: Optional[PaginationHints] = None):
        self.calls.append((token_a, token_b, hints))
        if self._delay:
            await asyncio.sleep(self._delay)
        if self._error is not None:
            raise self._error
        return list(self._entries)


class _PassthroughNormalizer:
    """Accepts ready-made records and drops anything else."""

    def __init__(self, source: SourceKind) -> None:
        self.source = source

    def normalize(self, entry: object) -> Optional[PoolRecord]:
        if isinstance(entry, PoolRecord) and entry.liquidity_usd > 0:
            return entry
        return None


def _normalizers() -> Dict[SourceKind, _PassthroughNormalizer]:
    return {kind: _PassthroughNormalizer(kind) for kind in SourceKind}


def test_gather_survives_timeouts_and_failures(pool_factory) -> None:
    b_records = [
        pool_factory(source=SourceKind.METEORA, pool_id="b1", liquidity_usd=2_000_000.0),
        pool_factory(source=SourceKind.METEORA, pool_id="b2", liquidity_usd=8_000_000.0),
    ]
    adapters = [
        _FakeAdapter(SourceKind.RAYDIUM, delay=5.0),
        _FakeAdapter(SourceKind.METEORA, b_records),
        _FakeAdapter(SourceKind.METEORA_DLMM, []),
        _FakeAdapter(SourceKind.ORCA_API, error=UpstreamError(SourceKind.ORCA_API, "HTTP 500", 500)),
    ]
    orchestrator = SourceOrchestrator(adapters, _normalizers(), timeout_seconds=0.05)

    result = asyncio.run(orchestrator.gather(JUP_MINT, SOL_MINT))

    assert [record.pool_id for record in result.records] == ["b1", "b2"]
    assert len(result.outcomes) == 4
    assert set(result.failed_sources) == {SourceKind.RAYDIUM, SourceKind.ORCA_API}
    timed_out = next(o for o in result.outcomes if o.source is SourceKind.RAYDIUM)
    assert isinstance(timed_out.error, SourceTimeoutError)
    assert METRICS.get("source.raydium.timeout") == 1
    assert METRICS.get("source.orca_api.failure") == 1
    assert METRICS.get("source.meteora.success") == 1
    assert METRICS.get("source.meteora.records") == 2
    assert METRICS.get_gauge("pipeline.aggregate_size") == 2
    assert adapters[1].calls == [(JUP_MINT, SOL_MINT, PaginationHints(page=0, page_size=10))]


def test_unexpected_adapter_exception_is_contained(pool_factory) -> None:
    adapters = [
        _FakeAdapter(SourceKind.RAYDIUM, error=RuntimeError("boom")),
        _FakeAdapter(SourceKind.METEORA, [pool_factory(source=SourceKind.METEORA)]),
    ]
    orchestrator = SourceOrchestrator(adapters, _normalizers(), timeout_seconds=1.0)

    result = asyncio.run(orchestrator.gather(JUP_MINT, SOL_MINT))

    assert len(result.records) == 1
    assert result.failed_sources == [SourceKind.RAYDIUM]


def test_records_follow_completion_order(pool_factory) -> None:
    adapters = [
        _FakeAdapter(SourceKind.RAYDIUM, [pool_factory(pool_id="slow")], delay=0.05),
        _FakeAdapter(SourceKind.METEORA, [pool_factory(source=SourceKind.METEORA, pool_id="fast")]),
    ]
    orchestrator = SourceOrchestrator(adapters, _normalizers(), timeout_seconds=1.0)

    result = asyncio.run(orchestrator.gather(JUP_MINT, SOL_MINT))

    assert [record.pool_id for record in result.records] == ["fast", "slow"]


def test_failed_source_logs_a_warning(caplog: pytest.LogCaptureFixture) -> None:
    adapters = [_FakeAdapter(SourceKind.METEORA, error=UpstreamError(SourceKind.METEORA, "HTTP 502", 502))]
    orchestrator = SourceOrchestrator(adapters, _normalizers(), timeout_seconds=1.0)

    with caplog.at_level(logging.WARNING):
        asyncio.run(orchestrator.gather(JUP_MINT, SOL_MINT))

    warnings = [record for record in caplog.records if record.levelno == logging.WARNING]
    assert any("Meteora" in record.getMessage() for record in warnings)
    assert any(getattr(record, "error_kind", None) == "upstream" for record in warnings)


def test_missing_normalizer_is_rejected() -> None:
    with pytest.raises(ValueError):
        SourceOrchestrator([_FakeAdapter(SourceKind.RAYDIUM)], {}, timeout_seconds=1.0)


def test_analyzer_selects_deepest_pool_despite_timeout(app_config: AppConfig, pool_factory) -> None:
    adapters = [
        _FakeAdapter(SourceKind.RAYDIUM, delay=5.0),
        _FakeAdapter(
            SourceKind.METEORA,
            [
                pool_factory(source=SourceKind.METEORA, pool_id="shallow", liquidity_usd=2_000_000.0, volume_24h_usd=None),
                pool_factory(source=SourceKind.METEORA, pool_id="deep", liquidity_usd=8_000_000.0, volume_24h_usd=1_000_000.0),
            ],
        ),
        _FakeAdapter(SourceKind.METEORA_DLMM, []),
    ]
    analyzer = PoolAnalyzer(app_config, adapters=adapters, normalizers=_normalizers(), timeout_seconds=0.05)

    best = asyncio.run(analyzer.analyze(JUP_MINT, SOL_MINT))

    assert best.pool_id == "deep"
    assert METRICS.get("pipeline.runs") == 1
    assert METRICS.summary("pipeline.duration_seconds")["count"] == 1.0


def test_analyzer_survives_when_only_one_source_answers(app_config: AppConfig, pool_factory) -> None:
    adapters = [
        _FakeAdapter(SourceKind.RAYDIUM, delay=5.0),
        _FakeAdapter(SourceKind.METEORA_DLMM, [pool_factory(source=SourceKind.METEORA_DLMM, pool_id="only")]),
        _FakeAdapter(SourceKind.METEORA, delay=5.0),
    ]
    analyzer = PoolAnalyzer(app_config, adapters=adapters, normalizers=_normalizers(), timeout_seconds=0.05)

    best = asyncio.run(analyzer.analyze(JUP_MINT, SOL_MINT))

    assert best.source is SourceKind.METEORA_DLMM


def test_all_empty_sources_raise_no_pools(app_config: AppConfig) -> None:
    adapters = [
        _FakeAdapter(SourceKind.RAYDIUM, []),
        _FakeAdapter(SourceKind.METEORA, []),
        _FakeAdapter(SourceKind.METEORA_DLMM, []),
    ]
    analyzer = PoolAnalyzer(app_config, adapters=adapters, normalizers=_normalizers())

    with pytest.raises(NoPoolsFoundError) as excinfo:
        asyncio.run(analyzer.analyze(JUP_MINT, SOL_MINT))

    assert str(excinfo.value) == "No valid pools found for the given token pair"
    assert METRICS.get("pipeline.empty") == 1


def test_zero_liquidity_never_reaches_selection(app_config: AppConfig, pool_factory) -> None:
    adapters = [_FakeAdapter(SourceKind.RAYDIUM, [pool_factory(liquidity_usd=0.0)])]
    analyzer = PoolAnalyzer(app_config, adapters=adapters, normalizers=_normalizers())

    with pytest.raises(NoPoolsFoundError):
        asyncio.run(analyzer.analyze(JUP_MINT, SOL_MINT))


def test_deterministic_tiebreak_prefers_source_order(app_config: AppConfig, pool_factory) -> None:
    config = app_config.model_copy(
        update={"pipeline": app_config.pipeline.model_copy(update={"deterministic_tiebreak": True})}
    )
    same = dict(liquidity_usd=1_000_000.0, volume_24h_usd=50_000.0, fee_percentage=0.3)
    adapters = [
        _FakeAdapter(SourceKind.METEORA, [pool_factory(source=SourceKind.METEORA, pool_id="m", **same)]),
        _FakeAdapter(SourceKind.RAYDIUM, [pool_factory(pool_id="r", **same)], delay=0.02),
    ]
    analyzer = PoolAnalyzer(config, adapters=adapters, normalizers=_normalizers())

    best = asyncio.run(analyzer.analyze(JUP_MINT, SOL_MINT))

    assert best.pool_id == "r"


def test_rank_returns_best_first(app_config: AppConfig, pool_factory) -> None:
    adapters = [
        _FakeAdapter(
            SourceKind.RAYDIUM,
            [
                pool_factory(pool_id="small", liquidity_usd=10_000.0),
                pool_factory(pool_id="large", liquidity_usd=5_000_000.0),
            ],
        )
    ]
    analyzer = PoolAnalyzer(app_config, adapters=adapters, normalizers=_normalizers())

    ranked = asyncio.run(analyzer.rank(JUP_MINT, SOL_MINT))

    assert [item.record.pool_id for item in ranked] == ["large", "small"]
    assert ranked[0].score >= ranked[1].score


def _raydium_entry(pool_id: str, tvl: object) -> dict:
    return {
        "type": "Standard",
        "id": pool_id,
        "mintA": {"address": JUP_MINT, "symbol": "JUP"},
        "mintB": {"address": SOL_MINT, "symbol": "WSOL"},
        "price": 0.05,
        "feeRate": 0.0025,
        "tvl": tvl,
        "day": {"volume": 250_000.0},
    }


def test_oversized_number_drops_only_its_record(app_config: AppConfig) -> None:
    adapters = [
        _FakeAdapter(
            SourceKind.RAYDIUM,
            [_raydium_entry("good", 1_000_000.0), _raydium_entry("huge", 10**400)],
        )
    ]
    analyzer = PoolAnalyzer(app_config, adapters=adapters)

    best = asyncio.run(analyzer.analyze(JUP_MINT, SOL_MINT))

    assert best.pool_id == "good"
    assert METRICS.get("normalizer.raydium.dropped") == 1
    assert METRICS.get("source.raydium.records") == 1


class _ExplodingNormalizer(_PassthroughNormalizer):
    def normalize(self, entry: object) -> Optional[PoolRecord]:
        if entry == "bad":
            raise RuntimeError("unexpected entry")
        return super().normalize(entry)


def test_normalizer_crash_is_contained_to_the_entry(pool_factory) -> None:
    normalizers = _normalizers()
    normalizers[SourceKind.RAYDIUM] = _ExplodingNormalizer(SourceKind.RAYDIUM)
    adapters = [
        _FakeAdapter(SourceKind.RAYDIUM, ["bad", pool_factory(pool_id="kept")]),
        _FakeAdapter(SourceKind.METEORA, [pool_factory(source=SourceKind.METEORA, pool_id="other")]),
    ]
    orchestrator = SourceOrchestrator(adapters, normalizers, timeout_seconds=1.0)

    result = asyncio.run(orchestrator.gather(JUP_MINT, SOL_MINT))

    assert sorted(record.pool_id for record in result.records) == ["kept", "other"]
    assert result.failed_sources == []
    assert METRICS.get("normalizer.raydium.dropped") == 1


def test_timeout_override_reaches_adapter_config(app_config: AppConfig) -> None:
    analyzer = PoolAnalyzer(app_config, timeout_seconds=2.0)

    http_adapters = [a for a in analyzer._adapters if a.source is not SourceKind.ORCA_WHIRLPOOL]
    assert http_adapters
    for adapter in http_adapters:
        assert adapter._app_config.pipeline.request_timeout_seconds == 2.0
    assert app_config.pipeline.request_timeout_seconds == 20.0


def test_evaluate_raises_when_selection_finds_nothing(
    app_config: AppConfig, pool_factory, monkeypatch: pytest.MonkeyPatch
) -> None:
    monkeypatch.setattr(analyzer_module, "select_best", lambda scored: None)
    adapters = [_FakeAdapter(SourceKind.RAYDIUM, [pool_factory()])]
    analyzer = PoolAnalyzer(app_config, adapters=adapters, normalizers=_normalizers())

    with pytest.raises(NoPoolsFoundError):
        asyncio.run(analyzer.evaluate(JUP_MINT, SOL_MINT))
