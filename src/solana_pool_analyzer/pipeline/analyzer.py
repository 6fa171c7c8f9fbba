"""Single entry point: find the best pool for a token pair."""

from __future__ import annotations

from typing import List, Mapping, Optional, Sequence

from ..analysis.scoring import HealthScorer
from ..analysis.selection import rank_all, select_best, stable_order
from ..config.settings import AppConfig, get_app_config
from ..errors import NoPoolsFoundError
from ..ingestion import build_normalizers, build_source_adapters
from ..ingestion.base import SourceAdapter
from ..ingestion.normalizers import PoolNormalizer
from ..monitoring.logger import correlation_scope, get_logger
from ..monitoring.metrics import METRICS
from ..schemas import PoolRecord, ScoredRecord, SourceKind
from .orchestrator import SourceOrchestrator


class PoolAnalyzer:
    """Wires sources, normalizers, scorer and selector for one deployment.

    Instances hold no per-request state; the same analyzer can serve many
    concurrent calls.
    """

    def __init__(
        self,
        app_config: Optional[AppConfig] = None,
        adapters: Optional[Sequence[SourceAdapter]] = None,
        normalizers: Optional[Mapping[SourceKind, PoolNormalizer]] = None,
        *,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        config = app_config or get_app_config()
        if timeout_seconds is not None:
            # Adapters size their blocking calls from the pipeline timeout.
            pipeline = config.pipeline.model_copy(update={"request_timeout_seconds": timeout_seconds})
            config = config.model_copy(update={"pipeline": pipeline})
        self._config = config
        self._adapters = list(adapters) if adapters is not None else build_source_adapters(self._config)
        self._normalizers = normalizers or build_normalizers(self._config)
        self._scorer = HealthScorer(self._config.scoring)
        self._orchestrator = SourceOrchestrator(
            self._adapters,
            self._normalizers,
            self._config.pipeline.request_timeout_seconds,
        )
        self._logger = get_logger(__name__)

    async def _score_candidates(self, token_a: str, token_b: str) -> List[ScoredRecord]:
        METRICS.increment("pipeline.runs")
        self._logger.info("Analyzing pools for %s / %s", token_a, token_b)
        with METRICS.timer("pipeline.duration_seconds"):
            aggregate = await self._orchestrator.gather(token_a, token_b)
        if not aggregate.records:
            METRICS.increment("pipeline.empty")
            self._logger.warning(
                "No valid pools found for %s / %s",
                token_a,
                token_b,
                extra={"failed_sources": [source.value for source in aggregate.failed_sources]},
            )
            raise NoPoolsFoundError(token_a, token_b)
        scored = self._scorer.score_all(aggregate.records)
        if self._config.pipeline.deterministic_tiebreak:
            scored = stable_order(scored)
        return scored

    async def evaluate(self, token_a: str, token_b: str) -> ScoredRecord:
        """Return the best pool together with its score breakdown."""

        with correlation_scope():
            scored = await self._score_candidates(token_a, token_b)
            best = select_best(scored)
            if best is None:
                raise NoPoolsFoundError(token_a, token_b)
            self._logger.info(
                "Selected %s pool %s (score %.4f)",
                best.record.source.label,
                best.record.pool_id,
                best.score,
            )
            return best

    async def analyze(self, token_a: str, token_b: str) -> PoolRecord:
        return (await self.evaluate(token_a, token_b)).record

    async def rank(self, token_a: str, token_b: str) -> List[ScoredRecord]:
        """Every usable pool, best first."""

        with correlation_scope():
            scored = await self._score_candidates(token_a, token_b)
            return rank_all(scored)


async def analyze(
    token_a: str,
    token_b: str,
    app_config: Optional[AppConfig] = None,
) -> PoolRecord:
    """Convenience wrapper around ``PoolAnalyzer.analyze``."""

    return await PoolAnalyzer(app_config).analyze(token_a, token_b)


__all__ = ["PoolAnalyzer", "analyze"]
