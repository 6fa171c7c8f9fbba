"""Health scoring for normalized pools."""

from __future__ import annotations

import math
from typing import Iterable, List, Optional, Tuple

from ..config.settings import ScoringConfig, get_app_config
from ..schemas import PoolRecord, ScoredRecord


def clamp(value: float, lower: float = 0.0, upper: float = 1.0) -> float:
    """Clamp into ``[lower, upper]``. NaN is returned unchanged."""

    if math.isnan(value):
        return value
    return max(lower, min(value, upper))


class HealthScorer:
    """Deterministic weighted score over liquidity, volume and fee.

    Liquidity and volume are scored on a log10 scale against a ceiling, the
    fee linearly against a fee ceiling. Each component is clamped to
    ``[0, 1]``; corrupted (NaN) inputs yield a NaN score rather than being
    masked, and the selector ranks those last.
    """

    def __init__(self, config: Optional[ScoringConfig] = None) -> None:
        self._config = config or get_app_config().scoring
        self._log_liquidity_ceiling = math.log10(self._config.liquidity_ceiling_usd)
        self._log_volume_ceiling = math.log10(self._config.effective_volume_ceiling_usd)
        self._reweight_sources = frozenset(self._config.reweight_missing_volume_sources)

    def _log_scale(self, value: Optional[float], log_ceiling: float) -> float:
        if value is None:
            return 0.0
        if math.isnan(value):
            return value
        if value <= 0:
            return 0.0
        return clamp(math.log10(value) / log_ceiling)

    def liquidity_component(self, record: PoolRecord) -> float:
        return self._log_scale(record.liquidity_usd, self._log_liquidity_ceiling)

    def volume_component(self, record: PoolRecord) -> float:
        return self._log_scale(record.volume_24h_usd, self._log_volume_ceiling)

    def fee_component(self, record: PoolRecord) -> float:
        return clamp(1.0 - record.fee_percentage / self._config.fee_ceiling_pct)

    def weights_for(self, record: PoolRecord) -> Tuple[float, float, float, bool]:
        """Return ``(liquidity, volume, fee, reweighted)`` weights for a record."""

        cfg = self._config
        if record.volume_24h_usd is None and record.source in self._reweight_sources:
            remaining = cfg.liquidity_weight + cfg.fee_weight
            if remaining > 0:
                return (
                    cfg.liquidity_weight / remaining,
                    0.0,
                    cfg.fee_weight / remaining,
                    True,
                )
        return cfg.liquidity_weight, cfg.volume_weight, cfg.fee_weight, False

    def score(self, record: PoolRecord) -> ScoredRecord:
        liquidity = self.liquidity_component(record)
        volume = self.volume_component(record)
        fee = self.fee_component(record)
        w_liquidity, w_volume, w_fee, reweighted = self.weights_for(record)
        if reweighted:
            volume = 0.0
        total = (liquidity * w_liquidity) + (volume * w_volume) + (fee * w_fee)
        return ScoredRecord(
            record=record,
            score=total,
            liquidity_component=liquidity,
            volume_component=volume,
            fee_component=fee,
            reweighted=reweighted,
        )

    def score_all(self, records: Iterable[PoolRecord]) -> List[ScoredRecord]:
        return [self.score(record) for record in records]


__all__ = ["HealthScorer", "clamp"]
