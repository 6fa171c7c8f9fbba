"""Best-pool selection over scored records."""

from __future__ import annotations

import math
from typing import Iterable, List, Optional, Sequence, Tuple

from ..schemas import PoolRecord, ScoredRecord


def _rank_key(score: float) -> Tuple[int, float]:
    # NaN sorts below every real score and equal to other NaNs.
    if math.isnan(score):
        return (0, 0.0)
    return (1, score)


def select_best(scored: Iterable[ScoredRecord]) -> Optional[ScoredRecord]:
    """Return the highest scoring entry; the first one wins ties."""

    best: Optional[ScoredRecord] = None
    best_key: Tuple[int, float] = (0, 0.0)
    for candidate in scored:
        key = _rank_key(candidate.score)
        if best is None or key > best_key:
            best = candidate
            best_key = key
    return best


def select(scored: Iterable[ScoredRecord]) -> Optional[PoolRecord]:
    best = select_best(scored)
    return best.record if best is not None else None


def stable_order(scored: Sequence[ScoredRecord]) -> List[ScoredRecord]:
    """Order by source declaration order, then pool id, for reproducible ties."""

    return sorted(scored, key=lambda item: (item.record.source.rank, item.record.pool_id))


def rank_all(scored: Sequence[ScoredRecord]) -> List[ScoredRecord]:
    """All entries best first. Equal scores keep their input order."""

    return sorted(scored, key=lambda item: _rank_key(item.score), reverse=True)


__all__ = ["rank_all", "select", "select_best", "stable_order"]
