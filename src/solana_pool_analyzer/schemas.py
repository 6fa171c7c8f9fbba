"""Data models shared by ingestion, scoring and selection."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .errors import AdapterError


class SourceKind(str, Enum):
    """Liquidity pool providers. Declaration order is the stable source order."""

    RAYDIUM = "raydium"
    ORCA_WHIRLPOOL = "orca_whirlpool"
    METEORA = "meteora"
    METEORA_DLMM = "meteora_dlmm"
    ORCA_API = "orca_api"

    @property
    def label(self) -> str:
        return _SOURCE_LABELS[self]

    @property
    def rank(self) -> int:
        return list(SourceKind).index(self)


_SOURCE_LABELS = {
    SourceKind.RAYDIUM: "Raydium",
    SourceKind.ORCA_WHIRLPOOL: "Orca",
    SourceKind.METEORA: "Meteora",
    SourceKind.METEORA_DLMM: "Meteora DLMM",
    SourceKind.ORCA_API: "Orca API",
}


@dataclass(slots=True, frozen=True)
class PoolRecord:
    """Provider-agnostic view of a liquidity pool."""

    source: SourceKind
    display_name: str
    pool_id: str
    price_usd: float
    liquidity_usd: float
    fee_percentage: float
    volume_24h_usd: Optional[float]
    token_addresses: Tuple[str, str]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source.value,
            "amm": self.source.label,
            "name": self.display_name,
            "pool_address": self.pool_id,
            "price_usd": self.price_usd,
            "liquidity_usd": self.liquidity_usd,
            "fee_percentage": self.fee_percentage,
            "volume_24h": self.volume_24h_usd,
            "token_addresses": list(self.token_addresses),
        }


@dataclass(slots=True, frozen=True)
class ScoredRecord:
    """A pool annotated with its health score and score components."""

    record: PoolRecord
    score: float
    liquidity_component: float = 0.0
    volume_component: float = 0.0
    fee_component: float = 0.0
    reweighted: bool = False

    def to_dict(self) -> Dict[str, Any]:
        payload = self.record.to_dict()
        payload.update(
            {
                "score": self.score,
                "liquidity_component": self.liquidity_component,
                "volume_component": self.volume_component,
                "fee_component": self.fee_component,
                "reweighted": self.reweighted,
            }
        )
        return payload


@dataclass(slots=True, frozen=True)
class PaginationHints:
    """Paging parameters forwarded to a provider query."""

    page: Optional[int] = None
    page_size: Optional[int] = None


@dataclass(slots=True, frozen=True)
class WhirlpoolState:
    """Decoded Orca Whirlpool account."""

    address: str
    token_mint_a: str
    token_mint_b: str
    tick_spacing: int
    fee_rate: int
    liquidity: int
    sqrt_price: int
    tick_current_index: int
    price: float


# Raw provider output. HTTP sources yield decoded JSON objects; the on-chain
# source yields WhirlpoolState entries. A batch never mixes providers.
RawEntry = Any
RawBatch = Sequence[RawEntry]


@dataclass(slots=True)
class SourceOutcome:
    """Result of one adapter task, owned by that task until handed off."""

    source: SourceKind
    records: List[PoolRecord] = field(default_factory=list)
    raw_count: int = 0
    error: Optional[AdapterError] = None
    elapsed_seconds: float = 0.0

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(slots=True)
class AggregateResult:
    """Normalized records from every source of one pipeline run."""

    records: List[PoolRecord] = field(default_factory=list)
    outcomes: List[SourceOutcome] = field(default_factory=list)

    @property
    def failed_sources(self) -> List[SourceKind]:
        return [outcome.source for outcome in self.outcomes if not outcome.ok]

    def __len__(self) -> int:
        return len(self.records)


__all__ = [
    "AggregateResult",
    "PaginationHints",
    "PoolRecord",
    "RawBatch",
    "RawEntry",
    "ScoredRecord",
    "SourceKind",
    "SourceOutcome",
    "WhirlpoolState",
]
