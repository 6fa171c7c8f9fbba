"""Per-provider conversion of raw pool entries into ``PoolRecord``."""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Sequence, Tuple

from ..config.settings import AppConfig, get_app_config
from ..errors import MalformedRecordError
from ..monitoring.logger import get_logger
from ..monitoring.metrics import METRICS
from ..schemas import PoolRecord, RawEntry, SourceKind, WhirlpoolState


class _Skip(Exception):
    """Entry is well formed but not a usable pool (hidden, empty, ...)."""


def parse_number(value: Any, field: str) -> float:
    """Parse a JSON number or numeric string. Absent or garbage values raise."""

    if isinstance(value, bool) or value is None:
        raise MalformedRecordError(field, value)
    if isinstance(value, (int, float)):
        try:
            return float(value)
        except OverflowError as exc:
            raise MalformedRecordError(field, value) from exc
    if isinstance(value, str):
        try:
            return float(value.strip())
        except (ValueError, OverflowError) as exc:
            raise MalformedRecordError(field, value) from exc
    raise MalformedRecordError(field, value)


def _optional_number(value: Any, field: str) -> Optional[float]:
    if value is None:
        return None
    return parse_number(value, field)


def _text(value: Any, field: str) -> str:
    if not isinstance(value, str) or not value:
        raise MalformedRecordError(field, value)
    return value


class PoolNormalizer:
    """Base normalizer. Subclasses implement ``_convert``.

    ``normalize`` never raises: malformed or unusable entries come back as
    ``None`` and are counted under ``normalizer.<source>.dropped``.
    """

    source: SourceKind

    def __init__(self, app_config: Optional[AppConfig] = None) -> None:
        config = app_config or get_app_config()
        self._native_mint = config.pricing.native_mint
        self._native_price_usd = config.pricing.native_price_usd
        self._data_sources = config.data_sources
        self._logger = get_logger(__name__)

    def normalize(self, entry: RawEntry) -> Optional[PoolRecord]:
        try:
            record = self._convert(entry)
        except MalformedRecordError as exc:
            self._logger.debug("Dropping %s entry: %s", self.source.value, exc)
            record = None
        except _Skip as exc:
            self._logger.debug("Skipping %s entry: %s", self.source.value, exc)
            record = None
        except (AttributeError, KeyError, TypeError, IndexError) as exc:
            self._logger.debug("Dropping %s entry with unexpected shape: %s", self.source.value, exc)
            record = None
        if record is not None and not self._is_usable(record):
            record = None
        if record is None:
            METRICS.increment(f"normalizer.{self.source.value}.dropped")
        return record

    def _convert(self, entry: RawEntry) -> PoolRecord:
        raise NotImplementedError

    def _is_usable(self, record: PoolRecord) -> bool:
        # NaN fails the > 0 comparison and is dropped with the zero case.
        if not record.liquidity_usd > 0:
            return False
        if record.price_usd < 0:
            return False
        if record.volume_24h_usd is not None and record.volume_24h_usd < 0:
            return False
        return True

    def _usd_price(self, price: float, mints: Sequence[str]) -> float:
        """Scale a pair price by the native reference when the native mint is in the pair."""

        if self._native_mint in mints:
            return price * self._native_price_usd
        return price


class RaydiumNormalizer(PoolNormalizer):
    source = SourceKind.RAYDIUM

    def _convert(self, entry: Mapping[str, Any]) -> PoolRecord:
        mint_a = entry["mintA"]
        mint_b = entry["mintB"]
        tokens = (_text(mint_a.get("address"), "mintA.address"), _text(mint_b.get("address"), "mintB.address"))
        price = parse_number(entry.get("price"), "price")
        fee_fraction = parse_number(entry.get("feeRate"), "feeRate")
        day = entry.get("day") or {}
        return PoolRecord(
            source=self.source,
            display_name=f"{mint_a.get('symbol', '?')}-{mint_b.get('symbol', '?')}",
            pool_id=_text(entry.get("id"), "id"),
            price_usd=self._usd_price(price, tokens),
            liquidity_usd=parse_number(entry.get("tvl"), "tvl"),
            fee_percentage=fee_fraction * 100.0,
            volume_24h_usd=_optional_number(day.get("volume"), "day.volume"),
            token_addresses=tokens,
        )


class MeteoraNormalizer(PoolNormalizer):
    """Meteora AMM pools carry reserves instead of a price."""

    source = SourceKind.METEORA

    def _convert(self, entry: Mapping[str, Any]) -> PoolRecord:
        mints = entry["pool_token_mints"]
        amounts = entry["pool_token_amounts"]
        if len(mints) < 2 or len(amounts) < 2:
            raise _Skip("pool does not list two tokens")
        tokens = (_text(mints[0], "pool_token_mints[0]"), _text(mints[1], "pool_token_mints[1]"))
        reserves = (
            parse_number(amounts[0], "pool_token_amounts[0]"),
            parse_number(amounts[1], "pool_token_amounts[1]"),
        )
        return PoolRecord(
            source=self.source,
            display_name=str(entry.get("pool_name") or "-".join(tokens)),
            pool_id=_text(entry.get("pool_address"), "pool_address"),
            price_usd=self._reserve_price(tokens, reserves),
            liquidity_usd=parse_number(entry.get("pool_tvl"), "pool_tvl"),
            fee_percentage=parse_number(entry.get("total_fee_pct"), "total_fee_pct"),
            volume_24h_usd=_optional_number(entry.get("trading_volume"), "trading_volume"),
            token_addresses=tokens,
        )

    def _reserve_price(self, tokens: Tuple[str, str], reserves: Tuple[float, float]) -> float:
        """Price of the non-native token: native per token times the native USD price."""

        if self._native_mint in tokens:
            native_index = tokens.index(self._native_mint)
            native_reserve = reserves[native_index]
            other_reserve = reserves[1 - native_index]
            if native_reserve == 0 or other_reserve == 0:
                raise _Skip("empty reserve")
            return native_reserve / other_reserve * self._native_price_usd
        if reserves[0] == 0:
            raise _Skip("empty reserve")
        return reserves[1] / reserves[0]


class DlmmNormalizer(PoolNormalizer):
    source = SourceKind.METEORA_DLMM

    def _convert(self, entry: Mapping[str, Any]) -> PoolRecord:
        if entry.get("hide") or entry.get("is_blacklisted"):
            raise _Skip("pair is hidden or blacklisted")
        tokens = (_text(entry.get("mint_x"), "mint_x"), _text(entry.get("mint_y"), "mint_y"))
        price = parse_number(entry.get("current_price"), "current_price")
        return PoolRecord(
            source=self.source,
            display_name=str(entry.get("name") or "-".join(tokens)),
            pool_id=_text(entry.get("address"), "address"),
            price_usd=self._usd_price(price, tokens),
            liquidity_usd=parse_number(entry.get("liquidity"), "liquidity"),
            fee_percentage=parse_number(entry.get("base_fee_percentage"), "base_fee_percentage"),
            volume_24h_usd=_optional_number(entry.get("trade_volume_24h"), "trade_volume_24h"),
            token_addresses=tokens,
        )


class WhirlpoolNormalizer(PoolNormalizer):
    """On-chain Whirlpools report no volume; liquidity is a rough USD estimate."""

    source = SourceKind.ORCA_WHIRLPOOL

    def _convert(self, entry: WhirlpoolState) -> PoolRecord:
        tokens = (entry.token_mint_a, entry.token_mint_b)
        price_usd = self._usd_price(entry.price, tokens)
        liquidity_usd = entry.liquidity * self._data_sources.whirlpool_liquidity_scale * price_usd
        return PoolRecord(
            source=self.source,
            display_name=f"Whirlpool-{entry.tick_spacing}",
            pool_id=entry.address,
            price_usd=price_usd,
            liquidity_usd=liquidity_usd,
            fee_percentage=entry.fee_rate / 10_000.0,
            volume_24h_usd=None,
            token_addresses=tokens,
        )


class OrcaApiNormalizer(PoolNormalizer):
    source = SourceKind.ORCA_API

    def _convert(self, entry: Mapping[str, Any]) -> PoolRecord:
        token_a = entry["tokenA"]
        token_b = entry["tokenB"]
        tokens = (
            _text(entry.get("tokenMintA") or token_a.get("address"), "tokenMintA"),
            _text(entry.get("tokenMintB") or token_b.get("address"), "tokenMintB"),
        )
        price = parse_number(entry.get("price"), "price")
        stats = (entry.get("stats") or {}).get("24h") or {}
        return PoolRecord(
            source=self.source,
            display_name=f"{token_a.get('symbol', '?')}-{token_b.get('symbol', '?')}",
            pool_id=_text(entry.get("address"), "address"),
            price_usd=self._usd_price(price, tokens),
            liquidity_usd=parse_number(entry.get("tvlUsdc"), "tvlUsdc"),
            fee_percentage=parse_number(entry.get("feeRate"), "feeRate") / 10_000.0,
            volume_24h_usd=_optional_number(stats.get("volume"), "stats.24h.volume"),
            token_addresses=tokens,
        )


_NORMALIZERS = {
    SourceKind.RAYDIUM: RaydiumNormalizer,
    SourceKind.ORCA_WHIRLPOOL: WhirlpoolNormalizer,
    SourceKind.METEORA: MeteoraNormalizer,
    SourceKind.METEORA_DLMM: DlmmNormalizer,
    SourceKind.ORCA_API: OrcaApiNormalizer,
}


def build_normalizers(app_config: Optional[AppConfig] = None) -> Dict[SourceKind, PoolNormalizer]:
    """One normalizer per known source."""

    config = app_config or get_app_config()
    return {kind: factory(config) for kind, factory in _NORMALIZERS.items()}


__all__ = [
    "DlmmNormalizer",
    "MeteoraNormalizer",
    "OrcaApiNormalizer",
    "PoolNormalizer",
    "RaydiumNormalizer",
    "WhirlpoolNormalizer",
    "build_normalizers",
    "parse_number",
]
