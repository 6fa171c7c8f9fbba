"""Reads Orca Whirlpool accounts for a token pair straight from Solana RPC."""

from __future__ import annotations

import asyncio
import base64
import hashlib
import struct
from typing import Any, List, Optional, Sequence, Tuple

from solana.exceptions import SolanaRpcException
from solana.rpc.api import Client
from solana.rpc.commitment import Commitment
from solana.rpc.core import RPCException
from solders.pubkey import Pubkey
from spl.token._layouts import MINT_LAYOUT

from ..config.settings import AppConfig, DataSourceConfig, RPCConfig, get_app_config
from ..errors import SchemaError, TransportError
from ..monitoring.logger import get_logger
from ..schemas import PaginationHints, RawBatch, SourceKind, WhirlpoolState
from ..utils.constants import Q64

WHIRLPOOL_SEED = b"whirlpool"
WHIRLPOOL_DISCRIMINATOR = hashlib.sha256(b"account:Whirlpool").digest()[:8]

# Byte offsets inside a Whirlpool account (after the 8-byte discriminator).
_TICK_SPACING_OFFSET = 41
_FEE_RATE_OFFSET = 45
_LIQUIDITY_OFFSET = 49
_SQRT_PRICE_OFFSET = 65
_TICK_CURRENT_INDEX_OFFSET = 81
_TOKEN_MINT_A_OFFSET = 101
_TOKEN_MINT_B_OFFSET = 181
_MIN_ACCOUNT_SIZE = _TOKEN_MINT_B_OFFSET + 32


def _u128(data: bytes, offset: int) -> int:
    return int.from_bytes(data[offset : offset + 16], "little")


def decode_whirlpool(address: str, data: bytes) -> Optional[WhirlpoolState]:
    """Decode the fields needed for pricing. Price is left at 0 until decimals are known."""

    if len(data) < _MIN_ACCOUNT_SIZE or data[:8] != WHIRLPOOL_DISCRIMINATOR:
        return None
    (tick_spacing,) = struct.unpack_from("<H", data, _TICK_SPACING_OFFSET)
    (fee_rate,) = struct.unpack_from("<H", data, _FEE_RATE_OFFSET)
    (tick_current_index,) = struct.unpack_from("<i", data, _TICK_CURRENT_INDEX_OFFSET)
    return WhirlpoolState(
        address=address,
        token_mint_a=str(Pubkey.from_bytes(data[_TOKEN_MINT_A_OFFSET : _TOKEN_MINT_A_OFFSET + 32])),
        token_mint_b=str(Pubkey.from_bytes(data[_TOKEN_MINT_B_OFFSET : _TOKEN_MINT_B_OFFSET + 32])),
        tick_spacing=tick_spacing,
        fee_rate=fee_rate,
        liquidity=_u128(data, _LIQUIDITY_OFFSET),
        sqrt_price=_u128(data, _SQRT_PRICE_OFFSET),
        tick_current_index=tick_current_index,
        price=0.0,
    )


def sqrt_price_to_price(sqrt_price: int, decimals_a: int, decimals_b: int) -> float:
    """Convert a Q64.64 square-root price into token B per token A."""

    ratio = sqrt_price / Q64
    return ratio * ratio * (10.0 ** (decimals_a - decimals_b))


class WhirlpoolOnChainClient:
    """Derives the Whirlpool PDAs for each tick spacing and loads them in one RPC call."""

    source = SourceKind.ORCA_WHIRLPOOL

    def __init__(
        self,
        config: Optional[DataSourceConfig] = None,
        rpc_config: Optional[RPCConfig] = None,
        client: Optional[Client] = None,
        *,
        app_config: Optional[AppConfig] = None,
    ) -> None:
        self._app_config = app_config or get_app_config()
        self._config = config or self._app_config.data_sources
        self._rpc_config = rpc_config or self._app_config.rpc
        self._client = client or Client(
            str(self._rpc_config.primary_url),
            commitment=Commitment(self._rpc_config.commitment),
            timeout=self._app_config.pipeline.bounded_timeout(self._rpc_config.request_timeout),
        )
        self._program_id = Pubkey.from_string(self._config.whirlpool_program_id)
        self._whirlpools_config = Pubkey.from_string(self._config.whirlpools_config_address)
        self._logger = get_logger(__name__)

    @property
    def default_hints(self) -> PaginationHints:
        return PaginationHints()

    def derive_addresses(self, mint_a: Pubkey, mint_b: Pubkey) -> List[Tuple[int, Pubkey]]:
        """Return ``(tick_spacing, pda)`` for every configured spacing."""

        if bytes(mint_a) > bytes(mint_b):
            mint_a, mint_b = mint_b, mint_a
        addresses = []
        for spacing in self._config.whirlpool_tick_spacings:
            seeds = [
                WHIRLPOOL_SEED,
                bytes(self._whirlpools_config),
                bytes(mint_a),
                bytes(mint_b),
                struct.pack("<H", spacing),
            ]
            pda, _bump = Pubkey.find_program_address(seeds, self._program_id)
            addresses.append((spacing, pda))
        return addresses

    async def fetch(
        self,
        token_a: str,
        token_b: str,
        hints: Optional[PaginationHints] = None,
    ) -> RawBatch:
        return await asyncio.to_thread(self._load_pools, token_a, token_b)

    def _load_pools(self, token_a: str, token_b: str) -> List[WhirlpoolState]:
        mint_a = self._parse_mint(token_a)
        mint_b = self._parse_mint(token_b)
        candidates = self.derive_addresses(mint_a, mint_b)
        keys = [pda for _, pda in candidates] + [mint_a, mint_b]
        accounts = self._get_multiple_accounts(keys)
        if len(accounts) != len(keys):
            raise SchemaError(
                self.source, f"expected {len(keys)} accounts, RPC returned {len(accounts)}"
            )

        decimals = {
            str(mint_a): self._mint_decimals(accounts[-2], token_a),
            str(mint_b): self._mint_decimals(accounts[-1], token_b),
        }
        pools: List[WhirlpoolState] = []
        for (spacing, pda), data in zip(candidates, accounts):
            if data is None:
                continue
            state = decode_whirlpool(str(pda), data)
            if state is None:
                self._logger.debug("Skipping undecodable whirlpool %s (tick spacing %s)", pda, spacing)
                continue
            price = sqrt_price_to_price(
                state.sqrt_price,
                decimals[state.token_mint_a],
                decimals[state.token_mint_b],
            )
            pools.append(
                WhirlpoolState(
                    address=state.address,
                    token_mint_a=state.token_mint_a,
                    token_mint_b=state.token_mint_b,
                    tick_spacing=state.tick_spacing,
                    fee_rate=state.fee_rate,
                    liquidity=state.liquidity,
                    sqrt_price=state.sqrt_price,
                    tick_current_index=state.tick_current_index,
                    price=price,
                )
            )
        return pools

    def _parse_mint(self, value: str) -> Pubkey:
        try:
            return Pubkey.from_string(value)
        except ValueError as exc:
            raise SchemaError(self.source, f"invalid mint address {value!r}: {exc}") from exc

    def _mint_decimals(self, data: Optional[bytes], mint: str) -> int:
        if data is None:
            raise SchemaError(self.source, f"mint account {mint} does not exist")
        try:
            return int(MINT_LAYOUT.parse(data).decimals)
        except Exception as exc:  # noqa: BLE001 - construct raises its own hierarchy
            raise SchemaError(self.source, f"mint account {mint} could not be decoded: {exc}") from exc

    def _get_multiple_accounts(self, keys: Sequence[Pubkey]) -> List[Optional[bytes]]:
        try:
            response = self._client.get_multiple_accounts(list(keys), encoding="base64")
        except (SolanaRpcException, RPCException, OSError) as exc:
            raise TransportError(self.source, f"getMultipleAccounts failed: {exc}") from exc
        if isinstance(response, dict):
            if "error" in response:
                raise TransportError(self.source, f"getMultipleAccounts failed: {response['error']}")
            values = response.get("result", {}).get("value")
        else:
            values = getattr(response, "value", None)
        if not isinstance(values, list):
            raise SchemaError(self.source, "getMultipleAccounts returned no value list")
        return [self._account_data(entry) for entry in values]

    def _account_data(self, entry: Any) -> Optional[bytes]:
        if entry is None:
            return None
        if isinstance(entry, dict):
            data = entry.get("data")
            if isinstance(data, list) and data:
                return base64.b64decode(data[0])
            if isinstance(data, str):
                return base64.b64decode(data)
            return None
        data = getattr(entry, "data", None)
        return bytes(data) if data is not None else None


__all__ = [
    "WHIRLPOOL_DISCRIMINATOR",
    "WhirlpoolOnChainClient",
    "decode_whirlpool",
    "sqrt_price_to_price",
]
