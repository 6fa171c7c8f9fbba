"""Client for the Raydium v3 pool-by-mint API."""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

from ..errors import SchemaError, UpstreamError
from ..schemas import PaginationHints, SourceKind
from .base import HttpSourceAdapter


class RaydiumClient(HttpSourceAdapter):
    """Queries every Raydium pool type holding both mints."""

    source = SourceKind.RAYDIUM

    @property
    def default_hints(self) -> PaginationHints:
        return PaginationHints(
            page=self._config.raydium_page,
            page_size=self._config.raydium_page_size,
        )

    def _build_request(
        self, token_a: str, token_b: str, hints: PaginationHints
    ) -> Tuple[str, Dict[str, Any]]:
        defaults = self.default_hints
        params = {
            "mint1": token_a,
            "mint2": token_b,
            "poolType": "all",
            "poolSortField": "default",
            "sortType": "desc",
            "pageSize": hints.page_size or defaults.page_size,
            "page": hints.page if hints.page is not None else defaults.page,
        }
        return self._url(self._config.raydium_base_url, self._config.raydium_pool_endpoint), params

    def _extract_entries(self, payload: Any) -> List[Dict[str, Any]]:
        if not isinstance(payload, dict):
            raise SchemaError(self.source, "response envelope is not an object")
        if payload.get("success") is False:
            message = payload.get("msg") or "success=false"
            raise UpstreamError(self.source, f"Raydium API reported failure: {message}")
        data = payload.get("data")
        if not isinstance(data, dict):
            raise SchemaError(self.source, "missing 'data' object")
        return self._require_list(data.get("data"), "data.data")


__all__ = ["RaydiumClient"]
