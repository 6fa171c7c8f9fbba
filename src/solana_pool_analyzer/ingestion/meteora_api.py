"""Client for the Meteora dynamic AMM pool search API."""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

from ..errors import SchemaError
from ..schemas import PaginationHints, SourceKind
from .base import HttpSourceAdapter, sorted_pair


class MeteoraClient(HttpSourceAdapter):
    """Searches Meteora AMM pools by their token pair."""

    source = SourceKind.METEORA

    @property
    def default_hints(self) -> PaginationHints:
        return PaginationHints(
            page=self._config.meteora_page,
            page_size=self._config.meteora_page_size,
        )

    def _build_request(
        self, token_a: str, token_b: str, hints: PaginationHints
    ) -> Tuple[str, Dict[str, Any]]:
        defaults = self.default_hints
        params = {
            "page": hints.page if hints.page is not None else defaults.page,
            "size": hints.page_size or defaults.page_size,
            "include_pool_token_pairs": sorted_pair(token_a, token_b),
        }
        return self._url(self._config.meteora_base_url, self._config.meteora_pool_endpoint), params

    def _extract_entries(self, payload: Any) -> List[Dict[str, Any]]:
        if not isinstance(payload, dict):
            raise SchemaError(self.source, "response envelope is not an object")
        return self._require_list(payload.get("data"), "data")


__all__ = ["MeteoraClient"]
