"""Client for retrieving Meteora DLMM pair statistics."""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

from ..errors import SchemaError
from ..schemas import PaginationHints, SourceKind
from .base import HttpSourceAdapter, sorted_pair


class DlmmClient(HttpSourceAdapter):
    """Fetches DLMM pairs grouped by token pair and flattens the groups."""

    source = SourceKind.METEORA_DLMM
    # The pairs endpoint returns 404 when no pools exist for the pair.
    empty_statuses = frozenset({404})

    @property
    def default_hints(self) -> PaginationHints:
        return PaginationHints(
            page=self._config.dlmm_page,
            page_size=self._config.dlmm_page_limit,
        )

    def _build_request(
        self, token_a: str, token_b: str, hints: PaginationHints
    ) -> Tuple[str, Dict[str, Any]]:
        defaults = self.default_hints
        params = {
            "page": hints.page if hints.page is not None else defaults.page,
            "limit": hints.page_size or defaults.page_size,
            "include_pool_token_pairs": sorted_pair(token_a, token_b),
        }
        return self._url(self._config.dlmm_base_url, self._config.dlmm_pool_endpoint), params

    def _extract_entries(self, payload: Any) -> List[Dict[str, Any]]:
        if not isinstance(payload, dict):
            raise SchemaError(self.source, "response envelope is not an object")
        pairs: List[Dict[str, Any]] = []
        for index, group in enumerate(self._require_list(payload.get("groups"), "groups")):
            pairs.extend(self._require_list(group.get("pairs"), f"groups[{index}].pairs"))
        return pairs


__all__ = ["DlmmClient"]
