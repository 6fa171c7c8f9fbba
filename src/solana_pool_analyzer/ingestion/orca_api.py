"""Client for the Orca public REST API."""

from __future__ import annotations

from typing import Any, Dict, List, Tuple

from ..errors import SchemaError
from ..schemas import PaginationHints, SourceKind
from .base import HttpSourceAdapter


class OrcaApiClient(HttpSourceAdapter):
    """Lists Orca pools containing both mints. Disabled unless configured."""

    source = SourceKind.ORCA_API

    @property
    def default_hints(self) -> PaginationHints:
        return PaginationHints(page_size=self._config.orca_api_page_limit)

    def _build_request(
        self, token_a: str, token_b: str, hints: PaginationHints
    ) -> Tuple[str, Dict[str, Any]]:
        params = {
            "tokensBothOf": f"{token_a},{token_b}",
            "limit": hints.page_size or self._config.orca_api_page_limit,
        }
        return self._url(self._config.orca_api_base_url, self._config.orca_api_pool_endpoint), params

    def _extract_entries(self, payload: Any) -> List[Dict[str, Any]]:
        if not isinstance(payload, dict):
            raise SchemaError(self.source, "response envelope is not an object")
        return self._require_list(payload.get("data"), "data")


__all__ = ["OrcaApiClient"]
