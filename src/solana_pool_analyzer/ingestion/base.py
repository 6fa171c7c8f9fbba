"""Shared contract and HTTP plumbing for pool data sources."""

from __future__ import annotations

import asyncio
from typing import Any, Dict, FrozenSet, List, Optional, Protocol, Tuple, runtime_checkable

import requests

from ..config.settings import AppConfig, DataSourceConfig, get_app_config
from ..errors import SchemaError, TransportError, UpstreamError
from ..monitoring.logger import get_logger
from ..schemas import PaginationHints, RawBatch, SourceKind


@runtime_checkable
class SourceAdapter(Protocol):
    """Anything that can fetch raw pool entries for a token pair."""

    source: SourceKind

    @property
    def default_hints(self) -> PaginationHints: ...

    async def fetch(
        self,
        token_a: str,
        token_b: str,
        hints: Optional[PaginationHints] = None,
    ) -> RawBatch: ...


def sorted_pair(token_a: str, token_b: str, separator: str = "-") -> str:
    """Join two mints in lexical order, as the Meteora search endpoints expect."""

    first, second = sorted((token_a, token_b))
    return f"{first}{separator}{second}"


class HttpSourceAdapter:
    """Base class for JSON-over-HTTP providers.

    Subclasses describe the request (``_build_request``) and unwrap the
    response envelope (``_extract_entries``). One GET is issued per fetch on
    a worker thread; failures are raised as classified adapter errors and
    never retried.
    """

    source: SourceKind
    # Statuses that mean "no pools for this pair" rather than a failure.
    empty_statuses: FrozenSet[int] = frozenset()

    def __init__(
        self,
        config: Optional[DataSourceConfig] = None,
        session: Optional[requests.Session] = None,
        *,
        app_config: Optional[AppConfig] = None,
    ) -> None:
        self._app_config = app_config or get_app_config()
        self._config = config or self._app_config.data_sources
        self._session = session or requests.Session()
        self._logger = get_logger(__name__)

    @property
    def default_hints(self) -> PaginationHints:
        return PaginationHints()

    async def fetch(
        self,
        token_a: str,
        token_b: str,
        hints: Optional[PaginationHints] = None,
    ) -> RawBatch:
        hints = hints or self.default_hints
        url, params = self._build_request(token_a, token_b, hints)
        payload = await asyncio.to_thread(self._get_json, url, params)
        if payload is None:
            return []
        return self._extract_entries(payload)

    def _build_request(
        self, token_a: str, token_b: str, hints: PaginationHints
    ) -> Tuple[str, Dict[str, Any]]:
        raise NotImplementedError

    def _extract_entries(self, payload: Any) -> List[Dict[str, Any]]:
        raise NotImplementedError

    def _url(self, base_url: object, endpoint: str) -> str:
        base = str(base_url).rstrip("/")
        if endpoint and not endpoint.startswith("/"):
            endpoint = "/" + endpoint
        return f"{base}{endpoint}"

    def _get_json(self, url: str, params: Dict[str, Any]) -> Any:
        headers = {"User-Agent": self._config.user_agent, "Accept": "application/json"}
        try:
            response = self._session.get(
                url,
                headers=headers,
                params=params,
                timeout=self._app_config.pipeline.bounded_timeout(self._config.http_timeout),
            )
        except requests.RequestException as exc:
            raise TransportError(self.source, f"request to {url} failed: {exc}") from exc
        status = response.status_code
        if status in self.empty_statuses:
            self._logger.debug("No %s pools for request (%s)", self.source.label, status)
            return None
        if not 200 <= status < 300:
            raise UpstreamError(
                self.source,
                f"{self.source.label} API request failed with status {status}",
                status_code=status,
            )
        try:
            return response.json()
        except ValueError as exc:
            raise SchemaError(self.source, f"response body is not valid JSON: {exc}") from exc

    def _require_list(self, value: Any, path: str) -> List[Dict[str, Any]]:
        if not isinstance(value, list):
            raise SchemaError(self.source, f"expected a list at {path!r}, got {type(value).__name__}")
        return [item for item in value if isinstance(item, dict)]


__all__ = ["HttpSourceAdapter", "SourceAdapter", "sorted_pair"]
