"""Exception hierarchy for the pool analysis pipeline."""

from __future__ import annotations

from enum import Enum
from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:  # pragma: no cover - typing only
    from .schemas import SourceKind


class ErrorKind(str, Enum):
    """Classification used in logs and metrics."""

    TRANSPORT = "transport"
    TIMEOUT = "timeout"
    UPSTREAM = "upstream"
    SCHEMA = "schema"
    MALFORMED = "malformed"
    EMPTY = "empty"


class PoolAnalyzerError(Exception):
    """Base class for all pipeline errors."""

    kind: ErrorKind


class AdapterError(PoolAnalyzerError):
    """A single source failed; contained by the orchestrator."""

    kind = ErrorKind.TRANSPORT

    def __init__(self, source: "SourceKind", message: str) -> None:
        super().__init__(message)
        self.source = source
        self.message = message

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


class TransportError(AdapterError):
    """Connection, DNS, socket or RPC failure."""

    kind = ErrorKind.TRANSPORT


class SourceTimeoutError(AdapterError):
    """The source did not resolve before the orchestrator's per-source timeout."""

    kind = ErrorKind.TIMEOUT


class UpstreamError(AdapterError):
    """The provider answered with a non-success status."""

    kind = ErrorKind.UPSTREAM

    def __init__(
        self,
        source: "SourceKind",
        message: str,
        status_code: Optional[int] = None,
    ) -> None:
        super().__init__(source, message)
        self.status_code = status_code


class SchemaError(AdapterError):
    """The response did not have the expected shape."""

    kind = ErrorKind.SCHEMA


class MalformedRecordError(PoolAnalyzerError):
    """A raw entry carried a field that failed numeric parsing."""

    kind = ErrorKind.MALFORMED

    def __init__(self, field: str, value: object) -> None:
        super().__init__(f"field {field!r} is not a valid number: {value!r}")
        self.field = field
        self.value = value


class NoPoolsFoundError(PoolAnalyzerError):
    """No source contributed a valid pool for the requested pair."""

    kind = ErrorKind.EMPTY

    def __init__(self, token_a: str, token_b: str) -> None:
        super().__init__("No valid pools found for the given token pair")
        self.token_a = token_a
        self.token_b = token_b


__all__ = [
    "AdapterError",
    "ErrorKind",
    "MalformedRecordError",
    "NoPoolsFoundError",
    "PoolAnalyzerError",
    "SchemaError",
    "SourceTimeoutError",
    "TransportError",
    "UpstreamError",
]
