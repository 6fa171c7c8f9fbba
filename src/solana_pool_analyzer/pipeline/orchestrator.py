"""Concurrent fan-out over all pool sources for one token pair."""

from __future__ import annotations

import asyncio
import time
from typing import Mapping, Sequence

from ..errors import AdapterError, SourceTimeoutError, TransportError
from ..ingestion.base import SourceAdapter
from ..ingestion.normalizers import PoolNormalizer
from ..monitoring.logger import get_logger
from ..monitoring.metrics import METRICS
from ..schemas import AggregateResult, SourceKind, SourceOutcome


class SourceOrchestrator:
    """Runs every adapter concurrently and merges their normalized output.

    Each adapter runs in its own task under its own timeout. Tasks hand their
    finished ``SourceOutcome`` to a single consumer loop, which appends to the
    aggregate in completion order; nothing else is shared between tasks.
    A failing or slow source is logged and dropped without affecting the
    others, so ``gather`` never raises for a per-source failure.
    """

    def __init__(
        self,
        adapters: Sequence[SourceAdapter],
        normalizers: Mapping[SourceKind, PoolNormalizer],
        timeout_seconds: float,
    ) -> None:
        missing = [adapter.source for adapter in adapters if adapter.source not in normalizers]
        if missing:
            raise ValueError(f"no normalizer registered for: {', '.join(s.value for s in missing)}")
        self._adapters = list(adapters)
        self._normalizers = normalizers
        self._timeout = timeout_seconds
        self._logger = get_logger(__name__)

    async def gather(self, token_a: str, token_b: str) -> AggregateResult:
        tasks = [
            asyncio.ensure_future(self._run_source(adapter, token_a, token_b))
            for adapter in self._adapters
        ]
        result = AggregateResult()
        for finished in asyncio.as_completed(tasks):
            outcome = await finished
            result.outcomes.append(outcome)
            result.records.extend(outcome.records)
            self._record_metrics(outcome)
        METRICS.gauge("pipeline.aggregate_size", len(result.records))
        self._logger.info(
            "Aggregated %d pools from %d sources (%d failed)",
            len(result.records),
            len(result.outcomes),
            len(result.failed_sources),
        )
        return result

    async def _run_source(self, adapter: SourceAdapter, token_a: str, token_b: str) -> SourceOutcome:
        source = adapter.source
        outcome = SourceOutcome(source=source)
        started = time.perf_counter()
        try:
            raw = await asyncio.wait_for(
                adapter.fetch(token_a, token_b, adapter.default_hints),
                timeout=self._timeout,
            )
        except asyncio.TimeoutError:
            outcome.error = SourceTimeoutError(
                source, f"no response within {self._timeout:g}s"
            )
        except AdapterError as exc:
            outcome.error = exc
        except Exception as exc:  # noqa: BLE001
            self._logger.exception("Unexpected failure in %s adapter", source.label)
            outcome.error = TransportError(source, f"unexpected error: {exc!r}")
        else:
            normalizer = self._normalizers[source]
            outcome.raw_count = len(raw)
            for entry in raw:
                try:
                    record = normalizer.normalize(entry)
                except Exception:  # noqa: BLE001
                    # One bad entry drops only itself.
                    self._logger.exception("Normalizer for %s failed on an entry", source.label)
                    METRICS.increment(f"normalizer.{source.value}.dropped")
                    continue
                if record is not None:
                    outcome.records.append(record)
        outcome.elapsed_seconds = time.perf_counter() - started
        if outcome.error is not None:
            self._logger.warning(
                "Source %s failed: %s",
                source.label,
                outcome.error,
                extra={"source": source.value, "error_kind": outcome.error.kind.value},
            )
        else:
            self._logger.debug(
                "Source %s returned %d entries, %d usable",
                source.label,
                outcome.raw_count,
                len(outcome.records),
            )
        return outcome

    def _record_metrics(self, outcome: SourceOutcome) -> None:
        prefix = f"source.{outcome.source.value}"
        METRICS.observe(f"{prefix}.latency_seconds", outcome.elapsed_seconds)
        if outcome.error is None:
            METRICS.increment(f"{prefix}.success")
            METRICS.increment(f"{prefix}.records", len(outcome.records))
        elif isinstance(outcome.error, SourceTimeoutError):
            METRICS.increment(f"{prefix}.timeout")
        else:
            METRICS.increment(f"{prefix}.failure")


__all__ = ["SourceOrchestrator"]
