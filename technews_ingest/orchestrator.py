"""Batch fan-out of source runs under a concurrency cap."""

import asyncio
import time
from typing import Protocol

from .config import Settings, get_settings
from .logging import get_logger, log_processing_stage
from .models import BatchError, BatchResult, RunResult, Source, SourceKind
from .storage.interfaces import SourceStore
from .utils import chunk_list

logger = get_logger(__name__)

ALREADY_RUNNING = "run already in progress"


class SourceRunner(Protocol):
    async def run(self, source_id: str) -> RunResult:
        ...


class BatchOrchestrator:
    """Runs every pollable source, ``max_concurrent`` at a time.

    Sources are processed in fixed-size chunks; each chunk is settled in full
    before the next one starts, with a pause in between. A source is never run
    twice concurrently, even across overlapping batches.
    """

    def __init__(
        self,
        source_store: SourceStore,
        runner: SourceRunner,
        max_concurrent: int | None = None,
        batch_delay: float | None = None,
        kind: SourceKind = SourceKind.RSS,
        settings: Settings | None = None,
    ):
        settings = settings or get_settings()
        self.source_store = source_store
        self.runner = runner
        self.max_concurrent = max_concurrent or settings.max_concurrent_sources
        self.batch_delay = settings.batch_delay_seconds if batch_delay is None else batch_delay
        self.kind = kind
        self._in_flight: set[str] = set()

        if self.max_concurrent <= 0:
            raise ValueError("max_concurrent must be positive")

    @property
    def in_flight(self) -> frozenset[str]:
        return frozenset(self._in_flight)

    async def run_all(self) -> BatchResult:
        """Run all active sources and aggregate the outcome."""
        started = time.perf_counter()
        sources = await self.source_store.list_active(self.kind)
        logger.info("Starting batch", source_count=len(sources), max_concurrent=self.max_concurrent)
        result = await self.run_sources(sources)
        result.duration_seconds = time.perf_counter() - started

        logger.info(
            "Batch completed",
            total_sources=result.total_sources,
            success_count=result.success_count,
            total_new_items=result.total_new_items,
            error_count=result.error_count,
            duration=result.duration_seconds,
        )
        if result.errors:
            logger.warning(
                "Batch finished with source errors",
                errors=[{"source_id": e.source_id, "error": e.error} for e in result.errors],
            )
        return result

    async def run_sources(self, sources: list[Source]) -> BatchResult:
        unique: dict[str, Source] = {}
        for source in sources:
            unique.setdefault(source.id, source)
        ordered = list(unique.values())

        result = BatchResult(total_sources=len(ordered))
        chunks = chunk_list(ordered, self.max_concurrent)

        for position, chunk in enumerate(chunks):
            runnable = []
            for source in chunk:
                if source.id in self._in_flight:
                    logger.warning("Skipping source with a run in progress", source_id=source.id)
                    result.errors.append(BatchError(source.id, ALREADY_RUNNING))
                else:
                    self._in_flight.add(source.id)
                    runnable.append(source)

            try:
                outcomes = await asyncio.gather(
                    *(self.runner.run(source.id) for source in runnable),
                    return_exceptions=True,
                )
            finally:
                for source in runnable:
                    self._in_flight.discard(source.id)

            for source, outcome in zip(runnable, outcomes, strict=True):
                self._collect(result, source, outcome)

            logger.debug(
                **log_processing_stage(
                    stage="batch_chunk",
                    input_count=len(chunk),
                    output_count=sum(1 for o in outcomes if isinstance(o, RunResult) and o.success),
                    chunk=position + 1,
                    chunks=len(chunks),
                )
            )

            if position < len(chunks) - 1 and self.batch_delay > 0:
                await asyncio.sleep(self.batch_delay)

        return result

    @staticmethod
    def _collect(result: BatchResult, source: Source, outcome: RunResult | BaseException) -> None:
        if isinstance(outcome, BaseException):
            if isinstance(outcome, asyncio.CancelledError):
                raise outcome
            logger.error("Source run raised", source_id=source.id, error=str(outcome))
            result.errors.append(BatchError(source.id, str(outcome) or "Run raised an exception"))
        elif outcome.success:
            result.success_count += 1
            result.total_new_items += outcome.new_items_count
        else:
            result.errors.append(BatchError(source.id, outcome.error or "Unknown error"))
