"""Wiring of one instance of each pipeline component."""

from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import AsyncIterator

from .clock import Clock, SystemClock
from .config import FilterConfig, Settings, get_filter_config, get_settings
from .coordinator import SourceRunCoordinator
from .ingest.fetcher import FeedFetcher
from .maintenance import ContentRetention
from .orchestrator import BatchOrchestrator
from .processing.dedupe import RecentContentDeduplicator
from .processing.relevance import RelevanceScorer
from .scheduler import Scheduler
from .storage.sqlite import SQLiteStore


@dataclass
class Pipeline:
    settings: Settings
    store: SQLiteStore
    fetcher: FeedFetcher
    scorer: RelevanceScorer
    coordinator: SourceRunCoordinator
    orchestrator: BatchOrchestrator
    scheduler: Scheduler


def build_pipeline(
    settings: Settings,
    store: SQLiteStore,
    fetcher: FeedFetcher,
    filter_config: FilterConfig | None = None,
    clock: Clock | None = None,
) -> Pipeline:
    clock = clock or SystemClock()
    scorer = RelevanceScorer(filter_config or get_filter_config(settings))
    coordinator = SourceRunCoordinator(
        source_store=store,
        content_store=store,
        fetcher=fetcher,
        scorer=scorer,
        deduplicator=RecentContentDeduplicator(settings.recency_window_hours),
        clock=clock,
        settings=settings,
    )
    orchestrator = BatchOrchestrator(store, coordinator, settings=settings)
    scheduler = Scheduler(
        orchestrator,
        cleanup=ContentRetention(store, settings.content_retention_days, clock),
        settings=settings,
        clock=clock,
    )
    return Pipeline(
        settings=settings,
        store=store,
        fetcher=fetcher,
        scorer=scorer,
        coordinator=coordinator,
        orchestrator=orchestrator,
        scheduler=scheduler,
    )


@asynccontextmanager
async def open_pipeline(
    settings: Settings | None = None,
    filter_config: FilterConfig | None = None,
) -> AsyncIterator[Pipeline]:
    """Open the SQLite store and HTTP session, yield a wired pipeline, clean up."""
    settings = settings or get_settings()
    clock = SystemClock()
    store = SQLiteStore(settings.database_path, clock)
    await store.initialize()

    async with FeedFetcher(settings) as fetcher:
        pipeline = build_pipeline(settings, store, fetcher, filter_config, clock)
        try:
            yield pipeline
        finally:
            pipeline.scheduler.stop_all()
            await pipeline.scheduler.wait_stopped()
