"""Single-source ingest run: fetch, normalize, dedup, score, persist."""

from typing import Protocol

from .clock import Clock, SystemClock
from .config import Settings, get_settings
from .errors import IngestError
from .ingest.normalizer import normalize_items
from .logging import PerformanceLogger, get_logger, log_error, log_processing_stage
from .models import NormalizedContent, ParsedFeed, RunResult, Source, SourceHealthUpdate, SourceStatus
from .processing.dedupe import RecentContentDeduplicator
from .processing.relevance import RelevanceScorer, ScoringInput
from .storage.interfaces import ContentStore, SourceStore

logger = get_logger(__name__)


class FeedSource(Protocol):
    async def fetch(self, url: str) -> ParsedFeed:
        ...


class SourceRunCoordinator:
    """Runs one source through the pipeline and records its health.

    Failures never escape ``run``; they are written to the source record and
    returned as an unsuccessful ``RunResult``.
    """

    def __init__(
        self,
        source_store: SourceStore,
        content_store: ContentStore,
        fetcher: FeedSource,
        scorer: RelevanceScorer,
        deduplicator: RecentContentDeduplicator | None = None,
        clock: Clock | None = None,
        settings: Settings | None = None,
    ):
        self.settings = settings or get_settings()
        self.source_store = source_store
        self.content_store = content_store
        self.fetcher = fetcher
        self.scorer = scorer
        self.deduplicator = deduplicator or RecentContentDeduplicator(self.settings.recency_window_hours)
        self.clock = clock or SystemClock()

    async def run(self, source_id: str) -> RunResult:
        """Process one source end to end."""
        source: Source | None = None
        try:
            source = await self.source_store.get(source_id)
            if source is None or not source.url:
                raise IngestError("Source not found or URL missing")

            with PerformanceLogger("source_run", logger, source_id=source_id, source=source.name):
                result = await self._process(source)

        except Exception as e:
            message = str(e) or e.__class__.__name__
            logger.error(**log_error(e, context="source_run", source_id=source_id))
            await self._record_failure(source_id, source, message)
            return RunResult(source_id=source_id, success=False, error=message)

        await self._record_success(source)
        return result

    async def _process(self, source: Source) -> RunResult:
        feed = await self.fetcher.fetch(source.url)
        items = normalize_items(feed.items, source.id, self.settings.summary_max_length)

        recent = await self.content_store.find_recent(source.id, self.deduplicator.window_hours)
        dedup = self.deduplicator.filter_new(items, recent)

        candidates = dedup.new_items
        filtered_count = 0
        if self.settings.relevance_filter_enabled and candidates:
            candidates, filtered_count = self._apply_relevance(source, candidates)

        saved = await self._persist(source, candidates) if candidates else 0

        logger.info(
            **log_processing_stage(
                stage="source_run",
                input_count=len(feed.items),
                output_count=saved,
                source_id=source.id,
                duplicates=len(dedup.duplicates),
                filtered=filtered_count,
            )
        )

        return RunResult(
            source_id=source.id,
            success=True,
            new_items_count=saved,
            fetched_count=len(feed.items),
            duplicate_count=len(dedup.duplicates),
            filtered_count=filtered_count,
        )

    def _apply_relevance(
        self, source: Source, items: list[NormalizedContent]
    ) -> tuple[list[NormalizedContent], int]:
        decisions = self.scorer.filter_batch(
            ScoringInput(title=item.title, description=item.description, body=item.body)
            for item in items
        )
        kept = [items[d.index] for d in decisions if not d.decision.should_filter]

        stats = self.scorer.get_filter_stats(decisions)
        logger.info(
            "Relevance filter applied",
            source_id=source.id,
            total=stats.total,
            kept=stats.kept,
            filtered=stats.filtered,
            filter_rate=round(stats.filter_rate, 1),
            reasons=stats.reasons,
        )
        return kept, stats.filtered

    async def _persist(self, source: Source, items: list[NormalizedContent]) -> int:
        """Bulk insert, falling back to one-at-a-time inserts."""
        try:
            saved = await self.content_store.create_many(items)
            logger.info("Stored new content", source_id=source.id, count=saved)
            return saved
        except Exception as e:
            logger.warning(
                "Bulk insert failed, inserting items individually",
                source_id=source.id,
                error=str(e),
            )

        saved = 0
        for item in items:
            try:
                await self.content_store.create(item)
                saved += 1
            except Exception as e:
                logger.error(
                    "Failed to store item",
                    source_id=source.id,
                    title=item.title,
                    error=str(e),
                )
        logger.info("Stored new content individually", source_id=source.id, count=saved, attempted=len(items))
        return saved

    async def _record_success(self, source: Source) -> None:
        update = SourceHealthUpdate(
            status=SourceStatus.ACTIVE,
            fetch_count=source.fetch_count + 1,
            error_count=source.error_count,
            last_error=None,
            last_fetch_at=self.clock.now(),
        )
        try:
            await self.source_store.update_health(source.id, update)
        except Exception as e:
            logger.error(**log_error(e, context="update_source_health", source_id=source.id))

    async def _record_failure(self, source_id: str, source: Source | None, message: str) -> None:
        if source is None:
            logger.warning("Cannot record failure for unknown source", source_id=source_id)
            return

        update = SourceHealthUpdate(
            status=SourceStatus.ERROR,
            fetch_count=source.fetch_count,
            error_count=source.error_count + 1,
            last_error=message,
            last_fetch_at=source.last_fetch_at,
        )
        try:
            await self.source_store.update_health(source_id, update)
        except Exception as e:
            logger.error(**log_error(e, context="update_source_health", source_id=source_id))
