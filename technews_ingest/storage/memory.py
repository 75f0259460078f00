"""In-memory stores, used for tests and dry runs."""

import uuid
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from typing import Callable

from ..clock import Clock, SystemClock
from ..errors import PersistError
from ..models import (
    NormalizedContent,
    RecentContentRef,
    Source,
    SourceHealthUpdate,
    SourceKind,
    SourceStatus,
)

_NEVER = datetime.min.replace(tzinfo=UTC)


class InMemorySourceStore:
    """Source records held in a dict keyed by id."""

    def __init__(self, sources: list[Source] | None = None):
        self.sources: dict[str, Source] = {}
        self.health_updates: list[tuple[str, SourceHealthUpdate]] = []
        for source in sources or []:
            self.sources[source.id] = source

    async def list_active(self, kind: SourceKind) -> list[Source]:
        active = [
            replace(source)
            for source in self.sources.values()
            if source.kind == kind and source.enabled and source.status == SourceStatus.ACTIVE
        ]
        return sorted(
            active,
            key=lambda s: (s.last_fetch_at is not None, s.last_fetch_at or _NEVER, s.name),
        )

    async def get(self, source_id: str) -> Source | None:
        source = self.sources.get(source_id)
        return replace(source) if source else None

    async def update_health(self, source_id: str, update: SourceHealthUpdate) -> None:
        source = self.sources.get(source_id)
        if source is None:
            raise KeyError(f"Unknown source: {source_id}")
        source.status = update.status
        source.fetch_count = update.fetch_count
        source.error_count = update.error_count
        source.last_error = update.last_error
        source.last_fetch_at = update.last_fetch_at
        self.health_updates.append((source_id, update))

    async def add(self, source: Source) -> Source:
        self.sources[source.id] = source
        return replace(source)

    async def count_sources(self, kind: SourceKind) -> int:
        return sum(1 for source in self.sources.values() if source.kind == kind)


@dataclass
class StoredContent:
    id: str
    content: NormalizedContent
    created_at: datetime


class InMemoryContentStore:
    """Content rows kept in a list.

    ``fail_bulk`` makes ``create_many`` raise; ``fail_item`` is a predicate
    selecting items for which ``create`` raises.
    """

    def __init__(
        self,
        clock: Clock | None = None,
        fail_bulk: bool = False,
        fail_item: Callable[[NormalizedContent], bool] | None = None,
    ):
        self.clock = clock or SystemClock()
        self.rows: list[StoredContent] = []
        self.fail_bulk = fail_bulk
        self.fail_item = fail_item
        self.bulk_calls = 0
        self.single_calls = 0

    async def find_recent(self, source_id: str, window_hours: int) -> list[RecentContentRef]:
        cutoff = self.clock.now() - timedelta(hours=window_hours)
        return [
            RecentContentRef(url=row.content.url, title=row.content.title)
            for row in self.rows
            if row.content.source_id == source_id and row.created_at >= cutoff
        ]

    async def create_many(self, items: list[NormalizedContent]) -> int:
        self.bulk_calls += 1
        if self.fail_bulk:
            raise PersistError("bulk insert rejected")
        for item in items:
            self._insert(item)
        return len(items)

    async def create(self, item: NormalizedContent) -> str:
        self.single_calls += 1
        if self.fail_item and self.fail_item(item):
            raise PersistError(f"insert rejected: {item.title}")
        return self._insert(item)

    async def delete_older_than(self, cutoff: datetime) -> int:
        before = len(self.rows)
        self.rows = [row for row in self.rows if row.created_at >= cutoff]
        return before - len(self.rows)

    def _insert(self, item: NormalizedContent) -> str:
        content_id = uuid.uuid4().hex
        self.rows.append(StoredContent(id=content_id, content=item, created_at=self.clock.now()))
        return content_id

    def for_source(self, source_id: str) -> list[NormalizedContent]:
        return [row.content for row in self.rows if row.content.source_id == source_id]
