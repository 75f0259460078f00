"""Collaborator interfaces the pipeline reads from and writes to."""

from datetime import datetime
from typing import Protocol

from ..models import (
    NormalizedContent,
    RecentContentRef,
    Source,
    SourceHealthUpdate,
    SourceKind,
)


class SourceStore(Protocol):
    async def list_active(self, kind: SourceKind) -> list[Source]:
        """Enabled, active sources of ``kind``, least recently fetched first."""
        ...

    async def get(self, source_id: str) -> Source | None:
        ...

    async def update_health(self, source_id: str, update: SourceHealthUpdate) -> None:
        ...

    async def add(self, source: Source) -> Source:
        ...

    async def count_sources(self, kind: SourceKind) -> int:
        """Number of sources of ``kind`` in any state."""
        ...


class ContentStore(Protocol):
    async def find_recent(self, source_id: str, window_hours: int) -> list[RecentContentRef]:
        """Identifiers of content stored for ``source_id`` within the window."""
        ...

    async def create_many(self, items: list[NormalizedContent]) -> int:
        """Insert all items in one operation; raise ``PersistError`` on failure."""
        ...

    async def create(self, item: NormalizedContent) -> str:
        """Insert one item and return its id."""
        ...

    async def delete_older_than(self, cutoff: datetime) -> int:
        ...
