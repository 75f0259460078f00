"""SQLite-backed source and content stores (aiosqlite)."""

import uuid
from datetime import UTC, datetime, timedelta
from pathlib import Path

import aiosqlite
import orjson

from ..clock import Clock, SystemClock
from ..errors import PersistError
from ..logging import get_logger
from ..models import (
    NormalizedContent,
    RecentContentRef,
    Source,
    SourceHealthUpdate,
    SourceKind,
    SourceStatus,
)
from ..utils import ensure_directory

logger = get_logger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS sources (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    kind TEXT NOT NULL,
    url TEXT,
    status TEXT NOT NULL,
    enabled INTEGER NOT NULL DEFAULT 1,
    last_fetch_at TEXT,
    fetch_count INTEGER NOT NULL DEFAULT 0,
    error_count INTEGER NOT NULL DEFAULT 0,
    last_error TEXT
);

CREATE TABLE IF NOT EXISTS contents (
    id TEXT PRIMARY KEY,
    source_id TEXT NOT NULL,
    title TEXT NOT NULL,
    description TEXT,
    body TEXT,
    url TEXT,
    image_url TEXT,
    category TEXT NOT NULL,
    tags TEXT NOT NULL,
    source_url TEXT,
    published_at TEXT,
    metadata TEXT NOT NULL,
    created_at TEXT NOT NULL
);

CREATE UNIQUE INDEX IF NOT EXISTS idx_contents_source_url ON contents (source_id, url);
CREATE INDEX IF NOT EXISTS idx_contents_source_created ON contents (source_id, created_at);
"""

_CONTENT_COLUMNS = (
    "id, source_id, title, description, body, url, image_url, category, "
    "tags, source_url, published_at, metadata, created_at"
)


def _ts(dt: datetime | None) -> str | None:
    # Fixed-width UTC timestamps so string comparison matches time order
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat(timespec="microseconds")


def _parse_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value else None


class SQLiteStore:
    """Both ``SourceStore`` and ``ContentStore`` on one SQLite file.

    Every operation opens its own connection so concurrent runs never share
    a transaction.
    """

    def __init__(self, database_path: str | Path, clock: Clock | None = None):
        self.database_path = Path(database_path)
        self.clock = clock or SystemClock()

    def _connect(self) -> aiosqlite.Connection:
        return aiosqlite.connect(self.database_path, timeout=30)

    async def initialize(self) -> None:
        """Create the database file and schema if missing."""
        ensure_directory(self.database_path.parent)
        async with self._connect() as db:
            await db.executescript(SCHEMA)
            await db.commit()
        logger.info("SQLite store initialized", path=str(self.database_path))

    # ── Sources ────────────────────────────────────────────────────────────

    async def add(self, source: Source) -> Source:
        async with self._connect() as db:
            await db.execute(
                "INSERT INTO sources (id, name, kind, url, status, enabled, last_fetch_at, "
                "fetch_count, error_count, last_error) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                (
                    source.id,
                    source.name,
                    source.kind.value,
                    source.url,
                    source.status.value,
                    int(source.enabled),
                    _ts(source.last_fetch_at),
                    source.fetch_count,
                    source.error_count,
                    source.last_error,
                ),
            )
            await db.commit()
        return source

    async def get(self, source_id: str) -> Source | None:
        async with self._connect() as db:
            db.row_factory = aiosqlite.Row
            async with db.execute("SELECT * FROM sources WHERE id = ?", (source_id,)) as cursor:
                row = await cursor.fetchone()
        return self._row_to_source(row) if row else None

    async def list_active(self, kind: SourceKind) -> list[Source]:
        async with self._connect() as db:
            db.row_factory = aiosqlite.Row
            async with db.execute(
                "SELECT * FROM sources WHERE kind = ? AND enabled = 1 AND status = ? "
                "ORDER BY last_fetch_at IS NOT NULL, last_fetch_at, name",
                (kind.value, SourceStatus.ACTIVE.value),
            ) as cursor:
                rows = await cursor.fetchall()
        return [self._row_to_source(row) for row in rows]

    async def count_sources(self, kind: SourceKind) -> int:
        async with self._connect() as db:
            async with db.execute("SELECT COUNT(*) FROM sources WHERE kind = ?", (kind.value,)) as cursor:
                (count,) = await cursor.fetchone()
        return count

    async def update_health(self, source_id: str, update: SourceHealthUpdate) -> None:
        async with self._connect() as db:
            cursor = await db.execute(
                "UPDATE sources SET status = ?, fetch_count = ?, error_count = ?, "
                "last_error = ?, last_fetch_at = ? WHERE id = ?",
                (
                    update.status.value,
                    update.fetch_count,
                    update.error_count,
                    update.last_error,
                    _ts(update.last_fetch_at),
                    source_id,
                ),
            )
            await db.commit()
            if cursor.rowcount == 0:
                raise KeyError(f"Unknown source: {source_id}")

    @staticmethod
    def _row_to_source(row: aiosqlite.Row) -> Source:
        return Source(
            id=row["id"],
            name=row["name"],
            url=row["url"],
            kind=SourceKind(row["kind"]),
            status=SourceStatus(row["status"]),
            enabled=bool(row["enabled"]),
            last_fetch_at=_parse_ts(row["last_fetch_at"]),
            fetch_count=row["fetch_count"],
            error_count=row["error_count"],
            last_error=row["last_error"],
        )

    # ── Content ────────────────────────────────────────────────────────────

    async def find_recent(self, source_id: str, window_hours: int) -> list[RecentContentRef]:
        cutoff = self.clock.now() - timedelta(hours=window_hours)
        async with self._connect() as db:
            async with db.execute(
                "SELECT url, title FROM contents WHERE source_id = ? AND created_at >= ?",
                (source_id, _ts(cutoff)),
            ) as cursor:
                rows = await cursor.fetchall()
        return [RecentContentRef(url=url, title=title) for url, title in rows]

    async def create_many(self, items: list[NormalizedContent]) -> int:
        if not items:
            return 0
        created_at = _ts(self.clock.now())
        rows = [self._content_row(item, created_at) for item in items]
        try:
            async with self._connect() as db:
                await db.executemany(
                    f"INSERT INTO contents ({_CONTENT_COLUMNS}) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    rows,
                )
                await db.commit()
        except aiosqlite.Error as e:
            raise PersistError(f"Bulk insert failed: {e}") from e
        return len(rows)

    async def create(self, item: NormalizedContent) -> str:
        row = self._content_row(item, _ts(self.clock.now()))
        try:
            async with self._connect() as db:
                await db.execute(
                    f"INSERT INTO contents ({_CONTENT_COLUMNS}) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)",
                    row,
                )
                await db.commit()
        except aiosqlite.Error as e:
            raise PersistError(f"Insert failed for '{item.title}': {e}") from e
        return row[0]

    async def delete_older_than(self, cutoff: datetime) -> int:
        async with self._connect() as db:
            cursor = await db.execute("DELETE FROM contents WHERE created_at < ?", (_ts(cutoff),))
            await db.commit()
            return cursor.rowcount

    async def count_content(self, source_id: str | None = None) -> int:
        query = "SELECT COUNT(*) FROM contents"
        params: tuple = ()
        if source_id is not None:
            query += " WHERE source_id = ?"
            params = (source_id,)
        async with self._connect() as db:
            async with db.execute(query, params) as cursor:
                (count,) = await cursor.fetchone()
        return count

    @staticmethod
    def _content_row(item: NormalizedContent, created_at: str | None) -> tuple:
        return (
            uuid.uuid4().hex,
            item.source_id,
            item.title,
            item.description,
            item.body,
            item.url,
            item.image_url,
            item.category,
            orjson.dumps(item.tags).decode(),
            item.source_url,
            _ts(item.published_at),
            orjson.dumps(item.metadata, default=str).decode(),
            created_at,
        )
