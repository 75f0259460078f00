"""Housekeeping jobs run by the scheduler."""

from datetime import timedelta

from .clock import Clock, SystemClock
from .logging import get_logger
from .storage.interfaces import ContentStore
from .utils import format_datetime_iso

logger = get_logger(__name__)


class ContentRetention:
    """Deletes stored content older than the retention period."""

    def __init__(self, content_store: ContentStore, retention_days: int, clock: Clock | None = None):
        if retention_days <= 0:
            raise ValueError("retention_days must be positive")
        self.content_store = content_store
        self.retention_days = retention_days
        self.clock = clock or SystemClock()

    async def __call__(self) -> int:
        cutoff = self.clock.now() - timedelta(days=self.retention_days)
        deleted = await self.content_store.delete_older_than(cutoff)
        logger.info("Expired content removed", deleted=deleted, cutoff=format_datetime_iso(cutoff))
        return deleted
