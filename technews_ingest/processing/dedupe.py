"""
Deduplication of freshly fetched items against recently stored content.

Feeds frequently re-emit the same story with reshuffled fields or a new
publish timestamp, so items are matched by URL and by case-folded title
against everything stored for the same source within a recency window.
"""

from dataclasses import dataclass, field

from ..logging import get_logger, log_processing_stage
from ..models import NormalizedContent, RecentContentRef
from .text_utils import title_key

logger = get_logger(__name__)


@dataclass
class DedupResult:
    """Items split into new ones and duplicates."""
    new_items: list[NormalizedContent] = field(default_factory=list)
    duplicates: list[NormalizedContent] = field(default_factory=list)


class RecentContentDeduplicator:
    """URL + title matching over a bounded recency window."""

    def __init__(self, window_hours: int = 48):
        if window_hours <= 0:
            raise ValueError("window_hours must be positive")
        self.window_hours = window_hours

    def filter_new(
        self,
        items: list[NormalizedContent],
        recent: list[RecentContentRef],
    ) -> DedupResult:
        """Keep items whose URL and title were not seen recently.

        Items accepted earlier in the same call count as seen, so repeated
        entries within one feed document collapse to one. Items with neither
        a URL nor a real title are always treated as new.
        """
        seen_urls = {ref.url for ref in recent if ref.url}
        seen_titles = {title_key(ref.title) for ref in recent if ref.title}
        seen_titles.discard("")

        result = DedupResult()
        for item in items:
            url = item.url or None
            title = title_key(item.title) if item.has_title else ""

            if (url and url in seen_urls) or (title and title in seen_titles):
                result.duplicates.append(item)
                continue

            if url:
                seen_urls.add(url)
            if title:
                seen_titles.add(title)
            result.new_items.append(item)

        logger.info(
            **log_processing_stage(
                stage="dedupe",
                input_count=len(items),
                output_count=len(result.new_items),
                duplicates=len(result.duplicates),
                window_hours=self.window_hours,
            )
        )
        return result
