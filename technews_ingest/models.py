"""Domain records shared across the ingestion pipeline."""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any

UNTITLED = "Untitled"
DEFAULT_CATEGORY = "tech"


class SourceKind(Enum):
    """Kinds of content sources. Only polled feeds are ingested here."""
    RSS = "rss"


class SourceStatus(Enum):
    """Health status of a source."""
    ACTIVE = "active"
    ERROR = "error"
    RATE_LIMITED = "rate_limited"
    INACTIVE = "inactive"


@dataclass
class Source:
    """A configured external feed."""
    id: str
    name: str
    url: str | None
    kind: SourceKind = SourceKind.RSS
    status: SourceStatus = SourceStatus.ACTIVE
    enabled: bool = True
    last_fetch_at: datetime | None = None
    fetch_count: int = 0
    error_count: int = 0
    last_error: str | None = None


@dataclass(frozen=True)
class SourceHealthUpdate:
    """Health fields written back after a run."""
    status: SourceStatus
    fetch_count: int
    error_count: int
    last_error: str | None
    last_fetch_at: datetime | None


@dataclass(frozen=True)
class Enclosure:
    url: str
    type: str = ""


@dataclass
class RawFeedItem:
    """One item as parsed from a feed document."""
    title: str | None = None
    link: str | None = None
    published: str | None = None
    summary: str | None = None
    content: str | None = None
    content_encoded: str | None = None
    content_snippet: str | None = None
    categories: list[str] = field(default_factory=list)
    enclosure: Enclosure | None = None
    guid: str | None = None
    creator: str | None = None
    extensions: dict[str, Any] = field(default_factory=dict)


@dataclass
class ParsedFeed:
    """A fetched and parsed feed document."""
    title: str | None
    description: str | None
    link: str | None
    items: list[RawFeedItem] = field(default_factory=list)


@dataclass
class NormalizedContent:
    """Feed item mapped into the platform's content shape."""
    title: str
    source_id: str
    description: str | None = None
    body: str | None = None
    url: str | None = None
    image_url: str | None = None
    category: str = DEFAULT_CATEGORY
    tags: list[str] = field(default_factory=list)
    source_url: str | None = None
    published_at: datetime | None = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def has_title(self) -> bool:
        return bool(self.title) and self.title != UNTITLED


@dataclass(frozen=True)
class RecentContentRef:
    """Identifiers of recently stored content, used for deduplication."""
    url: str | None
    title: str


@dataclass(frozen=True)
class FilterDecision:
    """Outcome of relevance scoring for one item."""
    should_filter: bool
    reason: str
    include_score: float
    exclude_score: float


@dataclass(frozen=True)
class FeedValidation:
    """Result of checking whether a URL serves a usable feed."""
    valid: bool
    title: str | None = None
    description: str | None = None
    item_count: int | None = None
    error: str | None = None


@dataclass
class RunResult:
    """Outcome of one source run."""
    source_id: str
    success: bool
    new_items_count: int = 0
    error: str | None = None
    fetched_count: int = 0
    duplicate_count: int = 0
    filtered_count: int = 0


@dataclass(frozen=True)
class BatchError:
    source_id: str
    error: str


@dataclass
class BatchResult:
    """Aggregate outcome of one batch across all eligible sources."""
    total_sources: int = 0
    success_count: int = 0
    total_new_items: int = 0
    errors: list[BatchError] = field(default_factory=list)
    duration_seconds: float | None = None

    @property
    def error_count(self) -> int:
        return len(self.errors)
