"""Pytest configuration and fixtures."""

import os
from datetime import UTC, datetime

import pytest

# Set test environment
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ["JSON_LOGGING"] = "false"

from technews_ingest.clock import FrozenClock  # noqa: E402
from technews_ingest.config import Settings  # noqa: E402
from technews_ingest.errors import FetchError  # noqa: E402
from technews_ingest.models import ParsedFeed, RawFeedItem, Source  # noqa: E402
from technews_ingest.processing.relevance import RelevanceScorer  # noqa: E402
from technews_ingest.storage.memory import InMemoryContentStore, InMemorySourceStore  # noqa: E402


class StaticFetcher:
    """Fetcher returning canned feeds (or raising canned errors) per URL."""

    def __init__(self, feeds: dict[str, ParsedFeed | Exception] | None = None):
        self.feeds = feeds or {}
        self.calls: list[str] = []

    async def fetch(self, url: str) -> ParsedFeed:
        self.calls.append(url)
        result = self.feeds.get(url)
        if result is None:
            raise FetchError(f"Failed to parse RSS feed: connect ECONNREFUSED {url}", url=url)
        if isinstance(result, Exception):
            raise result
        return result


def make_item(n: int, prefix: str = "https://example.com/news", **overrides) -> RawFeedItem:
    fields = {
        "title": f"Startup {n} closes record funding round as revenue and stock surge",
        "link": f"{prefix}/{n}",
        "published": "Thu, 17 Jul 2025 23:17:14 GMT",
        "content": f"<p>Story number {n}</p>",
        "content_snippet": f"Story number {n}",
        "guid": f"guid-{n}",
    }
    fields.update(overrides)
    return RawFeedItem(**fields)


def make_feed(items: list[RawFeedItem], title: str = "Example Tech") -> ParsedFeed:
    return ParsedFeed(title=title, description="Tech news", link="https://example.com", items=items)


@pytest.fixture
def settings(tmp_path) -> Settings:
    """Settings isolated from the environment's .env file."""
    return Settings(
        _env_file=None,
        batch_delay_seconds=0,
        database_path=tmp_path / "ingest.db",
        json_logging=False,
    )


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2025, 7, 18, 12, 0, tzinfo=UTC))


@pytest.fixture
def source() -> Source:
    return Source(id="src-1", name="Example Tech", url="https://example.com/feed.xml")


@pytest.fixture
def source_store(source) -> InMemorySourceStore:
    return InMemorySourceStore([source])


@pytest.fixture
def content_store(clock) -> InMemoryContentStore:
    return InMemoryContentStore(clock=clock)


@pytest.fixture
def scorer() -> RelevanceScorer:
    return RelevanceScorer()
