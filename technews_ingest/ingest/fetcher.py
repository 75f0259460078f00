"""Feed retrieval and parsing."""

import asyncio
from typing import Any

import aiohttp
import feedparser

from ..config import Settings, get_settings
from ..errors import FetchError
from ..logging import get_logger
from ..models import Enclosure, FeedValidation, ParsedFeed, RawFeedItem
from ..processing.text_utils import clean_html_text

logger = get_logger(__name__)

_EXTENSION_FIELDS = ('media_content', 'media_thumbnail', 'comments')


class FeedFetcher:
    """Fetches one feed document and parses it into ``ParsedFeed``.

    Failures are always raised as ``FetchError``; retrying is left to callers.
    Use as an async context manager so the HTTP session is closed.
    """

    def __init__(
        self,
        settings: Settings | None = None,
        session: aiohttp.ClientSession | None = None,
    ):
        self.settings = settings or get_settings()
        self.session = session
        self._owns_session = session is None

    async def __aenter__(self) -> "FeedFetcher":
        if self.session is None:
            timeout = aiohttp.ClientTimeout(total=self.settings.fetch_timeout_seconds)
            connector = aiohttp.TCPConnector(limit=10, limit_per_host=2)
            self.session = aiohttp.ClientSession(
                timeout=timeout,
                connector=connector,
                headers={'User-Agent': self.settings.user_agent},
            )
            self._owns_session = True
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def close(self) -> None:
        if self.session is not None and self._owns_session:
            await self.session.close()
            self.session = None

    async def fetch(self, url: str) -> ParsedFeed:
        """Fetch and parse the feed at ``url``.

        Raises:
            FetchError: On transport errors, timeouts, HTTP errors or
                documents that are not a feed
        """
        if not self.session:
            raise RuntimeError("Session not initialized. Use async context manager.")

        logger.info("Fetching feed", url=url)

        try:
            async with self.session.get(
                url,
                timeout=aiohttp.ClientTimeout(total=self.settings.fetch_timeout_seconds),
                headers={'User-Agent': self.settings.user_agent},
            ) as response:
                response.raise_for_status()
                payload = await response.read()
        except aiohttp.ClientResponseError as e:
            raise FetchError(
                f"Failed to parse RSS feed: HTTP {e.status} {e.message}", url=url, status=e.status
            ) from e
        except asyncio.TimeoutError as e:
            raise FetchError(
                f"Failed to parse RSS feed: request timed out after {self.settings.fetch_timeout_seconds}s",
                url=url,
            ) from e
        except aiohttp.ClientError as e:
            raise FetchError(f"Failed to parse RSS feed: {e}", url=url) from e

        loop = asyncio.get_running_loop()
        parsed = await loop.run_in_executor(None, feedparser.parse, payload)
        feed = parse_feed_document(parsed, url)

        logger.info("Feed parsed", url=url, item_count=len(feed.items))
        return feed

    async def validate(self, url: str) -> FeedValidation:
        """Check whether ``url`` serves a usable feed."""
        try:
            feed = await self.fetch(url)
        except FetchError as e:
            return FeedValidation(valid=False, error=str(e))

        return FeedValidation(
            valid=True,
            title=feed.title,
            description=feed.description,
            item_count=len(feed.items),
        )


def parse_feed_document(parsed: Any, url: str = "") -> ParsedFeed:
    """Convert a ``feedparser`` result into ``ParsedFeed``.

    Raises:
        FetchError: If the document could not be read as a feed at all
    """
    meta = parsed.get('feed', {})
    entries = parsed.get('entries', [])

    if not entries and not meta.get('title') and (parsed.get('bozo') or not parsed.get('version')):
        reason = parsed.get('bozo_exception') or 'not a feed document'
        raise FetchError(f"Failed to parse RSS feed: {reason}", url=url)

    is_atom = str(parsed.get('version') or '').startswith('atom')
    items = [_entry_to_item(entry, is_atom) for entry in entries]

    return ParsedFeed(
        title=meta.get('title'),
        description=meta.get('subtitle') or meta.get('description'),
        link=meta.get('link'),
        items=items,
    )


def _entry_to_item(entry: Any, is_atom: bool) -> RawFeedItem:
    contents = entry.get('content') or []
    full_content = contents[0].get('value') if contents else None

    if is_atom:
        summary = entry.get('summary')
        content = full_content
        content_encoded = None
    else:
        # RSS <description> is the item content; <content:encoded> is the long form
        summary = None
        content = entry.get('summary')
        content_encoded = full_content

    snippet = clean_html_text(content or content_encoded or '') or None

    enclosure = None
    for link in entry.get('enclosures') or []:
        href = link.get('href') or link.get('url')
        if href:
            enclosure = Enclosure(url=href, type=link.get('type') or '')
            break

    categories = [tag.get('term') for tag in entry.get('tags') or [] if tag.get('term')]

    return RawFeedItem(
        title=entry.get('title'),
        link=entry.get('link'),
        published=entry.get('published') or entry.get('updated'),
        summary=summary,
        content=content,
        content_encoded=content_encoded,
        content_snippet=snippet,
        categories=categories,
        enclosure=enclosure,
        guid=entry.get('id'),
        creator=entry.get('author'),
        extensions={key: entry[key] for key in _EXTENSION_FIELDS if key in entry},
    )
