"""Tests for feed fetching against a local HTTP server."""

import asyncio

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from technews_ingest.config import Settings
from technews_ingest.errors import FetchError
from technews_ingest.ingest.fetcher import FeedFetcher

RSS = """<?xml version="1.0" encoding="UTF-8"?>
<rss version="2.0"
     xmlns:content="http://purl.org/rss/1.0/modules/content/"
     xmlns:dc="http://purl.org/dc/elements/1.1/">
  <channel>
    <title>Example Tech</title>
    <link>https://example.com</link>
    <description>Technology news</description>
    <item>
      <title>Tesla Reports Record Q3 Earnings</title>
      <link>https://example.com/tesla</link>
      <guid>tesla-1</guid>
      <pubDate>Thu, 17 Jul 2025 23:17:14 GMT</pubDate>
      <description>&lt;p&gt;Shares &lt;b&gt;jumped&lt;/b&gt; after the report&lt;/p&gt;</description>
      <content:encoded><![CDATA[<p>The full article body.</p>]]></content:encoded>
      <category>Finance</category>
      <dc:creator>Jane Doe</dc:creator>
      <enclosure url="https://example.com/tesla.jpg" type="image/jpeg" length="1024"/>
    </item>
    <item>
      <title>Second story</title>
      <link>https://example.com/second</link>
      <pubDate>garbage date</pubDate>
    </item>
  </channel>
</rss>
"""

ATOM = """<?xml version="1.0" encoding="utf-8"?>
<feed xmlns="http://www.w3.org/2005/Atom">
  <title>Atom Tech</title>
  <link href="https://atom.example.com/"/>
  <updated>2025-07-17T10:00:00Z</updated>
  <id>urn:atom-tech</id>
  <entry>
    <title>Chipmaker merger announced</title>
    <link href="https://atom.example.com/merger"/>
    <id>urn:merger</id>
    <updated>2025-07-17T10:00:00Z</updated>
    <summary>Two chipmakers agreed to merge.</summary>
    <content type="html">&lt;p&gt;Details of the merger.&lt;/p&gt;</content>
  </entry>
</feed>
"""


@pytest.fixture
async def feed_server():
    received: dict[str, str | None] = {}

    async def rss(request):
        received["user_agent"] = request.headers.get("User-Agent")
        return web.Response(text=RSS, content_type="application/rss+xml")

    async def atom(request):
        return web.Response(text=ATOM, content_type="application/atom+xml")

    async def missing(request):
        return web.Response(status=404, text="not found")

    async def plain(request):
        return web.Response(text="this is not a feed at all", content_type="text/plain")

    async def slow(request):
        await asyncio.sleep(1)
        return web.Response(text=RSS, content_type="application/rss+xml")

    app = web.Application()
    app.router.add_get("/rss", rss)
    app.router.add_get("/atom", atom)
    app.router.add_get("/missing", missing)
    app.router.add_get("/plain", plain)
    app.router.add_get("/slow", slow)

    server = TestServer(app)
    await server.start_server()
    server.received = received
    yield server
    await server.close()


def _url(server, path: str) -> str:
    return str(server.make_url(path))


async def test_fetch_rss(feed_server, settings):
    async with FeedFetcher(settings) as fetcher:
        feed = await fetcher.fetch(_url(feed_server, "/rss"))

    assert feed.title == "Example Tech"
    assert feed.description == "Technology news"
    assert len(feed.items) == 2

    first = feed.items[0]
    assert first.title == "Tesla Reports Record Q3 Earnings"
    assert first.link == "https://example.com/tesla"
    assert first.guid == "tesla-1"
    assert first.published == "Thu, 17 Jul 2025 23:17:14 GMT"
    assert first.summary is None
    assert "jumped" in first.content
    assert first.content_snippet == "Shares jumped after the report"
    assert "full article body" in first.content_encoded
    assert first.categories == ["Finance"]
    assert first.creator == "Jane Doe"
    assert first.enclosure.url == "https://example.com/tesla.jpg"
    assert first.enclosure.type == "image/jpeg"

    assert feed.items[1].published == "garbage date"


async def test_fetch_sends_user_agent(feed_server, settings):
    async with FeedFetcher(settings) as fetcher:
        await fetcher.fetch(_url(feed_server, "/rss"))

    assert feed_server.received["user_agent"] == settings.user_agent


async def test_fetch_atom(feed_server, settings):
    async with FeedFetcher(settings) as fetcher:
        feed = await fetcher.fetch(_url(feed_server, "/atom"))

    assert feed.title == "Atom Tech"
    item = feed.items[0]
    assert item.summary == "Two chipmakers agreed to merge."
    assert "Details of the merger." in item.content
    assert item.link == "https://atom.example.com/merger"


async def test_http_error_raises_fetch_error(feed_server, settings):
    async with FeedFetcher(settings) as fetcher:
        with pytest.raises(FetchError) as exc_info:
            await fetcher.fetch(_url(feed_server, "/missing"))

    assert exc_info.value.status == 404
    assert "404" in str(exc_info.value)


async def test_non_feed_document_raises_fetch_error(feed_server, settings):
    async with FeedFetcher(settings) as fetcher:
        with pytest.raises(FetchError, match="Failed to parse RSS feed"):
            await fetcher.fetch(_url(feed_server, "/plain"))


async def test_timeout_raises_fetch_error(feed_server, tmp_path):
    fast = Settings(_env_file=None, fetch_timeout_seconds=0.2, database_path=tmp_path / "x.db")
    async with FeedFetcher(fast) as fetcher:
        with pytest.raises(FetchError, match="timed out"):
            await fetcher.fetch(_url(feed_server, "/slow"))


async def test_unreachable_host_raises_fetch_error(settings):
    async with FeedFetcher(settings) as fetcher:
        with pytest.raises(FetchError):
            await fetcher.fetch("http://127.0.0.1:1/feed.xml")


async def test_fetch_requires_session(settings):
    with pytest.raises(RuntimeError):
        await FeedFetcher(settings).fetch("http://127.0.0.1:1/feed.xml")


async def test_validate_reports_feed_details(feed_server, settings):
    async with FeedFetcher(settings) as fetcher:
        ok = await fetcher.validate(_url(feed_server, "/rss"))
        bad = await fetcher.validate(_url(feed_server, "/missing"))

    assert ok.valid and ok.title == "Example Tech" and ok.item_count == 2
    assert not bad.valid and bad.error
