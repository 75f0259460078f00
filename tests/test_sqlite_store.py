"""Tests for the SQLite store."""

from datetime import timedelta

import pytest

from conftest import StaticFetcher, make_feed, make_item
from technews_ingest.coordinator import SourceRunCoordinator
from technews_ingest.errors import PersistError
from technews_ingest.ingest.normalizer import normalize_item
from technews_ingest.maintenance import ContentRetention
from technews_ingest.models import Source, SourceHealthUpdate, SourceKind, SourceStatus
from technews_ingest.storage.sqlite import SQLiteStore


@pytest.fixture
async def store(tmp_path, clock, source):
    store = SQLiteStore(tmp_path / "db" / "ingest.db", clock)
    await store.initialize()
    await store.add(source)
    return store


async def test_initialize_is_idempotent(store):
    await store.initialize()
    assert await store.get("src-1") is not None


async def test_source_round_trip(store, source):
    loaded = await store.get("src-1")

    assert loaded == source
    assert await store.get("missing") is None


async def test_list_active_returns_enabled_active_sources(store):
    await store.add(Source(id="off", name="Disabled", url="https://a.example/feed", enabled=False))
    await store.add(Source(id="dead", name="Dead", url="https://b.example/feed", status=SourceStatus.INACTIVE))
    await store.add(Source(id="err", name="Erroring", url="https://c.example/feed", status=SourceStatus.ERROR))

    active = await store.list_active(SourceKind.RSS)

    assert [s.id for s in active] == ["src-1"]


async def test_list_active_orders_stalest_first(store, clock):
    await store.add(Source(id="recent", name="Recent", url="https://a.example/feed", last_fetch_at=clock.now()))
    await store.add(Source(
        id="stale", name="Stale", url="https://b.example/feed", last_fetch_at=clock.now() - timedelta(days=1)
    ))

    active = await store.list_active(SourceKind.RSS)

    # src-1 has never been fetched
    assert [s.id for s in active] == ["src-1", "stale", "recent"]


async def test_update_health(store, clock):
    await store.update_health(
        "src-1",
        SourceHealthUpdate(
            status=SourceStatus.ERROR,
            fetch_count=3,
            error_count=2,
            last_error="HTTP 500",
            last_fetch_at=clock.now(),
        ),
    )

    loaded = await store.get("src-1")
    assert loaded.status == SourceStatus.ERROR
    assert loaded.fetch_count == 3
    assert loaded.error_count == 2
    assert loaded.last_error == "HTTP 500"
    assert loaded.last_fetch_at == clock.now()


async def test_update_health_unknown_source(store):
    with pytest.raises(KeyError):
        await store.update_health("missing", SourceHealthUpdate(SourceStatus.ACTIVE, 0, 0, None, None))


async def test_find_recent_respects_window(store, clock):
    await store.create(normalize_item(make_item(1), "src-1"))
    clock.advance(hours=30)
    await store.create(normalize_item(make_item(2), "src-1"))
    clock.advance(hours=30)

    recent = await store.find_recent("src-1", 48)

    assert [r.url for r in recent] == ["https://example.com/news/2"]
    assert await store.find_recent("other", 48) == []


async def test_create_many_is_all_or_nothing(store):
    items = [normalize_item(make_item(n), "src-1") for n in range(3)]
    items.append(normalize_item(make_item(0), "src-1"))

    with pytest.raises(PersistError):
        await store.create_many(items)

    assert await store.count_content("src-1") == 0


async def test_content_fields_are_stored(store):
    item = normalize_item(make_item(1, categories=["AI", "Chips"]), "src-1")

    assert await store.create_many([item]) == 1
    assert await store.count_content() == 1
    with pytest.raises(PersistError):
        await store.create(item)


async def test_delete_older_than(store, clock):
    await store.create(normalize_item(make_item(1), "src-1"))
    clock.advance(days=31)
    await store.create(normalize_item(make_item(2), "src-1"))

    deleted = await ContentRetention(store, 30, clock)()

    assert deleted == 1
    assert await store.count_content("src-1") == 1


async def test_stale_duplicate_falls_back_to_single_inserts(store, clock, scorer, settings):
    # Stored long enough ago to fall outside the dedup window
    await store.create(normalize_item(make_item(2), "src-1"))
    clock.advance(hours=72)

    feed = make_feed([make_item(n) for n in range(5)])
    coordinator = SourceRunCoordinator(
        store,
        store,
        StaticFetcher({"https://example.com/feed.xml": feed}),
        scorer,
        clock=clock,
        settings=settings,
    )

    result = await coordinator.run("src-1")

    assert result.success
    assert result.new_items_count == 4
    assert await store.count_content("src-1") == 5
    source = await store.get("src-1")
    assert source.status == SourceStatus.ACTIVE
    assert source.fetch_count == 1
    assert source.last_fetch_at == clock.now()
