"""Tests for the command line interface."""

import asyncio
from pathlib import Path

import pytest
from click.testing import CliRunner

from conftest import make_feed, make_item
from technews_ingest.cli import cli
from technews_ingest.ingest.fetcher import FeedFetcher
from technews_ingest.logging import setup_logging
from technews_ingest.models import Source, SourceKind, SourceStatus
from technews_ingest.storage.sqlite import SQLiteStore

DEFAULT_SOURCES = Path(__file__).parent.parent / "config" / "default_sources.yaml"


@pytest.fixture(autouse=True)
def restore_logging():
    # The CLI points log output at the runner's captured stream
    yield
    setup_logging()


def test_check_filter_keeps_business_news():
    result = CliRunner().invoke(cli, ["check-filter", "Tesla Reports Record Q3 Earnings, Stock Surges 12%"])

    assert result.exit_code == 0
    assert "kept" in result.output
    assert "relevant" in result.output


def test_check_filter_drops_dev_content():
    result = CliRunner().invoke(
        cli, ["check-filter", "How to Build a React App with TypeScript and Node.js"]
    )

    assert result.exit_code == 0
    assert "filtered" in result.output
    assert "technical/dev content" in result.output


def test_check_filter_with_rule_file(tmp_path):
    rules = tmp_path / "rules.yaml"
    rules.write_text("min_include_score: 0.0\nmax_exclude_score: 1.0\n")

    result = CliRunner().invoke(
        cli, ["--rules", str(rules), "check-filter", "Weather is nice today"]
    )

    assert result.exit_code == 0
    assert "kept" in result.output


def test_help_lists_commands():
    result = CliRunner().invoke(cli, ["--help"])

    assert result.exit_code == 0
    for command in ("run-once", "serve", "add-source", "fetch-source", "seed-sources", "validate-feed", "check-filter"):
        assert command in result.output


def _seeded_database(path: Path, *sources: Source) -> SQLiteStore:
    store = SQLiteStore(path)

    async def _seed():
        await store.initialize()
        for source in sources:
            await store.add(source)

    asyncio.run(_seed())
    return store


def test_fetch_source_recovers_errored_source(tmp_path, monkeypatch):
    database = tmp_path / "ingest.db"
    store = _seeded_database(database, Source(
        id="broken", name="Broken", url="https://example.com/feed.xml",
        status=SourceStatus.ERROR, error_count=3, last_error="HTTP 503",
    ))

    async def fake_fetch(self, url):
        return make_feed([make_item(1), make_item(2)])

    monkeypatch.setattr(FeedFetcher, "fetch", fake_fetch)

    result = CliRunner().invoke(cli, ["--database", str(database), "fetch-source", "broken"])

    assert result.exit_code == 0
    source = asyncio.run(store.get("broken"))
    assert source.status == SourceStatus.ACTIVE
    assert source.last_error is None
    assert source.error_count == 3
    assert asyncio.run(store.count_content("broken")) == 2


def test_fetch_source_failure_exits_2(tmp_path, monkeypatch):
    database = tmp_path / "ingest.db"
    _seeded_database(database, Source(id="src-1", name="Example", url="https://example.com/feed.xml"))

    async def failing_fetch(self, url):
        raise RuntimeError("connection reset")

    monkeypatch.setattr(FeedFetcher, "fetch", failing_fetch)

    result = CliRunner().invoke(cli, ["--database", str(database), "fetch-source", "src-1"])

    assert result.exit_code == 2
    assert "connection reset" in result.output


def test_fetch_source_unknown_id(tmp_path):
    database = tmp_path / "ingest.db"
    _seeded_database(database)

    result = CliRunner().invoke(cli, ["--database", str(database), "fetch-source", "nope"])

    assert result.exit_code == 1
    assert "Unknown source: nope" in result.output


def test_seed_sources_fills_empty_database(tmp_path):
    database = tmp_path / "ingest.db"
    runner = CliRunner()

    first = runner.invoke(cli, ["--database", str(database), "seed-sources", "--file", str(DEFAULT_SOURCES)])
    second = runner.invoke(cli, ["--database", str(database), "seed-sources", "--file", str(DEFAULT_SOURCES)])

    assert first.exit_code == 0
    assert "Seeded 20 sources" in first.output
    assert second.exit_code == 0
    assert "nothing seeded" in second.output
    assert asyncio.run(SQLiteStore(database).count_sources(SourceKind.RSS)) == 20


def test_seed_sources_rejects_bad_file(tmp_path):
    bad = tmp_path / "sources.yaml"
    bad.write_text("sources: nope\n")

    result = CliRunner().invoke(
        cli, ["--database", str(tmp_path / "ingest.db"), "seed-sources", "--file", str(bad)]
    )

    assert result.exit_code == 1
    assert "sources" in result.output


def test_log_file_option_writes_log_lines(tmp_path):
    log_file = tmp_path / "logs" / "ingest.log"

    result = CliRunner().invoke(cli, [
        "--log-file", str(log_file),
        "--database", str(tmp_path / "ingest.db"),
        "seed-sources", "--file", str(DEFAULT_SOURCES),
    ])

    assert result.exit_code == 0
    assert "Seeded default sources" in log_file.read_text(encoding="utf-8")
