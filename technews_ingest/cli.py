"""Command line entry points for Tech News Ingest."""

import asyncio
import signal
import sys
import uuid
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from .app import open_pipeline
from .config import Settings, get_settings, load_filter_config
from .errors import ConfigError
from .ingest.fetcher import FeedFetcher
from .logging import get_logger, setup_logging
from .models import BatchResult, Source
from .processing.relevance import RelevanceScorer
from .seeds import load_seed_sources, seed_sources

logger = get_logger(__name__)
console = Console()


def _settings_from(ctx: click.Context) -> Settings:
    return ctx.obj["settings"]


def _render_batch(result: BatchResult) -> None:
    table = Table(title="Ingest batch")
    table.add_column("Metric")
    table.add_column("Value", justify="right")
    table.add_row("Sources", str(result.total_sources))
    table.add_row("Succeeded", str(result.success_count))
    table.add_row("New items", str(result.total_new_items))
    table.add_row("Errors", str(result.error_count))
    if result.duration_seconds is not None:
        table.add_row("Duration", f"{result.duration_seconds:.2f}s")
    console.print(table)

    if result.errors:
        errors = Table(title="Source errors")
        errors.add_column("Source")
        errors.add_column("Error", style="red")
        for error in result.errors:
            errors.add_row(error.source_id, error.error)
        console.print(errors)


@click.group()
@click.option("--log-level", default=None, help="Log level (defaults to LOG_LEVEL setting)")
@click.option("--json-logs/--console-logs", default=None, help="Log output format")
@click.option("--log-file", type=click.Path(dir_okay=False, path_type=Path), help="Also write logs to this file")
@click.option("--database", type=click.Path(path_type=Path), help="SQLite database path")
@click.option("--rules", type=click.Path(exists=True, path_type=Path), help="YAML filter rule file")
@click.pass_context
def cli(ctx, log_level, json_logs, log_file, database, rules):
    """Tech News Ingest - poll feeds, drop duplicates and off-topic items, store the rest."""
    settings = get_settings()
    updates = {}
    if database:
        updates["database_path"] = database
    if rules:
        updates["filter_rules_path"] = rules
    if updates:
        settings = settings.model_copy(update=updates)

    setup_logging(log_level=log_level, json_logging=json_logs, log_file=log_file or settings.log_file)
    ctx.obj = {"settings": settings}


@cli.command("run-once")
@click.pass_context
def run_once(ctx):
    """Run a single ingest batch across all active sources."""
    settings = _settings_from(ctx)

    async def _run() -> BatchResult:
        async with open_pipeline(settings) as pipeline:
            return await pipeline.scheduler.trigger_ingest()

    try:
        result = asyncio.run(_run())
    except Exception as e:
        logger.error("Ingest run failed", error=str(e))
        click.echo(f"❌ Error: {e}", err=True)
        sys.exit(1)

    _render_batch(result)
    sys.exit(0 if not result.errors else 2)


@cli.command()
@click.option("--run-now", is_flag=True, help="Run one batch immediately before the first tick")
@click.pass_context
def serve(ctx, run_now):
    """Start the scheduler and run until interrupted."""
    settings = _settings_from(ctx)

    async def _serve() -> None:
        stop = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, stop.set)
            except NotImplementedError:
                pass

        async with open_pipeline(settings) as pipeline:
            if run_now:
                await pipeline.scheduler.trigger_ingest()
            pipeline.scheduler.start_all()
            console.print(
                f"[bold cyan]Scheduler running[/bold cyan] "
                f"(every {settings.ingest_interval_seconds / 60:.0f} min, cleanup at {settings.cleanup_hour:02d}:00)"
            )
            await stop.wait()

    try:
        asyncio.run(_serve())
    except KeyboardInterrupt:
        pass
    console.print("Scheduler stopped")


@cli.command("add-source")
@click.argument("name")
@click.argument("url")
@click.option("--skip-validation", is_flag=True, help="Register without fetching the feed first")
@click.pass_context
def add_source(ctx, name, url, skip_validation):
    """Register a feed URL as a new source."""
    settings = _settings_from(ctx)

    async def _add() -> Source:
        async with open_pipeline(settings) as pipeline:
            if not skip_validation:
                validation = await pipeline.fetcher.validate(url)
                if not validation.valid:
                    raise click.ClickException(f"Feed is not usable: {validation.error}")
            source = Source(id=uuid.uuid4().hex, name=name, url=url)
            return await pipeline.store.add(source)

    source = asyncio.run(_add())
    console.print(f"[green]✓[/green] Added source [bold]{source.name}[/bold] ({source.id})")


@cli.command("fetch-source")
@click.argument("source_id")
@click.pass_context
def fetch_source(ctx, source_id):
    """Run one source now, whatever its status."""
    settings = _settings_from(ctx)

    async def _run() -> BatchResult:
        async with open_pipeline(settings) as pipeline:
            source = await pipeline.store.get(source_id)
            if source is None:
                raise click.ClickException(f"Unknown source: {source_id}")
            return await pipeline.orchestrator.run_sources([source])

    result = asyncio.run(_run())
    _render_batch(result)
    sys.exit(0 if not result.errors else 2)


@cli.command("seed-sources")
@click.option("--file", "seed_file", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              help="YAML feed list (defaults to SEED_SOURCES_PATH)")
@click.pass_context
def seed_sources_command(ctx, seed_file):
    """Register the default feed list on a database with no RSS sources."""
    settings = _settings_from(ctx)
    try:
        seeds = load_seed_sources(seed_file or settings.seed_sources_path)
    except (FileNotFoundError, ConfigError) as e:
        raise click.ClickException(str(e)) from e

    async def _seed() -> int:
        async with open_pipeline(settings) as pipeline:
            return await seed_sources(pipeline.store, seeds)

    added = asyncio.run(_seed())
    if added:
        console.print(f"[green]✓[/green] Seeded {added} sources")
    else:
        console.print("Sources already present, nothing seeded")


@cli.command("validate-feed")
@click.argument("url")
@click.pass_context
def validate_feed(ctx, url):
    """Fetch URL and report whether it is a usable feed."""
    settings = _settings_from(ctx)

    async def _validate():
        async with FeedFetcher(settings) as fetcher:
            return await fetcher.validate(url)

    validation = asyncio.run(_validate())
    if validation.valid:
        console.print(f"[green]✓ valid[/green] {validation.title or ''} ({validation.item_count} items)")
    else:
        console.print(f"[red]✗ invalid[/red] {validation.error}")
        sys.exit(1)


@cli.command("check-filter")
@click.argument("title")
@click.option("--description", default=None, help="Item description")
@click.option("--body", default=None, help="Item body")
@click.pass_context
def check_filter(ctx, title, description, body):
    """Show the relevance decision for one item."""
    settings = _settings_from(ctx)
    config = load_filter_config(settings.filter_rules_path) if settings.filter_rules_path else None
    decision = RelevanceScorer(config).should_filter(title, description, body)

    verdict = "[red]filtered[/red]" if decision.should_filter else "[green]kept[/green]"
    console.print(f"{verdict}: {decision.reason}")
    console.print(
        f"include={decision.include_score:.3f} exclude={decision.exclude_score:.3f}"
    )


if __name__ == "__main__":
    cli()
