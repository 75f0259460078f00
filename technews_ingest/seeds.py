"""Default feed list for a fresh database."""

import uuid
from dataclasses import dataclass
from pathlib import Path

import yaml

from .errors import ConfigError
from .logging import get_logger
from .models import Source, SourceKind
from .storage.interfaces import SourceStore

logger = get_logger(__name__)


@dataclass(frozen=True)
class SeedSource:
    name: str
    url: str


def seed_source_id(url: str) -> str:
    """Stable id for a seeded feed, so reseeding never duplicates it."""
    return uuid.uuid5(uuid.NAMESPACE_URL, url).hex


def load_seed_sources(path: str | Path) -> list[SeedSource]:
    """Read a ``sources:`` list of name/url pairs from YAML."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Seed source file not found: {path}")

    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}

    entries = data.get("sources") if isinstance(data, dict) else None
    if not isinstance(entries, list):
        raise ConfigError(f"Seed source file must contain a 'sources' list: {path}")

    seeds = []
    for position, entry in enumerate(entries):
        if not isinstance(entry, dict) or not entry.get("name") or not entry.get("url"):
            raise ConfigError(f"Seed source #{position + 1} needs a name and a url: {path}")
        seeds.append(SeedSource(name=str(entry["name"]).strip(), url=str(entry["url"]).strip()))
    return seeds


async def seed_sources(
    store: SourceStore,
    seeds: list[SeedSource],
    kind: SourceKind = SourceKind.RSS,
) -> int:
    """Register ``seeds`` unless sources of ``kind`` already exist.

    Returns the number of sources added. Repeated URLs in ``seeds`` are added once.
    """
    existing = await store.count_sources(kind)
    if existing:
        logger.info("Sources already present, skipping seed", kind=kind.value, existing=existing)
        return 0

    added = 0
    seen: set[str] = set()
    for seed in seeds:
        source_id = seed_source_id(seed.url)
        if source_id in seen:
            continue
        seen.add(source_id)
        await store.add(Source(id=source_id, name=seed.name, url=seed.url, kind=kind))
        added += 1

    logger.info("Seeded default sources", kind=kind.value, count=added)
    return added
