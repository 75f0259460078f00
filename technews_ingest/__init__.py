"""Tech News Ingest - scheduled feed ingestion with dedup and relevance filtering."""

__version__ = "0.1.0"
