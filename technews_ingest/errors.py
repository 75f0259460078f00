"""Exception types raised by the ingestion pipeline."""


class IngestError(Exception):
    """Base class for pipeline errors."""


class FetchError(IngestError):
    """Network, timeout or parse failure for one feed."""

    def __init__(self, message: str, url: str | None = None, status: int | None = None):
        super().__init__(message)
        self.url = url
        self.status = status


class PersistError(IngestError):
    """A content store write failed."""


class ConfigError(IngestError, ValueError):
    """Invalid relevance filter configuration."""
