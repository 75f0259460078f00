"""Source and content stores."""

from .interfaces import ContentStore, SourceStore
from .memory import InMemoryContentStore, InMemorySourceStore
from .sqlite import SQLiteStore

__all__ = [
    'SourceStore',
    'ContentStore',
    'InMemorySourceStore',
    'InMemoryContentStore',
    'SQLiteStore',
]
