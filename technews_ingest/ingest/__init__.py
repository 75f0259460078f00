"""Feed retrieval and item normalization."""

from .fetcher import FeedFetcher, parse_feed_document
from .normalizer import normalize_item, normalize_items

__all__ = [
    'FeedFetcher',
    'parse_feed_document',
    'normalize_item',
    'normalize_items',
]
