"""Content processing module."""

from .dedupe import DedupResult, RecentContentDeduplicator
from .relevance import FilterStats, IndexedDecision, RelevanceScorer, ScoringInput
from .text_utils import clean_html_text, extract_summary, title_key

__all__ = [
    'RecentContentDeduplicator',
    'DedupResult',
    'RelevanceScorer',
    'ScoringInput',
    'IndexedDecision',
    'FilterStats',
    'clean_html_text',
    'extract_summary',
    'title_key',
]
