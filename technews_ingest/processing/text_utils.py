"""Text processing utilities for Tech News Ingest."""

import html
import re

_TAG_RE = re.compile(r'<[^>]*>')
_WS_RE = re.compile(r'\s+')


def strip_tags(html_text: str) -> str:
    """Remove HTML tags, leaving text and whitespace untouched."""
    if not html_text:
        return ""
    return _TAG_RE.sub('', html_text)


def clean_html_text(html_text: str) -> str:
    """Clean HTML text content.

    Args:
        html_text: HTML text

    Returns:
        Plain text with entities decoded and whitespace collapsed
    """
    if not html_text:
        return ""

    text = strip_tags(html_text)
    text = html.unescape(text)
    return _WS_RE.sub(' ', text).strip()


def extract_summary(content: str, max_length: int = 200) -> str:
    """Derive a short description from a body of HTML or text.

    Short text is returned as-is. Longer text is cut at the last space before
    ``max_length`` when that space falls in the final 20% of the limit, and
    otherwise at the limit itself; an ellipsis is appended either way.
    """
    text = clean_html_text(content)

    if len(text) <= max_length:
        return text

    truncated = text[:max_length]
    last_space = truncated.rfind(' ')

    if last_space > max_length * 0.8:
        return truncated[:last_space] + '...'

    return truncated + '...'


def title_key(title: str | None) -> str:
    """Comparison key for titles: case-folded and trimmed."""
    if not title:
        return ""
    return title.strip().lower()
