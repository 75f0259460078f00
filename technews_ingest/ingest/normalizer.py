"""Mapping of raw feed items into the platform content shape."""

from ..models import DEFAULT_CATEGORY, UNTITLED, NormalizedContent, RawFeedItem
from ..processing.text_utils import extract_summary
from ..utils import parse_date_string


def normalize_item(
    item: RawFeedItem,
    source_id: str,
    summary_length: int = 200,
) -> NormalizedContent:
    """Convert a raw feed item into ``NormalizedContent``.

    Args:
        item: Item produced by the feed fetcher
        source_id: Owning source
        summary_length: Target length of a derived description

    Returns:
        Normalized content ready for dedup, scoring and persistence

    Raises:
        ValueError: If ``source_id`` is empty
    """
    if not source_id:
        raise ValueError("source_id is required")

    image_url = None
    if item.enclosure and item.enclosure.type and item.enclosure.type.startswith('image/'):
        image_url = item.enclosure.url

    body = item.content or item.content_encoded or item.content_snippet or None
    description = item.summary or item.content_snippet or None
    if not description and body:
        description = extract_summary(body, summary_length)

    title = (item.title or '').strip() or UNTITLED

    return NormalizedContent(
        title=title,
        source_id=source_id,
        description=description,
        body=body,
        url=item.link or None,
        image_url=image_url,
        category=DEFAULT_CATEGORY,
        tags=list(item.categories),
        source_url=item.link or None,
        published_at=parse_date_string(item.published),
        metadata={
            'guid': item.guid,
            'creator': item.creator,
            'original_categories': list(item.categories),
        },
    )


def normalize_items(
    items: list[RawFeedItem],
    source_id: str,
    summary_length: int = 200,
) -> list[NormalizedContent]:
    return [normalize_item(item, source_id, summary_length) for item in items]
