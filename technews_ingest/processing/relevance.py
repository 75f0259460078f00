"""
Keyword-based relevance filtering for ingested news items.

Each rule group (include / exclude) is scored as a coverage ratio: the number
of configured keywords found in the text divided by the total number of
keywords in the group. The decision then applies the thresholds in a fixed
precedence order. This is a coarse bag-of-keywords heuristic; what matters is
that it is deterministic and configurable at runtime.
"""

from collections import Counter
from dataclasses import dataclass
from typing import Any, Iterable

from ..config import DEFAULT_FILTER_CONFIG, FilterConfig, FilterRule, build_filter_config
from ..logging import get_logger
from ..models import FilterDecision

logger = get_logger(__name__)

BODY_SCAN_CHARS = 500


@dataclass(frozen=True)
class ScoringInput:
    title: str
    description: str | None = None
    body: str | None = None


@dataclass(frozen=True)
class IndexedDecision:
    """A decision paired with the position of its item in a batch."""
    index: int
    decision: FilterDecision


@dataclass(frozen=True)
class FilterStats:
    """Aggregate statistics over a batch of decisions."""
    total: int
    filtered: int
    kept: int
    filter_rate: float
    reasons: dict[str, int]


def combine_text(title: str, description: str | None = None, body: str | None = None) -> str:
    """Join the scored fields into one lower-cased string."""
    parts = [title or ""]
    if description:
        parts.append(description)
    if body:
        parts.append(body[:BODY_SCAN_CHARS])
    return " ".join(parts).lower()


def coverage_score(text: str, rules: Iterable[FilterRule]) -> float:
    """Fraction of the group's keywords that occur in ``text``."""
    total = 0
    matched = 0
    for rule in rules:
        for keyword in rule.keywords:
            total += 1
            if keyword.lower() in text:
                matched += 1
    return matched / total if total else 0.0


def _pct(score: float) -> str:
    return f"{score * 100:.1f}%"


def decide(include_score: float, exclude_score: float, config: FilterConfig) -> FilterDecision:
    """Apply the threshold precedence to a pair of scores."""
    if exclude_score > config.max_exclude_score:
        return FilterDecision(
            should_filter=True,
            reason=f"technical/dev content, exclude score {_pct(exclude_score)}",
            include_score=include_score,
            exclude_score=exclude_score,
        )
    if include_score < config.min_include_score:
        return FilterDecision(
            should_filter=True,
            reason=f"below relevance threshold, include score {_pct(include_score)}",
            include_score=include_score,
            exclude_score=exclude_score,
        )
    if exclude_score > include_score:
        return FilterDecision(
            should_filter=True,
            reason=(
                f"exclusion dominates, exclude {_pct(exclude_score)} "
                f"> include {_pct(include_score)}"
            ),
            include_score=include_score,
            exclude_score=exclude_score,
        )
    return FilterDecision(
        should_filter=False,
        reason=f"relevant, include score {_pct(include_score)}, exclude score {_pct(exclude_score)}",
        include_score=include_score,
        exclude_score=exclude_score,
    )


class RelevanceScorer:
    """Include/exclude keyword scorer with a swappable configuration snapshot."""

    def __init__(self, config: FilterConfig | None = None):
        self._config = config or DEFAULT_FILTER_CONFIG

    @property
    def config(self) -> FilterConfig:
        return self._config

    def should_filter(
        self,
        title: str,
        description: str | None = None,
        body: str | None = None,
    ) -> FilterDecision:
        """Score one item and decide whether to drop it."""
        config = self._config
        text = combine_text(title, description, body)
        include_score = coverage_score(text, config.include_rules)
        exclude_score = coverage_score(text, config.exclude_rules)
        return decide(include_score, exclude_score, config)

    def filter_batch(self, items: Iterable[ScoringInput | dict[str, Any]]) -> list[IndexedDecision]:
        """Score every item, keeping batch positions."""
        decisions = []
        for index, item in enumerate(items):
            if isinstance(item, dict):
                item = ScoringInput(
                    title=item.get('title', ''),
                    description=item.get('description'),
                    body=item.get('body'),
                )
            decisions.append(
                IndexedDecision(index, self.should_filter(item.title, item.description, item.body))
            )
        return decisions

    @staticmethod
    def get_filter_stats(results: list[IndexedDecision]) -> FilterStats:
        """Summarize a batch: counts, filter rate and a histogram of reasons."""
        total = len(results)
        filtered = [r for r in results if r.decision.should_filter]
        reasons = Counter(r.decision.reason.split(',')[0] for r in filtered)

        return FilterStats(
            total=total,
            filtered=len(filtered),
            kept=total - len(filtered),
            filter_rate=(len(filtered) / total) * 100 if total else 0.0,
            reasons=dict(reasons),
        )

    def update_config(self, **overrides: Any) -> FilterConfig:
        """Replace the active configuration with a validated, merged copy.

        Raises:
            ConfigError: If the result is invalid; the previous configuration
                stays active
        """
        new_config = build_filter_config(overrides, base=self._config)
        self._config = new_config
        logger.info(
            "Filter configuration updated",
            include_keywords=sum(len(r.keywords) for r in new_config.include_rules),
            exclude_keywords=sum(len(r.keywords) for r in new_config.exclude_rules),
            min_include_score=new_config.min_include_score,
            max_exclude_score=new_config.max_exclude_score,
        )
        return new_config

    def reset_config(self) -> None:
        """Restore the compiled default configuration."""
        self._config = DEFAULT_FILTER_CONFIG
        logger.info("Filter configuration reset to defaults")
