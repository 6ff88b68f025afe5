"""Rule-based classification of questions into a closed set of analytics intents."""
from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from .models import Aggregation, AnalyticsIntent, IntentClassification, TimeGranularity

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE_THRESHOLD = 0.5

# Highest priority first; resolves questions matching several intents.
INTENT_PRIORITY: tuple[AnalyticsIntent, ...] = (
    "compare",
    "time_series",
    "group_by",
    "aggregate_avg",
    "aggregate_sum",
    "aggregate_count",
)

_AGGREGATIONS: dict[AnalyticsIntent, Aggregation] = {
    "aggregate_avg": "avg",
    "aggregate_sum": "sum",
    "aggregate_count": "count",
}


@dataclass(frozen=True)
class IntentRule:
    intent: AnalyticsIntent
    pattern: re.Pattern
    weight: float


def _rule(intent: AnalyticsIntent, pattern: str, weight: float) -> IntentRule:
    return IntentRule(intent=intent, pattern=re.compile(pattern, re.IGNORECASE), weight=weight)


_GRANULARITY_WORDS: dict[str, TimeGranularity] = {
    "day": "day", "days": "day", "daily": "day",
    "week": "week", "weeks": "week", "weekly": "week",
    "month": "month", "months": "month", "monthly": "month",
    "year": "year", "years": "year", "yearly": "year", "annual": "year", "annually": "year",
}

_QUOTED_RE = re.compile(r"\"([^\"]+)\"|`([^`]+)`|(?<!\w)'([^']+)'(?!\w)")
_GRANULARITY_RE = re.compile(r"\b(" + "|".join(_GRANULARITY_WORDS) + r")\b", re.IGNORECASE)
_BY_PHRASE_RE = re.compile(
    r"\b(?:grouped by|group by|broken down by|by|per|for each|for every|across)\s+"
    r"([\w-]+(?:\s+[\w-]+){0,2})",
    re.IGNORECASE,
)
_COMPARED_RE = re.compile(
    r"\bbetween\s+([\w-]+)\s+and\s+([\w-]+)|\b([\w-]+)\s+(?:vs\.?|versus)\s+([\w-]+)",
    re.IGNORECASE,
)


class IntentClassifier:
    """Weighted regex rules; every rule is evaluated, priority breaks ties."""

    _RULES = (
        # compare
        _rule("compare", r"\b(?:compare|comparison|comparing)\b", 0.9),
        _rule("compare", r"\b[\w-]+\s+(?:vs\.?|versus)\s+[\w-]+", 0.9),
        _rule("compare", r"\bdifference\s+between\b", 0.8),
        # time_series
        _rule("time_series", r"\b(?:over time|time series|trend|trends|trending)\b", 0.9),
        _rule("time_series", r"\b(?:by|per|for each|each)\s+(?:day|week|month|year|date|quarter)\b", 0.9),
        _rule("time_series", r"\b(?:daily|weekly|monthly|yearly|annually)\b", 0.8),
        _rule("time_series", r"\b(?:growth|evolution|change|decline)\s+(?:over|across)\b", 0.7),
        # group_by
        _rule("group_by", r"\b(?:grouped by|group by|broken down by|breakdown by|split by)\s+\w+", 0.9),
        _rule("group_by", r"\b(?:by|for each|for every)\s+\w+", 0.8),
        _rule("group_by", r"\b(?:per|across)\s+\w+", 0.6),
        _rule("group_by", r"\bbreakdown\b", 0.4),
        # aggregate_avg
        _rule("aggregate_avg", r"\b(?:average|avg|mean)\b", 0.9),
        _rule("aggregate_avg", r"\btypical\b", 0.4),
        # aggregate_sum
        _rule("aggregate_sum", r"\b(?:sum|summed|add up|added up)\b", 0.9),
        _rule("aggregate_sum", r"\btotal\b(?!\s+(?:number|count)\b)", 0.8),
        _rule("aggregate_sum", r"\bhow much\b", 0.6),
        # aggregate_count
        _rule("aggregate_count", r"\b(?:how many|number of|count of|total number|total count)\b", 0.9),
        _rule("aggregate_count", r"\bcount\b", 0.8),
    )

    def __init__(self, confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD) -> None:
        self.confidence_threshold = confidence_threshold

    def classify(self, question: str) -> IntentClassification:
        text = " ".join(question.split())
        if not text:
            return IntentClassification(intent="unsupported_query", confidence=0.0)

        scores: dict[str, float] = {}
        for rule in self._RULES:
            if rule.pattern.search(text):
                scores[rule.intent] = max(scores.get(rule.intent, 0.0), rule.weight)

        surviving = {i: w for i, w in scores.items() if w >= self.confidence_threshold}
        for intent in INTENT_PRIORITY:
            if intent in surviving:
                result = IntentClassification(
                    intent=intent,
                    confidence=surviving[intent],
                    extracted_value=self._extract_value(intent, text),
                    aggregation=_aggregation(surviving),
                )
                logger.info(
                    "Classified question as %s (confidence=%.2f, aggregation=%s, candidates=%s)",
                    intent, result.confidence, result.aggregation, sorted(surviving),
                )
                return result

        logger.info("No intent rule matched above %.2f; unsupported query", self.confidence_threshold)
        return IntentClassification(intent="unsupported_query", confidence=0.0)

    def _extract_value(self, intent: AnalyticsIntent, text: str) -> str | None:
        quoted = _QUOTED_RE.search(text)
        if quoted:
            return next(g for g in quoted.groups() if g is not None).strip()

        if intent == "time_series":
            return extract_granularity(text)
        if intent == "group_by":
            match = _BY_PHRASE_RE.search(text)
            return match.group(1).lower() if match else None
        if intent == "compare":
            values = extract_compared_values(text)
            return " vs ".join(values) if values else None
        return None


def _aggregation(surviving: dict[str, float]) -> Aggregation | None:
    """Highest-priority aggregate among the surviving candidates."""
    for intent in INTENT_PRIORITY:
        if intent in surviving and intent in _AGGREGATIONS:
            return _AGGREGATIONS[intent]
    return None


def extract_granularity(text: str | None) -> TimeGranularity | None:
    if not text:
        return None
    match = _GRANULARITY_RE.search(text)
    if match is None:
        return None
    return _GRANULARITY_WORDS[match.group(1).lower()]


def extract_compared_values(text: str) -> list[str]:
    """Lower-cased labels from ``between A and B`` or ``A vs B`` phrasing."""
    match = _COMPARED_RE.search(text)
    if match is None:
        return []
    return [g.lower() for g in match.groups() if g is not None]


def compared_values(classification: IntentClassification) -> list[str]:
    """Split a compare intent's extracted value (``"north vs south"``) into labels."""
    if classification.intent != "compare" or not classification.extracted_value:
        return []
    parts = re.split(r"\s+(?:vs\.?|versus|and)\s+|\s*,\s*", classification.extracted_value)
    return [p.strip() for p in parts if p.strip()]


_default_classifier = IntentClassifier()


def classify_intent(question: str, confidence_threshold: float | None = None) -> IntentClassification:
    """Classify ``question``; never touches any dataset."""
    if confidence_threshold is None:
        return _default_classifier.classify(question)
    return IntentClassifier(confidence_threshold).classify(question)


def intent_name(intent: IntentClassification | str) -> str:
    return intent.intent if isinstance(intent, IntentClassification) else intent
