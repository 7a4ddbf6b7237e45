"""
Keyword-overlap text similarity used by the heuristic mapping tier.

Both the ICD-11 and the SNOMED CT scorers share one tokenizer and one overlap
formula; SNOMED CT candidates additionally receive a semantic-tag boost.
"""

import re
from typing import Iterable, List, Optional

MIN_HEURISTIC_CONFIDENCE = 0.60
MAX_HEURISTIC_CONFIDENCE = 0.95
SNOMED_SEMANTIC_TAG_BOOST = 1.10

STOPWORDS = frozenset({"dosha", "the", "and", "for", "with"})
CLINICAL_SEMANTIC_TAGS = ("disorder", "finding", "procedure", "substance", "body structure")

MAX_PREFILTER_KEYWORDS = 3
FALLBACK_KEYWORD_LENGTH = 10

_TOKEN_RE = re.compile(r"[a-z0-9]+")


def tokenize(text: Optional[str]) -> List[str]:
    """Lowercase alphanumeric runs of ``text``."""
    if not text:
        return []
    return _TOKEN_RE.findall(text.lower())


def composite_text(*parts: Optional[str]) -> str:
    """Join the non-empty parts into one lowercased search string."""
    return " ".join(part.strip().lower() for part in parts if part and part.strip())


def significant_keywords(text: str, limit: int = MAX_PREFILTER_KEYWORDS) -> List[str]:
    """
    Extract the keywords used by the substring prefilter.

    Keeps tokens longer than three characters that are not stopwords,
    de-duplicated in order of appearance. When nothing qualifies the first
    characters of the text stand in as a single keyword.
    """
    keywords: List[str] = []
    for token in tokenize(text):
        if len(token) > 3 and token not in STOPWORDS and token not in keywords:
            keywords.append(token)
        if len(keywords) == limit:
            break

    if not keywords:
        fallback = text.strip().lower()[:FALLBACK_KEYWORD_LENGTH].strip()
        if fallback:
            keywords.append(fallback)
    return keywords


def overlap_score(source_text: str, target_text: str) -> float:
    """
    Fraction of overlapping words between two texts.

    A source word overlaps when it is a substring of some target word or
    contains one. The count is divided by the larger word count.
    """
    source_words = tokenize(source_text)
    target_words = tokenize(target_text)
    if not source_words or not target_words:
        return 0.0

    common = sum(
        1 for word in source_words
        if any(word in target_word or target_word in word for target_word in target_words)
    )
    return common / max(len(source_words), len(target_words))


def clamp_confidence(score: float) -> float:
    return min(MAX_HEURISTIC_CONFIDENCE, max(MIN_HEURISTIC_CONFIDENCE, score))


def has_clinical_semantic_tag(semantic_tag: Optional[str]) -> bool:
    if not semantic_tag:
        return False
    tag = semantic_tag.lower()
    return any(clinical in tag for clinical in CLINICAL_SEMANTIC_TAGS)


def semantic_tag_boost(score: float, semantic_tag: Optional[str]) -> float:
    """Apply the SNOMED CT semantic-tag boost (unclamped)."""
    if has_clinical_semantic_tag(semantic_tag):
        return score * SNOMED_SEMANTIC_TAG_BOOST
    return score


def heuristic_confidence(source_text: str, target_text: str) -> float:
    """Clamped similarity confidence for an ICD-11 candidate."""
    return clamp_confidence(overlap_score(source_text, target_text))


def snomed_confidence(source_text: str, target_text: str, semantic_tag: Optional[str]) -> float:
    """Clamped similarity confidence for a SNOMED CT candidate."""
    return clamp_confidence(semantic_tag_boost(overlap_score(source_text, target_text), semantic_tag))


def mean(values: Iterable[float]) -> float:
    values = list(values)
    return sum(values) / len(values) if values else 0.0
