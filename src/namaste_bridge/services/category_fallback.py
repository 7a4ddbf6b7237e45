"""
Static category-to-code tables used when no curated or heuristic match exists.

The table is built once at startup and shared read-only between requests.
"""

from types import MappingProxyType
from typing import Dict, Mapping, Optional, Sequence, Tuple

from namaste_bridge.schema import TargetVocabulary

CATEGORY_FALLBACK_CONFIDENCE = 0.75

DEFAULT_ICD11_CATEGORIES: Dict[str, Sequence[str]] = {
    "constitutional": ("SS81.0", "SS82.0"),
    "digestive": ("SM25.1", "SM25.2", "SM20.0"),
    "metabolic": ("SM27.0", "SP75.2"),
    "immunity": ("SP90.1",),
    "mental": ("SK25.0",),
    "systemic": ("SK25.0", "SP75.2"),
}

DEFAULT_SNOMED_CATEGORIES: Dict[str, Sequence[str]] = {
    "constitutional": ("762676003", "766988007"),
    "digestive": ("271727006", "386033004"),
    "metabolic": ("75934005", "362969004"),
    "immunity": ("414027002", "276654001"),
    "mental": ("74732009", "192080009"),
    "systemic": ("362965005", "118234003"),
    "respiratory": ("50043002", "389087006"),
    "circulatory": ("49601007", "105981003"),
    "musculoskeletal": ("928000", "363172005"),
}


def _freeze(table: Mapping[str, Sequence[str]]) -> Mapping[str, Tuple[str, ...]]:
    return MappingProxyType({
        category.strip().lower(): tuple(codes)
        for category, codes in table.items()
    })


class CategoryFallbackTable:
    """Immutable per-vocabulary lookup of category -> target codes."""

    def __init__(
        self,
        tables: Mapping[TargetVocabulary, Mapping[str, Sequence[str]]],
        confidence: float = CATEGORY_FALLBACK_CONFIDENCE,
    ):
        self._tables = MappingProxyType({
            vocabulary: _freeze(table) for vocabulary, table in tables.items()
        })
        self.confidence = confidence

    @classmethod
    def default(cls) -> "CategoryFallbackTable":
        return cls({
            TargetVocabulary.ICD11: DEFAULT_ICD11_CATEGORIES,
            TargetVocabulary.SNOMED_CT: DEFAULT_SNOMED_CATEGORIES,
        })

    def codes_for(self, vocabulary: TargetVocabulary, category: Optional[str]) -> Tuple[str, ...]:
        """Codes for a category, or an empty tuple when the category is unknown."""
        if not category:
            return ()
        table = self._tables.get(vocabulary, {})
        return table.get(category.strip().lower(), ())

    def categories(self, vocabulary: TargetVocabulary) -> Tuple[str, ...]:
        return tuple(sorted(self._tables.get(vocabulary, {})))
