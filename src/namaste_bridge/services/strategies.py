"""
Resolution strategies, tried in order by the mapping resolver.

Each strategy returns a candidate list, or None when its tier has nothing to
offer (including when the concept store is unavailable).
"""

from typing import List, Optional

from loguru import logger

from namaste_bridge.errors import StoreUnavailable
from namaste_bridge.schema import (
    CandidateMatch,
    CodeSystem,
    Concept,
    CuratedMapping,
    Equivalence,
    ResolutionTier,
    TargetVocabulary,
)
from namaste_bridge.services import bridges, similarity
from namaste_bridge.services.category_fallback import CategoryFallbackTable
from namaste_bridge.services.concept_store import ConceptStore

HEURISTIC_CANDIDATE_LIMIT = 3
CURATED_METHOD = "curated_alignment"

_HEURISTIC_METHODS = {
    TargetVocabulary.ICD11: "intelligent_semantic",
    TargetVocabulary.SNOMED_CT: "intelligent_snomed_semantic",
}
_CATEGORY_METHODS = {
    TargetVocabulary.ICD11: "category_based",
    TargetVocabulary.SNOMED_CT: "snomed_category_based",
}
_TARGET_SYSTEMS = {
    TargetVocabulary.ICD11: CodeSystem.ICD11_TM2,
    TargetVocabulary.SNOMED_CT: CodeSystem.SNOMED_CT,
    TargetVocabulary.LOINC: CodeSystem.LOINC,
}


def source_text(concept: Concept) -> str:
    """Composite search string for a source concept."""
    return similarity.composite_text(concept.display, concept.description, concept.category)


class ResolutionStrategy:
    """Base class for one resolution tier."""

    tier: ResolutionTier

    def __init__(self, store: ConceptStore):
        self.store = store

    async def candidates(self, concept: Concept, target: TargetVocabulary) -> Optional[List[CandidateMatch]]:
        raise NotImplementedError

    async def __call__(self, concept: Concept, target: TargetVocabulary) -> Optional[List[CandidateMatch]]:
        try:
            return await self.candidates(concept, target)
        except StoreUnavailable as e:
            logger.warning(f"{self.tier.value} tier unavailable for {concept.code}: {e}")
            return None


class CuratedStrategy(ResolutionStrategy):
    """Approved curated mappings, with SNOMED CT / LOINC bridges attached."""

    tier = ResolutionTier.CURATED

    async def candidates(self, concept: Concept, target: TargetVocabulary) -> Optional[List[CandidateMatch]]:
        if not concept.code:
            return None
        mappings = await self.store.approved_mappings(concept.code)

        if target == TargetVocabulary.ICD11:
            results = [self._icd11_candidate(concept, m) for m in mappings if m.icd11_code]
        elif target == TargetVocabulary.SNOMED_CT:
            results = [
                self._candidate(concept, m, m.snomed_ct_code, m.snomed_ct_term, CodeSystem.SNOMED_CT, m.semantic_tag)
                for m in mappings if m.snomed_ct_code
            ]
        elif target == TargetVocabulary.LOINC:
            results = [
                self._candidate(concept, m, m.loinc_code, m.loinc_term, CodeSystem.LOINC)
                for m in mappings if m.loinc_code
            ]
        else:
            return None
        return results or None

    def _candidate(
        self,
        concept: Concept,
        mapping: CuratedMapping,
        code: str,
        term: Optional[str],
        system: CodeSystem,
        semantic_tag: Optional[str] = None,
    ) -> CandidateMatch:
        return CandidateMatch(
            target_code=code,
            target_system=system,
            target_display=term,
            equivalence=mapping.equivalence,
            confidence_score=mapping.mapping_confidence,
            clinical_evidence=mapping.clinical_evidence
            or f"Curated {system.value} mapping: {concept.display or concept.code} → {term or code}",
            mapping_method=mapping.mapping_method or CURATED_METHOD,
            tier=self.tier,
            semantic_tag=semantic_tag,
        )

    def _icd11_candidate(self, concept: Concept, mapping: CuratedMapping) -> CandidateMatch:
        candidate = self._candidate(concept, mapping, mapping.icd11_code, mapping.icd11_term, CodeSystem.ICD11_MMS)
        return candidate.model_copy(update={"bridge": bridges.bridge_details(mapping)})


class HeuristicStrategy(ResolutionStrategy):
    """Keyword prefilter over the target vocabulary, ranked by text similarity."""

    tier = ResolutionTier.HEURISTIC

    def __init__(
        self,
        store: ConceptStore,
        prefilter_limit: int = 25,
        candidate_limit: int = HEURISTIC_CANDIDATE_LIMIT,
    ):
        super().__init__(store)
        self.prefilter_limit = prefilter_limit
        self.candidate_limit = min(candidate_limit, HEURISTIC_CANDIDATE_LIMIT)

    async def candidates(self, concept: Concept, target: TargetVocabulary) -> Optional[List[CandidateMatch]]:
        if target not in _HEURISTIC_METHODS:
            return None
        text = source_text(concept)
        if not text:
            return None

        keywords = similarity.significant_keywords(text)
        matches = await self.store.search_target_concepts(target, keywords, self.prefilter_limit)

        scored = []
        for match in matches:
            if target == TargetVocabulary.SNOMED_CT:
                score = similarity.snomed_confidence(text, match.display, match.semantic_tag)
            else:
                score = similarity.heuristic_confidence(text, match.display)
            scored.append((score, match))
        scored.sort(key=lambda item: (-item[0], item[1].code))

        results = [self._candidate(concept, target, match, score) for score, match in scored[:self.candidate_limit]]
        return results or None

    def _candidate(self, concept: Concept, target: TargetVocabulary, match: Concept, score: float) -> CandidateMatch:
        if target == TargetVocabulary.SNOMED_CT:
            evidence = (
                f"Auto-mapped SNOMED CT based on semantic similarity: "
                f"{concept.category or concept.display} → {match.display} ({match.semantic_tag or 'untagged'})"
            )
        else:
            evidence = f"Auto-mapped based on semantic similarity: {concept.category or concept.display} → {match.display}"
        return CandidateMatch(
            target_code=match.code,
            target_system=_TARGET_SYSTEMS[target],
            target_display=match.display,
            equivalence=match.equivalence or Equivalence.RELATED,
            confidence_score=score,
            clinical_evidence=evidence,
            mapping_method=_HEURISTIC_METHODS[target],
            tier=self.tier,
            semantic_tag=match.semantic_tag,
        )


class CategoryFallbackStrategy(ResolutionStrategy):
    """Fixed category tables at constant confidence."""

    tier = ResolutionTier.CATEGORY_FALLBACK

    def __init__(self, store: ConceptStore, table: CategoryFallbackTable):
        super().__init__(store)
        self.table = table

    async def candidates(self, concept: Concept, target: TargetVocabulary) -> Optional[List[CandidateMatch]]:
        codes = self.table.codes_for(target, concept.category)
        if not codes:
            return None

        # The table decides which codes come back; the store only supplies displays.
        try:
            known = {c.code: c for c in await self.store.get_target_concepts(target, codes)}
        except StoreUnavailable as e:
            logger.warning(f"category fallback displays unavailable for {concept.code}: {e}")
            known = {}

        results = []
        for code in codes:
            match = known.get(code)
            display = match.display if match else None
            results.append(CandidateMatch(
                target_code=code,
                target_system=_TARGET_SYSTEMS[target],
                target_display=display,
                equivalence=(match.equivalence if match else None) or Equivalence.RELATED,
                confidence_score=self.table.confidence,
                clinical_evidence=f"Category-based mapping: {concept.category} clinical pattern"
                + (f" → {display}" if display else ""),
                mapping_method=_CATEGORY_METHODS[target],
                tier=self.tier,
                semantic_tag=match.semantic_tag if match else None,
            ))
        return results
