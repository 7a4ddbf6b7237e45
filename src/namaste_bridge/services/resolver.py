"""
Mapping resolver for the NAMASTE terminology bridge.

Resolves a source concept to ranked candidate concepts in a target vocabulary
by trying an ordered list of strategies (curated, heuristic, category
fallback) and keeping the first non-empty result. Resolution never raises on
store failures: each tier degrades to "no result" and the next tier runs.
"""

from typing import Iterable, List, Optional, Sequence

from loguru import logger

from namaste_bridge.errors import InvalidInput, StoreUnavailable
from namaste_bridge.schema import (
    BatchResolution,
    CandidateMatch,
    CodeSystem,
    Concept,
    ConceptResolution,
    CuratedMapping,
    Equivalence,
    ResolutionTier,
    TargetVocabulary,
)
from namaste_bridge.services import similarity
from namaste_bridge.services.category_fallback import CategoryFallbackTable
from namaste_bridge.services.concept_store import ConceptStore
from namaste_bridge.services.strategies import (
    CURATED_METHOD,
    HEURISTIC_CANDIDATE_LIMIT,
    CategoryFallbackStrategy,
    CuratedStrategy,
    HeuristicStrategy,
    ResolutionStrategy,
)

MAX_CODE_LENGTH = 100
REVERSE_HEURISTIC_METHOD = "intelligent_reverse_semantic"


def validate_code(code: Optional[str]) -> str:
    """Return the stripped code, or raise InvalidInput."""
    if code is None or not code.strip():
        raise InvalidInput("Source code must not be empty")
    code = code.strip()
    if len(code) > MAX_CODE_LENGTH:
        raise InvalidInput(f"Source code must be at most {MAX_CODE_LENGTH} characters")
    return code


def rank(candidates: Iterable[CandidateMatch]) -> List[CandidateMatch]:
    """Highest confidence first; ties broken by target code."""
    return sorted(candidates, key=lambda c: (-c.confidence_score, c.target_code))


class MappingResolver:
    """Resolve source concepts against the concept store."""

    def __init__(
        self,
        store: ConceptStore,
        fallback_table: CategoryFallbackTable,
        prefilter_limit: int = 25,
        strategies: Optional[Sequence[ResolutionStrategy]] = None,
    ):
        self.store = store
        self.prefilter_limit = prefilter_limit
        if strategies is None:
            strategies = [
                CuratedStrategy(store),
                HeuristicStrategy(store, prefilter_limit=prefilter_limit),
                CategoryFallbackStrategy(store, fallback_table),
            ]
        self.strategies = list(strategies)

    async def resolve(
        self,
        concept: Concept,
        target: TargetVocabulary = TargetVocabulary.ICD11,
    ) -> ConceptResolution:
        """
        Resolve one source concept.

        Args:
            concept: Source concept (code, display, description, category)
            target: Target vocabulary

        Returns:
            Candidates from the first tier that produced any, ranked by confidence
        """
        if target == TargetVocabulary.NAMASTE:
            raise InvalidInput("NAMASTE targets are resolved with resolve_reverse")

        for strategy in self.strategies:
            candidates = await strategy(concept, target)
            if candidates:
                return ConceptResolution(
                    source=concept,
                    target=target,
                    tier=strategy.tier,
                    candidates=rank(candidates),
                )

        logger.debug(f"No {target.value} candidates for {concept.code or concept.display}")
        return ConceptResolution(source=concept, target=target)

    async def resolve_code(
        self,
        code: str,
        target: TargetVocabulary = TargetVocabulary.ICD11,
        context: Optional[str] = None,
    ) -> ConceptResolution:
        """
        Resolve a NAMASTE code.

        Unknown codes produce an empty result with ``found=False``. When the
        concept itself cannot be fetched, resolution continues with a code-only
        concept so curated mappings can still be found.
        """
        code = validate_code(code)
        try:
            concept = await self.store.get_source_concept(code)
        except StoreUnavailable as e:
            logger.warning(f"Could not fetch NAMASTE concept {code}: {e}")
            concept = Concept(system=CodeSystem.NAMASTE, code=code)
        else:
            if concept is None:
                logger.info(f"NAMASTE code {code} not found")
                return ConceptResolution(
                    source=Concept(system=CodeSystem.NAMASTE, code=code),
                    target=target,
                    found=False,
                )

        if context and context.strip():
            description = " ".join(part for part in (concept.description, context.strip()) if part)
            concept = concept.model_copy(update={"description": description})

        return await self.resolve(concept, target)

    async def resolve_batch(
        self,
        concepts: Iterable[Concept],
        target: TargetVocabulary = TargetVocabulary.ICD11,
    ) -> BatchResolution:
        """Resolve each concept independently and report the mean candidate confidence."""
        results = []
        for concept in concepts:
            results.append(await self.resolve(concept, target))

        scores = [c.confidence_score for r in results for c in r.candidates]
        return BatchResolution(
            results=results,
            total_candidates=len(scores),
            aggregate_confidence=similarity.mean(scores),
        )

    async def resolve_reverse(self, icd11_code: str) -> ConceptResolution:
        """
        Resolve an ICD-11 code back to NAMASTE concepts.

        Approved curated mappings win; otherwise NAMASTE concepts are matched
        against the ICD-11 TM2 display and description with the heuristic scorer.
        """
        code = validate_code(icd11_code)

        try:
            source = await self.store.get_target_concept(TargetVocabulary.ICD11, code)
        except StoreUnavailable as e:
            logger.warning(f"Could not fetch ICD-11 concept {code}: {e}")
            source = None

        try:
            mappings = await self.store.approved_mappings_for_target(code)
        except StoreUnavailable as e:
            logger.warning(f"curated tier unavailable for ICD-11 {code}: {e}")
            mappings = []

        if source is None:
            term = mappings[0].icd11_term if mappings else None
            source = Concept(system=CodeSystem.ICD11_TM2, code=code, display=term or "")

        if mappings:
            return ConceptResolution(
                source=source,
                target=TargetVocabulary.NAMASTE,
                tier=ResolutionTier.CURATED,
                candidates=rank(self._reverse_curated(code, m) for m in mappings),
            )

        if not source.display:
            return ConceptResolution(source=source, target=TargetVocabulary.NAMASTE, found=False)

        text = similarity.composite_text(source.display, source.description)
        keywords = similarity.significant_keywords(text)
        try:
            matches = await self.store.search_source_by_keywords(keywords, self.prefilter_limit)
        except StoreUnavailable as e:
            logger.warning(f"heuristic tier unavailable for ICD-11 {code}: {e}")
            matches = []

        scored = sorted(
            ((similarity.heuristic_confidence(text, m.display), m) for m in matches),
            key=lambda item: (-item[0], item[1].code),
        )
        candidates = [
            CandidateMatch(
                target_code=match.code,
                target_system=CodeSystem.NAMASTE,
                target_display=match.display,
                equivalence=Equivalence.RELATED,
                confidence_score=score,
                clinical_evidence=f"Reverse-mapped from ICD-11 TM2: {code}",
                mapping_method=REVERSE_HEURISTIC_METHOD,
                tier=ResolutionTier.HEURISTIC,
            )
            for score, match in scored[:HEURISTIC_CANDIDATE_LIMIT]
        ]
        return ConceptResolution(
            source=source,
            target=TargetVocabulary.NAMASTE,
            tier=ResolutionTier.HEURISTIC if candidates else None,
            candidates=candidates,
        )

    @staticmethod
    def _reverse_curated(icd11_code: str, mapping: CuratedMapping) -> CandidateMatch:
        return CandidateMatch(
            target_code=mapping.ayush_code,
            target_system=CodeSystem.NAMASTE,
            target_display=mapping.ayush_term,
            equivalence=mapping.equivalence,
            confidence_score=mapping.mapping_confidence,
            clinical_evidence=mapping.clinical_evidence
            or f"Curated mapping between {mapping.ayush_term or mapping.ayush_code} and {icd11_code}",
            mapping_method=mapping.mapping_method or CURATED_METHOD,
            tier=ResolutionTier.CURATED,
        )
