"""
Terminology search API routes for the NAMASTE terminology bridge.

Searches NAMASTE concepts and resolves each hit against the requested target
vocabulary, optionally alongside direct target-vocabulary and WHO ICD-11 matches.
"""

import time
from typing import Dict, List

from fastapi import APIRouter, Depends, Query
from loguru import logger

from namaste_bridge.config import settings
from namaste_bridge.dependencies import get_biomedical_index, get_icd11_client, get_resolver
from namaste_bridge.errors import InvalidInput, StoreUnavailable
from namaste_bridge.schema import (
    Concept,
    ConceptResolution,
    SearchResponse,
    SearchResult,
    TargetVocabulary,
)
from namaste_bridge.services import similarity
from namaste_bridge.services.biomedical_index import Tm2BiomedicalIndex
from namaste_bridge.services.icd11_client import ICD11Client
from namaste_bridge.services.resolver import MappingResolver

router = APIRouter()

DIRECT_VOCABULARIES = (TargetVocabulary.ICD11, TargetVocabulary.SNOMED_CT, TargetVocabulary.LOINC)


def _search_result(resolution: ConceptResolution, index: Tm2BiomedicalIndex) -> SearchResult:
    # Curated and heuristic ICD-11 candidates may both carry TM2 codes
    biomedical = next(
        (b for b in (index.biomedical_for(c.target_code) for c in resolution.candidates) if b),
        None,
    )
    return SearchResult(
        concept=resolution.source,
        tier=resolution.tier,
        candidates=resolution.candidates,
        biomedical=biomedical,
    )


async def _direct_matches(resolver: MappingResolver, query: str, limit: int) -> Dict[str, List[Concept]]:
    """Target concepts matching the query text itself; an unavailable vocabulary yields no matches."""
    keywords = similarity.significant_keywords(query.lower())
    matches = {}
    for vocabulary in DIRECT_VOCABULARIES:
        try:
            matches[vocabulary.value] = await resolver.store.search_target_concepts(vocabulary, keywords, limit)
        except StoreUnavailable as e:
            logger.warning(f"Direct {vocabulary.value} search unavailable: {e}")
            matches[vocabulary.value] = []
    return matches


@router.get(
    "/search",
    response_model=SearchResponse,
    summary="Search Terminology",
    description="Search NAMASTE concepts and resolve each hit to the target vocabulary"
)
async def search_terms(
    q: str = Query(..., description="Search query string", min_length=1, max_length=200),
    target: TargetVocabulary = Query(TargetVocabulary.ICD11, description="Target vocabulary"),
    limit: int = Query(
        settings.default_search_limit,
        description="Maximum number of NAMASTE concepts",
        ge=1,
        le=settings.max_search_results,
    ),
    include_direct: bool = Query(False, description="Also search ICD-11 TM2, SNOMED CT and LOINC directly"),
    include_who: bool = Query(False, description="Also search the WHO ICD-11 API"),
    resolver: MappingResolver = Depends(get_resolver),
    index: Tm2BiomedicalIndex = Depends(get_biomedical_index),
    icd11_client: ICD11Client = Depends(get_icd11_client)
):
    """
    Search for NAMASTE concepts and their mappings.

    Args:
        q: Search query string
        target: Target vocabulary for resolution
        limit: Maximum number of NAMASTE concepts
        include_direct: Add direct target-vocabulary matches
        include_who: Add WHO ICD-11 API matches
        resolver: Mapping resolver bound to the request's session
        index: TM2 biomedical mapping index
        icd11_client: WHO ICD-11 API client

    Returns:
        Resolved search hits with the mean candidate confidence
    """
    start_time = time.time()
    query = q.strip()
    if not query:
        raise InvalidInput("Search query must not be blank")

    concepts = await resolver.store.search_source_concepts(query, limit=limit)
    if target == TargetVocabulary.NAMASTE:
        batch = None
        results = [SearchResult(concept=c) for c in concepts]
    else:
        batch = await resolver.resolve_batch(concepts, target)
        results = [_search_result(r, index) for r in batch.results]

    direct_matches = await _direct_matches(resolver, query, limit) if include_direct else {}
    who_matches = await icd11_client.search(query, limit=limit) if include_who else []

    execution_time = (time.time() - start_time) * 1000

    return SearchResponse(
        query=query,
        target=target,
        total_results=len(results),
        results=results,
        aggregate_confidence=batch.aggregate_confidence if batch else 0.0,
        direct_matches=direct_matches,
        who_matches=who_matches,
        execution_time_ms=execution_time
    )
