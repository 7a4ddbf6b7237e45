"""
Translation API routes for the NAMASTE terminology bridge.

Handles concept translation between NAMASTE and ICD-11 / SNOMED CT / LOINC.
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from loguru import logger

from namaste_bridge.dependencies import get_resolver
from namaste_bridge.errors import InvalidInput
from namaste_bridge.schema import (
    CodeSystem,
    Concept,
    ConceptResolution,
    ResolveRequest,
    TargetVocabulary,
    TranslateRequest,
    TranslateResponse,
)
from namaste_bridge.services.fhir_builder import translation_parameters
from namaste_bridge.services.resolver import MappingResolver

router = APIRouter()

NAMASTE_SYSTEMS = {"namaste", "ayush"}
ICD11_SYSTEMS = {"icd11", "icd-11", "icd11-tm2", "icd-11-tm2"}


async def run_translation(
    resolver: MappingResolver,
    system: str,
    code: str,
    target: TargetVocabulary = TargetVocabulary.ICD11,
    context: Optional[str] = None,
) -> ConceptResolution:
    """Forward resolution for NAMASTE sources, reverse resolution for ICD-11 sources."""
    source_system = system.strip().lower()
    if source_system in NAMASTE_SYSTEMS:
        return await resolver.resolve_code(code, target, context=context)
    if source_system in ICD11_SYSTEMS:
        return await resolver.resolve_reverse(code)
    raise InvalidInput(f"Unsupported source system '{system}'; expected namaste or icd11")


@router.post(
    "/translate",
    response_model=TranslateResponse,
    summary="Translate Concept",
    description="Translate a NAMASTE code to ICD-11, SNOMED CT or LOINC, or an ICD-11 code back to NAMASTE"
)
async def translate_concept(
    request: TranslateRequest,
    resolver: MappingResolver = Depends(get_resolver)
):
    """
    Translate a concept from one terminology system to another.

    Args:
        request: Translation request with system, code and target vocabulary
        resolver: Mapping resolver bound to the request's session

    Returns:
        FHIR Parameters resource with ranked translation candidates
    """
    resolution = await run_translation(
        resolver,
        request.system,
        request.code,
        target=request.target,
        context=request.context,
    )
    logger.debug(
        f"Translated {request.system}|{request.code} -> {len(resolution.candidates)} candidates "
        f"({resolution.tier.value if resolution.tier else 'none'})"
    )
    return translation_parameters(resolution)


@router.get(
    "/translate/{system}/{code}",
    response_model=TranslateResponse,
    summary="Translate Concept (GET)",
    description="Translate a concept using GET method"
)
async def translate_concept_get(
    system: str,
    code: str,
    target: TargetVocabulary = Query(TargetVocabulary.ICD11, description="Target vocabulary for NAMASTE sources"),
    resolver: MappingResolver = Depends(get_resolver)
):
    resolution = await run_translation(resolver, system, code, target=target)
    return translation_parameters(resolution)


@router.post(
    "/resolve",
    response_model=ConceptResolution,
    summary="Resolve Concept",
    description="Resolve an ad-hoc source concept and return the raw ranked candidates"
)
async def resolve_concept(
    request: ResolveRequest,
    resolver: MappingResolver = Depends(get_resolver)
):
    """
    Resolve a source concept that need not exist in the NAMASTE table.

    The code, when given, lets curated mappings apply; display, description and
    category drive the heuristic and category tiers.
    """
    concept = Concept(
        system=CodeSystem.NAMASTE,
        code=(request.code or "").strip(),
        display=request.display.strip(),
        description=request.description,
        category=request.category,
    )
    return await resolver.resolve(concept, request.target)
