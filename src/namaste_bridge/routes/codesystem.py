"""
FHIR CodeSystem API routes for the NAMASTE terminology bridge.

Handles FHIR R4 CodeSystem resource operations.
"""

from fastapi import APIRouter, Depends, HTTPException, Query

from namaste_bridge.dependencies import get_store
from namaste_bridge.schema import Concept, FHIRCodeSystem
from namaste_bridge.services.concept_store import ConceptStore
from namaste_bridge.services.fhir_builder import codesystem_bundle, namaste_codesystem

router = APIRouter()


@router.get(
    "/CodeSystem/namaste",
    response_model=FHIRCodeSystem,
    summary="Get NAMASTE CodeSystem",
    description="Retrieve the NAMASTE terminology CodeSystem in FHIR R4 format"
)
async def get_namaste_codesystem(
    page: int = Query(1, ge=1, description="Page number (1-based)"),
    page_size: int = Query(100, ge=1, le=1000, description="Number of concepts per page"),
    store: ConceptStore = Depends(get_store)
):
    """
    Get NAMASTE CodeSystem in FHIR R4 format.

    Args:
        page: Page number (1-based)
        page_size: Number of concepts per page
        store: Concept store bound to the request's session

    Returns:
        FHIR CodeSystem resource holding one page of concepts
    """
    concepts = await store.list_source_concepts(offset=(page - 1) * page_size, limit=page_size)
    return namaste_codesystem(concepts, total=await store.count_source_concepts())


@router.get(
    "/CodeSystem/namaste/{code}",
    response_model=Concept,
    summary="Get NAMASTE Concept by Code",
    description="Retrieve a specific NAMASTE concept by its code"
)
async def get_namaste_concept(
    code: str,
    store: ConceptStore = Depends(get_store)
):
    concept = await store.get_source_concept(code)
    if not concept:
        raise HTTPException(
            status_code=404,
            detail=f"NAMASTE concept with code '{code}' not found"
        )
    return concept


@router.get(
    "/CodeSystem",
    summary="List Available CodeSystems",
    description="List all available terminology CodeSystems"
)
async def list_codesystems():
    return codesystem_bundle()
