"""
Curated mapping API routes for the NAMASTE terminology bridge.

Listing, curation upserts, statistics and the FHIR ConceptMap view of the
approved mappings.
"""

import math
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from loguru import logger

from namaste_bridge.dependencies import get_store
from namaste_bridge.schema import (
    FHIRConceptMap,
    MappingCreate,
    MappingListResponse,
    MappingStatus,
    MappingWriteResponse,
    Pagination,
)
from namaste_bridge.services import bridges
from namaste_bridge.services.concept_store import ConceptStore
from namaste_bridge.services.fhir_builder import CONCEPT_MAP_ID, concept_map

router = APIRouter()


def _coverage(mapped: int, available: int) -> int:
    """Whole-number percentage; 0 when nothing is available."""
    if available <= 0:
        return 0
    return round(mapped / available * 100)


@router.get(
    "/mappings",
    response_model=MappingListResponse,
    summary="List Curated Mappings",
    description="List curated NAMASTE mappings, newest first"
)
async def list_mappings(
    status: str = Query("approved", description="approved, pending, rejected or all"),
    page: int = Query(1, ge=1, description="Page number (1-based)"),
    limit: int = Query(50, ge=1, le=500, description="Mappings per page"),
    store: ConceptStore = Depends(get_store)
):
    """
    List curated mappings with optional status filtering.

    Args:
        status: Mapping status filter, or ``all``
        page: Page number (1-based)
        limit: Mappings per page
        store: Concept store bound to the request's session

    Returns:
        A page of mappings with pagination details
    """
    if status == "all":
        status_filter = None
    else:
        try:
            status_filter = MappingStatus(status)
        except ValueError:
            raise HTTPException(status_code=400, detail=f"Unknown mapping status '{status}'")

    mappings, total = await store.list_mappings(status=status_filter, offset=(page - 1) * limit, limit=limit)
    return MappingListResponse(
        mappings=mappings,
        pagination=Pagination(page=page, limit=limit, total=total, pages=math.ceil(total / limit)),
    )


@router.post(
    "/mappings",
    response_model=MappingWriteResponse,
    summary="Create or Update Mapping",
    description="Upsert a curated mapping on (ayush_code, icd11_code)"
)
async def create_mapping(
    request: MappingCreate,
    response: Response,
    store: ConceptStore = Depends(get_store)
):
    mapping, created = await store.upsert_mapping(request)
    logger.info(
        f"{'Created' if created else 'Updated'} mapping {mapping.ayush_code} -> {mapping.icd11_code} "
        f"({mapping.status.value}, confidence {mapping.mapping_confidence})"
    )
    response.status_code = 201 if created else 200
    return MappingWriteResponse(created=created, mapping=mapping)


@router.get(
    "/mappings/statistics",
    summary="Get Mapping Statistics",
    description="Vocabulary counts, mapping coverage and bridge quality breakdown"
)
async def get_mapping_statistics(store: ConceptStore = Depends(get_store)) -> Dict[str, Any]:
    """
    Get statistics about curated mappings.

    Coverage is the share of active NAMASTE codes carrying each mapping kind.
    """
    counts = await store.count_statistics()
    approved = await store.all_approved_mappings()
    namaste_total = counts["namaste_codes_available"]

    return {
        "terminology_systems": {
            "namaste_codes_available": namaste_total,
            "icd11_tm2_codes_available": counts["icd11_tm2_codes_available"],
            "snomed_ct_codes_available": counts["snomed_ct_codes_available"],
            "loinc_codes_available": counts["loinc_codes_available"],
        },
        "mappings": {
            "total_active_mappings": counts["total_active_mappings"],
            "icd11_mappings": counts["total_active_mappings"],
            "snomed_ct_mappings": counts["snomed_ct_mappings"],
            "loinc_mappings": counts["loinc_mappings"],
        },
        "coverage": {
            "icd11_coverage": _coverage(len({m.ayush_code for m in approved}), namaste_total),
            "snomed_ct_coverage": _coverage(len({m.ayush_code for m in approved if m.snomed_ct_code}), namaste_total),
            "loinc_coverage": _coverage(len({m.ayush_code for m in approved if m.loinc_code}), namaste_total),
        },
        "quality": bridges.quality_statistics(approved),
    }


@router.get(
    f"/fhir/ConceptMap/{CONCEPT_MAP_ID}",
    response_model=FHIRConceptMap,
    summary="Get NAMASTE to ICD-11 ConceptMap",
    description="Approved curated mappings as a FHIR R4 ConceptMap"
)
async def get_concept_map(
    code: Optional[str] = Query(None, description="Restrict to one NAMASTE code"),
    store: ConceptStore = Depends(get_store)
):
    if code:
        mappings = await store.approved_mappings(code)
    else:
        mappings = await store.all_approved_mappings()
    return concept_map(mappings)
