"""
Pydantic schemas for the NAMASTE terminology bridge.

Defines the resolver's value types and the API request/response models.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, ConfigDict, Field


class CodeSystem(str, Enum):
    """Code-system labels carried on concepts and candidates."""
    NAMASTE = "NAMASTE"
    ICD11_TM2 = "ICD-11-TM2"
    ICD11_MMS = "ICD-11-MMS"
    SNOMED_CT = "SNOMED-CT"
    LOINC = "LOINC"


class TargetVocabulary(str, Enum):
    """Target vocabulary a caller asks the resolver for. NAMASTE is only a reverse-resolution target."""
    ICD11 = "icd11"
    SNOMED_CT = "snomed-ct"
    LOINC = "loinc"
    NAMASTE = "namaste"


class Equivalence(str, Enum):
    EQUIVALENT = "equivalent"
    WIDER = "wider"
    INEXACT = "inexact"
    RELATED = "related"


class ResolutionTier(str, Enum):
    """Which resolution strategy produced a candidate."""
    CURATED = "curated"
    HEURISTIC = "heuristic"
    CATEGORY_FALLBACK = "category_fallback"


class MappingStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


def normalize_equivalence(value: Optional[str]) -> Equivalence:
    """Coerce a stored equivalence label; unknown or missing labels become ``related``."""
    try:
        return Equivalence((value or "").strip().lower())
    except ValueError:
        return Equivalence.RELATED


# Resolver value types
class Concept(BaseModel):
    """A term in one vocabulary."""
    model_config = ConfigDict(frozen=True)

    system: CodeSystem
    code: str
    display: str = ""
    description: Optional[str] = None
    category: Optional[str] = None
    semantic_tag: Optional[str] = None
    equivalence: Optional[Equivalence] = None


class CuratedMapping(BaseModel):
    """A persisted NAMASTE to ICD-11 mapping with optional bridge codes."""
    model_config = ConfigDict(frozen=True)

    id: Optional[int] = None
    ayush_code: str
    ayush_term: Optional[str] = None
    icd11_code: str
    icd11_term: Optional[str] = None
    snomed_ct_code: Optional[str] = None
    snomed_ct_term: Optional[str] = None
    semantic_tag: Optional[str] = None
    loinc_code: Optional[str] = None
    loinc_term: Optional[str] = None
    mapping_confidence: float = Field(0.5, ge=0.0, le=1.0)
    equivalence: Equivalence = Equivalence.RELATED
    mapping_method: Optional[str] = None
    clinical_evidence: Optional[str] = None
    status: MappingStatus = MappingStatus.PENDING
    cross_validated: bool = False
    curator: Optional[str] = None


class SnomedBridge(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    term: Optional[str] = None
    semantic_tag: Optional[str] = None


class LoincBridge(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: str
    term: Optional[str] = None


class BridgeDetails(BaseModel):
    """Bridge terminologies supporting a curated mapping."""
    model_config = ConfigDict(frozen=True)

    snomed: Optional[SnomedBridge] = None
    loinc: Optional[LoincBridge] = None
    mapping_path: str
    quality_level: str
    enhanced_confidence: float = Field(..., ge=0.0, le=1.0)
    cross_validated: bool = False


class CandidateMatch(BaseModel):
    """One ranked resolver result."""
    model_config = ConfigDict(frozen=True)

    target_code: str
    target_system: CodeSystem
    target_display: Optional[str] = None
    equivalence: Equivalence = Equivalence.RELATED
    confidence_score: float = Field(..., ge=0.0, le=1.0)
    clinical_evidence: Optional[str] = None
    mapping_method: str
    tier: ResolutionTier
    semantic_tag: Optional[str] = None
    bridge: Optional[BridgeDetails] = None


class BiomedicalMapping(BaseModel):
    """ICD-11 biomedical counterpart of an ICD-11 TM2 code."""
    model_config = ConfigDict(frozen=True)

    code: str
    display: Optional[str] = None
    description: Optional[str] = None
    confidence: float = Field(0.8, ge=0.0, le=1.0)


class ConceptResolution(BaseModel):
    """Resolver output for a single source concept."""
    source: Concept
    target: TargetVocabulary
    found: bool = True
    tier: Optional[ResolutionTier] = None
    candidates: List[CandidateMatch] = []


class BatchResolution(BaseModel):
    """Resolver output for several source concepts."""
    results: List[ConceptResolution] = []
    total_candidates: int = 0
    aggregate_confidence: float = 0.0


# Request Models
class TranslateRequest(BaseModel):
    """Request model for code translation."""
    system: str = Field(..., description="Source terminology system (namaste or icd11)", min_length=1, max_length=100)
    code: str = Field(..., description="Code to translate", min_length=1, max_length=100)
    target: TargetVocabulary = Field(TargetVocabulary.ICD11, description="Target vocabulary for namaste sources")
    context: Optional[str] = Field(None, description="Extra clinical context used by heuristic matching", max_length=500)


class ResolveRequest(BaseModel):
    """Request model for resolving an ad-hoc source concept."""
    code: Optional[str] = Field(None, max_length=100)
    display: str = Field(..., min_length=1, max_length=500)
    description: Optional[str] = Field(None, max_length=2000)
    category: Optional[str] = Field(None, max_length=100)
    target: TargetVocabulary = TargetVocabulary.ICD11


class MappingCreate(BaseModel):
    """Request model for creating or updating a curated mapping."""
    ayush_code: str = Field(..., min_length=1, max_length=100)
    icd11_code: str = Field(..., min_length=1, max_length=100)
    ayush_term: Optional[str] = None
    icd11_term: Optional[str] = None
    snomed_ct_code: Optional[str] = None
    snomed_ct_term: Optional[str] = None
    semantic_tag: Optional[str] = None
    loinc_code: Optional[str] = None
    loinc_term: Optional[str] = None
    confidence: float = Field(..., ge=0.0, le=1.0)
    equivalence: Equivalence = Equivalence.RELATED
    mapping_method: str = "manual_curation"
    clinical_evidence: Optional[str] = None
    status: MappingStatus = MappingStatus.APPROVED
    cross_validated: bool = False
    curator: Optional[str] = None


# Response Models
class MappingWriteResponse(BaseModel):
    created: bool
    mapping: CuratedMapping


class Pagination(BaseModel):
    page: int
    limit: int
    total: int
    pages: int


class MappingListResponse(BaseModel):
    mappings: List[CuratedMapping]
    pagination: Pagination


class SearchResult(BaseModel):
    """A NAMASTE search hit together with its resolved candidates."""
    concept: Concept
    tier: Optional[ResolutionTier] = None
    candidates: List[CandidateMatch] = []
    biomedical: Optional[BiomedicalMapping] = None


class SearchResponse(BaseModel):
    """Response model for search endpoint."""
    query: str
    target: TargetVocabulary
    total_results: int
    results: List[SearchResult]
    aggregate_confidence: float = 0.0
    direct_matches: Dict[str, List[Concept]] = {}
    who_matches: List[Concept] = []
    execution_time_ms: Optional[float] = None


class TranslateResponse(BaseModel):
    """Response model for translation endpoint (FHIR Parameters format)."""
    resourceType: str = "Parameters"
    parameter: List[Dict[str, Any]]


class HealthResponse(BaseModel):
    """Response model for health check."""
    status: str
    service: str
    version: str
    database: str
    icd11_api: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# FHIR Models (simplified)
class FHIRCodeSystem(BaseModel):
    """Simplified FHIR CodeSystem resource."""
    resourceType: str = "CodeSystem"
    id: str
    url: str
    version: str
    name: str
    status: str = "active"
    content: str = "complete"
    count: Optional[int] = None
    concept: List[Dict[str, Any]]


class FHIRConceptMap(BaseModel):
    """Simplified FHIR ConceptMap resource."""
    resourceType: str = "ConceptMap"
    id: str
    url: str
    version: str
    name: str
    status: str = "active"
    sourceUri: str
    targetUri: str
    group: List[Dict[str, Any]]


# Error Models
class ErrorResponse(BaseModel):
    """Response model for errors."""
    error: str
    message: str
    details: Optional[Dict[str, Any]] = None
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
