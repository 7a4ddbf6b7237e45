"""
FHIR R4 resource builders.

Turns resolver output and curated mappings into Parameters, ConceptMap and
CodeSystem resources.
"""

from typing import Any, Dict, Iterable, List, Optional

from namaste_bridge.schema import (
    CandidateMatch,
    CodeSystem,
    Concept,
    ConceptResolution,
    CuratedMapping,
)

NAMASTE_URI = "http://namaste.example.com/fhir/CodeSystem/namaste"
ICD11_MMS_URI = "https://id.who.int/icd/release/11/2025-01/mms"

SYSTEM_URIS = {
    CodeSystem.NAMASTE: NAMASTE_URI,
    CodeSystem.ICD11_TM2: "http://id.who.int/icd/release/11/tm2",
    CodeSystem.ICD11_MMS: ICD11_MMS_URI,
    CodeSystem.SNOMED_CT: "http://snomed.info/sct",
    CodeSystem.LOINC: "http://loinc.org",
}

CONCEPT_MAP_ID = "namaste-to-icd11"


def coding(system: CodeSystem, code: str, display: Optional[str] = None) -> Dict[str, Any]:
    result = {"system": SYSTEM_URIS[system], "code": code}
    if display:
        result["display"] = display
    return result


def _match_parameter(candidate: CandidateMatch) -> Dict[str, Any]:
    parts = [
        {"name": "equivalence", "valueCode": candidate.equivalence.value},
        {
            "name": "concept",
            "valueCoding": coding(candidate.target_system, candidate.target_code, candidate.target_display),
        },
        {"name": "source", "valueString": candidate.mapping_method},
        {"name": "confidence", "valueDecimal": candidate.confidence_score},
    ]
    if candidate.clinical_evidence:
        parts.append({"name": "evidence", "valueString": candidate.clinical_evidence})
    if candidate.bridge:
        parts.append({"name": "mappingPath", "valueString": candidate.bridge.mapping_path})
        parts.append({"name": "enhancedConfidence", "valueDecimal": candidate.bridge.enhanced_confidence})
    return {"name": "match", "part": parts}


def translation_parameters(resolution: ConceptResolution) -> Dict[str, Any]:
    """
    FHIR Parameters resource for a $translate-style response.

    ``result`` is true when at least one candidate was found; a ``message`` is
    added when the source code is unknown or nothing matched.
    """
    parameters: List[Dict[str, Any]] = [
        {"name": "result", "valueBoolean": bool(resolution.candidates)}
    ]
    source = resolution.source
    if not resolution.found:
        parameters.append({"name": "message", "valueString": f"Code '{source.code}' not found"})
    elif not resolution.candidates:
        parameters.append({
            "name": "message",
            "valueString": f"No {resolution.target.value} mapping found for '{source.code}'",
        })
    parameters.extend(_match_parameter(c) for c in resolution.candidates)
    return {"resourceType": "Parameters", "parameter": parameters}


def concept_map(mappings: Iterable[CuratedMapping]) -> Dict[str, Any]:
    """ConceptMap of approved NAMASTE -> ICD-11 mappings, one element per NAMASTE code."""
    elements: Dict[str, Dict[str, Any]] = {}
    for mapping in mappings:
        element = elements.setdefault(mapping.ayush_code, {
            "code": mapping.ayush_code,
            "display": mapping.ayush_term,
            "target": [],
        })
        target = {
            "code": mapping.icd11_code,
            "display": mapping.icd11_term,
            "equivalence": mapping.equivalence.value,
            "comment": f"Confidence: {mapping.mapping_confidence}",
        }
        if mapping.snomed_ct_code:
            target["dependsOn"] = [{
                "property": SYSTEM_URIS[CodeSystem.SNOMED_CT],
                "value": mapping.snomed_ct_code,
                "display": mapping.snomed_ct_term,
            }]
        element["target"].append(target)

    return {
        "resourceType": "ConceptMap",
        "id": CONCEPT_MAP_ID,
        "url": f"http://namaste.example.com/fhir/ConceptMap/{CONCEPT_MAP_ID}",
        "version": "1.0",
        "name": "NAMASTE to ICD-11 Mapping",
        "status": "active",
        "sourceUri": NAMASTE_URI,
        "targetUri": ICD11_MMS_URI,
        "group": [{
            "source": NAMASTE_URI,
            "target": ICD11_MMS_URI,
            "element": list(elements.values()),
        }],
    }


def namaste_codesystem(concepts: Iterable[Concept], total: Optional[int] = None) -> Dict[str, Any]:
    fhir_concepts = []
    for concept in concepts:
        fhir_concept = {
            "code": concept.code,
            "display": concept.display,
            "definition": concept.description or "",
        }
        if concept.category:
            fhir_concept["property"] = [{"code": "category", "valueString": concept.category}]
        fhir_concepts.append(fhir_concept)

    resource = {
        "resourceType": "CodeSystem",
        "id": "namaste",
        "url": NAMASTE_URI,
        "version": "1.0",
        "name": "NAMASTE Traditional Medicine Terminology",
        "status": "active",
        "content": "complete",
        "concept": fhir_concepts,
    }
    if total is not None:
        resource["count"] = total
    return resource


def codesystem_bundle() -> Dict[str, Any]:
    """Searchset Bundle listing the served code systems."""
    entries = [
        ("namaste", NAMASTE_URI, "1.0", "NAMASTE Traditional Medicine Terminology",
         "Traditional medicine terminology system"),
        ("icd11", ICD11_MMS_URI, "2025-01", "ICD-11",
         "International Classification of Diseases, 11th Revision"),
        ("icd11-tm2", SYSTEM_URIS[CodeSystem.ICD11_TM2], "2025-01", "ICD-11 Traditional Medicine Chapter 2",
         "ICD-11 Traditional Medicine Module 2 conditions and patterns"),
        ("snomed-ct", SYSTEM_URIS[CodeSystem.SNOMED_CT], "current", "SNOMED CT",
         "SNOMED Clinical Terms, used as a bridge terminology"),
        ("loinc", SYSTEM_URIS[CodeSystem.LOINC], "current", "LOINC",
         "Logical Observation Identifiers Names and Codes, used as a bridge terminology"),
    ]
    return {
        "resourceType": "Bundle",
        "type": "searchset",
        "total": len(entries),
        "entry": [
            {
                "resource": {
                    "resourceType": "CodeSystem",
                    "id": system_id,
                    "url": url,
                    "version": version,
                    "name": name,
                    "status": "active",
                    "content": "complete",
                    "description": description,
                }
            }
            for system_id, url, version, name, description in entries
        ],
    }
