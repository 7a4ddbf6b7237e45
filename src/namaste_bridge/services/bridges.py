"""
SNOMED CT / LOINC bridge details for curated mappings.

Bridges raise the reported quality of a NAMASTE -> ICD-11 mapping; they are not
mappings in their own right.
"""

from typing import Dict, Iterable, List, Optional

from namaste_bridge.schema import BridgeDetails, CuratedMapping, LoincBridge, SnomedBridge

# (boost, cap) per bridge combination
DUAL_BRIDGE = (0.20, 0.95)
SNOMED_BRIDGE = (0.15, 0.90)
LOINC_BRIDGE = (0.10, 0.85)


def snomed_bridge(mapping: CuratedMapping) -> Optional[SnomedBridge]:
    if not mapping.snomed_ct_code:
        return None
    return SnomedBridge(
        code=mapping.snomed_ct_code,
        term=mapping.snomed_ct_term,
        semantic_tag=mapping.semantic_tag,
    )


def loinc_bridge(mapping: CuratedMapping) -> Optional[LoincBridge]:
    if not mapping.loinc_code:
        return None
    return LoincBridge(code=mapping.loinc_code, term=mapping.loinc_term)


def quality_level(mapping: CuratedMapping) -> str:
    if mapping.snomed_ct_code and mapping.loinc_code:
        return "high_confidence_dual_bridge"
    if mapping.snomed_ct_code:
        return "enhanced_snomed_bridge"
    if mapping.loinc_code:
        return "enhanced_loinc_bridge"
    return "basic"


def enhanced_confidence(mapping: CuratedMapping) -> float:
    """Stored confidence raised by the bridge boost, never lowered by the cap."""
    base = mapping.mapping_confidence
    if mapping.snomed_ct_code and mapping.loinc_code:
        boost, cap = DUAL_BRIDGE
    elif mapping.snomed_ct_code:
        boost, cap = SNOMED_BRIDGE
    elif mapping.loinc_code:
        boost, cap = LOINC_BRIDGE
    else:
        return base
    return max(base, min(cap, base + boost))


def mapping_path(mapping: CuratedMapping) -> str:
    hops = ["NAMASTE"]
    if mapping.snomed_ct_code:
        hops.append("SNOMED CT")
    if mapping.loinc_code:
        hops.append("LOINC")
    hops.append("ICD-11")
    return " → ".join(hops)


def bridge_details(mapping: CuratedMapping) -> Optional[BridgeDetails]:
    """Bridge details for a mapping, or None when it carries no bridge code."""
    snomed = snomed_bridge(mapping)
    loinc = loinc_bridge(mapping)
    if snomed is None and loinc is None:
        return None
    return BridgeDetails(
        snomed=snomed,
        loinc=loinc,
        mapping_path=mapping_path(mapping),
        quality_level=quality_level(mapping),
        enhanced_confidence=enhanced_confidence(mapping),
        cross_validated=mapping.cross_validated,
    )


def _average(mappings: List[CuratedMapping]) -> float:
    if not mappings:
        return 0.0
    return round(sum(m.mapping_confidence for m in mappings) / len(mappings), 4)


def quality_statistics(mappings: Iterable[CuratedMapping]) -> Dict[str, object]:
    """Breakdown of approved mappings by bridge coverage."""
    mappings = list(mappings)
    basic = [m for m in mappings if not m.snomed_ct_code and not m.loinc_code]
    snomed = [m for m in mappings if m.snomed_ct_code]
    loinc = [m for m in mappings if m.loinc_code]
    dual = [m for m in mappings if m.snomed_ct_code and m.loinc_code]

    return {
        "total_mappings": len(mappings),
        "basic_mappings": len(basic),
        "snomed_enhanced": len(snomed),
        "loinc_enhanced": len(loinc),
        "dual_bridge": len(dual),
        "cross_validated": sum(1 for m in mappings if m.cross_validated),
        "confidence_by_type": {
            "basic": _average(basic),
            "snomed_bridge": _average(snomed),
            "loinc_bridge": _average(loinc),
            "dual_bridge": _average(dual),
        },
    }
