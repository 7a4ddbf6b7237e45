"""
Tests for concept translation functionality.
"""

import pytest

from namaste_bridge.services.fhir_builder import ICD11_MMS_URI, NAMASTE_URI, SYSTEM_URIS
from namaste_bridge.schema import CodeSystem


def _parameters(data, name):
    return [p for p in data["parameter"] if p["name"] == name]


def _part(match, name):
    return next(p for p in match["part"] if p["name"] == name)


class TestTranslateEndpoints:
    """Test translation endpoints."""

    def test_translate_concept_post(self, seeded_client):
        """Test concept translation using POST method."""
        response = seeded_client.post("/translate", json={"system": "namaste", "code": "NAM004"})

        assert response.status_code == 200
        data = response.json()
        assert data["resourceType"] == "Parameters"
        assert _parameters(data, "result")[0]["valueBoolean"] is True

        matches = _parameters(data, "match")
        assert len(matches) == 1
        match = matches[0]
        assert _part(match, "equivalence")["valueCode"] == "equivalent"
        assert _part(match, "concept")["valueCoding"] == {
            "system": ICD11_MMS_URI,
            "code": "SM25.1",
            "display": "Digestive fire deficiency pattern",
        }
        assert _part(match, "confidence")["valueDecimal"] == 0.85
        assert _part(match, "mappingPath")["valueString"] == "NAMASTE → SNOMED CT → ICD-11"
        assert _part(match, "enhancedConfidence")["valueDecimal"] == pytest.approx(0.90)

    def test_translate_concept_get(self, seeded_client):
        """Test concept translation using GET method."""
        response = seeded_client.get("/translate/namaste/NAM001")

        assert response.status_code == 200
        matches = _parameters(response.json(), "match")
        assert [_part(m, "concept")["valueCoding"]["code"] for m in matches] == ["SS81.0"]
        assert _part(matches[0], "source")["valueString"] == "intelligent_semantic"
        assert _part(matches[0], "equivalence")["valueCode"] == "related"
        assert _part(matches[0], "confidence")["valueDecimal"] == pytest.approx(0.60)

    def test_translate_falls_back_to_category(self, seeded_client):
        response = seeded_client.get("/translate/namaste/NAM008")

        matches = _parameters(response.json(), "match")
        assert len(matches) == 1
        assert _part(matches[0], "concept")["valueCoding"]["code"] == "SP90.1"
        assert _part(matches[0], "concept")["valueCoding"]["display"] == "Immune deficiency pattern"
        assert _part(matches[0], "source")["valueString"] == "category_based"
        assert _part(matches[0], "confidence")["valueDecimal"] == 0.75

    def test_translate_to_snomed(self, seeded_client):
        response = seeded_client.get("/translate/namaste/NAM011", params={"target": "snomed-ct"})

        matches = _parameters(response.json(), "match")
        coding = _part(matches[0], "concept")["valueCoding"]
        assert coding["system"] == SYSTEM_URIS[CodeSystem.SNOMED_CT]
        assert coding["code"] == "49727002"
        assert _part(matches[0], "source")["valueString"] == "intelligent_snomed_semantic"

    def test_translate_to_loinc_uses_curated_bridge(self, seeded_client):
        response = seeded_client.post(
            "/translate",
            json={"system": "namaste", "code": "NAM006", "target": "loinc"},
        )

        matches = _parameters(response.json(), "match")
        assert [_part(m, "concept")["valueCoding"]["code"] for m in matches] == ["2345-7"]

    def test_translate_without_any_match(self, seeded_client):
        response = seeded_client.get("/translate/namaste/NAM011")

        assert response.status_code == 200
        data = response.json()
        assert _parameters(data, "result")[0]["valueBoolean"] is False
        assert _parameters(data, "message")[0]["valueString"] == "No icd11 mapping found for 'NAM011'"
        assert _parameters(data, "match") == []

    def test_translate_nonexistent_code(self, seeded_client):
        """Test translation of non-existent code."""
        response = seeded_client.post("/translate", json={"system": "namaste", "code": "NONEXISTENT"})

        assert response.status_code == 200
        data = response.json()
        assert _parameters(data, "result")[0]["valueBoolean"] is False
        assert _parameters(data, "message")[0]["valueString"] == "Code 'NONEXISTENT' not found"

    def test_translate_pending_mapping_is_ignored(self, seeded_client):
        seeded_client.post("/mappings", json={
            "ayush_code": "NAM001",
            "icd11_code": "SS82.0",
            "confidence": 0.99,
            "status": "pending",
        })

        response = seeded_client.get("/translate/namaste/NAM001")

        matches = _parameters(response.json(), "match")
        assert [_part(m, "concept")["valueCoding"]["code"] for m in matches] == ["SS81.0"]


class TestReverseTranslation:
    """Test ICD-11 to NAMASTE translation."""

    def test_reverse_uses_curated_mapping(self, seeded_client):
        response = seeded_client.get("/translate/icd11/SK25.0")

        assert response.status_code == 200
        matches = _parameters(response.json(), "match")
        assert len(matches) == 1
        assert _part(matches[0], "concept")["valueCoding"] == {
            "system": NAMASTE_URI,
            "code": "NAM009",
            "display": "Anidra",
        }
        assert _part(matches[0], "confidence")["valueDecimal"] == 0.90

    def test_reverse_heuristic(self, seeded_client):
        response = seeded_client.post("/translate", json={"system": "icd-11-tm2", "code": "SS82.0"})

        matches = _parameters(response.json(), "match")
        assert [_part(m, "concept")["valueCoding"]["code"] for m in matches] == ["NAM002", "NAM005"]
        assert _part(matches[0], "source")["valueString"] == "intelligent_reverse_semantic"

    def test_reverse_unknown_code(self, seeded_client):
        response = seeded_client.get("/translate/icd11/XX99.9")

        data = response.json()
        assert _parameters(data, "result")[0]["valueBoolean"] is False
        assert _parameters(data, "message")[0]["valueString"] == "Code 'XX99.9' not found"


class TestTranslateValidation:
    """Test translation input validation."""

    def test_translate_invalid_system(self, seeded_client):
        """Test translation with invalid system."""
        response = seeded_client.post("/translate", json={"system": "invalid", "code": "NAM004"})

        assert response.status_code == 400
        data = response.json()
        assert data["error"] == "invalid_input"
        assert "invalid" in data["message"]

    def test_translate_missing_fields(self, client):
        """Test translation with missing required fields."""
        response = client.post("/translate", json={"system": "namaste"})
        assert response.status_code == 422

    def test_translate_empty_code(self, client):
        response = client.post("/translate", json={"system": "namaste", "code": ""})
        assert response.status_code == 422

    def test_translate_blank_code(self, client):
        response = client.post("/translate", json={"system": "namaste", "code": "   "})
        assert response.status_code == 400

    def test_translate_rejects_namaste_target(self, seeded_client):
        response = seeded_client.post(
            "/translate",
            json={"system": "namaste", "code": "NAM004", "target": "namaste"},
        )
        assert response.status_code == 400

    def test_translate_unknown_target(self, client):
        response = client.get("/translate/namaste/NAM004", params={"target": "mesh"})
        assert response.status_code == 422


class TestResolveEndpoint:
    """Test resolution of ad-hoc concepts."""

    def test_resolve_ad_hoc_concept(self, seeded_client):
        response = seeded_client.post("/resolve", json={"display": "Insomnia", "category": "mental"})

        assert response.status_code == 200
        data = response.json()
        assert data["found"] is True
        assert data["tier"] == "heuristic"
        assert data["target"] == "icd11"
        assert [c["target_code"] for c in data["candidates"]] == ["SK25.0"]
        assert data["candidates"][0]["equivalence"] == "equivalent"

    def test_resolve_with_code_uses_curated_mappings(self, seeded_client):
        response = seeded_client.post("/resolve", json={
            "code": "NAM006",
            "display": "Prameha",
            "target": "loinc",
        })

        data = response.json()
        assert data["tier"] == "curated"
        assert data["candidates"][0]["target_code"] == "2345-7"
        assert data["candidates"][0]["target_system"] == "LOINC"

    def test_resolve_category_only(self, seeded_client):
        response = seeded_client.post("/resolve", json={"display": "Udara", "category": "mental"})

        data = response.json()
        assert data["tier"] == "category_fallback"
        assert [c["target_code"] for c in data["candidates"]] == ["SK25.0"]

    def test_resolve_with_nothing_to_match(self, seeded_client):
        response = seeded_client.post("/resolve", json={"display": "Zzyzx"})

        data = response.json()
        assert data["tier"] is None
        assert data["candidates"] == []
