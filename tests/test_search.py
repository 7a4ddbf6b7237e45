"""
Tests for terminology search, the FHIR CodeSystem endpoints and service health.
"""

import httpx
import pytest
from sqlalchemy.exc import OperationalError

from namaste_bridge.dependencies import get_icd11_client, get_store
from namaste_bridge.main import app
from namaste_bridge.services.concept_store import ConceptStore
from namaste_bridge.services.icd11_client import ICD11Client


class BrokenSession:
    async def execute(self, statement):
        raise OperationalError("SELECT", {}, Exception("database is locked"))

    async def rollback(self):
        pass


@pytest.fixture
def broken_store(client):
    app.dependency_overrides[get_store] = lambda: ConceptStore(BrokenSession())
    yield client
    app.dependency_overrides.clear()


class TestSearchEndpoints:
    """Test search functionality."""

    def test_search_resolves_each_hit(self, seeded_client):
        """Test basic search functionality."""
        response = seeded_client.get("/terminology/search", params={"q": "digestive"})

        assert response.status_code == 200
        data = response.json()
        assert data["query"] == "digestive"
        assert data["target"] == "icd11"
        assert data["total_results"] == 2
        assert [r["concept"]["code"] for r in data["results"]] == ["NAM004", "NAM005"]

        curated, heuristic = data["results"]
        assert curated["tier"] == "curated"
        assert curated["candidates"][0]["target_code"] == "SM25.1"
        assert heuristic["tier"] == "heuristic"
        assert heuristic["candidates"][0]["target_code"] == "SM25.2"
        assert data["aggregate_confidence"] == pytest.approx((0.85 + 0.60) / 2)
        assert data["execution_time_ms"] >= 0

    def test_search_attaches_biomedical_mapping(self, seeded_client):
        response = seeded_client.get("/terminology/search", params={"q": "digestive"})

        curated, heuristic = response.json()["results"]
        assert curated["biomedical"]["code"] == "DA92.0"
        assert curated["biomedical"]["display"] == "Functional dyspepsia"
        assert heuristic["biomedical"] is None

    def test_search_snomed_target(self, seeded_client):
        response = seeded_client.get("/terminology/search", params={"q": "insomnia", "target": "snomed-ct"})

        data = response.json()
        assert data["total_results"] == 1
        assert data["results"][0]["candidates"][0]["target_code"] == "193462001"
        assert data["results"][0]["candidates"][0]["target_system"] == "SNOMED-CT"

    def test_search_namaste_target_skips_resolution(self, seeded_client):
        response = seeded_client.get("/terminology/search", params={"q": "dosha", "target": "namaste"})

        data = response.json()
        assert [r["concept"]["code"] for r in data["results"]] == ["NAM001", "NAM002", "NAM003"]
        assert all(r["candidates"] == [] for r in data["results"])
        assert data["aggregate_confidence"] == 0.0

    def test_search_with_direct_matches(self, seeded_client):
        response = seeded_client.get("/terminology/search", params={"q": "insomnia", "include_direct": True})

        direct = response.json()["direct_matches"]
        assert [c["code"] for c in direct["icd11"]] == ["SK25.0"]
        assert [c["code"] for c in direct["snomed-ct"]] == ["193462001"]
        assert direct["loinc"] == []

    def test_search_without_who_credentials(self, seeded_client):
        response = seeded_client.get("/terminology/search", params={"q": "fever", "include_who": True})

        assert response.status_code == 200
        assert response.json()["who_matches"] == []

    def test_search_respects_limit(self, seeded_client):
        response = seeded_client.get("/terminology/search", params={"q": "dosha", "limit": 2})

        assert response.json()["total_results"] == 2

    def test_search_no_results(self, seeded_client):
        """Test search with no results."""
        response = seeded_client.get("/terminology/search", params={"q": "nonexistentterm12345"})

        assert response.status_code == 200
        data = response.json()
        assert data["total_results"] == 0
        assert data["results"] == []

    @pytest.mark.parametrize("params", [
        {"q": ""},
        {"q": "x" * 201},
        {"q": "fever", "limit": 0},
        {"q": "fever", "limit": 101},
        {"q": "fever", "target": "mesh"},
    ])
    def test_search_validation(self, client, params):
        """Test search parameter validation."""
        response = client.get("/terminology/search", params=params)
        assert response.status_code == 422

    def test_search_rejects_blank_query(self, seeded_client):
        response = seeded_client.get("/terminology/search", params={"q": "   "})

        assert response.status_code == 400
        assert response.json()["error"] == "invalid_input"

    def test_search_store_unavailable(self, broken_store):
        response = broken_store.get("/terminology/search", params={"q": "fever"})

        assert response.status_code == 503
        assert response.json()["error"] == "store_unavailable"


class TestCodeSystemEndpoints:
    """Test FHIR CodeSystem endpoints."""

    def test_get_codesystem(self, seeded_client):
        """Test getting NAMASTE CodeSystem."""
        response = seeded_client.get("/fhir/CodeSystem/namaste")

        assert response.status_code == 200
        data = response.json()
        assert data["resourceType"] == "CodeSystem"
        assert data["id"] == "namaste"
        assert data["count"] == 12
        assert len(data["concept"]) == 12
        assert data["concept"][0]["code"] == "NAM001"
        assert data["concept"][0]["property"] == [{"code": "category", "valueString": "constitutional"}]

    def test_get_codesystem_pagination(self, seeded_client):
        """Test CodeSystem pagination."""
        response = seeded_client.get("/fhir/CodeSystem/namaste", params={"page": 3, "page_size": 5})

        data = response.json()
        assert data["count"] == 12
        assert [c["code"] for c in data["concept"]] == ["NAM011", "NAM012"]

    def test_get_concept_by_code(self, seeded_client):
        response = seeded_client.get("/fhir/CodeSystem/namaste/NAM009")

        assert response.status_code == 200
        data = response.json()
        assert data["system"] == "NAMASTE"
        assert data["display"] == "Anidra"
        assert data["category"] == "mental"

    def test_get_concept_not_found(self, seeded_client):
        response = seeded_client.get("/fhir/CodeSystem/namaste/NAM999")

        assert response.status_code == 404
        assert response.json()["detail"] == "NAMASTE concept with code 'NAM999' not found"

    def test_list_codesystems(self, client):
        """Test listing all CodeSystems."""
        response = client.get("/fhir/CodeSystem")

        assert response.status_code == 200
        data = response.json()
        assert data["resourceType"] == "Bundle"
        assert data["total"] == 5
        ids = [e["resource"]["id"] for e in data["entry"]]
        assert ids == ["namaste", "icd11", "icd11-tm2", "snomed-ct", "loinc"]


class TestServiceEndpoints:
    """Test health and service information."""

    def test_health_check(self, client):
        response = client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "namaste-bridge"
        assert data["database"] == "connected"
        assert data["icd11_api"] == "not_configured"

    @pytest.mark.parametrize("token_status,expected", [(200, "healthy"), (401, "unhealthy")])
    def test_health_reports_who_api_status(self, client, token_status, expected):
        def who_api(request):
            return httpx.Response(token_status, json={"access_token": "tok-1", "expires_in": 3600})

        app.dependency_overrides[get_icd11_client] = lambda: ICD11Client(
            client_id="id",
            client_secret="secret",
            token_url="https://auth.example.org/connect/token",
            transport=httpx.MockTransport(who_api),
        )
        try:
            response = client.get("/health")
        finally:
            app.dependency_overrides.clear()

        assert response.json()["icd11_api"] == expected

    def test_root(self, client):
        response = client.get("/")

        assert response.status_code == 200
        endpoints = response.json()["endpoints"]
        assert endpoints["translate"] == "/translate"
        assert endpoints["search"] == "/terminology/search"
