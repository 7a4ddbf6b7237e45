"""
Shared fixtures for the NAMASTE terminology bridge tests.
"""

import os
import tempfile
from pathlib import Path

DATA_DIR = Path(__file__).parent.parent / "data"

# Settings are read at import time, so the environment must be in place first
os.environ["DATABASE_URL"] = f"sqlite:///{Path(tempfile.mkdtemp(prefix='namaste_bridge_')) / 'test.db'}"
os.environ["ICD11_CLIENT_ID"] = ""
os.environ["ICD11_CLIENT_SECRET"] = ""
os.environ["TM2_MAPPING_CSV"] = str(DATA_DIR / "icd11_tm2_biomedical.csv")
os.environ["LOG_LEVEL"] = "WARNING"

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from namaste_bridge.db.session import AsyncSessionLocal, drop_db, init_db  # noqa: E402
from namaste_bridge.errors import StoreUnavailable  # noqa: E402
from namaste_bridge.main import app  # noqa: E402
from namaste_bridge.schema import CodeSystem, Concept, CuratedMapping, MappingStatus, TargetVocabulary  # noqa: E402
from namaste_bridge.services.terminology_loader import TerminologyLoader  # noqa: E402


async def reset_db():
    await drop_db()
    await init_db()


async def seed_terminology(data_dir: Path = DATA_DIR):
    async with AsyncSessionLocal() as db:
        return await TerminologyLoader(db).ingest_directory(data_dir)


@pytest.fixture
def client():
    """Test client over an empty database."""
    with TestClient(app) as test_client:
        test_client.portal.call(reset_db)
        yield test_client


@pytest.fixture
def seeded_client(client):
    """Test client over the sample terminology in ``data/``."""
    results = client.portal.call(seed_terminology)
    assert all(r["success"] for r in results.values()), results
    return client


@pytest.fixture
async def db_session():
    """Database session over an empty database."""
    await reset_db()
    async with AsyncSessionLocal() as session:
        yield session


class FakeConceptStore:
    """
    In-memory stand-in for ``ConceptStore``.

    Methods named in ``fail`` raise ``StoreUnavailable``; ``calls`` records
    every method invoked.
    """

    def __init__(self):
        self.source = {}
        self.targets = {vocabulary: {} for vocabulary in TargetVocabulary}
        self.mappings = []
        self.fail = set()
        self.calls = []

    def _enter(self, name):
        self.calls.append(name)
        if name in self.fail or "*" in self.fail:
            raise StoreUnavailable(f"{name} unavailable")

    def add_source(self, code, display, description=None, category=None):
        self.source[code] = Concept(
            system=CodeSystem.NAMASTE, code=code, display=display,
            description=description, category=category,
        )

    def add_target(self, vocabulary, code, display, description=None, semantic_tag=None, equivalence=None):
        system = {
            TargetVocabulary.ICD11: CodeSystem.ICD11_TM2,
            TargetVocabulary.SNOMED_CT: CodeSystem.SNOMED_CT,
            TargetVocabulary.LOINC: CodeSystem.LOINC,
        }[vocabulary]
        self.targets[vocabulary][code] = Concept(
            system=system, code=code, display=display,
            description=description, semantic_tag=semantic_tag, equivalence=equivalence,
        )

    def add_mapping(self, **fields):
        fields.setdefault("status", MappingStatus.APPROVED)
        self.mappings.append(CuratedMapping(id=len(self.mappings) + 1, **fields))

    @staticmethod
    def _matches(concept, keywords):
        text = f"{concept.display} {concept.description or ''}".lower()
        return any(keyword in text for keyword in keywords)

    async def get_source_concept(self, code):
        self._enter("get_source_concept")
        return self.source.get(code)

    async def search_source_by_keywords(self, keywords, limit):
        self._enter("search_source_by_keywords")
        hits = [c for c in self.source.values() if self._matches(c, keywords)]
        return sorted(hits, key=lambda c: c.code)[:limit]

    async def search_target_concepts(self, vocabulary, keywords, limit):
        self._enter("search_target_concepts")
        hits = [c for c in self.targets[vocabulary].values() if self._matches(c, keywords)]
        return sorted(hits, key=lambda c: c.code)[:limit]

    async def get_target_concepts(self, vocabulary, codes):
        self._enter("get_target_concepts")
        return [self.targets[vocabulary][c] for c in sorted(codes) if c in self.targets[vocabulary]]

    async def get_target_concept(self, vocabulary, code):
        self._enter("get_target_concept")
        return self.targets[vocabulary].get(code)

    def _approved(self, predicate):
        rows = [m for m in self.mappings if m.status == MappingStatus.APPROVED and predicate(m)]
        return sorted(rows, key=lambda m: (-m.mapping_confidence, m.id))

    async def approved_mappings(self, source_code):
        self._enter("approved_mappings")
        return self._approved(lambda m: m.ayush_code == source_code)

    async def approved_mappings_for_target(self, icd11_code):
        self._enter("approved_mappings_for_target")
        return self._approved(lambda m: m.icd11_code == icd11_code)


@pytest.fixture
def fake_store():
    return FakeConceptStore()
